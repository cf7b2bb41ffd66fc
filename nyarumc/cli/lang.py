"""CLI languages management.
"""

from ..download import DownloadError

from typing import Optional


def get_raw(key: str, kwargs: Optional[dict]) -> str:
    """Get a message translated using the given keyword formatting arguments.

    :param key: The key of the message to translate.
    :param kwargs: The keyword formatting dictionary.
    :return: Translated message, or the key itself if not found.
    """
    try:
        return lang[key].format_map(kwargs or {})
    except KeyError:
        return key


def get(key: str, **kwargs) -> str:
    """Get a message translated using the given keyword formatting arguments.
    """
    return get_raw(key, kwargs)


lang = {
    # Args root
    "args": "nyarumc installs and launches the Nyaru game client, with its Fabric "
        "loader and mods, and queries the status of game servers.",
    "args.main_dir": "Set the main directory where versions, libraries, assets and mods "
        "are installed, the game also runs in it.",
    "args.timeout": "Set a global timeout (in decimal seconds) for network requests.",
    "args.output": "Set the output format of the launcher, defaults to human-color.",
    "args.verbose": "Enable verbose output, print the game's command line and every "
        "download.",
    # Args install
    "args.install": "Install or repair the game.",
    "args.install.no_loader": "Don't install the Fabric loader overlay.",
    "args.install.no_mods": "Don't install the mods.",
    # Args start
    "args.start": "Install the game if needed and start it.",
    "args.start.dry": "Only install the game and print its command line.",
    "args.start.no_install": "Don't check the installation before starting.",
    "args.start.jvm": "Set a custom JVM 'javaw' executable path, detected by default.",
    "args.start.max_memory": "Maximum heap memory of the game in MB, defaults to 4096.",
    "args.start.username": "Set the player name, defaults to the first characters of "
        "the UUID.",
    "args.start.uuid": "Set the player UUID, random by default.",
    "args.start.access_token": "Set the access token of the session, empty by default.",
    "args.start.server": "Connect to this server on startup and add it to the server list.",
    "args.start.server_port": "Port of the server, defaults to 25565.",
    "args.start.server_name": "Name of the server in the server list.",
    # Args status
    "args.status": "Query the status of a game server.",
    "args.port.invalid": "invalid port '{given}', expected a number in 0..65535",
    # Args java
    "args.java": "Detect the installed Java runtime.",
    # Args show
    "args.show": "Show and debug various data.",
    "args.show.about": "Display authors, version and license of nyarumc.",
    "args.show.lang": "Display all languages keys and messages.",
    # Common
    "echo": "{echo}",
    "keyboard_interrupt": "Interrupted.",
    # Errors
    "error.os": "An error occurred on the system, check permissions and free space.",
    "error.socket": "A network error occurred, check your connection.",
    "error.cert": "Certificate verification failed, your system's certificates may be "
        "outdated.",
    "error.http": "Request {method} {url} failed with status {status}.",
    "error.version_not_found": "Version {version} not found in the version manifest.",
    "error.not_installed": "The game is not installed, run the install command first.",
    # Install
    "install.progress.manifest": "Fetching version manifest...",
    "install.progress.metadata": "Fetching metadata of {name}...",
    "install.progress.client": "Downloading {name} ({size})... {percent:.0f}%",
    "install.progress.libraries": "Library {name} ({current}/{total})... {percent:.0f}%",
    "install.progress.asset_index": "Downloading asset index {name}... {percent:.0f}%",
    "install.progress.assets": "Assets {current}/{total}... {percent:.0f}%",
    "install.progress.loader": "Installing {name} loader... {percent:.0f}%",
    "install.progress.mods": "Installing mod {name}... {percent:.0f}%",
    "install.overlay.resolving": "Resolving {api} loader for {vanilla_version}...",
    "install.overlay.resolved": "Resolved {api} loader {loader_version} for {vanilla_version}",
    "install.warning": "{stage}: {message}",
    "install.complete": "Installed {version}",
    "install.complete.warnings": "Installed {version} with {count} warning(s)",
    # Download errors
    "download.error": "{name}: {message}",
    f"download.error.{DownloadError.CONNECTION}": "Connection error",
    f"download.error.{DownloadError.NOT_FOUND}": "Not found",
    f"download.error.{DownloadError.INVALID_SHA1}": "Invalid SHA1",
    # Start
    "start.already_running": "The game is already running.",
    "start.jvm.not_found": "No Java runtime found, install one or use --jvm.",
    "start.jvm.found": "Java: {path}",
    "start.dry": "Dry run, command line:",
    "start.args": "Command line:",
    "start.started": "Game started (pid {pid})",
    "start.exited": "Game exited with code {code}",
    # Status
    "status.pinging": "Pinging {host}:{port}...",
    "status.online": "{host}:{port} online, {players_online}/{players_max} players, {latency_ms} ms",
    "status.motd": "{motd}",
    "status.offline": "{host}:{port} offline ({reason})",
    # Java
    "java.detecting": "Detecting Java runtime...",
    "java.found": "Found {path} ({version})",
    "java.not_found": "No Java runtime found.",
    "java.unknown_version": "unknown version",
}
