"""Main entry point of the command line interface.
"""

from pathlib import Path
import socket
import sys

from .parse import register_arguments, RootNs, InstallNs, StartNs, StatusNs
from .util import format_number, offline_identity
from .output import Output, HumanOutput, MachineOutput
from .lang import get as _

from ..standard import Context, SimpleWatcher, DownloadProgressEvent, VersionNotFoundError
from ..install import Installer, InstallWarningEvent, InstallCompleteEvent
from ..fabric import OverlayResolveEvent, FABRIC_API
from ..modrinth import LauncherState
from ..launch import Launcher, LaunchConfig, GameAlreadyRunningError, \
    GameStartedEvent, GameLogEvent, GameExitedEvent
from ..server import ping_server, DEFAULT_PORT
from ..download import DownloadError
from ..java import detect_java, get_java_version
from ..http import HttpError

from typing import cast, Optional, List, Union, Dict, Callable, Any


EXIT_OK = 0
EXIT_FAILURE = 1

CommandHandler = Callable[[Any], Any]
CommandTree = Dict[str, Union[CommandHandler, "CommandTree"]]


def main(args: Optional[List[str]] = None):
    """Main entry point of the CLI. This function parses the input arguments and try to
    find a command handler to dispatch to.
    """

    parser = register_arguments()
    ns: RootNs = cast(RootNs, parser.parse_args(args or sys.argv[1:]))

    # Setup common objects in the namespace.
    ns.out = get_output(ns.out_kind)
    ns.context = Context(ns.main_dir)
    socket.setdefaulttimeout(ns.timeout)

    # Find the command handler and run it.
    command_handlers = get_command_handlers()
    command_attr = "subcommand"
    while True:
        command = getattr(ns, command_attr)
        handler = command_handlers.get(command)
        if handler is None:
            parser.print_help()
            sys.exit(EXIT_FAILURE)
        elif callable(handler):
            cmd(handler, ns)
        elif isinstance(handler, dict):
            command_attr = f"{command}_{command_attr}"
            command_handlers = handler
            continue
        sys.exit(EXIT_OK)


def get_output(kind: str) -> Output:
    """Internal function that construct the output depending on its kind.
    The kind is constrained by choices set to the arguments parser.
    """

    if kind == "human-color":
        return HumanOutput(True)
    elif kind == "human":
        return HumanOutput(False)
    elif kind == "machine":
        return MachineOutput()
    else:
        raise ValueError()


def get_command_handlers() -> CommandTree:
    return {
        "install": cmd_install,
        "start": cmd_start,
        "status": cmd_status,
        "java": cmd_java,
        "show": {
            "about": cmd_show_about,
            "lang": cmd_show_lang,
        },
    }


def cmd(handler: CommandHandler, ns: RootNs):
    """Generic command handler that launch the given handler with the given namespace,
    it handles error in order to pretty print them.
    """

    try:
        handler(ns)
        sys.exit(EXIT_OK)

    except VersionNotFoundError as error:
        ns.out.task("FAILED", "error.version_not_found", version=error.version)
        ns.out.finish()

    except DownloadError as error:
        ns.out.task("FAILED", None)
        ns.out.finish()
        ns.out.task(None, "download.error", name=error.entry.name, message=_(f"download.error.{error.code}"))
        ns.out.finish()

    except HttpError as error:
        ns.out.task("FAILED", None)
        ns.out.finish()
        if error.res.status == 0:
            ns.out.task(None, "error.socket")
        else:
            ns.out.task(None, "error.http", method=error.method, url=error.url, status=error.res.status)
        ns.out.finish()

    except ValueError as error:
        ns.out.task("FAILED", None)
        ns.out.finish()
        for arg in error.args:
            ns.out.task(None, "echo", echo=arg)
            ns.out.finish()

    except KeyboardInterrupt:
        ns.out.finish()
        ns.out.task("HALT", "keyboard_interrupt")
        ns.out.finish()

    except OSError as error:

        from ssl import SSLCertVerificationError

        key = "error.os"
        if isinstance(error, SSLCertVerificationError):
            key = "error.cert"
        elif isinstance(error, (socket.gaierror, socket.timeout, ConnectionError)):
            key = "error.socket"

        ns.out.task("FAILED", None)
        ns.out.finish()
        ns.out.task(None, key)
        ns.out.finish()

        if ns.verbose >= 1:
            import traceback
            traceback.print_exc()

    sys.exit(EXIT_FAILURE)


def new_installer(ns: InstallNs) -> Installer:
    return Installer(ns.context,
        fabric=None if ns.no_loader else FABRIC_API,
        mods=[] if ns.no_loader or ns.no_mods else None,
        state=LauncherState(ns.context.state_file))


def cmd_install(ns: InstallNs):
    new_installer(ns).install(watcher=InstallWatcher(ns))


def cmd_start(ns: StartNs):

    if not ns.no_install:
        new_installer(ns).install(watcher=InstallWatcher(ns))
    elif not ns.context.is_installed():
        ns.out.task("FAILED", "error.not_installed")
        ns.out.finish()
        sys.exit(EXIT_FAILURE)

    if ns.jvm is not None:
        jvm_path = Path(ns.jvm)
    else:
        detected = detect_java()
        if detected is None:
            ns.out.task("FAILED", "start.jvm.not_found")
            ns.out.finish()
            sys.exit(EXIT_FAILURE)
        jvm_path = detected

    ns.out.task("INFO", "start.jvm.found", path=jvm_path)
    ns.out.finish()

    username, uuid = offline_identity(ns.username, ns.uuid)

    config = LaunchConfig(
        jvm_path=jvm_path,
        player_name=username,
        player_uuid=uuid,
        access_token=ns.access_token,
        max_memory_mb=ns.max_memory,
        main_dir=ns.context.main_dir,
        server_host=ns.server,
        server_port=ns.server_port,
        server_name=ns.server_name)

    launcher = Launcher()

    if ns.dry:
        ns.out.task("INFO", "start.dry")
        ns.out.finish()
        ns.out.print(" ".join(launcher.compose(config)) + "\n")
        return

    if ns.verbose >= 1:
        ns.out.task("INFO", "start.args")
        ns.out.finish()
        ns.out.print(" ".join(launcher.compose(config)) + "\n")

    try:
        process = launcher.launch(config, watcher=GameWatcher(ns))
    except GameAlreadyRunningError:
        ns.out.task("FAILED", "start.already_running")
        ns.out.finish()
        sys.exit(EXIT_FAILURE)

    try:
        process.join()
    except KeyboardInterrupt:
        process.kill()
        process.join()
        raise


def cmd_status(ns: StatusNs):

    port = DEFAULT_PORT if ns.port is None else ns.port
    ns.out.task("..", "status.pinging", host=ns.host, port=port)

    try:
        status = ping_server(ns.host, port, timeout=ns.timeout or 5.0)
    except (OSError, ValueError) as error:
        ns.out.task("FAILED", "status.offline", host=ns.host, port=port, reason=str(error) or type(error).__name__)
        ns.out.finish()
        sys.exit(EXIT_FAILURE)

    ns.out.task("OK", "status.online",
        host=ns.host,
        port=port,
        players_online=status.players_online,
        players_max=status.players_max,
        latency_ms=status.latency_ms)
    ns.out.finish()

    if len(status.motd):
        ns.out.task(None, "status.motd", motd=status.motd)
        ns.out.finish()


def cmd_java(ns: RootNs):

    ns.out.task("..", "java.detecting")

    path = detect_java()
    if path is None:
        ns.out.task("FAILED", "java.not_found")
        ns.out.finish()
        sys.exit(EXIT_FAILURE)

    version = get_java_version(path) or _("java.unknown_version")
    ns.out.task("OK", "java.found", path=path, version=version)
    ns.out.finish()


def cmd_show_about(ns: RootNs):

    from .. import LAUNCHER_VERSION, LAUNCHER_AUTHORS, LAUNCHER_URL, LAUNCHER_COPYRIGHT

    print(f"Version: {LAUNCHER_VERSION}")
    print(f"Authors: {', '.join(LAUNCHER_AUTHORS)}")
    print(f"Website: {LAUNCHER_URL}")
    print(f"License: {LAUNCHER_COPYRIGHT}")
    print( "         This program comes with ABSOLUTELY NO WARRANTY. This is free software,")
    print( "         and you are welcome to redistribute it under certain conditions.")
    print( "         See <https://www.gnu.org/licenses/gpl-3.0.html>.")


def cmd_show_lang(ns: RootNs):

    from .lang import lang

    table = ns.out.table()

    # Intentionally not i18n for now because used for debug purpose.
    table.add("Key", "Message")
    table.separator()

    for key, msg in lang.items():
        table.add(key, msg)

    table.print()


class InstallWatcher(SimpleWatcher):

    def __init__(self, ns: RootNs) -> None:

        def overlay_resolve(e: OverlayResolveEvent) -> None:
            if e.loader_version is None:
                ns.out.task("..", "install.overlay.resolving", api=e.api.name, vanilla_version=e.vanilla_version)
            else:
                ns.out.task("OK", "install.overlay.resolved", api=e.api.name, loader_version=e.loader_version, vanilla_version=e.vanilla_version)
                ns.out.finish()

        def install_warning(e: InstallWarningEvent) -> None:
            ns.out.finish()
            ns.out.task("WARN", "install.warning", stage=e.stage, message=e.message)
            ns.out.finish()

        def install_complete(e: InstallCompleteEvent) -> None:
            if len(e.warnings):
                ns.out.task("WARN", "install.complete.warnings", version=e.version, count=len(e.warnings))
            else:
                ns.out.task("OK", "install.complete", version=e.version)
            ns.out.finish()

        super().__init__({
            DownloadProgressEvent: self.download_progress,
            OverlayResolveEvent: overlay_resolve,
            InstallWarningEvent: install_warning,
            InstallCompleteEvent: install_complete,
        })

        self.ns = ns

    def download_progress(self, e: DownloadProgressEvent) -> None:

        # The completion is reported by the complete event.
        if e.stage == "complete":
            return

        self.ns.out.task("..", f"install.progress.{e.stage}",
            name=e.file_name,
            current=e.current,
            total=e.total,
            percent=e.percent,
            size=f"{format_number(e.total)}o")

        if self.ns.verbose >= 1:
            self.ns.out.finish()


class GameWatcher(SimpleWatcher):

    def __init__(self, ns: RootNs) -> None:

        def game_started(e: GameStartedEvent) -> None:
            ns.out.task("OK", "start.started", pid=e.pid)
            ns.out.finish()

        def game_exited(e: GameExitedEvent) -> None:
            ns.out.task("OK" if e.code == 0 else "FAILED", "start.exited", code=e.code)
            ns.out.finish()

        super().__init__({
            GameStartedEvent: game_started,
            GameLogEvent: lambda e: ns.out.print(f"{e.line}\n"),
            GameExitedEvent: game_exited,
        })
