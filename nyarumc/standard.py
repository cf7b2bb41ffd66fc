"""Definition of the standard version metadata format used by Mojang, the installation
context, and the version manifest used to resolve the pinned game version.

Everything here is about *reading* the remote catalogs: the version manifest, the
version metadata and the assets index. Installing is done by the `install` module.
"""

from pathlib import Path
import json

from .util import get_data_dir, minecraft_os
from .http import http_request

from typing import Optional, Dict, List, Any, Callable, Set, Tuple


TARGET_VERSION = "1.21.11"
VERSION_MANIFEST_URL = "https://launchermeta.mojang.com/mc/game/version_manifest_v2.json"
RESOURCES_URL = "https://resources.download.minecraft.net/"
DEFAULT_MAIN_CLASS = "net.minecraft.client.main.Main"


class Context:
    """Context of the game's installation and runtime. This defines the directories
    where versions, assets, libraries and mods are stored, the pointer file of the
    active loader overlay and the few launcher-owned files. The game also runs from
    the main directory.
    """

    def __init__(self, main_dir: Optional[Path] = None) -> None:
        """Construct a game installation context.

        :param main_dir: The main directory where everything is installed and where
        the game runs. Defaults to `<data dir>/nyaru-launcher/minecraft`.
        """

        self.main_dir = get_default_main_dir() if main_dir is None else main_dir
        self.versions_dir = self.main_dir / "versions"
        self.assets_dir = self.main_dir / "assets"
        self.libraries_dir = self.main_dir / "libraries"
        self.mods_dir = self.main_dir / "mods"
        self.loader_pointer_file = self.main_dir / "loader-version.txt"
        self.servers_file = self.main_dir / "servers.dat"
        self.state_file = self.main_dir / "nyarumc_state.json"

    def version_dir(self, version: str) -> Path:
        return self.versions_dir / version

    def metadata_file(self, version: str) -> Path:
        """Return the path of the persisted metadata of a version.
        """
        return self.versions_dir / version / f"{version}.json"

    def jar_file(self, version: str) -> Path:
        """Return the path of the client JAR file of a version.
        """
        return self.versions_dir / version / f"{version}.jar"

    def natives_dir(self, version: str) -> Path:
        return self.main_dir / "natives" / version

    def asset_index_file(self, index_id: str) -> Path:
        return self.assets_dir / "indexes" / f"{index_id}.json"

    def asset_object_file(self, asset_hash: str) -> Path:
        """Assets objects are content-addressed, sharded by the first two characters of
        their hash.
        """
        return self.assets_dir / "objects" / asset_hash[:2] / asset_hash

    def is_installed(self, version: str = TARGET_VERSION) -> bool:
        """Quick check used by frontends, true if the client JAR is present.
        """
        return self.jar_file(version).is_file()


class Watcher:
    """Base class for a watcher of the install and launch processes.
    """

    def handle(self, event: Any) -> None:
        """Called when the watcher can handle the given event. Default implementation
        does nothing.
        """


class WatcherGroup(Watcher):
    """A group of watcher that is itself a watcher, its functions dispatches events to
    all children.
    """

    def __init__(self) -> None:
        self.children: Set[Watcher] = set()

    def add(self, watcher: Watcher) -> None:
        self.children.add(watcher)

    def remove(self, watcher: Watcher) -> None:
        self.children.remove(watcher)

    def handle(self, event: Any) -> None:
        for watcher in self.children:
            watcher.handle(event)


class SimpleWatcher(Watcher):
    """A watcher dispatching events to handlers given their exact type.
    """

    def __init__(self, handlers: Dict[type, Callable[[Any], None]]) -> None:
        self.handlers = handlers

    def handle(self, event: Any) -> None:
        handler = self.handlers.get(type(event))
        if handler is not None:
            handler(event)


class ArtifactDownload:
    """A remote artifact described by the version metadata.
    """
    __slots__ = "url", "sha1", "size", "path"
    def __init__(self, url: str, sha1: str, size: Optional[int], path: Optional[str] = None) -> None:
        self.url = url
        self.sha1 = sha1
        self.size = size
        self.path = path


class LibraryEntry:
    """A library of the version metadata, its artifact may be absent (for example old
    natives-only entries), in which case it's never downloaded nor put in class path.
    """
    __slots__ = "name", "artifact", "rules"
    def __init__(self, name: str, artifact: Optional[ArtifactDownload], rules: Optional[list]) -> None:
        self.name = name
        self.artifact = artifact
        self.rules = rules

    def __repr__(self) -> str:
        return f"<LibraryEntry {self.name}>"


class AssetIndexRef:
    """Reference of the assets index in the version metadata.
    """
    __slots__ = "id", "url", "sha1", "size", "total_size"
    def __init__(self, id: str, url: str, sha1: str, size: Optional[int], total_size: Optional[int]) -> None:
        self.id = id
        self.url = url
        self.sha1 = sha1
        self.size = size
        self.total_size = total_size


class AssetObject:
    __slots__ = "hash", "size"
    def __init__(self, hash: str, size: int) -> None:
        self.hash = hash
        self.size = size


class VersionMetadata:
    """The parsed subset of a version metadata document that we need for installing
    and launching the game. The raw parsed document is kept in `raw`.
    """

    def __init__(self,
        client: ArtifactDownload,
        libraries: List[LibraryEntry],
        asset_index: AssetIndexRef,
        main_class: str,
        raw: dict
    ) -> None:
        self.client = client
        self.libraries = libraries
        self.asset_index = asset_index
        self.main_class = main_class
        self.raw = raw

    @classmethod
    def parse(cls, data: Any) -> "VersionMetadata":
        """Parse a version metadata document.

        :raises ValueError: If the document is invalid, the message gives the path.
        """

        if not isinstance(data, dict):
            raise ValueError("metadata: / must be an object")

        downloads = data.get("downloads")
        if not isinstance(downloads, dict):
            raise ValueError("metadata: /downloads must be an object")

        client = parse_artifact_download(downloads.get("client"), "metadata: /downloads/client")

        metadata_libraries = data.get("libraries", [])
        if not isinstance(metadata_libraries, list):
            raise ValueError("metadata: /libraries must be a list")

        libraries = []
        for library_idx, library in enumerate(metadata_libraries):

            if not isinstance(library, dict):
                raise ValueError(f"metadata: /libraries/{library_idx} must be an object")

            name = library.get("name")
            if not isinstance(name, str):
                raise ValueError(f"metadata: /libraries/{library_idx}/name must be a string")

            rules = library.get("rules")
            if rules is not None and not isinstance(rules, list):
                raise ValueError(f"metadata: /libraries/{library_idx}/rules must be a list")

            artifact = None
            lib_downloads = library.get("downloads")
            if lib_downloads is not None:
                if not isinstance(lib_downloads, dict):
                    raise ValueError(f"metadata: /libraries/{library_idx}/downloads must be an object")
                artifact_data = lib_downloads.get("artifact")
                if artifact_data is not None:
                    artifact_path = f"metadata: /libraries/{library_idx}/downloads/artifact"
                    artifact = parse_artifact_download(artifact_data, artifact_path)
                    if not isinstance(artifact.path, str):
                        raise ValueError(f"{artifact_path}/path must be a string")

            libraries.append(LibraryEntry(name, artifact, rules))

        asset_index_info = data.get("assetIndex")
        if not isinstance(asset_index_info, dict):
            raise ValueError("metadata: /assetIndex must be an object")

        asset_index_id = asset_index_info.get("id")
        if not isinstance(asset_index_id, str):
            raise ValueError("metadata: /assetIndex/id must be a string")

        asset_index_dl = parse_artifact_download(asset_index_info, "metadata: /assetIndex")
        total_size = asset_index_info.get("totalSize")
        if total_size is not None and not isinstance(total_size, int):
            raise ValueError("metadata: /assetIndex/totalSize must be an integer")

        asset_index = AssetIndexRef(asset_index_id, asset_index_dl.url, asset_index_dl.sha1, asset_index_dl.size, total_size)

        main_class = data.get("mainClass", DEFAULT_MAIN_CLASS)
        if not isinstance(main_class, str):
            raise ValueError("metadata: /mainClass must be a string")

        return cls(client, libraries, asset_index, main_class, data)

    @classmethod
    def read_file(cls, file: Path) -> "VersionMetadata":
        """Read and parse a persisted metadata file.

        :raises OSError: If the file cannot be read.
        :raises ValueError: If the file is not valid JSON or not a valid metadata.
        """
        with file.open("rb") as fp:
            return cls.parse(json.load(fp))


class VersionManifest:
    """The Mojang's official version manifest, used to find the metadata URL of the
    pinned version.
    """

    def __init__(self, url: str = VERSION_MANIFEST_URL) -> None:
        self.url = url
        self.data: Optional[dict] = None

    def _ensure_data(self) -> dict:
        """Internal method that ensure that the manifest data has been fetched once.

        :raises HttpError: Underlying HTTP error if manifest could not be requested.
        """
        if self.data is None:
            data = http_request("GET", self.url, accept="application/json").json()
            if not isinstance(data, dict) or not isinstance(data.get("versions"), list):
                raise ValueError("version manifest: /versions must be a list")
            self.data = data
        return self.data

    def get_version(self, version: str) -> dict:
        """Get a manifest's version entry, containing the metadata's URL and its SHA1.

        :raises VersionNotFoundError: If the version is not in the manifest.
        :raises HttpError: Underlying HTTP error if manifest could not be requested.
        """
        for version_data in self._ensure_data()["versions"]:
            if isinstance(version_data, dict) and version_data.get("id") == version:
                if not isinstance(version_data.get("url"), str):
                    raise ValueError(f"version manifest: /versions/{version}/url must be a string")
                return version_data
        raise VersionNotFoundError(version)

    def fetch_metadata(self, version_data: dict) -> Tuple[VersionMetadata, bytes]:
        """Fetch and parse the metadata of a version entry returned by `get_version`,
        the raw bytes are also returned so that they can be persisted verbatim.
        """
        res = http_request("GET", version_data["url"], accept="application/json")
        return VersionMetadata.parse(res.json()), res.data


def parse_artifact_download(value: Any, path: str) -> ArtifactDownload:
    """Common function to parse a download entry from a metadata JSON file.
    """

    if not isinstance(value, dict):
        raise ValueError(f"{path} must be an object")

    url = value.get("url")
    if not isinstance(url, str):
        raise ValueError(f"{path}/url must be a string")

    sha1 = value.get("sha1")
    if not isinstance(sha1, str):
        raise ValueError(f"{path}/sha1 must be a string")

    size = value.get("size")
    if size is not None and not isinstance(size, int):
        raise ValueError(f"{path}/size must be an integer")

    return ArtifactDownload(url, sha1, size, value.get("path"))


def interpret_rule(rules: List[Any], os_name: Optional[str] = None) -> bool:
    """Fold an ordered list of platform rules into a final boolean, starting from false.
    Each rule may overwrite the result of the previous ones:

    - an `allow` rule without OS sets it to true;
    - an `allow` rule with an OS name sets it to true if the name matches;
    - a `disallow` rule with a matching OS name sets it to false.

    Any other rule leaves the result untouched.
    """

    if os_name is None:
        os_name = minecraft_os

    allowed = False
    for rule in rules:

        if not isinstance(rule, dict):
            continue

        rule_os = rule.get("os")
        rule_os_name = rule_os.get("name") if isinstance(rule_os, dict) else None

        action = rule.get("action")
        if action == "allow":
            if rule_os is None or rule_os_name == os_name:
                allowed = True
        elif action == "disallow":
            if rule_os_name is not None and rule_os_name == os_name:
                allowed = False

    return allowed


def filter_libraries(libraries: List[LibraryEntry], os_name: Optional[str] = None) -> List[LibraryEntry]:
    """Return the libraries applicable to the given platform (the running one by
    default), keeping their order. Libraries without rules are always kept.
    """
    return [lib for lib in libraries if lib.rules is None or interpret_rule(lib.rules, os_name)]


def parse_asset_index(data: Any) -> Dict[str, AssetObject]:
    """Parse an assets index document into a mapping of asset name to its object.
    """

    if not isinstance(data, dict):
        raise ValueError("assets index: / must be an object")

    assets_objects = data.get("objects")
    if not isinstance(assets_objects, dict):
        raise ValueError("assets index: /objects must be an object")

    objects = {}
    for asset_id, asset_obj in assets_objects.items():

        if not isinstance(asset_obj, dict):
            raise ValueError(f"assets index: /objects/{asset_id} must be an object")

        asset_hash = asset_obj.get("hash")
        if not isinstance(asset_hash, str) or len(asset_hash) < 2:
            raise ValueError(f"assets index: /objects/{asset_id}/hash must be a string")

        asset_size = asset_obj.get("size")
        if not isinstance(asset_size, int):
            raise ValueError(f"assets index: /objects/{asset_id}/size must be an integer")

        objects[asset_id] = AssetObject(asset_hash, asset_size)

    return objects


def read_asset_index_file(file: Path) -> Dict[str, AssetObject]:
    """Read and parse a persisted assets index.

    :raises OSError: If the file cannot be read.
    :raises ValueError: If the file is not valid JSON or not a valid assets index.
    """
    with file.open("rb") as fp:
        return parse_asset_index(json.load(fp))


def get_default_main_dir() -> Path:
    """Internal function to get the default directory for installing and running the
    game.
    """
    return get_data_dir() / "nyaru-launcher" / "minecraft"


class VersionNotFoundError(Exception):
    """Raised when the pinned version is absent from the version manifest.
    """
    def __init__(self, version: str) -> None:
        self.version = version

    def __str__(self) -> str:
        return repr(self.version)


class DownloadProgressEvent:
    """Event triggered at each step of the installation. The percent is on a fixed
    scale reflecting the usual relative cost of each stage.
    """
    __slots__ = "file_name", "current", "total", "percent", "stage"
    def __init__(self, file_name: str, stage: str, current: int, total: int, percent: float) -> None:
        self.file_name = file_name
        self.stage = stage
        self.current = current
        self.total = total
        self.percent = percent

    def __repr__(self) -> str:
        return f"<DownloadProgressEvent {self.stage} {self.current}/{self.total} {self.percent:.1f}%>"
