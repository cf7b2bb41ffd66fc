"""Definition of the Fabric loader overlay: resolution of the latest stable loader,
persistence of its version profile and installation of its libraries.

The overlay is an enhancement on top of the base game, it is persisted as a profile
file under its own version directory and a one-line pointer file naming the active
overlay, whose presence is the only signal used at launch time.
"""

import json

from .standard import Context, Watcher, DEFAULT_MAIN_CLASS
from .download import DownloadEntry, DownloadError, download_file
from .util import maven_name_to_path, file_valid
from .http import http_request, HttpError

from typing import Optional, Any, Iterator, List


class _FabricApiLoader:
    """This class describes a loader returned from the fabric API.
    """
    __slots__ = "version", "stable"
    def __init__(self, version: str, stable: bool) -> None:
        self.version = version
        self.stable = stable


class LoaderLibrary:
    """A library of the loader profile, with its maven coordinate and the base URL of
    the maven repository it is downloaded from.
    """
    __slots__ = "name", "base_url", "sha1"
    def __init__(self, name: str, base_url: str, sha1: Optional[str] = None) -> None:
        self.name = name
        self.base_url = base_url
        self.sha1 = sha1

    def file_path(self) -> str:
        return maven_name_to_path(self.name)

    def url(self) -> str:
        base_url = self.base_url if self.base_url.endswith("/") else f"{self.base_url}/"
        return f"{base_url}{self.file_path()}"

    def __repr__(self) -> str:
        return f"<LoaderLibrary {self.name}>"


class LoaderOverlay:
    """A resolved loader overlay, the libraries and main class replace or extend the
    ones of the base game at launch.
    """

    def __init__(self, loader_version: str, overlay_id: str, main_class: str, libraries: List[LoaderLibrary]) -> None:
        self.loader_version = loader_version
        self.overlay_id = overlay_id
        self.main_class = main_class
        self.libraries = libraries

    @classmethod
    def parse_profile(cls, loader_version: str, overlay_id: str, profile: Any) -> "LoaderOverlay":
        """Parse the loader's version profile.

        :raises ValueError: If the profile is invalid.
        """

        if not isinstance(profile, dict):
            raise ValueError("loader profile: / must be an object")

        main_class = profile.get("mainClass", DEFAULT_MAIN_CLASS)
        if not isinstance(main_class, str):
            raise ValueError("loader profile: /mainClass must be a string")

        profile_libraries = profile.get("libraries", [])
        if not isinstance(profile_libraries, list):
            raise ValueError("loader profile: /libraries must be a list")

        libraries = []
        for library_idx, library in enumerate(profile_libraries):

            if not isinstance(library, dict):
                raise ValueError(f"loader profile: /libraries/{library_idx} must be an object")

            name = library.get("name")
            if not isinstance(name, str):
                raise ValueError(f"loader profile: /libraries/{library_idx}/name must be a string")

            base_url = library.get("url", "")
            if not isinstance(base_url, str):
                raise ValueError(f"loader profile: /libraries/{library_idx}/url must be a string")

            sha1 = library.get("sha1")
            libraries.append(LoaderLibrary(name, base_url, sha1 if isinstance(sha1, str) else None))

        return cls(loader_version, overlay_id, main_class, libraries)

    def install_libraries(self, context: Context, watcher: Watcher) -> int:
        """Download every missing library of this overlay. A library that fails to
        download is reported with an `InstallWarningEvent` and skipped.

        :return: The number of libraries that failed.
        """

        from .install import InstallWarningEvent

        failed = 0
        for library in self.libraries:

            lib_path = context.libraries_dir / library.file_path()
            if library.sha1 is not None:
                if file_valid(lib_path, library.sha1):
                    continue
            elif lib_path.is_file():
                continue

            if not len(library.base_url):
                failed += 1
                watcher.handle(InstallWarningEvent("loader", f"no repository for {library.name}"))
                continue

            try:
                download_file(DownloadEntry(library.url(), lib_path, sha1=library.sha1, name=library.name))
            except (DownloadError, OSError) as error:
                failed += 1
                watcher.handle(InstallWarningEvent("loader", str(error)))

        return failed


class FabricApi:
    """Client of the Fabric meta REST API, used to resolve the loader overlay of the
    pinned game version.
    """

    def __init__(self, name: str, api_url: str, prefix: str = "loader") -> None:
        self.name = name
        self.api_url = api_url
        self.prefix = prefix

    def request_fabric_meta(self, method: str) -> Any:
        """Generic HTTP request to the fabric's REST API.
        """
        return http_request("GET", f"{self.api_url}{method}", accept="application/json").json()

    def request_version_loader_profile(self, vanilla_version: str, loader_version: str) -> bytes:
        """Return the raw version profile for the given vanilla version and loader.
        """
        url = f"{self.api_url}versions/loader/{vanilla_version}/{loader_version}/profile/json"
        return http_request("GET", url, accept="application/json").data

    def _request_loaders(self) -> Iterator[_FabricApiLoader]:
        """Return an iterator of all loaders, latest first.
        """

        loaders = self.request_fabric_meta("versions/loader")
        if not isinstance(loaders, list):
            raise ValueError("loaders: / must be a list")

        def map_loader(obj) -> _FabricApiLoader:
            return _FabricApiLoader(str(obj.get("version", "")), bool(obj.get("stable", False)))

        return map(map_loader, filter(lambda obj: isinstance(obj, dict), loaders))

    def request_latest_stable_loader(self) -> str:
        """Return the version of the first stable loader.

        :raises LoaderNotFoundError: If no loader is flagged stable.
        """
        for loader in self._request_loaders():
            if loader.stable:
                return loader.version
        raise LoaderNotFoundError(self.name)

    def overlay_id(self, vanilla_version: str, loader_version: str) -> str:
        return f"{self.prefix}-{loader_version}-{vanilla_version}"

    def resolve_overlay(self, context: Context, vanilla_version: str,
        loader_version: Optional[str] = None, *,
        watcher: Optional[Watcher] = None
    ) -> LoaderOverlay:
        """Resolve the overlay of the given loader, the latest stable one by default.
        If the profile is already on disk it's not fetched again, only the pointer file
        is rewritten, otherwise the profile is fetched and persisted verbatim.
        """

        watcher = watcher or Watcher()

        if loader_version is None:
            watcher.handle(OverlayResolveEvent(self, vanilla_version, None))
            loader_version = self.request_latest_stable_loader()
            watcher.handle(OverlayResolveEvent(self, vanilla_version, loader_version))

        overlay_id = self.overlay_id(vanilla_version, loader_version)
        profile_file = context.metadata_file(overlay_id)

        if profile_file.is_file():
            with profile_file.open("rb") as fp:
                profile = json.load(fp)
        else:

            try:
                raw_profile = self.request_version_loader_profile(vanilla_version, loader_version)
            except HttpError as error:
                if error.res.status not in (404, 400):
                    raise
                raise LoaderNotFoundError(overlay_id)

            profile = json.loads(raw_profile)
            profile_file.parent.mkdir(parents=True, exist_ok=True)
            with profile_file.open("wb") as fp:
                fp.write(raw_profile)

        write_loader_pointer(context, overlay_id)
        return LoaderOverlay.parse_profile(loader_version, overlay_id, profile)


FABRIC_API = FabricApi("fabric", "https://meta.fabricmc.net/v2/")


def write_loader_pointer(context: Context, overlay_id: str) -> None:
    """Write the one-line pointer file naming the active overlay.
    """
    context.main_dir.mkdir(parents=True, exist_ok=True)
    context.loader_pointer_file.write_text(f"{overlay_id}\n")


def read_loader_overlay(context: Context) -> Optional[LoaderOverlay]:
    """Read back the active overlay from the pointer file and its persisted profile.
    Returns none if there is no pointer file.

    :raises OSError: If the profile cannot be read.
    :raises ValueError: If the profile is invalid.
    """

    try:
        overlay_id = context.loader_pointer_file.read_text().strip()
    except FileNotFoundError:
        return None

    if not len(overlay_id):
        raise ValueError("loader pointer: empty overlay id")

    with context.metadata_file(overlay_id).open("rb") as fp:
        profile = json.load(fp)

    # The loader version is not needed at launch, the identifier is kept instead.
    return LoaderOverlay.parse_profile("", overlay_id, profile)


class LoaderNotFoundError(Exception):
    """Raised when no stable loader exists, or its profile is not available for the
    pinned game version.
    """
    def __init__(self, loader: str) -> None:
        self.loader = loader

    def __str__(self) -> str:
        return repr(self.loader)


class OverlayResolveEvent:
    """Event triggered when the loader version is missing and is being resolved.
    """
    __slots__ = "api", "vanilla_version", "loader_version"
    def __init__(self, api: FabricApi, vanilla_version: str, loader_version: Optional[str]) -> None:
        self.api = api
        self.vanilla_version = vanilla_version
        self.loader_version = loader_version
