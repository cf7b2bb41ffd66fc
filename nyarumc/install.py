"""Definition of the installer, sequencing the resolution and the download of the pinned
game version, its loader overlay and its mods into one idempotent installation.

Resuming comes from each artifact being checked before being fetched: re-running the
installer after a failure only downloads what is missing or invalid.
"""

from pathlib import Path

from .standard import Context, Watcher, VersionManifest, VersionMetadata, \
    DownloadProgressEvent, TARGET_VERSION, RESOURCES_URL, \
    filter_libraries, read_asset_index_file
from .download import DownloadEntry, DownloadError, download_file
from .fabric import FabricApi, LoaderNotFoundError, FABRIC_API
from .modrinth import ModrinthApi, ModSpec, ModNotFoundError, LauncherState, DEFAULT_MODS, install_mod
from .util import file_valid
from .http import HttpError

from typing import Optional, Callable, List, Dict


# Errors that an optional stage degrades to a warning.
OPTIONAL_ERRORS = (HttpError, DownloadError, LoaderNotFoundError, ModNotFoundError, ValueError, OSError)


class InstallStage:
    """A stage of the installation pipeline. Failure of a required stage aborts the
    installation, failure of an optional one is reported as a warning.
    """
    __slots__ = "name", "func", "required"
    def __init__(self, name: str, func: Callable[[Watcher], None], required: bool = True) -> None:
        self.name = name
        self.func = func
        self.required = required

    def __repr__(self) -> str:
        return f"<InstallStage {self.name}{'' if self.required else ' (optional)'}>"


class Installer:
    """The installer of the pinned game version. The optional loader overlay and mods
    are installed on top of it, unless disabled.
    """

    def __init__(self, context: Optional[Context] = None, *,
        version: str = TARGET_VERSION,
        manifest: Optional[VersionManifest] = None,
        resources_url: str = RESOURCES_URL,
        fabric: Optional[FabricApi] = FABRIC_API,
        modrinth: Optional[ModrinthApi] = None,
        mods: Optional[List[ModSpec]] = None,
        state: Optional[LauncherState] = None,
    ) -> None:

        self.context = context or Context()
        self.version = version
        self.manifest = manifest or VersionManifest()
        self.resources_url = resources_url
        self.fabric = fabric
        self.modrinth = modrinth or ModrinthApi()
        self.mods = DEFAULT_MODS if mods is None else mods
        self.state = state or LauncherState(self.context.state_file)

        # Resolved while installing.
        self._metadata: Optional[VersionMetadata] = None
        self._fetched_metadata = False
        self._warnings: List[str] = []

    @property
    def metadata(self) -> Optional[VersionMetadata]:
        return self._metadata

    def stages(self) -> List[InstallStage]:
        """Return the ordered stages of the pipeline.
        """
        stages = [
            InstallStage("directory", self._install_directory),
            InstallStage("metadata", self._install_metadata),
            InstallStage("client", self._install_client),
            InstallStage("libraries", self._install_libraries),
            InstallStage("asset_index", self._install_asset_index),
            InstallStage("assets", self._install_assets),
        ]
        if self.fabric is not None:
            stages.append(InstallStage("loader", self._install_loader, False))
        if len(self.mods):
            stages.append(InstallStage("mods", self._install_mods, False))
        return stages

    def install(self, *, watcher: Optional[Watcher] = None) -> VersionMetadata:
        """Run the whole pipeline. This can be called many times, only what is missing
        or invalid is downloaded again.

        :return: The installed version metadata.
        """

        watcher = watcher or Watcher()
        self._warnings.clear()

        for stage in self.stages():
            if stage.required:
                stage.func(watcher)
            else:
                try:
                    stage.func(watcher)
                except OPTIONAL_ERRORS as error:
                    self._warn(watcher, stage.name, str(error) or repr(error))

        watcher.handle(DownloadProgressEvent("complete", "complete", 1, 1, 100.0))
        watcher.handle(InstallCompleteEvent(self.version, self._fetched_metadata, list(self._warnings)))

        assert self._metadata is not None
        return self._metadata

    def _warn(self, watcher: Watcher, stage: str, message: str) -> None:
        self._warnings.append(f"{stage}: {message}")
        watcher.handle(InstallWarningEvent(stage, message))

    def _install_directory(self, watcher: Watcher) -> None:
        self.context.main_dir.mkdir(parents=True, exist_ok=True)
        self.context.version_dir(self.version).mkdir(parents=True, exist_ok=True)

    def _install_metadata(self, watcher: Watcher) -> None:
        """Load the persisted metadata, if missing or corrupt then fetch it through the
        version manifest and persist it verbatim.
        """

        metadata_file = self.context.metadata_file(self.version)

        try:
            self._metadata = VersionMetadata.read_file(metadata_file)
            self._fetched_metadata = False
            return
        except (OSError, ValueError):
            pass

        watcher.handle(DownloadProgressEvent("version manifest", "manifest", 0, 1, 0.0))
        version_data = self.manifest.get_version(self.version)

        watcher.handle(DownloadProgressEvent(f"{self.version}.json", "metadata", 0, 1, 5.0))
        metadata, raw = self.manifest.fetch_metadata(version_data)

        metadata_file.parent.mkdir(parents=True, exist_ok=True)
        with metadata_file.open("wb") as fp:
            fp.write(raw)

        self._metadata = metadata
        self._fetched_metadata = True

    def _install_client(self, watcher: Watcher) -> None:

        assert self._metadata is not None
        client = self._metadata.client
        jar_file = self.context.jar_file(self.version)

        if not file_valid(jar_file, client.sha1):
            watcher.handle(DownloadProgressEvent(jar_file.name, "client", 0, client.size or 0, 10.0))
            download_file(DownloadEntry(client.url, jar_file, size=client.size, sha1=client.sha1, name=jar_file.name))

    def _install_libraries(self, watcher: Watcher) -> None:

        assert self._metadata is not None
        libraries = filter_libraries(self._metadata.libraries)
        total = len(libraries)

        for i, library in enumerate(libraries):

            artifact = library.artifact
            if artifact is None:
                continue

            lib_file = self.context.libraries_dir / str(artifact.path)
            if file_valid(lib_file, artifact.sha1):
                continue

            # Short name of the library, its artifact.
            name_parts = library.name.split(":")
            short_name = name_parts[1] if len(name_parts) > 1 else library.name

            watcher.handle(DownloadProgressEvent(short_name, "libraries", i, total, 15.0 + 55.0 * i / total))
            download_file(DownloadEntry(artifact.url, lib_file, size=artifact.size, sha1=artifact.sha1, name=library.name))

    def _install_asset_index(self, watcher: Watcher) -> None:

        assert self._metadata is not None
        asset_index = self._metadata.asset_index
        index_file = self.context.asset_index_file(asset_index.id)

        if not file_valid(index_file, asset_index.sha1):
            watcher.handle(DownloadProgressEvent(index_file.name, "asset_index", 0, 1, 70.0))
            download_file(DownloadEntry(asset_index.url, index_file, size=asset_index.size, sha1=asset_index.sha1, name=index_file.name))

    def _install_assets(self, watcher: Watcher) -> None:

        assert self._metadata is not None
        objects = read_asset_index_file(self.context.asset_index_file(self._metadata.asset_index.id))
        total = len(objects)
        resources_url = self.resources_url if self.resources_url.endswith("/") else f"{self.resources_url}/"

        # Objects are content-addressed, many names may share the same object.
        done: Dict[str, Path] = {}

        for i, asset in enumerate(objects.values()):

            if asset.hash in done:
                continue

            object_file = self.context.asset_object_file(asset.hash)
            done[asset.hash] = object_file

            if file_valid(object_file, asset.hash):
                continue

            if i % 50 == 0:
                watcher.handle(DownloadProgressEvent(f"assets ({i}/{total})", "assets", i, total, 72.0 + 26.0 * i / total))

            url = f"{resources_url}{asset.hash[:2]}/{asset.hash}"
            download_file(DownloadEntry(url, object_file, size=asset.size, sha1=asset.hash, name=asset.hash))

    def _install_loader(self, watcher: Watcher) -> None:

        assert self.fabric is not None
        watcher.handle(DownloadProgressEvent(self.fabric.name, "loader", 0, 1, 98.0))
        overlay = self.fabric.resolve_overlay(self.context, self.version, watcher=watcher)
        overlay.install_libraries(self.context, watcher)

    def _install_mods(self, watcher: Watcher) -> None:

        self.state.load()
        total = len(self.mods)

        for i, spec in enumerate(self.mods):
            watcher.handle(DownloadProgressEvent(spec.prefix, "mods", i, total, 99.0))
            try:
                mod_file = self.modrinth.resolve_download(spec)
                install_mod(self.context, mod_file, spec.prefix)
            except OPTIONAL_ERRORS as error:
                self._warn(watcher, "mods", f"{spec.project_id}: {str(error) or repr(error)}")
                continue
            self.state.set_mod_timestamp(spec.project_id, mod_file.published)

        self.state.save()


def is_installed(context: Context, version: str = TARGET_VERSION) -> bool:
    """Return true if the client JAR of the version is present.
    """
    return context.is_installed(version)


def read_installed_metadata(context: Context, version: str = TARGET_VERSION) -> VersionMetadata:
    """Read the metadata persisted by a previous installation.

    :raises OSError: If the metadata cannot be read, the version is not installed.
    :raises ValueError: If the metadata is invalid.
    """
    return VersionMetadata.read_file(context.metadata_file(version))


class InstallWarningEvent:
    """Event triggered when an optional stage, or part of it, failed.
    """
    __slots__ = "stage", "message"
    def __init__(self, stage: str, message: str) -> None:
        self.stage = stage
        self.message = message

    def __repr__(self) -> str:
        return f"<InstallWarningEvent {self.stage}: {self.message}>"


class InstallCompleteEvent:
    """Event triggered when the installation succeeded, possibly with warnings.
    """
    __slots__ = "version", "fetched", "warnings"
    def __init__(self, version: str, fetched: bool, warnings: List[str]) -> None:
        self.version = version
        self.fetched = fetched
        self.warnings = warnings
