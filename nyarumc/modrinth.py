"""Definition of the mod resolver against the Modrinth REST API, and the persisted
launcher state used to detect that a pinned mod has a newer build.
"""

from urllib.parse import urlencode
from pathlib import Path
import json

from .standard import Context, TARGET_VERSION
from .download import DownloadEntry, download_file
from .util import file_valid
from .http import http_request

from typing import Optional, Any, Dict, List


class ModSpec:
    """A mod to install: its project identifier in the repository, the loader and game
    version it must be compatible with, and the file name prefix that identifies any
    of its builds in the mods directory.
    """
    __slots__ = "project_id", "prefix", "loader", "game_version"
    def __init__(self, project_id: str, prefix: str, *,
        loader: str = "fabric",
        game_version: str = TARGET_VERSION
    ) -> None:
        self.project_id = project_id
        self.prefix = prefix
        self.loader = loader
        self.game_version = game_version

    def __repr__(self) -> str:
        return f"<ModSpec {self.project_id} {self.prefix}*>"


class ModFile:
    """A resolved downloadable build of a mod.
    """
    __slots__ = "url", "filename", "sha1", "size", "published"
    def __init__(self, url: str, filename: str, sha1: Optional[str], size: Optional[int], published: str) -> None:
        self.url = url
        self.filename = filename
        self.sha1 = sha1
        self.size = size
        self.published = published

    def __repr__(self) -> str:
        return f"<ModFile {self.filename}>"


# The mods installed by default, only the Fabric API is needed by the loader.
DEFAULT_MODS = [
    ModSpec("P7dR8mSH", "fabric-api"),
]


class ModrinthApi:
    """Client of the Modrinth v2 REST API.
    """

    def __init__(self, api_url: str = "https://api.modrinth.com/v2/") -> None:
        self.api_url = api_url

    def request_versions(self, project_id: str, loader: str, game_version: str) -> List[Any]:
        """Return the list of versions of a project compatible with the given loader and
        game version, latest first.
        """
        query = urlencode({
            "loaders": json.dumps([loader]),
            "game_versions": json.dumps([game_version]),
        })
        url = f"{self.api_url}project/{project_id}/version?{query}"
        versions = http_request("GET", url, accept="application/json").json()
        if not isinstance(versions, list):
            raise ValueError("mod versions: / must be a list")
        return versions

    def resolve_download(self, spec: ModSpec) -> ModFile:
        """Resolve the build to download for the given mod, that is the first compatible
        version and within it the file flagged as primary, or the first file if none is.

        :raises ModNotFoundError: If there is no compatible version.
        :raises ValueError: If the version record is invalid.
        """

        versions = self.request_versions(spec.project_id, spec.loader, spec.game_version)
        if not len(versions):
            raise ModNotFoundError(spec.project_id)

        version = versions[0]
        if not isinstance(version, dict):
            raise ValueError("mod versions: /0 must be an object")

        files = version.get("files")
        if not isinstance(files, list) or not len(files):
            raise ModNotFoundError(spec.project_id)

        file = next((f for f in files if isinstance(f, dict) and f.get("primary")), files[0])
        if not isinstance(file, dict):
            raise ValueError("mod versions: /0/files/0 must be an object")

        url = file.get("url")
        if not isinstance(url, str):
            raise ValueError("mod versions: /0/files/url must be a string")

        filename = file.get("filename")
        if not isinstance(filename, str) or not len(filename) or "/" in filename or "\\" in filename:
            raise ValueError("mod versions: /0/files/filename must be a plain file name")

        hashes = file.get("hashes")
        sha1 = hashes.get("sha1") if isinstance(hashes, dict) else None
        size = file.get("size")

        return ModFile(url, filename,
            sha1 if isinstance(sha1, str) else None,
            size if isinstance(size, int) else None,
            str(version.get("date_published", "")))

    def request_published(self, spec: ModSpec) -> str:
        """Return the publication timestamp of the latest compatible build of a mod.
        """
        return self.resolve_download(spec).published


def install_mod(context: Context, mod_file: ModFile, prefix: str) -> Path:
    """Install a resolved mod build into the mods directory. Every other file starting
    with the mod's prefix is removed first so that stale builds never coexist with the
    new one. The new file is only downloaded if not already valid.

    :return: The path of the installed file.
    """

    dst = context.mods_dir / mod_file.filename
    dst_valid = file_valid(dst, mod_file.sha1) if mod_file.sha1 is not None else dst.is_file()

    if context.mods_dir.is_dir():
        for stale in context.mods_dir.glob(f"{prefix}*.jar"):
            if stale.name != mod_file.filename or not dst_valid:
                stale.unlink()

    if not dst_valid:
        download_file(DownloadEntry(mod_file.url, dst, size=mod_file.size, sha1=mod_file.sha1, name=mod_file.filename))

    return dst


def find_mod_file(context: Context, prefix: str) -> Optional[Path]:
    """Return the first installed file of a mod given its prefix, none if absent.
    """
    if not context.mods_dir.is_dir():
        return None
    return next(iter(sorted(context.mods_dir.glob(f"{prefix}*.jar"))), None)


class LauncherState:
    """The launcher's persisted state, currently only the last known build timestamp
    of each installed mod, keyed by its project identifier.
    """

    def __init__(self, file: Path) -> None:
        self.file = file
        self.mod_timestamps: Dict[str, str] = {}

    def load(self) -> None:

        self.mod_timestamps.clear()

        try:
            with self.file.open("rt") as fp:
                data = json.load(fp)
                mods = data.get("mods", {})
                for project_id, timestamp in mods.items():
                    if isinstance(timestamp, str):
                        self.mod_timestamps[project_id] = timestamp
        except (OSError, AttributeError, json.JSONDecodeError):
            pass

    def save(self) -> None:

        self.file.parent.mkdir(parents=True, exist_ok=True)

        with self.file.open("wt") as fp:
            json.dump({"mods": self.mod_timestamps}, fp, indent=2)

    def get_mod_timestamp(self, project_id: str) -> Optional[str]:
        return self.mod_timestamps.get(project_id)

    def set_mod_timestamp(self, project_id: str, timestamp: str) -> None:
        self.mod_timestamps[project_id] = timestamp


def needs_mod_update(file_present: bool, stored: Optional[str], remote: str) -> bool:
    """The update rule of a pinned mod. A missing file always needs an update, even if
    a timestamp is stored. Without a stored timestamp no update is signaled (the caller
    records the remote one as baseline), otherwise an update is needed on mismatch.
    """
    if not file_present:
        return True
    if stored is None or not len(stored):
        return False
    return stored != remote


def check_mod_update(context: Context, state: LauncherState, spec: ModSpec, *,
    api: Optional[ModrinthApi] = None
) -> bool:
    """Check if a newer build of the given mod is available. When no timestamp was
    stored yet and the file is present, the remote timestamp is recorded and saved as
    the baseline.
    """

    api = api or ModrinthApi()
    remote = api.request_published(spec)
    file_present = find_mod_file(context, spec.prefix) is not None
    stored = state.get_mod_timestamp(spec.project_id)

    if file_present and not stored:
        state.set_mod_timestamp(spec.project_id, remote)
        state.save()

    return needs_mod_update(file_present, stored, remote)


class ModNotFoundError(Exception):
    """Raised when the repository has no build of a mod compatible with the loader and
    game version.
    """
    def __init__(self, project_id: str) -> None:
        self.project_id = project_id

    def __str__(self) -> str:
        return repr(self.project_id)
