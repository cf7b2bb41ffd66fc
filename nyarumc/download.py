"""Definition of the single-file artifact fetcher.

The fetcher knows nothing about what it downloads, it only streams a remote resource
into a local path, creating parent directories if needed. Checking whether a download
is needed is the job of `util.file_valid`, callers are expected to call it first.
"""

from http.client import HTTPException
from pathlib import Path
import hashlib

from .http import http_open, HttpError

from typing import Optional


class DownloadEntry:
    """A download entry, the remote URL and local destination of an artifact, with its
    optional expected size and SHA-1.
    """

    __slots__ = "url", "size", "sha1", "dst", "name"

    def __init__(self,
        url: str,
        dst: Path, *,
        size: Optional[int] = None,
        sha1: Optional[str] = None,
        name: Optional[str] = None
    ) -> None:
        self.url = url
        self.dst = dst
        self.size = size
        self.sha1 = sha1
        self.name = url if name is None else name

    def __repr__(self) -> str:
        return f"<DownloadEntry {self.name}>"

    def __hash__(self) -> int:
        return hash((self.url, self.dst, self.size, self.sha1))

    def __eq__(self, other):
        return isinstance(other, DownloadEntry) and \
            (self.url, self.dst, self.size, self.sha1) == \
            (other.url, other.dst, other.size, other.sha1)


class DownloadError(Exception):
    """Raised when an entry could not be downloaded, the error code is indicated and the
    optional original error is given (for connection errors).
    """

    CONNECTION = "connection"
    NOT_FOUND = "not_found"
    INVALID_SHA1 = "invalid_sha1"

    def __init__(self, entry: DownloadEntry, code: str, origin: Optional[Exception] = None) -> None:
        self.entry = entry
        self.code = code
        self.origin = origin

    def __str__(self) -> str:
        if self.origin is None:
            return f"{self.entry.name}: {self.code}"
        return f"{self.entry.name}: {self.code} ({self.origin})"


def download_file(entry: DownloadEntry, *, buffer_len: int = 65536) -> int:
    """Download the given entry to its destination, overwriting any existing file. If
    the entry has a SHA-1, the downloaded content is checked against it and the file is
    removed on mismatch.

    :return: The number of bytes written.
    :raises DownloadError: If the request failed or the content is invalid.
    :raises OSError: If the destination could not be written.
    """

    try:
        res = http_open(entry.url)
    except HttpError as error:
        code = DownloadError.CONNECTION if error.res.status == 0 else DownloadError.NOT_FOUND
        raise DownloadError(entry, code, error)

    sha1 = None if entry.sha1 is None else hashlib.sha1()
    size = 0

    buffer = memoryview(bytearray(buffer_len))

    entry.dst.parent.mkdir(parents=True, exist_ok=True)

    with res:
        try:
            with entry.dst.open("wb") as dst_fp:
                while True:
                    read_len = res.readinto(buffer)
                    if not read_len:
                        break
                    size += read_len
                    buffer_view = buffer[:read_len]
                    if sha1 is not None:
                        sha1.update(buffer_view)
                    dst_fp.write(buffer_view)
        except (ConnectionError, TimeoutError, HTTPException) as error:
            entry.dst.unlink()
            raise DownloadError(entry, DownloadError.CONNECTION, error)

    if sha1 is not None and sha1.hexdigest() != entry.sha1.lower():
        entry.dst.unlink()
        raise DownloadError(entry, DownloadError.INVALID_SHA1)

    return size
