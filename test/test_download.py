import hashlib

import pytest

from nyarumc.download import DownloadEntry, DownloadError, download_file


def test_download(local_server, tmp_path):

    content = b"some artifact content" * 10000
    sha1 = hashlib.sha1(content).hexdigest()
    url = local_server.add("artifact.jar", content)

    dst = tmp_path / "deep" / "dir" / "artifact.jar"
    assert download_file(DownloadEntry(url, dst, sha1=sha1), buffer_len=1000) == len(content)
    assert dst.read_bytes() == content

    # Without SHA-1, overwriting the previous file.
    assert download_file(DownloadEntry(url, dst)) == len(content)
    assert dst.read_bytes() == content


def test_download_invalid_sha1(local_server, tmp_path):

    url = local_server.add("artifact.jar", b"corrupted content")
    dst = tmp_path / "artifact.jar"

    with pytest.raises(DownloadError) as error:
        download_file(DownloadEntry(url, dst, sha1="430ce34d020724ed75a196dfc2ad67c77772d169", name="artifact"))

    assert error.value.code == DownloadError.INVALID_SHA1
    assert str(error.value) == "artifact: invalid_sha1"
    assert not dst.exists()


def test_download_not_found(local_server, tmp_path):

    with pytest.raises(DownloadError) as error:
        download_file(DownloadEntry(f"{local_server.url}missing.jar", tmp_path / "missing.jar"))

    assert error.value.code == DownloadError.NOT_FOUND
    assert not (tmp_path / "missing.jar").exists()


def test_download_connection_error(tmp_path):

    import socket

    # Find a port where nothing listens.
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    with pytest.raises(DownloadError) as error:
        download_file(DownloadEntry(f"http://127.0.0.1:{port}/file.jar", tmp_path / "file.jar"))

    assert error.value.code == DownloadError.CONNECTION
    assert error.value.origin is not None


@pytest.mark.slow
def test_download_resources(tmp_path):

    from nyarumc.standard import RESOURCES_URL

    sha1 = "bdf48ef6b5d0d23bbb02e17d04865216179f510a"
    dst = tmp_path / "icon_16x16.png"
    assert download_file(DownloadEntry(f"{RESOURCES_URL}bd/{sha1}", dst, sha1=sha1)) == 3665
