from http.server import ThreadingHTTPServer, BaseHTTPRequestHandler
from collections import Counter
from threading import Thread
import hashlib
import json

import pytest


def pytest_addoption(parser):
    parser.addoption("--runslow", action="store_true", default=False, help="run slow tests")

def pytest_configure(config):
    config.addinivalue_line("markers", "slow: mark test as slow to run")

def pytest_collection_modifyitems(config, items):

    if config.getoption("--runslow"):
        return

    skip_slow = pytest.mark.skip(reason="need --runslow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


class LocalServer:
    """A local HTTP server serving static routes, counting the requests made to each
    path (without query string).
    """

    def __init__(self) -> None:

        self.routes = {}
        self.hits = Counter()
        self.queries = []

        server = self

        class RequestHandler(BaseHTTPRequestHandler):

            def log_message(self, _format, *args):
                return

            def do_GET(self):
                path, _, query = self.path.partition("?")
                server.hits[path] += 1
                server.queries.append((path, query))
                body = server.routes.get(path)
                if body is None:
                    self.send_response(404)
                    self.send_header("Content-Length", "0")
                    self.end_headers()
                    return
                self.send_response(200)
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

        self.httpd = ThreadingHTTPServer(("127.0.0.1", 0), RequestHandler)
        self.url = f"http://127.0.0.1:{self.httpd.server_address[1]}/"
        self.thread = Thread(target=self.httpd.serve_forever, daemon=True)
        self.thread.start()

    def add(self, path: str, body) -> str:
        """Serve the given body (bytes or JSON value) at the given path, return its URL.
        """
        if not isinstance(body, bytes):
            body = json.dumps(body).encode()
        self.routes[f"/{path}"] = body
        return f"{self.url}{path}"

    def total_hits(self) -> int:
        return sum(self.hits.values())

    def close(self) -> None:
        self.httpd.shutdown()
        self.httpd.server_close()


@pytest.fixture
def local_server():
    server = LocalServer()
    yield server
    server.close()


def sha1_of(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


class GameRepository:
    """A synthetic game repository served by a local server: version manifest, version
    metadata, client, libraries, assets index and assets objects.
    """

    VERSION = "1.21.11"

    def __init__(self, server: LocalServer) -> None:

        self.server = server

        self.client = b"client jar content"
        self.lib_common = b"common library"
        self.lib_linux = b"linux natives"
        self.lib_osx = b"osx natives"
        self.objects = [f"asset object {i}".encode() for i in range(120)]

        client_url = server.add("client.jar", self.client)
        common_url = server.add("maven/org/common/common/1.0/common-1.0.jar", self.lib_common)
        linux_url = server.add("maven/org/natives/natives-linux/1.0/natives-linux-1.0.jar", self.lib_linux)
        osx_url = server.add("maven/org/natives/natives-osx/1.0/natives-osx-1.0.jar", self.lib_osx)

        for obj in self.objects:
            obj_hash = sha1_of(obj)
            server.add(f"resources/{obj_hash[:2]}/{obj_hash}", obj)

        self.asset_index = json.dumps({"objects": {
            f"minecraft/file{i}": {"hash": sha1_of(obj), "size": len(obj)}
            for i, obj in enumerate(self.objects)
        }}).encode()
        asset_index_url = server.add("indexes/27.json", self.asset_index)

        self.metadata = {
            "id": self.VERSION,
            "mainClass": "net.minecraft.client.main.Main",
            "downloads": {
                "client": {"url": client_url, "sha1": sha1_of(self.client), "size": len(self.client)},
            },
            "assetIndex": {
                "id": "27",
                "url": asset_index_url,
                "sha1": sha1_of(self.asset_index),
                "size": len(self.asset_index),
                "totalSize": sum(map(len, self.objects)),
            },
            "libraries": [
                {
                    "name": "org.common:common:1.0",
                    "downloads": {"artifact": {
                        "path": "org/common/common/1.0/common-1.0.jar",
                        "url": common_url, "sha1": sha1_of(self.lib_common), "size": len(self.lib_common),
                    }},
                },
                {
                    "name": "org.natives:natives-linux:1.0",
                    "downloads": {"artifact": {
                        "path": "org/natives/natives-linux/1.0/natives-linux-1.0.jar",
                        "url": linux_url, "sha1": sha1_of(self.lib_linux), "size": len(self.lib_linux),
                    }},
                    "rules": [{"action": "allow", "os": {"name": "linux"}}],
                },
                {
                    "name": "org.natives:natives-osx:1.0",
                    "downloads": {"artifact": {
                        "path": "org/natives/natives-osx/1.0/natives-osx-1.0.jar",
                        "url": osx_url, "sha1": sha1_of(self.lib_osx), "size": len(self.lib_osx),
                    }},
                    "rules": [{"action": "allow", "os": {"name": "osx"}}],
                },
                {
                    "name": "org.legacy:natives-only:1.0",
                },
            ],
        }
        self.raw_metadata = json.dumps(self.metadata).encode()
        metadata_url = server.add("v1/packages/1.21.11.json", self.raw_metadata)

        server.add("mc/game/version_manifest_v2.json", {
            "latest": {"release": self.VERSION},
            "versions": [
                {"id": "1.21.10", "url": f"{server.url}v1/packages/1.21.10.json"},
                {"id": self.VERSION, "url": metadata_url, "sha1": sha1_of(self.raw_metadata)},
            ],
        })

    @property
    def manifest_url(self) -> str:
        return f"{self.server.url}mc/game/version_manifest_v2.json"

    @property
    def resources_url(self) -> str:
        return f"{self.server.url}resources/"


@pytest.fixture
def game_repository(local_server):
    return GameRepository(local_server)
