from http.server import ThreadingHTTPServer, BaseHTTPRequestHandler
from threading import Thread
import urllib.parse
import hashlib
import pytest

from typing import Dict, List


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


@pytest.fixture
def tmp_context(tmp_path):
    """This fixture is used to create a game's install context for a single test.
    """

    from launchcraft.context import Context
    return Context(tmp_path / "main", tmp_path / "work")


@pytest.fixture
def platform_linux(monkeypatch):
    """Force the running platform to be a 64 bits linux.
    """

    import launchcraft.rule
    monkeypatch.setattr(launchcraft.rule, "minecraft_os", "linux")
    monkeypatch.setattr(launchcraft.rule, "minecraft_arch", "x86_64")
    monkeypatch.setattr(launchcraft.rule, "minecraft_arch_bits", 64)


class FileServer:
    """A local HTTP server serving in-memory files, requested paths are recorded.
    """

    def __init__(self) -> None:
        self.files: Dict[str, bytes] = {}
        self.redirects: Dict[str, str] = {}
        self.requests: List[str] = []
        self.server = ThreadingHTTPServer(("127.0.0.1", 0), _FileRequestHandler)
        self.server.daemon_threads = True
        self.server.file_server = self
        self.thread = Thread(target=self.server.serve_forever, daemon=True)

    def url(self, path: str) -> str:
        host, port = self.server.server_address[:2]
        return f"http://{host}:{port}{path}"

    def add(self, path: str, data: bytes) -> str:
        """Serve the given data at the given path, the URL of the file is returned.
        """
        self.files[path] = data
        return self.url(path)

    def add_entry(self, path: str, data: bytes) -> dict:
        """Serve the given data and return a metadata download entry for it.
        """
        return {
            "url": self.add(path, data),
            "sha1": hashlib.sha1(data).hexdigest(),
            "size": len(data),
        }

    def count(self, path: str) -> int:
        return self.requests.count(path)


class _FileRequestHandler(BaseHTTPRequestHandler):

    def do_GET(self):

        file_server: FileServer = self.server.file_server
        path = urllib.parse.urlsplit(self.path).path
        file_server.requests.append(path)

        redirect = file_server.redirects.get(path)
        if redirect is not None:
            self.send_response(302)
            self.send_header("Location", redirect)
            self.send_header("Content-Length", "0")
            self.end_headers()
            return

        data = file_server.files.get(path)
        if data is None:
            self.send_response(404)
            self.send_header("Content-Length", "0")
            self.end_headers()
            return

        self.send_response(200)
        self.send_header("Content-Type", "application/octet-stream")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def log_message(self, format, *args):
        return


@pytest.fixture
def http_server(monkeypatch):
    """A local HTTP server, started for the test and shut down after it.
    """

    # Requests to the local server must not go through a proxy.
    for proxy_var in ("http_proxy", "HTTP_PROXY", "https_proxy", "HTTPS_PROXY", "all_proxy", "ALL_PROXY"):
        monkeypatch.delenv(proxy_var, raising=False)

    file_server = FileServer()
    file_server.thread.start()
    yield file_server
    file_server.server.shutdown()
    file_server.server.server_close()
