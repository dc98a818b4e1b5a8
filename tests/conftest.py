"""
pytest configuration and fixtures.
"""

import logging
import socket
import threading
from typing import Dict, Generator, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from littlehttp import HTTPServer, ServerConfig, WorkerModel


HELLO = b"Hello, world!\n"
INDEX = b"<html><body><h1>It works</h1></body></html>\n"
# Not a multiple of any block size used in the tests
BIG = bytes(range(256)) * 41 + b"tail"


@pytest.fixture(autouse=True)
def reset_package_logger() -> Generator[None, None, None]:
    """Undo setup_logging() so caplog sees records in the next test."""
    package_logger = logging.getLogger("littlehttp")
    saved = (list(package_logger.handlers), package_logger.level, package_logger.propagate)
    yield
    for handler in list(package_logger.handlers):
        if handler not in saved[0]:
            package_logger.removeHandler(handler)
    package_logger.setLevel(saved[1])
    package_logger.propagate = saved[2]


@pytest.fixture
def docroot(tmp_path: Path) -> Path:
    """
    A small document root:

        www/
        ├── index.html
        ├── hello.txt
        ├── big.bin
        └── sub/
            └── data.json

    plus tmp_path/secret.txt, which lies OUTSIDE the document root.
    """
    root = tmp_path / "www"
    root.mkdir()
    (root / "index.html").write_bytes(INDEX)
    (root / "hello.txt").write_bytes(HELLO)
    (root / "big.bin").write_bytes(BIG)
    (root / "sub").mkdir()
    (root / "sub" / "data.json").write_bytes(b'{"answer": 42}')
    (tmp_path / "secret.txt").write_bytes(b"top secret\n")
    return root


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /hello.txt HTTP/1.0\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: */*\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body."""
    body = b'{"name": "John"}'
    head = (
        b"POST /form HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        b"Content-Length: %d\r\n"
        b"\r\n"
    ) % len(body)
    return head + body


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


def split_response(data: bytes) -> Tuple[str, Dict[str, str], bytes]:
    """Split raw response bytes into (status line, headers, body)."""
    head, _, body = data.partition(b"\r\n\r\n")
    lines = head.decode("iso-8859-1").split("\r\n")
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(": ")
        headers[name] = value
    return lines[0], headers, body


@pytest.fixture
def parse_response():
    return split_response


class LiveServer:
    """Test server helper that runs in a background thread."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        """Bind (so the port is known), then accept in a background thread."""
        self.server.bind()
        self._thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self._thread.start()

    def stop(self):
        """Stop the server."""
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def connect(self, timeout: float = 5.0) -> socket.socket:
        return socket.create_connection(("127.0.0.1", self.port), timeout=timeout)

    def exchange(self, raw: bytes) -> bytes:
        """Send raw request bytes, read until the server closes."""
        with self.connect() as s:
            s.sendall(raw)
            return read_all(s)


def read_all(sock: socket.socket) -> bytes:
    chunks = []
    while True:
        data = sock.recv(4096)
        if not data:
            break
        chunks.append(data)
    return b"".join(chunks)


@pytest.fixture
def live_server(docroot: Path) -> Generator[LiveServer, None, None]:
    """A real server on an OS-assigned port, one thread per connection."""
    server = HTTPServer(ServerConfig(
        document_root=str(docroot),
        host="127.0.0.1",
        port=0,
        debug=True,
        timeout=5.0,
        worker_model=WorkerModel.THREAD,
    ))

    live = LiveServer(server)
    live.start()

    yield live

    live.stop()
