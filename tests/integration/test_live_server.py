"""
Integration tests: a real server on a real socket.

The in-process server uses one thread per connection (signals and fork()
do not mix with pytest's threads). The fork model is exercised through
the command line in a subprocess.
"""

import os
import signal
import socket
import subprocess
import sys
import threading
import time
from pathlib import Path

import pytest


SRC = Path(__file__).parent.parent.parent / "src"


def read_all(sock: socket.socket) -> bytes:
    chunks = []
    while True:
        data = sock.recv(4096)
        if not data:
            break
        chunks.append(data)
    return b"".join(chunks)


def fetch_together(connect, paths):
    """
    Fetch several paths over simultaneous connections.

    Every request is left incomplete until all connections are open, so
    all the workers are busy at the same time.
    """
    socks = [connect() for _ in paths]
    try:
        for s, path in zip(socks, paths):
            s.sendall(f"GET {path} HTTP/1.0\r\n".encode())
        for s in socks:
            s.sendall(b"\r\n")
        return [read_all(s) for s in socks]
    finally:
        for s in socks:
            s.close()


def flood(sock: socket.socket, stop: threading.Event) -> threading.Thread:
    """Keep writing to sock until stopped or the server hangs up."""
    def target():
        try:
            while not stop.is_set():
                sock.sendall(b"x" * 65536)
        except OSError:
            pass  # reset by the server

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    return thread


def assert_exact_file(response: bytes, expected: bytes) -> None:
    head, _, body = response.partition(b"\r\n\r\n")
    lines = head.split(b"\r\n")
    lengths = [line for line in lines if line.lower().startswith(b"content-length:")]
    assert lines[0] == b"HTTP/1.0 200 OK"
    assert lengths == [b"Content-Length: %d" % len(expected)]
    assert body == expected


class TestLiveServer:

    def test_get(self, live_server, docroot, parse_response):
        data = live_server.exchange(b"GET /index.html HTTP/1.0\r\n\r\n")

        status_line, headers, body = parse_response(data)
        assert status_line == "HTTP/1.0 200 OK"
        assert headers["Content-Type"] == "text/html"
        assert headers["Connection"] == "close"
        assert body == (docroot / "index.html").read_bytes()

    def test_large_file(self, live_server, docroot, parse_response):
        data = live_server.exchange(b"GET /big.bin HTTP/1.1\r\nHost: localhost\r\n\r\n")

        _, headers, body = parse_response(data)
        expected = (docroot / "big.bin").read_bytes()
        assert int(headers["Content-Length"]) == len(body) == len(expected)
        assert body == expected

    def test_head(self, live_server, parse_response):
        data = live_server.exchange(b"HEAD /hello.txt HTTP/1.0\r\n\r\n")

        status_line, headers, body = parse_response(data)
        assert status_line == "HTTP/1.0 200 OK"
        assert headers["Content-Length"] == "14"
        assert body == b""

    def test_not_found(self, live_server):
        data = live_server.exchange(b"GET /nope HTTP/1.0\r\n\r\n")
        assert data.startswith(b"HTTP/1.0 404 Not Found\r\n")

    def test_traversal(self, live_server):
        data = live_server.exchange(b"GET /../secret.txt HTTP/1.0\r\n\r\n")

        assert data.startswith(b"HTTP/1.0 404 Not Found\r\n")
        assert b"top secret" not in data

    def test_post_with_body(self, live_server, sample_post_request):
        data = live_server.exchange(sample_post_request)
        assert data.startswith(b"HTTP/1.0 405 Method Not Allowed\r\n")

    def test_malformed_request_gets_no_response(self, live_server):
        with live_server.connect() as s:
            s.sendall(b"NONSENSE\r\n\r\n")
            assert read_all(s) == b""

    def test_client_hangs_up_early(self, live_server):
        with live_server.connect() as s:
            s.sendall(b"GET /hello.txt HTTP/1.0\r\n")
            s.shutdown(socket.SHUT_WR)
            assert read_all(s) == b""

    def test_keeps_serving_after_errors(self, live_server):
        live_server.exchange(b"BROKEN\r\n\r\n")
        live_server.exchange(b"GET / HTTP/9.9\r\n\r\n")

        data = live_server.exchange(b"GET /hello.txt HTTP/1.0\r\n\r\n")
        assert data.startswith(b"HTTP/1.0 200 OK\r\n")

    def test_slow_client_does_not_block_others(self, live_server, parse_response):
        """A half-sent request occupies its own worker only."""
        slow = live_server.connect()
        try:
            slow.sendall(b"GET /hello.txt HTTP/1.0\r\nHost: x\r\n")

            fast = live_server.exchange(b"GET /index.html HTTP/1.0\r\n\r\n")
            assert fast.startswith(b"HTTP/1.0 200 OK\r\n")

            slow.sendall(b"\r\n")
            _, _, body = parse_response(read_all(slow))
            assert body == b"Hello, world!\n"
        finally:
            slow.close()

    def test_simultaneous_downloads(self, live_server, docroot):
        big, index = fetch_together(live_server.connect, ["/big.bin", "/index.html"])

        assert_exact_file(big, (docroot / "big.bin").read_bytes())
        assert_exact_file(index, (docroot / "index.html").read_bytes())

    def test_oversized_body_is_not_read(self, live_server):
        """A flooding client is cut off instead of holding its worker."""
        with live_server.connect() as s:
            s.sendall(b"POST / HTTP/1.0\r\nContent-Length: 999999999\r\n\r\n")
            stop = threading.Event()
            sender = flood(s, stop)

            started = time.monotonic()
            try:
                data = read_all(s)
            except ConnectionResetError:
                data = b""
            elapsed = time.monotonic() - started

            stop.set()
            sender.join(timeout=5.0)

        assert data == b""
        assert elapsed < 3.0

        # The server is still there
        assert live_server.exchange(b"GET /hello.txt HTTP/1.0\r\n\r\n").startswith(b"HTTP/1.0 200 OK")

    def test_one_request_per_connection(self, live_server):
        """A second pipelined request on the same connection is ignored."""
        data = live_server.exchange(
            b"GET /hello.txt HTTP/1.1\r\nHost: x\r\n\r\n"
            b"GET /index.html HTTP/1.1\r\nHost: x\r\n\r\n"
        )

        assert data.count(b"HTTP/1.0 200 OK") == 1
        assert b"It works" not in data


def wait_for_port(port: int, proc: subprocess.Popen, timeout: float = 10.0) -> None:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if proc.poll() is not None:
            raise RuntimeError(f"server exited with {proc.returncode}")
        try:
            with socket.create_connection(("127.0.0.1", port), timeout=0.5):
                return
        except OSError:
            time.sleep(0.1)
    raise RuntimeError("Server failed to start")


@pytest.mark.skipif(not hasattr(os, "fork"), reason="fork worker model needs os.fork")
class TestCommandLine:

    @pytest.fixture
    def cli_server(self, docroot, free_port):
        env = dict(os.environ, PYTHONPATH=str(SRC))
        proc = subprocess.Popen(
            [
                sys.executable, "-m", "littlehttp",
                "--debug", "--workers=fork", f"--port={free_port}", str(docroot),
            ],
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        try:
            wait_for_port(free_port, proc)
            yield proc, free_port
        finally:
            if proc.poll() is None:
                proc.kill()
                proc.communicate(timeout=10)

    def exchange(self, port: int, raw: bytes) -> bytes:
        with socket.create_connection(("127.0.0.1", port), timeout=5.0) as s:
            s.sendall(raw)
            return read_all(s)

    def test_serves_with_forked_workers(self, cli_server, docroot):
        proc, port = cli_server

        for _ in range(3):
            data = self.exchange(port, b"GET /hello.txt HTTP/1.0\r\n\r\n")
            assert data.startswith(b"HTTP/1.0 200 OK\r\n")
            assert data.endswith(b"Hello, world!\n")

        assert proc.poll() is None

    def test_simultaneous_downloads(self, cli_server, docroot):
        proc, port = cli_server

        def connect():
            return socket.create_connection(("127.0.0.1", port), timeout=5.0)

        big, index = fetch_together(connect, ["/big.bin", "/index.html"])

        assert_exact_file(big, (docroot / "big.bin").read_bytes())
        assert_exact_file(index, (docroot / "index.html").read_bytes())
        assert proc.poll() is None

    def test_bad_request_does_not_kill_server(self, cli_server):
        proc, port = cli_server

        assert self.exchange(port, b"???\r\n\r\n") == b""
        assert self.exchange(port, b"GET /index.html HTTP/1.0\r\n\r\n").startswith(b"HTTP/1.0 200")
        assert proc.poll() is None

    def test_sigterm_exits_one(self, cli_server):
        proc, port = cli_server

        proc.send_signal(signal.SIGTERM)
        _, stderr = proc.communicate(timeout=10)

        assert proc.returncode == 1
        assert b"exit by signal" in stderr

    def test_port_in_use_exits_one(self, cli_server, docroot):
        _, port = cli_server
        env = dict(os.environ, PYTHONPATH=str(SRC))

        result = subprocess.run(
            [sys.executable, "-m", "littlehttp", "--debug", f"--port={port}", str(docroot)],
            env=env,
            capture_output=True,
            timeout=10,
        )

        assert result.returncode == 1
