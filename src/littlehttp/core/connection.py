"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket for the lifetime of its single request.

=============================================================================
CONNECTION LIFECYCLE
=============================================================================

Each connection carries exactly one request and one response:

    ┌─────────┐   read    ┌─────────┐  dispatch  ┌─────────┐   close   ┌────────┐
    │   NEW   │ ────────► │ READING │ ─────────► │ WRITING │ ────────► │ CLOSED │
    └─────────┘           └─────────┘            └─────────┘           └────────┘
                               │                                            ▲
                               │  parse error: no response at all           │
                               └────────────────────────────────────────────┘

There is no KEEP_ALIVE state: the response always says "Connection: close"
and the server means it.

=============================================================================
SOCKETS AS FILES
=============================================================================

socket.makefile() gives buffered binary file objects on top of the socket:

    rfile = sock.makefile("rb")    rfile.readline(limit), rfile.read(n)
    wfile = sock.makefile("wb")    wfile.write(data), wfile.flush()

The parser reads lines and the handler writes blocks without caring that
a socket is underneath. The same code runs on sys.stdin.buffer /
sys.stdout.buffer in stdio mode and on io.BytesIO in tests.

=============================================================================
TWO WAYS TO LET GO
=============================================================================

    close()    The worker is done: flush, shutdown(SHUT_WR), drain, close.
               The client sees a clean end of stream.

    release()  The accept loop forked a child that now owns the socket.
               The parent only drops ITS file descriptor. Calling
               shutdown() here would cut the child's connection too.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import BinaryIO, Optional
import uuid


logger = logging.getLogger(__name__)

# Upper bounds for reading leftover client input in close()
DRAIN_LIMIT = 64 * 1024
DRAIN_TIMEOUT = 1.0


class ConnectionState(Enum):
    """Connection lifecycle states, for logging and cleanup."""
    NEW = "new"              # Just accepted
    READING = "reading"      # Parsing the request
    WRITING = "writing"      # Sending the response
    CLOSED = "closed"        # Socket released


@dataclass
class Connection:
    """
    Represents a client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short connection identifier for log lines.
        state: Current connection state.
        created_at: Timestamp when the connection was accepted.
        timeout: Socket timeout in seconds, None to block indefinitely.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    timeout: Optional[float] = None

    _rfile: Optional[BinaryIO] = field(default=None, repr=False)
    _wfile: Optional[BinaryIO] = field(default=None, repr=False)

    def __post_init__(self):
        # Accepted sockets may inherit the listening socket's poll timeout
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def age(self) -> float:
        """Connection age in seconds."""
        return time.time() - self.created_at

    @property
    def rfile(self) -> BinaryIO:
        """Buffered binary reader on the socket."""
        if self._rfile is None:
            self._rfile = self.socket.makefile("rb")
        return self._rfile

    @property
    def wfile(self) -> BinaryIO:
        """Buffered binary writer on the socket."""
        if self._wfile is None:
            self._wfile = self.socket.makefile("wb")
        return self._wfile

    def close(self):
        """
        Close the connection gracefully.

        1. flush(): push out whatever the handler left in the write buffer
        2. shutdown(SHUT_WR): send FIN, the client sees end of response
        3. drain: read what the client may still send, so the kernel
           does not answer it with a RST that could destroy unread
           response bytes on the client side. At most DRAIN_LIMIT bytes
           within DRAIN_TIMEOUT seconds, so a client that keeps sending
           cannot hold the worker
        4. close(): release the file descriptor
        """
        if self.state == ConnectionState.CLOSED:
            return

        for stream in (self._wfile, self._rfile):
            if stream is None:
                continue
            try:
                stream.close()  # flushes the writer first
            except OSError:
                pass  # Client already gone

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected

        self._drain()

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age * 1000:.1f}ms")

    def _drain(self) -> int:
        """Discard pending client input, bounded in bytes and time."""
        drained = 0
        deadline = time.monotonic() + DRAIN_TIMEOUT
        try:
            while drained < DRAIN_LIMIT:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self.socket.settimeout(remaining)
                chunk = self.socket.recv(min(4096, DRAIN_LIMIT - drained))
                if not chunk:
                    break
                drained += len(chunk)
        except OSError:
            pass  # socket.timeout is an OSError too

        if drained >= DRAIN_LIMIT:
            logger.debug(f"[{self.id}] Stopped draining after {drained} bytes")
        return drained

    def release(self):
        """Drop this process's handle without touching the connection itself."""
        self.socket.close()
        self.state = ConnectionState.CLOSED

    def __enter__(self):
        """
        Allows using Connection with 'with' for automatic cleanup:

            with conn:
                request = parser.parse(conn.rfile)
                handler.respond_to(request, conn.wfile)
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False  # Don't suppress exceptions
