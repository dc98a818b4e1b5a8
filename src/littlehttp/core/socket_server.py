"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

Binds the listening socket, accepts connections and hands each one to an
isolated worker. Think of it as the "ears" of the server: it never reads
a byte of HTTP itself.

=============================================================================
SOCKET LIFECYCLE (Server Side)
=============================================================================

    1. socket()    Create an IPv4 TCP socket
    2. bind()      Associate it with HOST:PORT
    3. listen()    Start queueing connections (up to backlog)
    4. accept()    Wait for a client, get a NEW socket for it
    5. close()     Release the listening socket at shutdown

                    ┌───────────────────────┐
                    │   Listening Socket    │ ◄── Created once at startup
                    └───────────┬───────────┘     Never sends/receives data
                                │ accept()
        ┌───────────────────────┼───────────────────────┐
        ▼                       ▼                       ▼
   ┌──────────┐           ┌──────────┐           ┌──────────┐
   │ worker 1 │           │ worker 2 │           │ worker 3 │
   │ client A │           │ client B │           │ client C │
   └──────────┘           └──────────┘           └──────────┘

=============================================================================
WORKER ISOLATION
=============================================================================

One failing connection must never take the accept loop down with it.

FORK (default on POSIX):

    parent                          child
    ──────                          ─────
    accept() ──► conn
    fork() ─────────────────────►   close listening socket
    conn.release()                  service(conn)
    accept() ... (immediately)      os._exit(0 / 1)

    The child has its own memory: nothing it does, including crashing,
    can corrupt the parent. The parent never wait()s: SIGCHLD is ignored
    and the kernel reaps children. If the handler could not be installed
    (accept loop not in the main thread), finished children are swept
    with a non-blocking waitpid() between accepts instead.

THREAD:

    accept() ──► conn ──► Thread(service, conn).start() ──► accept() ...

    The thread owns the socket and closes it. Any exception is logged and
    ends that thread only.

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR: restart immediately even while old connections sit in
TIME_WAIT, instead of failing with "Address already in use".

Accept timeout: accept() waits at most 1 second so the loop can notice
shutdown() from another thread.

=============================================================================
"""

import os
import socket
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig, WorkerModel
from .connection import Connection
from .process import detach_children


logger = logging.getLogger(__name__)

ACCEPT_POLL_INTERVAL = 1.0


class SpawnError(RuntimeError):
    """A worker for an accepted connection could not be created."""


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        def handle_connection(conn: Connection):
            with conn:
                ...

        server = SocketServer(config)
        server.bind()                         # may raise OSError
        server.serve_forever(handle_connection)  # blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        """
        Args:
            config: Server configuration (host, port, backlog, worker model).

        The socket is not created here; see bind().
        """
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._reap_children = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (IP, port), with the real port when config.port is 0."""
        if self._socket is not None:
            return self._socket.getsockname()[:2]
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.settimeout(ACCEPT_POLL_INTERVAL)
        return sock

    def bind(self) -> None:
        """
        Create, bind and listen.

        Raises:
            OSError: Address in use, permission denied, ...
        """
        sock = self._create_socket()
        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            logger.error(f"Failed to listen on {self.config.host}:{self.config.port}: {e}")
            raise

        self._socket = sock
        host, port = self.address
        logger.info(f"Listening on {host}:{port} ({self.config.worker_model.value} workers)")

    def serve_forever(self, connection_handler: Callable[[Connection], None]) -> None:
        """
        Accept connections until shutdown() is called.

        Args:
            connection_handler: Runs inside the worker with the accepted
                                connection. It is expected to close it.

        Raises:
            OSError: accept() failed for a reason other than shutdown.
            SpawnError: A worker could not be created.
        """
        if self._socket is None:
            self.bind()

        if self.config.worker_model is WorkerModel.FORK:
            self._prepare_fork()

        self._running = True
        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _prepare_fork(self) -> None:
        if threading.current_thread() is threading.main_thread():
            detach_children()
        else:
            logger.debug("Not in main thread, reaping children by polling")
            self._reap_children = True

    def _accept_loop(self, connection_handler: Callable[[Connection], None]) -> None:
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                # Normal: gives us a chance to see self._running change
                self._reap()
                continue
            except OSError as e:
                if not self._running:
                    break  # Listening socket closed by shutdown()
                logger.error(f"accept() failed: {e}")
                raise

            conn = Connection(
                socket=client_socket,
                address=client_address,
                timeout=self.config.timeout,
            )
            logger.debug(f"[{conn.id}] Accepted connection from {conn.client_ip}:{conn.client_port}")

            if self.config.worker_model is WorkerModel.FORK:
                self._fork_worker(connection_handler, conn)
            else:
                self._thread_worker(connection_handler, conn)

            self._reap()

    def _fork_worker(self, connection_handler: Callable[[Connection], None], conn: Connection) -> None:
        try:
            pid = os.fork()
        except OSError as e:
            conn.close()
            raise SpawnError(f"fork() failed: {e}") from e

        if pid == 0:
            # Child: whatever happens, never return into the accept loop
            status = 1
            try:
                self._socket.close()
                connection_handler(conn)
                status = 0
            except Exception:
                logger.exception(f"[{conn.id}] Worker failed")
                conn.close()
            finally:
                os._exit(status)

        logger.debug(f"[{conn.id}] Forked worker {pid}")
        conn.release()

    def _thread_worker(self, connection_handler: Callable[[Connection], None], conn: Connection) -> None:
        thread = threading.Thread(
            target=self._run_isolated,
            args=(connection_handler, conn),
            name=f"conn-{conn.id}",
            daemon=True,
        )
        try:
            thread.start()
        except RuntimeError as e:
            conn.close()
            raise SpawnError(f"cannot start worker thread: {e}") from e

    @staticmethod
    def _run_isolated(connection_handler: Callable[[Connection], None], conn: Connection) -> None:
        try:
            connection_handler(conn)
        except Exception:
            logger.exception(f"[{conn.id}] Worker failed")
        finally:
            conn.close()

    def _reap(self) -> None:
        """Collect exited children without blocking (fallback mode only)."""
        if not self._reap_children:
            return
        while True:
            try:
                pid, _ = os.waitpid(-1, os.WNOHANG)
            except ChildProcessError:
                return
            if pid == 0:
                return

    def shutdown(self) -> None:
        """
        Stop accepting. Safe to call from another thread, and more than once.

        Workers already running are not interrupted.
        """
        logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self) -> None:
        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None
        self._running = False
        logger.info("Socket server stopped")
