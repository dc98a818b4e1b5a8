"""
=============================================================================
MAIN HTTP SERVER
=============================================================================

The orchestrator that ties the components together into a running server.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │                        ┌─────────────────┐                          │
    │                        │   HTTPServer    │                          │
    │                        │ (Orchestrator)  │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                   │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────────┐     │
    │    │ SocketServer │    │RequestParser │    │StaticFileHandler │     │
    │    │ (accept +    │    │ (bytes in)   │    │ (bytes out)      │     │
    │    │  isolation)  │    └──────────────┘    └──────────────────┘     │
    │    └──────┬───────┘                                                 │
    │           ▼                                                         │
    │    ┌──────────────┐                                                 │
    │    │  Connection  │                                                 │
    │    └──────────────┘                                                 │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. CLIENT CONNECTS
       └── SocketServer accepts, forks a child (or starts a thread)

    2. PARSE REQUEST (inside the worker)
       └── RequestParser reads request line, headers, body

    3. DISPATCH
       └── StaticFileHandler writes 200 / 404 / 405 / 501

    4. CLOSE
       └── One request per connection, always

A request that cannot be parsed gets no response at all: the error is
logged and the connection closed.

=============================================================================
ERROR CONFINEMENT
=============================================================================

    HTTPParseError              error    bad bytes from the client
    BrokenPipe / ConnReset      warning  client went away mid-response
    ResourceError / OSError     error    file or socket failed under us
    anything else               error    with traceback, by the worker

In every case only the current connection ends. The accept loop keeps
going.

=============================================================================
"""

import os
import sys
import logging
import logging.handlers
import threading
from typing import BinaryIO, Optional

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState
from .core.process import install_signal_handlers, become_daemon, setup_environment
from .handlers import StaticFileHandler, ResourceError
from .http import RequestParser, HTTPParseError, HTTPStatus


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
SYSLOG_FORMAT = "LittleHTTP[%(process)d]: %(message)s"
SYSLOG_ADDRESS = "/dev/log"


def setup_logging(config: ServerConfig) -> logging.Handler:
    """
    Configure the "littlehttp" logger once, from the config.

    =========================================================================
    WHERE DO LOGS GO?
    =========================================================================

        --debug     stderr, human readable, the process stays in the
                    foreground so somebody is watching the terminal

        otherwise   syslog (facility daemon). After become_daemon()
                    stderr is /dev/null, so it would be lost.

    The pid comes from each record, so lines written by forked children
    carry the child's pid.

    =========================================================================
    """
    handler: logging.Handler
    if not config.debug and os.path.exists(SYSLOG_ADDRESS):
        handler = logging.handlers.SysLogHandler(
            address=SYSLOG_ADDRESS,
            facility=logging.handlers.SysLogHandler.LOG_DAEMON,
        )
        handler.setFormatter(logging.Formatter(SYSLOG_FORMAT))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    package_logger = logging.getLogger("littlehttp")
    for old in list(package_logger.handlers):
        package_logger.removeHandler(old)
        old.close()
    package_logger.addHandler(handler)
    package_logger.setLevel(getattr(logging, config.effective_log_level, logging.INFO))
    package_logger.propagate = False
    return handler


class HTTPServer:
    """
    Static file HTTP/1.x server.

    =========================================================================
    USAGE
    =========================================================================

        config = ServerConfig(document_root="/var/www", port=8080)
        server = HTTPServer(config)
        server.run()            # blocks

    Embedding (tests):

        server = HTTPServer(ServerConfig(document_root=d, port=0,
                                         debug=True,
                                         worker_model=WorkerModel.THREAD))
        threading.Thread(target=server.serve_forever).start()
        ...
        server.shutdown()

    =========================================================================
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Args:
            config: Server configuration. Validated here (fail fast).

        Raises:
            ValueError: Invalid configuration.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self._parser = RequestParser(
            max_line_length=self.config.max_line_length,
            max_body_length=self.config.max_body_length,
        )
        self._handler = StaticFileHandler(
            self.config.document_root,
            block_size=self.config.block_size,
            server_name=self.config.server_name,
        )
        self._socket_server = SocketServer(self.config)

    @property
    def address(self):
        return self._socket_server.address

    @property
    def document_root(self) -> str:
        return self._handler.document_root

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self) -> None:
        """
        Start the server (blocking), the way the command line does.

        chroot/privileges, signals, listen, daemonize, accept. Errors
        before the accept loop propagate to the caller.
        """
        if self.config.chroot:
            setup_environment(self.config.document_root, self.config.user, self.config.group)
            self._handler.document_root = "/"

        if threading.current_thread() is threading.main_thread():
            install_signal_handlers()

        self.bind()

        if self.config.daemonize:
            become_daemon()

        self.serve_forever()

    def bind(self) -> None:
        self._socket_server.bind()

    def serve_forever(self) -> None:
        logger.info(f"Serving {self.document_root}")
        self._socket_server.serve_forever(self.service)

    def shutdown(self) -> None:
        self._socket_server.shutdown()

    def serve_stdio(self) -> Optional[HTTPStatus]:
        """
        Serve exactly one request read from stdin, answering on stdout.

        Suits inetd-style launchers that hand over an already connected
        socket as file descriptors 0 and 1.
        """
        return self.service_streams(sys.stdin.buffer, sys.stdout.buffer)

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def service(self, conn: Connection) -> Optional[HTTPStatus]:
        """
        Service one accepted connection, then close it.

        Runs inside the worker (child process or thread).
        """
        with conn:
            return self.service_streams(conn.rfile, conn.wfile, conn.client_ip, conn)

    def service_streams(
        self,
        rfile: BinaryIO,
        wfile: BinaryIO,
        peer: str = "-",
        conn: Optional[Connection] = None,
    ) -> Optional[HTTPStatus]:
        """
        Read one request from rfile and write its response to wfile.

        Returns:
            The response status, or None if nothing (complete) was sent.
        """
        tag = f"[{conn.id}] " if conn is not None else ""

        try:
            if conn is not None:
                conn.state = ConnectionState.READING
            request = self._parser.parse(rfile)

            if conn is not None:
                conn.state = ConnectionState.WRITING
            status = self._handler.respond_to(request, wfile)

        except HTTPParseError as e:
            logger.error(f"{tag}Bad request from {peer}: {e}")
            return None
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.warning(f"{tag}Client {peer} disconnected: {e}")
            return None
        except (ResourceError, OSError) as e:
            logger.error(f"{tag}Failed to serve {peer}: {e}")
            return None

        logger.info(f'{tag}{peer} "{request.method} {request.path}" {status:d}')
        return status


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# setup_logging(config)      stderr in debug mode, syslog otherwise
# HTTPServer.run()           what the command line calls
# HTTPServer.service(conn)   one connection, one request, then close
# HTTPServer.serve_stdio()   the same over stdin/stdout
# =============================================================================
