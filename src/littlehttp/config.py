"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the server.

=============================================================================
WHY A CONFIG CLASS?
=============================================================================

The server reads a handful of settings once at startup and never changes
them afterwards. Keeping them in one dataclass means:

1. Centralized - One place to see all options
2. Typed - IDE autocomplete and error detection
3. Validated - Bad values are caught before the socket is even bound
4. Explicit - Components receive the config; nothing reads a global flag

    CLI arguments ──► ServerConfig ──validate()──► HTTPServer
                                                     │
                         ┌───────────────────────────┼─────────────────┐
                         ▼                           ▼                 ▼
                   setup_logging()            SocketServer     StaticFileHandler

=============================================================================
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class WorkerModel(Enum):
    """
    How each accepted connection is isolated from the accept loop.

    FORK:   One child process per connection. A crash, a leak or a hung
            read stays inside the child.
    THREAD: One thread per connection. Errors are confined to the thread;
            memory is shared but nothing mutable is.
    """
    FORK = "fork"
    THREAD = "thread"

    @classmethod
    def default(cls) -> "WorkerModel":
        return cls.FORK if hasattr(os, "fork") else cls.THREAD


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    CONTENT
    - document_root

    NETWORK SETTINGS
    - host, port, backlog, timeout

    PROCESS
    - debug, chroot, user, group, worker_model

    PROTOCOL LIMITS
    - max_line_length, max_body_length, block_size

    IDENTITY / LOGGING
    - server_name, log_level

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    document_root: str = "."
    """
    Directory that request paths are resolved against.
    Made absolute by validate(), since daemonizing changes directory to /.
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """IPv4 address to bind to. All interfaces by default."""

    port: int = 8080
    """TCP port. 0 lets the OS pick one (used by the tests)."""

    backlog: int = 128
    """Maximum number of connections queued before accept()."""

    timeout: Optional[float] = None
    """
    Per-connection socket timeout in seconds.
    None = no deadline: a slow client holds its worker until it finishes.
    """

    # ─────────────────────────────────────────────────────────────────────
    # PROCESS
    # ─────────────────────────────────────────────────────────────────────

    debug: bool = False
    """
    Stay in the foreground and log to stderr.
    Without it the server daemonizes and logs to syslog.
    """

    chroot: bool = False
    """chroot(2) into document_root and drop privileges to user/group."""

    user: Optional[str] = None
    group: Optional[str] = None

    worker_model: WorkerModel = WorkerModel.default()

    # ─────────────────────────────────────────────────────────────────────
    # PROTOCOL LIMITS
    # ─────────────────────────────────────────────────────────────────────

    max_line_length: int = 4096
    """Longest request line or header line, in bytes."""

    max_body_length: int = 1024 * 1024  # 1 MiB
    """Largest accepted Content-Length."""

    block_size: int = 1024
    """Bytes per read() when streaming a file."""

    # ─────────────────────────────────────────────────────────────────────
    # IDENTITY / LOGGING
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "LittleHTTP/1.0"
    """Value of the Server response header."""

    log_level: Optional[str] = None
    """Logging level name. Defaults to DEBUG in debug mode, INFO otherwise."""

    @property
    def daemonize(self) -> bool:
        return not self.debug

    @property
    def effective_log_level(self) -> str:
        if self.log_level:
            return self.log_level.upper()
        return "DEBUG" if self.debug else "INFO"

    def validate(self) -> None:
        """
        Validate configuration values.

        =====================================================================
        FAIL-FAST PRINCIPLE
        =====================================================================

        Configuration is checked at startup, not at first use. A typo in
        --port must not surface as a daemon that silently died in the
        background.

        =====================================================================
        """
        if not os.path.isdir(self.document_root):
            raise ValueError(f"Document root is not a directory: {self.document_root}")
        self.document_root = os.path.abspath(self.document_root)

        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.max_line_length < 16:
            raise ValueError("max_line_length must be >= 16")

        if self.max_body_length < 0:
            raise ValueError("max_body_length must be >= 0")

        if self.block_size < 1:
            raise ValueError("block_size must be >= 1")

        if self.chroot and not (self.user and self.group):
            raise ValueError("use both of --user and --group")

        if self.worker_model is WorkerModel.FORK and not hasattr(os, "fork"):
            raise ValueError("fork worker model is not available on this platform")
