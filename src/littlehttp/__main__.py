"""
=============================================================================
LITTLEHTTP CLI ENTRY POINT
=============================================================================

This module provides the command-line interface for running the server.

=============================================================================
USAGE
=============================================================================

    # Daemonize, log to syslog, serve ./public on port 8080
    python -m littlehttp ./public

    # Stay in the foreground, log to stderr
    python -m littlehttp --debug --port=3000 ./public

    # Only warnings and errors
    python -m littlehttp --log-level=WARNING ./public

    # chroot into the document root and run as www:www (start as root)
    python -m littlehttp --chroot --user=www --group=www /var/www

    # One request on stdin/stdout (inetd style)
    python -m littlehttp --stdio ./public

=============================================================================
EXIT STATUS
=============================================================================

    0   --help / --version, or a finished --stdio request
    1   bad usage, bad configuration, cannot listen, cannot drop
        privileges, terminated by a signal
    3   could not create a worker for a connection

argparse exits with 2 on usage errors by default; LittleHTTP has always
used 1, so the parser is told to do the same.

=============================================================================
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import ServerConfig, WorkerModel
from .core import SpawnError
from .server import HTTPServer, setup_logging


logger = logging.getLogger("littlehttp")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_SPAWN_FAILURE = 3


class ArgumentParser(argparse.ArgumentParser):
    """argparse with exit status 1 for usage errors."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(EXIT_FAILURE, f"{self.prog}: error: {message}\n")


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="littlehttp",
        description="Minimal HTTP/1.x static file server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  littlehttp ./public                           # Daemon on port 8080
  littlehttp --debug --port=3000 ./public       # Foreground, logs to stderr
  littlehttp --chroot --user=www --group=www /var/www
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="TCP port to listen on (default: 8080)"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Per-connection socket timeout (default: none)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # PROCESS ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--chroot",
        action="store_true",
        help="chroot into the document root (requires --user and --group)"
    )

    parser.add_argument("--user", help="User to run as after chroot")
    parser.add_argument("--group", help="Group to run as after chroot")

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Stay in the foreground and log to stderr"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: DEBUG with --debug, INFO otherwise)"
    )

    parser.add_argument(
        "--workers",
        choices=[m.value for m in WorkerModel],
        default=WorkerModel.default().value,
        help="One process or one thread per connection (default: %(default)s)"
    )

    parser.add_argument(
        "--stdio",
        action="store_true",
        help="Serve a single request on stdin/stdout and exit"
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--version",
        action="version",
        version=f"LittleHTTP {__version__}"
    )

    parser.add_argument("docroot", help="Directory to serve files from")

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Translate parsed CLI arguments to a ServerConfig."""
    return ServerConfig(
        document_root=args.docroot,
        port=args.port,
        timeout=args.timeout,
        debug=args.debug,
        log_level=args.log_level,
        chroot=args.chroot,
        user=args.user,
        group=args.group,
        worker_model=WorkerModel(args.workers),
    )


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns the process exit status.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    config = config_from_args(args)
    setup_logging(config)

    try:
        server = HTTPServer(config)
    except ValueError as e:
        parser.error(str(e))

    # =========================================================================
    # RUN SERVER
    # =========================================================================

    try:
        if args.stdio:
            server.serve_stdio()
        else:
            server.run()
    except SpawnError as e:
        logger.error(f"{e}")
        return EXIT_SPAWN_FAILURE
    except (OSError, ValueError) as e:
        logger.error(f"Server failed: {e}")
        if not config.debug:
            # The log went to syslog; the terminal is still attached
            print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    return EXIT_OK


# =============================================================================
# ENTRY POINT
# =============================================================================
# This allows running: python -m littlehttp

if __name__ == "__main__":
    sys.exit(main())
