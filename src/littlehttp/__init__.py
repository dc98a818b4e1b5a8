"""
=============================================================================
LITTLEHTTP - A Small Static File HTTP/1.x Server
=============================================================================

Serves regular files from one directory over plain sockets. One request
per connection, one isolated worker per connection, nothing shared.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │   1. RAW SOCKET PROGRAMMING                                         │
    │      - IPv4 listening socket, accept loop                           │
    │      - Process-per-connection (fork) or thread-per-connection       │
    │                                                                     │
    │   2. HTTP/1.x PROTOCOL                                              │
    │      - Request line, header fields, Content-Length body             │
    │      - Status line, Date, Server, Connection: close                 │
    │                                                                     │
    │   3. STATIC FILES                                                   │
    │      - GET / HEAD of regular files under the document root          │
    │      - 404 / 405 / 501 error pages                                  │
    │                                                                     │
    │   4. UNIX DAEMON PLUMBING                                           │
    │      - Daemonization, syslog, chroot, privilege drop                │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE LAYOUT
=============================================================================

    littlehttp/
    ├── __main__.py          # Command line: python -m littlehttp
    ├── server.py            # HTTPServer, setup_logging
    ├── config.py            # ServerConfig, WorkerModel
    ├── core/
    │   ├── socket_server.py # Listening socket, accept loop, workers
    │   ├── connection.py    # One client socket as two streams
    │   └── process.py       # Signals, daemon, chroot
    ├── http/
    │   ├── request.py       # RequestParser
    │   ├── response.py      # HTTPResponse, error pages
    │   ├── status_codes.py
    │   └── mime_types.py
    └── handlers/
        └── static.py        # StaticFileHandler

=============================================================================
"""

__version__ = "1.0.0"

from .server import HTTPServer
from .config import ServerConfig, WorkerModel

__all__ = ["HTTPServer", "ServerConfig", "WorkerModel", "__version__"]
