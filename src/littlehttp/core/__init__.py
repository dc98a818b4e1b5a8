"""
=============================================================================
CORE MODULE
=============================================================================

Networking and process plumbing, below the HTTP layer:

    socket_server.py   listening socket, accept loop, worker isolation
    connection.py      one accepted client socket as a pair of streams
    process.py         signals, daemonization, chroot/privilege drop

=============================================================================
"""

from .connection import Connection, ConnectionState
from .socket_server import SocketServer, SpawnError
from . import process

__all__ = [
    "Connection",
    "ConnectionState",
    "SocketServer",
    "SpawnError",
    "process",
]
