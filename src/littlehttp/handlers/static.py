"""
=============================================================================
STATIC FILE HANDLER
=============================================================================

Resolves request paths to files under the document root and writes the
response for a parsed request.

=============================================================================
DISPATCH
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        METHOD → OUTCOME                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   GET / HEAD ──► get_fileinfo(docroot, path)                        │
    │                    │                                                 │
    │                    ├── regular file ──► 200 + file (GET only)       │
    │                    └── anything else ─► 404 + page (GET only)       │
    │                                                                      │
    │   POST ────────────────────────────────► 405 + page                  │
    │                                                                      │
    │   anything else ───────────────────────► 501 + page                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PATH RESOLUTION AND TRAVERSAL
=============================================================================

The filesystem path is the document root and the URL path joined by "/":

    docroot "/srv/www" + "/css/site.css"  →  "/srv/www//css/site.css"

The joined path is then normalized, and must still be inside the document
root. Otherwise an attacker could read any file on the host:

    "/srv/www" + "/../../etc/passwd"  →  "/etc/passwd"   ✗ outside → 404

The check is lexical. Symlinks are never followed for the final component
(lstat), so a symlink is "not a regular file" and also answers 404.

=============================================================================
STREAMING
=============================================================================

Files are copied to the socket in fixed-size blocks. Memory use per
connection does not depend on the file size:

    file ──read(block_size)──► buffer ──write()──► socket
         ◄────────────── repeat until size bytes are sent

No more than the size recorded at stat time is ever sent, so the
Content-Length header is always truthful. A file that shrinks while being
sent is a ResourceError.

=============================================================================
"""

import os
import stat
import logging
from dataclasses import dataclass
from typing import BinaryIO, Optional

from ..http.request import HTTPRequest
from ..http.response import (
    SERVER_NAME,
    HTTPResponse, ResponseBuilder, HTTPStatus,
    not_found, method_not_allowed, not_implemented,
)
from ..http.mime_types import guess_content_type


logger = logging.getLogger(__name__)

BLOCK_SIZE = 1024


class ResourceError(Exception):
    """
    A file that passed the existence checks could not be served.

    Raised when opening or reading fails mid-response. Fatal to the
    connection.
    """


@dataclass
class FileInfo:
    """
    Result of resolving a URL path.

        path:  Filesystem path that was checked
        size:  Byte length at stat time (0 when not ok)
        ok:    True only for an existing regular file
    """

    path: str
    size: int = 0
    ok: bool = False


def build_fspath(docroot: str, urlpath: str) -> str:
    """Join the document root and the URL path with a single "/"."""
    return f"{docroot}/{urlpath}"


def resolve_fspath(docroot: str, urlpath: str) -> Optional[str]:
    """
    Build the filesystem path and confine it to the document root.

    Returns:
        The normalized absolute path, or None if it escapes docroot.
    """
    # An empty docroot means "/" (running chrooted)
    root = os.path.abspath(docroot or "/")
    # POSIX keeps a leading "//" through normpath, so strip before joining
    path = os.path.normpath(os.path.join(root, urlpath.lstrip("/")))

    if os.path.commonpath([root, path]) != root:
        return None
    return path


def get_fileinfo(docroot: str, urlpath: str) -> FileInfo:
    """
    Resolve a URL path to a FileInfo.

    Example:
        >>> info = get_fileinfo("/srv/www", "/index.html")
        >>> info.ok, info.size
        (True, 1234)
    """
    path = resolve_fspath(docroot, urlpath)
    if path is None:
        logger.warning(f"Path escapes document root: {urlpath!r}")
        return FileInfo(path=build_fspath(docroot, urlpath))

    try:
        st = os.lstat(path)
    except (OSError, ValueError):
        # Missing, unreadable directory, or an embedded NUL byte
        return FileInfo(path=path)

    if not stat.S_ISREG(st.st_mode):
        return FileInfo(path=path)

    return FileInfo(path=path, size=st.st_size, ok=True)


class StaticFileHandler:
    """
    Writes the response for one request.

    =========================================================================
    USAGE
    =========================================================================

        handler = StaticFileHandler("/srv/www")

        with sock.makefile("wb") as wfile:
            status = handler.respond_to(request, wfile)

    The handler holds only configuration. The same instance can serve any
    number of connections, concurrently or not.

    =========================================================================
    """

    FILE_METHODS = frozenset({"GET", "HEAD"})
    DISALLOWED_METHODS = frozenset({"POST"})

    def __init__(
        self,
        document_root: str,
        block_size: int = BLOCK_SIZE,
        server_name: str = SERVER_NAME,
    ):
        """
        Args:
            document_root: Directory that URL paths are resolved against.
            block_size: Bytes copied per read when streaming a file.
            server_name: Value of the Server header.
        """
        self.document_root = document_root
        self.block_size = block_size
        self.server_name = server_name

    def respond_to(self, request: HTTPRequest, wfile: BinaryIO) -> HTTPStatus:
        """
        Write the complete response for request to wfile.

        Returns:
            The status that was sent.

        Raises:
            ResourceError: The resolved file could not be opened or read.
            OSError: Writing to the client failed.
        """
        if request.method in self.FILE_METHODS:
            return self._do_file_response(request, wfile)

        if request.method in self.DISALLOWED_METHODS:
            response = method_not_allowed(request.method)
        else:
            response = not_implemented(request.method)

        self._send(response, wfile, include_body=True)
        return response.status

    def _do_file_response(self, request: HTTPRequest, wfile: BinaryIO) -> HTTPStatus:
        info = get_fileinfo(self.document_root, request.path)
        if not info.ok:
            response = not_found()
            self._send(response, wfile, include_body=not request.is_head)
            return response.status

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .content_length(info.size)
            .content_type(guess_content_type(info))
            .build())

        if request.is_head:
            self._send(response, wfile, include_body=False)
            return response.status

        # Open before writing anything: a vanished file then costs the
        # client its connection, not a half-written 200.
        try:
            fileobj = open(info.path, "rb")
        except OSError as e:
            raise ResourceError(f"failed to open {info.path}: {e}") from e

        with fileobj:
            wfile.write(response.header_bytes(self.server_name))
            self._copy_file(fileobj, wfile, info)
        wfile.flush()

        return response.status

    def _copy_file(self, fileobj: BinaryIO, wfile: BinaryIO, info: FileInfo) -> None:
        """Stream exactly info.size bytes from fileobj to wfile."""
        remaining = info.size
        while remaining > 0:
            try:
                block = fileobj.read(min(self.block_size, remaining))
            except OSError as e:
                raise ResourceError(f"failed to read {info.path}: {e}") from e

            if not block:
                raise ResourceError(
                    f"failed to read {info.path}: file shrank by {remaining} bytes"
                )

            wfile.write(block)
            remaining -= len(block)

    def _send(self, response: HTTPResponse, wfile: BinaryIO, include_body: bool) -> None:
        response.write_to(wfile, self.server_name, include_body=include_body)
