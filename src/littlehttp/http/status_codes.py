"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this server can answer with, and their reason phrases.

A static file server has very few outcomes. Every response is one of:

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  200   │ OK                 - file found, headers (+ body) sent    │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  404   │ Not Found          - GET/HEAD on a path that is not a     │
    │        │                      regular file under the docroot      │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  405   │ Method Not Allowed - POST (a method we know, but refuse)  │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  501   │ Not Implemented    - any method we do not know at all     │
    └────────┴───────────────────────────────────────────────────────────┘

Malformed requests get NO status at all: the connection is simply closed.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes with reason phrases.

    IntEnum lets a status compare and format as a plain integer:

        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> f"{HTTPStatus.NOT_FOUND:d} {HTTPStatus.NOT_FOUND.phrase}"
        '404 Not Found'
    """

    OK = 200
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    NOT_IMPLEMENTED = 501

    @property
    def phrase(self) -> str:
        """Reason phrase used in the status line."""
        return _STATUS_PHRASES[self]


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
}
