"""
=============================================================================
HTTP MODULE
=============================================================================

Protocol layer: everything that knows what HTTP bytes look like, and
nothing that knows about sockets or files.

    request.py        bytes  ──► HTTPRequest      (RequestParser)
    response.py       HTTPResponse ──► bytes      (ResponseBuilder)
    status_codes.py   200 / 404 / 405 / 501 and their phrases
    mime_types.py     file extension ──► Content-Type

=============================================================================
"""

from .request import HeaderField, HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    format_http_date,
    not_found,           # 404 Not Found
    method_not_allowed,  # 405 Method Not Allowed
    not_implemented,     # 501 Not Implemented
)
from .status_codes import HTTPStatus
from .mime_types import get_mime_type, guess_content_type

__all__ = [
    # Request parsing
    "HeaderField",
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Response building
    "HTTPResponse",
    "ResponseBuilder",
    "format_http_date",
    "not_found",
    "method_not_allowed",
    "not_implemented",

    # Status codes
    "HTTPStatus",

    # Content types
    "get_mime_type",
    "guess_content_type",
]
