"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds the HTTP/1.0 responses this server sends.

=============================================================================
HTTP RESPONSE ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  HTTP/1.0 200 OK\r\n                         ← status line           │
    │  Date: Mon, 19 Oct 2026 09:00:00 GMT\r\n     ┐                       │
    │  Server: LittleHTTP/1.0\r\n                  ├ common headers,       │
    │  Connection: close\r\n                       ┘ always in this order │
    │  Content-Length: 1234\r\n                    ┐ response-specific     │
    │  Content-Type: text/html\r\n                 ┘ headers               │
    │  \r\n                                        ← empty line            │
    │  <html>...                                   ← body (not for HEAD)   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Every response closes the connection. There is no keep-alive, so a body
without Content-Length (the error pages) simply ends when the socket does.

=============================================================================
HEAD AND BIG FILES
=============================================================================

The head of a response (status line + headers + empty line) is serialized
separately from the body:

    response.header_bytes()     → what HEAD gets, and what GET gets first
    response.body               → small in-memory bodies (error pages)

File bodies never pass through HTTPResponse. The static handler writes the
head, then copies the file to the socket block by block.

=============================================================================
"""

import html
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import BinaryIO, Dict, Optional, Union

from .status_codes import HTTPStatus

SERVER_NAME = "LittleHTTP/1.0"
HTTP_VERSION = "HTTP/1.0"


@dataclass
class HTTPResponse:
    """
    An HTTP response waiting to be written to the client.

        status:   HTTPStatus enum value
        headers:  Response-specific headers, written after the common ones
        body:     In-memory body bytes (empty for file responses)
        version:  Protocol version of the status line
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = HTTP_VERSION

    @property
    def status_line(self) -> str:
        """
        Format: HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE
        Example: "HTTP/1.0 404 Not Found"
        """
        return f"{self.version} {self.status:d} {self.status.phrase}"

    def header_bytes(
        self,
        server_name: str = SERVER_NAME,
        now: Optional[datetime] = None,
    ) -> bytes:
        """
        Serialize the status line and all headers, empty line included.

        Args:
            server_name: Value of the Server header.
            now: Time for the Date header (defaults to the current UTC time).
        """
        lines = [
            self.status_line,
            f"Date: {format_http_date(now or datetime.now(timezone.utc))}",
            f"Server: {server_name}",
            "Connection: close",
        ]
        for name, value in self.headers.items():
            lines.append(f"{name}: {value}")

        # Empty line separates headers from body
        lines.append("")
        return "\r\n".join(lines).encode("iso-8859-1") + b"\r\n"

    def to_bytes(self, server_name: str = SERVER_NAME, include_body: bool = True) -> bytes:
        """
        Serialize the whole response.

        Args:
            server_name: Value of the Server header.
            include_body: False for HEAD requests.
        """
        head = self.header_bytes(server_name)
        return head + self.body if include_body else head

    def write_to(
        self,
        wfile: BinaryIO,
        server_name: str = SERVER_NAME,
        include_body: bool = True,
    ) -> None:
        """Write the response to a binary stream and flush it."""
        wfile.write(self.to_bytes(server_name, include_body))
        wfile.flush()


class ResponseBuilder:
    """
    Fluent builder for HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.NOT_FOUND)
            .html("<p>File not found</p>")
            .build())

    Every method except build() returns self.
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def content_length(self, length: int) -> "ResponseBuilder":
        return self.header("Content-Length", str(length))

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Set the response body (strings are encoded to UTF-8)."""
        if isinstance(body, str):
            body = body.encode("utf-8")
        self._body = body
        return self

    def html(self, markup: str) -> "ResponseBuilder":
        """Set an HTML body and its Content-Type."""
        return self.content_type("text/html").body(markup)

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Mon, 19 Oct 2026 09:00:00 GMT

    Names are spelled out here rather than taken from strftime("%a"), which
    follows the process locale.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# ERROR PAGES
# =============================================================================
#
# Small literal HTML documents. Lines end with CRLF like the rest of the
# response. The method name is client input, so it is HTML-escaped.
#
# =============================================================================

def _error_page(title: str, message: str) -> str:
    return (
        "<html>\r\n"
        f"<head><title>{title}</title></head>\r\n"
        f"<body><p>{message}</p></body>\r\n"
        "</html>\r\n"
    )


def not_found() -> HTTPResponse:
    """404 Not Found."""
    return (ResponseBuilder()
        .status(HTTPStatus.NOT_FOUND)
        .html(_error_page("Not Found", "File not found"))
        .build())


def method_not_allowed(method: str) -> HTTPResponse:
    """405 Method Not Allowed, naming the refused method."""
    return (ResponseBuilder()
        .status(HTTPStatus.METHOD_NOT_ALLOWED)
        .html(_error_page(
            "405 Method Not Allowed",
            f"The request method {html.escape(method)} is not allowed",
        ))
        .build())


def not_implemented(method: str) -> HTTPResponse:
    """501 Not Implemented, naming the unknown method."""
    return (ResponseBuilder()
        .status(HTTPStatus.NOT_IMPLEMENTED)
        .html(_error_page(
            "501 Not Implemented",
            f"The request method {html.escape(method)} is not implemented",
        ))
        .build())
