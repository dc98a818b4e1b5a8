"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Reads one HTTP/1.x request from a byte stream and turns it into an
immutable HTTPRequest object.

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  ┌─ REQUEST LINE ─────────────────────────────────────────────────┐ │
    │  │    GET /index.html HTTP/1.0\r\n                                 │ │
    │  │    ─┬─ ─────┬───── ────┬───                                     │ │
    │  │   Method   Path      Version ("HTTP/1." + minor)               │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ HEADERS ──────────────────────────────────────────────────────┐ │
    │  │    Host: example.com\r\n                                        │ │
    │  │    Content-Length: 5\r\n                                        │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ EMPTY LINE ───────────────────────────────────────────────────┐ │
    │  │    \r\n             (a bare \n is accepted too)                 │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ BODY (exactly Content-Length bytes) ──────────────────────────┐ │
    │  │    HELLO                                                        │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
STREAMING, NOT BUFFERING
=============================================================================

The parser works line by line on a file-like object (socket.makefile("rb"),
sys.stdin.buffer, io.BytesIO in tests). It never needs to find "\r\n\r\n"
in a buffer first: each readline() is bounded, and the body is read with a
single read(n) once the header block says how long it is.

    stream ──readline()──► request line
           ──readline()──► header line  ┐
           ──readline()──► header line  ├─ until an empty line
           ──readline()──► ""           ┘
           ──read(n)─────► body

=============================================================================
FAIL FAST
=============================================================================

Every violation raises HTTPParseError. The caller does NOT answer a
malformed request with 400 Bad Request: it logs the error and closes the
connection. A broken client gets no bytes back at all.

    Too-long line               → "line too long"
    No space after the method   → "malformed request line: missing method separator"
    No space after the path     → "malformed request line: missing path separator"
    Not "HTTP/1.x"              → "unsupported protocol prefix"
    Header line without ':'     → "malformed header field"
    Content-Length < 0          → "negative Content-Length"
    Content-Length > limit      → "request body too long"
    Fewer body bytes than said  → "failed to read request body"

=============================================================================
"""

import io
import re
from dataclasses import dataclass
from typing import BinaryIO, Optional, Tuple

MAX_LINE_LENGTH = 4096
MAX_BODY_LENGTH = 1024 * 1024  # 1 MiB

PROTOCOL_PREFIX = "HTTP/1."

# Leading integer with C atoi() semantics: optional whitespace and sign,
# then digits. Anything else parses as 0.
_LEADING_INT = re.compile(r"\s*([+-]?\d+)", re.ASCII)


class HTTPParseError(Exception):
    """
    Raised when a request cannot be parsed.

    Parse errors are fatal to the connection: nothing is sent back.
    """


def parse_int(text: str) -> int:
    """
    Parse a leading base-10 integer, ignoring trailing garbage.

        >>> parse_int("1\\r\\n")
        1
        >>> parse_int(" -5 bytes")
        -5
        >>> parse_int("x")
        0
    """
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


@dataclass(frozen=True)
class HeaderField:
    """A single "Name: value" header line."""

    name: str
    value: str

    def matches(self, name: str) -> bool:
        """Case-insensitive name comparison."""
        return self.name.lower() == name.lower()


@dataclass(frozen=True)
class HTTPRequest:
    """
    A parsed HTTP request.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:                 Uppercased method ("GET", "HEAD", "POST", ...)

        path:                   URL path exactly as sent. No percent-decoding,
                                no normalization. "/a%20b/../c" stays as is.

        protocol_minor_version: The x in "HTTP/1.x"

        headers:                HeaderField tuple in wire order

        body:                   Exactly Content-Length bytes (b"" if none)

    =========================================================================
    DUPLICATE HEADERS
    =========================================================================

    get_header() returns the header received LAST on the wire:

        Content-Length: 3
        Content-Length: 5      ← get_header("content-length") == "5"

    =========================================================================
    """

    method: str
    path: str
    protocol_minor_version: int = 0
    headers: Tuple[HeaderField, ...] = ()
    body: bytes = b""

    @property
    def version(self) -> str:
        """Protocol version as sent, e.g. "HTTP/1.0"."""
        return f"{PROTOCOL_PREFIX}{self.protocol_minor_version}"

    @property
    def content_length(self) -> int:
        """
        Value of the Content-Length header, 0 when missing.
        """
        value = self.get_header("Content-Length")
        if value is None:
            return 0
        return parse_int(value)

    @property
    def is_head(self) -> bool:
        return self.method == "HEAD"

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get a header value (case-insensitive lookup).

        Args:
            name: Header name (any case)
            default: Value to return if header not found

        Returns:
            Value of the last header with that name, or default
        """
        for header in reversed(self.headers):
            if header.matches(name):
                return header.value
        return default


class RequestParser:
    """
    Parses HTTP requests from binary streams.

    Usage:
        parser = RequestParser(max_body_length=64 * 1024)
        with sock.makefile("rb") as rfile:
            request = parser.parse(rfile)
    """

    def __init__(
        self,
        max_line_length: int = MAX_LINE_LENGTH,
        max_body_length: int = MAX_BODY_LENGTH,
    ):
        """
        Args:
            max_line_length: Longest accepted request/header line in bytes,
                             terminator included.
            max_body_length: Largest accepted Content-Length.
        """
        self.max_line_length = max_line_length
        self.max_body_length = max_body_length

    def parse(self, stream: BinaryIO) -> HTTPRequest:
        """
        Read and parse exactly one request from the stream.

        Reads no further than the end of the body, so the stream position
        afterwards is the first byte after the request.

        Raises:
            HTTPParseError: If the request is malformed or truncated.
        """
        line = self._read_line(stream)
        if line is None:
            raise HTTPParseError("no request line")
        method, path, minor = self._parse_request_line(line)

        headers = []
        while True:
            line = self._read_line(stream)
            if line is None:
                raise HTTPParseError("failed to read request header field")
            if line in ("\n", "\r\n"):
                break
            headers.append(self._parse_header_field(line))

        request = HTTPRequest(
            method=method,
            path=path,
            protocol_minor_version=minor,
            headers=tuple(headers),
        )

        length = request.content_length
        if length < 0:
            raise HTTPParseError("negative Content-Length")
        if length > self.max_body_length:
            raise HTTPParseError("request body too long")
        if length == 0:
            return request

        body = stream.read(length)
        if body is None or len(body) < length:
            raise HTTPParseError("failed to read request body")

        return HTTPRequest(
            method=method,
            path=path,
            protocol_minor_version=minor,
            headers=request.headers,
            body=body,
        )

    def _read_line(self, stream: BinaryIO) -> Optional[str]:
        """
        Read one line, terminator included.

        Returns None at end of stream. Lines are decoded as ISO-8859-1,
        which maps every byte to one character and never fails.
        """
        raw = stream.readline(self.max_line_length)
        if not raw:
            return None
        if len(raw) >= self.max_line_length and not raw.endswith(b"\n"):
            raise HTTPParseError("line too long")
        return raw.decode("iso-8859-1")

    def _parse_request_line(self, line: str) -> Tuple[str, str, int]:
        """
        Split "METHOD SP PATH SP HTTP/1.x" into its parts.

        Returns:
            Tuple of (method, path, protocol_minor_version)
        """
        method, sep, rest = line.partition(" ")
        if not sep:
            raise HTTPParseError(
                f"malformed request line: missing method separator: {line.rstrip()!r}"
            )

        path, sep, protocol = rest.partition(" ")
        if not sep:
            raise HTTPParseError(
                f"malformed request line: missing path separator: {line.rstrip()!r}"
            )

        # The prefix is matched case-insensitively, the minor version
        # follows atoi rules ("HTTP/1.1\r\n" → 1, "HTTP/1.x" → 0).
        if protocol[:len(PROTOCOL_PREFIX)].upper() != PROTOCOL_PREFIX:
            raise HTTPParseError(f"unsupported protocol prefix: {line.rstrip()!r}")
        minor = parse_int(protocol[len(PROTOCOL_PREFIX):])

        return method.upper(), path, minor

    def _parse_header_field(self, line: str) -> HeaderField:
        """Split "Name: value" at the first colon."""
        name, sep, value = line.partition(":")
        if not sep:
            raise HTTPParseError(f"malformed header field: {line.rstrip()!r}")
        value = value.lstrip(" \t").rstrip("\r\n")
        return HeaderField(name=name, value=value)


def parse_request(
    data: bytes,
    max_line_length: int = MAX_LINE_LENGTH,
    max_body_length: int = MAX_BODY_LENGTH,
) -> HTTPRequest:
    """
    Convenience function to parse a request held in memory.

    Example:
        >>> request = parse_request(b"GET /index.html HTTP/1.0\\r\\n\\r\\n")
        >>> request.method, request.path, request.protocol_minor_version
        ('GET', '/index.html', 0)
    """
    parser = RequestParser(max_line_length=max_line_length, max_body_length=max_body_length)
    return parser.parse(io.BytesIO(data))
