"""
=============================================================================
HANDLERS MODULE
=============================================================================

A handler takes a parsed request and writes the response for it.

This server has exactly one: StaticFileHandler, which maps the request
path onto the document root.

    Request              Handler                  Response stream
   ┌─────────┐        ┌──────────────┐         ┌──────────────────┐
   │ GET     │        │ get_fileinfo │         │ HTTP/1.0 200 OK  │
   │ /a.html │ ─────▶ │ + dispatch   │ ──────▶ │ ...              │
   └─────────┘        └──────────────┘         │ <file bytes>     │
                                               └──────────────────┘

=============================================================================
"""

from .static import (
    FileInfo,
    ResourceError,
    StaticFileHandler,
    build_fspath,
    get_fileinfo,
    resolve_fspath,
)

__all__ = [
    "FileInfo",
    "ResourceError",
    "StaticFileHandler",
    "build_fspath",
    "get_fileinfo",
    "resolve_fspath",
]
