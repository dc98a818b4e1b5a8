"""
=============================================================================
CONTENT-TYPE CLASSIFIER
=============================================================================

Maps a served file to the value of its Content-Type response header.

Classification is by file extension only. The file content is never
sniffed, so the answer costs nothing beyond a dictionary lookup.

    index.html   →  text/html
    logo.png     →  image/png
    README       →  text/plain     (no extension: fallback)
    data.xyz     →  text/plain     (unknown extension: fallback)

=============================================================================
WHY text/plain AS THE FALLBACK?
=============================================================================

The first versions of this server answered "text/plain" for everything.
Clients written against that behaviour keep working for any extension we
do not know, and a browser will still show the file instead of offering
a download.

=============================================================================
"""

from pathlib import Path
from typing import Union


# Extension (lowercase, with dot) → MIME type
MIME_TYPES = {
    # Text
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",
    ".json": "application/json",
    ".xml": "application/xml",

    # Images
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",

    # Fonts
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",

    # Documents and archives
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".tar": "application/x-tar",
    ".gz": "application/gzip",
    ".wasm": "application/wasm",
}

DEFAULT_MIME_TYPE = "text/plain"


def get_mime_type(path: Union[str, Path], default: str = DEFAULT_MIME_TYPE) -> str:
    """
    Get the MIME type for a file based on its extension.

    Examples:
        >>> get_mime_type("/var/www/style.css")
        'text/css'
        >>> get_mime_type("LICENSE")
        'text/plain'
    """
    extension = Path(path).suffix.lower()  # .PNG → .png
    return MIME_TYPES.get(extension, default)


def guess_content_type(info) -> str:
    """Content-Type header value for a resolved FileInfo."""
    return get_mime_type(info.path)
