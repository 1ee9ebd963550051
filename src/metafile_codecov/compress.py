"""Gzip size estimation for emitted assets."""
from __future__ import annotations

import gzip
import re
from typing import Optional

__all__ = ["COMPRESSIBLE", "get_gzip_size"]

# Text formats only; images, fonts and archives are already compressed.
COMPRESSIBLE = re.compile(r"\.(css|html|json|js|mjs|svg|txt|xml|xhtml)$")

# zlib's Z_DEFAULT_COMPRESSION; gzip.compress would otherwise use 9.
ZLIB_DEFAULT_LEVEL = 6


def get_gzip_size(file_name: str, content: bytes) -> Optional[int]:
    """Return the gzip-compressed size of ``content`` in bytes.

    Returns None when ``file_name`` is not a compressible text type. Empty
    content still yields the size of the gzip header and trailer.
    """
    if not COMPRESSIBLE.search(file_name):
        return None
    return len(gzip.compress(content, compresslevel=ZLIB_DEFAULT_LEVEL, mtime=0))
