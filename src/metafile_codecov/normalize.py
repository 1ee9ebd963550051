"""Content-hash stripping for asset file names.

Bundlers embed a content hash in emitted file names (`main-2c458a0c.js`).
Codecov compares assets across builds by their normalized name, so the hash
segment is replaced with `*`:

    main-2c458a0c.js        -> main-*.js
    chunk.abc12345.css      -> chunk.*.css
    dist/assets/style.css   -> dist/assets/style.css

Hashes are runs of 8 or more hex characters. The preferred match is a run
preceded by `-` or `.` and followed by the final extension. When that does not
apply, every standalone run of 8+ hex characters in the base name is replaced.
The fallback is best effort and also rewrites all-hex words such as
`deadbeefcafe`; Codecov-side comparisons depend on this exact output.
"""
from __future__ import annotations

import posixpath
import re

__all__ = ["normalize_asset_name"]

_DELIMITED_HASH = re.compile(r"([-.])[a-f0-9]{8,}(\.[a-z]+)$", re.IGNORECASE)
_ANY_HASH = re.compile(r"[a-f0-9]{8,}", re.IGNORECASE)


def normalize_asset_name(name: str) -> str:
    """Replace the content hash in ``name`` with ``*``.

    Directory components are preserved; a bare file name stays bare.
    """
    directory, base = posixpath.split(name)

    normalized = _DELIMITED_HASH.sub(r"\1*\2", base, count=1)
    if normalized == base:
        normalized = _ANY_HASH.sub("*", base)

    if directory in ("", "."):
        return normalized
    return posixpath.normpath(posixpath.join(directory, normalized))
