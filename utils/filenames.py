"""
Filename utilities for client-supplied upload names.

The client controls the filename it sends, so only the final path
segment is kept and every unusual character is replaced.
"""

import re
from typing import Any, Optional
from urllib.parse import unquote_plus

# Characters allowed in a staged basename; everything else becomes "_"
_UNSAFE_CHARS = re.compile(r"[^0-9a-zA-Z_@)(~.-]")
_UNDERSCORE_RUNS = re.compile(r"_+")

# Basename used when the client name sanitizes to nothing usable
FALLBACK_BASENAME = "upload"


def clean_name(raw: Optional[Any]) -> str:
    """
    Convert a client-supplied filename into a safe basename.

    - "../../etc/passwd" → "passwd"
    - "a b!!c.txt" → "a_b_c.txt"
    - "C:\\Users\\me\\photo 1.png" → "photo_1.png"
    - "%C3%A9t%C3%A9.jpg" → "_t_.jpg"

    Directory parts (either slash style) are dropped before decoding, so
    an encoded "%2F" cannot reintroduce one. Never raises.

    Args:
        raw: Filename or path as sent by the client (None allowed)

    Returns:
        Sanitized basename, or "" for empty input
    """
    if raw is None:
        return ""

    name = str(raw).replace("\\", "/").rstrip("/")
    name = name.rsplit("/", 1)[-1]

    if not name:
        return ""

    name = unquote_plus(name)
    name = _UNSAFE_CHARS.sub("_", name)
    return _UNDERSCORE_RUNS.sub("_", name)


def safe_basename(raw: Optional[Any]) -> str:
    """
    Sanitized basename that is always usable as a file inside a directory.

    Falls back to FALLBACK_BASENAME when clean_name() yields "" or only
    dots ("." and ".." would point at the directory or its parent).
    """
    name = clean_name(raw)
    if not name.strip("."):
        return FALLBACK_BASENAME
    return name
