"""
Identifiers for staged upload directories.

Directory names come from uuid4, so concurrent requests (and processes)
sharing one cache root never pick the same name. Uploads are written
under a ".staging-<identifier>" working name and renamed once complete,
so the sweep never sees a directory that is still being filled.
"""

import re
import uuid
from typing import Optional, Protocol

IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z0-9-]+$")


class IdentifierSource(Protocol):
    """Anything that yields fresh directory names."""

    def next(self) -> str:
        ...


class UuidIdentifierSource:
    """Random UUID identifiers, e.g. "0f8fad5b-d9cb-469f-a165-70867728950e"."""

    def next(self) -> str:
        return str(uuid.uuid4())


def is_identifier(name: Optional[str]) -> bool:
    """True if name could have been produced by an IdentifierSource."""
    if not name:
        return False
    return IDENTIFIER_PATTERN.fullmatch(name) is not None


# Prefix for directories still being written; never matches IDENTIFIER_PATTERN
STAGING_PREFIX = ".staging-"


def staging_name(identifier: str) -> str:
    """Working directory name used while an upload is written."""
    return f"{STAGING_PREFIX}{identifier}"


def staging_identifier(name: str) -> Optional[str]:
    """Identifier behind a working directory name, or None."""
    if not name.startswith(STAGING_PREFIX):
        return None
    identifier = name[len(STAGING_PREFIX):]
    return identifier if is_identifier(identifier) else None
