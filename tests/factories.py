"""
Test data factories.

Builders for uploads and staged directories used across the test suite.
"""

import os
import time
from io import BytesIO
from pathlib import Path
from types import SimpleNamespace
from typing import Optional
from uuid import uuid4


class FixedIdentifierSource:
    """
    Identifier source returning preset names in order.

    Usage:
        identifiers = FixedIdentifierSource("first-id", "second-id")
    """

    def __init__(self, *identifiers: str):
        self._identifiers = list(identifiers)

    def next(self) -> str:
        return self._identifiers.pop(0)


class UploadFactory:
    """
    Factory for submitted upload values.

    Usage:
        # Multipart-style upload (.filename + .file)
        upload = UploadFactory.multipart("avatar.png", b"...")

        # Bare stream without any filename
        stream = UploadFactory.stream(b"...")
    """

    @classmethod
    def multipart(cls, filename: str = "avatar.png", content: bytes = b"avatar-bytes") -> SimpleNamespace:
        """Object shaped like a multipart upload."""
        return SimpleNamespace(filename=filename, file=BytesIO(content))

    @classmethod
    def stream(cls, content: bytes = b"stream-bytes") -> BytesIO:
        """Readable stream with no filename attributes."""
        return BytesIO(content)


class StagedDirFactory:
    """
    Factory for directories that look like staged uploads.

    Usage:
        directory = StagedDirFactory.create(root, files={"a.txt": b"a"})
        StagedDirFactory.age(directory, seconds=2 * 86400)
    """

    @classmethod
    def create(
        cls,
        root: Path,
        identifier: Optional[str] = None,
        files: Optional[dict[str, bytes]] = None
    ) -> Path:
        """Create root/<identifier>/ holding the given files."""
        directory = root / (identifier or str(uuid4()))
        directory.mkdir(parents=True)
        for name, content in (files or {}).items():
            path = directory / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        return directory

    @classmethod
    def age(cls, directory: Path, seconds: float) -> None:
        """Backdate access and modification times of directory and everything below it."""
        stamp = time.time() - seconds
        for path in directory.rglob("*"):
            os.utime(path, (stamp, stamp))
        os.utime(directory, (stamp, stamp))
