"""
Staging directories for uploaded files.

Each upload gets its own directory root/<identifier>/ so concurrent
requests never share a directory and no lock is needed. The file is
written into root/.staging-<identifier>/ first and the directory is
renamed into place once the bytes are on disk: a sweep running in
between only ever sees complete directories.
"""

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional
import structlog

from config.upload_cache import UploadCacheConfig
from exceptions import StagingError, UploadCacheConfigError
from utils.identifiers import (
    IdentifierSource,
    UuidIdentifierSource,
    is_identifier,
    staging_name,
)

logger = structlog.get_logger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024


@dataclass
class StagedDirectory:
    """
    A directory being filled with one upload.

    Attributes:
        identifier: Name of the published directory
        path: Working directory the file is written to
        target: Published directory root/<identifier>
        published: True once the working directory was renamed to target
    """
    identifier: str
    path: Path
    target: Path
    published: bool = False

    def file(self, basename: str) -> Path:
        """Path of a file inside the working directory."""
        return self.path / basename

    def release(self) -> None:
        """Remove this upload's directory (working or published) and its contents."""
        shutil.rmtree(self.target if self.published else self.path, ignore_errors=True)


class StagingService:
    """
    Creates staged directories and writes uploads into them.

    Failures raise StagingError: a staging problem must never look like
    "no upload was sent".
    """

    def __init__(
        self,
        config: UploadCacheConfig,
        identifiers: Optional[IdentifierSource] = None
    ):
        self.config = config
        self.identifiers = identifiers or UuidIdentifierSource()

    def stage(self) -> StagedDirectory:
        """
        Create the working directory root/.staging-<identifier>/.

        Returns:
            The new directory

        Raises:
            UploadCacheConfigError: If the identifier source misbehaves
            StagingError: If the directory cannot be created
        """
        identifier = self.identifiers.next()
        if not is_identifier(identifier):
            raise UploadCacheConfigError(
                "Identifier source produced an unusable directory name",
                details={"identifier": identifier}
            )

        target = self.config.root / identifier
        path = self.config.root / staging_name(identifier)
        try:
            if target.exists():
                raise FileExistsError(f"{target} already exists")
            path.mkdir(parents=True)
        except OSError as e:
            logger.error("upload_stage_failed", path=str(target), error=str(e))
            raise StagingError("mkdir", str(target), str(e)) from e

        logger.debug("upload_directory_staged", identifier=identifier)
        return StagedDirectory(identifier=identifier, path=path, target=target)

    def write(self, staged: StagedDirectory, basename: str, source: Any) -> Path:
        """
        Persist the bytes of source and publish them as root/<identifier>/<basename>.

        A stream backed by a real file at position 0 is hard linked;
        anything else (or a failed link) is copied from its current
        position. The directory is released if writing or publishing fails.

        Returns:
            Path of the published file

        Raises:
            StagingError: If the bytes cannot be written
        """
        destination = staged.file(basename)

        try:
            if not self._link(source, destination):
                self._copy(source, destination)
        except (OSError, ValueError) as e:
            self._fail(staged, "write", destination, e)

        try:
            self._publish(staged)
        except OSError as e:
            self._fail(staged, "rename", staged.target, e)

        return staged.target / basename

    def _publish(self, staged: StagedDirectory) -> None:
        # rename() would silently replace an empty directory
        if staged.target.exists():
            raise FileExistsError(f"{staged.target} already exists")
        os.rename(staged.path, staged.target)
        staged.published = True

    def _fail(self, staged: StagedDirectory, operation: str, path: Path, error: Exception) -> None:
        logger.error(
            "upload_write_failed",
            operation=operation,
            path=str(path),
            error=str(error),
            error_type=type(error).__name__
        )
        staged.release()
        raise StagingError(operation, str(path), str(error)) from error

    def _link(self, source: Any, destination: Path) -> bool:
        origin = getattr(source, "name", None)
        if not isinstance(origin, (str, os.PathLike)) or not os.path.isfile(origin):
            return False

        try:
            if source.tell() != 0:
                return False
            os.link(origin, destination)
        except (OSError, AttributeError, ValueError) as e:
            logger.debug("upload_link_fallback", origin=str(origin), error=str(e))
            return False

        return True

    def _copy(self, source: Any, destination: Path) -> None:
        with open(destination, "wb") as out:
            while True:
                chunk = source.read(COPY_CHUNK_SIZE)
                if not chunk:
                    break
                if isinstance(chunk, str):
                    chunk = chunk.encode("utf-8")
                out.write(chunk)
