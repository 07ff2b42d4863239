"""Persistent on-disk artifact cache.

Files live under ``<root>/repository`` in the Maven 2 layout so a cache can
be shared with, or seeded from, an existing local repository. Writes are
atomic: data goes to a temporary file in the destination directory which is
then renamed into place, so concurrent launcher processes never observe a
partially written artifact.
"""

from __future__ import annotations

import logging
import os
import tempfile
from typing import List, Optional

from constants import Constants
from coordinates.models import Coordinate
from common.logging_utils import extra_context, is_debug_enabled

logger = logging.getLogger(__name__)


def artifact_path(coordinate: Coordinate, extension: Optional[str] = None) -> str:
    """Relative layout path for a coordinate, using ``/`` separators."""
    if not coordinate.version:
        raise ValueError(f"coordinate {coordinate.gav} has no version")
    ext = extension or coordinate.extension
    name = f"{coordinate.artifact}-{coordinate.version}"
    if coordinate.classifier:
        name = f"{name}-{coordinate.classifier}"
    return "/".join([
        coordinate.group.replace(".", "/"),
        coordinate.artifact,
        coordinate.version,
        f"{name}.{ext}",
    ])


def default_cache_root() -> str:
    return os.path.expanduser(Constants.DEFAULT_CACHE_ROOT)


class ArtifactCache:
    """Coordinate-keyed file cache.

    The cache is the only component that writes below its root.
    """

    def __init__(self, root: Optional[str] = None):
        """Initialize the cache.

        Args:
            root: Cache root directory. Defaults to ``~/.thinrun``.
        """
        self._root = os.path.abspath(os.path.expanduser(root or default_cache_root()))
        self._repository = os.path.join(self._root, Constants.CACHE_REPOSITORY_DIR)

    @property
    def root(self) -> str:
        return self._root

    @property
    def repository(self) -> str:
        return self._repository

    def path_for(self, coordinate: Coordinate, extension: Optional[str] = None) -> str:
        """Absolute cache location of a coordinate (may not exist yet)."""
        relative = artifact_path(coordinate, extension)
        return os.path.join(self._repository, *relative.split("/"))

    def lookup(self, coordinate: Coordinate, extension: Optional[str] = None) -> Optional[str]:
        """Return the cached file for a coordinate, or None on a miss."""
        path = self.path_for(coordinate, extension)
        hit = os.path.isfile(path)
        if is_debug_enabled(logger):
            logger.debug(
                "Cache lookup",
                extra=extra_context(
                    event="cache_hit" if hit else "cache_miss",
                    component="cache",
                    coordinate=coordinate.gav,
                    target=path,
                )
            )
        return path if hit else None

    def cached_versions(self, coordinate: Coordinate) -> List[str]:
        """Versions of a group:artifact that already hold the coordinate's file."""
        base = os.path.join(self._repository, *coordinate.group.split("."), coordinate.artifact)
        if not os.path.isdir(base):
            return []
        versions = []
        for entry in sorted(os.listdir(base)):
            if self.lookup(coordinate.with_version(entry)) is not None:
                versions.append(entry)
        return versions

    def store(self, coordinate: Coordinate, data: bytes, extension: Optional[str] = None) -> str:
        """Atomically write ``data`` as the cache entry for a coordinate.

        Returns:
            The final path of the cached file.
        """
        path = self.path_for(coordinate, extension)
        directory = os.path.dirname(path)
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".tmp-", dir=directory)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logger.debug(
            "Cache store",
            extra=extra_context(
                event="cache_store",
                component="cache",
                coordinate=coordinate.gav,
                target=path,
                count=len(data),
            )
        )
        return path
