"""Repository transport: fetch artifact bytes from Maven 2 layout repositories.

Repositories are tried in priority order. ``http(s)://`` repositories go
through ``common.http_client.robust_get``; ``file://`` URLs and bare
directory paths are read straight from disk, which also lets an existing
local repository act as a mirror.
"""
from __future__ import annotations

import logging
import os
from typing import Iterable, List, Optional
from urllib.parse import urlsplit
from urllib.request import url2pathname

from constants import Constants
from coordinates.models import Coordinate
from errors import UnresolvedDependencyError
from common import http_client
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from .cache import artifact_path

logger = logging.getLogger(__name__)


def _is_remote(base: str) -> bool:
    return urlsplit(base).scheme in ("http", "https")


def _local_root(base: str) -> str:
    parts = urlsplit(base)
    if parts.scheme == "file":
        return url2pathname(parts.path)
    return os.path.expanduser(base)


class RepositoryTransport:
    """Fetch artifacts and metadata from an ordered list of repositories."""

    def __init__(self, repositories: Optional[Iterable[str]] = None):
        """Initialize the transport.

        Args:
            repositories: Base URLs or directories, highest priority first.
                Defaults to Maven Central.
        """
        repos = [r.strip().rstrip("/") for r in (repositories or []) if r and r.strip()]
        self._repositories: List[str] = repos or [Constants.REPOSITORY_URL_MAVEN]

    @property
    def repositories(self) -> List[str]:
        return list(self._repositories)

    def _get(self, base: str, relative: str) -> Optional[bytes]:
        """Read one relative path from one repository; None when absent."""
        if not _is_remote(base):
            path = os.path.join(_local_root(base), *relative.split("/"))
            if not os.path.isfile(path):
                return None
            with open(path, "rb") as handle:
                return handle.read()

        url = f"{base}/{relative}"
        status_code, _, body = http_client.robust_get(url)
        if status_code == 200:
            return body
        if status_code not in (0, 404):
            logger.warning("Unexpected HTTP %s from %s", status_code, safe_url(url))
        return None

    def fetch(self, coordinate: Coordinate, extension: Optional[str] = None) -> bytes:
        """Return the bytes of an artifact from the first repository that has it.

        Raises:
            UnresolvedDependencyError: no repository serves the artifact.
        """
        relative = artifact_path(coordinate, extension)
        for base in self._repositories:
            with Timer() as timer:
                data = self._get(base, relative)
            if is_debug_enabled(logger):
                logger.debug(
                    "Repository fetch",
                    extra=extra_context(
                        event="fetch",
                        component="transport",
                        outcome="found" if data is not None else "missing",
                        coordinate=coordinate.gav,
                        target=safe_url(base),
                        duration_ms=timer.duration_ms(),
                    )
                )
            if data is not None:
                return data
        raise UnresolvedDependencyError(
            coordinate,
            f"{relative} not found in {', '.join(safe_url(r) for r in self._repositories)}",
        )

    def fetch_metadata(self, group: str, artifact: str) -> Optional[str]:
        """Return ``maven-metadata.xml`` text for a group:artifact, or None."""
        relative = "/".join([group.replace(".", "/"), artifact, Constants.METADATA_FILE])
        for base in self._repositories:
            data = self._get(base, relative)
            if data is not None:
                return data.decode("utf-8", errors="replace")
        return None
