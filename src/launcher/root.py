"""Locate the root artifact through an ordered list of fallback strategies.

Each strategy returns a filesystem path or ``None``; the first non-``None``
answer wins. Order: explicit remote coordinate, explicit local path,
conventional build outputs, the working directory.
"""
from __future__ import annotations

import logging
import os
import re
from typing import Callable, List, Optional
from urllib.parse import urlsplit
from urllib.request import url2pathname

from constants import ConfigKeys, Constants
from coordinates.parser import parse
from archive.inspector import RootArtifact, open_root
from .environment import LaunchEnvironment

logger = logging.getLogger(__name__)

Strategy = Callable[[LaunchEnvironment, str, Callable], Optional[str]]

_REMOTE_PREFIX = re.compile(r"^" + re.escape(Constants.ARCHIVE_PREFIX) + r"/*")


def from_coordinate(env: LaunchEnvironment, cwd: str, resolve_single) -> Optional[str]:
    """``thin.archive=maven://group:artifact:version`` resolved into the cache."""
    archive = env.text(ConfigKeys.ARCHIVE)
    if not archive or not archive.startswith(Constants.ARCHIVE_PREFIX):
        return None
    coordinate = parse(_REMOTE_PREFIX.sub("", archive))
    logger.debug("Resolving root artifact %s", coordinate.gav)
    return resolve_single(coordinate).path


def from_path(env: LaunchEnvironment, cwd: str, resolve_single) -> Optional[str]:
    """``thin.archive`` given as a path or ``file:`` URL."""
    archive = env.text(ConfigKeys.ARCHIVE)
    if not archive or archive.startswith(Constants.ARCHIVE_PREFIX):
        return None
    if archive.startswith("file:"):
        archive = url2pathname(urlsplit(archive).path)
    return os.path.join(cwd, os.path.expanduser(archive))


def _conventional(relative: str) -> Strategy:
    def strategy(env: LaunchEnvironment, cwd: str, resolve_single) -> Optional[str]:
        candidate = os.path.join(cwd, *relative.split("/"))
        return candidate if os.path.isdir(candidate) else None
    strategy.__name__ = f"conventional[{relative}]"
    return strategy


def from_working_directory(env: LaunchEnvironment, cwd: str, resolve_single) -> Optional[str]:
    return cwd


DEFAULT_STRATEGIES: List[Strategy] = (
    [from_coordinate, from_path]
    + [_conventional(d) for d in Constants.BUILD_OUTPUT_DIRS]
    + [from_working_directory]
)


def locate_root(env: LaunchEnvironment, resolve_single, cwd: Optional[str] = None,
                strategies: Optional[List[Strategy]] = None) -> RootArtifact:
    """Return the root artifact chosen by the first successful strategy.

    Raises:
        FileNotFoundError: an explicit path does not exist.
        ArchiveError: the chosen file is not a zip archive.
        UnresolvedDependencyError: a remote root coordinate cannot be fetched.
    """
    cwd = cwd or os.getcwd()
    for strategy in strategies or DEFAULT_STRATEGIES:
        path = strategy(env, cwd, resolve_single)
        if path is not None:
            logger.debug("Root artifact from %s: %s", strategy.__name__, path)
            return open_root(path)
    raise FileNotFoundError("no root artifact strategy produced a location")
