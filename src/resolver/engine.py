"""Transitive dependency resolution.

Expansion is breadth-first, one depth level at a time. Conflicts between
versions of the same ``group:artifact:classifier`` are settled by an explicit
policy rather than by dict insertion order:

* nearest wins: the declaration at the shallowest depth fixes the version;
* first declared wins among declarations at the same depth, where "first"
  follows parent order, then the parent's own declaration order.

Deeper conflicting declarations are dropped without error. Artifacts and
descriptors for the nodes of one level are materialized concurrently on a
bounded worker pool; an in-flight map keyed by coordinate guarantees at most
one fetch and one cache write per coordinate for the lifetime of a resolver.
"""
from __future__ import annotations

import logging
import threading
import xml.etree.ElementTree as ET
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from constants import Constants
from coordinates.models import Coordinate, DeclaredDependency, ResolvedArtifact
from errors import ResolutionConflictError, UnresolvedDependencyError
from common.logging_utils import extra_context, is_debug_enabled, Timer
from .cache import ArtifactCache
from .descriptor import metadata_release, metadata_versions, parse_descriptor, pick_latest
from .transport import RepositoryTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Node:
    """A dependency reached at a given depth along one path."""
    coordinate: Coordinate
    depth: int
    ancestors: Tuple[Coordinate, ...] = ()
    exclusions: FrozenSet[str] = frozenset()

    def excludes(self, coordinate: Coordinate) -> bool:
        return any(coordinate.matches(pattern) for pattern in self.exclusions)


class ArtifactResolver:
    """Resolve declared dependencies into cached local files."""

    def __init__(self, cache: ArtifactCache, transport: Optional[RepositoryTransport] = None,
                 workers: int = Constants.DEFAULT_WORKERS):
        self._cache = cache
        self._transport = transport or RepositoryTransport()
        self._workers = max(1, int(workers))
        self._inflight: Dict[str, "Future[Optional[str]]"] = {}
        self._lock = threading.Lock()
        self.fetch_count = 0

    @property
    def cache(self) -> ArtifactCache:
        return self._cache

    # ----- single coordinate --------------------------------------------

    def _is_known_absent(self, coordinate: Coordinate, extension: str) -> bool:
        return self._cache.lookup(coordinate, extension + Constants.ABSENT_MARKER_SUFFIX) is not None

    def _download(self, coordinate: Coordinate, extension: str, required: bool) -> Optional[str]:
        try:
            data = self._transport.fetch(coordinate, extension)
        except UnresolvedDependencyError:
            if required:
                raise
            self._cache.store(coordinate, b"", extension + Constants.ABSENT_MARKER_SUFFIX)
            return None
        finally:
            with self._lock:
                self.fetch_count += 1
        return self._cache.store(coordinate, data, extension)

    def _obtain(self, coordinate: Coordinate, extension: str, allow_remote_fetch: bool,
                required: bool = True) -> Optional[str]:
        """Return the cached path of one file, fetching it at most once.

        ``required=False`` turns a missing file into ``None`` instead of
        ``UnresolvedDependencyError``; descriptors are optional. A missing
        optional file leaves an empty ``<ext>.none`` marker in the cache so
        later resolutions do not ask the repositories again.
        """
        hit = self._cache.lookup(coordinate, extension)
        if hit is not None:
            return hit
        if not required and self._is_known_absent(coordinate, extension):
            return None
        if not allow_remote_fetch:
            if required:
                raise UnresolvedDependencyError(coordinate, "not cached and remote fetch is disabled")
            return None

        key = f"{coordinate.gav}@{extension}"
        with self._lock:
            future = self._inflight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._inflight[key] = future
        if not owner:
            path = future.result()
            if path is None and required:
                raise UnresolvedDependencyError(coordinate)
            return path

        try:
            # Another launcher process may have populated the entry meanwhile.
            path = self._cache.lookup(coordinate, extension)
            if path is None:
                path = self._download(coordinate, extension, required)
        except BaseException as exc:
            future.set_exception(exc)
            raise
        future.set_result(path)
        return path

    def _pin_version(self, coordinate: Coordinate, allow_remote_fetch: bool) -> Coordinate:
        """Fix the version of a ``group:artifact`` coordinate.

        A cached version is preferred so a warm cache needs no network access;
        otherwise the metadata's ``<release>``, then the highest listed release.
        """
        if coordinate.version:
            return coordinate
        cached = pick_latest(self._cache.cached_versions(coordinate))
        if cached:
            return coordinate.with_version(cached)
        if not allow_remote_fetch:
            raise UnresolvedDependencyError(coordinate, "no cached version and remote fetch is disabled")
        with self._lock:
            self.fetch_count += 1
        text = self._transport.fetch_metadata(coordinate.group, coordinate.artifact)
        latest = (metadata_release(text) or pick_latest(metadata_versions(text))) if text else None
        if not latest:
            raise UnresolvedDependencyError(coordinate, "no versions listed in repository metadata")
        logger.debug("Pinned %s to latest version %s", coordinate.gav, latest)
        return coordinate.with_version(latest)

    def resolve_single(self, coordinate: Coordinate, allow_remote_fetch: bool = True) -> ResolvedArtifact:
        """Resolve one artifact without expanding its dependencies."""
        pinned = self._pin_version(coordinate, allow_remote_fetch)
        path = self._obtain(pinned, pinned.extension, allow_remote_fetch)
        return ResolvedArtifact(coordinate=pinned, path=path)

    # ----- transitive resolution -----------------------------------------

    def _children(self, coordinate: Coordinate, allow_remote_fetch: bool) -> List[DeclaredDependency]:
        path = self._obtain(coordinate, Constants.DESCRIPTOR_EXTENSION, allow_remote_fetch, required=False)
        if path is None:
            logger.warning("No descriptor for %s; assuming no dependencies", coordinate.gav)
            return []
        with open(path, "rb") as handle:
            data = handle.read()
        try:
            # Bytes so the XML declaration picks the encoding.
            return parse_descriptor(data, coordinate)
        except (ET.ParseError, ValueError, LookupError) as exc:
            raise UnresolvedDependencyError(coordinate, f"unreadable descriptor: {exc}") from exc

    def _materialize(self, node: _Node, allow_remote_fetch: bool) -> Tuple[str, List[DeclaredDependency]]:
        coordinate = node.coordinate
        path = self._obtain(coordinate, coordinate.extension, allow_remote_fetch)
        return path, self._children(coordinate, allow_remote_fetch)

    @staticmethod
    def _check_cycle(node: _Node) -> None:
        coordinate = node.coordinate
        for ancestor in node.ancestors:
            if ancestor.key == coordinate.key and coordinate.version in (None, ancestor.version):
                chain = [a.gav for a in node.ancestors] + [coordinate.gav]
                raise ResolutionConflictError(chain)

    def resolve(self, roots: Iterable[DeclaredDependency],
                allow_remote_fetch: bool = True) -> List[ResolvedArtifact]:
        """Resolve the transitive closure of ``roots``.

        Returns:
            Resolved artifacts in order of first resolution.

        Raises:
            UnresolvedDependencyError: a surviving node is neither cached nor
                fetchable.
            ResolutionConflictError: a dependency cycle back to the same
                version of an ancestor.
        """
        selected: Dict[str, Coordinate] = {}
        resolved: List[ResolvedArtifact] = []
        level = [
            _Node(coordinate=dep.coordinate, depth=0, exclusions=dep.exclusions)
            for dep in roots if dep.runtime
        ]

        with Timer() as timer, ThreadPoolExecutor(max_workers=self._workers,
                                                  thread_name_prefix="thinrun-fetch") as pool:
            while level:
                accepted: List[_Node] = []
                for node in level:
                    self._check_cycle(node)
                    key = node.coordinate.key
                    if key in selected:
                        if is_debug_enabled(logger) and node.coordinate.version != selected[key].version:
                            logger.debug(
                                "Version conflict: %s overridden by %s",
                                node.coordinate.gav, selected[key].gav,
                                extra=extra_context(event="conflict", component="resolver",
                                                    outcome="nearest_wins", depth=node.depth),
                            )
                        continue
                    pinned = self._pin_version(node.coordinate, allow_remote_fetch)
                    selected[key] = pinned
                    accepted.append(_Node(pinned, node.depth, node.ancestors, node.exclusions))

                results = list(pool.map(lambda n: self._materialize(n, allow_remote_fetch), accepted))

                level = []
                for node, (path, children) in zip(accepted, results):
                    resolved.append(ResolvedArtifact(coordinate=node.coordinate, path=path))
                    for child in children:
                        if not child.runtime or child.optional:
                            continue
                        if node.excludes(child.coordinate):
                            logger.debug("Excluded %s below %s", child.coordinate.gav, node.coordinate.gav)
                            continue
                        level.append(_Node(
                            coordinate=child.coordinate,
                            depth=node.depth + 1,
                            ancestors=node.ancestors + (node.coordinate,),
                            exclusions=node.exclusions | child.exclusions,
                        ))

        logger.debug(
            "Resolution complete",
            extra=extra_context(event="resolve", component="resolver", outcome="success",
                                count=len(resolved), duration_ms=timer.duration_ms()),
        )
        return resolved
