"""Run-path assembly: root artifact first, then resolved dependencies."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from archive.inspector import RootArtifact
from coordinates.models import ResolvedArtifact


@dataclass(frozen=True)
class Location:
    """One run path entry.

    ``entry`` is set for a directory inside a packaged archive, which
    ``zipimport`` can load but which is not a filesystem path.
    """
    path: str
    entry: Optional[str] = None

    @property
    def is_file(self) -> bool:
        return self.entry is None

    def __str__(self) -> str:
        if self.entry is None:
            return self.path
        return os.path.join(self.path, *self.entry.strip("/").split("/"))


class RunPath(Sequence[Location]):
    """Ordered, duplicate-free list of code locations."""

    def __init__(self, locations: Iterable[Location]):
        self._locations: List[Location] = list(locations)

    def __getitem__(self, index):
        return self._locations[index]

    def __len__(self) -> int:
        return len(self._locations)

    def __repr__(self) -> str:
        return f"RunPath({[str(loc) for loc in self._locations]!r})"

    def entries(self) -> List[str]:
        """All locations as ``sys.path`` strings, archive entries included."""
        return [str(loc) for loc in self._locations]

    def classpath(self, separator: str = os.pathsep) -> str:
        """File-backed locations joined by ``separator``, no trailing separator."""
        return separator.join(loc.path for loc in self._locations if loc.is_file)


def _identity(location: Location):
    return os.path.realpath(location.path), location.entry


def assemble(root: RootArtifact, resolved: Sequence[ResolvedArtifact],
             extra: Sequence[str] = ()) -> RunPath:
    """Build the run path for a launch.

    ``root`` is always index 0, even with nothing resolved. ``extra`` lists
    locations inside the root (``path =`` manifest directives) and follows the
    root. Entries that canonicalize to the same file keep their first
    occurrence.
    """
    candidates = [Location(root.path)]
    for relative in extra:
        if root.is_directory:
            candidates.append(Location(os.path.join(root.path, *relative.strip("/").split("/"))))
        else:
            candidates.append(Location(root.path, entry=relative.strip("/")))
    candidates.extend(Location(artifact.path) for artifact in resolved)

    seen = set()
    locations = []
    for location in candidates:
        identity = _identity(location)
        if identity in seen:
            continue
        seen.add(identity)
        locations.append(location)
    return RunPath(locations)
