"""Data models for coordinates, declared dependencies and resolved artifacts."""

from dataclasses import dataclass, field, replace
from typing import FrozenSet, List, Optional

from constants import Constants


@dataclass(frozen=True)
class Coordinate:
    """Structured identifier for a dependency.

    ``version`` is ``None`` for a ``group:artifact`` coordinate that still
    needs its latest release looked up.
    """
    group: str
    artifact: str
    version: Optional[str] = None
    classifier: Optional[str] = None
    extension: str = Constants.DEFAULT_EXTENSION
    scope: str = Constants.DEFAULT_SCOPE

    @property
    def key(self) -> str:
        """Conflict key: two coordinates with the same key are one dependency."""
        return f"{self.group}:{self.artifact}:{self.classifier or ''}"

    @property
    def gav(self) -> str:
        parts = [self.group, self.artifact]
        if self.version:
            parts.append(self.version)
            if self.classifier:
                parts.append(self.classifier)
        return ":".join(parts)

    def with_version(self, version: str) -> "Coordinate":
        return replace(self, version=version)

    def matches(self, pattern: str) -> bool:
        """Match a ``group:artifact`` exclusion pattern; ``*`` matches any part."""
        group, _, artifact = pattern.partition(":")
        return (group in ("*", self.group)) and (artifact in ("*", "", self.artifact))

    def __str__(self) -> str:
        return self.gav


@dataclass(frozen=True)
class DeclaredDependency:
    """A coordinate as written in a manifest or descriptor."""
    coordinate: Coordinate
    exclusions: FrozenSet[str] = frozenset()
    optional: bool = False
    line: Optional[int] = None

    @property
    def runtime(self) -> bool:
        return self.coordinate.scope in Constants.RUNTIME_SCOPES


@dataclass(frozen=True)
class ResolvedArtifact:
    """Coordinate paired with a confirmed local file."""
    coordinate: Coordinate
    path: str


@dataclass
class Manifest:
    """Parsed root manifest: dependencies plus root-level directives."""
    dependencies: List[DeclaredDependency] = field(default_factory=list)
    main: Optional[str] = None
    paths: List[str] = field(default_factory=list)
    source: Optional[str] = None
