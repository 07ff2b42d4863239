"""Dependency resolution against remote repositories with a local file cache.

- cache.py: coordinate-keyed on-disk cache with atomic writes
- transport.py: artifact and metadata fetches from http(s) or file repositories
- descriptor.py: ``.pom`` descriptor and ``maven-metadata.xml`` parsing
- engine.py: breadth-first transitive resolution with nearest-wins conflicts
"""

from .cache import ArtifactCache, artifact_path, default_cache_root
from .transport import RepositoryTransport
from .engine import ArtifactResolver

__all__ = [
    "ArtifactCache",
    "ArtifactResolver",
    "RepositoryTransport",
    "artifact_path",
    "default_cache_root",
]
