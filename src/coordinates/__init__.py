"""Dependency coordinates and the manifest that declares them."""

from .models import Coordinate, DeclaredDependency, Manifest, ResolvedArtifact
from .parser import parse, parse_manifest, read_manifest

__all__ = [
    "Coordinate",
    "DeclaredDependency",
    "Manifest",
    "ResolvedArtifact",
    "parse",
    "parse_manifest",
    "read_manifest",
]
