"""Coordinate and manifest parsing.

Manifest grammar, one entry per line::

    # comment
    main = myapp.cli:main
    path = lib
    org.example:core:1.2.0
    org.example:extras:1.0:linux; scope=runtime; exclude=org.legacy:*,org.x:y
    org.example:plugin:2.0; optional

Parsing never stops at the first bad line; every problem is collected and
reported together in a single ``ManifestError``.
"""
from __future__ import annotations

import logging
import os
from typing import Iterable, List, Optional, Tuple, Union

from constants import Constants
from errors import MalformedCoordinateError, ManifestError
from .models import Coordinate, DeclaredDependency, Manifest

logger = logging.getLogger(__name__)

_DIRECTIVES = ("main", "path")
_KNOWN_SCOPES = ("compile", "runtime", "provided", "test", "system", "import")


def parse(text: str, scope: str = Constants.DEFAULT_SCOPE,
          extension: str = Constants.DEFAULT_EXTENSION) -> Coordinate:
    """Parse ``group:artifact[:version[:classifier]]`` into a Coordinate.

    Raises:
        MalformedCoordinateError: fewer than two or more than four segments,
            an empty segment, or whitespace inside a segment.
    """
    if text is None:
        raise MalformedCoordinateError("", "empty coordinate")
    raw = text.strip()
    if not raw:
        raise MalformedCoordinateError(text, "empty coordinate")
    segments = raw.split(":")
    if len(segments) < 2:
        raise MalformedCoordinateError(text, "expected at least group:artifact")
    if len(segments) > 4:
        raise MalformedCoordinateError(text, "too many segments")
    for segment in segments:
        if not segment:
            raise MalformedCoordinateError(text, "empty segment")
        if any(ch.isspace() for ch in segment):
            raise MalformedCoordinateError(text, "whitespace inside segment")

    group, artifact = segments[0], segments[1]
    version = segments[2] if len(segments) > 2 else None
    classifier = segments[3] if len(segments) > 3 else None
    return Coordinate(
        group=group,
        artifact=artifact,
        version=version,
        classifier=classifier,
        extension=extension,
        scope=scope,
    )


def _parse_exclusions(value: str) -> Tuple[str, ...]:
    patterns = []
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        group, sep, artifact = item.partition(":")
        if not sep or not group or not artifact or ":" in artifact:
            raise ValueError(f"bad exclusion '{item}', expected group:artifact")
        patterns.append(item)
    return tuple(patterns)


def _parse_dependency_line(text: str, number: int) -> DeclaredDependency:
    """Parse a single coordinate line with its ``;``-separated attributes."""
    head, *attributes = [part.strip() for part in text.split(";")]
    scope = Constants.DEFAULT_SCOPE
    exclusions: Tuple[str, ...] = ()
    optional = False
    for attribute in attributes:
        if not attribute:
            continue
        name, sep, value = (p.strip() for p in attribute.partition("="))
        if name == "optional" and not sep:
            optional = True
        elif name == "scope" and value:
            if value not in _KNOWN_SCOPES:
                raise ValueError(f"unknown scope '{value}'")
            scope = value
        elif name == "exclude" and value:
            exclusions = _parse_exclusions(value)
        else:
            raise ValueError(f"unknown attribute '{attribute}'")
    coordinate = parse(head, scope=scope)
    return DeclaredDependency(
        coordinate=coordinate,
        exclusions=frozenset(exclusions),
        optional=optional,
        line=number,
    )


def _read_lines(source: Union[str, os.PathLike, Iterable[str]]) -> Tuple[List[str], Optional[str]]:
    if isinstance(source, (str, os.PathLike)):
        with open(source, encoding="utf-8") as handle:
            return handle.read().splitlines(), os.fspath(source)
    return [line.rstrip("\r\n") for line in source], None


def read_manifest(source: Union[str, os.PathLike, Iterable[str]],
                  origin: Optional[str] = None) -> Manifest:
    """Parse a manifest file (path) or an iterable of lines into a Manifest.

    Raises:
        ManifestError: naming every malformed line, in file order.
    """
    lines, path = _read_lines(source)
    manifest = Manifest(source=origin or path)
    problems: List[Tuple[int, str, str]] = []

    for number, raw in enumerate(lines, start=1):
        text = raw.strip()
        if not text or text.startswith("#"):
            continue
        name, sep, value = text.partition("=")
        if sep and name.strip() in _DIRECTIVES:
            name, value = name.strip(), value.strip()
            if not value:
                problems.append((number, text, f"empty '{name}' directive"))
            elif name == "main":
                if manifest.main is not None:
                    problems.append((number, text, "duplicate 'main' directive"))
                else:
                    manifest.main = value
            else:
                manifest.paths.append(value)
            continue
        try:
            manifest.dependencies.append(_parse_dependency_line(text, number))
        except MalformedCoordinateError as exc:
            problems.append((number, text, exc.reason))
        except ValueError as exc:
            problems.append((number, text, str(exc)))

    if problems:
        raise ManifestError(problems, source=manifest.source)
    logger.debug("Parsed manifest %s: %d dependencies",
                 manifest.source or "<lines>", len(manifest.dependencies))
    return manifest


def parse_manifest(source: Union[str, os.PathLike, Iterable[str]]) -> List[DeclaredDependency]:
    """Return the ordered declared dependencies of a manifest."""
    return read_manifest(source).dependencies
