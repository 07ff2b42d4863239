"""Descriptor (``.pom``) and ``maven-metadata.xml`` parsing."""
from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Tuple, Union

from packaging import version

from constants import Constants
from coordinates.models import Coordinate, DeclaredDependency

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")


def _local(tag: str) -> str:
    """Drop the XML namespace from a tag name."""
    return tag.rsplit("}", 1)[-1]


def _child(elem: ET.Element, name: str) -> Optional[ET.Element]:
    for child in elem:
        if _local(child.tag) == name:
            return child
    return None


def _children(elem: Optional[ET.Element], name: str) -> List[ET.Element]:
    if elem is None:
        return []
    return [child for child in elem if _local(child.tag) == name]


def _text(elem: ET.Element, name: str) -> Optional[str]:
    node = _child(elem, name)
    if node is None or node.text is None:
        return None
    value = node.text.strip()
    return value or None


def _interpolate(value: Optional[str], properties: Dict[str, str]) -> Optional[str]:
    if value is None:
        return None

    def _sub(match: "re.Match[str]") -> str:
        return properties.get(match.group(1), match.group(0))

    # Properties may reference each other; a few passes settle any chain.
    for _ in range(5):
        expanded = _PLACEHOLDER.sub(_sub, value)
        if expanded == value:
            break
        value = expanded
    return value


def parse_descriptor(text: Union[str, bytes], coordinate: Coordinate) -> List[DeclaredDependency]:
    """Return the dependencies declared by a descriptor, in document order.

    Only ``<project><dependencies>`` is read; ``dependencyManagement`` and
    parent descriptors are not consulted. Scopes are kept as written so the
    resolver can decide reachability.

    Raises:
        ET.ParseError: the descriptor is not well-formed XML.
    """
    project = ET.fromstring(text)
    properties: Dict[str, str] = {
        "project.version": coordinate.version or "",
        "version": coordinate.version or "",
        "project.groupId": coordinate.group,
        "groupId": coordinate.group,
        "project.artifactId": coordinate.artifact,
        "artifactId": coordinate.artifact,
    }
    props_elem = _child(project, "properties")
    if props_elem is not None:
        for prop in props_elem:
            if prop.text is not None:
                properties[_local(prop.tag)] = prop.text.strip()

    declared: List[DeclaredDependency] = []
    for dependency in _children(_child(project, "dependencies"), "dependency"):
        group = _interpolate(_text(dependency, "groupId"), properties)
        artifact = _interpolate(_text(dependency, "artifactId"), properties)
        if not group or not artifact:
            logger.warning("Skipping dependency without groupId/artifactId in %s", coordinate.gav)
            continue
        dep_version = _interpolate(_text(dependency, "version"), properties)
        if dep_version and "${" in dep_version:
            logger.warning(
                "Unresolved property in version of %s:%s declared by %s; using latest",
                group, artifact, coordinate.gav,
            )
            dep_version = None
        exclusions = []
        for exclusion in _children(_child(dependency, "exclusions"), "exclusion"):
            ex_group = _text(exclusion, "groupId") or "*"
            ex_artifact = _text(exclusion, "artifactId") or "*"
            exclusions.append(f"{ex_group}:{ex_artifact}")
        declared.append(DeclaredDependency(
            coordinate=Coordinate(
                group=group,
                artifact=artifact,
                version=dep_version,
                classifier=_interpolate(_text(dependency, "classifier"), properties),
                extension=_text(dependency, "type") or Constants.DEFAULT_EXTENSION,
                scope=_text(dependency, "scope") or "compile",
            ),
            exclusions=frozenset(exclusions),
            optional=(_text(dependency, "optional") or "").lower() == "true",
        ))
    return declared


def metadata_versions(text: str) -> List[str]:
    """Return versions listed in ``maven-metadata.xml`` in source order."""
    try:
        root = ET.fromstring(text)
    except ET.ParseError:
        return []
    versions = []
    for item in _children(_child(root, "versioning") if root is not None else None, "versions"):
        for ver in _children(item, "version"):
            if ver.text and ver.text.strip():
                versions.append(ver.text.strip())
    return versions


def metadata_release(text: str) -> Optional[str]:
    """Return ``<versioning><release>`` from ``maven-metadata.xml``, if set."""
    try:
        root = ET.fromstring(text)
    except ET.ParseError:
        return None
    versioning = _child(root, "versioning")
    if versioning is None:
        return None
    return _text(versioning, "release")


# Maven qualifier order; anything unknown sorts after "sp", alphabetically.
_QUALIFIER_RANK = {
    "alpha": 0, "a": 0,
    "beta": 1, "b": 1,
    "milestone": 2, "m": 2,
    "rc": 3, "cr": 3,
    "snapshot": 4,
    "": 5, "ga": 5, "final": 5, "release": 5,
    "sp": 6,
}
_RELEASE_RANK = 5
_UNKNOWN_RANK = 7
_TOKEN = re.compile(r"\d+|[a-z]+")


def _maven_key(candidate: str) -> List[Tuple[int, int, str]]:
    """Sort key following Maven's numeric-segments-then-qualifier ordering.

    Zero segments before a qualifier or the end are dropped, so ``1.0``,
    ``1.0.0`` and ``1.0.RELEASE`` compare equal; ``1.0-rc1`` is lower and
    ``1.0-sp1`` higher than all three.
    """
    tokens: List[Tuple[int, int, str]] = []

    def _trim() -> None:
        while tokens and tokens[-1] == (2, 0, ""):
            tokens.pop()

    for token in _TOKEN.findall(candidate.lower()):
        if token.isdigit():
            tokens.append((2, int(token), ""))
            continue
        _trim()
        rank = _QUALIFIER_RANK.get(token, _UNKNOWN_RANK)
        if rank != _RELEASE_RANK:
            tokens.append((1, rank, token if rank == _UNKNOWN_RANK else ""))
    _trim()
    tokens.append((1, _RELEASE_RANK, ""))
    return tokens


def pick_latest(candidates: List[str]) -> Optional[str]:
    """Pick the highest release, falling back to SNAPSHOTs only if nothing else exists.

    PEP 440 ordering is used when every candidate parses; versions such as
    ``32.1.3-jre`` or ``5.3.1.RELEASE`` switch the whole pool to Maven ordering.
    """
    stable = [v for v in candidates if not v.endswith("-SNAPSHOT")]
    pool = stable or list(candidates)
    if not pool:
        return None
    try:
        parsed = [(version.Version(v.replace("-SNAPSHOT", ".dev0")), v) for v in pool]
    except version.InvalidVersion:
        return max(pool, key=_maven_key)
    return max(parsed, key=lambda item: item[0])[1]
