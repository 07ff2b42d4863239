"""Inspection of the root artifact: exploded directory or packaged zip.

Entry point candidates are ``__main__.py`` modules, the convention behind
``python -m package`` and zip applications. A candidate's identifier is the
dotted path of the package holding it; a ``__main__.py`` at the top of the
root is reported as ``__main__``. Directories that cannot be imported
(hidden, ``__pycache__``, ``*.dist-info``/``*.egg-info`` or names that are not
identifiers) are not searched.
"""
from __future__ import annotations

import logging
import os
import zipfile
from dataclasses import dataclass
from typing import List, Optional

from constants import ArchiveKind, Constants
from errors import AmbiguousEntryPointError, ArchiveError, NoEntryPointFoundError

logger = logging.getLogger(__name__)

ROOT_MAIN = "__main__"


@dataclass(frozen=True)
class RootArtifact:
    """The application's own artifact; always first on the run path."""
    path: str
    kind: ArchiveKind

    @property
    def is_directory(self) -> bool:
        return self.kind is ArchiveKind.DIRECTORY


def classify(path: str) -> ArchiveKind:
    """Return DIRECTORY or PACKAGED for an existing root artifact.

    Raises:
        FileNotFoundError: nothing exists at ``path``.
        ArchiveError: ``path`` is a file but not a zip archive.
    """
    if os.path.isdir(path):
        return ArchiveKind.DIRECTORY
    if not os.path.exists(path):
        raise FileNotFoundError(path)
    if not zipfile.is_zipfile(path):
        raise ArchiveError(f"{path} is neither a directory nor a zip archive")
    return ArchiveKind.PACKAGED


def open_root(path: str) -> RootArtifact:
    absolute = os.path.abspath(path)
    return RootArtifact(path=absolute, kind=classify(absolute))


def _zip_names(path: str) -> List[str]:
    with zipfile.ZipFile(path) as archive:
        return archive.namelist()


def list_entries(path: str) -> List[str]:
    """Sorted top-level entry names; directories carry a trailing ``/``."""
    if classify(path) is ArchiveKind.DIRECTORY:
        return sorted(
            name + "/" if os.path.isdir(os.path.join(path, name)) else name
            for name in os.listdir(path)
        )
    entries = set()
    for name in _zip_names(path):
        head, sep, _ = name.partition("/")
        entries.add(head + sep)
    return sorted(entries)
def read_bytes(root: RootArtifact, name: str) -> Optional[bytes]:
    """Return the raw content of a member of the root artifact, or None if absent."""
    if root.is_directory:
        member = os.path.join(root.path, *name.split("/"))
        if not os.path.isfile(member):
            return None
        with open(member, "rb") as handle:
            return handle.read()
    with zipfile.ZipFile(root.path) as archive:
        try:
            return archive.read(name)
        except KeyError:
            return None
        except KeyError:
            return None


def has_entry(root: RootArtifact, name: str) -> bool:
    """True if ``name`` is a directory (or file) inside the root artifact."""
    name = name.strip("/")
    if root.is_directory:
        return os.path.exists(os.path.join(root.path, *name.split("/")))
    prefix = name + "/"
    return any(n == name or n.startswith(prefix) for n in _zip_names(root.path))


def _searchable(directory: str) -> bool:
    return (
        directory.isidentifier()
        and directory != "__pycache__"
        and not directory.startswith(".")
    )


def _candidate(relative: str):
    """Map a ``/``-separated path to an entry point identifier, or None."""
    parts = relative.strip("/").split("/")
    if parts[-1] != Constants.ENTRY_POINT_MODULE:
        return None
    packages = parts[:-1]
    if not packages:
        return ROOT_MAIN
    if not all(_searchable(p) for p in packages):
        return None
    return ".".join(packages)


def entry_point_candidates(root: RootArtifact) -> List[str]:
    """All entry point identifiers found recursively in the root, sorted."""
    found = set()
    if root.is_directory:
        for current, dirs, files in os.walk(root.path):
            dirs[:] = [d for d in dirs if _searchable(d)]
            if Constants.ENTRY_POINT_MODULE in files:
                relative = os.path.relpath(os.path.join(current, Constants.ENTRY_POINT_MODULE), root.path)
                ident = _candidate(relative.replace(os.sep, "/"))
                if ident:
                    found.add(ident)
    else:
        for name in _zip_names(root.path):
            ident = _candidate(name)
            if ident:
                found.add(ident)
    return sorted(found)


def find_single_entry_point(root: RootArtifact) -> str:
    """Return the only entry point in ``root``.

    Raises:
        NoEntryPointFoundError: no candidate exists.
        AmbiguousEntryPointError: more than one candidate, all of them named.
    """
    candidates = entry_point_candidates(root)
    logger.debug("Entry point candidates in %s: %s", root.path, candidates)
    if not candidates:
        raise NoEntryPointFoundError(root.path)
    if len(candidates) > 1:
        raise AmbiguousEntryPointError(root.path, candidates)
    return candidates[0]
