"""Error taxonomy for dependency resolution and launching.

Every fatal error carries the exit code the CLI reports for it, so the
process boundary can translate an exception into a status without a lookup
table.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from constants import ExitCodes


class ThinrunError(Exception):
    """Base class for launcher failures surfaced to the invoking process."""

    exit_code = ExitCodes.FILE_ERROR

    @property
    def kind(self) -> str:
        return type(self).__name__


class MalformedCoordinateError(ThinrunError):
    """Coordinate text does not match ``group:artifact[:version[:classifier]]``."""

    exit_code = ExitCodes.MANIFEST_ERROR

    def __init__(self, text: str, reason: str = "expected group:artifact[:version[:classifier]]"):
        self.text = text
        self.reason = reason
        super().__init__(f"malformed coordinate '{text}': {reason}")


class ManifestError(ThinrunError):
    """One or more manifest lines failed to parse.

    ``problems`` holds ``(line_number, line_text, reason)`` for every bad line,
    in file order.
    """

    exit_code = ExitCodes.MANIFEST_ERROR

    def __init__(self, problems: Iterable[Tuple[int, str, str]], source: Optional[str] = None):
        self.problems: List[Tuple[int, str, str]] = list(problems)
        self.source = source
        where = f" in {source}" if source else ""
        details = "; ".join(
            f"line {num}: '{text}' ({reason})" for num, text, reason in self.problems
        )
        super().__init__(f"{len(self.problems)} malformed line(s){where}: {details}")


class UnresolvedDependencyError(ThinrunError):
    """A coordinate could not be served from the cache or any repository."""

    exit_code = ExitCodes.RESOLUTION_ERROR

    def __init__(self, coordinate, reason: str = "not found"):
        self.coordinate = coordinate
        self.reason = reason
        super().__init__(f"cannot resolve {coordinate}: {reason}")


class ResolutionConflictError(ThinrunError):
    """The dependency graph contains a cycle no version override breaks."""

    exit_code = ExitCodes.RESOLUTION_ERROR

    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__("dependency cycle: " + " -> ".join(self.cycle))


class NoEntryPointFoundError(ThinrunError):
    exit_code = ExitCodes.ENTRY_POINT_ERROR

    def __init__(self, root: str):
        self.root = root
        super().__init__(f"no entry point found in {root}")


class AmbiguousEntryPointError(ThinrunError):
    """More than one entry point candidate; never resolved by picking one."""

    exit_code = ExitCodes.ENTRY_POINT_ERROR

    def __init__(self, root: str, candidates: Sequence[str]):
        self.root = root
        self.candidates = list(candidates)
        super().__init__(
            f"multiple entry points found in {root}: {', '.join(self.candidates)}"
        )


class ArchiveError(ThinrunError):
    """Root artifact exists but is neither a directory nor a readable archive."""

    exit_code = ExitCodes.FILE_ERROR
