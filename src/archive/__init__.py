"""Root artifact inspection."""

from .inspector import (
    RootArtifact,
    classify,
    entry_point_candidates,
    find_single_entry_point,
    has_entry,
    list_entries,
    open_root,
    read_bytes,
)

__all__ = [
    "RootArtifact",
    "classify",
    "entry_point_candidates",
    "find_single_entry_point",
    "has_entry",
    "list_entries",
    "open_root",
    "read_bytes",
]
