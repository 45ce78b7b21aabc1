"""Diff handling: parsing, batching and anchoring review comments."""

from .diff_parser import DiffParser, FileDiff, Hunk, Change, parse_diff
from .batch_scheduler import BatchScheduler, Batch, BatchUnit, create_batches
from .position_resolver import (
    ReviewSuggestion, AnchoredComment, normalize_line, resolve_position,
    resolve_in_hunks, resolve_in_batch, anchor_suggestions,
    anchor_batch_suggestions,
)
from .file_filter import (
    FileFilter, matches_pattern, parse_exclude_patterns, reviewable_files,
)

__all__ = [
    "DiffParser", "FileDiff", "Hunk", "Change", "parse_diff",
    "BatchScheduler", "Batch", "BatchUnit", "create_batches",
    "ReviewSuggestion", "AnchoredComment", "normalize_line",
    "resolve_position", "resolve_in_hunks", "resolve_in_batch",
    "anchor_suggestions", "anchor_batch_suggestions",
    "FileFilter", "matches_pattern", "parse_exclude_patterns",
    "reviewable_files",
]
