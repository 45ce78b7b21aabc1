"""
File filtering: exclude-glob matching and removal of files that cannot
carry a review comment.
"""

from __future__ import annotations

import logging
import re

from .diff_parser import DEV_NULL, FileDiff

logger = logging.getLogger(__name__)


def _pattern_regex(pattern: str) -> re.Pattern:
    """``*`` matches any run (``/`` included), ``?`` one character."""
    escaped = re.escape(pattern).replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(f"^{escaped}$")


def matches_pattern(path: str, pattern: str) -> bool:
    return _pattern_regex(pattern).match(path) is not None


def parse_exclude_patterns(value: str | None) -> list[str]:
    """Split a comma-separated pattern list."""
    if not value or not value.strip():
        return []
    return [p.strip() for p in value.split(",") if p.strip()]


class FileFilter:
    """Drops files matching any exclude pattern."""

    def __init__(self, exclude_patterns: list[str] | None = None):
        self.exclude_patterns = list(exclude_patterns or [])
        self._regexes = [_pattern_regex(p) for p in self.exclude_patterns]

    def is_excluded(self, path: str) -> bool:
        return any(rx.match(path) for rx in self._regexes)

    def filter(self, files: list[FileDiff]) -> list[FileDiff]:
        if not self._regexes:
            return files

        kept = []
        for file in files:
            if self.is_excluded(file.path):
                logger.debug("[Filter] Excluding file: %s", file.path)
                continue
            kept.append(file)
        return kept


def reviewable_files(files: list[FileDiff]) -> list[FileDiff]:
    """Files with a real path and at least one non-empty hunk."""
    kept = []
    for file in files:
        if not file.path or file.path == DEV_NULL:
            logger.debug("[Filter] Skipping file without a path")
            continue
        if not any(hunk.changes for hunk in file.hunks):
            logger.debug("[Filter] Skipping %s: no hunks", file.path)
            continue
        kept.append(file)
    return kept
