"""
Position resolver: maps a line of text quoted by the model back onto its
1-based diff position, accepting only exact (whitespace-normalised)
matches against added lines.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .batch_scheduler import Batch
from .diff_parser import ADDITION, Hunk

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewSuggestion:
    """One ``{lineContent, reviewComment}`` pair returned by the model."""
    line_content: str
    comment: str


@dataclass(frozen=True)
class AnchoredComment:
    """A review comment pinned to a diff position."""
    path: str
    position: int
    body: str

    def to_dict(self) -> dict:
        return {"path": self.path, "position": self.position, "body": self.body}


def normalize_line(text: str) -> str:
    """Trim and collapse whitespace runs to a single space."""
    return " ".join(text.split())


def _normalized_candidate(candidate: str) -> str | None:
    if not candidate or not candidate.strip().startswith("+"):
        return None
    return normalize_line(candidate)


def _find_in_hunk(normalized: str, hunk: Hunk) -> int | None:
    for position, change in enumerate(hunk.changes, 1):
        if change.kind == ADDITION and normalize_line(change.line) == normalized:
            return position
    return None


def resolve_position(candidate: str, hunk: Hunk) -> int | None:
    """Return the diff position of *candidate* in *hunk*, or ``None``.

    Only candidates starting with ``+`` are considered, and they can only
    match added lines.
    """
    normalized = _normalized_candidate(candidate)
    if normalized is None:
        return None
    return _find_in_hunk(normalized, hunk)


def resolve_in_hunks(candidate: str, hunks: list[Hunk]) -> tuple[int, Hunk] | None:
    """Resolve across the hunks of one file; the first matching hunk wins."""
    normalized = _normalized_candidate(candidate)
    if normalized is None:
        return None
    for hunk in hunks:
        position = _find_in_hunk(normalized, hunk)
        if position is not None:
            return position, hunk
    return None


def resolve_in_batch(candidate: str, batch: Batch) -> tuple[str, int] | None:
    """Resolve across every file of a batch, in batch order."""
    for unit in batch.units:
        found = resolve_in_hunks(candidate, list(unit.hunks))
        if found is not None:
            return unit.path, found[0]
    return None


def anchor_suggestions(path: str, hunks: list[Hunk],
                       suggestions: list[ReviewSuggestion]) -> list[AnchoredComment]:
    """Turn suggestions for one file into anchored comments."""
    comments: list[AnchoredComment] = []
    for suggestion in suggestions:
        if not suggestion.line_content.strip().startswith("+"):
            logger.warning(
                "[Resolver] Skipping suggestion on non-added line: %r",
                suggestion.line_content,
            )
            continue
        found = resolve_in_hunks(suggestion.line_content, hunks)
        if found is None:
            logger.warning(
                "[Resolver] Line not found in %s, skipping: %r",
                path, suggestion.line_content,
            )
            continue
        comments.append(AnchoredComment(path=path, position=found[0], body=suggestion.comment))
    return comments


def anchor_batch_suggestions(batch: Batch,
                             suggestions: list[ReviewSuggestion]) -> list[AnchoredComment]:
    """Turn suggestions for a whole batch into anchored comments."""
    comments: list[AnchoredComment] = []
    for suggestion in suggestions:
        if not suggestion.line_content.strip().startswith("+"):
            logger.warning(
                "[Resolver] Skipping suggestion on non-added line: %r",
                suggestion.line_content,
            )
            continue
        found = resolve_in_batch(suggestion.line_content, batch)
        if found is None:
            logger.warning(
                "[Resolver] Line not found in any batch file, skipping: %r",
                suggestion.line_content,
            )
            continue
        path, position = found
        comments.append(AnchoredComment(path=path, position=position, body=suggestion.comment))
        logger.debug("[Resolver] Comment for %s:%d: %s", path, position, suggestion.comment[:100])
    return comments
