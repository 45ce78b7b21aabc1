"""
Batch scheduler: groups file diffs into size-bounded batches so several
files can be reviewed in one model call.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from .diff_parser import FileDiff, Hunk

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILES_PER_BATCH = 10
DEFAULT_MAX_TOKENS_PER_BATCH = 12000
# Conservative proxy for code: fewer chars per token than prose
DEFAULT_CHARS_PER_TOKEN = 3.5


@dataclass(frozen=True)
class BatchUnit:
    """A file prepared for grouped submission."""
    path: str
    content: str
    estimated_tokens: int
    hunks: tuple[Hunk, ...]
    full_content: str | None = None


@dataclass(frozen=True)
class Batch:
    """Files reviewed together in one call."""
    units: tuple[BatchUnit, ...]
    total_estimated_tokens: int

    def __len__(self) -> int:
        return len(self.units)

    @property
    def paths(self) -> list[str]:
        return [unit.path for unit in self.units]


def combine_hunks(hunks: list[Hunk]) -> str:
    """Flatten the non-empty hunks of a file into one blob."""
    return "\n\n".join(
        "\n".join(hunk.lines) for hunk in hunks if hunk.changes
    )


def estimate_tokens(content: str, chars_per_token: float = DEFAULT_CHARS_PER_TOKEN) -> int:
    return math.ceil(len(content) / chars_per_token)


def create_batches(
    files: list[FileDiff],
    max_files_per_batch: int = DEFAULT_MAX_FILES_PER_BATCH,
    max_tokens_per_batch: int = DEFAULT_MAX_TOKENS_PER_BATCH,
    chars_per_token: float = DEFAULT_CHARS_PER_TOKEN,
    file_contents: dict[str, str] | None = None,
) -> list[Batch]:
    """Partition *files* into batches, preserving order.

    A batch is closed before a file that would push it past either cap.
    A file that alone exceeds the token cap still gets its own batch.
    """
    file_contents = file_contents or {}
    batches: list[Batch] = []
    current: list[BatchUnit] = []
    current_tokens = 0

    def flush() -> None:
        batches.append(Batch(units=tuple(current), total_estimated_tokens=current_tokens))

    for file in files:
        content = combine_hunks(file.hunks)
        tokens = estimate_tokens(content, chars_per_token)

        would_exceed_tokens = current_tokens + tokens > max_tokens_per_batch
        would_exceed_size = len(current) >= max_files_per_batch
        if (would_exceed_tokens or would_exceed_size) and current:
            flush()
            current = []
            current_tokens = 0

        current.append(BatchUnit(
            path=file.path,
            content=content,
            estimated_tokens=tokens,
            hunks=tuple(file.hunks),
            full_content=file_contents.get(file.path),
        ))
        current_tokens += tokens

    if current:
        flush()

    logger.info("[Batch] Created %d batches from %d files", len(batches), len(files))
    for i, batch in enumerate(batches, 1):
        logger.debug(
            "[Batch] Batch %d: %d files, ~%d tokens",
            i, len(batch), batch.total_estimated_tokens,
        )
    return batches


class BatchScheduler:
    """Batching policy: when to batch, and how to cut the batches."""

    def __init__(self, max_files_per_batch: int = DEFAULT_MAX_FILES_PER_BATCH,
                 max_tokens_per_batch: int = DEFAULT_MAX_TOKENS_PER_BATCH,
                 chars_per_token: float = DEFAULT_CHARS_PER_TOKEN,
                 file_threshold: int = 2, hunk_threshold: int = 5):
        self.max_files_per_batch = max(1, max_files_per_batch)
        self.max_tokens_per_batch = max_tokens_per_batch
        self.chars_per_token = chars_per_token if chars_per_token > 0 else DEFAULT_CHARS_PER_TOKEN
        self.file_threshold = file_threshold
        self.hunk_threshold = hunk_threshold

    @classmethod
    def from_config(cls, cfg) -> "BatchScheduler":
        return cls(
            max_files_per_batch=cfg.MAX_FILES_PER_BATCH,
            max_tokens_per_batch=cfg.MAX_TOKENS_PER_BATCH,
            chars_per_token=cfg.CHARS_PER_TOKEN,
            file_threshold=cfg.BATCHING_FILE_THRESHOLD,
            hunk_threshold=cfg.BATCHING_HUNK_THRESHOLD,
        )

    def should_use_batching(self, files: list[FileDiff]) -> bool:
        """Batch only when there are enough files *and* enough hunks."""
        if len(files) <= self.file_threshold:
            return False
        total_hunks = sum(len(f.hunks) for f in files)
        return total_hunks > self.hunk_threshold

    def create_batches(self, files: list[FileDiff],
                       file_contents: dict[str, str] | None = None) -> list[Batch]:
        return create_batches(
            files,
            max_files_per_batch=self.max_files_per_batch,
            max_tokens_per_batch=self.max_tokens_per_batch,
            chars_per_token=self.chars_per_token,
            file_contents=file_contents,
        )
