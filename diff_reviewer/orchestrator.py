"""
Orchestrator: turns parsed file diffs into anchored review comments,
choosing between batch and per-file review and falling back to per-file
review when a batch yields nothing.
"""

from .cli_display import log
from .invoker import ResilientInvoker
from .prompts import ReviewContext, build_batch_prompt, build_single_prompt, format_file_diff
from .review.batch_scheduler import Batch, BatchScheduler
from .review.diff_parser import FileDiff, Hunk
from .review.position_resolver import (
    AnchoredComment, anchor_batch_suggestions, anchor_suggestions,
)


class ReviewOrchestrator:
    """Runs one review pass over a set of file diffs, sequentially."""

    def __init__(self, invoker: ResilientInvoker, scheduler: BatchScheduler | None = None,
                 context: ReviewContext | None = None,
                 file_contents: dict[str, str] | None = None):
        self.invoker = invoker
        self.scheduler = scheduler or BatchScheduler()
        self.context = context or ReviewContext()
        self.file_contents = file_contents or {}

    def review(self, files: list[FileDiff]) -> list[AnchoredComment]:
        """Review *files* and return comments in input order."""
        log.info(f"[Review] Starting analysis of {len(files)} files")
        if not files:
            return []
        if self.scheduler.should_use_batching(files):
            return self._review_batches(files)
        log.info("[Review] Using individual file processing mode")
        return self._review_individually([(f.path, list(f.hunks)) for f in files])

    # ── Batch mode ──

    def _review_batches(self, files: list[FileDiff]) -> list[AnchoredComment]:
        log.info("[Review] Using batch processing mode")
        batches = self.scheduler.create_batches(files, self.file_contents)
        comments: list[AnchoredComment] = []

        for i, batch in enumerate(batches, 1):
            log.info(f"[Review] Processing batch {i}/{len(batches)} ({len(batch)} files)")
            try:
                batch_comments = self._review_batch(batch)
            except Exception as e:
                log.error(f"[Review] Error processing batch {i}: {e}")
                batch_comments = None

            if batch_comments is None:
                log.warning(f"[Review] Falling back to individual processing for batch {i}")
                fallback = self._review_individually(
                    [(unit.path, list(unit.hunks)) for unit in batch.units])
                log.info(f"[Review] Batch {i} fallback generated {len(fallback)} comments")
                comments.extend(fallback)
            else:
                log.info(f"[Review] Batch {i} generated {len(batch_comments)} comments")
                comments.extend(batch_comments)

        log.info(f"[Review] Batch processing generated {len(comments)} total comments")
        return comments

    def _review_batch(self, batch: Batch) -> list[AnchoredComment] | None:
        """Comments for *batch*, or ``None`` when the model returned nothing."""
        prompt = build_batch_prompt(self.context, batch)
        suggestions = self.invoker.review(prompt, batch=True)
        if not suggestions and len(batch) > 0:
            log.warning("[Review] Batch returned no suggestions")
            return None
        return anchor_batch_suggestions(batch, suggestions)

    # ── Individual mode ──

    def _review_individually(self, files: list[tuple[str, list[Hunk]]]) -> list[AnchoredComment]:
        comments: list[AnchoredComment] = []
        for index, (path, hunks) in enumerate(files, 1):
            hunks = [h for h in hunks if h.changes]
            if not hunks:
                continue
            log.info(f"[Review] Processing file {index}/{len(files)}: {path} ({len(hunks)} hunks)")
            try:
                comments.extend(self._review_file(path, hunks))
            except Exception as e:
                log.error(f"[Review] Error processing {path}: {e}")
        log.info(f"[Review] Individual processing generated {len(comments)} comments")
        return comments

    def _review_file(self, path: str, hunks: list[Hunk]) -> list[AnchoredComment]:
        prompt = build_single_prompt(
            self.context, path, format_file_diff(hunks),
            full_content=self.file_contents.get(path),
        )
        suggestions = self.invoker.review(prompt, batch=False)
        return anchor_suggestions(path, hunks, suggestions)
