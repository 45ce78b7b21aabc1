"""
Library entry point: the whole pipeline behind one call.
"""

from .cli_display import log
from .config import Config
from .invoker import ResilientInvoker
from .llm.base import ModelClient
from .orchestrator import ReviewOrchestrator
from .prompts import ReviewContext
from .review.batch_scheduler import BatchScheduler
from .review.diff_parser import DiffParser
from .review.file_filter import FileFilter, reviewable_files
from .review.position_resolver import AnchoredComment


def review_diff(
    diff_text: str,
    client: ModelClient,
    config: Config | None = None,
    context: ReviewContext | None = None,
    file_contents: dict[str, str] | None = None,
    invoker: ResilientInvoker | None = None,
) -> list[AnchoredComment]:
    """Review *diff_text* and return comments anchored to diff positions.

    Parameters
    ----------
    diff_text:
        Raw unified diff.
    client:
        Model client used when no *invoker* is supplied.
    config:
        Settings; defaults to ``Config.load()``.
    context:
        Title/description/language passed into the prompts.
    file_contents:
        Optional full file contents keyed by path, for prompt context.
    invoker:
        Pre-built invoker, e.g. to share tier state across several runs.
    """
    cfg = config or Config.load()
    files = DiffParser().parse(diff_text)
    files = FileFilter(cfg.EXCLUDE_PATTERNS).filter(files)
    files = reviewable_files(files)
    log.info(f"[Review] Files to analyze after filtering: {', '.join(f.path for f in files)}")

    if invoker is None:
        invoker = ResilientInvoker.from_config(client, cfg)
    orchestrator = ReviewOrchestrator(
        invoker,
        scheduler=BatchScheduler.from_config(cfg),
        context=context or ReviewContext(language=cfg.LANGUAGE),
        file_contents=file_contents,
    )
    return orchestrator.review(files)
