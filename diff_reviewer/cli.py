"""
CLI entry point: argument parsing and main execution flow.
"""

import argparse
import json
import sys

from .api import review_diff
from .cli_display import setup_logger, token_tracker, log
from .config import Config, parse_pattern_list
from .enrichment import enrich_files
from .llm.gemini_client import GeminiClient
from .prompts import ReviewContext
from .review.diff_parser import DiffParser
from .review.file_filter import FileFilter, reviewable_files
from . import git_utils


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="diff-reviewer",
        description="Review a unified diff with an LLM and anchor comments to diff positions",
    )
    parser.add_argument("diff", nargs="?", default=None,
                        help="Path to a diff file, or '-' to read stdin")
    parser.add_argument("--git", nargs="?", const="", default=None, metavar="BASE",
                        help="Review `git diff [BASE]` of the current repository")
    parser.add_argument("--staged", action="store_true",
                        help="With --git, review staged changes")
    parser.add_argument("--model", default=None,
                        help="Starting model tier (default: from config)")
    parser.add_argument("--exclude", default=None,
                        help="Comma-separated glob patterns of files to skip")
    parser.add_argument("--config", default=None,
                        help="Path to .diffreview.yaml config file")
    parser.add_argument("--title", default="", help="Pull request title")
    parser.add_argument("--description", default="", help="Pull request description")
    parser.add_argument("--language", default=None,
                        help="Language the review comments are written in")
    parser.add_argument("--no-full-context", action="store_true",
                        help="Do not include full file contents in prompts")
    parser.add_argument("--output", default=None,
                        help="Write comments JSON here instead of stdout")
    parser.add_argument("--verbose", action="store_true",
                        help="Log progress to stderr")
    return parser


def _read_diff(args) -> str | None:
    if args.git is not None:
        if not git_utils.is_git_repo():
            print("  [ERROR] --git used outside a git repository.", file=sys.stderr)
            return None
        ok, output = git_utils.get_diff(args.git or None, staged=args.staged)
        if not ok:
            print(f"  [ERROR] git diff failed: {output}", file=sys.stderr)
            return None
        return output

    if args.diff is None or args.diff == "-":
        return sys.stdin.read()

    try:
        with open(args.diff, "r", encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        print(f"  [ERROR] Cannot read diff: {e}", file=sys.stderr)
        return None


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    # ── 0. Load config ──
    cfg = Config.load(args.config)
    if args.model:
        cfg.MODEL = args.model
    if args.exclude is not None:
        cfg.EXCLUDE_PATTERNS = parse_pattern_list(args.exclude)
    if args.language:
        cfg.LANGUAGE = args.language
    if args.no_full_context:
        cfg.FULL_CONTEXT = False

    setup_logger(cfg.LOG_DIR, verbose=args.verbose)
    token_tracker.pricing = cfg.PRICING

    if not cfg.GEMINI_API_KEY:
        print("\n  [ERROR] A Gemini API key is required.\n"
              "  Set GEMINI_API_KEY or add gemini.api_key to .diffreview.yaml.\n",
              file=sys.stderr)
        return 1

    # ── 1. Read the diff ──
    diff_text = _read_diff(args)
    if diff_text is None:
        return 1
    if not diff_text.strip():
        log.warning("No diff to review")
        _write_output(args.output, [])
        return 0

    # ── 2. Optional full-file context ──
    file_contents = None
    if cfg.FULL_CONTEXT:
        files = reviewable_files(FileFilter(cfg.EXCLUDE_PATTERNS).filter(
            DiffParser().parse(diff_text)))
        file_contents = enrich_files(files, max_chars=cfg.MAX_CONTEXT_CHARS)

    # ── 3. Review ──
    client = GeminiClient(base_url=cfg.GEMINI_BASE_URL, api_key=cfg.GEMINI_API_KEY)
    context = ReviewContext(title=args.title, description=args.description,
                            language=cfg.LANGUAGE)
    comments = review_diff(diff_text, client, config=cfg, context=context,
                           file_contents=file_contents)

    log.info(f"Generated {len(comments)} review comments ({token_tracker.summary()})")
    try:
        _write_output(args.output, [c.to_dict() for c in comments])
    except OSError as e:
        print(f"  [ERROR] Cannot write output: {e}", file=sys.stderr)
        return 1
    return 0


def _write_output(path: str | None, payload: list[dict]) -> None:
    text = json.dumps(payload, indent=2)
    if path:
        with open(path, "w", encoding="utf-8") as f:
            f.write(text + "\n")
    else:
        print(text)


if __name__ == "__main__":
    sys.exit(main())
