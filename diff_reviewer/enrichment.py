"""
File context enrichment: loads the full content of changed files so
prompts can show the surrounding code, trimmed for large files.
"""

import os
import re

from .cli_display import log
from .review.diff_parser import FileDiff

_TRUNCATED = "... [truncated] ..."
_CONTEXT_RADIUS = 25
_STRUCTURAL = re.compile(
    r"^(export\s+)?(async\s+)?(class|interface|function|def|type\s+|const\s+\w+\s*=)"
)


def load_file_contents(paths: list[str], root: str = ".") -> dict[str, str]:
    """Read files from the working tree; unreadable ones are skipped."""
    contents: dict[str, str] = {}
    for path in paths:
        full_path = os.path.join(root, path)
        if not os.path.isfile(full_path):
            log.debug(f"[Enrich] Could not find {path}")
            continue
        try:
            with open(full_path, "r", encoding="utf-8") as f:
                contents[path] = f.read()
        except (OSError, UnicodeDecodeError) as e:
            log.debug(f"[Enrich] Could not read {path}: {e}")
    return contents


def optimize_file_content(content: str, file: FileDiff, max_chars: int = 5000) -> str:
    """Shrink a large file to the parts a reviewer needs.

    Keeps the top of the file, the lines around each hunk, and lines that
    open a class or function; gaps are marked.
    """
    if len(content) <= max_chars:
        return content

    lines = content.split("\n")
    total = len(lines)
    keep: set[int] = set()

    # Top of file (imports, types)
    keep.update(range(min(50, total // 10)))

    for hunk in file.hunks:
        start = hunk.new_start - 1
        end = min(total, start + _CONTEXT_RADIUS + len(hunk.changes))
        keep.update(range(max(0, start - _CONTEXT_RADIUS), end))

    for i, line in enumerate(lines):
        if _STRUCTURAL.match(line.strip()):
            keep.update(range(i, min(i + 5, total)))

    out: list[str] = []
    last = -2
    for i in sorted(keep):
        if i > last + 1:
            out.append(_TRUNCATED)
        out.append(lines[i])
        last = i

    optimized = "\n".join(out)
    log.debug(f"[Enrich] Optimized {file.path}: {len(content)} -> {len(optimized)} chars")
    return optimized


def enrich_files(files: list[FileDiff], root: str = ".",
                 max_chars: int = 5000) -> dict[str, str]:
    """Full (optimized) contents of *files*, keyed by path."""
    paths = [f.path for f in files if f.path and not f.is_deleted]
    raw = load_file_contents(paths, root)
    by_path = {f.path: f for f in files}
    enriched = {
        path: optimize_file_content(text, by_path[path], max_chars)
        for path, text in raw.items()
    }
    log.info(f"[Enrich] Loaded full context for {len(enriched)}/{len(files)} files")
    return enriched
