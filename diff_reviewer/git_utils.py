"""
Git integration: produce the unified diff to review.
"""

import subprocess


def _run_git(args: list[str]) -> tuple[bool, str]:
    """Run a git command and return ``(success, output)``."""
    try:
        result = subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        return False, str(e)
    if result.returncode != 0:
        return False, (result.stdout + result.stderr).strip()
    return True, result.stdout


def is_git_repo() -> bool:
    """Return ``True`` if the CWD is inside a git repository."""
    ok, _ = _run_git(["rev-parse", "--is-inside-work-tree"])
    return ok


def get_diff(base: str | None = None, staged: bool = False) -> tuple[bool, str]:
    """Return ``(success, diff_or_error)`` for the working tree.

    *base* diffs against a ref (``main``, ``HEAD~1``); *staged* diffs the
    index instead of the working tree.
    """
    args = ["diff", "--no-color", "--no-ext-diff"]
    if staged:
        args.append("--cached")
    if base:
        args.append(base)
    return _run_git(args)
