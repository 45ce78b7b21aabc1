"""
Prompt templates for single-file and batch reviews.
"""

from dataclasses import dataclass

from .review.batch_scheduler import Batch
from .review.diff_parser import Hunk


@dataclass
class ReviewContext:
    """What the change is about, as told by its author."""
    title: str = ""
    description: str = ""
    language: str | None = None


_OUTPUT_RULES = """
──────── OUTPUT FORMAT ────────
Your entire response MUST be a single JSON object of this exact shape:
  {"reviews": [{"lineContent": "<string>", "reviewComment": "<string>"}]}
- `lineContent` MUST be the EXACT, full line from the diff you are
  commenting on, including the leading `+`.
- Only comment on lines that begin with `+`. NEVER comment on lines that
  start with `-` or a space.
- `reviewComment` uses GitHub-flavored Markdown.
- If there is nothing worth commenting on, return {"reviews": []}.

──────── FOCUS ON ────────
1. Bugs and incorrect behavior in the changed code
2. Security vulnerabilities
3. Performance problems
4. Clear deviations from best practice

──────── DO NOT ────────
- Nitpick trivial style preferences
- Ask the author to add more comments
"""


def format_file_diff(hunks: list[Hunk]) -> str:
    """Render hunks of one file, headers included, for a prompt."""
    return "\n\n".join(
        f"{hunk.header}\n{hunk.content}" for hunk in hunks if hunk.changes
    )


def _language_rule(context: ReviewContext) -> str:
    if context.language:
        return f"\nAlways answer in {context.language}.\n"
    return ""


def _pr_section(context: ReviewContext) -> str:
    description = context.description or "No description provided"
    return (
        f"<PULL_REQUEST_TITLE>\n{context.title}\n</PULL_REQUEST_TITLE>\n\n"
        f"<PULL_REQUEST_DESCRIPTION>\n{description}\n</PULL_REQUEST_DESCRIPTION>"
    )


def build_single_prompt(context: ReviewContext, path: str, diff_content: str,
                        full_content: str | None = None) -> str:
    """Prompt reviewing every hunk of one file at once."""
    full_section = ""
    if full_content:
        full_section = (
            "\n\n<FULL_FILE_CONTENT>\n"
            "Complete content of the file, for context only:\n"
            f"```\n{full_content}\n```\n"
            "</FULL_FILE_CONTENT>"
        )

    return f"""You are an expert senior software engineer reviewing a pull request.
{_language_rule(context)}{_OUTPUT_RULES}
If several hunks are shown, review them together as one change to the file.

{_pr_section(context)}{full_section}

<FILE_PATH>
{path}
</FILE_PATH>

<GIT_DIFF_TO_REVIEW>
```diff
{diff_content}
```
</GIT_DIFF_TO_REVIEW>"""


def build_batch_prompt(context: ReviewContext, batch: Batch) -> str:
    """Prompt reviewing several files in one call."""
    sections = []
    for i, unit in enumerate(batch.units, 1):
        section = f"File {i}: {unit.path}\n```diff\n{unit.content}\n```"
        if unit.full_content:
            section += f"\nFull content of {unit.path}:\n```\n{unit.full_content}\n```"
        sections.append(section)
    files_content = "\n\n".join(sections)

    return f"""You are an expert senior software engineer reviewing a pull request
that touches {len(batch)} files. Also look for inconsistencies between the
files and patterns that span several of them.
{_language_rule(context)}{_OUTPUT_RULES}
When several files are shown, `lineContent` must match the line exactly as it
appears in the file you are commenting on.

{_pr_section(context)}

<FILES_TO_REVIEW>
{files_content}
</FILES_TO_REVIEW>"""
