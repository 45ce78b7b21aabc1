"""
Diff parser: parses raw unified-diff text (``git diff`` / ``diff -u``
output) into files, hunks and changed lines with old/new numbering.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEV_NULL = "/dev/null"

CONTEXT = "context"
DELETION = "deletion"
ADDITION = "addition"

_MARKERS = {CONTEXT: " ", DELETION: "-", ADDITION: "+"}

# Header-mode patterns
_DIFF_START = re.compile(r"^diff\s")
_NEW_FILE = re.compile(r"^new file mode (\d+)$")
_DELETED_FILE = re.compile(r"^deleted file mode (\d+)$")
_OLD_MODE = re.compile(r"^old mode (\d+)$")
_NEW_MODE = re.compile(r"^new mode (\d+)$")
_INDEX = re.compile(r"^index\s[\da-zA-Z]+\.\.[\da-zA-Z]+(\s(\d+))?$")
_RENAME_COPY = re.compile(r"^(rename|copy) (from|to) (.+)$")
_FROM_FILE = re.compile(r"^---\s")
_TO_FILE = re.compile(r"^\+\+\+\s")
_HUNK_HEADER = re.compile(r"^@@\s+-(\d+),?(\d+)?\s+\+(\d+),?(\d+)?\s@@")
_NO_NEWLINE = re.compile(r"^\\ No newline at end of file$")

# Path helpers
_FILE_NAMES = re.compile(
    r"""(a|i|w|c|o|1|2)/.*(?=["']? ["']?(b|i|w|c|o|1|2)/)|(b|i|w|c|o|1|2)/.*$"""
)
_GIT_PREFIX = re.compile(r"^(a|b|i|w|c|o|1|2)/")
_QUOTES = re.compile(r"""^\\?['"]|\\?['"]$""")
_TIMESTAMP = re.compile(
    r"\t.*|\d{4}-\d\d-\d\d\s\d\d:\d\d:\d\d(.\d+)?\s(\+|-)\d\d\d\d"
)


@dataclass
class Change:
    """One physical line inside a hunk."""
    kind: str                          # context|deletion|addition
    text: str
    old_line_number: int | None = None
    new_line_number: int | None = None
    no_newline_at_eof: bool = False

    @property
    def line(self) -> str:
        """The line as it appears in the diff, marker included."""
        return f"{_MARKERS[self.kind]}{self.text}"


@dataclass
class Hunk:
    """A contiguous block of changes introduced by an ``@@`` header."""
    header: str
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    changes: list[Change] = field(default_factory=list)

    @property
    def lines(self) -> list[str]:
        """Marker-prefixed lines; index + 1 is the diff position."""
        return [change.line for change in self.changes]

    @property
    def content(self) -> str:
        """Hunk body as diff text, no-newline markers included."""
        out: list[str] = []
        for change in self.changes:
            out.append(change.line)
            if change.no_newline_at_eof:
                out.append("\\ No newline at end of file")
        return "\n".join(out)


@dataclass
class FileDiff:
    """All hunks for a single file."""
    old_path: str = ""
    new_path: str = ""
    is_new: bool = False
    is_deleted: bool = False
    is_renamed: bool = False
    old_mode: str | None = None
    new_mode: str | None = None
    index: list[str] = field(default_factory=list)
    hunks: list[Hunk] = field(default_factory=list)
    additions: int = 0
    deletions: int = 0

    @property
    def path(self) -> str:
        if self.is_deleted or self.new_path == DEV_NULL:
            return self.old_path
        return self.new_path


def _parse_file_names(line: str) -> list[str]:
    """Extract old/new paths from a ``diff --git a/x b/y`` line."""
    names = [m.group(0) for m in _FILE_NAMES.finditer(line or "")]
    return [re.sub(r"""("|')$""", "", _GIT_PREFIX.sub("", name)) for name in names]


def _remove_timestamp(value: str) -> str:
    match = _TIMESTAMP.search(value)
    if match:
        return value[:match.start()].strip()
    return value


def _parse_old_or_new_file(line: str) -> str:
    """Path from a ``--- a/x`` / ``+++ b/x`` line."""
    name = line.lstrip("-+").strip()
    name = _remove_timestamp(name)
    name = _QUOTES.sub("", name)
    return _GIT_PREFIX.sub("", name)


class DiffParser:
    """Parse raw unified diffs into :class:`FileDiff` objects.

    The parser alternates between header mode (file and hunk boundaries,
    metadata) and content mode (hunk body lines, while the old/new line
    budgets announced by the hunk header are not exhausted).  Malformed
    input never raises; whatever could be understood is returned.
    """

    def parse(self, diff_text: str) -> list[FileDiff]:
        """Parse *diff_text* and return files in input order.

        Parameters
        ----------
        diff_text:
            The raw unified diff.

        Returns
        -------
        list[FileDiff]
            Parsed files; empty for empty or whitespace-only input.
        """
        if not isinstance(diff_text, str) or not diff_text.strip():
            return []

        self._files: list[FileDiff] = []
        self._file: FileDiff | None = None
        self._hunk: Hunk | None = None
        self._old_line = 0
        self._new_line = 0
        # Remaining (old, new) budget while in content mode, else None
        self._budget: list[int] | None = None

        lines = diff_text.split("\n")
        # The final newline terminates the last line; it does not open another
        if lines[-1] == "":
            lines.pop()

        for line in lines:
            if line.endswith("\r"):
                line = line[:-1]
            if self._budget is not None and self._parse_content_line(line):
                continue
            self._parse_header_line(line)

        files = self._files
        logger.debug(
            "[DiffParser] Parsed %d files, %d hunks",
            len(files), sum(len(f.hunks) for f in files),
        )
        return files

    # ------------------------------------------------------------------
    # File / hunk boundaries
    # ------------------------------------------------------------------

    def _start_file(self, line: str = "") -> None:
        names = _parse_file_names(line)
        self._file = FileDiff(
            old_path=names[0] if len(names) > 0 else "",
            new_path=names[1] if len(names) > 1 else "",
        )
        self._hunk = None
        self._files.append(self._file)

    def _restart(self) -> None:
        """Open a new file unless the current one has no hunks yet."""
        if self._file is None or self._file.hunks:
            self._start_file()

    def _start_hunk(self, line: str, match: re.Match) -> None:
        if self._file is None:
            # Fragment without file headers: synthetic file, empty paths
            self._start_file()

        old_start, old_count, new_start, new_count = match.groups()
        old_count = int(old_count) if old_count is not None else 1
        new_count = int(new_count) if new_count is not None else 1

        self._old_line = int(old_start)
        self._new_line = int(new_start)
        self._hunk = Hunk(
            header=line,
            old_start=int(old_start),
            old_count=old_count,
            new_start=int(new_start),
            new_count=new_count,
        )
        self._file.hunks.append(self._hunk)
        self._budget = [old_count, new_count]
        self._close_if_exhausted()

    def _close_if_exhausted(self) -> None:
        if self._budget is not None and self._budget[0] <= 0 and self._budget[1] <= 0:
            self._budget = None

    # ------------------------------------------------------------------
    # Header mode
    # ------------------------------------------------------------------

    def _parse_header_line(self, line: str) -> None:
        if _DIFF_START.match(line):
            self._start_file(line)
            return

        match = _HUNK_HEADER.match(line)
        if match:
            self._start_hunk(line, match)
            return

        if _NO_NEWLINE.match(line):
            self._mark_no_newline()
            return

        match = _NEW_FILE.match(line)
        if match:
            self._restart()
            self._file.is_new = True
            self._file.new_mode = match.group(1)
            self._file.old_path = DEV_NULL
            return

        match = _DELETED_FILE.match(line)
        if match:
            self._restart()
            self._file.is_deleted = True
            self._file.old_mode = match.group(1)
            self._file.new_path = DEV_NULL
            return

        match = _OLD_MODE.match(line)
        if match:
            self._restart()
            self._file.old_mode = match.group(1)
            return

        match = _NEW_MODE.match(line)
        if match:
            self._restart()
            self._file.new_mode = match.group(1)
            return

        match = _INDEX.match(line)
        if match:
            self._restart()
            self._file.index = line.split(" ")[1:]
            if match.group(1):
                self._file.old_mode = self._file.new_mode = match.group(1).strip()
            return

        match = _RENAME_COPY.match(line)
        if match:
            self._restart()
            action, direction, path = match.groups()
            if action == "rename":
                self._file.is_renamed = True
            if direction == "from":
                self._file.old_path = path.strip()
            else:
                self._file.new_path = path.strip()
            return

        if _FROM_FILE.match(line):
            self._restart()
            self._file.old_path = _parse_old_or_new_file(line)
            return

        if _TO_FILE.match(line):
            self._restart()
            self._file.new_path = _parse_old_or_new_file(line)
            return

        # Anything else outside a hunk (similarity index, binary notices,
        # commit messages) carries nothing we model.

    # ------------------------------------------------------------------
    # Content mode
    # ------------------------------------------------------------------

    def _parse_content_line(self, line: str) -> bool:
        """Consume one hunk body line.

        Returns ``False`` when the line does not fit the remaining budget;
        content mode is then abandoned and the line is re-read as a header.
        """
        old_left, new_left = self._budget

        if _NO_NEWLINE.match(line):
            self._mark_no_newline()
            return True

        if line.startswith("-") and old_left > 0:
            self._add_change(Change(
                kind=DELETION, text=line[1:], old_line_number=self._old_line,
            ))
            self._old_line += 1
            self._budget[0] -= 1
            self._file.deletions += 1
        elif line.startswith("+") and new_left > 0:
            self._add_change(Change(
                kind=ADDITION, text=line[1:], new_line_number=self._new_line,
            ))
            self._new_line += 1
            self._budget[1] -= 1
            self._file.additions += 1
        elif (line[:1].isspace() or line == "") and old_left > 0 and new_left > 0:
            self._add_change(Change(
                kind=CONTEXT, text=line[1:],
                old_line_number=self._old_line, new_line_number=self._new_line,
            ))
            self._old_line += 1
            self._new_line += 1
            self._budget[0] -= 1
            self._budget[1] -= 1
        else:
            logger.debug(
                "[DiffParser] Hunk %r ended early (%d old, %d new lines missing)",
                self._hunk.header, old_left, new_left,
            )
            self._budget = None
            return False

        self._close_if_exhausted()
        return True

    def _add_change(self, change: Change) -> None:
        self._hunk.changes.append(change)

    def _mark_no_newline(self) -> None:
        if self._hunk is not None and self._hunk.changes:
            self._hunk.changes[-1].no_newline_at_eof = True


def parse_diff(diff_text: str) -> list[FileDiff]:
    """Convenience wrapper around :meth:`DiffParser.parse`."""
    return DiffParser().parse(diff_text)
