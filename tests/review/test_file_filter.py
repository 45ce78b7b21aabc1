"""Tests for exclude patterns and reviewable-file filtering."""

from diff_reviewer.review.diff_parser import parse_diff
from diff_reviewer.review.file_filter import (
    FileFilter, matches_pattern, parse_exclude_patterns, reviewable_files,
)


DIFF = """\
diff --git a/src/app.py b/src/app.py
--- a/src/app.py
+++ b/src/app.py
@@ -1 +1 @@
-a
+b
diff --git a/package-lock.json b/package-lock.json
--- a/package-lock.json
+++ b/package-lock.json
@@ -1 +1 @@
-1
+2
diff --git a/dist/app.min.js b/dist/app.min.js
--- a/dist/app.min.js
+++ b/dist/app.min.js
@@ -1 +1 @@
-x
+y
"""


class TestMatchesPattern:
    def test_star(self):
        assert matches_pattern("dist/app.min.js", "dist/*")
        assert matches_pattern("a/b/c.lock", "*.lock")
        assert not matches_pattern("src/app.py", "*.js")

    def test_question_mark(self):
        assert matches_pattern("v1.txt", "v?.txt")
        assert not matches_pattern("v10.txt", "v?.txt")

    def test_dot_is_literal(self):
        assert not matches_pattern("fileXjs", "file.js")
        assert matches_pattern("file.js", "file.js")

    def test_regex_characters_are_literal(self):
        assert matches_pattern("docs/(draft)+.md", "docs/(draft)+.md")
        assert not matches_pattern("docs/draftdraft.md", "docs/(draft)+.md")

    def test_anchored(self):
        assert not matches_pattern("src/app.py.bak", "*.py")


class TestParseExcludePatterns:
    def test_comma_list(self):
        assert parse_exclude_patterns(" *.md, dist/* ,,") == ["*.md", "dist/*"]

    def test_empty(self):
        assert parse_exclude_patterns("") == []
        assert parse_exclude_patterns("   ") == []
        assert parse_exclude_patterns(None) == []


class TestFileFilter:
    def test_filters_matching_files(self):
        files = parse_diff(DIFF)
        kept = FileFilter(["*.json", "dist/*"]).filter(files)

        assert [f.path for f in kept] == ["src/app.py"]

    def test_no_patterns_keeps_everything(self):
        files = parse_diff(DIFF)
        assert FileFilter().filter(files) == files


class TestReviewableFiles:
    def test_drops_pathless_and_empty(self):
        files = parse_diff(
            "@@ -1 +1 @@\n-a\n+b\n"
            "diff --git a/run.sh b/run.sh\nold mode 100644\nnew mode 100755\n"
        ) + parse_diff(DIFF)
        kept = reviewable_files(files)

        assert [f.path for f in kept] == ["src/app.py", "package-lock.json", "dist/app.min.js"]

    def test_deleted_file_keeps_old_path(self):
        files = parse_diff(
            "diff --git a/gone.py b/gone.py\n"
            "deleted file mode 100644\n"
            "--- a/gone.py\n"
            "+++ /dev/null\n"
            "@@ -1 +0,0 @@\n"
            "-x\n"
        )
        assert [f.path for f in reviewable_files(files)] == ["gone.py"]
