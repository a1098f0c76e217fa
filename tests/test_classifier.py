"""Tests for change classification."""

import os
from pathlib import Path

from autotest.watch.classifier import Classification, classify, is_within, normalize_path

CODE = Path("/proj/R")
TESTS = Path("/proj/tests")


class TestNormalizePath:
    """Tests for normalize_path."""

    def test_strips_trailing_separator(self, tmp_path: Path):
        """Trailing separators do not survive normalization."""
        assert normalize_path(f"{tmp_path}{os.sep}") == normalize_path(tmp_path)

    def test_resolves_symlinks(self, tmp_path: Path):
        """A symlinked root and its target normalize to the same path."""
        real = tmp_path / "real"
        real.mkdir()
        link = tmp_path / "link"
        link.symlink_to(real, target_is_directory=True)

        assert normalize_path(link) == normalize_path(real)
        assert normalize_path(link / "a.py") == normalize_path(real) / "a.py"

    def test_relative_paths_become_absolute(self):
        """Relative paths are made absolute."""
        assert normalize_path("some/file.py").is_absolute()

    def test_missing_path(self, tmp_path: Path):
        """Paths that do not exist (deleted files) still normalize."""
        missing = tmp_path / "gone" / "old.py"
        assert normalize_path(missing) == normalize_path(tmp_path) / "gone" / "old.py"


class TestIsWithin:
    """Tests for is_within."""

    def test_root_itself(self):
        assert is_within(CODE, CODE)

    def test_descendant(self):
        assert is_within(CODE / "sub" / "a.py", CODE)

    def test_sibling_with_shared_prefix(self):
        """A sibling whose name starts with the root's name is not inside it."""
        assert not is_within(Path("/proj/R2/a.py"), CODE)


class TestClassify:
    """Tests for classify."""

    def test_empty_input(self):
        """Classifying nothing yields an empty classification."""
        result = classify([], CODE, TESTS)

        assert result == Classification()
        assert result.is_empty

    def test_code_change(self):
        result = classify([CODE / "util.py"], CODE, TESTS)

        assert result.code_changes == (CODE / "util.py",)
        assert result.test_changes == ()

    def test_test_change(self):
        result = classify([TESTS / "test_util.py"], CODE, TESTS)

        assert result.code_changes == ()
        assert result.test_changes == (TESTS / "test_util.py",)

    def test_mixed_changes(self):
        """Code and test changes in one batch are both recorded."""
        result = classify([CODE / "a.py", TESTS / "test_a.py"], CODE, TESTS)

        assert result.code_changes == (CODE / "a.py",)
        assert result.test_changes == (TESTS / "test_a.py",)

    def test_paths_outside_roots_are_ignored(self):
        """Paths under neither root are dropped, not an error."""
        outside = Path("/proj/README.md")
        result = classify([outside, CODE / "a.py"], CODE, TESTS)

        assert result.code_changes == (CODE / "a.py",)
        assert result.test_changes == ()
        assert result.ignored == (outside,)

    def test_nested_test_root_counts_as_code(self):
        """With the test root inside the code root, test paths are code changes."""
        code = Path("/proj")
        tests = Path("/proj/tests")

        result = classify([tests / "test_a.py"], code, tests)

        assert result.code_changes == (tests / "test_a.py",)
        assert result.test_changes == ()

    def test_duplicates_removed_in_order(self):
        """Duplicates are dropped and first-seen order is kept."""
        paths = [TESTS / "b.py", TESTS / "a.py", TESTS / "b.py"]

        result = classify(paths, CODE, TESTS)

        assert result.test_changes == (TESTS / "b.py", TESTS / "a.py")

    def test_idempotent(self):
        """Classifying the same paths twice gives the same result."""
        paths = [CODE / "a.py", TESTS / "test_a.py", Path("/elsewhere/x.py")]

        assert classify(paths, CODE, TESTS) == classify(paths, CODE, TESTS)

    def test_accepts_generator(self):
        """Any iterable of paths is accepted."""
        result = classify((p for p in [TESTS / "test_a.py"]), CODE, TESTS)

        assert result.test_changes == (TESTS / "test_a.py",)
