"""Tests for reporters."""

import io
from pathlib import Path

import pytest
from rich.console import Console

from autotest.config import ConfigurationError
from autotest.runner.reporter import (
    REPORTERS,
    ListReporter,
    Reporter,
    SilentReporter,
    SummaryReporter,
    TestOutcome,
    TestResult,
    find_reporter,
)


def make_console() -> Console:
    return Console(file=io.StringIO(), width=120, color_system=None)


def result(name: str, outcome: TestOutcome, message: str | None = None) -> TestResult:
    return TestResult(Path("/proj/tests/test_util.py"), name, outcome, message)


def run_through(reporter: Reporter, *results: TestResult) -> str:
    path = Path("/proj/tests/test_util.py")
    reporter.start_run("Tests")
    reporter.start_file(path)
    for r in results:
        reporter.add_result(r)
    reporter.end_file(path)
    reporter.end_run()
    return reporter.console.file.getvalue()


class TestFindReporter:
    """Tests for find_reporter."""

    def test_default_is_summary(self):
        assert isinstance(find_reporter(), SummaryReporter)

    def test_by_name(self):
        assert isinstance(find_reporter("list"), ListReporter)
        assert isinstance(find_reporter("SILENT"), SilentReporter)

    def test_instance_passes_through(self):
        reporter = SilentReporter()
        assert find_reporter(reporter) is reporter

    def test_unknown_name(self):
        with pytest.raises(ConfigurationError) as exc_info:
            find_reporter("tap")

        assert "tap" in str(exc_info.value)
        assert "summary" in str(exc_info.value)

    def test_registry(self):
        assert set(REPORTERS) == {"summary", "list", "silent"}


class TestClone:
    """Tests for reporter cloning."""

    @pytest.mark.parametrize("name", sorted(REPORTERS))
    def test_clone_is_fresh_and_independent(self, name: str):
        original = find_reporter(name)
        original.console = make_console()
        original.add_result(result("test_a", TestOutcome.PASSED))

        clone = original.clone()

        assert type(clone) is type(original)
        assert clone is not original
        assert clone.results == []
        assert clone.results is not original.results
        assert clone.console is original.console

    def test_clones_do_not_share_results(self):
        base = SilentReporter()
        first = base.clone()
        second = base.clone()

        first.add_result(result("test_a", TestOutcome.FAILED))

        assert second.results == []
        assert base.results == []

    def test_clone_keeps_subclass_configuration(self):
        """Settings a subclass takes in its constructor carry over; per-run state does not."""

        class LeveledReporter(SilentReporter):
            def __init__(self, level: int, console: Console | None = None):
                super().__init__(console=console)
                self.level = level

        original = LeveledReporter(3, console=make_console())
        original.start_run("first")
        original.add_result(result("test_a", TestOutcome.FAILED))
        original.report_error("boom")

        clone = original.clone()

        assert type(clone) is LeveledReporter
        assert clone.level == 3
        assert clone.title is None
        assert clone.results == []
        assert clone.errors == []
        assert original.errors == ["boom"]


class TestReporterState:
    """Tests for result accumulation."""

    def test_counts_and_failed(self):
        reporter = SilentReporter()
        reporter.add_result(result("test_a", TestOutcome.PASSED))
        reporter.add_result(result("test_b", TestOutcome.SKIPPED))

        assert reporter.count(TestOutcome.PASSED) == 1
        assert not reporter.failed

        reporter.add_result(result("test_c", TestOutcome.ERROR))
        assert reporter.failed

    def test_report_error_marks_failed(self):
        reporter = SilentReporter()
        reporter.report_error("Failed to load util.py")

        assert reporter.failed
        assert reporter.errors == ["Failed to load util.py"]


class TestSummaryReporter:
    """Tests for SummaryReporter output."""

    def test_symbols_and_totals(self):
        reporter = SummaryReporter(console=make_console())

        output = run_through(
            reporter,
            result("test_a", TestOutcome.PASSED),
            result("test_b", TestOutcome.FAILED, "AssertionError: nope"),
            result("test_c", TestOutcome.SKIPPED),
        )

        assert "test_util.py:" in output
        assert ".FS" in output
        assert "1. Failed (test_util.py:test_b)" in output
        assert "AssertionError: nope" in output
        assert "1 passed, 1 failed, 0 errors, 1 skipped" in output

    def test_error_message(self):
        reporter = SummaryReporter(console=make_console())
        reporter.report_error("Failed to load util.py")

        assert "Error: Failed to load util.py" in reporter.console.file.getvalue()


class TestListReporter:
    """Tests for ListReporter output."""

    def test_table_rows(self):
        reporter = ListReporter(console=make_console())

        output = run_through(
            reporter,
            result("test_a", TestOutcome.PASSED),
            result("test_b", TestOutcome.ERROR, "KeyError"),
        )

        assert "test_a" in output
        assert "test_b" in output
        assert "error" in output
        assert "1 passed, 0 failed, 1 errors, 0 skipped" in output


class TestSilentReporter:
    """Tests for SilentReporter."""

    def test_prints_nothing(self):
        reporter = SilentReporter(console=make_console())

        output = run_through(reporter, result("test_a", TestOutcome.FAILED, "boom"))
        reporter.report_error("load failed")

        assert output == ""
        assert reporter.console.file.getvalue() == ""
        assert len(reporter.results) == 1
