"""In-process test runner.

Test files are executed against an execution environment: each file gets a
copy of the environment's namespace, so it sees the loaded code but cannot
change what the next file sees. Every top-level callable whose name starts
with ``test`` is a test. A failing test never stops the others.
"""

import logging
import time
import traceback
import unittest
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from autotest.runner.environment import ExecutionEnvironment
from autotest.runner.reporter import Reporter, TestOutcome, TestResult

logger = logging.getLogger(__name__)

TEST_FILE_PATTERNS = ["test_*.py", "*_test.py"]

SKIP_EXCEPTIONS: tuple[type[BaseException], ...] = (unittest.SkipTest, pytest.skip.Exception)
FAIL_EXCEPTIONS: tuple[type[BaseException], ...] = (AssertionError, pytest.fail.Exception)
# Exits requested by test code are recorded as errors
EXIT_EXCEPTIONS: tuple[type[BaseException], ...] = (SystemExit, pytest.exit.Exception)


def _short_traceback(error: BaseException) -> str:
    """Format an exception without the runner's own frames."""
    tb = error.__traceback__
    # Drop the frame of the runner that called into test code
    if tb is not None and tb.tb_next is not None:
        tb = tb.tb_next
    return "".join(traceback.format_exception(type(error), error, tb)).rstrip()


@dataclass
class RunSummary:
    """Counts and results of one runner call."""

    files: list[Path] = field(default_factory=list)
    results: list[TestResult] = field(default_factory=list)

    def count(self, outcome: TestOutcome) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    @property
    def passed(self) -> int:
        return self.count(TestOutcome.PASSED)

    @property
    def failed(self) -> int:
        return self.count(TestOutcome.FAILED)

    @property
    def errors(self) -> int:
        return self.count(TestOutcome.ERROR)

    @property
    def skipped(self) -> int:
        return self.count(TestOutcome.SKIPPED)

    @property
    def ok(self) -> bool:
        return self.failed == 0 and self.errors == 0


class TestRunner:
    """Runs test files against an execution environment."""

    __test__ = False

    def __init__(self, file_patterns: list[str] | None = None):
        self.file_patterns = file_patterns or list(TEST_FILE_PATTERNS)

    def find_test_files(self, directory: Path) -> list[Path]:
        """Find test files under ``directory``, sorted by path."""
        found: set[Path] = set()
        for pattern in self.file_patterns:
            for path in directory.rglob(pattern):
                if "__pycache__" in path.parts or not path.is_file():
                    continue
                found.add(path)
        return sorted(found)

    def run_directory(
        self,
        directory: Path,
        environment: ExecutionEnvironment,
        reporter: Reporter,
    ) -> RunSummary:
        """Run every test file found under ``directory``."""
        files = self.find_test_files(directory)
        logger.debug(f"Found {len(files)} test files in {directory}")
        return self.run_files(files, environment, reporter, title=f"Tests in {directory}")

    def run_files(
        self,
        files: Iterable[Path],
        environment: ExecutionEnvironment,
        reporter: Reporter,
        title: str | None = None,
    ) -> RunSummary:
        """Run exactly the given test files, in order."""
        files = list(files)
        summary = RunSummary(files=files)
        reporter.start_run(title or ", ".join(f.name for f in files))

        for path in files:
            reporter.start_file(path)
            for result in self._run_file(path, environment):
                summary.results.append(result)
                reporter.add_result(result)
            reporter.end_file(path)

        reporter.end_run()
        return summary

    def _run_file(self, path: Path, environment: ExecutionEnvironment) -> list[TestResult]:
        namespace = environment.child_namespace(__file__=str(path), __name__=path.stem)

        start = time.perf_counter()
        try:
            code = compile(path.read_text(encoding="utf-8"), str(path), "exec")
            exec(code, namespace)
        except SKIP_EXCEPTIONS as e:
            return [TestResult(path, "<file>", TestOutcome.SKIPPED, str(e) or None)]
        except (Exception, *FAIL_EXCEPTIONS, *EXIT_EXCEPTIONS) as e:
            logger.debug(f"Test file {path} failed to run: {e}")
            return [
                TestResult(
                    path,
                    "<file>",
                    TestOutcome.ERROR,
                    _short_traceback(e),
                    time.perf_counter() - start,
                )
            ]

        tests = [
            (name, obj)
            for name, obj in namespace.items()
            if name.startswith("test")
            and callable(obj)
            and not isinstance(obj, type)
            and getattr(obj, "__code__", None) is not None
            and obj.__code__.co_filename == str(path)
        ]
        return [self._run_test(path, name, func) for name, func in tests]

    def _run_test(self, path: Path, name: str, func) -> TestResult:
        start = time.perf_counter()
        try:
            func()
        except FAIL_EXCEPTIONS as e:
            outcome, message = TestOutcome.FAILED, _short_traceback(e)
        except SKIP_EXCEPTIONS as e:
            outcome, message = TestOutcome.SKIPPED, str(e) or None
        except (Exception, *EXIT_EXCEPTIONS) as e:
            outcome, message = TestOutcome.ERROR, _short_traceback(e)
        else:
            outcome, message = TestOutcome.PASSED, None
        return TestResult(path, name, outcome, message, time.perf_counter() - start)
