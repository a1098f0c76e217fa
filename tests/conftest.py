"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest

from autotest.runner.reporter import SilentReporter
from autotest.runner.runner import RunSummary, TestRunner


@pytest.fixture
def project(tmp_path: Path) -> dict[str, Path]:
    """A code root with one module and a test root with one passing test file."""
    code_dir = tmp_path / "R"
    code_dir.mkdir()
    tests_dir = tmp_path / "tests"
    tests_dir.mkdir()

    util = code_dir / "util.py"
    util.write_text("def double(x):\n    return x * 2\n")

    test_util = tests_dir / "test_util.py"
    test_util.write_text("def test_double():\n    assert double(2) == 4\n")

    return {
        "root": tmp_path,
        "code_dir": code_dir,
        "tests_dir": tests_dir,
        "util": util,
        "test_util": test_util,
    }


class RecordingRunner(TestRunner):
    """Runner that records what it was asked to run instead of running it."""

    def __init__(self):
        super().__init__()
        self.calls: list[tuple] = []

    def run_directory(self, directory, environment, reporter):
        self.calls.append(("directory", directory, environment, reporter))
        return RunSummary()

    def run_files(self, files, environment, reporter, title=None):
        files = list(files)
        self.calls.append(("files", files, environment, reporter))
        return RunSummary(files=files)


@pytest.fixture
def recording_runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def silent() -> SilentReporter:
    return SilentReporter()
