"""Code loading, test execution and reporting."""

from autotest.runner.environment import ExecutionEnvironment, LoadError, load_all
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
from autotest.runner.runner import RunSummary, TestRunner

__all__ = [
    "REPORTERS",
    "ExecutionEnvironment",
    "ListReporter",
    "LoadError",
    "Reporter",
    "RunSummary",
    "SilentReporter",
    "SummaryReporter",
    "TestOutcome",
    "TestResult",
    "TestRunner",
    "find_reporter",
    "load_all",
]
