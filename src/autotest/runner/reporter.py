"""Test reporters.

A reporter receives the results of one run. Every run gets its own
reporter from ``clone()`` so results of different runs never mix.
"""

import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import ClassVar

from rich.console import Console
from rich.table import Table

from autotest.config import ConfigurationError

logger = logging.getLogger(__name__)


class TestOutcome(str, Enum):
    """Outcome of a single test."""

    __test__ = False

    PASSED = "passed"
    FAILED = "failed"  # Assertion failed
    ERROR = "error"  # Unexpected exception, or the file itself did not run
    SKIPPED = "skipped"


@dataclass
class TestResult:
    """Result of running one test function."""

    __test__ = False

    file: Path
    name: str
    outcome: TestOutcome
    message: str | None = None
    duration: float = 0.0

    @property
    def is_problem(self) -> bool:
        return self.outcome in (TestOutcome.FAILED, TestOutcome.ERROR)


_SYMBOLS = {
    TestOutcome.PASSED: "[green].[/green]",
    TestOutcome.FAILED: "[red]F[/red]",
    TestOutcome.ERROR: "[bold red]E[/bold red]",
    TestOutcome.SKIPPED: "[yellow]S[/yellow]",
}

_STYLES = {
    TestOutcome.PASSED: "green",
    TestOutcome.FAILED: "red",
    TestOutcome.ERROR: "bold red",
    TestOutcome.SKIPPED: "yellow",
}


class Reporter(ABC):
    """Base class for reporters.

    Subclasses render results; the base class accumulates them.
    """

    name: ClassVar[str]

    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self.title: str | None = None
        self.results: list[TestResult] = []
        self.errors: list[str] = []

    def clone(self) -> "Reporter":
        """Return a reporter with the same configuration and no recorded results.

        Subclasses that keep their own per-run state should reset it here too.
        """
        clone = copy.copy(self)
        clone.title = None
        clone.results = []
        clone.errors = []
        return clone

    def count(self, outcome: TestOutcome) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    @property
    def failed(self) -> bool:
        """True if any test failed or errored, or the run reported an error."""
        return bool(self.errors) or any(r.is_problem for r in self.results)

    def start_run(self, title: str) -> None:
        self.title = title

    def start_file(self, path: Path) -> None:
        pass

    def add_result(self, result: TestResult) -> None:
        self.results.append(result)
        self.on_result(result)

    def end_file(self, path: Path) -> None:
        pass

    def report_error(self, message: str) -> None:
        """Record a failure that is not tied to a test, such as a load error."""
        self.errors.append(message)
        self.on_error(message)

    def end_run(self) -> None:
        self.on_end()

    @abstractmethod
    def on_result(self, result: TestResult) -> None:
        ...

    def on_error(self, message: str) -> None:
        self.console.print(f"[bold red]Error:[/bold red] {message}")

    def on_end(self) -> None:
        pass

    def totals_line(self) -> str:
        parts = [
            f"[green]{self.count(TestOutcome.PASSED)} passed[/green]",
            f"[red]{self.count(TestOutcome.FAILED)} failed[/red]",
            f"[bold red]{self.count(TestOutcome.ERROR)} errors[/bold red]",
            f"[yellow]{self.count(TestOutcome.SKIPPED)} skipped[/yellow]",
        ]
        return ", ".join(parts)


class SummaryReporter(Reporter):
    """Prints one character per test, then details of every problem."""

    name = "summary"

    def start_file(self, path: Path) -> None:
        self.console.print(f"{path.name}: ", end="")

    def on_result(self, result: TestResult) -> None:
        self.console.print(_SYMBOLS[result.outcome], end="")

    def end_file(self, path: Path) -> None:
        self.console.print()

    def on_end(self) -> None:
        problems = [r for r in self.results if r.is_problem]
        if problems:
            self.console.rule("[red]Failures[/red]")
            for i, result in enumerate(problems, 1):
                self.console.print(
                    f"[bold]{i}. {result.outcome.value.capitalize()}[/bold] "
                    f"({result.file.name}:{result.name})"
                )
                if result.message:
                    self.console.print(result.message, markup=False, highlight=False)
        self.console.print(self.totals_line())


class ListReporter(Reporter):
    """Prints a table with one row per test at the end of the run."""

    name = "list"

    def on_result(self, result: TestResult) -> None:
        pass

    def on_end(self) -> None:
        table = Table(title=self.title)
        table.add_column("File", style="cyan")
        table.add_column("Test")
        table.add_column("Outcome")
        table.add_column("Time", justify="right")
        for result in self.results:
            style = _STYLES[result.outcome]
            table.add_row(
                result.file.name,
                result.name,
                f"[{style}]{result.outcome.value}[/{style}]",
                f"{result.duration:.3f}s",
            )
        self.console.print(table)
        self.console.print(self.totals_line())


class SilentReporter(Reporter):
    """Records results without printing anything."""

    name = "silent"

    def on_result(self, result: TestResult) -> None:
        pass

    def on_error(self, message: str) -> None:
        pass


REPORTERS: dict[str, type[Reporter]] = {
    cls.name: cls for cls in (SummaryReporter, ListReporter, SilentReporter)
}

DEFAULT_REPORTER = "summary"


def find_reporter(reporter: str | Reporter | None = None) -> Reporter:
    """Resolve a reporter name or instance.

    Raises:
        ConfigurationError: If the name is not a known reporter.
    """
    if isinstance(reporter, Reporter):
        return reporter

    name = (reporter or DEFAULT_REPORTER).lower()
    try:
        cls = REPORTERS[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown reporter {reporter!r}. Available: {', '.join(sorted(REPORTERS))}"
        ) from None
    return cls()
