"""Watch loop rerunning tests as code and tests change.

Strategy for each batch of changes:
1. If any code changed: load all code into a new environment and rerun every test
2. Else if any test files changed: rerun just those files against the current environment
3. Otherwise do nothing

Code changes can break any test, so nothing short of a full reload is safe.
Test changes cannot affect the code, so rerunning the touched files is enough.
Each run reports to its own clone of the configured reporter.
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable, Iterable, Mapping
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from autotest.config import WatchConfig
from autotest.runner.environment import CodeLoader, ExecutionEnvironment, LoadError, load_all
from autotest.runner.reporter import Reporter, find_reporter
from autotest.runner.runner import RunSummary, TestRunner
from autotest.watch.classifier import Classification, classify, is_within, normalize_path
from autotest.watch.watcher import ChangeBatch, FileChangeWatcher

logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    """Lifecycle of a watch loop."""

    BOOTSTRAPPING = "bootstrapping"
    WATCHING = "watching"
    RUNNING = "running"
    STOPPED = "stopped"


class RunKind(str, Enum):
    """What a batch of changes triggered."""

    FULL = "full"  # Reload all code, run all tests
    TARGETED = "targeted"  # Run only the changed test files
    NOOP = "noop"


@dataclass
class RunOutcome:
    """Result of handling one batch (or the initial run)."""

    kind: RunKind
    files: tuple[Path, ...] = ()  # Test files run by a targeted rerun
    changed_code: tuple[Path, ...] = ()
    reporter: Reporter | None = None
    summary: RunSummary | None = None
    error: str | None = None
    generation: int | None = None  # Environment the tests ran against
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def success(self) -> bool:
        """True if the run loaded and no test failed. A no-op counts as success."""
        if self.error is not None:
            return False
        return self.summary is None or self.summary.ok


RunContext = Callable[[], AbstractContextManager[Any]]


def _names(paths: Iterable[Path]) -> str:
    return ", ".join(p.name for p in paths)


class WatchLoop:
    """Watches a code root and a test root, rerunning tests on change.

    The loop owns the current execution environment. It is replaced, never
    modified, on every successful full reload. If a reload fails the previous
    environment stays current and is marked stale until a later reload succeeds.
    """

    def __init__(
        self,
        code_path: str | Path,
        test_path: str | Path,
        reporter: str | Reporter | None = None,
        env: Mapping[str, Any] | None = None,
        *,
        loader: CodeLoader | None = None,
        runner: TestRunner | None = None,
        watcher: FileChangeWatcher | None = None,
        run_context: RunContext | None = None,
        poll_interval: float = 0.5,
        debounce_seconds: float = 0.25,
        patterns: list[str] | None = None,
        ignore_patterns: list[str] | None = None,
    ):
        config = WatchConfig(
            code_path=Path(code_path),
            test_path=Path(test_path),
            poll_interval=poll_interval,
            debounce_seconds=debounce_seconds,
        )
        if patterns:
            config.patterns = list(patterns)
        if ignore_patterns:
            config.ignore_patterns = list(ignore_patterns)
        self.config = config.resolve()
        self.reporter = find_reporter(reporter)

        self._parent = dict(env) if env else None
        self._loader: CodeLoader = loader or load_all
        self._runner = runner or TestRunner()
        self._watcher = watcher
        self._run_context: RunContext = run_context or contextlib.nullcontext

        self._environment = ExecutionEnvironment.fresh(self._parent)
        self._stale = True  # Nothing loaded yet
        self._generation = 0
        self._state = LoopState.BOOTSTRAPPING
        self._stop_requested = False
        self._task: asyncio.Task[None] | None = None

    @property
    def code_path(self) -> Path:
        return self.config.code_path

    @property
    def test_path(self) -> Path:
        return self.config.test_path

    @property
    def environment(self) -> ExecutionEnvironment:
        """The most recently successfully loaded environment."""
        return self._environment

    @property
    def stale(self) -> bool:
        """True if the last reload failed (or none has succeeded yet)."""
        return self._stale

    @property
    def state(self) -> LoopState:
        return self._state

    def classify(self, batch: ChangeBatch) -> Classification:
        """Classify the added and modified paths of a batch. Deletions are ignored."""
        changed = [normalize_path(p) for p in batch.changed]
        return classify(changed, self.code_path, self.test_path)

    def bootstrap(self) -> RunOutcome:
        """Load all code and run the whole test suite once."""
        self._state = LoopState.BOOTSTRAPPING
        logger.info(f"Loading code from {self.code_path} and running all tests")
        outcome = self._full_rerun(())
        self._state = LoopState.WATCHING
        return outcome

    def handle_batch(self, batch: ChangeBatch) -> RunOutcome:
        """Decide what a batch of changes requires and run it to completion."""
        self._state = LoopState.RUNNING
        try:
            classification = self.classify(batch)
            if classification.ignored:
                logger.debug(f"Ignoring changes outside watched roots: {_names(classification.ignored)}")
            return self.decide_and_run(classification)
        finally:
            if self._state == LoopState.RUNNING:
                self._state = LoopState.WATCHING

    def decide_and_run(self, classification: Classification) -> RunOutcome:
        """Run a full reload, a targeted rerun, or nothing, in that priority."""
        if classification.code_changes:
            logger.info(f"Changed code: {_names(classification.code_changes)}")
            logger.info("Rerunning all tests")
            return self._full_rerun(classification.code_changes)

        if classification.test_changes:
            logger.info(f"Rerunning tests: {_names(classification.test_changes)}")
            return self._targeted_rerun(classification.test_changes)

        return RunOutcome(kind=RunKind.NOOP)

    def _full_rerun(self, changed_code: tuple[Path, ...]) -> RunOutcome:
        reporter = self.reporter.clone()
        self._generation += 1
        exclude = [self.test_path] if is_within(self.test_path, self.code_path) else []

        try:
            environment = self._loader(
                self.code_path,
                parent=self._parent,
                generation=self._generation,
                exclude=exclude,
            )
        except LoadError as e:
            self._stale = True
            logger.error(str(e))
            reporter.report_error(str(e))
            return RunOutcome(
                kind=RunKind.FULL,
                changed_code=changed_code,
                reporter=reporter,
                error=str(e),
                generation=self._environment.generation,
            )

        self._environment = environment
        self._stale = False

        with self._run_context():
            summary = self._runner.run_directory(self.test_path, environment, reporter)

        return RunOutcome(
            kind=RunKind.FULL,
            changed_code=changed_code,
            reporter=reporter,
            summary=summary,
            generation=environment.generation,
        )

    def _targeted_rerun(self, files: tuple[Path, ...]) -> RunOutcome:
        reporter = self.reporter.clone()
        if self._stale:
            logger.warning("Code failed to load; running tests against the last loaded code")

        with self._run_context():
            summary = self._runner.run_files(files, self._environment, reporter)

        return RunOutcome(
            kind=RunKind.TARGETED,
            files=files,
            reporter=reporter,
            summary=summary,
            generation=self._environment.generation,
        )

    def _on_batch(self, batch: ChangeBatch) -> bool:
        if self._stop_requested:
            return False
        try:
            self.handle_batch(batch)
        except (Exception, SystemExit):
            # Never let one run end the loop
            logger.exception("Run failed unexpectedly")
        return not self._stop_requested

    async def run(self) -> None:
        """Run the initial full test run, then rerun tests on every change until stopped."""
        self.bootstrap()

        watcher = self._watcher or FileChangeWatcher(
            [self.code_path, self.test_path],
            patterns=self.config.patterns,
            ignore_patterns=self.config.ignore_patterns,
        )
        logger.info(f"Watching {self.code_path} and {self.test_path} for changes")

        self._state = LoopState.WATCHING
        self._task = asyncio.create_task(
            watcher.watch(
                self._on_batch,
                poll_interval=self.config.poll_interval,
                debounce_seconds=self.config.debounce_seconds,
            )
        )
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._stop_requested:
                raise
        finally:
            self._task = None
            self._state = LoopState.STOPPED

    def stop(self) -> None:
        """Stop watching. A run already in progress finishes first."""
        self._stop_requested = True
        if self._task is not None and not self._task.done():
            self._task.cancel()


def auto_test(
    code_path: str | Path,
    test_path: str | Path,
    reporter: str | Reporter | None = None,
    env: Mapping[str, Any] | None = None,
    **watch_options: Any,
) -> None:
    """Watch code and tests for changes, rerunning tests as appropriate.

    Leave it running while you develop: every time a file is saved the
    affected tests run again.

    - If any code has changed, all code is reloaded and all tests rerun.
    - Otherwise, each new or modified test file is run.

    Blocks until interrupted.

    Args:
        code_path: Directory containing code.
        test_path: Directory containing tests.
        reporter: Reporter name or instance; cloned for every run.
        env: Mapping whose contents seed every fresh environment.
        **watch_options: Further WatchLoop options (poll_interval, debounce_seconds, ...).

    Raises:
        ConfigurationError: If a path is invalid or the reporter is unknown.
    """
    loop = WatchLoop(code_path, test_path, reporter=reporter, env=env, **watch_options)
    asyncio.run(loop.run())
