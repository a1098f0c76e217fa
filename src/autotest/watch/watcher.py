"""Polling file watcher delivering debounced change batches.

Scans the watched directories for matching files and compares each scan
with the previous one using modification times and content hashes. Changes
that keep arriving within the debounce window are merged into one batch.
"""

import asyncio
import hashlib
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from autotest.config import DEFAULT_IGNORE_PATTERNS, DEFAULT_PATTERNS

logger = logging.getLogger(__name__)


def _unique(paths: Iterable[Path]) -> tuple[Path, ...]:
    return tuple(dict.fromkeys(paths))


@dataclass(frozen=True)
class ChangeBatch:
    """One debounced set of filesystem changes."""

    added: tuple[Path, ...] = ()
    deleted: tuple[Path, ...] = ()
    modified: tuple[Path, ...] = ()

    @classmethod
    def of(
        cls,
        added: Iterable[str | Path] = (),
        deleted: Iterable[str | Path] = (),
        modified: Iterable[str | Path] = (),
    ) -> "ChangeBatch":
        """Build a batch from any iterables of path-likes."""
        return cls(
            added=_unique(Path(p) for p in added),
            deleted=_unique(Path(p) for p in deleted),
            modified=_unique(Path(p) for p in modified),
        )

    @property
    def changed(self) -> tuple[Path, ...]:
        """Added and modified paths; the only ones that can trigger a run."""
        return _unique((*self.added, *self.modified))

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.deleted or self.modified)

    def merge(self, later: "ChangeBatch") -> "ChangeBatch":
        """Combine with a batch observed after this one.

        A file added then modified stays added; a file added then deleted
        disappears; a file deleted then added again counts as modified.
        """
        added = list(self.added)
        deleted = list(self.deleted)
        modified = list(self.modified)

        for path in later.added:
            if path in deleted:
                deleted.remove(path)
                modified.append(path)
            elif path not in added:
                added.append(path)
        for path in later.modified:
            if path not in added and path not in modified:
                modified.append(path)
        for path in later.deleted:
            if path in added:
                added.remove(path)
                continue
            if path in modified:
                modified.remove(path)
            if path not in deleted:
                deleted.append(path)

        return ChangeBatch(tuple(added), tuple(deleted), tuple(_unique(modified)))


BatchCallback = Callable[[ChangeBatch], bool | Awaitable[bool]]


class FileChangeWatcher:
    """Watches directories for file changes.

    Scans directories periodically to detect:
    - New files
    - Modified files
    - Deleted files

    Uses modification times and file hashes for accurate detection.
    """

    def __init__(
        self,
        watch_dirs: Iterable[str | Path],
        patterns: list[str] | None = None,
        ignore_patterns: list[str] | None = None,
    ):
        self.watch_dirs = [Path(d) for d in watch_dirs]
        self.patterns = patterns or list(DEFAULT_PATTERNS)
        self.ignore_patterns = ignore_patterns or list(DEFAULT_IGNORE_PATTERNS)

        self._file_states: dict[Path, tuple[float, str]] = {}  # path -> (mtime, hash)
        self._initialized = False

    def _should_ignore(self, path: Path) -> bool:
        """Check if any component of the path matches an ignore pattern."""
        return any(
            Path(part).match(pattern) for part in path.parts for pattern in self.ignore_patterns
        )

    def _matches_pattern(self, path: Path) -> bool:
        return any(path.match(pattern) for pattern in self.patterns)

    def _compute_hash(self, path: Path) -> str:
        content = path.read_bytes()
        return hashlib.sha256(content).hexdigest()

    def _scan_files(self) -> dict[Path, tuple[float, str]]:
        """Scan all watched directories for matching files."""
        files: dict[Path, tuple[float, str]] = {}

        for watch_dir in self.watch_dirs:
            if not watch_dir.exists():
                continue

            for path in watch_dir.rglob("*"):
                if path in files:
                    # Nested roots are scanned twice
                    continue
                if not path.is_file():
                    continue
                if self._should_ignore(path.relative_to(watch_dir)):
                    continue
                if not self._matches_pattern(path):
                    continue

                try:
                    mtime = path.stat().st_mtime
                    file_hash = self._compute_hash(path)
                    files[path] = (mtime, file_hash)
                except OSError as e:
                    logger.debug(f"Error scanning {path}: {e}")

        return files

    def initialize(self) -> None:
        """Initialize the watcher state by scanning current files."""
        self._file_states = self._scan_files()
        self._initialized = True
        logger.info(f"Watching {len(self._file_states)} files in {len(self.watch_dirs)} directories")

    def detect_changes(self) -> ChangeBatch:
        """Detect changes since the last scan.

        The first call only records the current state and reports nothing.
        """
        if not self._initialized:
            self.initialize()
            return ChangeBatch()

        current_files = self._scan_files()
        added: list[Path] = []
        modified: list[Path] = []

        for path, (_mtime, file_hash) in current_files.items():
            if path not in self._file_states:
                added.append(path)
            else:
                _old_mtime, old_hash = self._file_states[path]
                if file_hash != old_hash:
                    modified.append(path)

        deleted = [path for path in self._file_states if path not in current_files]

        self._file_states = current_files

        return ChangeBatch(tuple(added), tuple(deleted), tuple(modified))

    async def watch(
        self,
        callback: BatchCallback,
        poll_interval: float = 0.5,
        debounce_seconds: float = 0.25,
    ) -> None:
        """Deliver debounced change batches to ``callback`` until it returns False.

        Args:
            callback: Sync or async function receiving a ChangeBatch and
                returning whether to keep watching.
            poll_interval: Seconds between directory scans.
            debounce_seconds: Seconds without new changes before a batch is delivered.
        """
        self.initialize()
        pending = ChangeBatch()
        last_change: float | None = None

        while True:
            changes = self.detect_changes()

            if not changes.is_empty:
                pending = pending.merge(changes)
                last_change = time.monotonic()

            if last_change is not None and time.monotonic() - last_change >= debounce_seconds:
                batch, pending, last_change = pending, ChangeBatch(), None
                if not batch.is_empty:
                    logger.debug(
                        f"Batch: {len(batch.added)} added, {len(batch.deleted)} deleted, "
                        f"{len(batch.modified)} modified"
                    )
                    result = callback(batch)
                    if asyncio.iscoroutine(result):
                        result = await result
                    if not result:
                        logger.debug("Callback ended the subscription")
                        return

            await asyncio.sleep(poll_interval)
