"""Watching code and tests and deciding what to rerun.

- Polling file watcher delivering debounced change batches
- Classification of changed paths into code and test changes
- Watch loop: full reload on code changes, targeted reruns on test changes
"""

from autotest.watch.classifier import Classification, classify, normalize_path
from autotest.watch.loop import LoopState, RunKind, RunOutcome, WatchLoop
from autotest.watch.watcher import ChangeBatch, FileChangeWatcher

__all__ = [
    "ChangeBatch",
    "Classification",
    "FileChangeWatcher",
    "LoopState",
    "RunKind",
    "RunOutcome",
    "WatchLoop",
    "classify",
    "normalize_path",
]
