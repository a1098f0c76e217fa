"""Classification of changed paths into code and test changes.

A path under the code root is a code change, a path under the test root is
a test change. When the test root sits inside the code root a path can be
under both; it then counts as code, because any code change forces a full
reload anyway. Paths under neither root are dropped.
"""

import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path


def normalize_path(path: str | os.PathLike[str]) -> Path:
    """Make a path absolute, resolve symlinks and strip trailing separators.

    Works for paths that no longer exist, which matters for files that were
    renamed or removed between the event and its handling.
    """
    return Path(os.path.realpath(os.path.expanduser(os.fspath(path))))


def is_within(path: Path, root: Path) -> bool:
    """Check whether ``path`` is ``root`` or lies below it.

    Comparison is by path components, so ``/proj/R2`` is not within ``/proj/R``.
    """
    return path == root or path.is_relative_to(root)


@dataclass(frozen=True)
class Classification:
    """Changed paths split by the root they belong to."""

    code_changes: tuple[Path, ...] = ()
    test_changes: tuple[Path, ...] = ()
    ignored: tuple[Path, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.code_changes and not self.test_changes


def classify(changed: Iterable[Path], code_root: Path, test_root: Path) -> Classification:
    """Partition changed paths into code changes and test changes.

    Args:
        changed: Paths normalized the same way as the roots.
        code_root: Normalized code root.
        test_root: Normalized test root.

    Returns:
        Classification preserving first-seen order with duplicates removed.
    """
    code: list[Path] = []
    tests: list[Path] = []
    ignored: list[Path] = []
    seen: set[Path] = set()

    for path in changed:
        if path in seen:
            continue
        seen.add(path)

        if is_within(path, code_root):
            code.append(path)
        elif is_within(path, test_root):
            tests.append(path)
        else:
            ignored.append(path)

    return Classification(
        code_changes=tuple(code),
        test_changes=tuple(tests),
        ignored=tuple(ignored),
    )
