"""Execution environments and code loading.

An environment is the namespace code is loaded into and tests run against.
Loading never touches an existing environment: every load builds a new one,
so definitions removed from the source cannot survive a reload.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

SKIP_DIRS = {"__pycache__"}


class LoadError(Exception):
    """Raised when a source file cannot be compiled or executed."""

    def __init__(self, path: Path, error: BaseException):
        self.path = path
        self.error = error
        super().__init__(f"Failed to load {path}: {type(error).__name__}: {error}")


@dataclass
class ExecutionEnvironment:
    """Namespace holding loaded code."""

    namespace: dict[str, Any] = field(default_factory=dict)
    generation: int = 0
    loaded_files: list[Path] = field(default_factory=list)

    @classmethod
    def fresh(cls, parent: Mapping[str, Any] | None = None, generation: int = 0) -> "ExecutionEnvironment":
        """Create an empty environment seeded with the contents of ``parent``."""
        namespace: dict[str, Any] = {"__name__": "__autotest__", "__builtins__": __builtins__}
        if parent:
            namespace.update(parent)
        return cls(namespace=namespace, generation=generation)

    def child_namespace(self, **extra: Any) -> dict[str, Any]:
        """Copy of the namespace for running one test file in isolation."""
        namespace = dict(self.namespace)
        namespace.update(extra)
        return namespace

    def __contains__(self, name: str) -> bool:
        return name in self.namespace

    def __getitem__(self, name: str) -> Any:
        return self.namespace[name]


class CodeLoader(Protocol):
    """Callable building a new environment from a code directory."""

    def __call__(
        self,
        directory: Path,
        parent: Mapping[str, Any] | None = None,
        generation: int = 0,
        exclude: Iterable[Path] = (),
    ) -> ExecutionEnvironment: ...


def source_files(directory: Path, exclude: Iterable[Path] = ()) -> list[Path]:
    """List the Python files under ``directory`` in load order.

    Hidden directories, ``__pycache__`` and anything under ``exclude`` are skipped.
    """
    excluded = [Path(p) for p in exclude]
    files = []
    for path in sorted(directory.rglob("*.py")):
        rel_parts = path.relative_to(directory).parts[:-1]
        if any(part in SKIP_DIRS or part.startswith(".") for part in rel_parts):
            continue
        if any(path.is_relative_to(ex) for ex in excluded):
            continue
        files.append(path)
    return files


def load_all(
    directory: Path,
    parent: Mapping[str, Any] | None = None,
    generation: int = 0,
    exclude: Iterable[Path] = (),
) -> ExecutionEnvironment:
    """Load every source file in ``directory`` into a new environment.

    Args:
        directory: Code root.
        parent: Mapping whose contents seed the new namespace.
        generation: Counter identifying this load.
        exclude: Directories below ``directory`` not to load (e.g. a nested test root).

    Returns:
        The new environment.

    Raises:
        LoadError: If any file fails to compile or execute, or exits. The partially
            loaded environment is discarded.
    """
    env = ExecutionEnvironment.fresh(parent, generation=generation)

    for path in source_files(directory, exclude):
        try:
            code = compile(path.read_text(encoding="utf-8"), str(path), "exec")
            exec(code, env.namespace)
        except (Exception, SystemExit) as e:
            raise LoadError(path, e) from e
        env.loaded_files.append(path)

    logger.debug(f"Loaded {len(env.loaded_files)} files from {directory} (generation {generation})")
    return env
