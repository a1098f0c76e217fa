"""Watching a whole Python package.

Roots and settings come from the project's ``pyproject.toml``:

    [project]
    name = "my-project"

    [tool.autotest]
    package = "my_project"      # default: project name with "-" -> "_"
    code-path = "src/my_project"  # default: src/<package> or <package>
    test-path = "tests"         # default: tests

    [tool.autotest.env]
    MY_SETTING = "1"

Instead of sourcing files into a namespace, the package itself is imported
afresh on every reload, so tests can import it as usual.
"""

import asyncio
import contextlib
import importlib
import logging
import os
import pkgutil
import sys
import tomllib
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from autotest.config import ConfigurationError
from autotest.runner.environment import ExecutionEnvironment, LoadError
from autotest.runner.reporter import Reporter
from autotest.watch.classifier import is_within, normalize_path
from autotest.watch.loop import WatchLoop

logger = logging.getLogger(__name__)

# Set around every run so code can tell it is under autotest
DEFAULT_ENV_VARS = {"AUTOTEST": "true"}


@dataclass
class PackageConfig:
    """Resolved settings for watching a package."""

    root: Path
    package: str
    code_path: Path
    test_path: Path
    env_vars: dict[str, str] = field(default_factory=dict)

    @property
    def import_root(self) -> Path:
        """Directory that must be on sys.path to import the package."""
        return self.code_path.parent


def load_package_config(path: str | Path = ".") -> PackageConfig:
    """Read package settings from ``pyproject.toml``.

    Raises:
        ConfigurationError: If the project file is missing or invalid, or a
            resolved root does not exist.
    """
    root = normalize_path(path)
    pyproject = root / "pyproject.toml"
    if not pyproject.is_file():
        raise ConfigurationError(f"No pyproject.toml found in {root}")

    try:
        with pyproject.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid {pyproject}: {e}") from e

    settings = data.get("tool", {}).get("autotest", {})
    package = settings.get("package")
    if not package:
        name = data.get("project", {}).get("name")
        if not name:
            raise ConfigurationError(f"{pyproject} has no [project] name and no [tool.autotest] package")
        package = name.replace("-", "_").replace(".", "_").lower()

    if "code-path" in settings:
        code_path = root / settings["code-path"]
    elif (root / "src" / package).is_dir():
        code_path = root / "src" / package
    else:
        code_path = root / package
    test_path = root / settings.get("test-path", "tests")

    for label, candidate in (("Code", code_path), ("Test", test_path)):
        if not candidate.is_dir():
            raise ConfigurationError(f"{label} path not found: {candidate}")

    env_vars = dict(DEFAULT_ENV_VARS)
    env_vars.update({str(k): str(v) for k, v in settings.get("env", {}).items()})

    return PackageConfig(
        root=root,
        package=package,
        code_path=normalize_path(code_path),
        test_path=normalize_path(test_path),
        env_vars=env_vars,
    )


@contextlib.contextmanager
def with_envvars(env_vars: Mapping[str, str]) -> Iterator[None]:
    """Set environment variables for the duration of the block, then restore them."""
    previous = {name: os.environ.get(name) for name in env_vars}
    os.environ.update(env_vars)
    try:
        yield
    finally:
        for name, value in previous.items():
            if value is None:
                os.environ.pop(name, None)
            else:
                os.environ[name] = value


class PackageLoader:
    """Code loader that imports a package and all its submodules afresh.

    If the import fails, the modules of the last successful import are put
    back into ``sys.modules`` so tests importing the package keep seeing them.
    """

    def __init__(self, package: str, import_root: Path):
        self.package = package
        self.import_root = import_root

    def _owned(self) -> dict[str, Any]:
        prefix = f"{self.package}."
        return {n: m for n, m in sys.modules.items() if n == self.package or n.startswith(prefix)}

    def _purge(self) -> None:
        for name in self._owned():
            del sys.modules[name]

    def _submodules(self, module: Any, exclude: list[Path]) -> Iterator[Any]:
        for info in pkgutil.iter_modules(getattr(module, "__path__", []), prefix=f"{module.__name__}."):
            finder_path = getattr(info.module_finder, "path", None)
            if finder_path is not None:
                location = normalize_path(Path(finder_path) / info.name.rpartition(".")[2])
                if any(is_within(location, root) for root in exclude):
                    logger.debug(f"Skipping excluded module {info.name}")
                    continue
            submodule = importlib.import_module(info.name)
            yield submodule
            if info.ispkg:
                yield from self._submodules(submodule, exclude)

    def __call__(
        self,
        directory: Path,
        parent: Mapping[str, Any] | None = None,
        generation: int = 0,
        exclude: Iterable[Path] = (),
    ) -> ExecutionEnvironment:
        exclude = [normalize_path(p) for p in exclude]
        previous = self._owned()
        self._purge()
        if str(self.import_root) not in sys.path:
            sys.path.insert(0, str(self.import_root))
        importlib.invalidate_caches()

        # Bytecode keyed on mtime can go stale when a file is saved twice within a second
        dont_write_bytecode = sys.dont_write_bytecode
        sys.dont_write_bytecode = True
        try:
            module = importlib.import_module(self.package)
            loaded = [Path(module.__file__)] if module.__file__ else []
            for submodule in self._submodules(module, exclude):
                if getattr(submodule, "__file__", None):
                    loaded.append(Path(submodule.__file__))
        except (Exception, SystemExit) as e:
            self._purge()
            sys.modules.update(previous)
            failed = getattr(e, "filename", None) or directory
            raise LoadError(Path(failed), e) from e
        finally:
            sys.dont_write_bytecode = dont_write_bytecode

        env = ExecutionEnvironment.fresh(parent, generation=generation)
        env.namespace.update(
            {k: v for k, v in vars(module).items() if k not in ("__name__", "__builtins__")}
        )
        env.namespace[self.package] = module
        env.loaded_files = loaded
        logger.debug(f"Imported {self.package} with {len(loaded)} modules (generation {generation})")
        return env


def package_loop(
    path: str | Path = ".",
    reporter: str | Reporter | None = None,
    **watch_options: Any,
) -> WatchLoop:
    """Build a watch loop for the package at ``path``."""
    config = load_package_config(path)
    logger.debug(f"Package {config.package}: code={config.code_path} tests={config.test_path}")
    return WatchLoop(
        config.code_path,
        config.test_path,
        reporter=reporter,
        loader=PackageLoader(config.package, config.import_root),
        run_context=lambda: with_envvars(config.env_vars),
        **watch_options,
    )


def auto_test_package(
    path: str | Path = ".",
    reporter: str | Reporter | None = None,
    **watch_options: Any,
) -> None:
    """Watch a package for changes, rerunning tests as appropriate.

    See ``auto_test`` for how changes are handled. Blocks until interrupted.
    """
    loop = package_loop(path, reporter=reporter, **watch_options)
    asyncio.run(loop.run())
