"""autotest - rerun tests automatically as code and tests change."""

__version__ = "0.1.0"

from autotest.config import ConfigurationError, WatchConfig
from autotest.package import auto_test_package
from autotest.watch.loop import RunKind, RunOutcome, WatchLoop, auto_test

__all__ = [
    "ConfigurationError",
    "RunKind",
    "RunOutcome",
    "WatchConfig",
    "WatchLoop",
    "__version__",
    "auto_test",
    "auto_test_package",
]
