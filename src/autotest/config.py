"""Configuration for watch sessions."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_PATTERNS = ["*.py"]
DEFAULT_IGNORE_PATTERNS = [
    "__pycache__",
    "*.pyc",
    ".git",
    ".venv",
    "*.egg-info",
    ".pytest_cache",
]


class ConfigurationError(Exception):
    """Raised when a watch session cannot be set up.

    Always raised before watching begins; nothing discovered while watching
    is reported this way.
    """


@dataclass
class WatchConfig:
    """Settings for one watch loop."""

    code_path: Path
    test_path: Path
    reporter: str | None = None
    poll_interval: float = 0.5
    debounce_seconds: float = 0.25
    patterns: list[str] = field(default_factory=lambda: list(DEFAULT_PATTERNS))
    ignore_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS))

    def resolve(self) -> "WatchConfig":
        """Return a copy with both roots normalized and validated.

        Raises:
            ConfigurationError: If a root is missing or is not a directory,
                or if the polling settings are not positive.
        """
        from autotest.watch.classifier import normalize_path

        roots = {}
        for label, raw in (("code", self.code_path), ("test", self.test_path)):
            if raw is None or str(raw) == "":
                raise ConfigurationError(f"No {label} path given")
            path = normalize_path(raw)
            if not path.exists():
                raise ConfigurationError(f"{label.capitalize()} path does not exist: {raw}")
            if not path.is_dir():
                raise ConfigurationError(f"{label.capitalize()} path is not a directory: {raw}")
            roots[label] = path

        if self.poll_interval <= 0:
            raise ConfigurationError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.debounce_seconds < 0:
            raise ConfigurationError(
                f"debounce_seconds must not be negative, got {self.debounce_seconds}"
            )

        logger.debug(f"Resolved roots: code={roots['code']} test={roots['test']}")
        return WatchConfig(
            code_path=roots["code"],
            test_path=roots["test"],
            reporter=self.reporter,
            poll_interval=self.poll_interval,
            debounce_seconds=self.debounce_seconds,
            patterns=list(self.patterns),
            ignore_patterns=list(self.ignore_patterns),
        )
