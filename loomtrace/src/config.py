"""Runtime configuration for loomtrace.

Settings come from environment variables so the same code runs against a
throwaway in-memory database in tests and an on-disk one in production.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from loomtrace.src.storage import SupplyChainStorage

logger = logging.getLogger("loomtrace")

DB_PATH_ENV = "LOOMTRACE_DB_PATH"
LOG_LEVEL_ENV = "LOOMTRACE_LOG_LEVEL"

_DEFAULT_DB_PATH = "data/loomtrace/loomtrace.db"
_LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """Raised when the environment holds an unusable setting."""


@dataclass
class Settings:
    """Process-wide settings.

    Attributes:
        database_path: SQLite file path, or ':memory:'.
        log_level: Name of the root log level.
    """

    database_path: str = _DEFAULT_DB_PATH
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``.

        Raises:
            ConfigError: If the log level is not a standard level name.
        """
        env = os.environ if environ is None else environ
        level = env.get(LOG_LEVEL_ENV, "INFO").strip().upper()
        if level not in _LOG_LEVELS:
            raise ConfigError(
                f"{LOG_LEVEL_ENV} must be one of {', '.join(_LOG_LEVELS)}, got {level!r}"
            )
        db_path = env.get(DB_PATH_ENV, "").strip() or _DEFAULT_DB_PATH
        return cls(database_path=db_path, log_level=level)

    @property
    def in_memory(self) -> bool:
        return self.database_path == ":memory:"


def configure_logging(settings: Settings) -> None:
    """Configure root logging with the project format."""
    logging.basicConfig(level=getattr(logging, settings.log_level), format=_LOG_FORMAT)


def open_storage(settings: Settings) -> SupplyChainStorage:
    """Open the configured database and make sure its schema exists.

    The parent directory of an on-disk database is created on demand.
    """
    if not settings.in_memory:
        Path(settings.database_path).parent.mkdir(parents=True, exist_ok=True)
    storage = SupplyChainStorage(settings.database_path, check_same_thread=False)
    storage.initialize_schema()
    logger.info("Opened supply chain database at %s", settings.database_path)
    return storage
