"""Typed settings for the trip ledger (``trip_ledger_config.schema``)."""

from __future__ import annotations

import logging
from dataclasses import dataclass

DEFAULT_DATABASE_URL = "sqlite:///trip_ledger.db"

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class LedgerSettings:
    """
    Effective runtime settings.

    Guarantees:
        - ``log_level`` is an upper-case standard logging level name.
        - ``database_url`` is non-empty.
    """

    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = "INFO"
    echo_sql: bool = False

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ValueError("database_url cannot be empty")
        level = str(self.log_level).upper().strip()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level!r}")
        object.__setattr__(self, "log_level", level)

    @property
    def log_level_number(self) -> int:
        return logging.getLevelName(self.log_level)
