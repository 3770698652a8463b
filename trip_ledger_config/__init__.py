"""
trip_ledger_config -- runtime settings for the trip ledger.

Responsibility:
    ``get_settings()`` is the entrypoint scripts and applications use to
    obtain the database URL and logging settings.  The kernel and engines
    never read configuration themselves; callers pass values in.

Audit relevance:
    Every ``get_settings()`` call emits a ``TRIP_LEDGER_CONFIG_TRACE`` log
    entry with the settings checksum (the database URL is not logged).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

from trip_ledger_config.loader import (
    compute_checksum,
    load_settings,
    load_yaml_file,
    parse_settings,
)
from trip_ledger_config.schema import DEFAULT_DATABASE_URL, LedgerSettings

_logger = logging.getLogger("trip_ledger.config")


def get_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """Load settings and emit a config trace record."""
    settings = load_settings(path, environ)
    _logger.info(
        "TRIP_LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "TRIP_LEDGER_CONFIG_TRACE",
            "checksum": compute_checksum(settings),
            "log_level_setting": settings.log_level,
            "echo_sql": settings.echo_sql,
        },
    )
    return settings


__all__ = [
    "DEFAULT_DATABASE_URL",
    "LedgerSettings",
    "compute_checksum",
    "get_settings",
    "load_settings",
    "load_yaml_file",
    "parse_settings",
]
