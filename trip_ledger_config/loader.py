"""
Settings Loader (``trip_ledger_config.loader``).

Responsibility
--------------
Reads an optional YAML settings file and environment overrides and parses
them into a frozen ``LedgerSettings``.

Precedence (lowest first): dataclass defaults, YAML file, environment.

Invariants enforced
-------------------
* Unknown YAML keys are rejected; no silent typos.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  effective settings for identity logging.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key, non-mapping document or bad value  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import os
from collections.abc import Mapping
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any

import yaml

from trip_ledger_config.schema import LedgerSettings

CONFIG_PATH_ENV = "TRIP_LEDGER_CONFIG"

# Environment variable -> settings field
ENV_OVERRIDES: dict[str, str] = {
    "DATABASE_URL": "database_url",
    "TRIP_LEDGER_LOG_LEVEL": "log_level",
    "TRIP_LEDGER_ECHO_SQL": "echo_sql",
}

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off", ""})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")
    return data


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"Cannot parse boolean from {value!r}")


def parse_settings(data: Mapping[str, Any]) -> LedgerSettings:
    """Build settings from a mapping of field name -> raw value."""
    known = {f.name for f in fields(LedgerSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown settings keys: {', '.join(unknown)}")

    values = dict(data)
    if "echo_sql" in values:
        values["echo_sql"] = parse_bool(values["echo_sql"])
    if "database_url" in values:
        values["database_url"] = str(values["database_url"])
    return LedgerSettings(**values)


def load_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """
    Resolve the effective settings.

    Args:
        path: YAML file.  Defaults to ``$TRIP_LEDGER_CONFIG`` when set;
            with neither, only defaults and environment apply.
        environ: Environment mapping (defaults to ``os.environ``).
    """
    env = os.environ if environ is None else environ
    data: dict[str, Any] = {}

    config_path = path or env.get(CONFIG_PATH_ENV)
    if config_path:
        data.update(load_yaml_file(Path(config_path)))

    for env_name, field_name in ENV_OVERRIDES.items():
        if env_name in env:
            data[field_name] = env[env_name]

    return parse_settings(data)


def compute_checksum(settings: LedgerSettings) -> str:
    """
    Compute SHA-256 checksum of the canonical JSON serialization.

    Identical settings always produce identical checksums.
    """
    canonical = json.dumps(asdict(settings), sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
