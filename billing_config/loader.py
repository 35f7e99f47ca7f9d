"""
Configuration Loader (``billing_config.loader``).

Responsibility
--------------
Reads a YAML settings file and turns it into a validated ``KernelConfig``.
Callers go through ``billing_config.get_active_config()``; this module is
its implementation.

Invariants enforced
-------------------
* Unknown keys are rejected, so a typo never silently falls back to a
  default.
* ``reporting_timezone`` must name a zone ``zoneinfo`` knows.
* ``money_decimal_places`` is fixed at 2; amounts are stored as
  ``Numeric(12, 2)``.
* ``compute_checksum`` is deterministic for identical settings.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong types or values  -> ``ConfigError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from billing_config.schema import KernelConfig

_VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class ConfigError(ValueError):
    """A settings file parsed but holds an invalid value."""

    code: str = "CONFIG_INVALID"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration value for '{key}': {reason}")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("<root>", "settings file must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _expect(data: dict[str, Any], key: str, kind: type, default: Any) -> Any:
    value = data.get(key, default)
    # bool is an int subclass; keep them apart.
    if kind is int and isinstance(value, bool):
        raise ConfigError(key, f"expected int, got {value!r}")
    if not isinstance(value, kind):
        raise ConfigError(key, f"expected {kind.__name__}, got {value!r}")
    return value


def parse_config(data: dict[str, Any]) -> KernelConfig:
    """
    Validate a settings mapping and build a ``KernelConfig``.

    Raises:
        ConfigError: On unknown keys, missing database_url, or bad values.
    """
    known = {f.name for f in fields(KernelConfig)} - {"checksum"}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(", ".join(sorted(unknown)), "unknown setting")

    if not data.get("database_url"):
        raise ConfigError("database_url", "is required")
    database_url = _expect(data, "database_url", str, None)

    timezone = _expect(data, "reporting_timezone", str, "UTC")
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigError("reporting_timezone", f"unknown timezone {timezone!r}") from None

    currency = _expect(data, "currency", str, "BRL")
    if len(currency) != 3 or not currency.isalpha():
        raise ConfigError("currency", f"expected a 3-letter code, got {currency!r}")

    places = _expect(data, "money_decimal_places", int, 2)
    if places != 2:
        raise ConfigError("money_decimal_places", "only 2 decimal places are supported")

    limit = _expect(data, "recent_activity_limit", int, 5)
    if limit < 0:
        raise ConfigError("recent_activity_limit", "must not be negative")

    log_level = _expect(data, "log_level", str, "INFO").upper()
    if log_level not in _VALID_LOG_LEVELS:
        raise ConfigError("log_level", f"unknown level {log_level!r}")

    return KernelConfig(
        database_url=database_url,
        reporting_timezone=timezone,
        currency=currency.upper(),
        money_decimal_places=places,
        recent_activity_limit=limit,
        log_level=log_level,
        sql_echo=_expect(data, "sql_echo", bool, False),
        checksum=compute_checksum(data),
    )
