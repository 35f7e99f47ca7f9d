"""
Configuration schema (``billing_config.schema``).

The typed, frozen view of a runtime settings file.  Everything the kernel
needs from configuration is a field here; nothing else is read from the
environment.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class KernelConfig:
    """
    Runtime settings for the billing kernel.

    Attributes:
        database_url: SQLAlchemy URL for ``init_engine_from_url``.
        reporting_timezone: IANA zone used for calendar-month windows.
        currency: ISO 4217 code shown next to amounts.
        money_decimal_places: Quantization of monetary values (always 2).
        recent_activity_limit: Default length of the recent-activity feed.
        log_level: Level passed to ``configure_logging``.
        sql_echo: Log every SQL statement.
        checksum: SHA-256 of the source settings, for traceability.
    """

    database_url: str
    reporting_timezone: str = "UTC"
    currency: str = "BRL"
    money_decimal_places: int = 2
    recent_activity_limit: int = 5
    log_level: str = "INFO"
    sql_echo: bool = False
    checksum: str = ""
