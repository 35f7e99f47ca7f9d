"""
billing_config -- single public entrypoint for runtime settings.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads settings files or
    environment variables directly.

Architecture position:
    Configuration sits beside ``billing_kernel``.  The kernel never imports
    from here; callers read a ``KernelConfig`` and pass its values in
    (``init_engine_from_url(config.database_url)``,
    ``DashboardSelector.from_config(store, config)``).

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ConfigError`` (a ``ValueError``) -- a value fails validation.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``billing_config_loaded`` log entry carrying the checksum of the
    settings it returned.
"""

from __future__ import annotations

import logging
from pathlib import Path

from billing_config.loader import ConfigError, load_yaml_file, parse_config
from billing_config.schema import KernelConfig

_logger = logging.getLogger("billing_kernel.config")

# Default configuration set
_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> KernelConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Settings file to load.  Defaults to
            ``billing_config/sets/default.yaml``.

    Returns:
        Validated, frozen KernelConfig.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigError: If validation fails.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    config = parse_config(load_yaml_file(path))

    _logger.info(
        "billing_config_loaded",
        extra={
            "config_path": str(path),
            "checksum": config.checksum,
            "reporting_timezone": config.reporting_timezone,
            "currency": config.currency,
        },
    )
    return config


__all__ = ["ConfigError", "KernelConfig", "get_active_config"]
