"""
treasury_config -- single public entrypoint for treasury settings.

Responsibility:
    ``get_settings()`` is the only way scripts obtain settings.  Services
    receive the values they need as constructor arguments and never read
    configuration themselves.

Architecture position:
    Configuration -- sits above ``treasury_kernel`` and
    ``treasury_ingestion``.  The kernel MUST NEVER import from
    ``treasury_config``.

Audit relevance:
    Every ``get_settings()`` call emits a ``treasury_config_loaded`` log
    entry with the settings checksum, so each run can be tied to the exact
    configuration that governed it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from treasury_config.loader import compute_checksum, load_settings
from treasury_config.schema import TreasurySettings

_logger = logging.getLogger("treasury_kernel.config")


def get_settings(path: Path | None = None) -> TreasurySettings:
    """
    Load the effective settings.

    Args:
        path: Settings file to layer over the packaged defaults.  Defaults
            to the file named by ``TREASURY_CONFIG``, if any.

    Raises:
        FileNotFoundError: settings file missing.
        ValueError: invalid settings.
    """
    settings = load_settings(path)
    _logger.info(
        "treasury_config_loaded",
        extra={
            "checksum": settings.checksum,
            "log_level": settings.log_level,
            "balance_tolerance": str(settings.balance_tolerance),
        },
    )
    return settings


__all__ = [
    "TreasurySettings",
    "compute_checksum",
    "get_settings",
    "load_settings",
]
