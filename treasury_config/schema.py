"""
Configuration schema (``treasury_config.schema``).

Frozen dataclass describing the effective treasury settings.  Instances are
produced by ``treasury_config.loader`` and never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class TreasurySettings:
    """Effective runtime settings."""

    database_url: str
    echo_sql: bool = False
    balance_tolerance: Decimal = Decimal("0.50")
    import_actor: str = "import-system"
    log_level: str = "INFO"
    source_path: str | None = None  # Default historical workbook
    checksum: str = ""

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ValueError("database_url is required")
        if self.balance_tolerance < 0:
            raise ValueError("balance_tolerance must be non-negative")

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("checksum")
        return data
