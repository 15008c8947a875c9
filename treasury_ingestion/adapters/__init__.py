"""Source adapters for the historical import (file I/O only, no DB)."""

from treasury_ingestion.adapters.base import BatchSource
from treasury_ingestion.adapters.workbook_adapter import TreasuryWorkbookAdapter

__all__ = [
    "BatchSource",
    "TreasuryWorkbookAdapter",
]
