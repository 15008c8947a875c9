"""
Source adapter protocol.

Contract:
    BatchSource.read_batches() turns one source file into chronologically
    ordered PeriodBatch values.  Rows it cannot interpret come back as
    ImportRowError values on the batch, never as exceptions.

Architecture: treasury_ingestion/adapters. File I/O only, no DB imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from treasury_ingestion.domain.types import PeriodBatch


@runtime_checkable
class BatchSource(Protocol):
    """Protocol for reading a historical source into per-period batches."""

    def read_batches(self, source_path: Path) -> list[PeriodBatch]:
        """Return one batch per period found, oldest first."""
        ...
