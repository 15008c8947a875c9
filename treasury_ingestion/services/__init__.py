"""Ingestion services: per-period commit of historical movements."""

from treasury_ingestion.services.batch_committer import (
    DEFAULT_IMPORT_ACTOR,
    ImportBatchCommitter,
)

__all__ = [
    "DEFAULT_IMPORT_ACTOR",
    "ImportBatchCommitter",
]
