"""
treasury_ingestion -- Idempotent import of historical treasury reports.

Reads spreadsheet reports into per-period batches of movement candidates,
deduplicates them by content hash and commits each period in its own
transaction.

Architecture:
    treasury_ingestion/ is a top-level package. Nothing in treasury_kernel/
    imports from ingestion.
"""
