"""
Treasury Kernel

Monthly ledger of a nonprofit's treasury movements with:
- Closed periods that no write path can touch
- Recomputed closing snapshots with an audited reopen
- Content-addressed movements for idempotent historical import
- Full auditability via hash chain
"""

__version__ = "0.1.0"
