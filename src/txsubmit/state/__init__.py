"""
State Management module.

Persists run summaries and receipts for auditing.
"""

from txsubmit.state.database import ReceiptStore, init_receipt_store

__all__ = ["ReceiptStore", "init_receipt_store"]
