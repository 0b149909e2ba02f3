"""
Core submission models.

Transaction values, receipts, strategies and the error taxonomy shared by
every other module.
"""

from txsubmit.core.errors import (
    DispatchRejected,
    InvalidStrategy,
    InvalidTransactionInput,
    KeyNotFetched,
    MalformedTransaction,
    MissingStrategy,
    MissingTransactions,
    PartialBatchFailure,
    SubmissionError,
    SubmissionFailed,
    TransientDispatchFailure,
    UnknownChain,
    UnsupportedSubmitterKind,
    UnsupportedTransformerKind,
)
from txsubmit.core.receipt import Receipt, ReceiptStatus
from txsubmit.core.strategy import SubmissionStrategy, SubmitterMetadata, TransformerMetadata
from txsubmit.core.transaction import TransactionValue, validate_transactions

__all__ = [
    "DispatchRejected",
    "InvalidStrategy",
    "InvalidTransactionInput",
    "KeyNotFetched",
    "MalformedTransaction",
    "MissingStrategy",
    "MissingTransactions",
    "PartialBatchFailure",
    "SubmissionError",
    "SubmissionFailed",
    "TransientDispatchFailure",
    "UnknownChain",
    "UnsupportedSubmitterKind",
    "UnsupportedTransformerKind",
    "Receipt",
    "ReceiptStatus",
    "SubmissionStrategy",
    "SubmitterMetadata",
    "TransformerMetadata",
    "TransactionValue",
    "validate_transactions",
]
