"""
Submission error taxonomy.

Validation errors are raised before any network call. Dispatch errors are
raised by submitters; only TransientDispatchFailure is retried.
"""

from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from txsubmit.core.receipt import Receipt


class SubmissionError(Exception):
    """Base class for all submission errors."""
    pass


class MissingStrategy(SubmissionError):
    """Raised when a run is started without a submission strategy."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "Submission strategy required to submit transactions. "
            "Please create a submission strategy, e.g. ./strategy.yaml."
        )


class InvalidStrategy(SubmissionError):
    """Raised when a strategy or its kind parameters fail validation."""
    pass


class UnknownChain(SubmissionError):
    """Raised when a chain name has no runtime context in the registry."""

    def __init__(self, chain: str):
        super().__init__(f"Unknown chain: {chain}")
        self.chain = chain


class InvalidTransactionInput(SubmissionError):
    """
    Raised when batch entries fail schema validation.

    Attributes:
        errors: Mapping of 0-based entry index to validation message
    """

    def __init__(self, errors: Dict[int, str]):
        self.errors = dict(sorted(errors.items()))
        details = "; ".join(f"[{index}] {reason}" for index, reason in self.errors.items())
        super().__init__(f"Invalid transaction input at index {self.indices}: {details}")

    @property
    def indices(self) -> List[int]:
        return list(self.errors)


class MissingTransactions(SubmissionError):
    """Raised when the transaction source holds no transaction list."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "Transactions required to submit transactions. "
            "Please add a transactions file, e.g. ./transactions.json."
        )


class UnsupportedSubmitterKind(SubmissionError):
    """Raised when no submitter is registered for a kind and protocol family."""

    def __init__(self, kind: str, protocol: str):
        super().__init__(f"Unsupported submitter type '{kind}' for protocol '{protocol}'")
        self.kind = kind
        self.protocol = protocol


class UnsupportedTransformerKind(SubmissionError):
    """Raised when no transformer is registered for a kind and protocol family."""

    def __init__(self, kind: str, protocol: Optional[str] = None):
        suffix = f" for protocol '{protocol}'" if protocol else ""
        super().__init__(f"Unsupported transformer type '{kind}'{suffix}")
        self.kind = kind
        self.protocol = protocol


class MalformedTransaction(SubmissionError):
    """Raised when a submitter cannot interpret a transaction. Never retried."""

    def __init__(self, index: int, reason: str):
        super().__init__(f"Malformed transaction at index {index}: {reason}")
        self.index = index
        self.reason = reason


class TransientDispatchFailure(SubmissionError):
    """Network or timeout error during broadcast or confirmation. Retried."""
    pass


class DispatchRejected(SubmissionError):
    """The chain rejected the transaction (signature, nonce, funds). Never retried."""

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.error_code = error_code


class PartialBatchFailure(SubmissionError):
    """
    Raised when an independently dispatched batch fails partway.

    Attributes:
        receipts: Receipts of the transactions that succeeded before the failure
        failed_index: 0-based index of the transaction that failed. Raised by
            a pipeline, this is the position of the originating transaction
            before transformers ran (None if it cannot be traced).
        cause: The error that stopped the batch
        dispatch_index: Position of the failed transaction in the batch the
            submitter received
    """

    def __init__(
        self,
        receipts: List["Receipt"],
        failed_index: Optional[int],
        cause: BaseException,
        dispatch_index: Optional[int] = None,
    ):
        super().__init__(
            f"Batch failed at index {failed_index} after {len(receipts)} "
            f"succeeded: {cause}"
        )
        self.receipts = list(receipts)
        self.failed_index = failed_index
        self.cause = cause
        self.dispatch_index = failed_index if dispatch_index is None else dispatch_index

    @property
    def succeeded(self) -> int:
        return len(self.receipts)


class KeyNotFetched(SubmissionError):
    """Raised when key material is read before fetch() or create() completed."""

    def __init__(self, identifier: str):
        super().__init__(f"Key {identifier} has not been fetched")
        self.identifier = identifier


class SubmissionFailed(SubmissionError):
    """
    Coarse failure reported by the orchestrator.

    Attributes:
        attempted: Number of transactions in the submitted batch
        cause: Underlying error
        receipts: Receipts for transactions that already landed
    """

    def __init__(
        self,
        attempted: int,
        cause: BaseException,
        receipts: Optional[List["Receipt"]] = None,
    ):
        super().__init__(f"Failed to submit {attempted} transactions: {cause}")
        self.attempted = attempted
        self.cause = cause
        self.receipts = list(receipts or [])
