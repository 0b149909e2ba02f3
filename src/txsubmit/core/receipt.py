"""
Receipt model.

One receipt is produced per transaction handed to a submitter.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class ReceiptStatus(str, Enum):
    """Outcome recorded by a receipt."""
    CONFIRMED = "confirmed"       # Included on-chain and executed
    PROPOSED = "proposed"         # Multisig proposal created, not executed
    SIMULATED = "simulated"       # Dry run, nothing was broadcast


@dataclass(frozen=True)
class Receipt:
    """
    Confirmation record for a submitted transaction.

    Attributes:
        index: Position of the transaction in the submitter input
        chain: Chain the transaction was dispatched to
        submitter: Kind of the submitter that produced the receipt
        status: Outcome of the submission
        transaction_hash: Hash of the broadcast transaction
        block_number: Block including the transaction
        block_hash: Hash of the including block
        gas_used: Gas (or fee units) consumed, or estimated in a dry run
        proposal_id: Identifier of a multisig proposal
        dispatch_hash: Hash of the shared dispatch for batched submitters
        batch_index: Position of the transaction inside the shared dispatch
        source_index: Position of the originating transaction in the batch
            given to the pipeline, before transformers ran. None when a
            whole-batch transformer changed the batch length.
        created_at: When the receipt was produced
    """

    index: int
    chain: str
    submitter: str
    status: ReceiptStatus

    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None
    block_hash: Optional[str] = None
    gas_used: Optional[int] = None

    proposal_id: Optional[str] = None

    dispatch_hash: Optional[str] = None
    batch_index: Optional[int] = None

    source_index: Optional[int] = None

    created_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self):
        if isinstance(self.status, str):
            object.__setattr__(self, "status", ReceiptStatus(self.status))

    @property
    def simulated(self) -> bool:
        """True for dry-run receipts; nothing was broadcast."""
        return self.status == ReceiptStatus.SIMULATED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: Dict[str, Any] = {
            "index": self.index,
            "chain": self.chain,
            "submitter": self.submitter,
            "status": self.status.value,
            "simulated": self.simulated,
            "transactionHash": self.transaction_hash,
            "blockNumber": self.block_number,
            "blockHash": self.block_hash,
            "gasUsed": self.gas_used,
            "proposalId": self.proposal_id,
            "dispatchHash": self.dispatch_hash,
            "batchIndex": self.batch_index,
            "sourceIndex": self.source_index,
            "createdAt": self.created_at.isoformat(),
        }
        return {key: value for key, value in data.items() if value is not None}

    def __repr__(self) -> str:
        reference = self.proposal_id or self.transaction_hash or "-"
        return f"Receipt(index={self.index}, status={self.status.value}, ref={reference[:18]})"
