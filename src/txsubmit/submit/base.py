"""
Submitter base class and registry.

A submitter owns every dispatch for one strategy: it signs, broadcasts and
confirms the transactions it receives, or turns them into proposals.
"""

from abc import ABC, abstractmethod
from typing import (
    Awaitable,
    Callable,
    ClassVar,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    Type,
    TypeVar,
)

import structlog
from pydantic import BaseModel

from txsubmit.chains.interface import ProtocolFamily, TransactionOutcome
from txsubmit.chains.registry import ChainMetadata, ChainRuntimeContext
from txsubmit.config import SubmitterConfig, get_config
from txsubmit.core.errors import (
    DispatchRejected,
    MalformedTransaction,
    PartialBatchFailure,
    UnsupportedSubmitterKind,
)
from txsubmit.core.receipt import Receipt, ReceiptStatus
from txsubmit.core.transaction import TransactionValue
from txsubmit.submit.retry import RetryPolicy
from txsubmit.transform.base import NoParams

logger = structlog.get_logger(__name__)

ItemT = TypeVar("ItemT")


class Submitter(ABC):
    """
    Abstract base class for submitters.

    Subclasses set ``kind``, ``protocols`` and ``params_model`` and implement
    ``_submit``. Receipts are returned in input order, one per transaction.
    """

    kind: ClassVar[str]
    protocols: ClassVar[Tuple[ProtocolFamily, ...]]
    params_model: ClassVar[Type[BaseModel]] = NoParams

    def __init__(
        self,
        context: ChainRuntimeContext,
        params: BaseModel,
        config: Optional[SubmitterConfig] = None,
        dry_run: bool = False,
    ):
        """
        Args:
            context: Runtime context of the chain this submitter dispatches to
            params: Validated instance of ``params_model``
            config: Submitter configuration. Uses global config if not provided.
            dry_run: Simulate instead of broadcasting
        """
        self.context = context
        self.params = params
        self.config = config or get_config()
        self.dry_run = dry_run
        self.retry = RetryPolicy.from_config(self.config)

    @classmethod
    def check_params(cls, params: BaseModel, metadata: ChainMetadata) -> None:
        """
        Check parameters against chain metadata before any connection is made.

        Raises:
            InvalidStrategy: If the parameters cannot work on this chain
        """
        pass

    @property
    def chain(self) -> str:
        return self.context.chain

    @property
    def provider(self):
        return self.context.provider

    @property
    def signer(self):
        return self.context.signer

    async def submit(self, transactions: Sequence[TransactionValue]) -> List[Receipt]:
        """
        Submit an ordered batch.

        Returns:
            One receipt per transaction, in input order

        Raises:
            MalformedTransaction: If a transaction cannot be interpreted; nothing
                has been dispatched
            PartialBatchFailure: If dispatch stopped partway
        """
        transactions = list(transactions)
        if not transactions:
            return []

        logger.info(
            "submission_started",
            chain=self.chain,
            submitter=self.kind,
            count=len(transactions),
            dry_run=self.dry_run,
        )

        receipts = await self._submit(transactions)

        logger.info(
            "submission_completed",
            chain=self.chain,
            submitter=self.kind,
            receipts=len(receipts),
        )
        return receipts

    @abstractmethod
    async def _submit(self, transactions: List[TransactionValue]) -> List[Receipt]:
        pass

    async def aclose(self) -> None:
        """Release clients owned by the submitter. Chain providers belong to the registry."""
        pass

    def _check_chain(self, index: int, transaction: TransactionValue) -> None:
        if transaction.chain != self.chain:
            raise MalformedTransaction(
                index,
                f"targets chain {transaction.chain}, submitter is bound to {self.chain}",
            )

    def _require_signer(self):
        if self.signer is None or not self.signer.is_loaded:
            raise DispatchRejected(f"No signer configured for chain {self.chain}")
        return self.signer

    def _receipt(self, index: int, status: ReceiptStatus, **fields) -> Receipt:
        return Receipt(
            index=index,
            chain=self.chain,
            submitter=self.kind,
            status=status,
            **fields,
        )

    def _confirmed(self, index: int, outcome: TransactionOutcome, **fields) -> Receipt:
        return self._receipt(
            index,
            ReceiptStatus.CONFIRMED,
            transaction_hash=outcome.transaction_hash,
            block_number=outcome.block_number,
            block_hash=outcome.block_hash,
            gas_used=outcome.gas_used,
            **fields,
        )

    async def _dispatch(self, raw: bytes, index: int) -> TransactionOutcome:
        """
        Broadcast a signed transaction and wait for it to be included.

        The broadcast happens once; retries after a successful broadcast only
        wait for the confirmation again.

        Raises:
            TransientDispatchFailure: If every attempt failed transiently
            DispatchRejected: If the node refused the transaction or it reverted
        """
        tx_hash: Optional[str] = None

        async def attempt() -> TransactionOutcome:
            nonlocal tx_hash
            if tx_hash is None:
                tx_hash = await self.provider.send_raw_transaction(raw)
            return await self.provider.await_confirmation(
                tx_hash,
                timeout_seconds=self.config.confirmation_timeout_seconds,
                poll_interval_seconds=self.config.confirmation_poll_interval_seconds,
            )

        outcome = await self.retry.run(attempt, chain=self.chain, index=index)
        if not outcome.executed:
            logger.error("tx_reverted", chain=self.chain, index=index, tx_hash=outcome.transaction_hash)
            raise DispatchRejected(f"Transaction {outcome.transaction_hash} reverted", "reverted")
        return outcome

    async def _each(
        self,
        items: Sequence[ItemT],
        dispatch_one: Callable[[int, ItemT], Awaitable[Receipt]],
    ) -> List[Receipt]:
        """
        Dispatch items one after another, stopping at the first failure.

        An error of any type stops the batch.

        Raises:
            PartialBatchFailure: Carrying the receipts produced before the failure
        """
        receipts: List[Receipt] = []
        for index, item in enumerate(items):
            try:
                receipts.append(await dispatch_one(index, item))
            except Exception as e:
                logger.error(
                    "dispatch_failed",
                    chain=self.chain,
                    index=index,
                    succeeded=len(receipts),
                    error=str(e),
                )
                raise PartialBatchFailure(receipts, index, e) from e
        return receipts


_SUBMITTERS: Dict[Tuple[str, ProtocolFamily], Type[Submitter]] = {}


def register_submitter(cls: Type[Submitter]) -> Type[Submitter]:
    """Class decorator registering a submitter for each of its protocol families."""
    for protocol in cls.protocols:
        _SUBMITTERS[(cls.kind, protocol)] = cls
    return cls


def get_submitter_class(kind: str, protocol: ProtocolFamily) -> Type[Submitter]:
    """
    Look up the submitter registered for a kind and protocol family.

    Raises:
        UnsupportedSubmitterKind: If nothing is registered for the pair
    """
    cls = _SUBMITTERS.get((kind, protocol))
    if cls is None:
        raise UnsupportedSubmitterKind(kind, protocol.value)
    return cls


def registered_submitters() -> List[Tuple[str, str]]:
    return sorted((kind, protocol.value) for kind, protocol in _SUBMITTERS)
