"""
Abstract interface for chain access.

Defines the contract for broadcasting and confirming transactions that every
protocol adapter must implement.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import structlog

from txsubmit.core.errors import TransientDispatchFailure

logger = structlog.get_logger(__name__)


class ProtocolFamily(str, Enum):
    """Blockchain protocol families with distinct transaction and signing models."""
    ETHEREUM = "ethereum"
    CARDANO = "cardano"


@dataclass(frozen=True)
class TransactionOutcome:
    """Result of a transaction once it is included in a block."""
    transaction_hash: str
    executed: bool
    block_number: Optional[int] = None
    block_hash: Optional[str] = None
    gas_used: Optional[int] = None


class ChainProvider(ABC):
    """
    Abstract interface for chain access.

    Adapters translate transport errors into TransientDispatchFailure
    (retryable) or DispatchRejected (final).
    """

    protocol: ProtocolFamily

    @abstractmethod
    async def connect(self) -> None:
        """Open the underlying client."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the underlying client."""
        pass

    @abstractmethod
    async def send_raw_transaction(self, raw: bytes) -> str:
        """
        Broadcast a signed transaction.

        Args:
            raw: Serialized signed transaction

        Returns:
            Transaction hash

        Raises:
            TransientDispatchFailure: On network errors
            DispatchRejected: If the node refuses the transaction
        """
        pass

    @abstractmethod
    async def get_transaction_outcome(self, tx_hash: str) -> Optional[TransactionOutcome]:
        """
        Look up a transaction.

        Returns:
            The outcome if the transaction is in a block, None otherwise
        """
        pass

    async def await_confirmation(
        self,
        tx_hash: str,
        timeout_seconds: float = 120.0,
        poll_interval_seconds: float = 2.0,
    ) -> TransactionOutcome:
        """
        Wait until a transaction is included in a block.

        Raises:
            TransientDispatchFailure: If the transaction is not included in time
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_seconds

        while True:
            outcome = await self.get_transaction_outcome(tx_hash)
            if outcome is not None:
                logger.info(
                    "tx_confirmed",
                    tx_hash=tx_hash,
                    block_number=outcome.block_number,
                    executed=outcome.executed,
                )
                return outcome

            if loop.time() >= deadline:
                logger.warning("tx_confirmation_timeout", tx_hash=tx_hash)
                raise TransientDispatchFailure(
                    f"Transaction {tx_hash} not confirmed within {timeout_seconds}s"
                )

            await asyncio.sleep(poll_interval_seconds)
