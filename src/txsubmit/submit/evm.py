"""
Shared EVM submitter logic: validation, nonce tracking and transaction
population.
"""

from typing import Dict, List, Optional

import structlog

from txsubmit.chains.calls import checksum_address, require_address
from txsubmit.chains.interface import ProtocolFamily
from txsubmit.core.errors import MalformedTransaction
from txsubmit.core.transaction import TransactionValue
from txsubmit.submit.base import Submitter

logger = structlog.get_logger(__name__)


class EvmSubmitter(Submitter):
    """Base class for submitters that sign and send EVM transactions."""

    protocols = (ProtocolFamily.ETHEREUM,)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._nonce: Optional[int] = None
        self._chain_id: Optional[int] = self.context.metadata.chain_id

    @property
    def sender(self) -> Optional[str]:
        return self.signer.address if self.signer is not None else None

    def _validate(self, transactions: List[TransactionValue]) -> List[str]:
        """
        Check every transaction before anything is sent.

        Returns:
            Checksummed destination addresses in input order

        Raises:
            MalformedTransaction: For the first transaction that fails a check
        """
        targets = []
        for index, transaction in enumerate(transactions):
            self._check_chain(index, transaction)
            targets.append(require_address(index, transaction.to))
            if transaction.sender is not None:
                require_address(index, transaction.sender, field="from")
            dynamic_fees = (transaction.max_fee_per_gas, transaction.max_priority_fee_per_gas)
            if transaction.gas_price is not None and any(fee is not None for fee in dynamic_fees):
                raise MalformedTransaction(index, "cannot mix gasPrice with EIP-1559 fee fields")
            if transaction.max_priority_fee_per_gas is not None and transaction.max_fee_per_gas is None:
                raise MalformedTransaction(index, "maxPriorityFeePerGas requires maxFeePerGas")
        return targets

    def _call(self, transaction: TransactionValue) -> Dict[str, str]:
        """Transaction as an eth_call / eth_estimateGas object."""
        call = {
            "to": checksum_address(transaction.to),
            "data": transaction.data,
            "value": hex(transaction.value),
        }
        sender = self.sender or transaction.sender
        if sender:
            call["from"] = sender
        return call

    async def _estimate_gas(self, transaction: TransactionValue) -> int:
        if transaction.gas_limit is not None:
            return transaction.gas_limit
        return await self.provider.estimate_gas(self._call(transaction))

    async def _take_nonce(self, transaction: TransactionValue) -> int:
        """Nonce for the next transaction, queried once per batch."""
        if transaction.nonce is not None:
            return transaction.nonce

        if self._nonce is None:
            self._nonce = await self.provider.get_transaction_count(self.sender, "pending")
            logger.debug("nonce_loaded", chain=self.chain, address=self.sender, nonce=self._nonce)

        nonce = self._nonce
        self._nonce += 1
        return nonce

    async def _get_chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = await self.provider.chain_id()
        return self._chain_id

    async def _populate(self, transaction: TransactionValue, nonce: int) -> dict:
        """
        Fill in everything eth_account needs to sign the transaction.

        Args:
            transaction: Validated transaction
            nonce: Nonce reserved for it

        Returns:
            Transaction dict ready for signing
        """
        populated = {
            "to": checksum_address(transaction.to),
            "value": transaction.value,
            "data": transaction.data,
            "nonce": nonce,
            "gas": await self._estimate_gas(transaction),
            "chainId": await self._get_chain_id(),
        }

        if transaction.max_fee_per_gas is not None:
            populated["maxFeePerGas"] = transaction.max_fee_per_gas
            populated["maxPriorityFeePerGas"] = (
                transaction.max_priority_fee_per_gas
                if transaction.max_priority_fee_per_gas is not None
                else transaction.max_fee_per_gas
            )
        else:
            populated["gasPrice"] = (
                transaction.gas_price
                if transaction.gas_price is not None
                else await self.provider.gas_price()
            )

        return populated

    async def _sign_and_send(self, index: int, transaction: TransactionValue):
        """Sign one transaction with a fresh nonce, broadcast it and confirm it."""
        signer = self._require_signer()
        nonce = await self.retry.run(
            lambda: self._take_nonce(transaction), chain=self.chain, index=index
        )
        populated = await self.retry.run(
            lambda: self._populate(transaction, nonce), chain=self.chain, index=index
        )
        signed = signer.sign_transaction(populated)
        logger.info("tx_signed", chain=self.chain, index=index, tx_hash=signed.hash, nonce=nonce)
        return await self._dispatch(signed.raw, index)
