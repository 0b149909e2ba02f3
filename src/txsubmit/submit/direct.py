"""
Direct EVM submitter.

Signs each transaction with the chain's key and sends it on its own.
"""

from typing import List

import structlog

from txsubmit.core.receipt import Receipt, ReceiptStatus
from txsubmit.core.transaction import TransactionValue
from txsubmit.submit.base import register_submitter
from txsubmit.submit.evm import EvmSubmitter

logger = structlog.get_logger(__name__)


@register_submitter
class EvmDirectSubmitter(EvmSubmitter):
    """
    Sends transactions one by one from the chain's signer.

    Each transaction is confirmed before the next one is sent. A failure
    stops the batch; receipts of the transactions already confirmed are kept
    on the raised PartialBatchFailure.
    """

    kind = "direct"

    async def _submit(self, transactions: List[TransactionValue]) -> List[Receipt]:
        self._validate(transactions)

        if self.dry_run:
            return await self._each(transactions, self._simulate_one)

        self._require_signer()
        self._nonce = None
        return await self._each(transactions, self._send_one)

    async def _send_one(self, index: int, transaction: TransactionValue) -> Receipt:
        outcome = await self._sign_and_send(index, transaction)
        return self._confirmed(index, outcome)

    async def _simulate_one(self, index: int, transaction: TransactionValue) -> Receipt:
        gas = await self.retry.run(
            lambda: self._estimate_gas(transaction), chain=self.chain, index=index
        )
        logger.info("tx_simulated", chain=self.chain, index=index, gas=gas)
        return self._receipt(index, ReceiptStatus.SIMULATED, gas_used=gas)
