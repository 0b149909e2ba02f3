"""
Direct Cardano submitter.

Transactions carry the CBOR of an unsigned transaction body in ``data``. The
body is witnessed with the chain's payment key and submitted through the
chain provider.
"""

from typing import List

import structlog
from pycardano import TransactionBody

from txsubmit.chains.interface import ProtocolFamily
from txsubmit.core.errors import MalformedTransaction
from txsubmit.core.receipt import Receipt, ReceiptStatus
from txsubmit.core.transaction import TransactionValue
from txsubmit.submit.base import Submitter, register_submitter

logger = structlog.get_logger(__name__)


@register_submitter
class CardanoDirectSubmitter(Submitter):
    """Signs and submits prebuilt Cardano transaction bodies one by one."""

    kind = "direct"
    protocols = (ProtocolFamily.CARDANO,)

    async def _submit(self, transactions: List[TransactionValue]) -> List[Receipt]:
        bodies = [self._decode(index, tx) for index, tx in enumerate(transactions)]

        if self.dry_run:
            return await self._each(bodies, self._simulate_one)

        self._require_signer()
        return await self._each(bodies, self._send_one)

    def _decode(self, index: int, transaction: TransactionValue) -> TransactionBody:
        self._check_chain(index, transaction)
        if not transaction.payload:
            raise MalformedTransaction(index, "data must hold a CBOR transaction body")

        try:
            return TransactionBody.from_cbor(transaction.payload)
        except Exception as e:
            raise MalformedTransaction(index, f"data is not a CBOR transaction body: {e}")

    async def _send_one(self, index: int, body: TransactionBody) -> Receipt:
        signed = self.signer.sign_transaction(body)
        logger.info("tx_signed", chain=self.chain, index=index, tx_hash=body.hash().hex())
        outcome = await self._dispatch(signed.to_cbor(), index)
        return self._confirmed(index, outcome)

    async def _simulate_one(self, index: int, body: TransactionBody) -> Receipt:
        tx_hash = body.hash().hex()
        logger.info("tx_simulated", chain=self.chain, index=index, tx_hash=tx_hash)
        return self._receipt(
            index,
            ReceiptStatus.SIMULATED,
            transaction_hash=tx_hash,
            gas_used=body.fee,
        )
