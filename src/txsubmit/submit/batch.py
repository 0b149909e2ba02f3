"""
Batch executor submitter.

Packs a whole batch into one ``aggregate3Value`` call on a Multicall3
contract, so every transaction lands in the same dispatch or none does.
"""

from typing import List

import structlog
from pydantic import BaseModel, ConfigDict, field_validator

from txsubmit.chains.calls import checksum_address, encode_call
from txsubmit.core.errors import PartialBatchFailure
from txsubmit.core.receipt import Receipt, ReceiptStatus
from txsubmit.core.transaction import TransactionValue
from txsubmit.submit.base import register_submitter
from txsubmit.submit.evm import EvmSubmitter

logger = structlog.get_logger(__name__)

# Multicall3 is deployed at the same address on most EVM chains
MULTICALL3_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"
AGGREGATE3_VALUE_SIGNATURE = "aggregate3Value((address,bool,uint256,bytes)[])"


class BatchExecutorParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    multicall_address: str = MULTICALL3_ADDRESS

    @field_validator("multicall_address")
    @classmethod
    def _checksum(cls, value: str) -> str:
        return checksum_address(value)


@register_submitter
class BatchExecutorSubmitter(EvmSubmitter):
    """
    Dispatches the whole batch as one multicall transaction.

    Every receipt carries the shared ``dispatch_hash`` and its position in
    the call as ``batch_index``. Calls never allow failure: one reverting call
    reverts the whole dispatch, so a confirmed dispatch means every call ran.
    """

    kind = "batch-executor"
    params_model = BatchExecutorParams

    def build_dispatch(self, transactions: List[TransactionValue], targets: List[str]) -> TransactionValue:
        """Encode the batch into a single multicall transaction."""
        calls = [
            (to, False, tx.value, tx.payload)
            for tx, to in zip(transactions, targets)
        ]
        data = encode_call(
            AGGREGATE3_VALUE_SIGNATURE,
            ["(address,bool,uint256,bytes)[]"],
            [calls],
        )
        return TransactionValue(
            chain=self.chain,
            to=self.params.multicall_address,
            data="0x" + data.hex(),
            value=sum(tx.value for tx in transactions),
        )

    async def _submit(self, transactions: List[TransactionValue]) -> List[Receipt]:
        targets = self._validate(transactions)
        dispatch = self.build_dispatch(transactions, targets)

        logger.info(
            "batch_dispatch_built",
            chain=self.chain,
            multicall=self.params.multicall_address,
            calls=len(transactions),
            value=dispatch.value,
        )

        if self.dry_run:
            return await self._simulate(transactions, dispatch)

        self._require_signer()
        self._nonce = None
        try:
            outcome = await self._sign_and_send(0, dispatch)
        except Exception as e:
            logger.error("batch_dispatch_failed", chain=self.chain, error=str(e))
            raise PartialBatchFailure([], 0, e) from e

        return [
            self._receipt(
                index,
                ReceiptStatus.CONFIRMED,
                transaction_hash=outcome.transaction_hash,
                block_number=outcome.block_number,
                block_hash=outcome.block_hash,
                dispatch_hash=outcome.transaction_hash,
                batch_index=index,
            )
            for index in range(len(transactions))
        ]

    async def _simulate(
        self,
        transactions: List[TransactionValue],
        dispatch: TransactionValue,
    ) -> List[Receipt]:
        try:
            gas = await self.retry.run(lambda: self._estimate_gas(dispatch), chain=self.chain)
        except Exception as e:
            raise PartialBatchFailure([], 0, e) from e

        logger.info("batch_simulated", chain=self.chain, calls=len(transactions), gas=gas)
        return [
            self._receipt(index, ReceiptStatus.SIMULATED, gas_used=gas, batch_index=index)
            for index in range(len(transactions))
        ]
