"""
Intermediary call transformer.

Routes every transaction through an intermediary contract (a proxy or
executor account) that performs the original call on the caller's behalf.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, field_validator

from txsubmit.chains.calls import checksum_address, encode_call, require_address
from txsubmit.chains.interface import ProtocolFamily
from txsubmit.core.transaction import TransactionValue
from txsubmit.transform.base import MapTransformer, register_transformer

EXECUTE_SIGNATURE = "execute(address,uint256,bytes)"


class IntermediaryCallParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    intermediary: str

    @field_validator("intermediary")
    @classmethod
    def _checksum(cls, value: str) -> str:
        return checksum_address(value)


@register_transformer
class IntermediaryCallTransformer(MapTransformer):
    """
    Wraps ``(to, value, data)`` into ``intermediary.execute(to, value, data)``.

    The wrapped transaction carries the original value so the intermediary can
    forward it.
    """

    kind = "intermediary-call"
    params_model = IntermediaryCallParams
    protocols = (ProtocolFamily.ETHEREUM,)

    def transform_one(self, index: int, transaction: TransactionValue) -> List[TransactionValue]:
        target = require_address(index, transaction.to)
        data = encode_call(
            EXECUTE_SIGNATURE,
            ["address", "uint256", "bytes"],
            [target, transaction.value, transaction.payload],
        )
        return [
            transaction.model_copy(update={
                "to": self.params.intermediary,
                "data": "0x" + data.hex(),
                "gas_limit": None,
                "metadata": {**transaction.metadata, "wrapped_to": target},
            })
        ]
