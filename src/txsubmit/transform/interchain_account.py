"""
Interchain account transformer.

Turns transactions meant for a remote chain into calls to the local
interchain account router, which relays them as a message and executes them
from the caller's account on the destination chain.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from txsubmit.chains.calls import address_to_bytes32, checksum_address, encode_call, require_address
from txsubmit.chains.interface import ProtocolFamily
from txsubmit.core.errors import MalformedTransaction
from txsubmit.core.transaction import TransactionValue
from txsubmit.transform.base import MapTransformer, register_transformer

CALL_REMOTE_SIGNATURE = "callRemote(uint32,(bytes32,uint256,bytes)[])"


class InterchainAccountParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    router: str
    destination: str = Field(min_length=1)
    destination_domain: int = Field(ge=0, lt=2**32)
    gas_payment: int = Field(default=0, ge=0)

    @field_validator("router")
    @classmethod
    def _checksum(cls, value: str) -> str:
        return checksum_address(value)


@register_transformer
class InterchainAccountTransformer(MapTransformer):
    """
    Rewrites a destination-chain transaction into ``router.callRemote(...)`` on
    the pipeline chain.

    Nonce and gas hints belong to the destination chain and are dropped.
    """

    kind = "interchain-account"
    params_model = InterchainAccountParams
    protocols = (ProtocolFamily.ETHEREUM,)

    def transform_one(self, index: int, transaction: TransactionValue) -> List[TransactionValue]:
        if transaction.chain != self.params.destination:
            raise MalformedTransaction(
                index,
                f"targets {transaction.chain}, expected {self.params.destination}",
            )

        target = require_address(index, transaction.to)
        call = (address_to_bytes32(target), transaction.value, transaction.payload)
        data = encode_call(
            CALL_REMOTE_SIGNATURE,
            ["uint32", "(bytes32,uint256,bytes)[]"],
            [self.params.destination_domain, [call]],
        )

        return [
            TransactionValue(
                chain=self.chain,
                to=self.params.router,
                data="0x" + data.hex(),
                value=self.params.gas_payment,
                sender=transaction.sender,
                metadata={
                    **transaction.metadata,
                    "interchain_account": {
                        "destination": self.params.destination,
                        "destination_domain": self.params.destination_domain,
                        "to": target,
                    },
                },
            )
        ]
