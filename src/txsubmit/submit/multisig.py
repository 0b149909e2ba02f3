"""
Multisig proposal submitter.

Turns every transaction into a proposal for a multisig account instead of
executing it. Proposals are identified by their EIP-712 transaction hash,
signed by the chain's key as proposer and posted to a proposal service,
where the remaining owners add signatures until the threshold is met.
"""

from dataclasses import dataclass
from typing import Any, List, Optional

import httpx
import structlog
from eth_abi import encode
from eth_utils import keccak
from pydantic import BaseModel, ConfigDict, Field, field_validator

from txsubmit.chains.calls import checksum_address
from txsubmit.chains.registry import ChainMetadata, MultisigConfig
from txsubmit.config import SubmitterConfig, get_config
from txsubmit.core.errors import DispatchRejected, InvalidStrategy, TransientDispatchFailure
from txsubmit.core.receipt import Receipt, ReceiptStatus
from txsubmit.core.transaction import TransactionValue
from txsubmit.submit.base import register_submitter
from txsubmit.submit.evm import EvmSubmitter

logger = structlog.get_logger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

DOMAIN_TYPEHASH = keccak(text="EIP712Domain(uint256 chainId,address verifyingContract)")
SAFE_TX_TYPEHASH = keccak(
    text=(
        "SafeTx(address to,uint256 value,bytes data,uint8 operation,uint256 safeTxGas,"
        "uint256 baseGas,uint256 gasPrice,address gasToken,address refundReceiver,uint256 nonce)"
    )
)


def proposal_hash(
    chain_id: int,
    safe_address: str,
    to: str,
    value: int,
    data: bytes,
    nonce: int,
) -> bytes:
    """
    EIP-712 hash of a multisig transaction (call operation, no refunds).

    The hash depends only on the proposal contents, the account and its
    nonce, so the same proposal always gets the same identifier.
    """
    domain_separator = keccak(
        encode(["bytes32", "uint256", "address"], [DOMAIN_TYPEHASH, chain_id, safe_address])
    )
    struct_hash = keccak(
        encode(
            [
                "bytes32", "address", "uint256", "bytes32", "uint8",
                "uint256", "uint256", "uint256", "address", "address", "uint256",
            ],
            [
                SAFE_TX_TYPEHASH, to, value, keccak(data), 0,
                0, 0, 0, ZERO_ADDRESS, ZERO_ADDRESS, nonce,
            ],
        )
    )
    return keccak(b"\x19\x01" + domain_separator + struct_hash)


class MultisigProposalParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    safe_address: str
    service_url: str = Field(min_length=1)
    threshold: Optional[int] = Field(default=None, ge=1)
    owners: Optional[List[str]] = None
    nonce: Optional[int] = Field(default=None, ge=0)

    @field_validator("safe_address")
    @classmethod
    def _checksum(cls, value: str) -> str:
        return checksum_address(value)

    @field_validator("owners")
    @classmethod
    def _checksum_owners(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        return [checksum_address(owner) for owner in value]


def resolve_security(
    params: MultisigProposalParams,
    security_module: Optional[MultisigConfig],
) -> MultisigConfig:
    """
    Combine submitter parameters with the chain's security module.

    Raises:
        InvalidStrategy: If no threshold is known or it exceeds the owner count
    """
    owners = params.owners or (security_module.validators if security_module else None)
    threshold = params.threshold or (security_module.threshold if security_module else None)

    if not owners or threshold is None:
        raise InvalidStrategy(
            "multisig-proposal needs owners and threshold in the strategy "
            "or a security module for the chain"
        )
    if threshold > len(owners):
        raise InvalidStrategy(f"threshold {threshold} exceeds owner count {len(owners)}")

    return MultisigConfig(validators=list(owners), threshold=threshold)


class ProposalService:
    """
    HTTP client for a multisig transaction service.

    Errors are mapped like the chain adapters map theirs: network errors and
    5xx/429 responses are transient, everything else is a rejection.
    """

    def __init__(
        self,
        base_url: str,
        config: Optional[SubmitterConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.config = config or get_config()
        self._client = client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, expect_json: bool = True, **kwargs) -> Any:
        if not self._client:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.config.request_timeout_seconds,
            )

        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.warning("proposal_service_request_error", path=path, error=str(e))
            raise TransientDispatchFailure(f"Proposal service request failed: {e}")

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientDispatchFailure(
                f"Proposal service unavailable ({response.status_code}): {response.text}"
            )
        if response.status_code not in (200, 201, 204):
            logger.error(
                "proposal_service_request_failed",
                path=path,
                status=response.status_code,
                error=response.text,
            )
            raise DispatchRejected(
                f"Proposal service error: {response.text}", str(response.status_code)
            )

        if not expect_json or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning("proposal_service_invalid_response", path=path, body=response.text[:200])
            raise TransientDispatchFailure(f"Proposal service returned a non-JSON response for {path}")

    async def get_nonce(self, safe_address: str) -> int:
        """Next unused nonce of the multisig account."""
        data = await self._request("GET", f"/api/v1/safes/{safe_address}/")
        if not isinstance(data, dict) or "nonce" not in data:
            raise TransientDispatchFailure(f"Proposal service returned no nonce for {safe_address}")
        return int(data["nonce"])

    async def propose(self, safe_address: str, proposal: dict) -> None:
        await self._request(
            "POST",
            f"/api/v1/safes/{safe_address}/multisig-transactions/",
            expect_json=False,
            json=proposal,
        )


@dataclass(frozen=True)
class Proposal:
    """A multisig transaction ready to be posted."""
    to: str
    value: int
    data: str
    nonce: int
    safe_tx_hash: str

    def to_payload(self, sender: str, signature: str) -> dict:
        return {
            "to": self.to,
            "value": str(self.value),
            "data": self.data if self.data != "0x" else None,
            "operation": 0,
            "safeTxGas": "0",
            "baseGas": "0",
            "gasPrice": "0",
            "gasToken": ZERO_ADDRESS,
            "refundReceiver": ZERO_ADDRESS,
            "nonce": self.nonce,
            "contractTransactionHash": self.safe_tx_hash,
            "sender": sender,
            "signature": signature,
            "origin": "txsubmit",
        }


@register_submitter
class MultisigProposalSubmitter(EvmSubmitter):
    """
    Proposes transactions to a multisig account.

    Receipts carry proposal ids with status ``proposed``; nothing is executed
    on-chain. Every proposal is built before the first one is posted.
    """

    kind = "multisig-proposal"
    params_model = MultisigProposalParams

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.security = resolve_security(self.params, self.context.security_module)
        self.service = ProposalService(self.params.service_url, config=self.config)

    @classmethod
    def check_params(cls, params: MultisigProposalParams, metadata: ChainMetadata) -> None:
        resolve_security(params, metadata.security_module)

    async def aclose(self) -> None:
        await self.service.close()

    async def _submit(self, transactions: List[TransactionValue]) -> List[Receipt]:
        targets = self._validate(transactions)
        proposals = await self._build_proposals(transactions, targets)

        logger.info(
            "proposals_built",
            chain=self.chain,
            safe=self.params.safe_address,
            count=len(proposals),
            threshold=self.security.threshold,
            owners=len(self.security.validators),
        )

        if self.dry_run:
            return [
                self._receipt(index, ReceiptStatus.SIMULATED, proposal_id=proposal.safe_tx_hash)
                for index, proposal in enumerate(proposals)
            ]

        signer = self._require_signer()
        payloads = [
            proposal.to_payload(signer.address, signer.sign_hash(bytes.fromhex(proposal.safe_tx_hash[2:])))
            for proposal in proposals
        ]
        return await self._each(list(zip(proposals, payloads)), self._post_one)

    async def _build_proposals(
        self,
        transactions: List[TransactionValue],
        targets: List[str],
    ) -> List[Proposal]:
        nonce = self.params.nonce
        if nonce is None:
            nonce = await self.retry.run(
                lambda: self.service.get_nonce(self.params.safe_address), chain=self.chain
            )
        chain_id = await self.retry.run(self._get_chain_id, chain=self.chain)

        proposals = []
        for offset, (transaction, to) in enumerate(zip(transactions, targets)):
            digest = proposal_hash(
                chain_id,
                self.params.safe_address,
                to,
                transaction.value,
                transaction.payload,
                nonce + offset,
            )
            proposals.append(
                Proposal(
                    to=to,
                    value=transaction.value,
                    data=transaction.data,
                    nonce=nonce + offset,
                    safe_tx_hash="0x" + digest.hex(),
                )
            )
        return proposals

    async def _post_one(self, index: int, item) -> Receipt:
        proposal, payload = item
        await self.retry.run(
            lambda: self.service.propose(self.params.safe_address, payload),
            chain=self.chain,
            index=index,
        )
        logger.info(
            "proposal_posted",
            chain=self.chain,
            index=index,
            proposal_id=proposal.safe_tx_hash,
            nonce=proposal.nonce,
        )
        return self._receipt(index, ReceiptStatus.PROPOSED, proposal_id=proposal.safe_tx_hash)
