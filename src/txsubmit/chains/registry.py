"""
Chain registry.

Resolves chain names to runtime contexts (metadata, provider, signer). Signers
backed by remote keys are fetched on first use and cached for the run.
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from txsubmit.chains.cardano import BlockfrostProvider
from txsubmit.chains.evm import JsonRpcProvider
from txsubmit.chains.interface import ChainProvider, ProtocolFamily
from txsubmit.config import SubmitterConfig, get_config
from txsubmit.core.errors import InvalidStrategy, UnknownChain
from txsubmit.core.transaction import summarize_validation_error
from txsubmit.keys.agent import AgentKey, KeyRole
from txsubmit.keys.backend import InMemoryKeyBackend, KeyBackend, SecretNotFound
from txsubmit.signers.cardano import CardanoSigner
from txsubmit.signers.evm import EvmSigner

logger = structlog.get_logger(__name__)

Signer = Union[EvmSigner, CardanoSigner]


class MultisigConfig(BaseModel):
    """Validator set and signing threshold of a chain's security module."""

    model_config = ConfigDict(frozen=True)

    validators: List[str] = Field(min_length=1)
    threshold: int = Field(ge=1)

    @model_validator(mode="after")
    def _check_threshold(self) -> "MultisigConfig":
        if self.threshold > len(self.validators):
            raise ValueError(
                f"threshold {self.threshold} exceeds validator count {len(self.validators)}"
            )
        return self


class KeyReference(BaseModel):
    """Pointer to a remote key used as a chain's signer."""

    model_config = ConfigDict(frozen=True)

    role: KeyRole = KeyRole.DEPLOYER
    environment: Optional[str] = None
    index: Optional[int] = None


class ChainMetadata(BaseModel):
    """
    How to reach and sign for one chain.

    Attributes:
        name: Chain name used by strategies and transactions
        protocol: Protocol family of the chain
        chain_id: Numeric chain id (EVM); queried from the node if unset
        rpc_url: JSON-RPC endpoint (EVM)
        network: Cardano network name
        blockfrost_project_id: Blockfrost API key (Cardano)
        blockfrost_base_url: Custom Blockfrost base URL (Cardano)
        private_key_env: Environment variable holding the signing key
        signing_key_path: Signing key file (Cardano)
        key: Remote key used as signer
        security_module: Multisig validator set and threshold
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    protocol: ProtocolFamily = ProtocolFamily.ETHEREUM
    chain_id: Optional[int] = None
    rpc_url: Optional[str] = None

    network: str = "preprod"
    blockfrost_project_id: Optional[str] = None
    blockfrost_base_url: Optional[str] = None

    private_key_env: Optional[str] = None
    signing_key_path: Optional[str] = None
    key: Optional[KeyReference] = None

    security_module: Optional[MultisigConfig] = None


@dataclass
class ChainRuntimeContext:
    """Everything a submitter needs to reach and sign for one chain."""
    metadata: ChainMetadata
    provider: ChainProvider
    signer: Optional[Signer] = None

    @property
    def chain(self) -> str:
        return self.metadata.name

    @property
    def protocol(self) -> ProtocolFamily:
        return self.metadata.protocol

    @property
    def security_module(self) -> Optional[MultisigConfig]:
        return self.metadata.security_module


class ChainRegistry:
    """
    Multi-chain connection registry.

    Usage:
        ```python
        registry = ChainRegistry.from_document(read_yaml_or_json("chains.yaml"))
        context = await registry.get_context("sepolia")
        ```
    """

    def __init__(
        self,
        chains: Iterable[ChainMetadata],
        config: Optional[SubmitterConfig] = None,
        key_backend: Optional[KeyBackend] = None,
        providers: Optional[Dict[str, ChainProvider]] = None,
        signers: Optional[Dict[str, Signer]] = None,
    ):
        """
        Initialize the registry.

        Args:
            chains: Metadata of every known chain
            config: Submitter configuration
            key_backend: Backend for chains whose signer is a remote key
            providers: Provider overrides by chain name
            signers: Signer overrides by chain name
        """
        self.config = config or get_config()
        self.key_backend = key_backend or InMemoryKeyBackend()
        self._chains: Dict[str, ChainMetadata] = {c.name: c for c in chains}
        self._providers: Dict[str, ChainProvider] = dict(providers or {})
        self._signers: Dict[str, Optional[Signer]] = dict(signers or {})
        self._contexts: Dict[str, ChainRuntimeContext] = {}

    @classmethod
    def from_document(
        cls,
        document: Dict[str, Any],
        **kwargs,
    ) -> "ChainRegistry":
        """
        Build a registry from a ``{chain_name: {...metadata}}`` mapping.

        Raises:
            InvalidStrategy: If a chain entry does not match the schema
        """
        chains = []
        for name, entry in (document or {}).items():
            try:
                chains.append(ChainMetadata.model_validate({"name": name, **(entry or {})}))
            except ValidationError as e:
                raise InvalidStrategy(
                    f"Invalid metadata for chain {name}: {summarize_validation_error(e)}"
                )
        return cls(chains, **kwargs)

    @property
    def chains(self) -> List[str]:
        return list(self._chains)

    def metadata(self, chain: str) -> ChainMetadata:
        """
        Get chain metadata without touching the network.

        Raises:
            UnknownChain: If the chain is not registered
        """
        if chain not in self._chains:
            raise UnknownChain(chain)
        return self._chains[chain]

    def protocol(self, chain: str) -> ProtocolFamily:
        return self.metadata(chain).protocol

    def security_module(self, chain: str) -> Optional[MultisigConfig]:
        return self.metadata(chain).security_module

    async def get_context(self, chain: str) -> ChainRuntimeContext:
        """
        Resolve the runtime context of a chain, creating it on first use.

        Raises:
            UnknownChain: If the chain is not registered
        """
        if chain in self._contexts:
            return self._contexts[chain]

        metadata = self.metadata(chain)
        provider = self._providers.get(chain) or self._create_provider(metadata)
        self._providers[chain] = provider

        if chain not in self._signers:
            self._signers[chain] = await self._create_signer(metadata)

        context = ChainRuntimeContext(
            metadata=metadata,
            provider=provider,
            signer=self._signers[chain],
        )
        self._contexts[chain] = context

        logger.debug(
            "chain_context_resolved",
            chain=chain,
            protocol=metadata.protocol.value,
            signer=context.signer.address if context.signer else None,
        )
        return context

    async def close(self) -> None:
        """Disconnect every provider created by the registry."""
        for provider in self._providers.values():
            await provider.disconnect()
        self._contexts.clear()

    def _create_provider(self, metadata: ChainMetadata) -> ChainProvider:
        if metadata.protocol == ProtocolFamily.CARDANO:
            return BlockfrostProvider(
                project_id=metadata.blockfrost_project_id,
                network=metadata.network,
                base_url=metadata.blockfrost_base_url,
                config=self.config,
            )

        if not metadata.rpc_url:
            raise InvalidStrategy(f"No rpc_url configured for chain {metadata.name}")
        return JsonRpcProvider(metadata.rpc_url, config=self.config)

    async def _create_signer(self, metadata: ChainMetadata) -> Optional[Signer]:
        if metadata.protocol == ProtocolFamily.CARDANO:
            return self._create_cardano_signer(metadata)

        if metadata.key is not None:
            key = AgentKey(
                environment=metadata.key.environment or self.config.environment,
                role=metadata.key.role,
                backend=self.key_backend,
                chain=metadata.name if metadata.key.role == KeyRole.VALIDATOR else None,
                index=metadata.key.index,
                prefix=self.config.key_prefix,
            )
            try:
                await key.fetch()
            except SecretNotFound as e:
                raise InvalidStrategy(f"Signing key for chain {metadata.name} not found: {e}") from e
            return EvmSigner.from_agent_key(key)

        if metadata.private_key_env:
            private_key = os.environ.get(metadata.private_key_env)
            if not private_key:
                raise InvalidStrategy(
                    f"Environment variable {metadata.private_key_env} is not set "
                    f"for chain {metadata.name}"
                )
            return EvmSigner(private_key)

        return None

    def _create_cardano_signer(self, metadata: ChainMetadata) -> Optional[CardanoSigner]:
        signer = CardanoSigner(metadata.network)
        if metadata.signing_key_path:
            try:
                signer.load_key_from_file(metadata.signing_key_path)
            except FileNotFoundError as e:
                raise InvalidStrategy(f"Signing key for chain {metadata.name} not found: {e}") from e
        elif metadata.private_key_env and os.environ.get(metadata.private_key_env):
            signer.load_key_from_cbor(os.environ[metadata.private_key_env])
        else:
            return None
        return signer
