"""
Test suite for remote agent keys.

Tests key identifiers, the Unfetched -> Fetched lifecycle and the secret
backends.
"""

import json

import pytest
from eth_account import Account

from txsubmit.chains.registry import ChainMetadata, ChainRegistry, KeyReference
from txsubmit.chains.interface import ProtocolFamily
from txsubmit.core.errors import InvalidStrategy, KeyNotFetched
from txsubmit.keys.agent import AgentKey, KeyRole, key_identifier
from txsubmit.keys.backend import FileKeyBackend, InMemoryKeyBackend, SecretNotFound
from txsubmit.signers.evm import EvmSigner

from tests.conftest import FakeCardanoProvider, FakeEvmProvider


class TestKeyIdentifier:
    """Tests for secret identifiers."""

    def test_validator_identifier(self):
        assert key_identifier("agent", "test", KeyRole.VALIDATOR, "test1", 0) == "agent-test-key-test1-validator-0"

    def test_role_identifier(self):
        assert key_identifier("agent", "mainnet", KeyRole.RELAYER) == "agent-mainnet-key-relayer"

    def test_validator_requires_chain_and_index(self):
        with pytest.raises(ValueError):
            key_identifier("agent", "test", KeyRole.VALIDATOR, "test1")


class TestAgentKey:
    """Tests for the key lifecycle."""

    def test_material_unavailable_before_fetch(self):
        """Test that reading key material before fetch raises KeyNotFetched."""
        key = AgentKey("test", KeyRole.DEPLOYER, InMemoryKeyBackend())

        assert key.fetched is False
        with pytest.raises(KeyNotFetched):
            key.address
        with pytest.raises(KeyNotFetched):
            key.private_key
        with pytest.raises(KeyNotFetched):
            EvmSigner.from_agent_key(key)

    @pytest.mark.asyncio
    async def test_fetch_missing_secret(self):
        key = AgentKey("test", KeyRole.DEPLOYER, InMemoryKeyBackend())

        with pytest.raises(SecretNotFound):
            await key.fetch()

    @pytest.mark.asyncio
    async def test_create_then_fetch(self):
        backend = InMemoryKeyBackend()
        created = AgentKey("test", KeyRole.RELAYER, backend)
        await created.create()

        fetched = AgentKey("test", KeyRole.RELAYER, backend)
        await fetched.fetch()

        assert fetched.address == created.address
        assert Account.from_key(fetched.private_key).address == fetched.address

    @pytest.mark.asyncio
    async def test_secret_payload_and_labels(self):
        backend = InMemoryKeyBackend()
        key = AgentKey("test", KeyRole.VALIDATOR, backend, chain="test2", index=1)

        await key.create()

        payload = await backend.fetch_secret(key.identifier)
        assert payload["role"] == "validator"
        assert payload["environment"] == "test"
        assert payload["chainName"] == "test2"
        assert payload["address"] == key.address
        assert backend.labels(key.identifier) == {
            "environment": "test",
            "role": "validator",
            "chain": "test2",
            "index": "1",
        }

    @pytest.mark.asyncio
    async def test_rotate_returns_new_address(self):
        backend = InMemoryKeyBackend()
        key = AgentKey("test", KeyRole.DEPLOYER, backend)
        await key.create()
        previous = key.address

        new_address = await key.rotate()

        assert new_address != previous
        assert key.address == new_address
        assert (await backend.fetch_secret(key.identifier))["address"] == new_address

    @pytest.mark.asyncio
    async def test_delete_returns_to_unfetched(self):
        backend = InMemoryKeyBackend()
        key = AgentKey("test", KeyRole.KATHY, backend)
        await key.create()

        await key.delete()

        assert key.fetched is False
        with pytest.raises(SecretNotFound):
            await backend.fetch_secret(key.identifier)

    @pytest.mark.asyncio
    async def test_create_if_not_exists_keeps_existing(self):
        backend = InMemoryKeyBackend()
        key = AgentKey("test", KeyRole.DEPLOYER, backend)
        await key.create_if_not_exists()
        address = key.address

        again = AgentKey("test", KeyRole.DEPLOYER, backend)
        await again.create_if_not_exists()

        assert again.address == address

    @pytest.mark.asyncio
    async def test_serialize_as_address(self):
        key = AgentKey("test", KeyRole.DEPLOYER, InMemoryKeyBackend(), prefix="ops")
        await key.create()

        assert key.serialize_as_address() == {
            "identifier": "ops-test-key-deployer",
            "address": key.address,
        }


class TestFileKeyBackend:
    """Tests for the JSON file backend."""

    @pytest.mark.asyncio
    async def test_round_trip_on_disk(self, tmp_path):
        path = tmp_path / "keys.json"
        key = AgentKey("test", KeyRole.DEPLOYER, FileKeyBackend(path))
        await key.create()

        records = json.loads(path.read_text())
        assert records[key.identifier]["payload"]["address"] == key.address

        reloaded = AgentKey("test", KeyRole.DEPLOYER, FileKeyBackend(path))
        await reloaded.fetch()
        assert reloaded.private_key == key.private_key

    @pytest.mark.asyncio
    async def test_delete_missing(self, tmp_path):
        backend = FileKeyBackend(tmp_path / "keys.json")

        with pytest.raises(SecretNotFound):
            await backend.delete_secret("agent-test-key-deployer")


class TestRegistryKeySigner:
    """Tests for chains that sign with a remote key."""

    @pytest.mark.asyncio
    async def test_key_fetched_on_first_use(self, test_config):
        backend = InMemoryKeyBackend()
        key = AgentKey("test", KeyRole.DEPLOYER, backend)
        await key.create()

        registry = ChainRegistry(
            [ChainMetadata(name="test1", chain_id=31337, rpc_url="http://localhost:8545", key=KeyReference())],
            config=test_config,
            key_backend=backend,
            providers={"test1": FakeEvmProvider()},
        )

        context = await registry.get_context("test1")

        assert context.signer.address == key.address
        assert await registry.get_context("test1") is context

    @pytest.mark.asyncio
    async def test_validator_key_uses_chain_name(self, test_config):
        backend = InMemoryKeyBackend()
        key = AgentKey("test", KeyRole.VALIDATOR, backend, chain="test2", index=0)
        await key.create()

        registry = ChainRegistry(
            [
                ChainMetadata(
                    name="test2",
                    rpc_url="http://localhost:8546",
                    key=KeyReference(role=KeyRole.VALIDATOR, index=0),
                )
            ],
            config=test_config,
            key_backend=backend,
            providers={"test2": FakeEvmProvider(31338)},
        )

        context = await registry.get_context("test2")

        assert context.signer.address == key.address

    @pytest.mark.asyncio
    async def test_missing_key_is_invalid_strategy(self, test_config):
        registry = ChainRegistry(
            [ChainMetadata(name="test1", chain_id=31337, rpc_url="http://localhost:8545", key=KeyReference(role=KeyRole.RELAYER))],
            config=test_config,
            key_backend=InMemoryKeyBackend(),
            providers={"test1": FakeEvmProvider()},
        )

        with pytest.raises(InvalidStrategy, match="test1") as exc_info:
            await registry.get_context("test1")

        assert isinstance(exc_info.value.__cause__, SecretNotFound)

    @pytest.mark.asyncio
    async def test_missing_cardano_key_file_is_invalid_strategy(self, test_config, tmp_path):
        registry = ChainRegistry(
            [
                ChainMetadata(
                    name="cardano",
                    protocol=ProtocolFamily.CARDANO,
                    signing_key_path=str(tmp_path / "payment.skey"),
                )
            ],
            config=test_config,
            providers={"cardano": FakeCardanoProvider()},
        )

        with pytest.raises(InvalidStrategy, match="cardano"):
            await registry.get_context("cardano")
