"""
Pytest configuration and shared fixtures for the test suite.
"""

from typing import Dict, List, Optional

import pytest
from eth_account import Account
from eth_utils import keccak
from pycardano import (
    Address,
    Transaction,
    TransactionBody,
    TransactionId,
    TransactionInput,
    TransactionOutput,
)

from txsubmit.chains.interface import ChainProvider, ProtocolFamily, TransactionOutcome
from txsubmit.chains.registry import ChainMetadata, ChainRegistry, MultisigConfig
from txsubmit.config import SubmitterConfig
from txsubmit.core.transaction import TransactionValue
from txsubmit.signers.cardano import generate_test_key
from txsubmit.signers.evm import EvmSigner


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_config() -> SubmitterConfig:
    """Create a test configuration with no retry delays."""
    return SubmitterConfig(
        max_attempts=3,
        retry_delay_seconds=0,
        retry_max_delay_seconds=0,
        confirmation_timeout_seconds=1,
        confirmation_poll_interval_seconds=0.01,
        database_url=None,
        environment="test",
        log_level="DEBUG",
    )


# ============================================================================
# Test Data Generators
# ============================================================================

TEST_CHAIN_IDS = {"test1": 31337, "test2": 31338, "test3": 31339}

# Deterministic keys; the first one signs for every test chain
TEST_PRIVATE_KEYS = ["0x" + f"{i:02x}" * 32 for i in (0x11, 0x22, 0x33)]
TEST_OWNERS = [Account.from_key(key).address for key in TEST_PRIVATE_KEYS]


def generate_test_address(index: int = 0) -> str:
    """Generate a deterministic checksummed address."""
    return Account.from_key("0x" + f"{index + 0x40:02x}" * 32).address


def make_transactions(count: int, chain: str = "test1", **fields) -> List[TransactionValue]:
    """Create simple value transfers."""
    return [
        TransactionValue(
            chain=chain,
            to=generate_test_address(i),
            value=i + 1,
            data="0x" + f"{i:02x}" * 4,
            **fields,
        )
        for i in range(count)
    ]


@pytest.fixture
def transactions() -> List[TransactionValue]:
    return make_transactions(3)


# ============================================================================
# Fake Chain Providers
# ============================================================================

class FakeEvmProvider(ChainProvider):
    """In-memory EVM chain that confirms every accepted transaction."""

    protocol = ProtocolFamily.ETHEREUM

    def __init__(self, chain_id: int = 31337, nonce: int = 5):
        self._chain_id = chain_id
        self.nonce = nonce
        self.sent: List[bytes] = []
        self.send_attempts = 0
        self.send_errors: Dict[int, List[Exception]] = {}
        self.reverted: set = set()
        self.nonce_queries = 0
        self.estimates: List[dict] = []
        self.connected = False

    def fail_send(self, position: int, *errors: Exception) -> None:
        """Raise the given errors on the next attempts to send transaction ``position``."""
        self.send_errors.setdefault(position, []).extend(errors)

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    async def chain_id(self) -> int:
        return self._chain_id

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        self.nonce_queries += 1
        return self.nonce

    async def gas_price(self) -> int:
        return 1_000_000_000

    async def estimate_gas(self, call: dict) -> int:
        self.estimates.append(call)
        return 21_000 + len(call.get("data", "0x")) * 10

    async def send_raw_transaction(self, raw: bytes) -> str:
        self.send_attempts += 1
        errors = self.send_errors.get(len(self.sent))
        if errors:
            raise errors.pop(0)
        self.sent.append(raw)
        return "0x" + keccak(raw).hex()

    async def get_transaction_outcome(self, tx_hash: str) -> Optional[TransactionOutcome]:
        hashes = ["0x" + keccak(raw).hex() for raw in self.sent]
        if tx_hash not in hashes:
            return None
        position = hashes.index(tx_hash)
        return TransactionOutcome(
            transaction_hash=tx_hash,
            executed=position not in self.reverted,
            block_number=100 + position,
            block_hash="0x" + f"{position:064x}",
            gas_used=21_000,
        )


class FakeCardanoProvider(ChainProvider):
    """In-memory Cardano chain that confirms every submitted transaction."""

    protocol = ProtocolFamily.CARDANO

    def __init__(self):
        self.submitted: List[Transaction] = []

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    async def send_raw_transaction(self, raw: bytes) -> str:
        tx = Transaction.from_cbor(raw)
        self.submitted.append(tx)
        return tx.transaction_body.hash().hex()

    async def get_transaction_outcome(self, tx_hash: str) -> Optional[TransactionOutcome]:
        for tx in self.submitted:
            if tx.transaction_body.hash().hex() == tx_hash:
                return TransactionOutcome(
                    transaction_hash=tx_hash,
                    executed=True,
                    block_number=2_000_000,
                    block_hash="ab" * 32,
                    gas_used=tx.transaction_body.fee,
                )
        return None


# ============================================================================
# Registry Fixtures
# ============================================================================

@pytest.fixture
def evm_signer() -> EvmSigner:
    return EvmSigner(TEST_PRIVATE_KEYS[0])


@pytest.fixture
def cardano_signer():
    return generate_test_key("preprod")


@pytest.fixture
def providers() -> Dict[str, ChainProvider]:
    providers: Dict[str, ChainProvider] = {
        name: FakeEvmProvider(chain_id) for name, chain_id in TEST_CHAIN_IDS.items()
    }
    providers["cardano"] = FakeCardanoProvider()
    return providers


@pytest.fixture
def chain_metadata() -> List[ChainMetadata]:
    """Three EVM test chains guarded by a 2-of-3 security module, plus Cardano."""
    security_module = MultisigConfig(validators=TEST_OWNERS, threshold=2)
    chains = [
        ChainMetadata(
            name=name,
            chain_id=chain_id,
            rpc_url=f"http://localhost:{8545 + i}",
            security_module=security_module,
        )
        for i, (name, chain_id) in enumerate(TEST_CHAIN_IDS.items())
    ]
    chains.append(ChainMetadata(name="cardano", protocol=ProtocolFamily.CARDANO))
    return chains


@pytest.fixture
def registry(test_config, chain_metadata, providers, evm_signer, cardano_signer) -> ChainRegistry:
    signers = {name: evm_signer for name in TEST_CHAIN_IDS}
    signers["cardano"] = cardano_signer
    return ChainRegistry(
        chain_metadata,
        config=test_config,
        providers=providers,
        signers=signers,
    )


# ============================================================================
# Cardano Test Data
# ============================================================================

def make_transaction_body(signer, index: int = 0) -> TransactionBody:
    """Create an unsigned transaction body paying the signer's own address."""
    return TransactionBody(
        inputs=[TransactionInput(TransactionId(bytes([index + 1]) * 32), 0)],
        outputs=[TransactionOutput(Address.from_primitive(signer.address), 2_000_000 + index)],
        fee=170_000 + index,
    )
