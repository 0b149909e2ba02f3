"""
EVM Signer - signs transactions and hashes with a local account.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

import structlog
from eth_account import Account
from eth_account.signers.local import LocalAccount

if TYPE_CHECKING:
    from txsubmit.keys.agent import AgentKey

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SignedPayload:
    """A serialized signed transaction and its hash."""
    raw: bytes
    hash: str


class EvmSigner:
    """
    Signs EVM transactions with one private key.

    Security note: the key is held in process memory for the duration of a
    run. Use a remote key backend to avoid keeping keys on disk.
    """

    def __init__(self, private_key: Optional[str] = None):
        """
        Initialize the signer.

        Args:
            private_key: Hex-encoded private key (may be loaded later)
        """
        self._account: Optional[LocalAccount] = None
        if private_key:
            self.load_private_key(private_key)

    @classmethod
    def from_agent_key(cls, key: "AgentKey") -> "EvmSigner":
        """
        Create a signer from a fetched remote key.

        Raises:
            KeyNotFetched: If the key has not been fetched or created
        """
        return cls(key.private_key)

    def load_private_key(self, private_key: str) -> None:
        self._account = Account.from_key(private_key)
        logger.info("signing_key_loaded", address=self._account.address)

    @property
    def is_loaded(self) -> bool:
        """Check if a signing key is loaded."""
        return self._account is not None

    @property
    def address(self) -> Optional[str]:
        """Checksummed address of the signing account."""
        return self._account.address if self._account else None

    def _require_account(self) -> LocalAccount:
        if not self._account:
            raise RuntimeError("No signing key loaded")
        return self._account

    def sign_transaction(self, transaction: dict) -> SignedPayload:
        """
        Sign a populated transaction dict.

        Args:
            transaction: Fields accepted by eth_account (to, value, data, nonce,
                gas, chainId and gasPrice or EIP-1559 fee fields)

        Returns:
            Raw signed transaction and its hash
        """
        signed = self._require_account().sign_transaction(transaction)
        tx_hash = "0x" + bytes(signed.hash).hex()
        logger.debug("transaction_signed", tx_hash=tx_hash[:18] + "...")
        return SignedPayload(raw=bytes(signed.raw_transaction), hash=tx_hash)

    def sign_hash(self, message_hash: bytes) -> str:
        """Sign a 32-byte digest and return the 65-byte signature as hex."""
        signed = self._require_account().unsafe_sign_hash(message_hash)
        return "0x" + bytes(signed.signature).hex()


def generate_test_signer() -> EvmSigner:
    """
    Generate a signer with a new random key.

    WARNING: Do not use in production. The key is not persisted.
    """
    account = Account.create()
    signer = EvmSigner()
    signer._account = account

    logger.warning("test_key_generated", address=account.address)

    return signer
