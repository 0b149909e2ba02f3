"""
Cardano payment-key signer.

Witnesses unsigned transaction bodies so they can be submitted as complete
transactions.
"""

from pathlib import Path
from typing import Optional

import structlog
from pycardano import (
    Address,
    Network,
    PaymentSigningKey,
    PaymentVerificationKey,
    Transaction,
    TransactionBody,
    TransactionWitnessSet,
    VerificationKeyWitness,
)

logger = structlog.get_logger(__name__)


class CardanoSigner:
    """
    Holds one payment key for a Cardano chain.

    The key comes from a ``cardano-cli`` style skey file or from a CBOR hex
    string (e.g. an environment variable). Until one is loaded the signer
    reports ``is_loaded == False`` and submitters refuse to dispatch.
    """

    def __init__(self, network: str = "preprod"):
        self.network = Network.MAINNET if network == "mainnet" else Network.TESTNET
        self._signing_key: Optional[PaymentSigningKey] = None
        self._verification_key: Optional[PaymentVerificationKey] = None

    def load_key_from_file(self, key_path: str) -> None:
        path = Path(key_path)
        if not path.is_file():
            raise FileNotFoundError(f"Cardano signing key not found at {key_path}")
        self._use(PaymentSigningKey.load(str(path)), source="file")

    def load_key_from_cbor(self, cbor_hex: str) -> None:
        self._use(PaymentSigningKey.from_cbor(cbor_hex), source="cbor")

    def _use(self, signing_key: PaymentSigningKey, source: str) -> None:
        self._signing_key = signing_key
        self._verification_key = PaymentVerificationKey.from_signing_key(signing_key)
        logger.info("cardano_key_loaded", source=source, address=self.address)

    @property
    def address(self) -> Optional[str]:
        """Enterprise address of the payment key, bech32 encoded."""
        if self._verification_key is None:
            return None
        return str(Address(self._verification_key.hash(), network=self.network))

    @property
    def is_loaded(self) -> bool:
        return self._signing_key is not None

    def witness(self, body: TransactionBody) -> VerificationKeyWitness:
        """Sign the body hash with the payment key."""
        if self._signing_key is None:
            raise RuntimeError("Cardano signer has no key loaded")
        return VerificationKeyWitness(self._verification_key, self._signing_key.sign(body.hash()))

    def sign_transaction(self, body: TransactionBody) -> Transaction:
        """
        Build a complete transaction from an unsigned body.

        Args:
            body: Transaction body to witness

        Returns:
            Transaction carrying the body and a single vkey witness
        """
        transaction = Transaction(body, TransactionWitnessSet(vkey_witnesses=[self.witness(body)]))
        logger.debug("cardano_tx_witnessed", tx_hash=body.hash().hex())
        return transaction


def generate_test_key(network: str = "preprod") -> CardanoSigner:
    """Signer with a fresh random key that is never persisted. Tests only."""
    signer = CardanoSigner(network)
    signer._use(PaymentSigningKey.generate(), source="generated")
    return signer
