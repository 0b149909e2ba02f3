"""
Signers module.

Holds the signing credential of a chain runtime context.
"""

from txsubmit.signers.cardano import CardanoSigner
from txsubmit.signers.evm import EvmSigner, SignedPayload

__all__ = [
    "CardanoSigner",
    "EvmSigner",
    "SignedPayload",
]
