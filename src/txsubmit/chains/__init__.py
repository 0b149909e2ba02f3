"""
Chain Integration Layer.

Provides chain runtime contexts: how to reach a chain and sign for it.
Supports EVM chains over JSON-RPC and Cardano via Blockfrost.
"""

from txsubmit.chains.cardano import BlockfrostProvider
from txsubmit.chains.evm import JsonRpcProvider
from txsubmit.chains.interface import ChainProvider, ProtocolFamily, TransactionOutcome
from txsubmit.chains.registry import (
    ChainMetadata,
    ChainRegistry,
    ChainRuntimeContext,
    KeyReference,
    MultisigConfig,
)

__all__ = [
    "BlockfrostProvider",
    "JsonRpcProvider",
    "ChainProvider",
    "ProtocolFamily",
    "TransactionOutcome",
    "ChainMetadata",
    "ChainRegistry",
    "ChainRuntimeContext",
    "KeyReference",
    "MultisigConfig",
]
