"""
txsubmit - declarative transaction submission for EVM and Cardano chains.

A submission strategy names a chain, a submitter and an ordered list of
transformers. The orchestrator resolves it into a pipeline, submits a batch
of transactions through it and records the receipts.
"""

__version__ = "0.1.0"

from txsubmit.chains.registry import ChainRegistry
from txsubmit.config import SubmitterConfig, get_config, set_config
from txsubmit.core.receipt import Receipt, ReceiptStatus
from txsubmit.core.strategy import SubmissionStrategy
from txsubmit.core.transaction import TransactionValue
from txsubmit.orchestrator import SubmissionOrchestrator
from txsubmit.submit.builder import Pipeline, SubmitterBuilder, build_pipeline

__all__ = [
    "ChainRegistry",
    "SubmitterConfig",
    "get_config",
    "set_config",
    "Receipt",
    "ReceiptStatus",
    "SubmissionStrategy",
    "TransactionValue",
    "SubmissionOrchestrator",
    "Pipeline",
    "SubmitterBuilder",
    "build_pipeline",
]
