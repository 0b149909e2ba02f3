"""
Submitter module.

Submitters dispatch batches to a chain; the builder binds one to a chain
context and a transformer chain. Importing this package registers the
built-in submitters.
"""

from txsubmit.submit.base import Submitter, get_submitter_class, register_submitter
from txsubmit.submit.batch import BatchExecutorSubmitter
from txsubmit.submit.cardano import CardanoDirectSubmitter
from txsubmit.submit.direct import EvmDirectSubmitter
from txsubmit.submit.multisig import MultisigProposalSubmitter
from txsubmit.submit.retry import RetryPolicy
from txsubmit.submit.builder import Pipeline, SubmitterBuilder, build_pipeline

__all__ = [
    "Submitter",
    "get_submitter_class",
    "register_submitter",
    "BatchExecutorSubmitter",
    "CardanoDirectSubmitter",
    "EvmDirectSubmitter",
    "MultisigProposalSubmitter",
    "RetryPolicy",
    "Pipeline",
    "SubmitterBuilder",
    "build_pipeline",
]
