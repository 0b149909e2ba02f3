"""
Transformer module.

Pure stages that rewrite transactions before they reach a submitter.
Importing this package registers the built-in transformers.
"""

from txsubmit.transform.base import (
    MapTransformer,
    Transformer,
    compose,
    get_transformer_class,
    register_transformer,
    registered_transformers,
)
from txsubmit.transform.interchain_account import InterchainAccountTransformer
from txsubmit.transform.intermediary import IntermediaryCallTransformer

__all__ = [
    "MapTransformer",
    "Transformer",
    "compose",
    "get_transformer_class",
    "register_transformer",
    "registered_transformers",
    "InterchainAccountTransformer",
    "IntermediaryCallTransformer",
]
