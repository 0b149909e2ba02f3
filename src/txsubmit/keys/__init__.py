"""
Remote key lifecycle.

Keys live in a secret backend and are fetched lazily before signing.
"""

from txsubmit.keys.agent import AgentKey, FetchedKey, KeyRole, UnfetchedKey, key_identifier
from txsubmit.keys.backend import FileKeyBackend, InMemoryKeyBackend, KeyBackend, SecretNotFound

__all__ = [
    "AgentKey",
    "FetchedKey",
    "KeyRole",
    "UnfetchedKey",
    "key_identifier",
    "FileKeyBackend",
    "InMemoryKeyBackend",
    "KeyBackend",
    "SecretNotFound",
]
