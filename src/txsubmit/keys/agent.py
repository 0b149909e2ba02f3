"""
Remote agent keys.

An AgentKey is a handle on a private key persisted in a KeyBackend. The key
material is only readable after a successful fetch(), create() or rotate().
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import structlog
from eth_account import Account

from txsubmit.core.errors import KeyNotFetched
from txsubmit.keys.backend import KeyBackend, SecretNotFound

logger = structlog.get_logger(__name__)


class KeyRole(str, Enum):
    """Roles an agent key can play."""
    VALIDATOR = "validator"
    RELAYER = "relayer"
    DEPLOYER = "deployer"
    KATHY = "kathy"               # Test message sender


@dataclass(frozen=True)
class UnfetchedKey:
    """Key state before the secret has been read."""
    pass


@dataclass(frozen=True)
class FetchedKey:
    """Key state once the secret is known."""
    address: str
    private_key: str


RemoteKey = Union[UnfetchedKey, FetchedKey]


def key_identifier(
    prefix: str,
    environment: str,
    role: KeyRole,
    chain: Optional[str] = None,
    index: Optional[int] = None,
) -> str:
    """
    Build the secret identifier of a key.

    Validator keys are per chain and index; other roles are per environment.
    """
    role = KeyRole(role)
    if role == KeyRole.VALIDATOR:
        if chain is None or index is None:
            raise ValueError("Validator keys require a chain and an index")
        return f"{prefix}-{environment}-key-{chain}-{role.value}-{index}"
    return f"{prefix}-{environment}-key-{role.value}"


class AgentKey:
    """
    Lifecycle of one remote key.

    States: Unfetched -> Fetched, via fetch(), create() or rotate().
    delete() returns the key to Unfetched.
    """

    def __init__(
        self,
        environment: str,
        role: KeyRole,
        backend: KeyBackend,
        chain: Optional[str] = None,
        index: Optional[int] = None,
        prefix: str = "agent",
    ):
        self.environment = environment
        self.role = KeyRole(role)
        self.chain = chain
        self.index = index
        self.prefix = prefix
        self._backend = backend
        self._remote: RemoteKey = UnfetchedKey()

    @property
    def is_validator_key(self) -> bool:
        return self.role == KeyRole.VALIDATOR

    @property
    def identifier(self) -> str:
        return key_identifier(self.prefix, self.environment, self.role, self.chain, self.index)

    @property
    def fetched(self) -> bool:
        return isinstance(self._remote, FetchedKey)

    @property
    def address(self) -> str:
        return self._require_fetched().address

    @property
    def private_key(self) -> str:
        return self._require_fetched().private_key

    def serialize_as_address(self) -> dict:
        return {"identifier": self.identifier, "address": self.address}

    async def fetch(self) -> None:
        """
        Read the key from the backend.

        Raises:
            SecretNotFound: If the key does not exist yet
        """
        secret = await self._backend.fetch_secret(self.identifier)
        self._remote = FetchedKey(
            address=secret["address"],
            private_key=secret["privateKey"],
        )
        logger.debug("key_fetched", identifier=self.identifier, address=secret["address"])

    async def create(self) -> None:
        """Generate a new key and persist it."""
        self._remote = await self._create()
        logger.info("key_created", identifier=self.identifier, address=self.address)

    async def rotate(self) -> str:
        """
        Replace the key with a new one.

        Returns:
            The new address
        """
        previous = self._remote.address if isinstance(self._remote, FetchedKey) else None
        self._remote = await self._create()
        logger.info(
            "key_rotated",
            identifier=self.identifier,
            previous_address=previous,
            address=self.address,
        )
        return self.address

    async def delete(self) -> None:
        await self._backend.delete_secret(self.identifier)
        self._remote = UnfetchedKey()
        logger.info("key_deleted", identifier=self.identifier)

    async def create_if_not_exists(self) -> None:
        try:
            await self.fetch()
        except SecretNotFound:
            await self.create()

    def _require_fetched(self) -> FetchedKey:
        if not isinstance(self._remote, FetchedKey):
            raise KeyNotFetched(self.identifier)
        return self._remote

    async def _create(self) -> FetchedKey:
        account = Account.create()
        payload = {
            "role": self.role.value,
            "environment": self.environment,
            "privateKey": "0x" + bytes(account.key).hex(),
            "address": account.address,
        }
        labels = {
            "environment": self.environment,
            "role": self.role.value,
        }
        if self.is_validator_key:
            payload["chainName"] = self.chain
            labels["chain"] = self.chain
            labels["index"] = str(self.index)

        await self._backend.set_secret(self.identifier, payload, labels)

        return FetchedKey(address=account.address, private_key=payload["privateKey"])

    def __repr__(self) -> str:
        state = "fetched" if self.fetched else "unfetched"
        return f"AgentKey({self.identifier}, {state})"
