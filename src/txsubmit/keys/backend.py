"""
Secret backends for remote keys.

A backend stores one JSON secret per key identifier. The cloud secret manager
used in deployments implements the same interface.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Tuple

import structlog

logger = structlog.get_logger(__name__)


class SecretNotFound(Exception):
    """Raised when a backend has no secret for an identifier."""

    def __init__(self, identifier: str):
        super().__init__(f"Secret not found: {identifier}")
        self.identifier = identifier


class KeyBackend(ABC):
    """Abstract interface for secret storage."""

    @abstractmethod
    async def fetch_secret(self, identifier: str) -> dict:
        """
        Fetch a secret payload.

        Raises:
            SecretNotFound: If no secret exists for the identifier
        """
        pass

    @abstractmethod
    async def set_secret(
        self,
        identifier: str,
        payload: dict,
        labels: Optional[Dict[str, str]] = None,
    ) -> None:
        """Create or replace a secret."""
        pass

    @abstractmethod
    async def delete_secret(self, identifier: str) -> None:
        """
        Delete a secret.

        Raises:
            SecretNotFound: If no secret exists for the identifier
        """
        pass


class InMemoryKeyBackend(KeyBackend):
    """Process-local backend, used for tests and dry runs."""

    def __init__(self):
        self.secrets: Dict[str, Tuple[dict, Dict[str, str]]] = {}

    async def fetch_secret(self, identifier: str) -> dict:
        if identifier not in self.secrets:
            raise SecretNotFound(identifier)
        return dict(self.secrets[identifier][0])

    async def set_secret(
        self,
        identifier: str,
        payload: dict,
        labels: Optional[Dict[str, str]] = None,
    ) -> None:
        self.secrets[identifier] = (dict(payload), dict(labels or {}))

    async def delete_secret(self, identifier: str) -> None:
        if self.secrets.pop(identifier, None) is None:
            raise SecretNotFound(identifier)

    def labels(self, identifier: str) -> Dict[str, str]:
        return dict(self.secrets[identifier][1])


class FileKeyBackend(KeyBackend):
    """Stores secrets in a single JSON file keyed by identifier."""

    def __init__(self, path: Path):
        self._path = Path(path)
        self._lock = asyncio.Lock()

    async def fetch_secret(self, identifier: str) -> dict:
        records = self._read_all()
        if identifier not in records:
            raise SecretNotFound(identifier)
        return dict(records[identifier]["payload"])

    async def set_secret(
        self,
        identifier: str,
        payload: dict,
        labels: Optional[Dict[str, str]] = None,
    ) -> None:
        async with self._lock:
            records = self._read_all()
            records[identifier] = {"payload": payload, "labels": labels or {}}
            self._write_all(records)
        logger.info("secret_stored", identifier=identifier, path=str(self._path))

    async def delete_secret(self, identifier: str) -> None:
        async with self._lock:
            records = self._read_all()
            if records.pop(identifier, None) is None:
                raise SecretNotFound(identifier)
            self._write_all(records)
        logger.info("secret_deleted", identifier=identifier, path=str(self._path))

    def _read_all(self) -> Dict[str, dict]:
        if not self._path.exists():
            return {}
        return json.loads(self._path.read_text())

    def _write_all(self, records: Dict[str, dict]) -> None:
        self._path.write_text(json.dumps(records, indent=2))
