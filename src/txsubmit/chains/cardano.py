"""
Cardano chain access through Blockfrost.

Only the two endpoints a submitter needs are used: ``/tx/submit`` to
broadcast signed CBOR and ``/txs/{hash}`` to detect inclusion.
"""

from typing import Any, Optional

import httpx
import structlog

from txsubmit.chains.interface import ChainProvider, ProtocolFamily, TransactionOutcome
from txsubmit.config import SubmitterConfig, get_config
from txsubmit.core.errors import DispatchRejected, TransientDispatchFailure

logger = structlog.get_logger(__name__)

BLOCKFROST_URLS = {
    "mainnet": "https://cardano-mainnet.blockfrost.io/api/v0",
    "preprod": "https://cardano-preprod.blockfrost.io/api/v0",
    "preview": "https://cardano-preview.blockfrost.io/api/v0",
}


def _check_response(response: httpx.Response, path: str) -> None:
    """Translate an HTTP status into the dispatch error taxonomy."""
    status = response.status_code
    if status == 429 or status >= 500:
        raise TransientDispatchFailure(f"Blockfrost API unavailable ({status}): {response.text}")
    if status != 200:
        logger.error("blockfrost_request_failed", path=path, status=status, error=response.text)
        raise DispatchRejected(f"Blockfrost API error: {response.text}", str(status))


class BlockfrostProvider(ChainProvider):
    """ChainProvider for Cardano networks backed by the Blockfrost REST API."""

    protocol = ProtocolFamily.CARDANO

    def __init__(
        self,
        project_id: Optional[str],
        network: str = "preprod",
        base_url: Optional[str] = None,
        config: Optional[SubmitterConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            project_id: Blockfrost project ID, sent with every request
            network: Network name selecting the default endpoint
            base_url: Endpoint override, e.g. a self-hosted Blockfrost
            config: Submitter configuration. Uses global config if not provided.
            client: Preconfigured HTTP client (created on connect if not provided)
        """
        self.project_id = project_id
        self.base_url = base_url or BLOCKFROST_URLS.get(network, BLOCKFROST_URLS["preprod"])
        self.config = config or get_config()
        self._client = client

    async def connect(self) -> None:
        if self._client is not None:
            return
        if not self.project_id:
            raise DispatchRejected("Blockfrost project ID not configured")

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"project_id": self.project_id},
            timeout=self.config.request_timeout_seconds,
        )
        logger.info("blockfrost_connected", base_url=self.base_url)

    async def disconnect(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None
        logger.info("blockfrost_disconnected", base_url=self.base_url)

    async def _call(self, method: str, path: str, **kwargs) -> Any:
        """
        Perform one API call.

        Returns:
            Decoded JSON body, or None when Blockfrost answers 404
        """
        await self.connect()
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.warning("blockfrost_request_error", path=path, error=str(e))
            raise TransientDispatchFailure(f"Blockfrost request failed: {e}")

        if response.status_code == 404:
            return None
        _check_response(response, path)
        try:
            return response.json()
        except ValueError:
            logger.warning("blockfrost_invalid_response", path=path, body=response.text[:200])
            raise TransientDispatchFailure(f"Blockfrost returned a non-JSON response for {path}")

    async def send_raw_transaction(self, raw: bytes) -> str:
        tx_hash = await self._call(
            "POST",
            "/tx/submit",
            content=raw,
            headers={"Content-Type": "application/cbor"},
        )
        if tx_hash is None:
            raise DispatchRejected("Blockfrost submit endpoint not found")
        if not isinstance(tx_hash, str):
            raise TransientDispatchFailure(f"Blockfrost returned an unexpected submit response: {tx_hash!r}")

        logger.info("tx_submitted", tx_hash=tx_hash)
        return tx_hash

    async def get_transaction_outcome(self, tx_hash: str) -> Optional[TransactionOutcome]:
        data = await self._call("GET", f"/txs/{tx_hash}")
        if not isinstance(data, dict) or not data.get("block"):
            return None

        fees = data.get("fees")
        return TransactionOutcome(
            transaction_hash=data.get("hash", tx_hash),
            executed=bool(data.get("valid_contract", True)),
            block_number=data.get("block_height"),
            block_hash=data.get("block"),
            gas_used=int(fees) if fees is not None else None,
        )
