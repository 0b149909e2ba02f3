"""
Ethereum JSON-RPC adapter.

Provides chain access for EVM chains over HTTP JSON-RPC.
"""

from itertools import count
from typing import Any, List, Optional

import httpx
import structlog
from eth_utils import keccak

from txsubmit.chains.interface import ChainProvider, ProtocolFamily, TransactionOutcome
from txsubmit.config import SubmitterConfig, get_config
from txsubmit.core.errors import DispatchRejected, TransientDispatchFailure

logger = structlog.get_logger(__name__)

# Node messages meaning the transaction is already in the pool
KNOWN_TRANSACTION_MESSAGES = ("already known", "known transaction", "already imported")

# Node messages meaning the request can succeed later
TRANSIENT_RPC_MESSAGES = ("rate limit", "too many requests", "timeout", "try again")
TRANSIENT_RPC_CODES = (-32005,)


def parse_hex_int(value: Optional[str]) -> Optional[int]:
    """Parse a 0x-prefixed quantity, passing None through."""
    if value is None:
        return None
    return int(value, 16)


class JsonRpcError(DispatchRejected):
    """Error object returned by a JSON-RPC node."""
    pass


class JsonRpcProvider(ChainProvider):
    """
    JSON-RPC adapter for EVM chains.

    Implements the ChainProvider interface plus the EVM queries the submitters
    need to populate transactions.
    """

    protocol = ProtocolFamily.ETHEREUM

    def __init__(
        self,
        rpc_url: str,
        config: Optional[SubmitterConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the JSON-RPC adapter.

        Args:
            rpc_url: Node endpoint URL
            config: Submitter configuration. Uses global config if not provided.
            client: Preconfigured HTTP client (created on connect if not provided)
        """
        if not rpc_url:
            raise ValueError("RPC URL cannot be empty")

        self.rpc_url = rpc_url
        self.config = config or get_config()
        self._client = client
        self._ids = count(1)

    async def connect(self) -> None:
        """Create the HTTP client."""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(timeout=self.config.request_timeout_seconds)
        logger.info("rpc_connected", rpc_url=self.rpc_url)

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("rpc_disconnected", rpc_url=self.rpc_url)

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Make a single JSON-RPC call.

        Raises:
            TransientDispatchFailure: On network errors, 5xx/429 responses and
                rate limiting errors
            JsonRpcError: If the node returns any other error object
        """
        if not self._client:
            await self.connect()

        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or [],
            "id": next(self._ids),
        }

        try:
            response = await self._client.post(self.rpc_url, json=payload)
        except httpx.TimeoutException as e:
            logger.warning("rpc_timeout", method=method)
            raise TransientDispatchFailure(f"RPC {method} timed out: {e}")
        except httpx.RequestError as e:
            logger.warning("rpc_request_error", method=method, error=str(e))
            raise TransientDispatchFailure(f"RPC {method} request failed: {e}")

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientDispatchFailure(
                f"RPC {method} failed with HTTP {response.status_code}"
            )
        if response.status_code != 200:
            logger.error(
                "rpc_request_failed",
                method=method,
                status=response.status_code,
                error=response.text,
            )
            raise JsonRpcError(f"RPC {method} failed: {response.text}", str(response.status_code))

        try:
            body = response.json()
        except ValueError:
            logger.warning("rpc_invalid_response", method=method, body=response.text[:200])
            raise TransientDispatchFailure(f"RPC {method} returned a non-JSON response")
        if not isinstance(body, dict):
            raise TransientDispatchFailure(f"RPC {method} returned an unexpected response")

        error = body.get("error")
        if error:
            message = str(error.get("message", error))
            code = error.get("code")
            if code in TRANSIENT_RPC_CODES or any(m in message.lower() for m in TRANSIENT_RPC_MESSAGES):
                raise TransientDispatchFailure(f"RPC {method} error: {message}")
            raise JsonRpcError(f"RPC {method} error: {message}", str(code))

        return body.get("result")

    async def chain_id(self) -> int:
        return parse_hex_int(await self.request("eth_chainId"))

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        return parse_hex_int(await self.request("eth_getTransactionCount", [address, block]))

    async def gas_price(self) -> int:
        return parse_hex_int(await self.request("eth_gasPrice"))

    async def estimate_gas(self, call: dict) -> int:
        return parse_hex_int(await self.request("eth_estimateGas", [call]))

    async def call(self, call: dict, block: str = "latest") -> str:
        return await self.request("eth_call", [call, block])

    async def send_raw_transaction(self, raw: bytes) -> str:
        """Broadcast a signed transaction, accepting one the node already has."""
        try:
            tx_hash = await self.request("eth_sendRawTransaction", ["0x" + raw.hex()])
        except JsonRpcError as e:
            if any(m in str(e).lower() for m in KNOWN_TRANSACTION_MESSAGES):
                tx_hash = "0x" + keccak(raw).hex()
                logger.info("tx_already_known", tx_hash=tx_hash)
                return tx_hash
            logger.error("tx_submit_failed", error=str(e))
            raise

        logger.info("tx_submitted", tx_hash=tx_hash)
        return tx_hash

    async def get_transaction_outcome(self, tx_hash: str) -> Optional[TransactionOutcome]:
        receipt = await self.request("eth_getTransactionReceipt", [tx_hash])
        if not receipt or receipt.get("blockNumber") is None:
            return None

        return TransactionOutcome(
            transaction_hash=receipt.get("transactionHash", tx_hash),
            executed=parse_hex_int(receipt.get("status", "0x1")) == 1,
            block_number=parse_hex_int(receipt.get("blockNumber")),
            block_hash=receipt.get("blockHash"),
            gas_used=parse_hex_int(receipt.get("gasUsed")),
        )
