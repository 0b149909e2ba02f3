"""EVM call encoding helpers shared by transformers and submitters."""

from typing import Any, Sequence

from eth_abi import encode
from eth_utils import (
    function_signature_to_4byte_selector,
    is_address,
    to_canonical_address,
    to_checksum_address,
)

from txsubmit.core.errors import MalformedTransaction


def checksum_address(value: str) -> str:
    """Checksum an address, raising ValueError if it is not one."""
    if not isinstance(value, str) or not is_address(value):
        raise ValueError(f"not an EVM address: {value!r}")
    return to_checksum_address(value)


def require_address(index: int, value: str, field: str = "to") -> str:
    """Checksum a transaction address, raising MalformedTransaction otherwise."""
    try:
        return checksum_address(value)
    except ValueError as e:
        raise MalformedTransaction(index, f"{field}: {e}")


def address_to_bytes32(address: str) -> bytes:
    """Left-pad a 20-byte address to 32 bytes."""
    return to_canonical_address(address).rjust(32, b"\x00")


def encode_call(signature: str, types: Sequence[str], args: Sequence[Any]) -> bytes:
    """
    Encode a contract call.

    Args:
        signature: Canonical function signature, e.g. ``execute(address,uint256,bytes)``
        types: ABI types of the arguments
        args: Argument values

    Returns:
        4-byte selector followed by the ABI-encoded arguments
    """
    return function_signature_to_4byte_selector(signature) + encode(list(types), list(args))
