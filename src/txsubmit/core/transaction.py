"""
Transaction Value model.

A protocol-neutral, unsigned transaction descriptor. Only the generic shape is
validated here; protocol-specific checks are left to the submitter that
consumes the transaction.
"""

from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from txsubmit.core.errors import InvalidTransactionInput


def parse_quantity(value: Any) -> Any:
    """Accept integers, decimal strings and 0x-prefixed hex strings."""
    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("0x"):
            return int(text, 16)
        return int(text)
    return value


class TransactionValue(BaseModel):
    """
    An unsigned transaction ready for a submission pipeline.

    Instances are immutable. Transformers create new values with
    ``model_copy(update=...)`` instead of mutating.

    Attributes:
        chain: Name of the chain the transaction targets
        to: Destination address or contract
        data: Hex-encoded call data or protocol payload
        value: Amount in the chain-native unit
        sender: Optional sender hint (``from`` in documents)
        nonce: Optional nonce hint
        gas_limit: Optional gas limit hint
        gas_price: Optional legacy gas price hint
        max_fee_per_gas: Optional EIP-1559 fee cap hint
        max_priority_fee_per_gas: Optional EIP-1559 tip hint
        metadata: Free-form annotations carried through the pipeline
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
    )

    chain: str = Field(min_length=1)
    to: str = Field(min_length=1)
    data: str = "0x"
    value: int = Field(default=0, ge=0)

    sender: Optional[str] = Field(default=None, alias="from")
    nonce: Optional[int] = Field(default=None, ge=0)
    gas_limit: Optional[int] = Field(default=None, gt=0, alias="gasLimit")
    gas_price: Optional[int] = Field(default=None, ge=0, alias="gasPrice")
    max_fee_per_gas: Optional[int] = Field(default=None, ge=0, alias="maxFeePerGas")
    max_priority_fee_per_gas: Optional[int] = Field(
        default=None, ge=0, alias="maxPriorityFeePerGas"
    )

    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator(
        "value",
        "nonce",
        "gas_limit",
        "gas_price",
        "max_fee_per_gas",
        "max_priority_fee_per_gas",
        mode="before",
    )
    @classmethod
    def _parse_quantity(cls, value: Any) -> Any:
        return parse_quantity(value)

    @field_validator("data", mode="before")
    @classmethod
    def _normalize_data(cls, value: Any) -> Any:
        if value is None:
            return "0x"
        if isinstance(value, (bytes, bytearray)):
            return "0x" + bytes(value).hex()
        if not isinstance(value, str):
            raise ValueError("data must be a hex string")

        text = value.strip()
        if text[:2].lower() == "0x":
            text = text[2:]
        if len(text) % 2:
            raise ValueError("data must contain an even number of hex digits")
        try:
            bytes.fromhex(text)
        except ValueError:
            raise ValueError("data must be hex encoded")
        return "0x" + text.lower()

    @property
    def payload(self) -> bytes:
        """Call data as bytes."""
        return bytes.fromhex(self.data[2:])

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization (document field names)."""
        return self.model_dump(by_alias=True, exclude_none=True)


def summarize_validation_error(error: ValidationError) -> str:
    """Render a pydantic error as one short line."""
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "entry"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def validate_transactions(entries: Sequence[Any]) -> List[TransactionValue]:
    """
    Validate every entry of a batch against the Transaction Value schema.

    All entries are checked before returning, so the error names every
    offending index at once.

    Args:
        entries: Raw transaction descriptors (mappings) in batch order

    Returns:
        Validated transactions in the same order

    Raises:
        InvalidTransactionInput: If any entry does not conform
    """
    transactions: List[TransactionValue] = []
    errors: Dict[int, str] = {}

    for index, entry in enumerate(entries):
        if isinstance(entry, TransactionValue):
            transactions.append(entry)
            continue
        if not isinstance(entry, dict):
            errors[index] = f"expected a mapping, got {type(entry).__name__}"
            continue
        try:
            transactions.append(TransactionValue.model_validate(entry))
        except ValidationError as e:
            errors[index] = summarize_validation_error(e)

    if errors:
        raise InvalidTransactionInput(errors)

    return transactions
