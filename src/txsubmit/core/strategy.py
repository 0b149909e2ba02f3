"""
Submission Strategy model.

Declarative binding of a target chain, one submitter and an ordered list of
transformers. Kind-specific parameters are kept as extra fields and are
validated by the handler registered for the kind.
"""

from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from txsubmit.core.errors import InvalidStrategy, MissingStrategy
from txsubmit.core.transaction import summarize_validation_error

ParamsT = TypeVar("ParamsT", bound=BaseModel)


class KindMetadata(BaseModel):
    """A ``{type: ..., **params}`` entry of a strategy document."""

    model_config = ConfigDict(frozen=True, extra="allow")

    type: str = Field(min_length=1)

    @property
    def params(self) -> Dict[str, Any]:
        """Kind-specific parameters (every field except ``type``)."""
        return dict(self.model_extra or {})

    def parse_params(self, model: Type[ParamsT]) -> ParamsT:
        """
        Validate the parameters against a kind's parameter model.

        Raises:
            InvalidStrategy: If the parameters do not match
        """
        try:
            return model.model_validate(self.params)
        except ValidationError as e:
            raise InvalidStrategy(
                f"Invalid parameters for '{self.type}': {summarize_validation_error(e)}"
            )


class SubmitterMetadata(KindMetadata):
    """Submitter selection inside a strategy."""
    pass


class TransformerMetadata(KindMetadata):
    """Transformer selection inside a strategy."""
    pass


class SubmissionStrategy(BaseModel):
    """
    Strategy for submitting a batch of transactions.

    Attributes:
        chain: Chain the submitter dispatches to
        submitter: Submitter kind and parameters
        transforms: Transformers applied in order before submission
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    chain: str = Field(min_length=1)
    submitter: SubmitterMetadata
    transforms: List[TransformerMetadata] = Field(default_factory=list)

    @field_validator("transforms", mode="before")
    @classmethod
    def _default_transforms(cls, value: Any) -> Any:
        return [] if value is None else value

    @classmethod
    def from_document(cls, document: Optional[Any]) -> "SubmissionStrategy":
        """
        Build a strategy from a parsed YAML/JSON document.

        Raises:
            MissingStrategy: If the document is empty
            InvalidStrategy: If the document does not match the schema
        """
        if not document:
            raise MissingStrategy()
        if not isinstance(document, dict):
            raise InvalidStrategy("Submission strategy must be a mapping")
        try:
            return cls.model_validate(document)
        except ValidationError as e:
            raise InvalidStrategy(
                f"Invalid submission strategy: {summarize_validation_error(e)}"
            )

    def to_dict(self) -> dict:
        return self.model_dump()
