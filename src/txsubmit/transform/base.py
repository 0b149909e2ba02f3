"""
Transformer base class and registry.

A transformer is a pure stage that rewrites an ordered batch of transactions.
Stages are registered by kind and composed left to right.
"""

from abc import ABC, abstractmethod
from functools import reduce
from typing import Callable, ClassVar, Dict, List, Optional, Sequence, Tuple, Type

from pydantic import BaseModel, ConfigDict

from txsubmit.chains.interface import ProtocolFamily
from txsubmit.core.errors import UnsupportedTransformerKind
from txsubmit.core.transaction import TransactionValue

Stage = Callable[[Sequence[TransactionValue]], List[TransactionValue]]


class NoParams(BaseModel):
    model_config = ConfigDict(extra="forbid")


class Transformer(ABC):
    """
    Abstract base class for transformers.

    Subclasses set ``kind``, ``params_model`` and, when they only make sense
    for some protocol families, ``protocols``. Implementations must not do
    network I/O and must keep the relative order of their outputs.
    """

    kind: ClassVar[str]
    params_model: ClassVar[Type[BaseModel]] = NoParams
    protocols: ClassVar[Optional[Tuple[ProtocolFamily, ...]]] = None

    def __init__(self, params: BaseModel, chain: str):
        """
        Args:
            params: Validated instance of ``params_model``
            chain: Chain the pipeline submits to
        """
        self.params = params
        self.chain = chain

    @abstractmethod
    def transform(self, transactions: Sequence[TransactionValue]) -> List[TransactionValue]:
        """Rewrite the batch. Inputs are never mutated."""
        pass

    def __call__(self, transactions: Sequence[TransactionValue]) -> List[TransactionValue]:
        return self.transform(transactions)

    def trace(
        self,
        transactions: Sequence[TransactionValue],
        origins: Sequence[Optional[int]],
    ) -> Tuple[List[TransactionValue], List[Optional[int]]]:
        """
        Transform the batch and carry each output's originating position.

        A whole-batch transformer that keeps the batch length keeps positions
        one to one; if it changes the length, origins become unknown (None).
        """
        results = self.transform(transactions)
        if len(results) == len(transactions):
            return results, list(origins)
        return results, [None] * len(results)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind})"


class MapTransformer(Transformer):
    """Transformer that rewrites each transaction independently into one or more."""

    @abstractmethod
    def transform_one(self, index: int, transaction: TransactionValue) -> List[TransactionValue]:
        pass

    def transform(self, transactions: Sequence[TransactionValue]) -> List[TransactionValue]:
        results: List[TransactionValue] = []
        for index, transaction in enumerate(transactions):
            results.extend(self.transform_one(index, transaction))
        return results

    def trace(
        self,
        transactions: Sequence[TransactionValue],
        origins: Sequence[Optional[int]],
    ) -> Tuple[List[TransactionValue], List[Optional[int]]]:
        results: List[TransactionValue] = []
        traced: List[Optional[int]] = []
        for index, (transaction, origin) in enumerate(zip(transactions, origins)):
            outputs = self.transform_one(index, transaction)
            results.extend(outputs)
            traced.extend([origin] * len(outputs))
        return results, traced


_TRANSFORMERS: Dict[str, Type[Transformer]] = {}


def register_transformer(cls: Type[Transformer]) -> Type[Transformer]:
    """Class decorator registering a transformer under its kind."""
    _TRANSFORMERS[cls.kind] = cls
    return cls


def get_transformer_class(kind: str, protocol: ProtocolFamily) -> Type[Transformer]:
    """
    Look up the transformer registered for a kind.

    Raises:
        UnsupportedTransformerKind: If the kind is unknown or unavailable for
            the protocol family
    """
    cls = _TRANSFORMERS.get(kind)
    if cls is None:
        raise UnsupportedTransformerKind(kind)
    if cls.protocols is not None and protocol not in cls.protocols:
        raise UnsupportedTransformerKind(kind, protocol.value)
    return cls


def registered_transformers() -> List[str]:
    return sorted(_TRANSFORMERS)


def compose(stages: Sequence[Stage]) -> Stage:
    """Compose stages left to right into one stage."""
    stages = list(stages)

    def apply(transactions: Sequence[TransactionValue]) -> List[TransactionValue]:
        return reduce(lambda batch, stage: list(stage(batch)), stages, list(transactions))

    return apply
