"""
Submitter Builder.

Resolves a Submission Strategy into a ready-to-use pipeline: the chain's
runtime context, the submitter bound to it and the transformer chain that
runs before it.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog

from txsubmit.chains.registry import ChainRegistry
from txsubmit.config import SubmitterConfig, get_config
from txsubmit.core.errors import PartialBatchFailure
from txsubmit.core.receipt import Receipt
from txsubmit.core.strategy import SubmissionStrategy
from txsubmit.core.transaction import TransactionValue
from txsubmit.submit.base import Submitter, get_submitter_class
from txsubmit.transform import Transformer, compose, get_transformer_class

logger = structlog.get_logger(__name__)


def _origin(origins: Sequence[Optional[int]], index: Optional[int]) -> Optional[int]:
    if index is None or not 0 <= index < len(origins):
        return None
    return origins[index]


def _with_sources(receipts: Sequence[Receipt], origins: Sequence[Optional[int]]) -> List[Receipt]:
    """Stamp each receipt with the input position of its transaction."""
    return [replace(receipt, source_index=_origin(origins, receipt.index)) for receipt in receipts]


@dataclass
class Pipeline:
    """
    A submitter preceded by its transformer chain.

    Attributes:
        chain: Chain the submitter dispatches to
        submitter: Bound submitter
        transformers: Transformers applied in order
        dry_run: Whether the submitter simulates instead of broadcasting
    """
    chain: str
    submitter: Submitter
    transformers: List[Transformer] = field(default_factory=list)
    dry_run: bool = False

    def transform(self, transactions: Sequence[TransactionValue]) -> List[TransactionValue]:
        """Apply the transformer chain to the whole batch."""
        return compose(self.transformers)(transactions)

    def trace(
        self, transactions: Sequence[TransactionValue]
    ) -> Tuple[List[TransactionValue], List[Optional[int]]]:
        """
        Apply the transformer chain, tracking where each output came from.

        Returns:
            The transformed batch and, per entry, the position of the input
            transaction it was derived from (None if that is unknown)
        """
        batch: List[TransactionValue] = list(transactions)
        origins: List[Optional[int]] = list(range(len(batch)))
        for transformer in self.transformers:
            batch, origins = transformer.trace(batch, origins)
        return batch, origins

    async def submit(self, *transactions: TransactionValue) -> List[Receipt]:
        """
        Transform the batch and hand it to the submitter in one call.

        Receipt ``index`` is the position in the transformed batch and
        ``source_index`` the position of the input transaction behind it.

        Returns:
            Receipts in the order of the transformed batch

        Raises:
            PartialBatchFailure: With ``failed_index`` mapped back to the input
                batch and ``dispatch_index`` left in the transformed batch
        """
        batch, origins = self.trace(transactions)
        if len(batch) != len(transactions):
            logger.info(
                "batch_transformed",
                chain=self.chain,
                received=len(transactions),
                submitting=len(batch),
            )

        try:
            receipts = await self.submitter.submit(batch)
        except PartialBatchFailure as e:
            dispatched = e.dispatch_index
            raise PartialBatchFailure(
                _with_sources(e.receipts, origins),
                _origin(origins, dispatched),
                e.cause,
                dispatch_index=dispatched,
            ) from e
        return _with_sources(receipts, origins)

    async def aclose(self) -> None:
        """Release resources held by the submitter."""
        await self.submitter.aclose()

    def describe(self) -> Dict[str, Any]:
        """Kinds bound by this pipeline."""
        return {
            "chain": self.chain,
            "submitter": self.submitter.kind,
            "transforms": [transformer.kind for transformer in self.transformers],
            "dry_run": self.dry_run,
        }


class SubmitterBuilder:
    """
    Builds pipelines from strategies.

    Every lookup and parameter check runs before the chain's runtime context
    is resolved, so an invalid strategy never touches the network.

    Usage:
        ```python
        builder = SubmitterBuilder(registry)
        pipeline = await builder.build(strategy)
        receipts = await pipeline.submit(*transactions)
        ```
    """

    def __init__(self, registry: ChainRegistry, config: Optional[SubmitterConfig] = None):
        self.registry = registry
        self.config = config or get_config()

    async def build(self, strategy: SubmissionStrategy, dry_run: bool = False) -> Pipeline:
        """
        Resolve a strategy into a pipeline.

        Raises:
            UnknownChain: If the strategy's chain is not registered
            UnsupportedSubmitterKind: If no submitter exists for the kind and
                the chain's protocol family
            UnsupportedTransformerKind: If a transform kind is unknown or not
                available for the chain's protocol family
            InvalidStrategy: If kind parameters fail validation
        """
        metadata = self.registry.metadata(strategy.chain)
        protocol = metadata.protocol

        submitter_cls = get_submitter_class(strategy.submitter.type, protocol)
        transformer_classes = [
            get_transformer_class(entry.type, protocol) for entry in strategy.transforms
        ]

        submitter_params = strategy.submitter.parse_params(submitter_cls.params_model)
        submitter_cls.check_params(submitter_params, metadata)
        transformers = [
            cls(entry.parse_params(cls.params_model), strategy.chain)
            for cls, entry in zip(transformer_classes, strategy.transforms)
        ]

        context = await self.registry.get_context(strategy.chain)
        submitter = submitter_cls(context, submitter_params, config=self.config, dry_run=dry_run)

        pipeline = Pipeline(
            chain=strategy.chain,
            submitter=submitter,
            transformers=transformers,
            dry_run=dry_run,
        )
        logger.info("pipeline_built", **pipeline.describe())
        return pipeline


async def build_pipeline(
    strategy: SubmissionStrategy,
    registry: ChainRegistry,
    dry_run: bool = False,
    config: Optional[SubmitterConfig] = None,
) -> Pipeline:
    """Build a pipeline with a one-off builder."""
    return await SubmitterBuilder(registry, config).build(strategy, dry_run=dry_run)
