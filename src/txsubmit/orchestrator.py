"""
Submission orchestrator.

Entry point for a submission run: loads and validates the batch, builds the
pipeline from the strategy, submits once and reports the receipts.
"""

import uuid
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

import structlog

from txsubmit.chains.registry import ChainRegistry
from txsubmit.config import SubmitterConfig, get_config
from txsubmit.core.errors import MissingStrategy, MissingTransactions, PartialBatchFailure, SubmissionFailed
from txsubmit.core.receipt import Receipt
from txsubmit.core.strategy import SubmissionStrategy
from txsubmit.core.transaction import TransactionValue, validate_transactions
from txsubmit.files import read_yaml_or_json, write_yaml_or_json
from txsubmit.state.database import ReceiptStore
from txsubmit.submit.builder import Pipeline, SubmitterBuilder

logger = structlog.get_logger(__name__)

Source = Union[str, Path, Sequence[Any], None]


def load_strategy(source: Union[SubmissionStrategy, str, Path, dict, None]) -> SubmissionStrategy:
    """
    Load a strategy from a model, a parsed document or a file path.

    Raises:
        MissingStrategy: If no strategy was given
        InvalidStrategy: If the document does not match the schema
    """
    if source is None:
        raise MissingStrategy()
    if isinstance(source, SubmissionStrategy):
        return source
    if isinstance(source, (str, Path)):
        source = read_yaml_or_json(source)
    return SubmissionStrategy.from_document(source)


def load_transactions(source: Source) -> List[TransactionValue]:
    """
    Load and validate a batch from a file path or an in-memory sequence.

    Raises:
        MissingTransactions: If the source holds no transaction list
        InvalidTransactionInput: If any entry fails validation
    """
    if isinstance(source, (str, Path)):
        source = read_yaml_or_json(source)
    if source is None:
        raise MissingTransactions()
    if isinstance(source, (str, bytes, dict)) or not isinstance(source, Sequence):
        raise MissingTransactions("Transactions document must be a list of transactions")
    return validate_transactions(source)


class SubmissionOrchestrator:
    """
    Runs one submission end to end.

    Usage:
        ```python
        orchestrator = SubmissionOrchestrator(registry, receipt_store=store)
        receipts = await orchestrator.run(
            "strategy.yaml", "transactions.json", receipts_path="receipts.yaml"
        )
        ```
    """

    def __init__(
        self,
        registry: ChainRegistry,
        config: Optional[SubmitterConfig] = None,
        receipt_store: Optional[ReceiptStore] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            registry: Chain registry used to resolve strategies
            config: Submitter configuration
            receipt_store: Optional store receiving every run's receipts
        """
        self.config = config or get_config()
        self.registry = registry
        self.receipt_store = receipt_store
        self.builder = SubmitterBuilder(registry, self.config)

    async def run(
        self,
        strategy: Union[SubmissionStrategy, str, Path, dict, None],
        transactions_source: Source,
        receipts_path: Optional[Union[str, Path]] = None,
        dry_run: bool = False,
    ) -> List[Receipt]:
        """
        Submit a batch according to a strategy.

        Args:
            strategy: Strategy model, parsed document or file path
            transactions_source: Transactions file path or list of descriptors
            receipts_path: Where to write receipts (YAML, or JSON for .json)
            dry_run: Simulate instead of broadcasting

        Returns:
            Receipts in input order

        Raises:
            MissingStrategy: If no strategy was given
            InvalidTransactionInput: If any entry is invalid; nothing is submitted
            SubmissionFailed: If the submission itself failed
        """
        strategy = load_strategy(strategy)
        transactions = load_transactions(transactions_source)
        pipeline = await self.builder.build(strategy, dry_run=dry_run)

        run_id = str(uuid.uuid4())
        log = logger.bind(run_id=run_id, chain=strategy.chain, submitter=strategy.submitter.type)
        log.info("run_started", transactions=len(transactions), dry_run=dry_run)

        try:
            try:
                receipts = await pipeline.submit(*transactions)
            except Exception as e:
                landed = e.receipts if isinstance(e, PartialBatchFailure) else []
                log.error(
                    "submission_failed",
                    message=f"Failed to submit {len(transactions)} transactions",
                    attempted=len(transactions),
                    succeeded=len(landed),
                    error=str(e),
                )
                try:
                    await self._record(run_id, strategy, pipeline, len(transactions), landed, receipts_path, e)
                except Exception as record_error:
                    # The submission error stays the reported cause
                    log.error("receipt_record_failed", error=str(record_error), landed=len(landed))
                raise SubmissionFailed(len(transactions), e, landed) from e

            if not receipts:
                log.info("run_completed", receipts=0)
                return receipts

            for receipt in receipts:
                log.info("receipt", **receipt.to_dict())

            await self._record(run_id, strategy, pipeline, len(transactions), receipts, receipts_path)
        finally:
            await pipeline.aclose()

        log.info("run_completed", receipts=len(receipts), receipts_path=str(receipts_path) if receipts_path else None)
        return receipts

    async def _record(
        self,
        run_id: str,
        strategy: SubmissionStrategy,
        pipeline: Pipeline,
        attempted: int,
        receipts: List[Receipt],
        receipts_path: Optional[Union[str, Path]],
        error: Optional[BaseException] = None,
    ) -> None:
        """Write receipts to the receipts file and the receipt store."""
        if receipts and receipts_path:
            write_yaml_or_json(receipts_path, [receipt.to_dict() for receipt in receipts])

        if self.receipt_store is None:
            return

        await self.receipt_store.save_run(
            run_id,
            chain=strategy.chain,
            submitter=strategy.submitter.type,
            attempted=attempted,
            status="failed" if error else "completed",
            strategy=strategy.to_dict(),
            dry_run=pipeline.dry_run,
            error_message=str(error) if error else None,
        )
        if receipts:
            await self.receipt_store.save_receipts(run_id, receipts)
