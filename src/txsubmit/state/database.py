"""
Receipt store for submission runs.

Uses SQLAlchemy for async database operations with SQLite by default. The
store is an audit trail of what landed on-chain; it is never used to resume a
run.
"""

import json
from datetime import datetime
from typing import List, Optional

import structlog
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from txsubmit.config import SubmitterConfig, get_config
from txsubmit.core.receipt import Receipt, ReceiptStatus

logger = structlog.get_logger(__name__)

Base = declarative_base()


class RunRecord(Base):
    """Database model for submission runs."""

    __tablename__ = "runs"

    run_id = Column(String(36), primary_key=True)
    chain = Column(String(100), nullable=False)
    submitter = Column(String(50), nullable=False)
    strategy_json = Column(Text, nullable=True)  # JSON encoded

    dry_run = Column(Boolean, default=False)
    attempted = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ReceiptRecord(Base):
    """Database model for receipts, keyed by run and position."""

    __tablename__ = "receipts"

    run_id = Column(String(36), primary_key=True)
    position = Column(Integer, primary_key=True)

    chain = Column(String(100), nullable=False)
    submitter = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False)

    transaction_hash = Column(String(130), nullable=True, index=True)
    block_number = Column(Integer, nullable=True)
    block_hash = Column(String(130), nullable=True)
    gas_used = Column(Integer, nullable=True)

    proposal_id = Column(String(130), nullable=True)
    dispatch_hash = Column(String(130), nullable=True)
    batch_index = Column(Integer, nullable=True)
    source_index = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)


class ReceiptStore:
    """
    Async receipt store.

    Usage:
        ```python
        store = await init_receipt_store(config)
        await store.save_receipts(run_id, receipts)
        receipts = await store.load_receipts(run_id)
        ```
    """

    def __init__(self, config: Optional[SubmitterConfig] = None, database_url: Optional[str] = None):
        """
        Initialize the store.

        Args:
            config: Submitter configuration
            database_url: SQLAlchemy URL overriding ``config.database_url``
        """
        self.config = config or get_config()
        self.database_url = database_url or self.config.database_url
        self._engine = None
        self._session_factory = None

    async def connect(self) -> None:
        """Initialize database connection and create tables."""
        if not self.database_url:
            raise RuntimeError("Receipt store database_url not configured")

        self._engine = create_async_engine(self.database_url, echo=False)
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("database_connected", url=self.database_url.split("///")[0])

    async def disconnect(self) -> None:
        """Close database connection."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            logger.info("database_disconnected")

    def _get_session(self) -> AsyncSession:
        if not self._session_factory:
            raise RuntimeError("Database not connected")
        return self._session_factory()

    # Run operations

    async def save_run(
        self,
        run_id: str,
        chain: str,
        submitter: str,
        attempted: int,
        status: str,
        strategy: Optional[dict] = None,
        dry_run: bool = False,
        error_message: Optional[str] = None,
    ) -> None:
        """Save or update a run summary."""
        async with self._get_session() as session:
            existing = await session.get(RunRecord, run_id)

            if existing:
                existing.status = status
                existing.attempted = attempted
                existing.error_message = error_message
                existing.updated_at = datetime.utcnow()
            else:
                session.add(
                    RunRecord(
                        run_id=run_id,
                        chain=chain,
                        submitter=submitter,
                        strategy_json=json.dumps(strategy) if strategy else None,
                        dry_run=dry_run,
                        attempted=attempted,
                        status=status,
                        error_message=error_message,
                    )
                )

            await session.commit()

    async def load_run(self, run_id: str) -> Optional[dict]:
        """Load a run summary as a dict."""
        async with self._get_session() as session:
            record = await session.get(RunRecord, run_id)
            if not record:
                return None
            return {
                "run_id": record.run_id,
                "chain": record.chain,
                "submitter": record.submitter,
                "strategy": json.loads(record.strategy_json) if record.strategy_json else None,
                "dry_run": record.dry_run,
                "attempted": record.attempted,
                "status": record.status,
                "error_message": record.error_message,
                "created_at": record.created_at,
            }

    # Receipt operations

    async def save_receipts(self, run_id: str, receipts: List[Receipt]) -> None:
        """Save the receipts of a run in order."""
        async with self._get_session() as session:
            for position, receipt in enumerate(receipts):
                existing = await session.get(ReceiptRecord, (run_id, position))
                if existing:
                    await session.delete(existing)
                    await session.flush()
                session.add(self._receipt_to_record(run_id, position, receipt))

            await session.commit()

        logger.debug("receipts_saved", run_id=run_id, count=len(receipts))

    async def load_receipts(self, run_id: str) -> List[Receipt]:
        """Load the receipts of a run in order."""
        async with self._get_session() as session:
            result = await session.execute(
                select(ReceiptRecord)
                .where(ReceiptRecord.run_id == run_id)
                .order_by(ReceiptRecord.position)
            )
            return [self._record_to_receipt(r) for r in result.scalars().all()]

    async def load_receipts_by_hash(self, transaction_hash: str) -> List[Receipt]:
        """Load every receipt recorded for a transaction hash."""
        async with self._get_session() as session:
            result = await session.execute(
                select(ReceiptRecord)
                .where(ReceiptRecord.transaction_hash == transaction_hash)
                .order_by(ReceiptRecord.created_at, ReceiptRecord.position)
            )
            return [self._record_to_receipt(r) for r in result.scalars().all()]

    def _receipt_to_record(self, run_id: str, position: int, receipt: Receipt) -> ReceiptRecord:
        return ReceiptRecord(
            run_id=run_id,
            position=position,
            chain=receipt.chain,
            submitter=receipt.submitter,
            status=receipt.status.value,
            transaction_hash=receipt.transaction_hash,
            block_number=receipt.block_number,
            block_hash=receipt.block_hash,
            gas_used=receipt.gas_used,
            proposal_id=receipt.proposal_id,
            dispatch_hash=receipt.dispatch_hash,
            batch_index=receipt.batch_index,
            source_index=receipt.source_index,
            created_at=receipt.created_at,
        )

    def _record_to_receipt(self, record: ReceiptRecord) -> Receipt:
        return Receipt(
            index=record.position,
            chain=record.chain,
            submitter=record.submitter,
            status=ReceiptStatus(record.status),
            transaction_hash=record.transaction_hash,
            block_number=record.block_number,
            block_hash=record.block_hash,
            gas_used=record.gas_used,
            proposal_id=record.proposal_id,
            dispatch_hash=record.dispatch_hash,
            batch_index=record.batch_index,
            source_index=record.source_index,
            created_at=record.created_at,
        )


async def init_receipt_store(config: Optional[SubmitterConfig] = None) -> ReceiptStore:
    """
    Initialize and connect the receipt store.

    Args:
        config: Submitter configuration

    Returns:
        Connected ReceiptStore instance
    """
    store = ReceiptStore(config)
    await store.connect()
    return store
