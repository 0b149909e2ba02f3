"""
Test suite for the submission orchestrator.

Tests end-to-end runs: input validation, receipts files, the receipt store and
failure reporting.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
import yaml

from txsubmit.chains.registry import ChainMetadata, ChainRegistry, KeyReference
from txsubmit.core.errors import (
    DispatchRejected,
    InvalidStrategy,
    InvalidTransactionInput,
    MissingStrategy,
    MissingTransactions,
    PartialBatchFailure,
    SubmissionFailed,
    TransientDispatchFailure,
    UnknownChain,
)
from txsubmit.core.receipt import ReceiptStatus
from txsubmit.keys.agent import KeyRole
from txsubmit.keys.backend import InMemoryKeyBackend
from txsubmit.orchestrator import SubmissionOrchestrator, load_transactions
from txsubmit.state.database import ReceiptStore
from txsubmit.submit.direct import EvmDirectSubmitter

from tests.conftest import FakeEvmProvider, generate_test_address

DIRECT_STRATEGY = {"chain": "test1", "submitter": {"type": "direct"}}


def transaction_documents(count: int, chain: str = "test1"):
    return [
        {"chain": chain, "to": generate_test_address(i), "value": str(i + 1), "data": "0x"}
        for i in range(count)
    ]


@pytest_asyncio.fixture
async def receipt_store(test_config, tmp_path):
    store = ReceiptStore(test_config, database_url=f"sqlite+aiosqlite:///{tmp_path}/receipts.db")
    await store.connect()
    yield store
    await store.disconnect()


class TestLoadTransactions:
    """Tests for reading transaction sources."""

    def test_reads_json_file(self, tmp_path):
        path = tmp_path / "transactions.json"
        path.write_text(json.dumps(transaction_documents(2)))

        transactions = load_transactions(path)

        assert [tx.value for tx in transactions] == [1, 2]

    def test_reads_yaml_file(self, tmp_path):
        path = tmp_path / "transactions.yaml"
        path.write_text(yaml.safe_dump(transaction_documents(3)))

        assert len(load_transactions(str(path))) == 3

    def test_empty_document(self, tmp_path):
        path = tmp_path / "transactions.yaml"
        path.write_text("")

        with pytest.raises(MissingTransactions):
            load_transactions(path)

    def test_document_must_be_list(self):
        with pytest.raises(MissingTransactions, match="list"):
            load_transactions({"chain": "test1"})


class TestSubmissionOrchestrator:
    """Tests for complete submission runs."""

    @pytest.mark.asyncio
    async def test_run_writes_receipts(self, registry, test_config, tmp_path):
        """Test that a successful run writes receipts in input order."""
        receipts_path = tmp_path / "out" / "receipts.yaml"
        orchestrator = SubmissionOrchestrator(registry, config=test_config)

        receipts = await orchestrator.run(DIRECT_STRATEGY, transaction_documents(3), receipts_path)

        written = yaml.safe_load(receipts_path.read_text())
        assert [entry["index"] for entry in written] == [0, 1, 2]
        assert [entry["transactionHash"] for entry in written] == [r.transaction_hash for r in receipts]
        assert all(entry["status"] == "confirmed" for entry in written)

    @pytest.mark.asyncio
    async def test_run_writes_json_receipts(self, registry, test_config, tmp_path):
        receipts_path = tmp_path / "receipts.json"
        orchestrator = SubmissionOrchestrator(registry, config=test_config)

        await orchestrator.run(DIRECT_STRATEGY, transaction_documents(1), receipts_path)

        assert json.loads(receipts_path.read_text())[0]["chain"] == "test1"

    @pytest.mark.asyncio
    async def test_strategy_from_file(self, registry, test_config, tmp_path):
        strategy_path = tmp_path / "strategy.yaml"
        strategy_path.write_text(yaml.safe_dump(DIRECT_STRATEGY))
        orchestrator = SubmissionOrchestrator(registry, config=test_config)

        receipts = await orchestrator.run(str(strategy_path), transaction_documents(1))

        assert len(receipts) == 1

    @pytest.mark.asyncio
    async def test_missing_strategy(self, registry, test_config):
        orchestrator = SubmissionOrchestrator(registry, config=test_config)

        with pytest.raises(MissingStrategy):
            await orchestrator.run(None, transaction_documents(1))

    @pytest.mark.asyncio
    async def test_invalid_entry_nothing_submitted(self, registry, providers, test_config):
        """Test that a malformed entry at index k fails the run with zero broadcasts."""
        documents = transaction_documents(3)
        documents[2]["value"] = -5
        orchestrator = SubmissionOrchestrator(registry, config=test_config)

        with pytest.raises(InvalidTransactionInput) as exc_info:
            await orchestrator.run(DIRECT_STRATEGY, documents)

        assert exc_info.value.indices == [2]
        assert providers["test1"].send_attempts == 0

    @pytest.mark.asyncio
    async def test_unknown_chain_propagates(self, registry, test_config):
        orchestrator = SubmissionOrchestrator(registry, config=test_config)

        with pytest.raises(UnknownChain):
            await orchestrator.run(
                {"chain": "nowhere", "submitter": {"type": "direct"}},
                transaction_documents(1),
            )

    @pytest.mark.asyncio
    async def test_failure_is_reported_coarsely(self, registry, providers, test_config, tmp_path):
        providers["test1"].fail_send(0, DispatchRejected("nonce too low"))
        receipts_path = tmp_path / "receipts.yaml"
        orchestrator = SubmissionOrchestrator(registry, config=test_config)

        with pytest.raises(SubmissionFailed) as exc_info:
            await orchestrator.run(DIRECT_STRATEGY, transaction_documents(2), receipts_path)

        failure = exc_info.value
        assert failure.attempted == 2
        assert "Failed to submit 2 transactions" in str(failure)
        assert isinstance(failure.cause, PartialBatchFailure)
        assert failure.receipts == []
        assert not receipts_path.exists()

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_landed_receipts(self, registry, providers, test_config, tmp_path):
        """Test that receipts of confirmed transactions are written even when the run fails."""
        providers["test1"].fail_send(1, *[TransientDispatchFailure("timeout")] * 3)
        receipts_path = tmp_path / "receipts.yaml"
        orchestrator = SubmissionOrchestrator(registry, config=test_config)

        with pytest.raises(SubmissionFailed) as exc_info:
            await orchestrator.run(DIRECT_STRATEGY, transaction_documents(2), receipts_path)

        assert len(exc_info.value.receipts) == 1
        written = yaml.safe_load(receipts_path.read_text())
        assert [entry["index"] for entry in written] == [0]

    @pytest.mark.asyncio
    async def test_unexpected_error_keeps_landed_receipts(self, registry, providers, test_config, tmp_path):
        """Test that an error outside the dispatch taxonomy is still reported with what landed."""
        providers["test1"].fail_send(1, ValueError("Expecting value: line 1 column 1 (char 0)"))
        receipts_path = tmp_path / "receipts.yaml"
        orchestrator = SubmissionOrchestrator(registry, config=test_config)

        with pytest.raises(SubmissionFailed) as exc_info:
            await orchestrator.run(DIRECT_STRATEGY, transaction_documents(2), receipts_path)

        failure = exc_info.value
        assert len(failure.receipts) == 1
        assert isinstance(failure.cause, PartialBatchFailure)
        assert isinstance(failure.cause.cause, ValueError)
        written = yaml.safe_load(receipts_path.read_text())
        assert [entry["index"] for entry in written] == [0]

    @pytest.mark.asyncio
    async def test_receipt_write_error_keeps_submission_cause(self, registry, providers, test_config, tmp_path):
        providers["test1"].fail_send(1, DispatchRejected("underpriced"))
        orchestrator = SubmissionOrchestrator(registry, config=test_config)

        with patch("txsubmit.orchestrator.write_yaml_or_json", side_effect=OSError("disk full")):
            with pytest.raises(SubmissionFailed) as exc_info:
                await orchestrator.run(DIRECT_STRATEGY, transaction_documents(2), tmp_path / "receipts.yaml")

        failure = exc_info.value
        assert isinstance(failure.cause, PartialBatchFailure)
        assert isinstance(failure.cause.cause, DispatchRejected)
        assert len(failure.receipts) == 1

    @pytest.mark.asyncio
    async def test_submitter_closed_after_run(self, registry, test_config):
        orchestrator = SubmissionOrchestrator(registry, config=test_config)

        with patch.object(EvmDirectSubmitter, "aclose", new=AsyncMock()) as aclose:
            await orchestrator.run(DIRECT_STRATEGY, transaction_documents(1))

        aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_submitter_closed_after_failed_run(self, registry, providers, test_config):
        providers["test1"].fail_send(0, DispatchRejected("nonce too low"))
        orchestrator = SubmissionOrchestrator(registry, config=test_config)

        with patch.object(EvmDirectSubmitter, "aclose", new=AsyncMock()) as aclose:
            with pytest.raises(SubmissionFailed):
                await orchestrator.run(DIRECT_STRATEGY, transaction_documents(1))

        aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_signing_key_is_invalid_strategy(self, test_config):
        registry = ChainRegistry(
            [
                ChainMetadata(
                    name="test1",
                    chain_id=31337,
                    rpc_url="http://localhost:8545",
                    key=KeyReference(role=KeyRole.RELAYER),
                )
            ],
            config=test_config,
            key_backend=InMemoryKeyBackend(),
            providers={"test1": FakeEvmProvider()},
        )
        orchestrator = SubmissionOrchestrator(registry, config=test_config)

        with pytest.raises(InvalidStrategy, match="not found"):
            await orchestrator.run(DIRECT_STRATEGY, transaction_documents(1))

    @pytest.mark.asyncio
    async def test_dry_run(self, registry, providers, test_config, tmp_path):
        receipts_path = tmp_path / "receipts.yaml"
        orchestrator = SubmissionOrchestrator(registry, config=test_config)

        receipts = await orchestrator.run(
            DIRECT_STRATEGY, transaction_documents(2), receipts_path, dry_run=True
        )

        assert providers["test1"].sent == []
        assert all(r.status == ReceiptStatus.SIMULATED for r in receipts)
        assert all(entry["simulated"] for entry in yaml.safe_load(receipts_path.read_text()))

    @pytest.mark.asyncio
    async def test_empty_batch_is_valid(self, registry, test_config, tmp_path):
        receipts_path = tmp_path / "receipts.yaml"
        orchestrator = SubmissionOrchestrator(registry, config=test_config)

        assert await orchestrator.run(DIRECT_STRATEGY, [], receipts_path) == []
        assert not receipts_path.exists()


class TestOrchestratorReceiptStore:
    """Tests for recording runs in the receipt store."""

    @pytest.mark.asyncio
    async def test_successful_run_recorded(self, registry, test_config, receipt_store):
        orchestrator = SubmissionOrchestrator(registry, config=test_config, receipt_store=receipt_store)

        receipts = await orchestrator.run(DIRECT_STRATEGY, transaction_documents(2))

        stored = await receipt_store.load_receipts_by_hash(receipts[1].transaction_hash)
        assert len(stored) == 1
        assert stored[0].index == 1
        assert stored[0].source_index == 1
        assert stored[0].status == ReceiptStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_failed_run_recorded_with_landed_receipts(
        self, registry, providers, test_config, receipt_store
    ):
        providers["test1"].fail_send(1, DispatchRejected("underpriced"))
        orchestrator = SubmissionOrchestrator(registry, config=test_config, receipt_store=receipt_store)

        with pytest.raises(SubmissionFailed) as exc_info:
            await orchestrator.run(DIRECT_STRATEGY, transaction_documents(3))

        [landed] = exc_info.value.receipts
        stored = await receipt_store.load_receipts_by_hash(landed.transaction_hash)
        assert [r.index for r in stored] == [0]
