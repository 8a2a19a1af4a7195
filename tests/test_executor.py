"""
Tests for TransactionExecutor and digest extraction.
"""
import asyncio
import json
import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from prometheus_client import CollectorRegistry

from yume.core.errors import InvalidInput, RemoteWriteFailure
from yume.execution.batch import TransactionBatch
from yume.execution import executor as executor_mod
from yume.execution.executor import TransactionExecutor, TxPhase, extract_digest
from yume.monitoring.metrics import YumeMetrics

PKG = "0x" + "ab" * 32


def _batch():
    batch = TransactionBatch()
    batch.move_call(f"{PKG}::market::cancel_order", [batch.pure(1)])
    return batch.seal()


def _signer(result=None, side_effect=None, address="0x" + "a1" * 32):
    signer = MagicMock()
    signer.address = address
    signer.sign_and_execute = AsyncMock(return_value=result, side_effect=side_effect)
    return signer


class TestExtractDigest:
    def test_plain(self):
        assert extract_digest({"digest": "D1"}) == "D1"

    def test_transaction_envelope(self):
        assert extract_digest({"Transaction": {"digest": "D2"}}) == "D2"

    def test_kind_envelope(self):
        assert extract_digest({"$kind": "Transaction", "Transaction": {"digest": "D3"}}) == "D3"

    def test_attribute(self):
        assert extract_digest(SimpleNamespace(digest="D4")) == "D4"

    def test_failed_transaction(self):
        with pytest.raises(RemoteWriteFailure) as exc:
            extract_digest({
                "$kind": "FailedTransaction",
                "FailedTransaction": {"digest": "D5", "status": {"error": "MoveAbort(settle, 3)"}},
            })
        assert exc.value.digest == "D5"
        assert "MoveAbort" in str(exc.value)

    def test_effects_failure(self):
        with pytest.raises(RemoteWriteFailure):
            extract_digest({"digest": "D6", "effects": {"status": {"status": "failure", "error": "InsufficientGas"}}})

    def test_effects_success(self):
        assert extract_digest({"digest": "D7", "effects": {"status": {"status": "success"}}}) == "D7"

    def test_missing(self):
        assert extract_digest({}) == ""
        assert extract_digest(None) == ""


class TestExecutor:
    @pytest.fixture
    def metrics(self):
        return YumeMetrics(registry=CollectorRegistry())

    @pytest.mark.asyncio
    async def test_not_authorized_skips_submission(self):
        executor = TransactionExecutor(signer=None)
        assert await executor.execute(_batch(), action="cancel_order") is None
        assert executor.state.phase is TxPhase.FAILED
        assert executor.state.error == "Wallet not connected"

    @pytest.mark.asyncio
    async def test_signer_without_address_is_not_authorized(self):
        signer = _signer(address=None)
        executor = TransactionExecutor(signer)
        await executor.execute(_batch())
        signer.sign_and_execute.assert_not_awaited()
        assert executor.state.phase is TxPhase.FAILED

    @pytest.mark.asyncio
    async def test_success(self, metrics):
        executor = TransactionExecutor(_signer({"digest": "ABC"}), metrics=metrics)
        assert await executor.execute(_batch(), action="cancel_order") == "ABC"
        assert executor.state.phase is TxPhase.SUCCEEDED
        assert executor.state.digest == "ABC"
        assert not executor.state.loading
        assert metrics.registry.get_sample_value("tx_submitted_total", {"action": "cancel_order"}) == 1

    @pytest.mark.asyncio
    async def test_pending_while_signing(self):
        gate = asyncio.Event()

        async def slow(_batch):
            await gate.wait()
            return {"digest": "X"}

        signer = _signer()
        signer.sign_and_execute = slow
        executor = TransactionExecutor(signer)
        task = asyncio.create_task(executor.execute(_batch()))
        await asyncio.sleep(0)
        assert executor.state.phase is TxPhase.PENDING
        assert executor.state.loading
        gate.set()
        assert await task == "X"

    @pytest.mark.asyncio
    async def test_rejection_is_captured(self, metrics):
        executor = TransactionExecutor(_signer(side_effect=RuntimeError("User rejected")), metrics=metrics)
        assert await executor.execute(_batch(), action="repay") is None
        assert executor.state.phase is TxPhase.FAILED
        assert executor.state.error == "User rejected"
        assert metrics.registry.get_sample_value(
            "tx_failed_total", {"action": "repay", "reason": "rejected"}
        ) == 1

    @pytest.mark.asyncio
    async def test_abort_envelope_is_failure(self):
        executor = TransactionExecutor(_signer({"FailedTransaction": {"digest": "Z", "status": {"error": "abort"}}}))
        assert await executor.execute(_batch()) is None
        assert executor.state.phase is TxPhase.FAILED
        assert executor.state.digest == "Z"

    @pytest.mark.asyncio
    async def test_retry_after_failure(self):
        signer = _signer(side_effect=[RuntimeError("boom"), {"digest": "OK"}])
        executor = TransactionExecutor(signer)
        assert await executor.execute(_batch()) is None
        assert await executor.execute(_batch()) == "OK"
        assert executor.state.phase is TxPhase.SUCCEEDED
        assert executor.state.error is None

    @pytest.mark.asyncio
    async def test_missing_digest_still_succeeds(self):
        executor = TransactionExecutor(_signer({}))
        assert await executor.execute(_batch()) == ""
        assert executor.state.phase is TxPhase.SUCCEEDED

    @pytest.mark.asyncio
    async def test_execute_and_refetch_schedules_readers(self):
        reader = MagicMock()
        executor = TransactionExecutor(_signer({"digest": "R"}), settle_delay_sec=2.0)
        await executor.execute_and_refetch(_batch(), reader, action="cancel_order")
        reader.refetch_after.assert_called_once_with(2.0)

    @pytest.mark.asyncio
    async def test_no_refetch_on_failure(self):
        reader = MagicMock()
        executor = TransactionExecutor(_signer(side_effect=RuntimeError("x")))
        await executor.execute_and_refetch(_batch(), reader)
        reader.refetch_after.assert_not_called()

    def test_record_failure_and_reset(self):
        executor = TransactionExecutor()
        executor.record_failure(InvalidInput("amount must be > 0, got 0"), action="place_borrow_order")
        assert executor.state.phase is TxPhase.FAILED
        assert executor.state.error == "amount must be > 0, got 0"
        executor.reset()
        assert executor.state.phase is TxPhase.IDLE

    @pytest.mark.asyncio
    async def test_log_callback(self):
        events = []
        executor = TransactionExecutor(
            _signer({"digest": "L"}),
            log_event_callback=lambda event, **kw: events.append(event),
        )
        await executor.execute(_batch())
        assert events == ["tx_submitted", "tx_succeeded"]

    @pytest.mark.asyncio
    async def test_default_log_emits_json_events(self, monkeypatch):
        fake_log = MagicMock()
        monkeypatch.setattr(executor_mod, "log", fake_log)
        executor = TransactionExecutor(_signer(side_effect=RuntimeError("User rejected")))
        await executor.execute(_batch(), action="repay")
        calls = [(c.args[0], json.loads(c.args[1])) for c in fake_log.log.call_args_list]
        assert [p["event"] for _, p in calls] == ["tx_submitted", "tx_failed"]
        assert calls[-1][0] == logging.WARNING
        assert calls[-1][1]["action"] == "repay"
