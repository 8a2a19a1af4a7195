"""
TransactionExecutor: submit a sealed batch and present its outcome uniformly.

Architecture:
    The executor never builds anything. It takes a sealed TransactionBatch,
    hands it to a Signer (the wallet boundary) and resolves the result into
    a TxState the caller can observe:

        IDLE -> PENDING -> SUCCEEDED(digest) | FAILED(error)

    SUCCEEDED and FAILED are resolved states; the next execute() starts a
    fresh PENDING from either of them, so a failure is always retryable.
    Submission errors never propagate: they are captured into state.

Thread Safety:
    Single event loop. The executor takes no lock across unrelated actions;
    callers are expected to disable re-submission while state.loading is
    True.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from yume.core.errors import NotAuthorized, RemoteWriteFailure, YumeError
from yume.infra.logging_cfg import log_event
from yume.execution.batch import TransactionBatch

log = logging.getLogger("yume")


class TxPhase(Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class TxState:
    """Observable executor state. Replaced wholesale on each transition."""
    phase: TxPhase = TxPhase.IDLE
    digest: Optional[str] = None
    error: Optional[str] = None
    action: Optional[str] = None

    @property
    def loading(self) -> bool:
        return self.phase is TxPhase.PENDING

    @property
    def resolved(self) -> bool:
        return self.phase in (TxPhase.SUCCEEDED, TxPhase.FAILED)


@runtime_checkable
class Signer(Protocol):
    """Wallet boundary. Key management lives outside this package."""

    @property
    def address(self) -> Optional[str]: ...

    async def sign_and_execute(self, batch: TransactionBatch) -> Any: ...


class Refetchable(Protocol):
    def refetch_after(self, delay: float) -> Any: ...


# ===== Result envelopes =====

def _effects_failure(result: Any) -> Optional[str]:
    effects = result.get("effects") if isinstance(result, dict) else None
    if not isinstance(effects, dict):
        return None
    status = effects.get("status")
    if isinstance(status, dict) and status.get("status") not in (None, "success"):
        return str(status.get("error") or status.get("status"))
    return None


def extract_digest(result: Any) -> str:
    """
    Pull the transaction digest out of whichever envelope the signer returns.

    Handles {"digest"}, {"Transaction": {...}}, {"$kind": K, K: {...}},
    {"FailedTransaction": {...}} and JSON-RPC responses whose
    effects.status reports a failure; objects with a digest attribute work
    too. Failure envelopes raise RemoteWriteFailure. Returns "" when no
    digest can be found.
    """
    if result is None:
        return ""
    if isinstance(result, str):
        return result
    if not isinstance(result, dict):
        digest = getattr(result, "digest", None)
        return digest if isinstance(digest, str) else ""

    failed = result.get("FailedTransaction")
    if result.get("$kind") == "FailedTransaction" or failed is not None:
        failed = failed if isinstance(failed, dict) else {}
        status = failed.get("status")
        error = status.get("error") if isinstance(status, dict) else None
        digest = failed.get("digest") if isinstance(failed.get("digest"), str) else None
        raise RemoteWriteFailure(str(error or "transaction failed"), digest)

    effects_error = _effects_failure(result)
    if effects_error is not None:
        raise RemoteWriteFailure(effects_error, result.get("digest"))

    if isinstance(result.get("digest"), str):
        return result["digest"]
    kind = result.get("$kind")
    inner = result.get(kind) if isinstance(kind, str) else result.get("Transaction")
    if isinstance(inner, dict):
        if isinstance(inner.get("digest"), str):
            return inner["digest"]
        effects_error = _effects_failure(inner)
        if effects_error is not None:
            raise RemoteWriteFailure(effects_error, None)
    return ""


def _error_message(exc: BaseException) -> str:
    msg = str(exc).strip()
    return msg or exc.__class__.__name__


# ===== Executor =====

class TransactionExecutor:
    """
    Usage:
        executor = TransactionExecutor(signer, metrics=metrics)
        digest = await executor.execute(build_cancel_order(market, order_id=7), action="cancel_order")
        if digest is None:
            show(executor.state.error)
    """

    def __init__(
        self,
        signer: Optional[Signer] = None,
        metrics: Optional[Any] = None,
        settle_delay_sec: float = 2.0,
        log_event_callback: Optional[Callable[..., None]] = None,
    ) -> None:
        self.signer = signer
        self.metrics = metrics
        self.settle_delay_sec = settle_delay_sec
        self.state = TxState()
        self._log_event = log_event_callback or self._default_log

    def _default_log(self, event: str, **kwargs: Any) -> None:
        level = logging.WARNING if event == "tx_failed" else logging.INFO
        log_event(log, event, level, **kwargs)

    @property
    def is_authorized(self) -> bool:
        return self.signer is not None and bool(getattr(self.signer, "address", None))

    def set_signer(self, signer: Optional[Signer]) -> None:
        """Wallet connected / disconnected."""
        self.signer = signer

    def reset(self) -> None:
        self.state = TxState()

    def record_failure(self, error: BaseException | str, action: Optional[str] = None) -> None:
        """Resolve into FAILED without submitting (e.g. a build-time InvalidInput)."""
        message = error if isinstance(error, str) else _error_message(error)
        reason = "local" if isinstance(error, str) else error.__class__.__name__
        self.state = TxState(TxPhase.FAILED, error=message, action=action)
        self._count_failure(action, reason)
        self._log_event("tx_failed", action=action, reason=reason, error=message)

    async def execute(self, batch: TransactionBatch, action: str = "tx") -> Optional[str]:
        """
        Submit `batch`. Returns the digest on success, None on failure.

        The outcome is always reflected in self.state; nothing but
        cancellation escapes this method.
        """
        if not self.is_authorized:
            err = NotAuthorized()
            self.state = TxState(TxPhase.FAILED, error=str(err), action=action)
            self._count_failure(action, "not_authorized")
            self._log_event("tx_rejected", action=action, reason="not_authorized")
            return None

        self.state = TxState(TxPhase.PENDING, action=action)
        if self.metrics:
            self.metrics.tx_submitted.labels(action=action).inc()
        self._log_event("tx_submitted", action=action, commands=batch.functions())
        start = time.monotonic()

        try:
            batch.seal()
            result = await self.signer.sign_and_execute(batch)
            digest = extract_digest(result)
        except asyncio.CancelledError:
            self.state = TxState(TxPhase.FAILED, error="cancelled", action=action)
            raise
        except RemoteWriteFailure as exc:
            self._fail(action, "aborted", _error_message(exc), exc.digest, start)
            return None
        except YumeError as exc:
            self._fail(action, exc.__class__.__name__, _error_message(exc), None, start)
            return None
        except Exception as exc:
            # Wallet rejections and transport errors surface as arbitrary exceptions
            self._fail(action, "rejected", _error_message(exc), None, start)
            return None

        if not digest:
            self._log_event("tx_digest_missing", action=action)
        self.state = TxState(TxPhase.SUCCEEDED, digest=digest, action=action)
        self._observe_latency(action, start)
        self._log_event("tx_succeeded", action=action, digest=digest)
        return digest

    async def execute_and_refetch(
        self,
        batch: TransactionBatch,
        *readers: Refetchable,
        action: str = "tx",
    ) -> Optional[str]:
        """Execute, then schedule each reader's refetch after the settle delay."""
        digest = await self.execute(batch, action=action)
        if digest is not None:
            for reader in readers:
                reader.refetch_after(self.settle_delay_sec)
        return digest

    # ===== Internals =====

    def _fail(self, action: str, reason: str, message: str, digest: Optional[str], start: float) -> None:
        self.state = TxState(TxPhase.FAILED, digest=digest, error=message, action=action)
        self._count_failure(action, reason)
        self._observe_latency(action, start)
        self._log_event("tx_failed", action=action, reason=reason, error=message, digest=digest)

    def _count_failure(self, action: Optional[str], reason: str) -> None:
        if self.metrics:
            self.metrics.tx_failed.labels(action=action or "tx", reason=reason).inc()

    def _observe_latency(self, action: str, start: float) -> None:
        if self.metrics:
            self.metrics.tx_latency_ms.labels(action=action).observe((time.monotonic() - start) * 1000)
