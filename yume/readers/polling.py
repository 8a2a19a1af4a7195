"""
PollingReader: a cancellable, self-owned poll loop over one remote fetch.

Architecture:
    Each reader owns exactly one piece of state (its last good result) and
    every asyncio task it spawns: the interval loop plus any delayed
    refetches. Subclasses implement `fetch()`; the base class handles
    scheduling, error capture and staleness.

    refresh() tags each fetch with a sequence number. A result is applied
    only if it is newer than the last applied one, so an overlapping slow
    fetch cannot overwrite a faster, later one. After stop() every
    in-flight result is discarded.

Failure semantics:
    Any exception from fetch() (RemoteReadFailure or otherwise) sets
    `error` and keeps `data` untouched. The next tick retries; nothing is
    escalated.

Thread Safety:
    Single event loop. Readers share no mutable state with each other.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Generic, List, Optional, Set, TypeVar

from yume.core.utils import now_ms
from yume.infra.logging_cfg import log_event

log = logging.getLogger("yume")

T = TypeVar("T")

Listener = Callable[["PollingReader[Any]"], Any]


class PollingReader(Generic[T]):
    name = "reader"

    def __init__(
        self,
        interval_sec: float = 15.0,
        market_id: str = "",
        metrics: Optional[Any] = None,
        log_event_callback: Optional[Callable[..., None]] = None,
    ) -> None:
        self.interval_sec = interval_sec
        self.market_id = market_id
        self.metrics = metrics

        self.data: Optional[T] = None
        self.error: Optional[str] = None
        self.last_updated_ms: int = 0

        self._in_flight = 0
        self._seq = 0
        self._applied_seq = 0
        self._closed = False
        self._loop_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        self._listeners: List[Listener] = []
        self._log_event = log_event_callback or self._default_log

    def _default_log(self, event: str, **kwargs: Any) -> None:
        level = logging.WARNING if event.endswith("_failed") else logging.DEBUG
        log_event(log, event, level, reader=self.name, market=self.market_id, **kwargs)

    async def fetch(self) -> T:
        raise NotImplementedError

    # ===== Observable state =====

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def add_listener(self, listener: Listener) -> None:
        """Called after every refresh that changed data or error."""
        self._listeners.append(listener)

    # ===== Lifecycle =====

    def start(self) -> None:
        """Start the interval loop. The first refresh runs immediately."""
        if self._closed:
            raise RuntimeError(f"{self.name} reader was stopped; create a new one")
        if self.running:
            return
        self._loop_task = self._spawn(self._run())

    async def stop(self) -> None:
        """Cancel every task this reader owns. Late results are discarded."""
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._loop_task = None

    async def __aenter__(self) -> "PollingReader[T]":
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    async def _run(self) -> None:
        while not self._closed:
            await self.refresh()
            await asyncio.sleep(self.interval_sec)

    def _spawn(self, coro: Any) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ===== Refresh =====

    async def refresh(self) -> bool:
        """
        Run one fetch now. Returns True if its result (or error) was applied.
        """
        if self._closed:
            return False
        self._seq += 1
        seq = self._seq
        self._in_flight += 1
        start = time.monotonic()
        if self.metrics:
            self.metrics.reader_polls.labels(reader=self.name, market=self.market_id).inc()
        try:
            result = await self.fetch()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if self._closed or seq < self._applied_seq:
                return False
            self._applied_seq = seq
            self.error = str(exc) or exc.__class__.__name__
            if self.metrics:
                self.metrics.reader_failures.labels(reader=self.name, market=self.market_id).inc()
            self._log_event("reader_poll_failed", error=self.error, error_type=exc.__class__.__name__)
            self._notify()
            return False
        finally:
            self._in_flight -= 1
            if self.metrics:
                self.metrics.reader_latency_ms.labels(reader=self.name).observe((time.monotonic() - start) * 1000)

        if self._closed or seq < self._applied_seq:
            self._log_event("reader_result_discarded", seq=seq)
            return False
        self._applied_seq = seq
        self.data = result
        self.error = None
        self.last_updated_ms = now_ms()
        self._on_applied(result)
        self._notify()
        return True

    def refetch(self) -> Optional[asyncio.Task]:
        """Fire-and-forget refresh owned by this reader."""
        if self._closed:
            return None
        return self._spawn(self.refresh())

    def refetch_after(self, delay: float) -> Optional[asyncio.Task]:
        """Refresh after `delay` seconds (read-after-write settle window)."""
        if self._closed:
            return None
        return self._spawn(self._delayed_refresh(delay))

    async def _delayed_refresh(self, delay: float) -> None:
        await asyncio.sleep(delay)
        await self.refresh()

    def _on_applied(self, result: T) -> None:
        """Hook for subclasses, e.g. to update gauges."""

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as exc:
                self._log_event("reader_listener_failed", error=str(exc))
