"""
Polling change notifier for "new approval arrived" signals.

Drives soft real-time UI refresh without a push channel. Delivery is best
effort: a subscriber that is not running misses the event, and nothing
downstream may depend on a notification firing.
"""
from __future__ import annotations

import asyncio
import inspect
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from loguru import logger

from ..models.approval import ApprovalFilter, ApprovalRequest, utcnow
from .storage.approval_store_base import ApprovalStoreBase

NewApprovalsCallback = Callable[[list[ApprovalRequest]], Union[None, Awaitable[None]]]

PENDING_ONLY = ApprovalFilter(status="pending")


class ChangeNotifier:
    """
    Cancellable polling subscription.

    Each tick looks for pending requests created after ``last_check``, hands
    them to the callback, then moves ``last_check`` to the time the tick
    started, whether or not anything was found. The query window reaches
    ``lookback_seconds`` before ``last_check`` (never before ``start()``) so a
    row whose ``requested_at`` was stamped before its insert committed is
    still picked up; ids already reported inside the window are skipped.

    Ticks never overlap: the loop awaits the callback before sleeping again,
    and ``check_now`` skips if a tick is already in flight.
    """

    def __init__(
        self,
        store: ApprovalStoreBase,
        callback: NewApprovalsCallback,
        interval_seconds: Optional[float] = None,
        scope: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
        lookback_seconds: Optional[float] = None
    ):
        if interval_seconds is None:
            from ..core.config import settings
            interval_seconds = settings.notifier_poll_interval_seconds
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self.interval = interval_seconds
        self.lookback = interval_seconds if lookback_seconds is None else lookback_seconds
        self.scope = scope
        self.last_check: Optional[datetime] = None
        self._started_at: Optional[datetime] = None
        self._reported: Dict[str, datetime] = {}
        self._store = store
        self._callback = callback
        self._clock = clock
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._tick_lock = asyncio.Lock()
        self._status: Dict[str, Any] = {"state": "idle"}

    @property
    def active(self) -> bool:
        return self._running

    def get_status(self) -> Dict[str, Any]:
        return self._status

    async def start(self) -> "ChangeNotifier":
        if self._running:
            return self
        self.last_check = self._started_at = self._clock()
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        self._status = {"state": "running"}
        logger.info("Approval notifier started", interval=self.interval, scope=self.scope)
        return self

    async def stop(self) -> None:
        self._running = False
        task, self._task = self._task, None
        if task and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._status = {"state": "stopped"}
        logger.info("Approval notifier stopped", scope=self.scope)

    cancel = stop

    async def check_now(self) -> list[ApprovalRequest]:
        """Run one tick immediately. Returns the new requests found (empty if skipped)."""
        if self._tick_lock.locked():
            logger.debug("Approval notifier tick already in flight, skipping")
            return []
        async with self._tick_lock:
            return await self._tick()

    async def _run_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.interval)
            if not self._running:
                break
            try:
                await self.check_now()
            except Exception as exc:
                logger.exception(f"Approval notifier loop error: {exc}")
                self._status = {"state": "error", "error": str(exc)}

    async def _tick(self) -> list[ApprovalRequest]:
        if self.last_check is None:
            self.last_check = self._started_at = self._clock()
        tick_time = self._clock()
        window_start = max(self.last_check - timedelta(seconds=self.lookback), self._started_at)

        # A store failure propagates before last_check moves, so the window is rescanned
        found = await self._store.query(self.scope, PENDING_ONLY, requested_after=window_start)
        new_requests = [r for r in found if r.id not in self._reported]
        for request in new_requests:
            self._reported[request.id] = request.requested_at

        if new_requests:
            logger.info(
                "New approval requests detected",
                count=len(new_requests),
                scope=self.scope
            )
            try:
                result = self._callback(new_requests)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                # Subscriber failures never stop polling
                logger.exception(f"New-approval callback failed: {exc}")

        self.last_check = tick_time
        # Entries at or before this window can never be returned again
        self._reported = {k: v for k, v in self._reported.items() if v > window_start}
        self._status = {
            "state": "running" if self._running else "idle",
            "last_check": tick_time.isoformat(),
            "last_found": len(new_requests),
        }
        return new_requests
