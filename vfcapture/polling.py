"""Timer-driven status polling with per-tick failure isolation."""
from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional, Set

from .state import CaptureStatus

logger = logging.getLogger(__name__)

StatusFetcher = Callable[[], Awaitable[CaptureStatus]]
UpdateCallback = Callable[[CaptureStatus], Any]
ErrorCallback = Callable[[Exception], Any]


class PollingController:
    """Async helper that fetches status on a fixed interval and emits results.

    A failed fetch is reported to ``on_error`` and the timer keeps going.
    With ``single_flight`` a tick that fires while the previous fetch is still
    running is skipped; without it fetches may overlap and finish out of order.
    """

    def __init__(self, fetch_status: StatusFetcher, *, single_flight: bool = True) -> None:
        self.fetch_status = fetch_status
        self.single_flight = single_flight
        self.interval_ms: Optional[int] = None
        self.skipped_ticks = 0

        self._task: Optional[asyncio.Task[None]] = None
        self._in_flight: Set[asyncio.Task[None]] = set()
        self._on_update: Optional[UpdateCallback] = None
        self._on_error: Optional[ErrorCallback] = None
        self._active = False

    @property
    def running(self) -> bool:
        return self._active

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def start(self, interval_ms: int, on_update: UpdateCallback, on_error: ErrorCallback) -> None:
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")
        if self._task:
            logger.warning("Status poller already running (interval=%sms); ignoring start", self.interval_ms)
            return
        self.interval_ms = interval_ms
        self._on_update = on_update
        self._on_error = on_error
        self._active = True
        self._task = asyncio.create_task(self._run_loop(interval_ms / 1000), name="status-poller")

    async def stop(self) -> None:
        """Cancel the timer and any fetch still running; no callbacks after this returns."""
        self._active = False
        # a callback may stop the poller from inside its own poll task
        current = asyncio.current_task()
        tasks = [t for t in (self._task, *self._in_flight) if t is not None and t is not current]
        self._task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.warning("Error stopping status poll task: %s", e)
        self._in_flight.clear()
        self._on_update = None
        self._on_error = None

    async def _run_loop(self, interval: float) -> None:
        logger.info("Status poller active (interval=%dms, single_flight=%s)", self.interval_ms, self.single_flight)
        try:
            while self._active:
                await asyncio.sleep(interval)
                self._tick()
        except asyncio.CancelledError:
            logger.info("Status poller cancelled")
            raise

    def _tick(self) -> None:
        if self.single_flight and self._in_flight:
            self.skipped_ticks += 1
            logger.debug("Status fetch still in flight; skipping tick")
            return
        task = asyncio.create_task(self._poll_once(), name="status-poll")
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _poll_once(self) -> None:
        try:
            status = await self.fetch_status()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Status poll failed: %s", exc)
            await self._emit(self._on_error, exc)
            return
        await self._emit(self._on_update, status)

    async def _emit(self, callback: Optional[Callable[[Any], Any]], value: Any) -> None:
        if not self._active or callback is None:
            return
        try:
            result = callback(value)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Status poll callback failed")


__all__ = ["PollingController"]
