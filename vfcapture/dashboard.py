"""Dashboard view state: polled capture status fanned out to UI subscribers."""
from __future__ import annotations

import asyncio
from asyncio import QueueEmpty
import logging
from typing import Any, Dict, List, Optional

from .capture_client import CaptureClient
from .errors import CaptureClientError
from .polling import PollingController
from .state import CaptureStatus, StatusEvent

logger = logging.getLogger(__name__)


class DashboardView:
    """Owns one status poller for as long as the dashboard is mounted.

    The displayed status only ever changes from a successful fetch. Lifecycle
    actions that fail are logged and broadcast, and the status stays stale
    until the next poll.
    """

    ACTIONS = ("start", "record", "stop", "finish", "cancel")

    def __init__(
        self,
        client: CaptureClient,
        *,
        interval_ms: int = 2500,
        single_flight: bool = True,
        queue_size: int = 8,
    ) -> None:
        self.client = client
        self.interval_ms = interval_ms
        self.queue_size = queue_size
        self._poller = PollingController(client.get_status, single_flight=single_flight)
        self._ui_subscribers: List[asyncio.Queue[StatusEvent]] = []
        self._status: Optional[CaptureStatus] = None
        self._last_error: Optional[str] = None

    @property
    def status(self) -> Optional[CaptureStatus]:
        return self._status

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def mounted(self) -> bool:
        return self._poller.running

    async def mount(self) -> None:
        logger.info("Mounting dashboard (poll every %dms)", self.interval_ms)
        await self._poller.start(self.interval_ms, self._handle_status, self._handle_poll_error)

    async def unmount(self) -> None:
        await self._poller.stop()
        logger.info("Dashboard unmounted")

    def register_ui(self) -> asyncio.Queue[StatusEvent]:
        queue: asyncio.Queue[StatusEvent] = asyncio.Queue(maxsize=self.queue_size)
        self._ui_subscribers.append(queue)
        if self._status is not None:
            queue.put_nowait(StatusEvent(type="status", data={}, status=self._status))
        return queue

    def unregister_ui(self, queue: asyncio.Queue[StatusEvent]) -> None:
        if queue in self._ui_subscribers:
            self._ui_subscribers.remove(queue)

    async def refresh(self) -> CaptureStatus:
        """Fetch status once outside the polling timer."""
        try:
            status = await self.client.get_status()
        except CaptureClientError as exc:
            await self._handle_poll_error(exc)
            raise
        await self._handle_status(status)
        return status

    async def publish(self, status: CaptureStatus) -> None:
        """Show a status fetched elsewhere, e.g. the one login already returned."""
        await self._handle_status(status)

    async def perform(self, action: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        """Run one lifecycle call by name and broadcast the acknowledgment."""
        if action not in self.ACTIONS:
            raise ValueError(f"unknown capture action {action!r}")
        try:
            if action == "start":
                ack = await self.client.start_capture(payload)
            elif action == "record":
                ack = await self.client.record_capture()
            elif action == "stop":
                ack = await self.client.stop_capture()
            elif action == "finish":
                ack = await self.client.finish_capture(payload or {})
            else:
                ack = await self.client.cancel_capture()
        except (CaptureClientError, ValueError) as exc:
            logger.error("dashboard.%s: failed - %s", action, exc)
            await self._broadcast(
                StatusEvent(type="error", data={"action": action}, status=self._status, error=str(exc))
            )
            raise
        await self._broadcast(StatusEvent(type="action", data={"action": action, "ack": ack}, status=self._status))
        return ack

    async def _handle_status(self, status: CaptureStatus) -> None:
        if self._status is None or self._status.label != status.label:
            logger.info("Capture state: %s", status.label)
        self._status = status
        self._last_error = None
        await self._broadcast(StatusEvent(type="status", data={}, status=status))

    async def _handle_poll_error(self, exc: Exception) -> None:
        self._last_error = str(exc)
        await self._broadcast(
            StatusEvent(type="poll_error", data={"kind": type(exc).__name__}, status=self._status, error=str(exc))
        )

    async def _broadcast(self, event: StatusEvent) -> None:
        """Broadcast event to all UI subscribers, dropping the oldest when full."""
        for queue in list(self._ui_subscribers):
            try:
                if queue.full():
                    try:
                        queue.get_nowait()
                    except QueueEmpty:
                        pass
                queue.put_nowait(event)
            except Exception as e:
                logger.warning("Failed to broadcast event to subscriber: %s", e)


__all__ = ["DashboardView"]
