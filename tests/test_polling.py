"""Tests for the timer-driven status poller."""
from __future__ import annotations

import asyncio

import pytest

from vfcapture.errors import ServiceUnreachable
from vfcapture.polling import PollingController
from vfcapture.state import CaptureStatus


class AlternatingFetcher:
    """Succeeds on odd calls, fails on even ones."""

    def __init__(self, delay: float = 0.0) -> None:
        self.calls = 0
        self.delay = delay
        self.active = 0
        self.max_active = 0

    async def __call__(self) -> CaptureStatus:
        self.calls += 1
        call = self.calls
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        if call % 2 == 0:
            raise ServiceUnreachable(f"call {call} failed")
        return CaptureStatus(state="recording", info={"call": call})


async def test_alternating_success_and_failure_keeps_polling():
    fetcher = AlternatingFetcher()
    updates, errors = [], []
    poller = PollingController(fetcher)

    await poller.start(100, updates.append, errors.append)
    await asyncio.sleep(0.65)
    assert poller.running
    await poller.stop()

    assert len(updates) >= 2
    assert len(errors) >= 2
    assert all(isinstance(s, CaptureStatus) for s in updates)
    assert all(isinstance(e, ServiceUnreachable) for e in errors)
    assert [s.info["call"] % 2 for s in updates] == [1] * len(updates)


async def test_no_callbacks_after_stop():
    fetcher = AlternatingFetcher()
    updates, errors = [], []
    poller = PollingController(fetcher)

    await poller.start(100, updates.append, errors.append)
    await asyncio.sleep(0.35)
    await poller.stop()
    seen = (len(updates), len(errors), fetcher.calls)

    await asyncio.sleep(0.35)
    assert (len(updates), len(errors), fetcher.calls) == seen
    assert not poller.running
    assert poller.in_flight == 0


async def test_stop_while_fetch_in_flight_suppresses_delivery():
    fetcher = AlternatingFetcher(delay=0.3)
    updates, errors = [], []
    poller = PollingController(fetcher)

    await poller.start(50, updates.append, errors.append)
    await asyncio.sleep(0.1)
    assert poller.in_flight == 1
    await poller.stop()
    await asyncio.sleep(0.4)

    assert updates == [] and errors == []


async def test_single_flight_skips_ticks_while_fetch_runs():
    fetcher = AlternatingFetcher(delay=0.25)
    poller = PollingController(fetcher, single_flight=True)

    await poller.start(50, lambda s: None, lambda e: None)
    await asyncio.sleep(0.6)
    await poller.stop()

    assert fetcher.max_active == 1
    assert poller.skipped_ticks > 0


async def test_overlapping_fetches_allowed_without_single_flight():
    fetcher = AlternatingFetcher(delay=0.25)
    poller = PollingController(fetcher, single_flight=False)

    await poller.start(50, lambda s: None, lambda e: None)
    await asyncio.sleep(0.4)
    await poller.stop()

    assert fetcher.max_active > 1
    assert poller.skipped_ticks == 0


async def test_async_callbacks_are_awaited():
    received = asyncio.Event()

    async def on_update(status: CaptureStatus) -> None:
        await asyncio.sleep(0)
        received.set()

    poller = PollingController(AlternatingFetcher())
    await poller.start(20, on_update, lambda e: None)
    await asyncio.wait_for(received.wait(), timeout=1.0)
    await poller.stop()


async def test_callback_exception_does_not_stop_polling():
    updates = []

    def on_update(status: CaptureStatus) -> None:
        updates.append(status)
        raise RuntimeError("ui blew up")

    poller = PollingController(AlternatingFetcher())
    await poller.start(30, on_update, lambda e: None)
    await asyncio.sleep(0.4)
    assert poller.running
    await poller.stop()
    assert len(updates) >= 2


async def test_callback_may_stop_the_poller():
    errors = []
    poller = PollingController(AlternatingFetcher())

    async def on_error(exc: Exception) -> None:
        errors.append(exc)
        await poller.stop()

    await poller.start(30, lambda s: None, on_error)
    await asyncio.sleep(0.4)
    assert not poller.running
    assert len(errors) == 1


async def test_start_twice_is_ignored():
    fetcher = AlternatingFetcher()
    poller = PollingController(fetcher)
    await poller.start(100, lambda s: None, lambda e: None)
    await poller.start(10, lambda s: None, lambda e: None)
    assert poller.interval_ms == 100
    await poller.stop()


async def test_restart_after_stop():
    updates = []
    poller = PollingController(AlternatingFetcher())
    await poller.start(30, updates.append, lambda e: None)
    await poller.stop()
    await poller.start(30, updates.append, lambda e: None)
    await asyncio.sleep(0.2)
    await poller.stop()
    assert updates


@pytest.mark.parametrize("interval", [0, -5])
async def test_invalid_interval(interval):
    with pytest.raises(ValueError):
        await PollingController(AlternatingFetcher()).start(interval, print, print)
