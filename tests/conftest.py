from __future__ import annotations

import itertools
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from icalsched import Scheduler, SchedulerConfig, Session

START = datetime(2011, 3, 6, 2, 26, 0, tzinfo=UTC)


class FakeTimerHandle:
    def __init__(self, at: datetime, callback: Callable[[], Any], seq: int) -> None:
        self.at = at
        self.callback = callback
        self.seq = seq
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeTimer:
    """Simulated clock implementing the `Timer` protocol.

    With ``revocable=False`` a cancelled registration still fires, like a
    callback the event loop had already queued before the cancellation.
    """

    def __init__(self, start: datetime = START, *, revocable: bool = True) -> None:
        self._now = start
        self._pending: list[FakeTimerHandle] = []
        self._seq = itertools.count()
        self.revocable = revocable

    def now(self) -> datetime:
        return self._now

    def register(self, at: datetime, callback: Callable[[], Any]) -> FakeTimerHandle:
        handle = FakeTimerHandle(at, callback, next(self._seq))
        self._pending.append(handle)
        return handle

    def cancel(self, handle: FakeTimerHandle) -> None:
        if self.revocable:
            handle.cancel()

    @property
    def pending(self) -> list[FakeTimerHandle]:
        return [h for h in self._pending if not h.cancelled]

    def jump(self, seconds: float) -> None:
        """Move the clock without running callbacks, like a stalled event loop."""
        self._now += timedelta(seconds=seconds)

    def advance(self, seconds: float = 0, *, to: datetime | None = None) -> int:
        """Move the clock forward, running every due callback in deadline order."""
        target = to if to is not None else self._now + timedelta(seconds=seconds)
        fired = 0
        while True:
            due = [h for h in self._pending if not h.cancelled and h.at <= target]
            if not due:
                break
            handle = min(due, key=lambda h: (h.at, h.seq))
            self._pending.remove(handle)
            self._now = max(self._now, handle.at)
            handle.callback()
            fired += 1
        self._now = max(self._now, target)
        return fired


class Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def handler(self, event: str) -> Callable[..., None]:
        def record(*args: Any) -> None:
            self.calls.append((event, args))

        return record

    def events(self) -> list[str]:
        return [event for event, _ in self.calls]


@pytest.fixture
def timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def session(recorder: Recorder) -> Session:
    s = Session("test")
    for event in ("tick", "tock", "clock"):
        s.on(event)(recorder.handler(event))
    return s


@pytest.fixture
def scheduler(timer: FakeTimer) -> Scheduler:
    return Scheduler(timer, SchedulerConfig())
