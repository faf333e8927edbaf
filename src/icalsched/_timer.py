from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Timer(Protocol):
    """One-shot timer primitive a schedule re-arms against."""

    def now(self) -> datetime: ...

    def register(self, at: datetime, callback: Callable[[], Any]) -> TimerHandle: ...

    def cancel(self, handle: TimerHandle) -> None: ...


class AsyncioTimer:
    """`Timer` backed by an asyncio event loop.

    Instants are wall-clock; they are turned into a delay against `now()`
    at registration time and handed to ``loop.call_later``.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> datetime:
        return datetime.now(UTC)

    def register(self, at: datetime, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        delay = max((at - self.now()).total_seconds(), 0.0)
        logger.debug("Timer registered for %s (in %.3fs)", at.isoformat(), delay)
        return self.loop.call_later(delay, callback)

    def cancel(self, handle: TimerHandle) -> None:
        handle.cancel()
