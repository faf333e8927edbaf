from __future__ import annotations

import logging
import weakref
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from ._expand import OccurrenceSequence
from ._recurrence import RecurrenceRule
from ._timer import Timer, TimerHandle

if TYPE_CHECKING:
    from ._registry import Consumer, ScheduleRegistry

logger = logging.getLogger(__name__)


class HandleState(Enum):
    ARMED = "armed"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


class ScheduleHandle:
    """A live schedule: one recurrence, one outstanding timer, one target event.

    Each time the timer fires the event is dispatched to the consumer and the
    timer is re-armed for the following occurrence. The handle ends either
    EXHAUSTED, when the recurrence has nothing left, or CANCELLED. Both states
    are terminal.

    The consumer and the owning registry are held through weak references, so
    the registry can own the handle without forming a cycle.
    """

    def __init__(
        self,
        name: str,
        event: str,
        rule: RecurrenceRule,
        args: tuple[Any, ...],
        consumer: Consumer,
        timer: Timer,
        *,
        coalesce: bool = True,
        not_before: datetime | None = None,
    ) -> None:
        self.name = name
        self.event = event
        self.rule = rule
        self.args = args
        self._consumer = weakref.ref(consumer)
        self._registry: weakref.ref[ScheduleRegistry] | None = None
        self._timer = timer
        self._coalesce = coalesce
        self._sequence = OccurrenceSequence.from_rule(
            rule, not_before=not_before if not_before is not None else timer.now()
        )
        self._timer_handle: TimerHandle | None = None
        self._next_fire: datetime | None = None
        self._fired = 0
        self._state = HandleState.ARMED

    @classmethod
    def create(
        cls,
        name: str,
        event: str,
        rule: RecurrenceRule,
        args: tuple[Any, ...],
        consumer: Consumer,
        timer: Timer,
        *,
        coalesce: bool = True,
        not_before: datetime | None = None,
    ) -> ScheduleHandle:
        """Build a handle and arm it for its first occurrence at or after `not_before` (default: now).

        A recurrence with nothing left leaves the handle EXHAUSTED.
        """
        handle = cls(name, event, rule, args, consumer, timer, coalesce=coalesce, not_before=not_before)
        handle._arm(skip_missed=False)
        return handle

    @property
    def state(self) -> HandleState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state is HandleState.ARMED

    @property
    def next_fire(self) -> datetime | None:
        """Instant the outstanding timer is armed for."""
        return self._next_fire

    @property
    def fired(self) -> int:
        return self._fired

    def bind(self, registry: ScheduleRegistry) -> None:
        self._registry = weakref.ref(registry)

    def cancel(self) -> bool:
        """Cancel the outstanding timer. Returns False if the handle was already finished."""
        if self._state is not HandleState.ARMED:
            return False
        self._state = HandleState.CANCELLED
        self._next_fire = None
        if self._timer_handle is not None:
            self._timer.cancel(self._timer_handle)
            self._timer_handle = None
        logger.debug("Schedule %r cancelled after %d dispatches", self.name, self._fired)
        return True

    def _arm(self, *, skip_missed: bool) -> None:
        nxt = self._sequence.next()
        if skip_missed and nxt is not None:
            now = self._timer.now()
            skipped = 0
            while nxt is not None and nxt < now:
                skipped += 1
                nxt = self._sequence.next()
            if skipped:
                logger.warning("Schedule %r skipped %d missed occurrences", self.name, skipped)

        if nxt is None:
            self._exhaust()
            return

        self._next_fire = nxt
        self._timer_handle = self._timer.register(nxt, self._fire)
        logger.debug("Schedule %r armed for %s", self.name, nxt.isoformat())

    def _exhaust(self) -> None:
        self._state = HandleState.EXHAUSTED
        self._next_fire = None
        self._timer_handle = None
        logger.debug("Schedule %r exhausted after %d dispatches", self.name, self._fired)
        registry = self._registry() if self._registry is not None else None
        if registry is not None:
            registry.discard(self.name, self)

    def _fire(self) -> None:
        # The loop may run a callback that was already queued when cancel() ran
        if self._state is not HandleState.ARMED:
            return
        self._timer_handle = None

        consumer = self._consumer()
        if consumer is None:
            logger.debug("Schedule %r dropped: its consumer no longer exists", self.name)
            self._state = HandleState.CANCELLED
            self._next_fire = None
            return

        self._fired += 1
        try:
            consumer.dispatch(self.event, *self.args)
        except Exception:
            logger.exception("Schedule %r: dispatch of event %r failed", self.name, self.event)

        # The handler may have removed its own schedule
        if self._state is HandleState.ARMED:
            self._arm(skip_missed=self._coalesce)

    def __repr__(self) -> str:
        return f"ScheduleHandle(name={self.name!r}, event={self.event!r}, state={self._state})"
