from __future__ import annotations

import logging
from typing import Any

from ._config import SchedulerConfig
from ._error import SchedulingError, ValidationError
from ._handle import ScheduleHandle
from ._parser import RecurrenceSpec
from ._recurrence import RecurrenceRule
from ._registry import Consumer, ScheduleRegistry
from ._timer import AsyncioTimer, Timer

logger = logging.getLogger(__name__)


class Scheduler:
    """Schedule consumer events using rfc2445 recurrences.

    Every operation names its consumer explicitly; the consumer's schedules
    live in a `ScheduleRegistry` kept in its heap.

    Example:
        scheduler = Scheduler()
        session = Session("clock")

        @session.on("tick")
        def tick(label):
            print("tick", label)

        scheduler.add_schedule(session, "tick", "tick", {"freq": "secondly", "count": 3}, "A")
    """

    def __init__(self, timer: Timer | None = None, config: SchedulerConfig | None = None) -> None:
        self.timer: Timer = timer if timer is not None else AsyncioTimer()
        self.config = config if config is not None else SchedulerConfig()

    # --- Validation ---

    def verify(self, spec: RecurrenceSpec) -> RecurrenceRule:
        """Strict check: returns the compiled rule or raises `ValidationError`."""
        return RecurrenceRule.parse(spec, now=self.timer.now())

    def is_valid(self, spec: RecurrenceSpec) -> bool:
        return RecurrenceRule.try_parse(spec, now=self.timer.now())[0]

    def try_verify(self, spec: RecurrenceSpec) -> tuple[bool, RecurrenceRule | ValidationError]:
        """Returns ``(True, rule)`` or ``(False, error)``."""
        return RecurrenceRule.try_parse(spec, now=self.timer.now())

    # --- Schedules ---

    def add_schedule(
        self,
        consumer: Consumer,
        name: str,
        event: str,
        spec: RecurrenceSpec | RecurrenceRule,
        *args: Any,
    ) -> ScheduleHandle:
        """Schedule `event` with `args` on `consumer` under the schedule name `name`.

        A missing DTSTART defaults to the timer's current time. An invalid
        `spec` raises `ValidationError` and leaves the consumer untouched.
        """
        now = self.timer.now().replace(microsecond=0)
        rule = spec if isinstance(spec, RecurrenceRule) else RecurrenceRule.parse(spec, now=now)

        registry = ScheduleRegistry.of(consumer, self.config.key_prefix)
        if name in registry and not self.config.replace_existing:
            raise SchedulingError.duplicate(name)

        handle = ScheduleHandle.create(
            name, event, rule, args, consumer, self.timer, coalesce=self.config.coalesce, not_before=now
        )
        if not handle.active:
            logger.info("Schedule %r has no future occurrence; not registered", name)
            previous = registry.pop(name)
            if previous is not None:
                previous.cancel()
                logger.info("Schedule %r replaced", name)
            return handle

        registry.put(name, handle)
        logger.info("Schedule %r added: event %r, %s", name, event, rule)
        return handle

    def add(self, consumer: Consumer, event: str, spec: RecurrenceSpec | RecurrenceRule, *args: Any) -> ScheduleHandle:
        """`add_schedule` with the schedule named after the event."""
        return self.add_schedule(consumer, event, event, spec, *args)

    def remove(self, consumer: Consumer, name: str) -> bool:
        """Cancel the schedule `name`. Returns False if there was no live schedule by that name."""
        registry = ScheduleRegistry.find(consumer, self.config.key_prefix)
        handle = registry.pop(name) if registry is not None else None
        if handle is None:
            return False
        cancelled = handle.cancel()
        logger.info("Schedule %r removed", name)
        return cancelled

    def remove_all(self, consumer: Consumer) -> int:
        registry = ScheduleRegistry.find(consumer, self.config.key_prefix)
        if registry is None:
            return 0
        count = registry.clear()
        logger.info("Removed %d schedules", count)
        return count

    def get(self, consumer: Consumer, name: str) -> ScheduleHandle | None:
        registry = ScheduleRegistry.find(consumer, self.config.key_prefix)
        return registry.get(name) if registry is not None else None

    def schedules(self, consumer: Consumer) -> list[str]:
        registry = ScheduleRegistry.find(consumer, self.config.key_prefix)
        return registry.names() if registry is not None else []
