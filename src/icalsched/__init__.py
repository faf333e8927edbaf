"""Schedule events on an asyncio loop using rfc2445 (iCalendar RECUR) recurrences."""

from __future__ import annotations

from ._config import SchedulerConfig, configure_logging
from ._error import SchedulingError, Span, ValidationError
from ._expand import OccurrenceSequence
from ._handle import HandleState, ScheduleHandle
from ._parser import RecurrenceSpec
from ._recurrence import RecurrenceRule, parse, try_parse, validate
from ._registry import Consumer, ScheduleRegistry, Session
from ._rule import Frequency, RuleData, Weekday, WeekdayNum
from ._scheduler import Scheduler
from ._timer import AsyncioTimer, Timer, TimerHandle

__version__ = "0.1.0"

__all__ = [
    "AsyncioTimer",
    "Consumer",
    "Frequency",
    "HandleState",
    "OccurrenceSequence",
    "RecurrenceRule",
    "RecurrenceSpec",
    "RuleData",
    "ScheduleHandle",
    "ScheduleRegistry",
    "Scheduler",
    "SchedulerConfig",
    "SchedulingError",
    "Session",
    "Span",
    "Timer",
    "TimerHandle",
    "ValidationError",
    "Weekday",
    "WeekdayNum",
    "configure_logging",
    "parse",
    "try_parse",
    "validate",
]
