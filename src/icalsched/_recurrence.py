from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime

from ._display import display
from ._error import ValidationError
from ._expand import OccurrenceSequence
from ._expand import between as _between
from ._expand import next_from as _next_from
from ._expand import next_n_from as _next_n_from
from ._expand import occurrences as _occurrences
from ._parser import RecurrenceSpec
from ._parser import parse as _parse
from ._rule import Frequency, RuleData


class RecurrenceRule:
    """A validated, immutable rfc2445 recurrence anchored at a start instant."""

    __slots__ = ("_data",)

    _data: RuleData

    def __init__(self, data: RuleData) -> None:
        self._data = data

    @classmethod
    def parse(cls, spec: RecurrenceSpec, *, now: datetime | None = None) -> RecurrenceRule:
        return cls(_parse(spec, now=now))

    @classmethod
    def try_parse(
        cls, spec: RecurrenceSpec, *, now: datetime | None = None
    ) -> tuple[bool, RecurrenceRule | ValidationError]:
        try:
            return True, cls.parse(spec, now=now)
        except ValidationError as e:
            return False, e

    @classmethod
    def validate(cls, spec: RecurrenceSpec) -> bool:
        try:
            _parse(spec)
            return True
        except ValidationError:
            return False

    def sequence(self, not_before: datetime | None = None) -> OccurrenceSequence:
        return OccurrenceSequence(self._data, not_before)

    def next_from(self, now: datetime) -> datetime | None:
        return _next_from(self._data, now)

    def next_n_from(self, now: datetime, n: int) -> list[datetime]:
        return _next_n_from(self._data, now, n)

    def occurrences(self, after: datetime | None = None) -> Iterator[datetime]:
        """Returns a lazy iterator of occurrences strictly after `after` (from DTSTART if omitted).

        The iterator is unbounded unless the rule carries COUNT, UNTIL or DTEND.
        """
        return _occurrences(self._data, after)

    def between(self, from_: datetime, to: datetime) -> Iterator[datetime]:
        """Returns a bounded iterator of occurrences where `from_ < occurrence <= to`."""
        return _between(self._data, from_, to)

    @property
    def data(self) -> RuleData:
        return self._data

    @property
    def freq(self) -> Frequency:
        return self._data.freq

    @property
    def interval(self) -> int:
        return self._data.interval

    @property
    def dtstart(self) -> datetime:
        return self._data.dtstart

    @property
    def count(self) -> int | None:
        return self._data.count

    @property
    def until(self) -> datetime | None:
        return self._data.until

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RecurrenceRule):
            return NotImplemented
        return self._data == other._data

    def __hash__(self) -> int:
        return hash(self._data)

    def __str__(self) -> str:
        return display(self._data)

    def __repr__(self) -> str:
        return f"RecurrenceRule({display(self._data)!r})"


def parse(spec: RecurrenceSpec, *, now: datetime | None = None) -> RecurrenceRule:
    """Strict parse: returns the rule or raises `ValidationError`."""
    return RecurrenceRule.parse(spec, now=now)


def try_parse(
    spec: RecurrenceSpec, *, now: datetime | None = None
) -> tuple[bool, RecurrenceRule | ValidationError]:
    return RecurrenceRule.try_parse(spec, now=now)


def validate(spec: RecurrenceSpec) -> bool:
    return RecurrenceRule.validate(spec)
