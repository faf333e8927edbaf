from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Frequency(Enum):
    SECONDLY = "secondly"
    MINUTELY = "minutely"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @property
    def rank(self) -> int:
        """Granularity rank: SECONDLY=0 ... YEARLY=6."""
        return _FREQ_RANK[self]

    @property
    def is_sub_daily(self) -> bool:
        return self.rank < _FREQ_RANK[Frequency.DAILY]

    @classmethod
    def try_parse(cls, s: str) -> Frequency | None:
        return _FREQ_PARSE.get(s.strip().lower())

    def __str__(self) -> str:
        return self.value.upper()


_FREQ_RANK = {f: i for i, f in enumerate(Frequency)}
_FREQ_PARSE = {f.value: f for f in Frequency}


class Weekday(Enum):
    MO = "MO"
    TU = "TU"
    WE = "WE"
    TH = "TH"
    FR = "FR"
    SA = "SA"
    SU = "SU"

    @property
    def number(self) -> int:
        """ISO 8601 day number: Monday=1, Sunday=7."""
        return _WEEKDAY_NUMBERS[self]

    @classmethod
    def from_number(cls, n: int) -> Weekday | None:
        return _NUMBER_TO_WEEKDAY.get(n)

    @classmethod
    def try_parse(cls, s: str) -> Weekday | None:
        return _WEEKDAY_PARSE.get(s.strip().lower())

    def __str__(self) -> str:
        return self.value


_WEEKDAY_NUMBERS = {wd: i for i, wd in enumerate(Weekday, start=1)}

_NUMBER_TO_WEEKDAY = {v: k for k, v in _WEEKDAY_NUMBERS.items()}

_WEEKDAY_PARSE: dict[str, Weekday] = {
    "mo": Weekday.MO,
    "mon": Weekday.MO,
    "monday": Weekday.MO,
    "tu": Weekday.TU,
    "tue": Weekday.TU,
    "tuesday": Weekday.TU,
    "we": Weekday.WE,
    "wed": Weekday.WE,
    "wednesday": Weekday.WE,
    "th": Weekday.TH,
    "thu": Weekday.TH,
    "thursday": Weekday.TH,
    "fr": Weekday.FR,
    "fri": Weekday.FR,
    "friday": Weekday.FR,
    "sa": Weekday.SA,
    "sat": Weekday.SA,
    "saturday": Weekday.SA,
    "su": Weekday.SU,
    "sun": Weekday.SU,
    "sunday": Weekday.SU,
}


@dataclass(frozen=True, slots=True)
class WeekdayNum:
    """A BYDAY entry: a weekday with an optional ordinal (``-1FR`` is the last Friday)."""

    weekday: Weekday
    n: int | None = None

    def __str__(self) -> str:
        return f"{self.n}{self.weekday}" if self.n else str(self.weekday)


@dataclass(frozen=True, slots=True)
class RuleData:
    freq: Frequency
    dtstart: datetime
    interval: int = 1
    count: int | None = None
    until: datetime | None = None
    dtend: datetime | None = None
    wkst: Weekday = Weekday.MO
    bysecond: tuple[int, ...] = ()
    byminute: tuple[int, ...] = ()
    byhour: tuple[int, ...] = ()
    byday: tuple[WeekdayNum, ...] = ()
    bymonthday: tuple[int, ...] = ()
    byyearday: tuple[int, ...] = ()
    byweekno: tuple[int, ...] = ()
    bymonth: tuple[int, ...] = ()
    bysetpos: tuple[int, ...] = ()

    @property
    def is_bounded(self) -> bool:
        return self.count is not None or self.until is not None or self.dtend is not None
