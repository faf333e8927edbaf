from __future__ import annotations

import calendar
import itertools
from collections.abc import Iterator
from datetime import MAXYEAR, date, datetime, time, timedelta, tzinfo
from typing import TYPE_CHECKING

from ._rule import Frequency, RuleData, Weekday

if TYPE_CHECKING:
    from ._recurrence import RecurrenceRule

# =============================================================================
# Expansion model
# =============================================================================
# The rule is expanded one period at a time. A period is one unit of the
# frequency (a year, a month, a week starting on WKST, a day, an hour, ...)
# and periods are INTERVAL units apart, counted from the period holding
# DTSTART. Inside a period the candidate set is:
#
#   days of the period that pass every BYxxx day constraint
#   x  times built from BYHOUR x BYMINUTE x BYSECOND
#   -> optionally narrowed by BYSETPOS
#
# Time units coarser than the frequency default to DTSTART's value; units as
# fine as the frequency come from the period cursor and are only filtered.
#
# Invalid dates are skipped, never clipped: a monthly rule anchored on the
# 31st fires only in months that have a 31st, and a yearly rule on Feb 29
# fires only in leap years.
# =============================================================================

# =============================================================================
# Wall clock and DST
# =============================================================================
# Candidates are built as wall-clock times in DTSTART's zone and resolved
# to instants with fold=0 (first occurrence in a fall-back fold); wall times
# inside a spring-forward gap are pushed past the gap. Ordering and bounds
# are checked on the resolved instants, and a candidate that is not strictly
# after the previously emitted one is dropped.
# =============================================================================

# =============================================================================
# Termination
# =============================================================================
# A rule whose constraints can never be met (BYMONTH=2;BYMONTHDAY=30) would
# scan forever. Once 400 * INTERVAL years (one Gregorian cycle per step)
# pass without a single candidate, or the cursor reaches MAXYEAR, the rule
# is treated as exhausted.
# =============================================================================

_MAX_EMPTY_YEARS = 400

_SUB_DAILY_STEP = {
    Frequency.HOURLY: timedelta(hours=1),
    Frequency.MINUTELY: timedelta(minutes=1),
    Frequency.SECONDLY: timedelta(seconds=1),
}


# --- Calendar helpers ---


def _resolve(naive: datetime, tz: tzinfo) -> datetime:
    aware = naive.replace(tzinfo=tz, fold=0)
    # Round-trip through a timestamp to move gap times forward
    return datetime.fromtimestamp(aware.timestamp(), tz=tz)


def _wall(dt: datetime, tz: tzinfo) -> datetime:
    return dt.astimezone(tz).replace(tzinfo=None)


def _days_in_year(year: int) -> int:
    return 366 if calendar.isleap(year) else 365


def _days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _week_start(d: date, wkst: Weekday) -> date:
    return d - timedelta(days=(d.isoweekday() - wkst.number) % 7)


def _first_week_start(year: int, wkst: Weekday) -> date:
    """First day of week 1: the first WKST-based week with at least 4 days in `year`."""
    jan1 = date(year, 1, 1)
    offset = (jan1.isoweekday() - wkst.number) % 7
    if offset <= 3:
        return jan1 - timedelta(days=offset)
    return jan1 + timedelta(days=7 - offset)


def _week_number(d: date, wkst: Weekday) -> tuple[int, int]:
    """Week number of `d` and the number of weeks in its week-numbering year."""
    year = d.year
    start = _first_week_start(year, wkst)
    if d < start:
        year -= 1
        start = _first_week_start(year, wkst)
    else:
        following = _first_week_start(year + 1, wkst)
        if d >= following:
            year += 1
            start = following
    weeks = (_first_week_start(year + 1, wkst) - start).days // 7
    return (d - start).days // 7 + 1, weeks


def _matches_signed(value: int, total: int, allowed: frozenset[int]) -> bool:
    return value in allowed or value - total - 1 in allowed


def _time_values(values: tuple[int, ...], freq: Frequency, unit: Frequency, default: int) -> tuple[int, ...]:
    if values:
        return values
    if freq.rank > unit.rank:
        return (default,)
    return ()


# --- Per-rule expansion state ---


class _Expansion:
    def __init__(self, rule: RuleData) -> None:
        self.rule = rule
        self.freq = rule.freq
        self.tz = rule.dtstart.tzinfo
        start = _wall(rule.dtstart, self.tz)
        self.start = start

        bymonth = set(rule.bymonth)
        bymonthday = set(rule.bymonthday)
        weekdays = {d.weekday.number for d in rule.byday if d.n is None}
        if not (rule.byweekno or rule.byyearday or rule.bymonthday or rule.byday):
            if self.freq == Frequency.YEARLY:
                if not bymonth:
                    bymonth = {start.month}
                bymonthday = {start.day}
            elif self.freq == Frequency.MONTHLY:
                bymonthday = {start.day}
            elif self.freq == Frequency.WEEKLY:
                weekdays = {start.isoweekday()}

        self.bymonth = frozenset(bymonth)
        self.bymonthday = frozenset(bymonthday)
        self.byyearday = frozenset(rule.byyearday)
        self.byweekno = frozenset(rule.byweekno)
        self.weekdays = frozenset(weekdays)
        self.ordinals = frozenset((d.weekday.number, d.n) for d in rule.byday if d.n is not None)
        self.ordinals_in_month = self.freq == Frequency.MONTHLY or bool(rule.bymonth)

        self.hours = _time_values(rule.byhour, self.freq, Frequency.HOURLY, start.hour)
        self.minutes = _time_values(rule.byminute, self.freq, Frequency.MINUTELY, start.minute)
        self.seconds = _time_values(rule.bysecond, self.freq, Frequency.SECONDLY, start.second)

    # --- Periods ---

    def first_period(self, resume: datetime | None) -> datetime | None:
        start = self.start
        match self.freq:
            case Frequency.YEARLY:
                p = datetime(start.year, 1, 1)
            case Frequency.MONTHLY:
                p = datetime(start.year, start.month, 1)
            case Frequency.WEEKLY:
                p = datetime.combine(_week_start(start.date(), self.rule.wkst), time())
            case Frequency.DAILY:
                p = datetime.combine(start.date(), time())
            case Frequency.HOURLY:
                p = start.replace(minute=0, second=0, microsecond=0)
            case Frequency.MINUTELY:
                p = start.replace(second=0, microsecond=0)
            case _:
                p = start.replace(microsecond=0)

        if resume is not None:
            skip = self._periods_until(p, _wall(resume, self.tz)) - 1
            if skip > 0:
                return self.advance(p, skip)
        return p

    def _periods_until(self, p: datetime, target: datetime) -> int:
        interval = self.rule.interval
        match self.freq:
            case Frequency.YEARLY:
                return (target.year - p.year) // interval
            case Frequency.MONTHLY:
                return (target.year * 12 + target.month - (p.year * 12 + p.month)) // interval
            case Frequency.WEEKLY:
                return (target - p).days // (7 * interval)
            case Frequency.DAILY:
                return (target - p).days // interval
            case _:
                return (target - p) // (_SUB_DAILY_STEP[self.freq] * interval)

    def advance(self, p: datetime, periods: int = 1) -> datetime | None:
        n = periods * self.rule.interval
        try:
            match self.freq:
                case Frequency.YEARLY:
                    return p.replace(year=p.year + n)
                case Frequency.MONTHLY:
                    months = p.year * 12 + p.month - 1 + n
                    return datetime(months // 12, months % 12 + 1, 1)
                case Frequency.WEEKLY:
                    return p + timedelta(weeks=n)
                case Frequency.DAILY:
                    return p + timedelta(days=n)
                case _:
                    return p + _SUB_DAILY_STEP[self.freq] * n
        except (OverflowError, ValueError):
            # Past the last representable year
            return None

    def skip_to(self, p: datetime) -> datetime | None:
        """For sub-daily rules, the next aligned cursor after a failed day/hour/minute.

        Returns `p` unchanged when it needs no skip, and None past the last representable year.
        """
        if not self.day_matches(p.date()):
            boundary = datetime.combine(p.date() + timedelta(days=1), time())
        elif self.freq != Frequency.HOURLY and self.rule.byhour and p.hour not in self.rule.byhour:
            boundary = p.replace(minute=0, second=0) + timedelta(hours=1)
        elif self.freq == Frequency.SECONDLY and self.rule.byminute and p.minute not in self.rule.byminute:
            boundary = p.replace(second=0) + timedelta(minutes=1)
        else:
            return p
        step = _SUB_DAILY_STEP[self.freq] * self.rule.interval
        return self.advance(p, -(-(boundary - p) // step))

    # --- Candidates ---

    def _period_days(self, p: datetime) -> Iterator[date]:
        match self.freq:
            case Frequency.YEARLY:
                first, n = date(p.year, 1, 1), _days_in_year(p.year)
            case Frequency.MONTHLY:
                first, n = date(p.year, p.month, 1), _days_in_month(p.year, p.month)
            case Frequency.WEEKLY:
                first, n = p.date(), 7
            case _:
                first, n = p.date(), 1
        return (first + timedelta(days=i) for i in range(n))

    def day_matches(self, d: date) -> bool:
        if self.bymonth and d.month not in self.bymonth:
            return False
        if self.byweekno:
            week, weeks = _week_number(d, self.rule.wkst)
            if not _matches_signed(week, weeks, self.byweekno):
                return False
        if self.byyearday:
            if not _matches_signed(d.timetuple().tm_yday, _days_in_year(d.year), self.byyearday):
                return False
        if self.bymonthday:
            if not _matches_signed(d.day, _days_in_month(d.year, d.month), self.bymonthday):
                return False
        if self.weekdays or self.ordinals:
            dow = d.isoweekday()
            if dow not in self.weekdays and not self._ordinal_matches(d, dow):
                return False
        return True

    def _ordinal_matches(self, d: date, dow: int) -> bool:
        if not self.ordinals:
            return False
        if self.ordinals_in_month:
            index, total = d.day, _days_in_month(d.year, d.month)
        else:
            index, total = d.timetuple().tm_yday, _days_in_year(d.year)
        first_based = (index - 1) // 7 + 1
        last_based = -((total - index) // 7 + 1)
        return (dow, first_based) in self.ordinals or (dow, last_based) in self.ordinals

    def _period_times(self, p: datetime) -> list[time]:
        hours = self.hours if self.freq.rank > Frequency.HOURLY.rank else _filtered(self.hours, p.hour)
        minutes = self.minutes if self.freq.rank > Frequency.MINUTELY.rank else _filtered(self.minutes, p.minute)
        seconds = self.seconds if self.freq.rank > Frequency.SECONDLY.rank else _filtered(self.seconds, p.second)
        us = self.start.microsecond
        return [time(h, m, s, us) for h in hours for m in minutes for s in seconds]

    def candidates(self, p: datetime) -> list[datetime]:
        times = self._period_times(p)
        if not times:
            return []
        found = [datetime.combine(d, t) for d in self._period_days(p) if self.day_matches(d) for t in times]
        if not self.rule.bysetpos or not found:
            return found
        n = len(found)
        picked = {found[pos - 1 if pos > 0 else n + pos] for pos in self.rule.bysetpos if abs(pos) <= n}
        return sorted(picked)


def _filtered(values: tuple[int, ...], current: int) -> tuple[int, ...]:
    if values and current not in values:
        return ()
    return (current,)


def _expand(rule: RuleData, resume: datetime | None) -> Iterator[datetime]:
    """Yield resolved candidate instants at or after DTSTART in period order, unbounded."""
    exp = _Expansion(rule)
    p = exp.first_period(resume)
    if p is None:
        return
    horizon = _MAX_EMPTY_YEARS * rule.interval
    last_hit_year = p.year

    while p is not None and p.year < MAXYEAR:
        if p.year - last_hit_year > horizon:
            return
        if rule.freq.is_sub_daily:
            skipped = exp.skip_to(p)
            if skipped is None:
                return
            if skipped != p:
                p = skipped
                continue
        for naive in exp.candidates(p):
            candidate = _resolve(naive, exp.tz)
            if candidate < rule.dtstart:
                continue
            last_hit_year = p.year
            yield candidate
        p = exp.advance(p)


# --- Occurrence cursor ---


class OccurrenceSequence:
    """Stateful cursor over the occurrences of one rule.

    Successive `next()` calls return strictly increasing instants, each at or
    after both DTSTART and `not_before`. COUNT is counted from DTSTART, so
    occurrences earlier than `not_before` still use up the count. Once the
    sequence reports exhaustion it stays exhausted; to start over, build a new
    sequence from the same rule.
    """

    def __init__(self, rule: RuleData, not_before: datetime | None = None) -> None:
        tz = rule.dtstart.tzinfo
        if not_before is not None and not_before.tzinfo is None:
            not_before = not_before.replace(tzinfo=tz)
        self._rule = rule
        self._not_before = not_before
        # Jumping ahead would lose track of COUNT
        self._candidates = _expand(rule, not_before if rule.count is None else None)
        self._last: datetime | None = None
        self._counted = 0
        self._exhausted = False

    @classmethod
    def from_rule(cls, rule: RecurrenceRule, not_before: datetime | None = None) -> OccurrenceSequence:
        return cls(rule.data, not_before)

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    @property
    def last(self) -> datetime | None:
        """The most recently emitted instant."""
        return self._last

    @property
    def counted(self) -> int:
        return self._counted

    def next(self) -> datetime | None:
        rule = self._rule
        if self._exhausted:
            return None

        while rule.count is None or self._counted < rule.count:
            candidate = next(self._candidates, None)
            if candidate is None:
                break
            if self._last is not None and candidate <= self._last:
                continue
            if rule.until is not None and candidate > rule.until:
                break
            if rule.dtend is not None and candidate >= rule.dtend:
                break
            self._last = candidate
            self._counted += 1
            if self._not_before is not None and candidate < self._not_before:
                continue
            return candidate

        self._exhausted = True
        return None

    def __iter__(self) -> Iterator[datetime]:
        return self

    def __next__(self) -> datetime:
        nxt = self.next()
        if nxt is None:
            raise StopIteration
        return nxt


# --- Iterator functions ---


def occurrences(rule: RuleData, after: datetime | None = None) -> Iterator[datetime]:
    """Returns a lazy iterator of occurrences strictly after `after`.

    Without `after` the iteration starts at DTSTART. The iterator ends when
    the rule's COUNT, UNTIL or DTEND bound is reached.
    """
    if after is not None and after.tzinfo is None:
        after = after.replace(tzinfo=rule.dtstart.tzinfo)
    for dt in OccurrenceSequence(rule, after):
        if after is not None and dt <= after:
            continue
        yield dt


def between(rule: RuleData, from_: datetime, to: datetime) -> Iterator[datetime]:
    """Returns a bounded iterator of occurrences where `from_ < occurrence <= to`."""
    if to.tzinfo is None:
        to = to.replace(tzinfo=rule.dtstart.tzinfo)
    for dt in occurrences(rule, from_):
        if dt > to:
            return
        yield dt


def next_from(rule: RuleData, now: datetime) -> datetime | None:
    return next(occurrences(rule, now), None)


def next_n_from(rule: RuleData, now: datetime, n: int) -> list[datetime]:
    return list(itertools.islice(occurrences(rule, now), n))
