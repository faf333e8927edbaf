"""Recurrence expansion: ordering, bounds, calendar edge cases and iterator behavior."""

from __future__ import annotations

import itertools
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from icalsched import OccurrenceSequence, parse


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=UTC)


def take(spec: dict | str, n: int, not_before: datetime | None = None) -> list[datetime]:
    return list(itertools.islice(parse(spec).sequence(not_before), n))


# =============================================================================
# Ordering and bounds
# =============================================================================


class TestOrderingAndBounds:
    @pytest.mark.parametrize(
        "spec",
        [
            {"freq": "secondly", "interval": 7},
            {"freq": "minutely", "byhour": "9,10", "bysecond": "0,30"},
            {"freq": "hourly", "interval": 5, "byday": "MO,FR"},
            {"freq": "daily", "byhour": "9,17", "byminute": "0,30"},
            {"freq": "weekly", "byday": "MO,WE,FR"},
            {"freq": "monthly", "bymonthday": "1,-1"},
            {"freq": "yearly", "byyearday": "1,100,-1"},
        ],
    )
    def test_strictly_increasing_and_after_dtstart(self, spec: dict) -> None:
        dtstart = utc(2011, 3, 6, 2, 26, 0)
        occurrences = take({**spec, "dtstart": dtstart}, 50)
        assert len(occurrences) == 50
        assert all(dt >= dtstart for dt in occurrences)
        assert all(a < b for a, b in itertools.pairwise(occurrences))

    def test_count_then_permanent_exhaustion(self) -> None:
        seq = parse({"freq": "daily", "count": 3, "dtstart": utc(2011, 1, 1)}).sequence()
        assert [seq.next(), seq.next(), seq.next()] == [utc(2011, 1, 1), utc(2011, 1, 2), utc(2011, 1, 3)]
        assert seq.next() is None
        assert seq.exhausted
        assert seq.next() is None

    def test_until_is_inclusive(self) -> None:
        rule = parse({"freq": "daily", "dtstart": utc(2011, 1, 1), "until": utc(2011, 1, 4)})
        assert list(rule.sequence()) == [utc(2011, 1, d) for d in range(1, 5)]

    def test_first_candidate_past_until_exhausts(self) -> None:
        rule = parse({"freq": "daily", "dtstart": utc(2011, 1, 1), "until": utc(2011, 1, 3, 12)})
        seq = rule.sequence()
        assert list(seq) == [utc(2011, 1, 1), utc(2011, 1, 2), utc(2011, 1, 3)]
        assert seq.next() is None

    def test_dtend_is_exclusive(self) -> None:
        rule = parse({"freq": "daily", "dtstart": utc(2011, 1, 1), "dtend": utc(2011, 1, 4)})
        assert list(rule.sequence()) == [utc(2011, 1, 1), utc(2011, 1, 2), utc(2011, 1, 3)]

    def test_count_consumed_before_not_before(self) -> None:
        rule = parse({"freq": "daily", "count": 5, "dtstart": utc(2011, 1, 1)})
        assert list(rule.sequence(not_before=utc(2011, 1, 4))) == [utc(2011, 1, 4), utc(2011, 1, 5)]

    def test_not_before_is_inclusive(self) -> None:
        rule = parse({"freq": "hourly", "dtstart": utc(2011, 1, 1)})
        assert rule.sequence(not_before=utc(2011, 1, 1, 5)).next() == utc(2011, 1, 1, 5)

    def test_fast_forward_matches_full_scan(self) -> None:
        spec = {"freq": "minutely", "interval": 7, "dtstart": utc(2011, 1, 1, 0, 3)}
        not_before = utc(2011, 1, 9, 13, 0)
        full = [dt for dt in take(spec, 5000) if dt >= not_before][:5]
        assert take(spec, 5, not_before) == full

    def test_sequence_is_restartable_by_reconstruction(self) -> None:
        rule = parse({"freq": "weekly", "count": 4, "dtstart": utc(2011, 1, 3)})
        first = list(rule.sequence())
        assert list(OccurrenceSequence.from_rule(rule)) == first
        assert len(first) == 4

    def test_subsecond_dtstart_is_first_occurrence(self) -> None:
        dtstart = utc(2011, 1, 1, 9) + timedelta(microseconds=500_000)
        assert take({"freq": "daily", "dtstart": dtstart}, 2) == [dtstart, dtstart + timedelta(days=1)]

    def test_sub_daily_skip_past_last_year_exhausts(self) -> None:
        # 2011-03-05 is a Saturday; the aligned jump to Monday overflows datetime
        rule = parse({"freq": "hourly", "interval": 10**8, "byday": "MO", "dtstart": utc(2011, 3, 5)})
        assert rule.sequence().next() is None

    def test_impossible_rule_is_exhausted(self) -> None:
        rule = parse({"freq": "yearly", "bymonth": 2, "bymonthday": 30, "dtstart": utc(2011, 1, 1)})
        assert rule.sequence().next() is None


# =============================================================================
# Calendar irregularities
# =============================================================================


class TestCalendar:
    def test_monthly_on_31st_skips_short_months(self) -> None:
        occurrences = take({"freq": "monthly", "dtstart": utc(2011, 1, 31)}, 4)
        assert occurrences == [utc(2011, 1, 31), utc(2011, 3, 31), utc(2011, 5, 31), utc(2011, 7, 31)]

    def test_last_day_of_month_with_negative_monthday(self) -> None:
        occurrences = take({"freq": "monthly", "bymonthday": -1, "dtstart": utc(2011, 1, 31)}, 3)
        assert occurrences == [utc(2011, 1, 31), utc(2011, 2, 28), utc(2011, 3, 31)]

    def test_yearly_leap_day(self) -> None:
        occurrences = take({"freq": "yearly", "dtstart": utc(2012, 2, 29)}, 3)
        assert occurrences == [utc(2012, 2, 29), utc(2016, 2, 29), utc(2020, 2, 29)]

    def test_yearly_defaults_to_dtstart_month_and_day(self) -> None:
        occurrences = take({"freq": "yearly", "interval": 2, "dtstart": utc(2011, 3, 6, 2, 26)}, 3)
        assert occurrences == [utc(2011, 3, 6, 2, 26), utc(2013, 3, 6, 2, 26), utc(2015, 3, 6, 2, 26)]

    def test_weekly_byday(self) -> None:
        # 2011-03-09 is a Wednesday; Monday of that week precedes dtstart
        occurrences = take({"freq": "weekly", "byday": "MO,WE,FR", "dtstart": utc(2011, 3, 9, 9)}, 4)
        assert occurrences == [utc(2011, 3, 9, 9), utc(2011, 3, 11, 9), utc(2011, 3, 14, 9), utc(2011, 3, 16, 9)]

    def test_weekly_interval_respects_wkst(self) -> None:
        # rfc2445 example: every other week on TU,SU with WKST=MO vs WKST=SU
        start = utc(1997, 8, 5, 9)
        mo = take({"freq": "weekly", "interval": 2, "count": 4, "byday": "TU,SU", "dtstart": start}, 4)
        su = take(
            {"freq": "weekly", "interval": 2, "count": 4, "byday": "TU,SU", "wkst": "SU", "dtstart": start}, 4
        )
        assert [dt.day for dt in mo] == [5, 10, 19, 24]
        assert [dt.day for dt in su] == [5, 17, 19, 31]

    def test_monthly_last_friday(self) -> None:
        occurrences = take({"freq": "monthly", "byday": "-1FR", "dtstart": utc(2011, 1, 1, 17)}, 3)
        assert occurrences == [utc(2011, 1, 28, 17), utc(2011, 2, 25, 17), utc(2011, 3, 25, 17)]

    def test_monthly_first_monday(self) -> None:
        occurrences = take({"freq": "monthly", "byday": "1MO", "dtstart": utc(2011, 1, 1)}, 3)
        assert occurrences == [utc(2011, 1, 3), utc(2011, 2, 7), utc(2011, 3, 7)]

    def test_bysetpos_last_weekday_of_month(self) -> None:
        occurrences = take(
            {"freq": "monthly", "byday": "MO,TU,WE,TH,FR", "bysetpos": -1, "dtstart": utc(2011, 4, 1)}, 3
        )
        # 2011-04-30 is a Saturday
        assert occurrences == [utc(2011, 4, 29), utc(2011, 5, 31), utc(2011, 6, 30)]

    def test_yearly_byweekno(self) -> None:
        # ISO week 20 of 1997 starts on Monday 1997-05-12
        occurrences = take({"freq": "yearly", "byweekno": 20, "byday": "MO", "dtstart": utc(1997, 5, 12, 9)}, 3)
        assert occurrences == [utc(1997, 5, 12, 9), utc(1998, 5, 11, 9), utc(1999, 5, 17, 9)]

    def test_yearly_byyearday(self) -> None:
        occurrences = take({"freq": "yearly", "byyearday": "1,-1", "dtstart": utc(2011, 1, 1)}, 4)
        assert occurrences == [utc(2011, 1, 1), utc(2011, 12, 31), utc(2012, 1, 1), utc(2012, 12, 31)]

    def test_yearly_ordinal_weekday_of_year(self) -> None:
        # The 20th Monday of 1997
        assert take({"freq": "yearly", "byday": "20MO", "dtstart": utc(1997, 1, 1, 9)}, 1) == [utc(1997, 5, 19, 9)]

    def test_hourly_skips_filtered_days(self) -> None:
        # 2011-03-05 is a Saturday; next matching hours fall on Monday
        occurrences = take({"freq": "hourly", "interval": 6, "byday": "MO", "dtstart": utc(2011, 3, 5)}, 4)
        assert occurrences == [utc(2011, 3, 7, h) for h in (0, 6, 12, 18)]

    def test_minutely_byhour_window(self) -> None:
        occurrences = take({"freq": "minutely", "interval": 20, "byhour": 9, "dtstart": utc(2011, 1, 1)}, 4)
        assert occurrences == [
            utc(2011, 1, 1, 9, 0),
            utc(2011, 1, 1, 9, 20),
            utc(2011, 1, 1, 9, 40),
            utc(2011, 1, 2, 9, 0),
        ]

    def test_daily_across_spring_forward(self) -> None:
        tz = ZoneInfo("America/New_York")
        occurrences = take({"freq": "daily", "dtstart": datetime(2011, 3, 12, 2, 30, tzinfo=tz)}, 3)
        # 02:30 does not exist on 2011-03-13 and is pushed past the gap
        assert [dt.astimezone(UTC) for dt in occurrences] == [
            utc(2011, 3, 12, 7, 30),
            utc(2011, 3, 13, 7, 30),
            utc(2011, 3, 14, 6, 30),
        ]

    def test_hourly_across_spring_forward_has_no_duplicates(self) -> None:
        tz = ZoneInfo("America/New_York")
        occurrences = take({"freq": "hourly", "dtstart": datetime(2011, 3, 13, 0, 0, tzinfo=tz)}, 4)
        assert all(a < b for a, b in itertools.pairwise(occurrences))
        assert [dt.astimezone(UTC).hour for dt in occurrences] == [5, 6, 7, 8]


# =============================================================================
# Iterator functions
# =============================================================================


class TestIterators:
    def test_occurrences_is_lazy(self) -> None:
        rule = parse({"freq": "secondly", "dtstart": utc(2011, 1, 1)})
        first = list(itertools.islice(rule.occurrences(), 1))
        assert first == [utc(2011, 1, 1)]

    def test_occurrences_strictly_after(self) -> None:
        rule = parse({"freq": "daily", "dtstart": utc(2011, 1, 1)})
        assert next(rule.occurrences(utc(2011, 1, 2))) == utc(2011, 1, 3)

    def test_between_bounds(self) -> None:
        rule = parse({"freq": "daily", "dtstart": utc(2011, 1, 1)})
        assert list(rule.between(utc(2011, 1, 2), utc(2011, 1, 4))) == [utc(2011, 1, 3), utc(2011, 1, 4)]

    def test_next_from_and_next_n_from(self) -> None:
        rule = parse({"freq": "monthly", "count": 2, "dtstart": utc(2011, 1, 15)})
        assert rule.next_from(utc(2011, 1, 20)) == utc(2011, 2, 15)
        assert rule.next_n_from(utc(2011, 1, 1), 5) == [utc(2011, 1, 15), utc(2011, 2, 15)]
        assert rule.next_from(utc(2011, 2, 15)) is None

    def test_naive_arguments_use_dtstart_zone(self) -> None:
        rule = parse({"freq": "daily", "dtstart": utc(2011, 1, 1)})
        assert rule.next_from(datetime(2011, 1, 1, 12)) == utc(2011, 1, 2)

    def test_sequence_iterator_protocol(self) -> None:
        seq = parse({"freq": "daily", "count": 1, "dtstart": utc(2011, 1, 1)}).sequence()
        assert iter(seq) is seq
        assert next(seq) == utc(2011, 1, 1)
        with pytest.raises(StopIteration):
            next(seq)

    def test_last_and_counted(self) -> None:
        rule = parse({"freq": "daily", "dtstart": utc(2011, 1, 1)})
        seq = rule.sequence(not_before=utc(2011, 1, 3) - timedelta(hours=1))
        assert seq.next() == utc(2011, 1, 3)
        assert seq.last == utc(2011, 1, 3)
        assert seq.counted == 3
