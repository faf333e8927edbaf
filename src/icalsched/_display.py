from __future__ import annotations

from datetime import UTC, datetime, timedelta

from ._rule import RuleData, Weekday

_BY_PARTS = (
    "bymonth",
    "byweekno",
    "byyearday",
    "bymonthday",
    "byday",
    "byhour",
    "byminute",
    "bysecond",
    "bysetpos",
)


def format_instant(dt: datetime) -> str:
    if dt.utcoffset() == timedelta(0) and not dt.microsecond:
        return dt.astimezone(UTC).strftime("%Y%m%dT%H%M%SZ")
    return dt.isoformat()


def display(rule: RuleData, *, with_dtstart: bool = True) -> str:
    """Render a rule as RRULE text that `parse` accepts back."""
    parts = [f"FREQ={rule.freq}"]
    if with_dtstart:
        parts.append(f"DTSTART={format_instant(rule.dtstart)}")
    if rule.interval != 1:
        parts.append(f"INTERVAL={rule.interval}")
    if rule.count is not None:
        parts.append(f"COUNT={rule.count}")
    if rule.until is not None:
        parts.append(f"UNTIL={format_instant(rule.until)}")
    if rule.dtend is not None:
        parts.append(f"DTEND={format_instant(rule.dtend)}")
    if rule.wkst != Weekday.MO:
        parts.append(f"WKST={rule.wkst}")

    for name in _BY_PARTS:
        values = getattr(rule, name)
        if values:
            parts.append(f"{name.upper()}=" + ",".join(str(v) for v in values))

    return ";".join(parts)
