from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from datetime import UTC, date, datetime, time, tzinfo
from typing import Any

from ._error import Span, ValidationError
from ._lexer import TComma, TEquals, Token, TokenKind, TSemi, TWord, tokenize
from ._rule import Frequency, RuleData, Weekday, WeekdayNum

RecurrenceSpec = Mapping[str, Any] | str

_PARAMS = (
    "freq",
    "interval",
    "count",
    "until",
    "dtstart",
    "dtend",
    "wkst",
    "bysecond",
    "byminute",
    "byhour",
    "byday",
    "bymonthday",
    "byyearday",
    "byweekno",
    "bymonth",
    "bysetpos",
)

_ALIASES = {"frequency": "freq"}

# (low, high, allow_negative) for each integer by-constraint
_INT_RANGES: dict[str, tuple[int, int, bool]] = {
    "bysecond": (0, 59, False),
    "byminute": (0, 59, False),
    "byhour": (0, 23, False),
    "bymonthday": (1, 31, True),
    "byyearday": (1, 366, True),
    "byweekno": (1, 53, True),
    "bymonth": (1, 12, False),
    "bysetpos": (1, 366, True),
}

_BASIC_INSTANT = re.compile(r"^(\d{4})(\d{2})(\d{2})(?:T(\d{2})(\d{2})(\d{2})(Z)?)?$")
_WEEKDAY_NUM = re.compile(r"^([+-]?\d{1,2})?([A-Za-z]+)$")


# --- Textual RRULE form ---


class _Parser:
    def __init__(self, tokens: list[Token], input_text: str) -> None:
        self._tokens = tokens
        self._pos = 0
        self._input = input_text

    def peek(self) -> Token | None:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def peek_kind(self) -> TokenKind | None:
        tok = self.peek()
        return tok.kind if tok else None

    def advance(self) -> Token | None:
        tok = self.peek()
        if tok:
            self._pos += 1
        return tok

    def current_span(self) -> Span:
        tok = self.peek()
        if tok:
            return tok.span
        if self._tokens:
            last = self._tokens[-1]
            return Span(last.span.end, last.span.end)
        return Span(0, 0)

    def _error(self, message: str, span: Span) -> ValidationError:
        return ValidationError.syntax(message, span, self._input)

    def _word(self, expected: str) -> tuple[str, Span]:
        span = self.current_span()
        k = self.peek_kind()
        if isinstance(k, TWord):
            self.advance()
            return k.text, span
        raise self._error(f"expected {expected}", span)

    def parse_parts(self) -> dict[str, str]:
        if not self._tokens:
            raise self._error("empty recurrence rule", Span(0, 0))

        parts: dict[str, str] = {}
        while self.peek() is not None:
            name, name_span = self._word("rule part name")
            key = _canonical_key(name)
            if key is None:
                raise self._error(f"unknown rule part '{name}'", name_span)
            if key in parts:
                raise self._error(f"duplicate rule part '{name}'", name_span)

            if not isinstance(self.peek_kind(), TEquals):
                raise self._error(f"expected '=' after '{name}'", self.current_span())
            self.advance()

            values = [self._word(f"value for '{name}'")[0]]
            while isinstance(self.peek_kind(), TComma):
                self.advance()
                values.append(self._word(f"value for '{name}'")[0])
            parts[key] = ",".join(values)

            k = self.peek_kind()
            if isinstance(k, TSemi):
                self.advance()
            elif k is not None:
                raise self._error("expected ';' between rule parts", self.current_span())
        return parts


def _canonical_key(name: str) -> str | None:
    key = name.lower().replace("_", "").replace("-", "")
    key = _ALIASES.get(key, key)
    return key if key in _PARAMS else None


# --- Value coercion ---


def _to_int(field: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError.out_of_range(field, f"expected an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValidationError.out_of_range(field, f"expected an integer, got {value!r}")


def _items(value: Any) -> list[Any]:
    if isinstance(value, str):
        return [v for v in (p.strip() for p in value.split(",")) if v]
    if isinstance(value, Iterable):
        return list(value)
    return [value]


def _int_list(field: str, value: Any) -> tuple[int, ...]:
    low, high, allow_negative = _INT_RANGES[field]
    out: set[int] = set()
    for item in _items(value):
        n = _to_int(field, item)
        magnitude = abs(n) if allow_negative else n
        if not low <= magnitude <= high:
            bound = f"±{low}..{high}" if allow_negative else f"{low}..{high}"
            raise ValidationError.out_of_range(field, f"{n} not in {bound}")
        out.add(n)
    return tuple(sorted(out))


def _weekday(field: str, value: Any) -> Weekday:
    if isinstance(value, Weekday):
        return value
    if isinstance(value, str):
        wd = Weekday.try_parse(value)
        if wd is not None:
            return wd
    raise ValidationError.out_of_range(field, f"unknown weekday {value!r}")


def _weekday_num(value: Any) -> WeekdayNum:
    if isinstance(value, WeekdayNum):
        return value
    if isinstance(value, Weekday):
        return WeekdayNum(value)
    if isinstance(value, str):
        m = _WEEKDAY_NUM.match(value.strip())
        if m:
            wd = Weekday.try_parse(m.group(2))
            if wd is not None:
                n = int(m.group(1)) if m.group(1) else None
                if n is not None and not 1 <= abs(n) <= 53:
                    raise ValidationError.out_of_range("byday", f"ordinal {n} not in ±1..53")
                return WeekdayNum(wd, n)
    raise ValidationError.out_of_range("byday", f"unknown weekday {value!r}")


def _byday(value: Any) -> tuple[WeekdayNum, ...]:
    days = {_weekday_num(item) for item in _items(value)}
    return tuple(sorted(days, key=lambda d: (d.weekday.number, d.n or 0)))


def _instant(field: str, value: Any, default_tz: tzinfo) -> datetime:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time())
    elif isinstance(value, str):
        dt = _parse_instant_text(field, value.strip())
    else:
        raise ValidationError.malformed_instant(field, value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=default_tz)
    return dt


def _parse_instant_text(field: str, text: str) -> datetime:
    m = _BASIC_INSTANT.match(text)
    try:
        if m:
            y, mo, d, hh, mm, ss, z = m.groups()
            dt = datetime(int(y), int(mo), int(d), int(hh or 0), int(mm or 0), int(ss or 0))
            return dt.replace(tzinfo=UTC) if z else dt
        return datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError.malformed_instant(field, text) from None


def _frequency(value: Any) -> Frequency:
    if isinstance(value, Frequency):
        return value
    if isinstance(value, str):
        freq = Frequency.try_parse(value)
        if freq is not None:
            return freq
    raise ValidationError.unknown_frequency(value)


def _interval(value: Any) -> int:
    try:
        n = _to_int("interval", value)
    except ValidationError:
        raise ValidationError.invalid_interval(value) from None
    if n < 1:
        raise ValidationError.invalid_interval(value)
    return n


# --- Rule construction ---


def _normalize(spec: Mapping[str, Any]) -> dict[str, Any]:
    params: dict[str, Any] = {}
    for name, value in spec.items():
        key = _canonical_key(str(name))
        if key is None:
            raise ValidationError.syntax(f"unknown recurrence parameter '{name}'")
        if key in params:
            raise ValidationError.syntax(f"duplicate recurrence parameter '{name}'")
        params[key] = value
    return params


def _build(params: dict[str, Any], now: datetime | None) -> RuleData:
    if "freq" not in params:
        raise ValidationError.unknown_frequency(None)
    freq = _frequency(params["freq"])
    interval = _interval(params["interval"]) if params.get("interval") is not None else 1

    count = params.get("count")
    until = params.get("until")
    if count is not None and until is not None:
        raise ValidationError.conflicting_bounds()

    if params.get("dtstart") is not None:
        dtstart = _instant("dtstart", params["dtstart"], UTC)
    else:
        # Whole seconds, so the default start is itself an occurrence
        dtstart = (now if now is not None else datetime.now(UTC)).replace(microsecond=0)
        if dtstart.tzinfo is None:
            dtstart = dtstart.replace(tzinfo=UTC)
    zone = dtstart.tzinfo or UTC

    if count is not None:
        count = _to_int("count", count)
        if count < 1:
            raise ValidationError.out_of_range("count", f"{count} is not a positive integer")

    rule = RuleData(
        freq=freq,
        dtstart=dtstart,
        interval=interval,
        count=count,
        until=_instant("until", until, zone) if until is not None else None,
        dtend=_instant("dtend", params["dtend"], zone) if params.get("dtend") is not None else None,
        wkst=_weekday("wkst", params["wkst"]) if params.get("wkst") is not None else Weekday.MO,
        byday=_byday(params["byday"]) if params.get("byday") is not None else (),
        **{
            field: _int_list(field, params[field])
            for field in _INT_RANGES
            if params.get(field) is not None
        },
    )
    _check_frequency_constraints(rule)
    return rule


def _check_frequency_constraints(rule: RuleData) -> None:
    freq = rule.freq
    if rule.byweekno and freq != Frequency.YEARLY:
        raise ValidationError.out_of_range("byweekno", "only valid with a yearly frequency")
    if rule.byyearday and freq in (Frequency.DAILY, Frequency.WEEKLY, Frequency.MONTHLY):
        raise ValidationError.out_of_range("byyearday", f"not valid with a {freq.value} frequency")
    if rule.bymonthday and freq == Frequency.WEEKLY:
        raise ValidationError.out_of_range("bymonthday", "not valid with a weekly frequency")

    ordinals = [d.n for d in rule.byday if d.n is not None]
    if ordinals:
        if freq not in (Frequency.MONTHLY, Frequency.YEARLY) or rule.byweekno:
            raise ValidationError.out_of_range(
                "byday", "ordinals are only valid with a monthly or yearly frequency"
            )
        if (freq == Frequency.MONTHLY or rule.bymonth) and any(abs(n) > 5 for n in ordinals):
            raise ValidationError.out_of_range("byday", "ordinal must be within ±1..5 inside a month")


def parse(spec: RecurrenceSpec, *, now: datetime | None = None) -> RuleData:
    """Validate a recurrence specification and build the immutable rule data.

    `spec` is either a mapping of rule parts (``{"freq": "monthly", "byday": "-1FR"}``)
    or rfc2445 RRULE text (``"FREQ=MONTHLY;BYDAY=-1FR"``). `now` supplies the
    default ``dtstart`` when the specification carries none.
    """
    if isinstance(spec, str):
        params: dict[str, Any] = dict(_Parser(tokenize(spec), spec).parse_parts())
    elif isinstance(spec, Mapping):
        params = _normalize(spec)
    else:
        raise ValidationError.syntax(f"unsupported recurrence specification {type(spec).__name__}")
    return _build(params, now)
