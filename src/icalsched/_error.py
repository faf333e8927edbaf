from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True, slots=True)
class Span:
    start: int
    end: int


ValidationErrorKind = Literal["frequency", "interval", "bounds", "range", "instant", "syntax"]


class ValidationError(Exception):
    """A recurrence specification that cannot be turned into a rule."""

    kind: ValidationErrorKind
    field: str | None
    span: Span | None
    input_text: str | None

    def __init__(
        self,
        kind: ValidationErrorKind,
        message: str,
        field: str | None = None,
        span: Span | None = None,
        input_text: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.field = field
        self.span = span
        self.input_text = input_text

    @classmethod
    def unknown_frequency(cls, value: object) -> ValidationError:
        return cls("frequency", f"unknown frequency {value!r}", field="freq")

    @classmethod
    def invalid_interval(cls, value: object) -> ValidationError:
        return cls("interval", f"interval must be a positive integer, got {value!r}", field="interval")

    @classmethod
    def conflicting_bounds(cls) -> ValidationError:
        return cls("bounds", "'count' and 'until' are mutually exclusive")

    @classmethod
    def out_of_range(cls, field: str, message: str) -> ValidationError:
        return cls("range", f"{field}: {message}", field=field)

    @classmethod
    def malformed_instant(cls, field: str, value: object) -> ValidationError:
        return cls("instant", f"{field}: malformed instant {value!r}", field=field)

    @classmethod
    def syntax(
        cls,
        message: str,
        span: Span | None = None,
        input_text: str | None = None,
    ) -> ValidationError:
        return cls("syntax", message, span=span, input_text=input_text)

    def display_rich(self) -> str:
        if self.kind == "syntax" and self.span and self.input_text:
            out = f"error: {self}\n"
            out += f"  {self.input_text}\n"
            padding = " " * (self.span.start + 2)
            underline = "^" * max(self.span.end - self.span.start, 1)
            return out + padding + underline
        return f"error: {self}"


SchedulingErrorKind = Literal["duplicate"]


class SchedulingError(Exception):
    kind: SchedulingErrorKind
    name: str

    def __init__(self, kind: SchedulingErrorKind, message: str, name: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.name = name

    @classmethod
    def duplicate(cls, name: str) -> SchedulingError:
        return cls("duplicate", f"schedule {name!r} already exists", name)
