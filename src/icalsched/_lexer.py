from __future__ import annotations

from dataclasses import dataclass

from ._error import Span, ValidationError

# --- Token kinds ---


@dataclass(frozen=True, slots=True)
class TWord:
    text: str


@dataclass(frozen=True, slots=True)
class TEquals:
    pass


@dataclass(frozen=True, slots=True)
class TSemi:
    pass


@dataclass(frozen=True, slots=True)
class TComma:
    pass


TokenKind = TWord | TEquals | TSemi | TComma


@dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    span: Span


_PUNCTUATION: dict[str, TokenKind] = {
    "=": TEquals(),
    ";": TSemi(),
    ",": TComma(),
}

# Characters that may appear inside a rule part name or value:
# names, integers with sign, BYDAY entries (-1FR) and instants (20110131T000000Z, ISO 8601).
_WORD_CHARS = frozenset("+-:._/")

_PREFIX = "rrule:"


class _Lexer:
    def __init__(self, input_text: str) -> None:
        self._input = input_text
        self._pos = 0

    def tokenize(self) -> list[Token]:
        tokens: list[Token] = []
        self._skip_whitespace()
        if self._input[self._pos : self._pos + len(_PREFIX)].lower() == _PREFIX:
            self._pos += len(_PREFIX)

        while True:
            self._skip_whitespace()
            if self._pos >= len(self._input):
                break

            start = self._pos
            ch = self._input[self._pos]

            kind = _PUNCTUATION.get(ch)
            if kind is not None:
                self._pos += 1
                tokens.append(Token(kind, Span(start, self._pos)))
                continue

            if ch.isalnum() or ch in _WORD_CHARS:
                tokens.append(self._lex_word())
                continue

            raise ValidationError.syntax(
                f"unexpected character '{ch}'",
                Span(start, start + 1),
                self._input,
            )

        return tokens

    def _skip_whitespace(self) -> None:
        while self._pos < len(self._input) and self._input[self._pos] in " \t\n\r":
            self._pos += 1

    def _lex_word(self) -> Token:
        start = self._pos
        while self._pos < len(self._input) and (
            self._input[self._pos].isalnum() or self._input[self._pos] in _WORD_CHARS
        ):
            self._pos += 1
        return Token(TWord(self._input[start : self._pos]), Span(start, self._pos))


def tokenize(input_text: str) -> list[Token]:
    return _Lexer(input_text).tokenize()
