from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from ring import Ring


class DisError(Exception):
    """Base class for Dis errors."""


class DisParseError(DisError):
    """Raised when loading program text fails."""


@dataclass
class Token:
    type: str
    value: str
    line: int
    column: int


SYMBOLS = {
    "!": "HALT",
    "*": "LOAD",
    ">": "ROT",
    "^": "JMP",
    "_": "NOP",
    "{": "WRITE",
    "|": "OPR",
    "}": "READ",
}

WHITESPACE = " \t\r\n\f\v"


class Lexer:
    def __init__(self, text: str, filename: str) -> None:
        self.text = text
        self.filename = filename
        self.index = 0
        self.line = 1
        self.column = 1

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        tokens_append = tokens.append
        _advance = self._advance
        symbols = SYMBOLS
        text = self.text
        n = len(text)

        while self.index < n:
            ch: str = text[self.index]
            if ch in WHITESPACE:
                _advance()
                continue
            if ch == "(":
                self._consume_comment()
                continue
            if ch in symbols:
                tokens_append(Token(symbols[ch], ch, self.line, self.column))
                _advance()
                continue
            raise DisParseError(
                f"Unexpected character {ch!r} at {self.filename}:{self.line}:{self.column}"
            )
        tokens_append(Token("EOF", "", self.line, self.column))
        return tokens

    def _consume_comment(self) -> None:
        line, col = self.line, self.column
        text = self.text
        n = len(text)
        _advance = self._advance
        _advance()  # consume '('
        while self.index < n:
            if text[self.index] == ")":
                _advance()
                return
            _advance()
        raise DisParseError(f"Unterminated comment at {self.filename}:{line}:{col}")

    def _advance(self) -> None:
        if self.text[self.index] == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.index += 1


def assemble(text: str, filename: str = "<string>", ring: Optional["Ring"] = None) -> List[int]:
    """Turn Dis source into the cell values for the start of memory."""
    if ring is None:
        from ring import DEFAULT_RING

        ring = DEFAULT_RING
    tokens = Lexer(text, filename).tokenize()
    image = [ord(token.value) for token in tokens if token.type != "EOF"]
    if len(image) > ring.END:
        overflow = tokens[ring.END]
        raise DisParseError(
            f"Program does not fit in {ring.END} cells; cell {ring.END} is at "
            f"{filename}:{overflow.line}:{overflow.column}"
        )
    too_wide = [value for value in image if not ring.is_valid(value)]
    if too_wide:
        raise DisParseError(
            f"Command byte {too_wide[0]} is not representable in {ring!r} ({filename})"
        )
    return image
