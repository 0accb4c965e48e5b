"""Dis ring arithmetic: integers modulo base**digits, operated on digit-wise."""
from __future__ import annotations
import operator
from typing import Any

import numpy as np
from numpy.typing import NDArray

from lexer import DisError


class DisConfigError(DisError):
    """Raised when a ring cannot be built from the given parameters."""


def _as_int(name: str, value: Any) -> int:
    # bool is an int subclass.
    if isinstance(value, bool):
        raise DisConfigError(f"{name} must be an integer, got {value!r}")
    try:
        return operator.index(value)
    except TypeError:
        raise DisConfigError(f"{name} must be an integer, got {value!r}") from None


class Ring:
    """Arithmetic namespace for values of ``digits`` base-``base`` digits.

    Values live in ``[0, END)`` and are stored in the unsigned numpy dtype
    given at construction. All operations are total: inputs outside the
    ring are reduced modulo END before use.
    """

    def __init__(self, dtype: Any = np.uint16, base: int = 3, digits: int = 10) -> None:
        try:
            resolved = np.dtype(dtype)
        except TypeError as exc:
            raise DisConfigError(f"Unknown dtype {dtype!r}") from exc
        if resolved.kind != "u":
            raise DisConfigError(f"dtype must be an unsigned integer type, got {resolved.name}")
        base = _as_int("base", base)
        digits = _as_int("digits", digits)
        if base < 2:
            raise DisConfigError(f"base must be >= 2, got {base}")
        if digits < 1:
            raise DisConfigError(f"digits must be >= 1, got {digits}")

        self.dtype: np.dtype = resolved
        self.base: int = base
        self.digits: int = digits
        self.END: int = self.base ** self.digits
        self.MAX: int = self.END - 1
        if self.MAX > int(np.iinfo(resolved).max):
            raise DisConfigError(
                f"END overflown: {self.base}**{self.digits} does not fit {resolved.name}; "
                "try with a wider unsigned dtype"
            )
        # Weight of the most significant digit.
        self._top: int = self.END // self.base

    def __repr__(self) -> str:
        return f"Ring(dtype={self.dtype.name}, base={self.base}, digits={self.digits})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Ring):
            return NotImplemented
        return (self.dtype, self.base, self.digits) == (other.dtype, other.base, other.digits)

    def __hash__(self) -> int:
        return hash((self.dtype, self.base, self.digits))

    def is_valid(self, x: int) -> bool:
        return 0 <= x <= self.MAX

    is_representable = is_valid

    def reduce(self, x: int) -> int:
        return int(x) % self.END

    def zeros(self) -> NDArray[Any]:
        return np.zeros(self.END, dtype=self.dtype)

    def rotate_right(self, x: int) -> int:
        """Move the least significant digit to the most significant place.

        E.g. 00000_00001t becomes 10000_00000t.
        """
        head, least = divmod(self.reduce(x), self.base)
        return head + least * self._top

    def digit_subtract(self, x: int, y: int) -> int:
        """Subtract digit by digit without borrow; each digit wraps modulo base."""
        x = self.reduce(x)
        y = self.reduce(y)
        if x == 0 and y == 0:
            return 0
        base = self.base
        result = 0
        place = 1
        while x or y:
            x, dx = divmod(x, base)
            y, dy = divmod(y, base)
            result += ((base + dx - dy) % base) * place
            place *= base
        return result

    def successor(self, x: int) -> int:
        return (self.reduce(x) + 1) % self.END

    def predecessor(self, x: int) -> int:
        x = self.reduce(x)
        return self.MAX if x == 0 else x - 1

    def add_wrapping(self, x: int, y: int) -> int:
        return (self.reduce(x) + self.reduce(y)) % self.END

    def sub_wrapping(self, x: int, y: int) -> int:
        x = self.reduce(x)
        y = self.reduce(y)
        if x >= y:
            return x - y
        return x + (self.END - y)


# Official Dis constants: ten trits.
DEFAULT_RING = Ring(np.uint16, 3, 10)
