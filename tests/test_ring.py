"""
Tests for the Dis ring arithmetic.

Covers the official ten-trit ring (constants, rotation, digit-wise
subtraction, wrapping add/sub), custom rings, and construction-time
rejection of bad parameters.
"""

import numpy as np
import pytest

from ring import DEFAULT_RING, DisConfigError, Ring


R = DEFAULT_RING


def _samples(ring):
    """A spread of values including both ends of the ring."""
    step = max(1, ring.END // 97)
    return sorted(set(list(range(0, ring.END, step)) + [0, 1, 2, ring.MAX - 1, ring.MAX]))


class TestDefaultRing:
    def test_constants(self):
        assert R.base == 3
        assert R.digits == 10
        assert R.END == 59049
        assert R.MAX == 59048
        assert R.dtype == np.uint16

    def test_is_valid(self):
        assert R.is_valid(0)
        assert R.is_valid(R.MAX)
        assert not R.is_valid(R.END)
        assert not R.is_valid(-1)
        assert R.is_representable(42)

    def test_zeros(self):
        mem = R.zeros()
        assert mem.shape == (59049,)
        assert mem.dtype == np.uint16
        assert not mem.any()


class TestRotateRight:
    def test_known_values(self):
        assert R.rotate_right(1) == 19683
        assert R.rotate_right(19683) == 6561
        assert R.rotate_right(2) == 39366
        assert R.rotate_right(4) == 19684

    def test_zero_and_max_are_fixed(self):
        assert R.rotate_right(0) == 0
        assert R.rotate_right(R.MAX) == R.MAX

    def test_order_is_digit_count(self):
        for x in _samples(R):
            y = x
            for _ in range(R.digits):
                y = R.rotate_right(y)
            assert y == x

    def test_bijection_on_small_ring(self):
        ring = Ring(np.uint8, 3, 4)
        images = {ring.rotate_right(x) for x in range(ring.END)}
        assert images == set(range(ring.END))


class TestDigitSubtract:
    def test_single_trits(self):
        opr = R.digit_subtract
        assert opr(0, 0) == 0
        assert opr(0, 1) == 2
        assert opr(0, 2) == 1
        assert opr(1, 0) == 1
        assert opr(1, 1) == 0
        assert opr(1, 2) == 2
        assert opr(2, 0) == 2
        assert opr(2, 1) == 1
        assert opr(2, 2) == 0

    def test_no_borrow_between_digits(self):
        assert R.digit_subtract(1 * 3 + 1, 2 * 3 + 2) == 2 * 3 + 2
        x = 2 * 81 + 1 * 27 + 0 * 9 + 1 * 3 + 2 * 1
        y = 0 * 81 + 1 * 27 + 2 * 9 + 2 * 3 + 1 * 1
        z = 2 * 81 + 0 * 27 + 1 * 9 + 2 * 3 + 1 * 1
        assert R.digit_subtract(x, y) == z

    def test_zero_minus_value_fills_high_digits_with_zero(self):
        # '|' is 124 = 11121t; 0 - 11121t = 22212t
        assert R.digit_subtract(0, 124) == 239

    def test_self_and_zero(self):
        for x in _samples(R):
            assert R.digit_subtract(x, x) == 0
            assert R.digit_subtract(x, 0) == x

    def test_results_stay_in_ring(self):
        for x in _samples(R):
            assert R.is_valid(R.digit_subtract(0, x))
            assert R.is_valid(R.digit_subtract(x, R.MAX))


class TestWrapping:
    def test_successor_predecessor(self):
        assert R.successor(0) == 1
        assert R.successor(59047) == 59048
        assert R.successor(R.MAX) == 0
        assert R.predecessor(0) == R.MAX
        assert R.predecessor(R.MAX) == R.MAX - 1
        for x in _samples(R):
            assert R.predecessor(R.successor(x)) == x
            assert R.successor(R.predecessor(x)) == x

    def test_add_wrapping(self):
        add = R.add_wrapping
        assert add(0, 0) == 0
        assert add(1, 0) == 1
        assert add(0, 1) == 1
        assert add(0, R.MAX) == R.MAX
        assert add(R.MAX, 0) == R.MAX
        assert add(R.MAX, R.MAX) == R.MAX - 1
        assert add(1, R.MAX) == 0
        assert add(R.MAX, 1) == 0

    def test_add_reduces_out_of_range_operands(self):
        assert R.add_wrapping(2323, 65535) == 2323 + 65535 % 59049

    def test_sub_wrapping(self):
        sub = R.sub_wrapping
        assert sub(0, 0) == 0
        assert sub(1, 0) == 1
        assert sub(0, 1) == R.MAX
        assert sub(R.MAX, 0) == R.MAX
        assert sub(0, R.MAX) == 1
        assert sub(R.MAX, R.MAX) == 0

    def test_add_then_sub(self):
        for x in _samples(R):
            assert R.sub_wrapping(R.add_wrapping(x, 12345), 12345) == x


class TestCustomRings:
    def test_base7_six_digits(self):
        ring = Ring(np.uint32, 7, 6)
        assert ring.END == 117649
        assert ring.rotate_right(5 * 7 + 2) == 2 * 7 ** 5 + 5
        assert ring.digit_subtract(
            5 * 343 + 3 * 49 + 1 * 7 + 6,
            6 * 343 + 0 * 49 + 1 * 7 + 2,
        ) == 6 * 343 + 3 * 49 + 0 * 7 + 4

    def test_binary_sixteen_digits_fills_uint16(self):
        ring = Ring(np.uint16, 2, 16)
        assert ring.MAX == 65535
        assert ring.END == 65536
        assert ring.add_wrapping(ring.MAX, ring.MAX) == ring.MAX - 1
        assert ring.successor(ring.MAX) == 0

    def test_exact_fit(self):
        ring = Ring(np.uint8, 4, 4)
        assert ring.MAX == 255

    def test_dtype_by_name(self):
        assert Ring("uint32", 3, 10) == Ring(np.uint32, 3, 10)


class TestConfigErrors:
    def test_base_too_small(self):
        with pytest.raises(DisConfigError):
            Ring(np.uint16, 1, 10)

    def test_zero_digits(self):
        with pytest.raises(DisConfigError):
            Ring(np.uint16, 3, 0)

    def test_dtype_too_narrow(self):
        with pytest.raises(DisConfigError, match="END overflown"):
            Ring(np.uint8, 3, 10)

    def test_signed_dtype(self):
        with pytest.raises(DisConfigError):
            Ring(np.int32, 3, 10)

    def test_unknown_dtype(self):
        with pytest.raises(DisConfigError):
            Ring("not-a-dtype", 3, 10)

    def test_fractional_base(self):
        with pytest.raises(DisConfigError, match="base must be an integer"):
            Ring(np.uint16, 2.9, 10)

    def test_fractional_digits(self):
        with pytest.raises(DisConfigError, match="digits must be an integer"):
            Ring(np.uint32, 3, 10.0)

    def test_bool_parameters(self):
        with pytest.raises(DisConfigError):
            Ring(np.uint16, 3, True)

    def test_numpy_integers_accepted(self):
        assert Ring(np.uint16, np.int64(3), np.int32(10)) == DEFAULT_RING
