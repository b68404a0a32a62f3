"""Tests for rakepool.rake — fee math and checked arithmetic."""

import pytest

from rakepool.errors import ArithmeticOverflow
from rakepool.rake import (
    U64_MAX,
    checked_add,
    checked_mul,
    checked_sub,
    compute_rake,
    quote,
    saturating_sub,
    split_rake,
)


class TestCheckedArithmetic:
    def test_add_within_range(self):
        assert checked_add(U64_MAX - 1, 1) == U64_MAX

    def test_add_overflow(self):
        with pytest.raises(ArithmeticOverflow):
            checked_add(U64_MAX, 1)

    def test_sub_underflow(self):
        with pytest.raises(ArithmeticOverflow):
            checked_sub(1, 2)

    def test_mul_overflow(self):
        with pytest.raises(ArithmeticOverflow):
            checked_mul(U64_MAX, 2)

    def test_saturating_sub_floors_at_zero(self):
        assert saturating_sub(5, 7) == 0
        assert saturating_sub(7, 5) == 2


class TestComputeRake:
    def test_five_percent_of_a_million(self):
        assert compute_rake(1_000_000, 500) == (50_000, 950_000)

    def test_zero_rake(self):
        assert compute_rake(1_000, 0) == (0, 1_000)

    def test_floors(self):
        # 999 * 500 / 10000 = 49.95
        assert compute_rake(999, 500) == (49, 950)

    def test_tiny_buy_in_has_no_rake(self):
        assert compute_rake(1, 1000) == (0, 1)

    def test_overflowing_product(self):
        with pytest.raises(ArithmeticOverflow):
            compute_rake(U64_MAX, 1000)


class TestSplitRake:
    def test_reference_split(self):
        assert split_rake(50_000, 70) == (35_000, 15_000)

    def test_admin_takes_remainder(self):
        # 7 * 70 / 100 = 4.9 -> creator 4, admin 3
        creator, admin = split_rake(7, 70)
        assert (creator, admin) == (4, 3)

    @pytest.mark.parametrize("rake", [0, 1, 3, 99, 50_001])
    @pytest.mark.parametrize("pct", [0, 33, 70, 100])
    def test_parts_always_sum_to_rake(self, rake, pct):
        creator, admin = split_rake(rake, pct)
        assert creator + admin == rake
        assert creator >= 0 and admin >= 0

    def test_all_to_creator(self):
        assert split_rake(100, 100) == (100, 0)


class TestQuote:
    def test_breakdown(self):
        b = quote(1_000_000, 500, 70)
        assert b.rake == 50_000
        assert b.net == 950_000
        assert b.creator_rake == 35_000
        assert b.admin_rake == 15_000

    def test_negative_buy_in(self):
        with pytest.raises(ArithmeticOverflow):
            quote(-1, 500, 70)
