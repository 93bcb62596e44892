"""
Test suite for interest accrual formulas

Tests period interest, compounding accumulation, time proration and the
reward share formula, including the truncation behaviour at small inputs.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from lending_ledger.exceptions import DivisionByZero, Overflow
from lending_ledger.fixed_point import MAX_UINT256, PRECISION
from lending_ledger.interest import (
    COLLATERAL_ANNUAL_RATE,
    DEFAULT_COMPOUNDING_PERIODS,
    SECONDS_PER_YEAR,
    accumulate_interest,
    adjust_interest_for_time,
    complex_interest,
    period_interest,
    reward,
)


TEN_PERCENT = 10 ** 17


class TestPeriodInterest:
    """Test single-period interest"""

    def test_monthly_period(self):
        # 1000 * 10% / 12 = 8.33 -> 8
        assert period_interest(1000, TEN_PERCENT, 12) == 8

    def test_small_principal_floors_to_zero(self):
        assert period_interest(100, TEN_PERCENT, 12) == 0

    def test_zero_periods(self):
        with pytest.raises(DivisionByZero):
            period_interest(1000, TEN_PERCENT, 0)

    def test_product_overflow(self):
        with pytest.raises(Overflow):
            period_interest(MAX_UINT256, 2, 12)


class TestAccumulateInterest:
    """Test additive compounding"""

    def test_compounds_on_running_base(self):
        # Base grows by the accrued interest; the 11th and 12th periods
        # charge 9 instead of 8
        assert accumulate_interest(1000, TEN_PERCENT, 12) == 98

    def test_zero_periods_accrue_nothing(self):
        assert accumulate_interest(1000, TEN_PERCENT, 0) == 0

    def test_zero_principal(self):
        assert accumulate_interest(0, TEN_PERCENT, 12) == 0

    def test_exceeds_simple_interest_for_large_principal(self):
        principal = 1000 * PRECISION
        simple = principal * TEN_PERCENT // PRECISION
        compounded = accumulate_interest(principal, TEN_PERCENT, DEFAULT_COMPOUNDING_PERIODS)
        assert simple < compounded < principal * 105 // 1000


class TestAdjustInterestForTime:
    """Test proration to elapsed seconds"""

    def test_full_year(self):
        assert adjust_interest_for_time(98, SECONDS_PER_YEAR) == 98

    def test_half_year(self):
        assert adjust_interest_for_time(98, SECONDS_PER_YEAR // 2) == 49

    def test_no_time_elapsed(self):
        assert adjust_interest_for_time(10 ** 30, 0) == 0


class TestComplexInterest:
    """Test compounded and prorated interest"""

    def test_minimal_inputs_truncate_to_zero(self):
        assert complex_interest(1, 1, 1, 12) == 0

    def test_one_year_at_ten_percent(self):
        assert complex_interest(1000, TEN_PERCENT, SECONDS_PER_YEAR, 12) == 98

    def test_half_year_on_reduced_principal(self):
        assert complex_interest(600, TEN_PERCENT, SECONDS_PER_YEAR // 2, 12) == 30

    def test_collateral_rate(self):
        principal = 10 ** 21
        interest = complex_interest(principal, COLLATERAL_ANNUAL_RATE, SECONDS_PER_YEAR, 12)
        assert principal * 5 // 100 < interest < principal * 52 // 1000

    @given(
        principal=st.integers(min_value=0, max_value=10 ** 30),
        rate=st.integers(min_value=1, max_value=PRECISION),
        elapsed=st.integers(min_value=0, max_value=10 * SECONDS_PER_YEAR)
    )
    def test_monotonic_in_elapsed_time(self, principal, rate, elapsed):
        earlier = complex_interest(principal, rate, elapsed, 12)
        later = complex_interest(principal, rate, elapsed + 86400, 12)
        assert 0 <= earlier <= later


class TestReward:
    """Test reward share"""

    def test_unit_amount_and_pool(self):
        assert reward(PRECISION, PRECISION) == PRECISION

    def test_scaled_share(self):
        assert reward(PRECISION // 2, 2 * PRECISION) == PRECISION

    def test_small_loan_floors(self):
        assert reward(100, PRECISION) == 100
        assert reward(1, PRECISION - 1) == 0

    def test_empty_pool(self):
        assert reward(10 ** 24, 0) == 0
