"""
Interest Accrual Module

Stateless interest and reward formulas built on the checked fixed-point
primitives. All results are truncated integers; small principals, rates or
elapsed spans can legitimately floor to zero.
"""

from typing import Final

from .fixed_point import PRECISION, add, div, mul, mul_div_down

SECONDS_PER_DAY: Final[int] = 86400
SECONDS_PER_YEAR: Final[int] = 365 * SECONDS_PER_DAY

# Monthly compounding used for both loans and collateral
DEFAULT_COMPOUNDING_PERIODS: Final[int] = 12

# 5% APR paid on free collateral
COLLATERAL_ANNUAL_RATE: Final[int] = 5 * 10 ** 16


def period_interest(principal: int, rate: int, periods: int) -> int:
    """
    Interest for one compounding period.

    floor(floor(principal * rate) / periods / PRECISION), with the two
    divisions applied one after the other.
    """
    return div(div(mul(principal, rate), periods), PRECISION)


def accumulate_interest(principal: int, rate: int, periods: int) -> int:
    """
    Sum of per-period interest over `periods` iterations.

    Each iteration charges period_interest on the running base (principal plus
    interest accrued so far) but always divides by the original `periods`.

    Args:
        principal: Starting balance
        rate: Annual rate scaled by PRECISION
        periods: Number of iterations and the per-period divisor

    Returns:
        Total accrued interest
    """
    accrued = 0
    for _ in range(periods):
        accrued = add(accrued, period_interest(add(principal, accrued), rate, periods))
    return accrued


def adjust_interest_for_time(total_interest: int, elapsed_seconds: int) -> int:
    """Scale an annual interest amount to the elapsed fraction of a year"""
    return mul_div_down(total_interest, elapsed_seconds, SECONDS_PER_YEAR)


def complex_interest(principal: int, rate: int, elapsed_seconds: int, periods: int) -> int:
    """
    Compounded annual interest prorated to the elapsed time.

    Truncates twice (inside the accumulation and again when prorating), so the
    result may be 0 for minimal inputs.

    Examples:
        >>> complex_interest(1, 1, 1, 12)
        0
    """
    return adjust_interest_for_time(accumulate_interest(principal, rate, periods), elapsed_seconds)


def reward(loan_amount: int, total_rewards: int) -> int:
    """Reward share of a loan: floor(loan_amount * total_rewards / PRECISION)"""
    return mul_div_down(loan_amount, total_rewards, PRECISION)
