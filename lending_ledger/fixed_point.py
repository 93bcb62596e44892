"""
Fixed-Point Math Module

Checked fixed-width arithmetic for the lending ledger. Values are plain Python
ints constrained to the uint256 (or int256) range; every operation fails with a
typed error instead of silently wrapping, except pow() which is defined as
modular exponentiation over 2**256.

PRECISION (1e18) represents 1.0 for rates and reward ratios.
"""

from typing import Final

from .exceptions import (
    DivisionByZero,
    InvalidInput,
    MulDivInputTooSmall,
    MulDivOverflow,
    MulDivSignedOverflow,
    Overflow,
    Underflow,
)

UINT256_BITS: Final[int] = 256
UINT256_MODULUS: Final[int] = 1 << UINT256_BITS
MAX_UINT256: Final[int] = UINT256_MODULUS - 1

MIN_INT256: Final[int] = -(1 << 255)
MAX_INT256: Final[int] = (1 << 255) - 1

PRECISION: Final[int] = 10 ** 18


def _require_uint(*values: int) -> None:
    for value in values:
        if not isinstance(value, int) or isinstance(value, bool):
            raise InvalidInput(f"Expected an integer operand, got {type(value).__name__}")
        if value < 0 or value > MAX_UINT256:
            raise InvalidInput(f"Operand {value} is outside the uint256 range")


def _require_int(*values: int) -> None:
    for value in values:
        if not isinstance(value, int) or isinstance(value, bool):
            raise InvalidInput(f"Expected an integer operand, got {type(value).__name__}")
        if value < MIN_INT256 or value > MAX_INT256:
            raise InvalidInput(f"Operand {value} is outside the int256 range")


# =============================================================================
# CHECKED BASIC OPERATIONS
# =============================================================================


def add(a: int, b: int) -> int:
    """Checked addition, fails with Overflow above MAX_UINT256"""
    _require_uint(a, b)
    result = a + b
    if result > MAX_UINT256:
        raise Overflow(f"add({a}, {b}) overflows uint256")
    return result


def sub(a: int, b: int) -> int:
    """Checked subtraction, fails with Underflow when b > a"""
    _require_uint(a, b)
    if b > a:
        raise Underflow(f"sub({a}, {b}) underflows")
    return a - b


def mul(a: int, b: int) -> int:
    """Checked multiplication; a zero operand returns 0 without an overflow check"""
    _require_uint(a, b)
    if a == 0 or b == 0:
        return 0
    result = a * b
    if result > MAX_UINT256:
        raise Overflow(f"mul({a}, {b}) overflows uint256")
    return result


def div(a: int, b: int) -> int:
    """Floor division, fails with DivisionByZero when b == 0"""
    _require_uint(a, b)
    if b == 0:
        raise DivisionByZero(f"div({a}, 0)")
    return a // b


# =============================================================================
# MULDIV
# =============================================================================


def _check_mul_div(x: int, y: int, denominator: int) -> None:
    # Same precondition as the pre-multiplication bound check:
    # denominator != 0 && (y == 0 || x <= max / y)
    if denominator == 0 or (y != 0 and x > MAX_UINT256 // y):
        raise MulDivOverflow(f"mul_div({x}, {y}, {denominator}) precondition failed")


def mul_div_down(x: int, y: int, denominator: int) -> int:
    """
    Compute floor(x * y / denominator).

    Python ints are unbounded, so the intermediate product never wraps; the
    overflow precondition is still enforced before multiplying so callers see
    the same failures as a 256-bit implementation.

    Args:
        x: Multiplicand
        y: Multiplier
        denominator: Divisor

    Returns:
        The product rounded toward zero

    Raises:
        MulDivOverflow: denominator == 0, or y != 0 and x > MAX_UINT256 // y
    """
    _require_uint(x, y, denominator)
    _check_mul_div(x, y, denominator)
    return (x * y) // denominator


def mul_div_up(x: int, y: int, denominator: int) -> int:
    """
    Compute ceil(x * y / denominator).

    Equals mul_div_down plus one whenever the product is not an exact multiple
    of the denominator.

    Raises:
        MulDivOverflow: same precondition as mul_div_down
    """
    _require_uint(x, y, denominator)
    _check_mul_div(x, y, denominator)
    product = x * y
    result = product // denominator
    if product % denominator != 0:
        result += 1
    return result


def mul_div_signed(x: int, y: int, denominator: int) -> int:
    """
    Signed floor-toward-zero x * y / denominator over int256.

    The magnitude is computed with mul_div_down on absolute values and the sign
    is the XOR of the operand signs.

    Raises:
        MulDivInputTooSmall: any operand equals MIN_INT256
        MulDivOverflow: denominator == 0 or the unsigned product overflows
        MulDivSignedOverflow: the magnitude does not fit int256
    """
    _require_int(x, y, denominator)
    if MIN_INT256 in (x, y, denominator):
        raise MulDivInputTooSmall("mul_div_signed operand equals MIN_INT256")

    magnitude = mul_div_down(abs(x), abs(y), abs(denominator))
    if magnitude > MAX_INT256:
        raise MulDivSignedOverflow(f"mul_div_signed({x}, {y}, {denominator}) overflows int256")

    negative = (x < 0) ^ (y < 0) ^ (denominator < 0)
    return -magnitude if negative else magnitude


# =============================================================================
# SQRT / POW
# =============================================================================


def sqrt(x: int) -> int:
    """
    Integer square root rounded down.

    The estimate is seeded from the bit length of x by halving the magnitude
    range, refined with exactly seven Newton-Raphson steps, then corrected by
    taking min(r, x // r) so the result is the floor and never the ceiling.

    Examples:
        >>> sqrt(0)
        0
        >>> sqrt(15)
        3
        >>> sqrt(16)
        4
    """
    _require_uint(x)
    if x == 0:
        return 0

    xx = x
    r = 1
    if xx >= 1 << 128:
        xx >>= 128
        r <<= 64
    if xx >= 1 << 64:
        xx >>= 64
        r <<= 32
    if xx >= 1 << 32:
        xx >>= 32
        r <<= 16
    if xx >= 1 << 16:
        xx >>= 16
        r <<= 8
    if xx >= 1 << 8:
        xx >>= 8
        r <<= 4
    if xx >= 1 << 4:
        xx >>= 4
        r <<= 2
    if xx >= 1 << 3:
        r <<= 1

    for _ in range(7):
        r = (r + x // r) >> 1

    r1 = x // r
    return r if r < r1 else r1


def pow(base: int, exponent: int) -> int:
    """
    Exponentiation by repeated squaring, wrapping modulo 2**256.

    This is a modular-exponentiation contract: products are reduced to the
    machine width at every step and no overflow is reported.
    """
    _require_uint(base, exponent)
    result = 1
    base %= UINT256_MODULUS
    while exponent > 0:
        if exponent & 1:
            result = (result * base) % UINT256_MODULUS
        base = (base * base) % UINT256_MODULUS
        exponent >>= 1
    return result


__all__ = [
    "UINT256_BITS",
    "UINT256_MODULUS",
    "MAX_UINT256",
    "MIN_INT256",
    "MAX_INT256",
    "PRECISION",
    "add",
    "sub",
    "mul",
    "div",
    "mul_div_down",
    "mul_div_up",
    "mul_div_signed",
    "sqrt",
    "pow",
]
