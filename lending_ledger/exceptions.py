"""
Ledger Exceptions Module

Typed error taxonomy for the numeric library, the accounting ledger and its
collaborators. Every failure aborts the current operation atomically and is
surfaced to the caller unchanged; nothing is retried internally.
"""


class LedgerError(Exception):
    """Base class for all lending ledger errors"""


# Input validation

class InvalidInput(LedgerError, ValueError):
    """Zero or out-of-range amounts, rates or operands"""


# Balance constraints

class InsufficientBalance(LedgerError, ValueError):
    """Collateral or loan constraint violated"""


class InsufficientCollateral(InsufficientBalance):
    """Withdrawal exceeds free collateral"""


class RepayExceedsLoan(InsufficientBalance):
    """Repayment exceeds outstanding principal"""


# Checked arithmetic

class MathError(LedgerError, ArithmeticError):
    """Checked-math failure"""


class Overflow(MathError):
    """Result does not fit the fixed width"""


class Underflow(MathError):
    """Unsigned subtraction went below zero"""


class DivisionByZero(MathError):
    """Divisor was zero"""


class MulDivOverflow(Overflow):
    """mulDiv precondition failed (zero denominator or x * y overflow)"""


class MulDivInputTooSmall(MathError):
    """Signed mulDiv operand equals the most negative int256"""


class MulDivSignedOverflow(Overflow):
    """Signed mulDiv result does not fit int256"""


class RewardUnderflow(Underflow):
    """Reward debt exceeds the freshly computed reward"""


# Collaborators

class TransferFailed(LedgerError):
    """Token transfer rejected (insufficient balance or allowance)"""


class Unauthorized(LedgerError, PermissionError):
    """Caller lacks ownership or the required role"""


class ReentrantCall(LedgerError, RuntimeError):
    """A mutating operation was entered while another one is in flight"""


class GovernanceError(LedgerError):
    """Timelock operation unknown, not ready, or already finalised"""
