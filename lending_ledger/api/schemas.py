"""
Pydantic schemas for API requests and responses

Amounts and rates travel as decimal integer strings so uint256 values are not
truncated by JSON clients.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException
from pydantic import BaseModel, Field, field_validator

from ..exceptions import (
    GovernanceError,
    InsufficientBalance,
    InvalidInput,
    LedgerError,
    MathError,
    ReentrantCall,
    TransferFailed,
    Unauthorized,
)


def _check_integer_string(value: str) -> str:
    if not (value.isascii() and value.isdigit()):
        raise ValueError("must be a non-negative integer string")
    return value


# Collateral schemas
class AmountRequest(BaseModel):
    amount: str = Field(..., description="Integer amount as string")

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, value: str) -> str:
        return _check_integer_string(value)

    def to_int(self) -> int:
        return int(self.amount)


# Loan schemas
class TakeLoanRequest(BaseModel):
    amount: str = Field(..., description="Principal as integer string")
    collateral_amount: str = Field(..., description="Collateral to lock as integer string")
    interest_rate: str = Field(..., description="Annual rate scaled by 1e18")

    @field_validator("amount", "collateral_amount", "interest_rate")
    @classmethod
    def validate_amounts(cls, value: str) -> str:
        return _check_integer_string(value)


# Admin schemas
class InterestRateRequest(BaseModel):
    account: str
    interest_rate: str = Field(..., description="Annual rate scaled by 1e18")

    @field_validator("interest_rate")
    @classmethod
    def validate_rate(cls, value: str) -> str:
        return _check_integer_string(value)


class MintRequest(BaseModel):
    account: str
    amount: str = Field(..., description="Integer amount as string")

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, value: str) -> str:
        return _check_integer_string(value)


class ScheduleRequest(BaseModel):
    target: str = "ledger"
    action: str
    kwargs: Dict[str, Any] = Field(default_factory=dict)
    delay: Optional[int] = None
    salt: str = ""


def to_http_exception(error: LedgerError) -> HTTPException:
    """Map a ledger error onto an HTTP status"""
    if isinstance(error, Unauthorized):
        status_code = 403
    elif isinstance(error, TransferFailed):
        status_code = 402
    elif isinstance(error, ReentrantCall):
        status_code = 409
    elif isinstance(error, MathError):
        status_code = 422
    elif isinstance(error, (InvalidInput, InsufficientBalance, GovernanceError)):
        status_code = 400
    else:
        status_code = 500
    return HTTPException(
        status_code=status_code,
        detail={"error": type(error).__name__, "message": str(error)}
    )
