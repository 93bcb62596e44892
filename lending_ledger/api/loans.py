"""
Loan endpoints
"""

from fastapi import APIRouter, Depends, status

from .auth import LendingSystem, get_caller, get_lending_system
from .schemas import AmountRequest, TakeLoanRequest, to_http_exception
from ..exceptions import LedgerError


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def take_loan(
    request: TakeLoanRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    """Take a loan against collateral"""
    try:
        loan = system.ledger.take_loan(
            caller,
            amount=int(request.amount),
            collateral_amount=int(request.collateral_amount),
            interest_rate=int(request.interest_rate)
        )
    except LedgerError as e:
        raise to_http_exception(e)

    return {
        "account": caller,
        "loan": loan.to_dict(),
        "message": "Loan taken successfully"
    }


@router.post("/repay")
async def repay_loan(
    request: AmountRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    """Repay principal plus accrued interest"""
    try:
        loan = system.ledger.repay_loan(caller, request.to_int())
    except LedgerError as e:
        raise to_http_exception(e)

    return {
        "account": caller,
        "loan": loan.to_dict(),
        "message": "Loan repayment processed successfully"
    }


@router.get("/{account}")
async def get_loan(
    account: str,
    system: LendingSystem = Depends(get_lending_system)
):
    """Get loan details"""
    loan = system.ledger.get_loan_details(account)
    return {
        "account": account,
        "active": loan.is_active,
        "loan": loan.to_dict()
    }


@router.get("/{account}/debt")
async def get_total_debt(
    account: str,
    system: LendingSystem = Depends(get_lending_system)
):
    """Principal plus interest accrued up to now"""
    return {
        "account": account,
        "total_debt": str(system.ledger.calculate_total_debt(account))
    }
