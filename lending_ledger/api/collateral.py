"""
Collateral endpoints
"""

from fastapi import APIRouter, Depends

from .auth import LendingSystem, get_caller, get_lending_system
from .schemas import AmountRequest, to_http_exception
from ..exceptions import LedgerError


router = APIRouter()


@router.post("/deposit")
async def deposit_collateral(
    request: AmountRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    """Deposit free collateral"""
    try:
        collateral = system.ledger.deposit_collateral(caller, request.to_int())
    except LedgerError as e:
        raise to_http_exception(e)

    return {
        "account": caller,
        "collateral": collateral.to_dict(),
        "message": "Collateral deposited successfully"
    }


@router.post("/withdraw")
async def withdraw_collateral(
    request: AmountRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    """Withdraw free collateral"""
    try:
        collateral = system.ledger.withdraw_collateral(caller, request.to_int())
    except LedgerError as e:
        raise to_http_exception(e)

    return {
        "account": caller,
        "collateral": collateral.to_dict(),
        "message": "Collateral withdrawn successfully"
    }


@router.post("/claim-interest")
async def claim_collateral_interest(
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    """Claim interest earned on free collateral"""
    try:
        claimed = system.ledger.claim_collateral_interest(caller)
    except LedgerError as e:
        raise to_http_exception(e)

    return {"account": caller, "claimed": str(claimed)}


@router.get("/{account}")
async def get_collateral(
    account: str,
    system: LendingSystem = Depends(get_lending_system)
):
    """Get collateral details"""
    return {
        "account": account,
        "collateral": system.ledger.get_collateral_details(account).to_dict(),
        "pending_interest": str(system.ledger.get_pending_collateral_interest(account))
    }
