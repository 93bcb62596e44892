"""
Token endpoints for the bundled in-memory assets
"""

from fastapi import APIRouter, Depends, HTTPException

from .auth import LendingSystem, get_caller, get_lending_system
from .schemas import AmountRequest, MintRequest, to_http_exception
from ..access import require_owner
from ..exceptions import LedgerError
from ..transfers import InMemoryToken


router = APIRouter()


def _get_token(system: LendingSystem, symbol: str) -> InMemoryToken:
    token = system.tokens.get(symbol)
    if token is None:
        raise HTTPException(status_code=404, detail="Token not found")
    return token


@router.post("/{symbol}/mint")
async def mint(
    symbol: str,
    request: MintRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    """Mint test tokens (owner only)"""
    token = _get_token(system, symbol)
    try:
        require_owner(system.access, caller)
        token.mint(request.account, int(request.amount))
    except LedgerError as e:
        raise to_http_exception(e)

    return {"account": request.account, "balance": str(token.balance_of(request.account))}


@router.post("/{symbol}/approve")
async def approve_ledger(
    symbol: str,
    request: AmountRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    """Allow the ledger to pull tokens from the caller"""
    token = _get_token(system, symbol)
    token.approve(caller, token.custodian, request.to_int())
    return {
        "account": caller,
        "spender": token.custodian,
        "allowance": str(token.allowance(caller, token.custodian))
    }


@router.get("/{symbol}/balances/{account}")
async def get_balance(
    symbol: str,
    account: str,
    system: LendingSystem = Depends(get_lending_system)
):
    """Get token balance"""
    token = _get_token(system, symbol)
    return {"account": account, "symbol": symbol, "balance": str(token.balance_of(account))}
