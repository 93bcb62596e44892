"""
Admin endpoints (rewards, rate overrides, governance)
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException

from .auth import LendingSystem, get_caller, get_lending_system
from .schemas import AmountRequest, InterestRateRequest, ScheduleRequest, to_http_exception
from ..exceptions import LedgerError
from ..governance import OperationState, TimelockOperation


router = APIRouter()


def _operation_to_dict(operation: TimelockOperation) -> Dict[str, Any]:
    return {
        "id": operation.id,
        "target": operation.target,
        "action": operation.action,
        "kwargs": operation.kwargs,
        "proposer": operation.proposer,
        "scheduled_at": operation.scheduled_at,
        "ready_at": operation.ready_at,
        "state": operation.state.value,
        "executed_by": operation.executed_by,
        "executed_at": operation.executed_at,
    }


@router.post("/rewards")
async def distribute_rewards(
    request: AmountRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    """Fund the reward pool"""
    try:
        accounting = system.ledger.distribute_rewards(caller, request.to_int())
    except LedgerError as e:
        raise to_http_exception(e)

    return {"accounting": accounting.to_dict(), "message": "Rewards distributed"}


@router.post("/interest-rate")
async def set_interest_rate(
    request: InterestRateRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    """Override the interest rate of an active loan"""
    try:
        loan = system.ledger.set_interest_rate(caller, request.account, int(request.interest_rate))
    except LedgerError as e:
        raise to_http_exception(e)

    return {"account": request.account, "loan": loan.to_dict()}


@router.post("/governance/operations")
async def schedule_operation(
    request: ScheduleRequest,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    """Schedule a delayed administrative call"""
    try:
        operation = system.timelock.schedule(
            caller,
            target=request.target,
            action=request.action,
            kwargs=request.kwargs,
            delay=request.delay,
            salt=request.salt
        )
    except LedgerError as e:
        raise to_http_exception(e)

    return _operation_to_dict(operation)


@router.post("/governance/operations/{operation_id}/execute")
async def execute_operation(
    operation_id: str,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    """Execute a matured operation"""
    try:
        system.timelock.execute(caller, operation_id)
    except LedgerError as e:
        raise to_http_exception(e)

    return _operation_to_dict(system.timelock.get_operation(operation_id))


@router.post("/governance/operations/{operation_id}/cancel")
async def cancel_operation(
    operation_id: str,
    caller: str = Depends(get_caller),
    system: LendingSystem = Depends(get_lending_system)
):
    """Cancel a pending operation"""
    try:
        operation = system.timelock.cancel(caller, operation_id)
    except LedgerError as e:
        raise to_http_exception(e)

    return _operation_to_dict(operation)


@router.get("/governance/operations")
async def list_operations(
    state: Optional[str] = None,
    system: LendingSystem = Depends(get_lending_system)
):
    """List scheduled operations"""
    try:
        state_filter = OperationState(state) if state else None
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown state: {state}")

    return [_operation_to_dict(op) for op in system.timelock.list_operations(state_filter)]


@router.get("/governance/operations/{operation_id}")
async def get_operation(
    operation_id: str,
    system: LendingSystem = Depends(get_lending_system)
):
    """Get one scheduled operation"""
    operation = system.timelock.get_operation(operation_id)
    if operation is None:
        raise HTTPException(status_code=404, detail="Operation not found")
    return _operation_to_dict(operation)
