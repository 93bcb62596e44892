"""
Governance Timelock Module

Delayed, two-party execution of administrative calls. A PROPOSER schedules a
call against a registered target; after the delay has elapsed an EXECUTOR
dispatches it. The target sees the timelock's own address as caller, so the
timelock must itself hold the roles the call requires.
"""

import hashlib
import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .access import AccessCheck, Role, require_any_role
from .config import LedgerConfig, get_config
from .events import EventSink, LedgerEvent, create_ledger_event
from .exceptions import GovernanceError, InvalidInput
from .logging_config import log_action


class OperationState(Enum):
    """Lifecycle of a scheduled operation"""
    PENDING = "pending"
    DONE = "done"
    CANCELLED = "cancelled"


@dataclass
class TimelockOperation:
    """A scheduled administrative call"""
    id: str
    target: str
    action: str
    kwargs: Dict[str, Any]
    proposer: str
    scheduled_at: int
    ready_at: int
    state: OperationState = OperationState.PENDING
    executed_by: Optional[str] = None
    executed_at: Optional[int] = None
    salt: str = ""
    history: List[str] = field(default_factory=list)

    def is_ready(self, now: int) -> bool:
        return self.state == OperationState.PENDING and now >= self.ready_at


class Timelock:
    """Proposer/executor timelock dispatching calls to registered targets"""

    def __init__(
        self,
        access: AccessCheck,
        events: Optional[EventSink] = None,
        clock: Optional[Callable[[], int]] = None,
        config: Optional[LedgerConfig] = None,
        min_delay: Optional[int] = None
    ):
        config = config or get_config()
        self.access = access
        self.events = events
        self.clock = clock or (lambda: int(time.time()))
        self.address = config.timelock_address
        self.min_delay = config.timelock_min_delay_seconds if min_delay is None else min_delay
        if self.min_delay < 0:
            raise InvalidInput(f"min_delay cannot be negative: {self.min_delay}")

        self._targets: Dict[str, Any] = {}
        self._operations: Dict[str, TimelockOperation] = {}
        self.logger = logging.getLogger("ledger.governance")

    def register_target(self, name: str, target: Any) -> None:
        """Make `target` addressable by name in scheduled operations"""
        self._targets[name] = target

    @staticmethod
    def hash_operation(target: str, action: str, kwargs: Dict[str, Any], salt: str = "") -> str:
        """Deterministic operation id"""
        hash_data = {
            "target": target,
            "action": action,
            "kwargs": kwargs,
            "salt": salt
        }
        json_data = json.dumps(hash_data, sort_keys=True, separators=(',', ':'), default=str)
        return hashlib.sha256(json_data.encode('utf-8')).hexdigest()

    def schedule(
        self,
        caller: str,
        target: str,
        action: str,
        kwargs: Optional[Dict[str, Any]] = None,
        delay: Optional[int] = None,
        salt: str = ""
    ) -> TimelockOperation:
        """
        Schedule a call for delayed execution.

        Args:
            caller: Must hold PROPOSER
            target: Name of a registered target
            action: Public method name on the target
            kwargs: Keyword arguments for the call (caller is supplied on execution)
            delay: Seconds before the call becomes executable, >= min_delay
            salt: Distinguishes otherwise identical operations

        Returns:
            The scheduled operation
        """
        require_any_role(self.access, caller, [Role.PROPOSER], allow_owner=False)
        kwargs = dict(kwargs or {})
        delay = self.min_delay if delay is None else delay

        if delay < self.min_delay:
            raise InvalidInput(f"Delay {delay}s is below the minimum of {self.min_delay}s")
        if target not in self._targets:
            raise GovernanceError(f"Unknown target: {target}")
        if action.startswith("_") or not callable(getattr(self._targets[target], action, None)):
            raise InvalidInput(f"{target} has no public action {action}")
        if "caller" in kwargs:
            raise InvalidInput("caller is set by the timelock and cannot be scheduled")

        operation_id = self.hash_operation(target, action, kwargs, salt)
        existing = self._operations.get(operation_id)
        if existing is not None and existing.state != OperationState.CANCELLED:
            raise GovernanceError(f"Operation {operation_id} already {existing.state.value}")

        now = int(self.clock())
        operation = TimelockOperation(
            id=operation_id,
            target=target,
            action=action,
            kwargs=kwargs,
            proposer=caller,
            scheduled_at=now,
            ready_at=now + delay,
            salt=salt,
            history=[f"scheduled by {caller} at {now}"]
        )
        self._operations[operation_id] = operation

        self._emit(LedgerEvent.GOVERNANCE_SCHEDULED, caller, operation, now)
        return operation

    def execute(self, caller: str, operation_id: str) -> Any:
        """
        Dispatch a ready operation.

        The operation stays pending if the target call raises, so it can be
        retried once the cause is fixed.

        Returns:
            Whatever the target call returned
        """
        require_any_role(self.access, caller, [Role.EXECUTOR], allow_owner=False)
        operation = self._get_pending(operation_id)
        now = int(self.clock())
        if not operation.is_ready(now):
            raise GovernanceError(
                f"Operation {operation_id} is not ready until {operation.ready_at} (now {now})"
            )

        handler = getattr(self._targets[operation.target], operation.action)
        result = handler(caller=self.address, **operation.kwargs)

        operation.state = OperationState.DONE
        operation.executed_by = caller
        operation.executed_at = now
        operation.history.append(f"executed by {caller} at {now}")

        self._emit(LedgerEvent.GOVERNANCE_EXECUTED, caller, operation, now)
        return result

    def cancel(self, caller: str, operation_id: str) -> TimelockOperation:
        """Cancel a pending operation (PROPOSER or CANCELLER)"""
        require_any_role(self.access, caller, [Role.PROPOSER, Role.CANCELLER], allow_owner=False)
        operation = self._get_pending(operation_id)

        now = int(self.clock())
        operation.state = OperationState.CANCELLED
        operation.history.append(f"cancelled by {caller} at {now}")

        self._emit(LedgerEvent.GOVERNANCE_CANCELLED, caller, operation, now)
        return operation

    def get_operation(self, operation_id: str) -> Optional[TimelockOperation]:
        return self._operations.get(operation_id)

    def is_operation_ready(self, operation_id: str) -> bool:
        operation = self._operations.get(operation_id)
        return operation is not None and operation.is_ready(int(self.clock()))

    def list_operations(self, state: Optional[OperationState] = None) -> List[TimelockOperation]:
        operations = list(self._operations.values())
        if state is not None:
            operations = [op for op in operations if op.state == state]
        return sorted(operations, key=lambda op: op.scheduled_at)

    def _get_pending(self, operation_id: str) -> TimelockOperation:
        operation = self._operations.get(operation_id)
        if operation is None:
            raise GovernanceError(f"Unknown operation: {operation_id}")
        if operation.state != OperationState.PENDING:
            raise GovernanceError(f"Operation {operation_id} is {operation.state.value}")
        return operation

    def _emit(self, event_type: LedgerEvent, caller: str, operation: TimelockOperation, now: int) -> None:
        log_action(
            self.logger, "info", f"Timelock {operation.state.value}: {operation.target}.{operation.action}",
            account=caller, action=event_type.value, resource=f"operation:{operation.id}",
            extra={"ready_at": operation.ready_at}
        )
        if self.events is None:
            return
        try:
            self.events.publish(create_ledger_event(
                event_type, caller,
                operation_id=operation.id,
                target=operation.target,
                action=operation.action,
                ready_at=operation.ready_at,
                timestamp=now
            ))
        except Exception as e:
            self.logger.error(f"Event sink failed for {event_type.value}: {e}")
