"""
Event System Module

Notification collaborator for the ledger. The ledger depends only on the
EventSink interface; EventDispatcher is the in-process publish/subscribe
implementation.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from threading import RLock
from typing import Any, Callable, Dict, List, Optional


class LedgerEvent(Enum):
    """Events emitted by the lending ledger"""

    # Collateral events
    COLLATERAL_DEPOSITED = "collateral.deposited"
    COLLATERAL_WITHDRAWN = "collateral.withdrawn"
    COLLATERAL_INTEREST_CLAIMED = "collateral.interest_claimed"

    # Loan events
    LOAN_TAKEN = "loan.taken"
    LOAN_REPAID = "loan.repaid"
    INTEREST_RATE_UPDATED = "loan.interest_rate_updated"

    # Reward and admin events
    REWARDS_DISTRIBUTED = "rewards.distributed"
    TOKENS_UPDATED = "admin.tokens_updated"

    # Governance events
    GOVERNANCE_SCHEDULED = "governance.scheduled"
    GOVERNANCE_EXECUTED = "governance.executed"
    GOVERNANCE_CANCELLED = "governance.cancelled"


@dataclass
class EventPayload:
    """Payload for ledger events"""
    event_type: LedgerEvent
    entity_type: str
    entity_id: str
    data: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'data': self.data,
            'timestamp': self.timestamp.isoformat(),
            'event_id': self.event_id
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EventPayload':
        """Create from dictionary"""
        return cls(
            event_type=LedgerEvent(data['event_type']),
            entity_type=data['entity_type'],
            entity_id=data['entity_id'],
            data=data['data'],
            timestamp=datetime.fromisoformat(data['timestamp']) if isinstance(data['timestamp'], str) else data['timestamp'],
            event_id=data['event_id']
        )


class EventSink(ABC):
    """Capability interface for emitting ledger notifications"""

    @abstractmethod
    def publish(self, event: EventPayload) -> None:
        """
        Deliver one event.

        Called after the ledger operation has committed. An exception raised
        here is logged by the ledger and does not reach its caller.
        """
        pass


class EventDispatcher(EventSink):
    """Central event dispatcher - publish/subscribe pattern"""

    def __init__(self):
        self._handlers: Dict[LedgerEvent, List[Callable]] = {}
        self._global_handlers: List[Callable] = []  # catch-all handlers
        self._lock = RLock()
        self.logger = logging.getLogger("ledger.events")

    def subscribe(self, event_type: LedgerEvent, handler: Callable) -> None:
        """Subscribe to a specific event type"""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
            self.logger.debug(f"Subscribed handler {_handler_name(handler)} to {event_type.value}")

    def subscribe_all(self, handler: Callable) -> None:
        """Subscribe to ALL events"""
        with self._lock:
            self._global_handlers.append(handler)
            self.logger.debug(f"Subscribed global handler {_handler_name(handler)}")

    def unsubscribe(self, event_type: LedgerEvent, handler: Callable) -> None:
        """Unsubscribe from a specific event type"""
        with self._lock:
            try:
                self._handlers.get(event_type, []).remove(handler)
                self.logger.debug(f"Unsubscribed handler {_handler_name(handler)} from {event_type.value}")
            except ValueError:
                self.logger.warning(f"Handler {_handler_name(handler)} was not subscribed to {event_type.value}")

    def unsubscribe_all(self, handler: Callable) -> None:
        """Unsubscribe a catch-all handler"""
        with self._lock:
            try:
                self._global_handlers.remove(handler)
                self.logger.debug(f"Unsubscribed global handler {_handler_name(handler)}")
            except ValueError:
                self.logger.warning(f"Global handler {_handler_name(handler)} was not subscribed")

    def publish(self, event: EventPayload) -> None:
        """Publish event to all subscribers"""
        with self._lock:
            self.logger.debug(f"Publishing event {event.event_type.value} for {event.entity_type}:{event.entity_id}")

            handlers = list(self._handlers.get(event.event_type, [])) + list(self._global_handlers)
            for handler in handlers:
                try:
                    handler(event)
                except Exception as e:
                    # A failing subscriber must not undo a committed ledger operation
                    self.logger.error(f"Error in event handler {_handler_name(handler)} for {event.event_type.value}: {e}")

    def clear(self) -> None:
        """Clear all handlers"""
        with self._lock:
            self._handlers.clear()
            self._global_handlers.clear()
            self.logger.info("All event handlers cleared")

    def get_handler_count(self, event_type: Optional[LedgerEvent] = None) -> int:
        """Get count of handlers for a specific event type or all"""
        with self._lock:
            if event_type:
                return len(self._handlers.get(event_type, []))
            total = sum(len(handlers) for handlers in self._handlers.values())
            return total + len(self._global_handlers)


class EventRecorder(EventSink):
    """Sink that keeps every published event in memory"""

    def __init__(self):
        self.events: List[EventPayload] = []

    def publish(self, event: EventPayload) -> None:
        self.events.append(event)

    def of_type(self, event_type: LedgerEvent) -> List[EventPayload]:
        return [e for e in self.events if e.event_type == event_type]


def _handler_name(handler: Callable) -> str:
    return getattr(handler, "__name__", repr(handler))


def create_ledger_event(event_type: LedgerEvent, account: str, **values: Any) -> EventPayload:
    """
    Build an event carrying the final effective values of an operation.

    Integer amounts are serialised as decimal strings so uint256 values survive
    JSON transport; None values are dropped.
    """
    data = {}
    for key, value in values.items():
        if value is None:
            continue
        if isinstance(value, int) and not isinstance(value, bool):
            data[key] = str(value)
        else:
            data[key] = value

    return EventPayload(
        event_type=event_type,
        entity_type=event_type.value.split(".")[0],
        entity_id=account,
        data=data
    )
