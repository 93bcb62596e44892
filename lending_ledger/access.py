"""
Access Control Module

Ownership and role checks gating administrative ledger operations. The ledger
and the timelock depend on the AccessCheck interface only; RoleRegistry is the
in-memory implementation.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from threading import RLock
from typing import Dict, Iterable, Set

from .exceptions import Unauthorized
from .logging_config import log_action


class Role(Enum):
    """Roles recognised by the ledger and the timelock"""
    ADMIN = "admin"
    RATE_MANAGER = "rate_manager"
    REWARD_DISTRIBUTOR = "reward_distributor"
    PROPOSER = "proposer"
    EXECUTOR = "executor"
    CANCELLER = "canceller"


class AccessCheck(ABC):
    """Capability interface for authorization decisions"""

    @abstractmethod
    def is_owner(self, caller: str) -> bool:
        """Check if caller owns the system"""
        pass

    @abstractmethod
    def has_role(self, role: Role, caller: str) -> bool:
        """Check if caller holds a role"""
        pass


def require_owner(access: AccessCheck, caller: str) -> None:
    """Raise Unauthorized unless caller is the owner"""
    if not access.is_owner(caller):
        raise Unauthorized(f"{caller} is not the owner")


def require_any_role(access: AccessCheck, caller: str, roles: Iterable[Role],
                     allow_owner: bool = True) -> None:
    """Raise Unauthorized unless caller holds one of `roles` (or is the owner)"""
    roles = list(roles)
    if allow_owner and access.is_owner(caller):
        return
    if any(access.has_role(role, caller) for role in roles):
        return
    names = ", ".join(role.value for role in roles)
    raise Unauthorized(f"{caller} lacks required role ({names})")


class RoleRegistry(AccessCheck):
    """Owner plus role membership sets"""

    def __init__(self, owner: str):
        self._owner = owner
        self._members: Dict[Role, Set[str]] = {role: set() for role in Role}
        self._lock = RLock()
        self.logger = logging.getLogger("ledger.access")

    @property
    def owner(self) -> str:
        return self._owner

    def is_owner(self, caller: str) -> bool:
        return caller == self._owner

    def has_role(self, role: Role, caller: str) -> bool:
        with self._lock:
            return caller in self._members[role]

    def grant_role(self, caller: str, role: Role, account: str) -> None:
        """Grant a role (owner or ADMIN only)"""
        require_any_role(self, caller, [Role.ADMIN])
        with self._lock:
            self._members[role].add(account)
        log_action(
            self.logger, "info", f"Role granted: {role.value}",
            account=account, action="grant_role", resource=f"role:{role.value}",
            extra={"granted_by": caller}
        )

    def revoke_role(self, caller: str, role: Role, account: str) -> None:
        """Revoke a role (owner or ADMIN only)"""
        require_any_role(self, caller, [Role.ADMIN])
        with self._lock:
            self._members[role].discard(account)
        log_action(
            self.logger, "info", f"Role revoked: {role.value}",
            account=account, action="revoke_role", resource=f"role:{role.value}",
            extra={"revoked_by": caller}
        )

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        """Hand ownership to another account (owner only)"""
        require_owner(self, caller)
        previous = self._owner
        self._owner = new_owner
        log_action(
            self.logger, "warning", "Ownership transferred",
            account=new_owner, action="transfer_ownership", resource="ownership",
            extra={"previous_owner": previous}
        )

    def members(self, role: Role) -> Set[str]:
        with self._lock:
            return set(self._members[role])
