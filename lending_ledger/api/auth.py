"""
System wiring and caller authentication dependencies

Callers are identified by the `sub` claim of an HS256 bearer token signed with
the configured secret. Tokens are issued out of band with create_access_token.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..access import Role, RoleRegistry
from ..config import LedgerConfig, get_config
from ..events import EventDispatcher
from ..governance import Timelock
from ..ledger import LedgerAccounting
from ..transfers import InMemoryToken


class LendingSystem:
    """Lending ledger with all collaborators initialized"""

    def __init__(self, config: Optional[LedgerConfig] = None, clock=None):
        self.config = config or get_config()

        # Tokens held in custody by the ledger address
        custodian = self.config.ledger_address
        self.stable_token = InMemoryToken(self.config.stable_token_symbol, custodian)
        self.reward_token = InMemoryToken(self.config.reward_token_symbol, custodian)
        self.collateral_token = InMemoryToken(self.config.collateral_token_symbol, custodian)

        self.access = RoleRegistry(owner=self.config.owner_address)
        self.dispatcher = EventDispatcher()

        self.ledger = LedgerAccounting(
            stable_token=self.stable_token,
            reward_token=self.reward_token,
            collateral_token=self.collateral_token,
            access=self.access,
            events=self.dispatcher,
            clock=clock,
            config=self.config
        )

        self.timelock = Timelock(self.access, events=self.dispatcher, clock=clock, config=self.config)
        self.timelock.register_target("ledger", self.ledger)

        # Governance may adjust rates and fund rewards once a call matures
        owner = self.config.owner_address
        self.access.grant_role(owner, Role.RATE_MANAGER, self.timelock.address)
        self.access.grant_role(owner, Role.REWARD_DISTRIBUTOR, self.timelock.address)

    @property
    def tokens(self) -> Dict[str, InMemoryToken]:
        return {
            token.symbol: token
            for token in (self.stable_token, self.reward_token, self.collateral_token)
        }


# Global lending system instance
lending_system = LendingSystem()


def get_lending_system() -> LendingSystem:
    return lending_system


# JWT Security
security = HTTPBearer(auto_error=False)


def create_access_token(account: str, config: LedgerConfig,
                        expires_in: Optional[timedelta] = None) -> str:
    """Issue a signed bearer token identifying `account`"""
    now = datetime.now(timezone.utc)
    token_payload = {
        "sub": account,
        "iat": now,
        "exp": now + (expires_in or timedelta(hours=config.jwt_expiry_hours))
    }
    return jwt.encode(token_payload, config.jwt_secret, algorithm=config.jwt_algorithm)


def get_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    system: LendingSystem = Depends(get_lending_system)
) -> str:
    """Dependency that validates the bearer token and returns the calling account"""
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = jwt.decode(
            credentials.credentials, system.config.jwt_secret,
            algorithms=[system.config.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    account = payload.get("sub")
    if not account:
        raise HTTPException(status_code=401, detail="Invalid token")
    return account
