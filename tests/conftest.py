"""
conftest.py - Shared pytest fixtures for lending ledger tests

Provides:
- A controllable clock
- Funded in-memory tokens bound to the ledger custody address
- Ledgers in both accounting modes with an event recorder attached
"""

import pytest

from lending_ledger.access import Role, RoleRegistry
from lending_ledger.config import LedgerConfig
from lending_ledger.events import EventRecorder
from lending_ledger.ledger import AccountingMode, LedgerAccounting
from lending_ledger.transfers import InMemoryToken


T0 = 1_700_000_000
UNLIMITED = 10 ** 40
LEDGER = "ledger"
OWNER = "owner"


class FakeClock:
    """Manually advanced UNIX-seconds clock"""

    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


def fund(token: InMemoryToken, account: str, amount: int = 10 ** 30) -> None:
    """Mint to an account and approve the ledger to pull from it"""
    token.mint(account, amount)
    token.approve(account, token.custodian, UNLIMITED)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tokens():
    stable = InMemoryToken("USDL", LEDGER)
    reward = InMemoryToken("RWD", LEDGER)
    collateral = InMemoryToken("COLL", LEDGER)

    # Ledger liquidity for principal and interest payouts
    stable.mint(LEDGER, 10 ** 30)
    reward.mint(LEDGER, 10 ** 30)

    for account in ("alice", "bob"):
        fund(stable, account)
        fund(collateral, account)
    fund(reward, OWNER)

    return {"stable": stable, "reward": reward, "collateral": collateral}


@pytest.fixture
def access():
    return RoleRegistry(owner=OWNER)


@pytest.fixture
def recorder():
    return EventRecorder()


def build_ledger(tokens, access, recorder, clock, mode: AccountingMode) -> LedgerAccounting:
    return LedgerAccounting(
        stable_token=tokens["stable"],
        reward_token=tokens["reward"],
        collateral_token=tokens["collateral"],
        access=access,
        events=recorder,
        clock=clock,
        config=LedgerConfig(accounting_mode=mode.value, ledger_address=LEDGER),
        accounting_mode=mode
    )


@pytest.fixture
def ledger(tokens, access, recorder, clock):
    """Ledger in LEGACY (parity) mode"""
    return build_ledger(tokens, access, recorder, clock, AccountingMode.LEGACY)


@pytest.fixture
def corrected_ledger(tokens, access, recorder, clock):
    """Ledger in CORRECTED mode"""
    return build_ledger(tokens, access, recorder, clock, AccountingMode.CORRECTED)


@pytest.fixture
def rate_manager(access):
    access.grant_role(OWNER, Role.RATE_MANAGER, "carol")
    return "carol"
