"""
Ledger Accounting Module

Owns per-account Loan and Collateral records and the global accounting
aggregates. Every mutating operation runs under a non-reentrant guard,
settles lazily accrued interest first, finalises bookkeeping, and only then
calls the token collaborators (checks-effects-interactions). Any failure,
including a failed transfer, reverses the transfers already made and restores
the state captured when the operation started, so each call is all-or-nothing.
"""

import threading
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .access import AccessCheck, Role, require_any_role, require_owner
from .config import LedgerConfig, get_config
from .events import EventPayload, EventSink, LedgerEvent, create_ledger_event
from .exceptions import (
    InsufficientCollateral,
    InvalidInput,
    RepayExceedsLoan,
    ReentrantCall,
    RewardUnderflow,
)
from .fixed_point import PRECISION, add, div, mul, mul_div_down, sub
from .interest import complex_interest, reward
from .logging_config import get_logger, log_action
from .transfers import TokenTransfer


class AccountingMode(Enum):
    """
    How repayments and reward debt are booked.

    LEGACY keeps the historical accounting for parity: reward debt at loan
    origination is scaled by total_lent instead of PRECISION, and every
    repayment releases the loan's full collateral and subtracts it from
    total_collateral again.

    CORRECTED books reward debt with the same formula used for payouts and
    releases collateral in proportion to the principal repaid.
    """
    LEGACY = "legacy"
    CORRECTED = "corrected"


@dataclass
class Loan:
    """Single loan slot of an account"""
    amount: int = 0                 # principal outstanding
    interest_rate: int = 0          # annual, 1e18 = 100%
    collateral_amount: int = 0      # collateral locked against the loan
    reward_debt: int = 0            # reward share already attributed
    start_timestamp: int = 0        # accrual checkpoint

    @property
    def is_active(self) -> bool:
        return self.amount > 0

    def to_dict(self) -> Dict[str, str]:
        return {key: str(value) for key, value in asdict(self).items()}


@dataclass
class Collateral:
    """Free collateral of an account"""
    amount: int = 0
    last_update: int = 0
    accumulated_interest: int = 0

    def to_dict(self) -> Dict[str, str]:
        return {key: str(value) for key, value in asdict(self).items()}


@dataclass
class GlobalAccounting:
    """Running totals maintained incrementally by the ledger"""
    total_lent: int = 0
    total_borrowed: int = 0
    total_collateral: int = 0
    total_rewards: int = 0

    def to_dict(self) -> Dict[str, str]:
        return {key: str(value) for key, value in asdict(self).items()}


@dataclass
class ReconciliationReport:
    """Aggregates recomputed from the records versus the running totals"""
    total_lent: int
    expected_total_lent: int
    total_collateral: int
    expected_total_collateral: int

    @property
    def lent_difference(self) -> int:
        return self.total_lent - self.expected_total_lent

    @property
    def collateral_difference(self) -> int:
        return self.total_collateral - self.expected_total_collateral

    @property
    def is_balanced(self) -> bool:
        return self.lent_difference == 0 and self.collateral_difference == 0


# (loan, collateral) for one account; None when the record did not exist
_AccountSnapshot = Tuple[Optional[Loan], Optional[Collateral]]


@dataclass
class _Transfer:
    """Completed token movement of the running operation"""
    token: TokenTransfer
    direction: str  # "in" (pulled into custody) or "out" (paid out)
    account: str
    amount: int


class LedgerAccounting:
    """
    Lending ledger for loans, collateral and rewards.

    Collaborators are injected: three TokenTransfer assets (stable principal,
    reward, collateral), an AccessCheck for administrative calls and an
    EventSink that receives exactly one event per successful mutation.
    """

    def __init__(
        self,
        stable_token: TokenTransfer,
        reward_token: TokenTransfer,
        collateral_token: TokenTransfer,
        access: AccessCheck,
        events: Optional[EventSink] = None,
        clock: Optional[Callable[[], int]] = None,
        config: Optional[LedgerConfig] = None,
        accounting_mode: Optional[AccountingMode] = None
    ):
        self.config = config or get_config()
        self.stable_token = stable_token
        self.reward_token = reward_token
        self.collateral_token = collateral_token
        self.access = access
        self.events = events
        self.clock = clock or (lambda: int(time.time()))
        self.accounting_mode = accounting_mode or AccountingMode(self.config.accounting_mode)

        self.address = self.config.ledger_address
        self.collateral_annual_rate = self.config.collateral_annual_rate
        self.compounding_periods = self.config.compounding_periods

        self._loans: Dict[str, Loan] = {}
        self._collateral: Dict[str, Collateral] = {}
        self._accounting = GlobalAccounting()
        self._guard = threading.Lock()
        self._journal: List[_Transfer] = []

        self.logger = get_logger("ledger.accounting")

    # ------------------------------------------------------------------
    # Collateral
    # ------------------------------------------------------------------

    def deposit_collateral(self, account: str, amount: int) -> Collateral:
        """
        Deposit free collateral.

        Pending collateral interest is settled on the old balance before the
        deposit is added.
        """
        with self._operation("deposit_collateral", account):
            self._require_positive(amount, "amount")
            now = self._now()

            collateral = self._update_collateral_interest(account, now)
            collateral.amount = add(collateral.amount, amount)
            self._accounting.total_collateral = add(self._accounting.total_collateral, amount)

            self._pull(self.collateral_token, account, amount)

            result = replace(collateral)

        self._emit(create_ledger_event(
            LedgerEvent.COLLATERAL_DEPOSITED, account,
            amount=amount,
            collateral_balance=result.amount,
            accumulated_interest=result.accumulated_interest,
            timestamp=result.last_update
        ))
        return result

    def withdraw_collateral(self, account: str, amount: int) -> Collateral:
        """Withdraw free collateral after settling its pending interest"""
        with self._operation("withdraw_collateral", account):
            self._require_positive(amount, "amount")
            available = self._collateral[account].amount if account in self._collateral else 0
            if amount > available:
                raise InsufficientCollateral(
                    f"Cannot withdraw {amount}: only {available} collateral available for {account}"
                )
            now = self._now()

            collateral = self._update_collateral_interest(account, now)
            collateral.amount = sub(collateral.amount, amount)
            self._accounting.total_collateral = sub(self._accounting.total_collateral, amount)

            self._push(self.collateral_token, account, amount)

            result = replace(collateral)

        self._emit(create_ledger_event(
            LedgerEvent.COLLATERAL_WITHDRAWN, account,
            amount=amount,
            collateral_balance=result.amount,
            accumulated_interest=result.accumulated_interest,
            timestamp=result.last_update
        ))
        return result

    def claim_collateral_interest(self, account: str) -> int:
        """
        Pay out interest earned on free collateral.

        Returns:
            Amount of reward token paid out (may be 0)
        """
        with self._operation("claim_collateral_interest", account):
            now = self._now()

            collateral = self._update_collateral_interest(account, now)
            claimed = collateral.accumulated_interest
            collateral.accumulated_interest = 0

            if claimed > 0:
                self._push(self.reward_token, account, claimed)

        self._emit(create_ledger_event(
            LedgerEvent.COLLATERAL_INTEREST_CLAIMED, account,
            amount=claimed,
            timestamp=now
        ))
        return claimed

    def _update_collateral_interest(self, account: str, now: int) -> Collateral:
        # Accrual checkpoint: every path that reads or changes the collateral
        # balance or last_update runs this first.
        collateral = self._collateral.get(account)
        if collateral is None:
            collateral = Collateral(last_update=now)
            self._collateral[account] = collateral

        elapsed = sub(now, collateral.last_update)
        interest = complex_interest(
            collateral.amount, self.collateral_annual_rate, elapsed, self.compounding_periods
        )
        collateral.accumulated_interest = add(collateral.accumulated_interest, interest)
        collateral.last_update = now
        return collateral

    # ------------------------------------------------------------------
    # Loans
    # ------------------------------------------------------------------

    def take_loan(self, account: str, amount: int, collateral_amount: int, interest_rate: int) -> Loan:
        """
        Open (or overwrite) the account's loan.

        Collateral is pulled in and the principal paid out in the stable
        token. An existing loan in the slot is replaced, not merged.

        Args:
            account: Borrower
            amount: Principal
            collateral_amount: Collateral locked against the loan
            interest_rate: Annual rate scaled by 1e18, in (0, 1e18]

        Returns:
            Copy of the new Loan record
        """
        with self._operation("take_loan", account):
            self._require_positive(amount, "amount")
            self._require_positive(collateral_amount, "collateral_amount")
            self._require_rate(interest_rate)
            now = self._now()
            accounting = self._accounting

            if self.accounting_mode == AccountingMode.LEGACY:
                # Scaled by total_lent rather than PRECISION
                if accounting.total_lent > 0:
                    reward_debt = div(mul(amount, accounting.total_rewards), accounting.total_lent)
                else:
                    reward_debt = 0
            else:
                reward_debt = reward(amount, accounting.total_rewards)

            previous = self._loans.get(account)
            if previous is not None and previous.is_active:
                self.logger.warning(f"Overwriting active loan of {account} (outstanding {previous.amount})")

            loan = Loan(
                amount=amount,
                interest_rate=interest_rate,
                collateral_amount=collateral_amount,
                reward_debt=reward_debt,
                start_timestamp=now
            )
            self._loans[account] = loan

            accounting.total_lent = add(accounting.total_lent, amount)
            accounting.total_borrowed = add(accounting.total_borrowed, amount)
            accounting.total_collateral = add(accounting.total_collateral, collateral_amount)

            self._pull(self.collateral_token, account, collateral_amount)
            self._push(self.stable_token, account, amount)

            result = replace(loan)

        self._emit(create_ledger_event(
            LedgerEvent.LOAN_TAKEN, account,
            amount=result.amount,
            collateral_amount=result.collateral_amount,
            interest_rate=result.interest_rate,
            reward_debt=result.reward_debt,
            timestamp=result.start_timestamp
        ))
        return result

    def repay_loan(self, account: str, amount: int) -> Loan:
        """
        Repay principal plus the interest accrued since the last checkpoint.

        The borrower pays `amount + interest` in the stable token, receives the
        reward accrued on the loan, and gets collateral back according to the
        accounting mode. The interest clock restarts at every repayment.

        Returns:
            Copy of the updated Loan record
        """
        with self._operation("repay_loan", account):
            self._require_positive(amount, "amount")
            loan = self._loans.get(account)
            outstanding = loan.amount if loan is not None else 0
            if amount > outstanding:
                raise RepayExceedsLoan(
                    f"Repayment {amount} exceeds outstanding principal {outstanding} for {account}"
                )
            now = self._now()
            accounting = self._accounting

            interest = complex_interest(
                loan.amount, loan.interest_rate,
                sub(now, loan.start_timestamp), self.compounding_periods
            )

            accrued_reward = reward(loan.amount, accounting.total_rewards)
            if loan.reward_debt > accrued_reward:
                raise RewardUnderflow(
                    f"Reward debt {loan.reward_debt} exceeds accrued reward {accrued_reward} for {account}"
                )
            payout_reward = accrued_reward - loan.reward_debt

            if self.accounting_mode == AccountingMode.LEGACY:
                # Full collateral on every call, record left untouched
                released = loan.collateral_amount
            else:
                if amount == loan.amount:
                    released = loan.collateral_amount
                else:
                    released = mul_div_down(loan.collateral_amount, amount, loan.amount)
                loan.collateral_amount = sub(loan.collateral_amount, released)

            loan.amount = sub(loan.amount, amount)
            loan.reward_debt = reward(loan.amount, accounting.total_rewards)
            loan.start_timestamp = now

            accounting.total_lent = sub(accounting.total_lent, amount)
            accounting.total_borrowed = sub(accounting.total_borrowed, amount)
            accounting.total_collateral = sub(accounting.total_collateral, released)

            self._pull(self.stable_token, account, add(amount, interest))
            if payout_reward > 0:
                self._push(self.reward_token, account, payout_reward)
            if released > 0:
                self._push(self.collateral_token, account, released)

            result = replace(loan)

        self._emit(create_ledger_event(
            LedgerEvent.LOAN_REPAID, account,
            amount=amount,
            interest=interest,
            reward_paid=payout_reward,
            collateral_released=released,
            remaining_amount=result.amount,
            timestamp=now
        ))
        return result

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def set_tokens(
        self,
        caller: str,
        stable_token: Optional[TokenTransfer] = None,
        reward_token: Optional[TokenTransfer] = None,
        collateral_token: Optional[TokenTransfer] = None
    ) -> None:
        """Replace one or more token collaborators (owner only)"""
        with self._operation("set_tokens"):
            require_owner(self.access, caller)
            if stable_token is None and reward_token is None and collateral_token is None:
                raise InvalidInput("At least one token must be provided")
            now = self._now()

            if stable_token is not None:
                self.stable_token = stable_token
            if reward_token is not None:
                self.reward_token = reward_token
            if collateral_token is not None:
                self.collateral_token = collateral_token

        self._emit(create_ledger_event(
            LedgerEvent.TOKENS_UPDATED, caller,
            stable_token=self.stable_token.symbol,
            reward_token=self.reward_token.symbol,
            collateral_token=self.collateral_token.symbol,
            timestamp=now
        ))

    def set_interest_rate(self, caller: str, account: str, interest_rate: int) -> Loan:
        """Override the rate of an active loan (owner or RATE_MANAGER)"""
        with self._operation("set_interest_rate", account):
            require_any_role(self.access, caller, [Role.RATE_MANAGER, Role.ADMIN])
            self._require_rate(interest_rate)
            loan = self._loans.get(account)
            if loan is None or not loan.is_active:
                raise InvalidInput(f"No active loan for {account}")

            now = self._now()
            previous_rate = loan.interest_rate
            loan.interest_rate = interest_rate
            result = replace(loan)

        self._emit(create_ledger_event(
            LedgerEvent.INTEREST_RATE_UPDATED, account,
            previous_rate=previous_rate,
            interest_rate=interest_rate,
            updated_by=caller,
            timestamp=now
        ))
        return result

    def distribute_rewards(self, caller: str, amount: int) -> GlobalAccounting:
        """Fund the reward pool from the caller (owner or REWARD_DISTRIBUTOR)"""
        with self._operation("distribute_rewards"):
            require_any_role(self.access, caller, [Role.REWARD_DISTRIBUTOR, Role.ADMIN])
            self._require_positive(amount, "amount")
            now = self._now()

            self._accounting.total_rewards = add(self._accounting.total_rewards, amount)
            self._pull(self.reward_token, caller, amount)

            result = replace(self._accounting)

        self._emit(create_ledger_event(
            LedgerEvent.REWARDS_DISTRIBUTED, caller,
            amount=amount,
            total_rewards=result.total_rewards,
            timestamp=now
        ))
        return result

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get_loan_details(self, account: str) -> Loan:
        """Copy of the account's loan (all zero when none was ever taken)"""
        loan = self._loans.get(account)
        return replace(loan) if loan is not None else Loan()

    def get_collateral_details(self, account: str) -> Collateral:
        """Copy of the account's free collateral record"""
        collateral = self._collateral.get(account)
        return replace(collateral) if collateral is not None else Collateral()

    def calculate_total_debt(self, account: str) -> int:
        """
        Principal plus interest accrued up to now.

        Uses the same formula and inputs as repay_loan, so it equals what a
        full repayment issued immediately would pull in.
        """
        loan = self._loans.get(account)
        if loan is None:
            return 0
        elapsed = sub(self._now(), loan.start_timestamp)
        interest = complex_interest(loan.amount, loan.interest_rate, elapsed, self.compounding_periods)
        return add(loan.amount, interest)

    def get_pending_collateral_interest(self, account: str) -> int:
        """Accumulated plus not yet checkpointed collateral interest"""
        collateral = self._collateral.get(account)
        if collateral is None:
            return 0
        elapsed = sub(self._now(), collateral.last_update)
        pending = complex_interest(
            collateral.amount, self.collateral_annual_rate, elapsed, self.compounding_periods
        )
        return add(collateral.accumulated_interest, pending)

    def get_accounting(self) -> GlobalAccounting:
        """Snapshot of the global aggregates"""
        return replace(self._accounting)

    def accounts(self) -> List[str]:
        """Accounts holding a loan or collateral record"""
        return sorted(set(self._loans) | set(self._collateral))

    def reconcile(self) -> ReconciliationReport:
        """
        Recompute total_lent and total_collateral from the records.

        In LEGACY mode the report is expected to drift after partial
        repayments or overwritten loans; the running totals are never
        corrected here.
        """
        expected_lent = sum(loan.amount for loan in self._loans.values())
        expected_collateral = (
            sum(c.amount for c in self._collateral.values())
            + sum(loan.collateral_amount for loan in self._loans.values() if loan.is_active)
        )
        return ReconciliationReport(
            total_lent=self._accounting.total_lent,
            expected_total_lent=expected_lent,
            total_collateral=self._accounting.total_collateral,
            expected_total_collateral=expected_collateral
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextmanager
    def _operation(self, name: str, *accounts: str) -> Iterator[None]:
        """
        Run one top-level mutating operation.

        Rejects re-entry, snapshots every record the operation may touch plus
        the aggregates and token bindings, and restores them on any exception.
        Transfers that completed before the failure are reversed in LIFO
        order first.
        """
        if not self._guard.acquire(blocking=False):
            raise ReentrantCall(f"{name} called while another ledger operation is in progress")
        snapshot = self._snapshot(accounts)
        self._journal = []
        try:
            yield
        except Exception as e:
            self._reverse_transfers(name)
            self._restore(snapshot)
            log_action(
                self.logger, "warning", f"{name} rejected: {e}",
                account=accounts[0] if accounts else None, action=name,
                extra={"error": type(e).__name__}
            )
            raise
        finally:
            self._journal = []
            self._guard.release()

    def _pull(self, token: TokenTransfer, account: str, amount: int) -> None:
        token.transfer_in(account, amount)
        self._journal.append(_Transfer(token, "in", account, amount))

    def _push(self, token: TokenTransfer, account: str, amount: int) -> None:
        token.transfer_out(account, amount)
        self._journal.append(_Transfer(token, "out", account, amount))

    def _reverse_transfers(self, name: str) -> None:
        """
        Undo the completed transfers of a failing operation.

        A pull is returned with transfer_out. A payout is reclaimed with
        transfer_in, which needs the account's allowance; a reversal that
        fails is logged at error level and the remaining ones still run, so
        the operation's own error is what reaches the caller.
        """
        while self._journal:
            transfer = self._journal.pop()
            try:
                if transfer.direction == "in":
                    transfer.token.transfer_out(transfer.account, transfer.amount)
                else:
                    transfer.token.transfer_in(transfer.account, transfer.amount)
            except Exception as e:
                log_action(
                    self.logger, "error",
                    f"{name}: could not reverse {transfer.token.symbol} transfer: {e}",
                    account=transfer.account, action=name,
                    resource=f"token:{transfer.token.symbol}",
                    extra={"direction": transfer.direction, "amount": str(transfer.amount)}
                )

    def _snapshot(self, accounts: Tuple[str, ...]):
        records: Dict[str, _AccountSnapshot] = {}
        for account in accounts:
            loan = self._loans.get(account)
            collateral = self._collateral.get(account)
            records[account] = (
                replace(loan) if loan is not None else None,
                replace(collateral) if collateral is not None else None,
            )
        tokens = (self.stable_token, self.reward_token, self.collateral_token)
        return records, replace(self._accounting), tokens

    def _restore(self, snapshot) -> None:
        records, accounting, tokens = snapshot
        for account, (loan, collateral) in records.items():
            if loan is None:
                self._loans.pop(account, None)
            else:
                self._loans[account] = loan
            if collateral is None:
                self._collateral.pop(account, None)
            else:
                self._collateral[account] = collateral
        self._accounting = accounting
        self.stable_token, self.reward_token, self.collateral_token = tokens

    def _emit(self, event: EventPayload) -> None:
        if self.config.enable_event_logging:
            log_action(
                self.logger, "info", f"Ledger event: {event.event_type.value}",
                account=event.entity_id, action=event.event_type.value,
                resource=f"{event.entity_type}:{event.entity_id}",
                extra=event.data
            )
        if self.events is None:
            return
        try:
            self.events.publish(event)
        except Exception as e:
            # The operation is already committed
            self.logger.error(f"Event sink failed for {event.event_type.value}: {e}")

    def _now(self) -> int:
        return int(self.clock())

    @staticmethod
    def _require_positive(value: int, name: str) -> None:
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise InvalidInput(f"{name} must be a positive integer, got {value!r}")

    @staticmethod
    def _require_rate(interest_rate: int) -> None:
        if not isinstance(interest_rate, int) or isinstance(interest_rate, bool):
            raise InvalidInput(f"interest_rate must be an integer, got {interest_rate!r}")
        if interest_rate <= 0 or interest_rate > PRECISION:
            raise InvalidInput(f"interest_rate must be in (0, {PRECISION}], got {interest_rate}")
