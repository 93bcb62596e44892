"""
Token Transfer Module

Asset-movement collaborator for the ledger. The ledger only sees the
TokenTransfer interface; InMemoryToken is a balance/allowance book bound to a
single custody account (the ledger's address) used for testing and for the
bundled API.
"""

import logging
from abc import ABC, abstractmethod
from threading import RLock
from typing import Callable, Dict, Optional, Tuple

from .exceptions import InvalidInput, TransferFailed
from .logging_config import log_action


class TokenTransfer(ABC):
    """Capability interface for moving one asset in and out of custody"""

    symbol: str = ""

    @abstractmethod
    def transfer_in(self, from_account: str, amount: int) -> None:
        """Pull `amount` from `from_account` into custody"""
        pass

    @abstractmethod
    def transfer_out(self, to_account: str, amount: int) -> None:
        """Pay `amount` out of custody to `to_account`"""
        pass


# Callback signature: (direction, counterparty, amount)
TransferHook = Callable[[str, str, int], None]


class InMemoryToken(TokenTransfer):
    """
    In-memory token with balances and allowances.

    transfer_in spends the allowance `from_account` granted to the custodian,
    so a pull needs both balance and approval, as on a real token.
    """

    def __init__(self, symbol: str, custodian: str = "ledger",
                 on_transfer: Optional[TransferHook] = None):
        self.symbol = symbol
        self.custodian = custodian
        self.on_transfer = on_transfer
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}
        self._lock = RLock()
        self.logger = logging.getLogger("ledger.tokens")

    # Book keeping

    def mint(self, account: str, amount: int) -> None:
        """Create `amount` new units for `account`"""
        if amount < 0:
            raise InvalidInput(f"Cannot mint a negative amount: {amount}")
        with self._lock:
            self._balances[account] = self._balances.get(account, 0) + amount

    def approve(self, owner: str, spender: str, amount: int) -> None:
        """Set the allowance `owner` grants `spender`"""
        if amount < 0:
            raise InvalidInput(f"Allowance cannot be negative: {amount}")
        with self._lock:
            self._allowances[(owner, spender)] = amount

    def balance_of(self, account: str) -> int:
        with self._lock:
            return self._balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        with self._lock:
            return self._allowances.get((owner, spender), 0)

    # TokenTransfer

    def transfer_in(self, from_account: str, amount: int) -> None:
        with self._lock:
            self._move(from_account, self.custodian, amount, spender=self.custodian)
        self._notify("in", from_account, amount)

    def transfer_out(self, to_account: str, amount: int) -> None:
        with self._lock:
            self._move(self.custodian, to_account, amount)
        self._notify("out", to_account, amount)

    def _move(self, source: str, destination: str, amount: int, spender: Optional[str] = None) -> None:
        if amount < 0:
            raise InvalidInput(f"Transfer amount cannot be negative: {amount}")

        balance = self._balances.get(source, 0)
        if balance < amount:
            raise TransferFailed(
                f"{self.symbol}: insufficient balance for {source} ({balance} < {amount})"
            )

        if spender is not None:
            allowed = self._allowances.get((source, spender), 0)
            if allowed < amount:
                raise TransferFailed(
                    f"{self.symbol}: insufficient allowance from {source} to {spender} ({allowed} < {amount})"
                )
            self._allowances[(source, spender)] = allowed - amount

        self._balances[source] = balance - amount
        self._balances[destination] = self._balances.get(destination, 0) + amount

        log_action(
            self.logger, "debug", f"{self.symbol} transfer",
            action="transfer", resource=f"token:{self.symbol}",
            extra={"from": source, "to": destination, "amount": str(amount)}
        )

    def _notify(self, direction: str, counterparty: str, amount: int) -> None:
        if self.on_transfer is not None:
            self.on_transfer(direction, counterparty, amount)
