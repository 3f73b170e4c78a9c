"""
In-memory fungible token ledger
-------------------------------

Integer balances and allowances keyed by address, with the usual
transfer / approve / transfer_from semantics and a fixed number of decimals.
Used by the funding round for contributions, claims and withdrawals when no
external ledger is wired in, and by the tests.

Amounts are base units (no floats). Every debit checks the balance (and the
allowance for `transfer_from`) before anything moves, so a failed call leaves
the ledger untouched.

Concurrency: a coarse `threading.RLock` protects mutating methods.
"""

from __future__ import annotations

import logging
from threading import RLock
from typing import Dict, Tuple

from ..errors import LedgerError

log = logging.getLogger(__name__)

Amount = int


def _ensure_nonneg(x: int, name: str) -> None:
    if isinstance(x, bool) or not isinstance(x, int):
        raise LedgerError(f"{name} must be an integer", details={"got": repr(x)})
    if x < 0:
        raise LedgerError(f"{name} must be non-negative, got {x}")


class InMemoryToken:
    def __init__(self, decimals: int = 18, *, symbol: str = "TKN") -> None:
        _ensure_nonneg(decimals, "decimals")
        self._decimals = decimals
        self.symbol = symbol
        self._balances: Dict[str, Amount] = {}
        self._allowances: Dict[Tuple[str, str], Amount] = {}
        self._total_supply: Amount = 0
        self._lock = RLock()

    @property
    def decimals(self) -> int:
        return self._decimals

    @property
    def total_supply(self) -> Amount:
        return self._total_supply

    def balance_of(self, account: str) -> Amount:
        return self._balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> Amount:
        return self._allowances.get((owner, spender), 0)

    # --- mutation --------------------------------------------------------

    def mint(self, to: str, amount: Amount) -> None:
        _ensure_nonneg(amount, "amount")
        with self._lock:
            self._balances[to] = self.balance_of(to) + amount
            self._total_supply += amount
        log.debug("%s mint %d → %s", self.symbol, amount, to)

    def approve(self, owner: str, spender: str, amount: Amount) -> None:
        _ensure_nonneg(amount, "amount")
        with self._lock:
            self._allowances[(owner, spender)] = amount

    def transfer(self, sender: str, to: str, amount: Amount) -> None:
        _ensure_nonneg(amount, "amount")
        with self._lock:
            self._move(sender, to, amount)

    def transfer_from(self, spender: str, owner: str, to: str, amount: Amount) -> None:
        _ensure_nonneg(amount, "amount")
        with self._lock:
            allowed = self.allowance(owner, spender)
            if allowed < amount:
                raise LedgerError(
                    "insufficient allowance",
                    details={"owner": owner, "spender": spender, "allowance": allowed, "amount": amount},
                )
            self._move(owner, to, amount)
            self._allowances[(owner, spender)] = allowed - amount

    def _move(self, sender: str, to: str, amount: Amount) -> None:
        have = self.balance_of(sender)
        if have < amount:
            raise LedgerError(
                f"insufficient balance: have {have}, need {amount}",
                details={"account": sender},
            )
        self._balances[sender] = have - amount
        self._balances[to] = self.balance_of(to) + amount
        log.debug("%s transfer %d %s → %s", self.symbol, amount, sender, to)


__all__ = ["InMemoryToken"]
