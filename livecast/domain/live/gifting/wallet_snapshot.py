"""Locally cached coin balance.

Advisory only: it gates the "can afford" decision. The wallet ledger is the
authority, and an authoritative refresh overwrites whatever is cached here,
including a local debit that has not settled yet (last write wins).
"""

from __future__ import annotations

from loguru import logger


class WalletSnapshot:
    def __init__(self, balance: int = 0):
        self._balance = max(0, int(balance))

    @property
    def balance(self) -> int:
        return self._balance

    def debit(self, amount: int) -> int:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        if amount > self._balance:
            raise ValueError(f"debit {amount} exceeds cached balance {self._balance}")
        self._balance -= amount
        return self._balance

    def credit(self, amount: int) -> int:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        self._balance += amount
        return self._balance

    def refresh(self, balance: int) -> int:
        if balance != self._balance:
            logger.debug("Wallet snapshot refreshed {} -> {}", self._balance, balance)
        self._balance = max(0, int(balance))
        return self._balance
