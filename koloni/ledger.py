"""Token ledger: balance checks, deductions, top-ups and reports per user."""

from __future__ import annotations

import logging
from typing import Any

from koloni.config import DEFAULT_TOKENS
from koloni.errors import InsufficientBalance, InvalidAction, InvalidAmount, MissingParameter
from koloni.models import (
    Account,
    LedgerAction,
    REPORT_TRANSACTION_LIMIT,
    TransactionType,
)
from koloni.store import InMemoryLedgerStore, LedgerStore

logger = logging.getLogger(__name__)


def _require_user(user_id: Any) -> str:
    if not isinstance(user_id, str) or not user_id.strip():
        raise MissingParameter("Missing required parameter: userId")
    return user_id


def _require_amount(amount: Any, label: str) -> int:
    # bool is an int subclass; True must not count as one token
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(f"Invalid {label} amount")
    return amount


class TokenLedger:
    """Per-user token accounting on top of a :class:`LedgerStore`.

    Every operation is a single ``store.update`` call, so it observes and
    produces only whole account states.
    """

    def __init__(
        self,
        store: LedgerStore | None = None,
        default_tokens: int = DEFAULT_TOKENS,
    ) -> None:
        self.store = store if store is not None else InMemoryLedgerStore()
        self.default_tokens = default_tokens

    def _new_account(self, user_id: str) -> Account:
        return Account(user_id=user_id, balance=self.default_tokens)

    def check(self, user_id: str, cost: int | None = None) -> dict[str, Any]:
        """Report whether the user can afford ``cost`` without changing anything."""
        user_id = _require_user(user_id)
        required = cost or 0
        if isinstance(required, bool) or not isinstance(required, int):
            raise InvalidAmount("Invalid cost amount")
        balance = self.store.update(user_id, lambda acct: acct.balance, self._new_account)
        return {
            "sufficient": balance >= required,
            "balance": balance,
            "required": required,
        }

    def deduct(self, user_id: str, cost: int) -> dict[str, Any]:
        user_id = _require_user(user_id)
        cost = _require_amount(cost, "cost")

        def apply(acct: Account) -> int:
            if acct.balance < cost:
                raise InsufficientBalance(balance=acct.balance, required=cost)
            return acct.record(TransactionType.DEDUCT, cost).balance_after

        try:
            balance = self.store.update(user_id, apply, self._new_account)
        except InsufficientBalance as exc:
            logger.warning(
                "Deduct rejected user=%s cost=%d balance=%d", user_id, cost, exc.balance
            )
            raise
        logger.info("Deducted %d tokens user=%s balance=%d", cost, user_id, balance)
        return {"success": True, "balance": balance, "deducted": cost}

    def add(self, user_id: str, amount: int) -> dict[str, Any]:
        user_id = _require_user(user_id)
        amount = _require_amount(amount, "add")
        balance = self.store.update(
            user_id,
            lambda acct: acct.record(TransactionType.ADD, amount).balance_after,
            self._new_account,
        )
        logger.info("Added %d tokens user=%s balance=%d", amount, user_id, balance)
        return {"success": True, "balance": balance, "added": amount}

    def report(self, user_id: str) -> dict[str, Any]:
        """Current balance plus the last ten transactions, oldest first."""
        user_id = _require_user(user_id)

        def snapshot(acct: Account) -> dict[str, Any]:
            return {
                "balance": acct.balance,
                "transactions": [
                    t.to_dict() for t in acct.recent_transactions(REPORT_TRANSACTION_LIMIT)
                ],
            }

        return self.store.update(user_id, snapshot, self._new_account)

    def balance(self, user_id: str) -> int:
        return self.report(user_id)["balance"]

    def apply(self, action: str, user_id: str, cost: Any = None) -> dict[str, Any]:
        """Run a token-manager action by name."""
        try:
            parsed = LedgerAction(action)
        except ValueError:
            raise InvalidAction("Invalid action. Use: check, deduct, add, or balance") from None

        if parsed is LedgerAction.CHECK:
            return self.check(user_id, cost)
        if parsed is LedgerAction.DEDUCT:
            return self.deduct(user_id, cost)
        if parsed is LedgerAction.ADD:
            return self.add(user_id, cost)
        return self.report(user_id)
