"""Account storage behind a small keyed-update contract."""

from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, TypeVar

from koloni.models import Account

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LedgerStore(ABC):
    """Keyed account storage.

    ``update`` is the only way ledger operations touch an account: it must run
    ``fn`` with exclusive access to that user's account and persist the result
    only if ``fn`` returns normally.
    """

    @abstractmethod
    def get(self, user_id: str) -> Account | None:
        ...

    @abstractmethod
    def put(self, account: Account) -> None:
        ...

    @abstractmethod
    def update(
        self,
        user_id: str,
        fn: Callable[[Account], T],
        factory: Callable[[str], Account],
    ) -> T:
        ...


class InMemoryLedgerStore(LedgerStore):
    """Process-local store with one lock per user id.

    Not durable: accounts live only as long as the process.
    """

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = self._locks[user_id] = threading.Lock()
            return lock

    def get(self, user_id: str) -> Account | None:
        with self._lock_for(user_id):
            account = self._accounts.get(user_id)
            return copy.deepcopy(account) if account is not None else None

    def put(self, account: Account) -> None:
        with self._lock_for(account.user_id):
            self._accounts[account.user_id] = copy.deepcopy(account)

    def update(
        self,
        user_id: str,
        fn: Callable[[Account], T],
        factory: Callable[[str], Account],
    ) -> T:
        with self._lock_for(user_id):
            current = self._accounts.get(user_id)
            if current is None:
                working = factory(user_id)
                logger.info("Created account user=%s balance=%d", user_id, working.balance)
            else:
                working = copy.deepcopy(current)
            # fn works on a copy so a raised error leaves the stored account untouched
            result = fn(working)
            self._accounts[user_id] = working
            return result

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._accounts)
