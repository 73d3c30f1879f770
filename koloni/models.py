"""Data models for the token ledger and content dispatchers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

HISTORY_LIMIT = 20
REPORT_TRANSACTION_LIMIT = 10


def utc_now_iso() -> str:
    """Current UTC time as ``2024-01-01T12:00:00.000Z``."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class LedgerAction(str, Enum):
    CHECK = "check"
    DEDUCT = "deduct"
    ADD = "add"
    BALANCE = "balance"


class TransactionType(str, Enum):
    ADD = "add"
    DEDUCT = "deduct"


class ContentFormat(str, Enum):
    EMU = "emu"
    LONGCAT = "longcat"


class ExportPlatform(str, Enum):
    INSTAGRAM = "instagram"
    YOUTUBE = "youtube"


class ProviderName(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"


# Per-format policy: token cost, option defaults and sampling parameters.
FORMAT_CONFIG: dict[str, dict[str, Any]] = {
    "emu": {
        "cost": 15,
        "options": {"tone": "engaging", "length": "short"},
        "temperature": 0.7,
        "max_tokens": 500,
    },
    "longcat": {
        "cost": 10,
        "options": {"style": "creative", "duration": "medium"},
        "temperature": 0.8,
        "max_tokens": 1000,
    },
}


@dataclass
class Transaction:
    type: TransactionType
    amount: int
    balance_after: int
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "amount": self.amount,
            "timestamp": self.timestamp,
            "balanceAfter": self.balance_after,
        }


@dataclass
class Account:
    """Per-user balance and append-only transaction history."""

    user_id: str
    balance: int
    created_at: str = field(default_factory=utc_now_iso)
    last_updated: str = ""
    transactions: list[Transaction] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.last_updated:
            self.last_updated = self.created_at

    def record(self, kind: TransactionType, amount: int) -> Transaction:
        """Apply a signed balance change and append the matching transaction."""
        if kind is TransactionType.ADD:
            self.balance += amount
        else:
            self.balance -= amount
        txn = Transaction(type=kind, amount=amount, balance_after=self.balance)
        self.last_updated = txn.timestamp
        self.transactions.append(txn)
        return txn

    def recent_transactions(self, limit: int = REPORT_TRANSACTION_LIMIT) -> list[Transaction]:
        """The last ``limit`` transactions, oldest first."""
        return self.transactions[-limit:] if limit > 0 else []

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "balance": self.balance,
            "createdAt": self.created_at,
            "lastUpdated": self.last_updated,
            "transactions": [t.to_dict() for t in self.transactions],
        }


@dataclass
class GenerationRequest:
    format: str
    prompt: str
    user_id: str
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class GenerationResult:
    format: ContentFormat
    content: str
    provider: str
    tokens_used: int
    options: dict[str, Any] = field(default_factory=dict)
    charged: bool = True
    balance: int | None = None
    generation_time_s: float = 0.0
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        metadata: dict[str, Any] = {"format": self.format.value}
        metadata.update(self.options)
        metadata.update({
            "timestamp": self.timestamp,
            "provider": self.provider,
            "tokensUsed": self.tokens_used,
            "charged": self.charged,
            "generationTimeS": self.generation_time_s,
        })
        return {
            "success": True,
            "content": self.content,
            "metadata": metadata,
        }


@dataclass
class HistoryEntry:
    format: str
    prompt: str
    content: str
    timestamp: str = field(default_factory=utc_now_iso)


@dataclass
class GenerationHistory:
    """Client-side log of recent generations, newest first."""

    entries: list[HistoryEntry] = field(default_factory=list)
    limit: int = HISTORY_LIMIT

    def add(self, entry: HistoryEntry) -> None:
        self.entries.insert(0, entry)
        del self.entries[self.limit:]

    def __len__(self) -> int:
        return len(self.entries)

    def to_records(self) -> list[dict[str, Any]]:
        return [
            {"format": e.format, "prompt": e.prompt, "content": e.content, "timestamp": e.timestamp}
            for e in self.entries
        ]
