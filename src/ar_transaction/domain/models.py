"""Domain models for transaction results, reconciliation and idempotency."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from src.ar_common.enums import TransactionOutcome, TransactionStatus


@dataclass
class TransactionResult:
    transaction_id: str
    op: str
    status: TransactionStatus
    outcome: TransactionOutcome
    committed: list[str] = field(default_factory=list)
    attempts: int = 1
    reconciliation_ref: str | None = None
    replayed: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["outcome"] = self.outcome.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransactionResult":
        return cls(
            transaction_id=data["transaction_id"],
            op=data["op"],
            status=TransactionStatus(data["status"]),
            outcome=TransactionOutcome(data["outcome"]),
            committed=list(data.get("committed") or []),
            attempts=int(data.get("attempts", 1)),
            reconciliation_ref=data.get("reconciliation_ref"),
            replayed=bool(data.get("replayed", False)),
        )


@dataclass
class ReconciliationEntry:
    reference: str
    transaction_id: str
    op: str
    partition_id: str
    account_id: int | None   # None for auxiliary documents
    delta: int               # intended balance change
    committed: bool          # whether this partition's write landed
    reason: str
    created_at: datetime | None = None


@dataclass
class IdempotencyRecord:
    key: str
    fingerprint: str
    result: TransactionResult | None = None   # None while in flight
