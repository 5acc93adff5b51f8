"""Reconciliation log: one row per affected account of a partial commit.

Rows are append-only; an operator (or a repair job) settles them by reading
every row of a reference and re-applying or reverting the pending deltas.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.ar_transaction.domain.models import ReconciliationEntry

_INSERT_SQL = text("""
    INSERT INTO reconciliation_entries
        (reference, transaction_id, op, partition_id, account_id,
         delta, committed, reason)
    VALUES
        (:reference, :transaction_id, :op, :partition_id, :account_id,
         :delta, :committed, :reason)
""")

_LIST_BY_REFERENCE_SQL = text("""
    SELECT reference, transaction_id, op, partition_id, account_id,
           delta, committed, reason, created_at
    FROM reconciliation_entries
    WHERE reference = :reference
    ORDER BY id ASC
""")


def _row_to_entry(row: object) -> ReconciliationEntry:
    return ReconciliationEntry(
        reference=row.reference,  # type: ignore[attr-defined]
        transaction_id=row.transaction_id,  # type: ignore[attr-defined]
        op=row.op,  # type: ignore[attr-defined]
        partition_id=row.partition_id,  # type: ignore[attr-defined]
        account_id=row.account_id,  # type: ignore[attr-defined]
        delta=row.delta,  # type: ignore[attr-defined]
        committed=row.committed,  # type: ignore[attr-defined]
        reason=row.reason,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class SqlReconciliationLog:
    """PostgreSQL-backed log; owns its short transactions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(self, entries: list[ReconciliationEntry]) -> None:
        async with self._session_factory() as db, db.begin():
            for entry in entries:
                await db.execute(
                    _INSERT_SQL,
                    {
                        "reference": entry.reference,
                        "transaction_id": entry.transaction_id,
                        "op": entry.op,
                        "partition_id": entry.partition_id,
                        "account_id": entry.account_id,
                        "delta": entry.delta,
                        "committed": entry.committed,
                        "reason": entry.reason,
                    },
                )

    async def list_by_reference(self, reference: str) -> list[ReconciliationEntry]:
        async with self._session_factory() as db:
            result = await db.execute(_LIST_BY_REFERENCE_SQL, {"reference": reference})
            return [_row_to_entry(row) for row in result.fetchall()]


class InMemoryReconciliationLog:
    def __init__(self) -> None:
        self.entries: list[ReconciliationEntry] = []

    async def record(self, entries: list[ReconciliationEntry]) -> None:
        self.entries.extend(entries)

    async def list_by_reference(self, reference: str) -> list[ReconciliationEntry]:
        return [e for e in self.entries if e.reference == reference]
