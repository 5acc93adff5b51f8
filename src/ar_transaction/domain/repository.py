"""Repository Protocols: dependency inversion for testability.

Unit tests inject in-memory implementations that conform to these Protocols.
Infrastructure layer provides the PostgreSQL / Redis implementations.
"""

from typing import Protocol

from src.ar_transaction.domain.models import (
    IdempotencyRecord,
    ReconciliationEntry,
    TransactionResult,
)


class ReconciliationLogProtocol(Protocol):
    async def record(self, entries: list[ReconciliationEntry]) -> None: ...

    async def list_by_reference(self, reference: str) -> list[ReconciliationEntry]: ...


class IdempotencyStoreProtocol(Protocol):
    async def reserve(self, key: str, fingerprint: str) -> IdempotencyRecord | None:
        """Claim key. Returns None if claimed, else the existing record."""
        ...

    async def complete(self, key: str, fingerprint: str, result: TransactionResult) -> None: ...

    async def release(self, key: str) -> None: ...
