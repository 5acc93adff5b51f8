"""Test helpers: document builders, fault-injecting backend, service wiring."""

from collections.abc import Awaitable, Callable
from typing import Any

from src.ar_common.errors import PartitionUnavailableError
from src.ar_ledger.application.aggregator import LedgerAggregator
from src.ar_partition.application.handle import PartitionLocks
from src.ar_partition.domain.models import PartitionDocument
from src.ar_partition.infrastructure.memory import InMemoryPartitionBackend
from src.ar_registry.application.reader import RegistryReader
from src.ar_registry.application.service import RegistryService
from src.ar_transaction.application.coordinator import TransactionCoordinator
from src.ar_transaction.domain.repository import IdempotencyStoreProtocol
from src.ar_transaction.infrastructure.reconciliation import InMemoryReconciliationLog

P1 = "part-1"
P2 = "part-2"
GROUPS = "groups-doc"
BOARDS = {"donated": "board-donated", "raised": "board-raised", "wins": "board-wins"}


def account_doc(account_id: int, username: str | None = None, balance: int = 0, **extra: Any) -> dict[str, Any]:
    return {"id": account_id, "username": username or f"user{account_id}", "authTokens": balance, **extra}


def partition(*accounts: dict[str, Any]) -> dict[str, Any]:
    return {"accounts": list(accounts)}


class FlakyBackend:
    """Wraps InMemoryPartitionBackend with injectable failures and churn.

    fail_fetch / fail_store: partitions whose reads / writes raise
    PartitionUnavailableError.
    churn(pid, times): before each of the next `times` reads of pid, another
    writer bumps the document, so any handle checked out earlier conflicts.
    after_store[pid]: coroutine function run once, right after the next write
    of pid lands.
    """

    def __init__(self, inner: InMemoryPartitionBackend) -> None:
        self.inner = inner
        self.fail_fetch: set[str] = set()
        self.fail_store: set[str] = set()
        self._churn: dict[str, int] = {}
        self.after_store: dict[str, Callable[[], Awaitable[None]]] = {}

    def churn(self, partition_id: str, times: int) -> None:
        self._churn[partition_id] = times

    async def fetch(self, partition_id: str) -> PartitionDocument:
        if partition_id in self.fail_fetch:
            raise PartitionUnavailableError([partition_id], "injected read failure")
        if self._churn.get(partition_id, 0) > 0:
            self._churn[partition_id] -= 1
            doc = self.inner.peek(partition_id)
            doc["churn"] = doc.get("churn", 0) + 1
            await self.inner.store(partition_id, doc)
        return await self.inner.fetch(partition_id)

    async def store(self, partition_id: str, record: dict[str, Any]) -> None:
        if partition_id in self.fail_store:
            raise PartitionUnavailableError([partition_id], "injected write failure")
        await self.inner.store(partition_id, record)
        hook = self.after_store.pop(partition_id, None)
        if hook is not None:
            await hook()


def build_service(
    backend: Any,
    idempotency: IdempotencyStoreProtocol | None = None,
    max_attempts: int = 3,
) -> tuple[RegistryService, InMemoryReconciliationLog]:
    log = InMemoryReconciliationLog()
    locks = PartitionLocks()
    ledger = LedgerAggregator(backend, BOARDS, locks=locks, base_delay_ms=0)
    coordinator = TransactionCoordinator(
        backend, log, ledger=ledger, locks=locks, max_attempts=max_attempts, base_delay_ms=0
    )
    service = RegistryService(RegistryReader(backend, [P1, P2]), coordinator, ledger, log, idempotency)
    return service, log


def balance_of(backend: InMemoryPartitionBackend, partition_id: str, account_id: int) -> int:
    for raw in backend.peek(partition_id).get("accounts", []):
        if raw["id"] == account_id:
            return raw["authTokens"]
    raise KeyError(account_id)
