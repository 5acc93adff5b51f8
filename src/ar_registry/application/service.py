"""RegistryService: the public surface collaborators consume.

lookup_account and run_transaction are the only ways in; workflows such as
group creation, marketplace purchases and game rewards are all expressed as
operation lists passed to run_transaction.
"""

import dataclasses
import logging

from src.ar_common.enums import TransactionStatus
from src.ar_common.errors import AccountNotFoundError, ConflictError, IdempotencyKeyReusedError
from src.ar_ledger.application.aggregator import LedgerAggregator
from src.ar_registry.application.reader import RegistryReader
from src.ar_registry.application.schemas import AccountView, LeaderboardEntryView
from src.ar_transaction.application.coordinator import TransactionCoordinator
from src.ar_transaction.domain.models import ReconciliationEntry, TransactionResult
from src.ar_transaction.domain.operations import Operation, build_plan
from src.ar_transaction.domain.repository import (
    IdempotencyStoreProtocol,
    ReconciliationLogProtocol,
)
from src.ar_transaction.infrastructure.idempotency import fingerprint_operations

logger = logging.getLogger(__name__)


class RegistryService:
    def __init__(
        self,
        reader: RegistryReader,
        coordinator: TransactionCoordinator,
        ledger: LedgerAggregator,
        reconciliation_log: ReconciliationLogProtocol,
        idempotency: IdempotencyStoreProtocol | None = None,
    ) -> None:
        self._reader = reader
        self._coordinator = coordinator
        self._ledger = ledger
        self._reconciliation_log = reconciliation_log
        self._idempotency = idempotency

    async def lookup_account(self, account_id: int) -> AccountView:
        view = await self._reader.read_all()
        return AccountView.from_account(view.get(account_id))

    async def find_account(self, username: str) -> AccountView:
        view = await self._reader.read_all()
        account = view.find_by_username(username)
        if account is None:
            raise AccountNotFoundError(username)
        return AccountView.from_account(account)

    async def run_transaction(
        self,
        op: str,
        operations: list[Operation],
        idempotency_key: str | None = None,
    ) -> TransactionResult:
        if idempotency_key is None or self._idempotency is None:
            return await self._execute(op, operations, None)

        fingerprint = fingerprint_operations(op, [o.describe() for o in operations])
        existing = await self._idempotency.reserve(idempotency_key, fingerprint)
        if existing is not None:
            if existing.fingerprint != fingerprint:
                raise IdempotencyKeyReusedError(idempotency_key)
            if existing.result is None:
                raise ConflictError(f"Transaction with key {idempotency_key} is still in flight")
            logger.info("Replaying result for idempotency key %s", idempotency_key)
            return dataclasses.replace(existing.result, replayed=True)

        try:
            result = await self._execute(op, operations, idempotency_key)
        except Exception:
            await self._idempotency.release(idempotency_key)
            raise
        if result.status == TransactionStatus.ABORTED:
            # Nothing was written; the caller may retry under the same key.
            await self._idempotency.release(idempotency_key)
        else:
            await self._idempotency.complete(idempotency_key, fingerprint, result)
        return result

    async def _execute(
        self, op: str, operations: list[Operation], idempotency_key: str | None
    ) -> TransactionResult:
        view = await self._reader.read_all()
        plan = build_plan(view, op, operations, idempotency_key, boards=self._ledger.board_names)
        return await self._coordinator.execute(plan)

    async def leaderboard(self, board: str, limit: int = 10) -> list[LeaderboardEntryView]:
        entries = await self._ledger.top(board, limit)
        return LeaderboardEntryView.from_entries(entries)

    async def reconciliation(self, reference: str) -> list[ReconciliationEntry]:
        return await self._reconciliation_log.list_by_reference(reference)
