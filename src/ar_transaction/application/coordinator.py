"""TransactionCoordinator: one logical operation across several partitions.

Partitions offer no cross-document atomicity, so the contract is:
  1. every business rule is checked in memory before the first write
     (a rejected plan writes nothing);
  2. once writing starts, partitions that lose money commit before
     partitions that gain it, so an interrupted run can only have burned
     tokens, never duplicated them;
  3. a run that stops after some partitions committed is reported as
     PARTIAL_COMMIT with a reconciliation entry, never as success.

Write conflicts restart the run for the partitions not yet committed:
re-checkout, re-apply, re-commit, with jittered backoff, up to
max_attempts rounds.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field

from src.ar_common.enums import CommitResult, TransactionOutcome, TransactionStatus
from src.ar_common.errors import AppError, PartitionUnavailableError
from src.ar_common.retry import sleep_backoff
from src.ar_ledger.application.aggregator import LedgerAggregator
from src.ar_partition.application.handle import MutationHandle, PartitionLocks
from src.ar_partition.domain.backend import PartitionBackendProtocol
from src.ar_transaction.domain.models import ReconciliationEntry, TransactionResult
from src.ar_transaction.domain.plan import PlanStep, TransactionPlan
from src.ar_transaction.domain.repository import ReconciliationLogProtocol

logger = logging.getLogger(__name__)


@dataclass
class _RunState:
    plan: TransactionPlan
    attempts: int = 0
    committed: list[str] = field(default_factory=list)
    # partition -> {account_id: delta} from the most recent in-memory apply
    intended: dict[str, dict[int, int]] = field(default_factory=dict)


class TransactionCoordinator:
    def __init__(
        self,
        backend: PartitionBackendProtocol,
        reconciliation_log: ReconciliationLogProtocol,
        ledger: LedgerAggregator | None = None,
        locks: PartitionLocks | None = None,
        max_attempts: int = 3,
        base_delay_ms: int = 50,
        max_delay_ms: int = 1000,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._backend = backend
        self._reconciliation_log = reconciliation_log
        self._ledger = ledger
        self._locks = locks or PartitionLocks()
        self._max_attempts = max_attempts
        self._base_delay_ms = base_delay_ms
        self._max_delay_ms = max_delay_ms

    async def execute(self, plan: TransactionPlan) -> TransactionResult:
        """Run plan. Business-rule errors propagate before any write."""
        run = _RunState(plan)
        pending = plan.steps

        for attempt in range(1, self._max_attempts + 1):
            run.attempts = attempt
            try:
                handles = await self._checkout(pending)
            except PartitionUnavailableError as e:
                return await self._stop(run, TransactionOutcome.UNAVAILABLE, f"checkout failed: {e.message}")

            try:
                self._apply(pending, handles, run)
            except PartitionUnavailableError as e:
                self._abort(handles)
                return await self._stop(run, TransactionOutcome.UNAVAILABLE, e.message)
            except AppError as e:
                self._abort(handles)
                if not run.committed:
                    logger.info("Transaction %s rejected: %s", plan.transaction_id, e.message)
                    raise
                return await self._stop(run, TransactionOutcome.INDETERMINATE, f"rejected on retry: {e.message}")

            result = await self._commit_in_risk_order(handles, run)
            if result == CommitResult.COMMITTED:
                return await self._succeed(run)
            if result == CommitResult.UNAVAILABLE:
                return await self._stop(run, TransactionOutcome.UNAVAILABLE, "partition write failed")

            pending = [s for s in pending if s.partition_id not in run.committed]
            logger.warning(
                "Transaction %s conflict (attempt %d/%d), %d partition(s) pending",
                plan.transaction_id, attempt, self._max_attempts, len(pending),
            )
            if attempt < self._max_attempts:
                await sleep_backoff(attempt, self._base_delay_ms, self._max_delay_ms)

        return await self._stop(run, TransactionOutcome.CONFLICT, "write conflicts exhausted retries")

    # -- steps --------------------------------------------------------------

    async def _checkout(self, steps: list[PlanStep]) -> list[MutationHandle]:
        results = await asyncio.gather(
            *(MutationHandle.checkout(self._backend, s.partition_id) for s in steps),
            return_exceptions=True,
        )
        failed = [s.partition_id for s, r in zip(steps, results, strict=True)
                  if isinstance(r, PartitionUnavailableError)]
        for r in results:
            if isinstance(r, BaseException) and not isinstance(r, PartitionUnavailableError):
                raise r
        if failed:
            raise PartitionUnavailableError(failed)
        return [r for r in results if isinstance(r, MutationHandle)]

    def _apply(
        self, steps: list[PlanStep], handles: list[MutationHandle], run: _RunState
    ) -> None:
        for step, handle in zip(steps, handles, strict=True):
            step.apply(handle)
        for handle in handles:
            run.intended[handle.partition_id] = handle.balance_deltas()

    async def _commit_in_risk_order(
        self, handles: list[MutationHandle], run: _RunState
    ) -> CommitResult:
        ordered = sorted(handles, key=lambda h: h.risk())
        for i, handle in enumerate(ordered):
            try:
                result = await handle.commit(self._locks.for_partition(handle.partition_id))
            except asyncio.CancelledError:
                self._abort(ordered[i:])
                if run.committed:
                    await self._record_partial(run, "cancelled during commit")
                raise
            if result != CommitResult.COMMITTED:
                self._abort(ordered[i:])
                return result
            run.committed.append(handle.partition_id)
        return CommitResult.COMMITTED

    @staticmethod
    def _abort(handles: list[MutationHandle]) -> None:
        for handle in handles:
            handle.abort()

    # -- outcomes -----------------------------------------------------------

    async def _succeed(self, run: _RunState) -> TransactionResult:
        plan = run.plan
        if plan.contributions and self._ledger is not None:
            try:
                await self._ledger.accumulate_many(plan.contributions)
            except Exception:
                # Account writes are final; leaderboards are derived and may lag.
                logger.exception(
                    "Ledger update failed for transaction %s (%s)", plan.transaction_id, plan.op
                )
        logger.info(
            "Transaction %s (%s) committed %s in %d attempt(s)",
            plan.transaction_id, plan.op, run.committed, run.attempts,
        )
        return TransactionResult(
            transaction_id=plan.transaction_id,
            op=plan.op,
            status=TransactionStatus.SUCCESS,
            outcome=TransactionOutcome.SUCCESS,
            committed=list(run.committed),
            attempts=run.attempts,
        )

    async def _stop(
        self, run: _RunState, outcome: TransactionOutcome, reason: str
    ) -> TransactionResult:
        plan = run.plan
        if not run.committed:
            logger.warning("Transaction %s (%s) aborted: %s", plan.transaction_id, plan.op, reason)
            return TransactionResult(
                transaction_id=plan.transaction_id,
                op=plan.op,
                status=TransactionStatus.ABORTED,
                outcome=outcome,
                attempts=run.attempts,
            )
        reference = await self._record_partial(run, reason)
        return TransactionResult(
            transaction_id=plan.transaction_id,
            op=plan.op,
            status=TransactionStatus.PARTIAL_COMMIT,
            outcome=TransactionOutcome.INDETERMINATE,
            committed=list(run.committed),
            attempts=run.attempts,
            reconciliation_ref=reference,
        )

    async def _record_partial(self, run: _RunState, reason: str) -> str:
        plan = run.plan
        reference = f"rec_{uuid.uuid4().hex[:16]}"
        entries: list[ReconciliationEntry] = []
        for pid in plan.partition_ids:
            deltas = run.intended.get(pid) or {}
            committed = pid in run.committed
            if not deltas:
                entries.append(ReconciliationEntry(
                    reference, plan.transaction_id, plan.op, pid, None, 0, committed, reason
                ))
            for account_id, delta in deltas.items():
                entries.append(ReconciliationEntry(
                    reference, plan.transaction_id, plan.op, pid, account_id, delta, committed, reason
                ))

        logger.error(
            "PARTIAL COMMIT %s: transaction %s (%s) committed %s of %s: %s; entries=%s",
            reference, plan.transaction_id, plan.op, run.committed, plan.partition_ids,
            reason, [(e.partition_id, e.account_id, e.delta, e.committed) for e in entries],
        )
        try:
            await self._reconciliation_log.record(entries)
        except Exception:
            # The ERROR line above carries every entry; the ref is still returned.
            logger.exception("Could not persist reconciliation entries for %s", reference)
        return reference
