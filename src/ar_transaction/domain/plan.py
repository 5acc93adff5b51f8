"""TransactionPlan: ordered, partition-deduplicated set of mutations.

Adding a second mutation for a partition already in the plan composes it
into that partition's step, so every partition is written back exactly once.
"""

import uuid
from collections.abc import Callable, Collection
from dataclasses import dataclass, field

from src.ar_common.errors import InvalidOperationError
from src.ar_partition.application.handle import MutationHandle

DocumentMutation = Callable[[MutationHandle], None]


@dataclass
class PlanStep:
    partition_id: str
    mutations: list[DocumentMutation] = field(default_factory=list)

    def apply(self, handle: MutationHandle) -> None:
        """The merged mutation: every composed function, in plan order."""
        for fn in self.mutations:
            handle.edit(fn)


@dataclass(frozen=True)
class LedgerContribution:
    board: str
    account_id: int
    username: str
    amount: int


class TransactionPlan:
    def __init__(
        self,
        op: str,
        transaction_id: str | None = None,
        idempotency_key: str | None = None,
        boards: Collection[str] | None = None,
    ) -> None:
        self.op = op
        self.transaction_id = transaction_id or f"txn_{uuid.uuid4().hex[:16]}"
        self.idempotency_key = idempotency_key
        self._steps: dict[str, PlanStep] = {}
        self.contributions: list[LedgerContribution] = []
        self._boards = frozenset(boards) if boards is not None else None

    def add(self, partition_id: str, mutation: DocumentMutation) -> None:
        step = self._steps.get(partition_id)
        if step is None:
            step = self._steps[partition_id] = PlanStep(partition_id)
        step.mutations.append(mutation)

    def contribute(self, contribution: LedgerContribution) -> None:
        if self._boards is not None and contribution.board not in self._boards:
            raise InvalidOperationError(f"unknown leaderboard '{contribution.board}'")
        self.contributions.append(contribution)

    @property
    def steps(self) -> list[PlanStep]:
        return list(self._steps.values())

    @property
    def partition_ids(self) -> list[str]:
        return list(self._steps)

    def __len__(self) -> int:
        return len(self._steps)
