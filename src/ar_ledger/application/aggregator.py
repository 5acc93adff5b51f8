"""LedgerAggregator: additive leaderboards fed by committed transactions.

Each board is one document keyed by the board's own name, matching the
stored data: {"donated": [{"id", "username", "amount"}]}. The wins board
counts in "score" instead of "amount".
Boards are shared by every transaction in the system, so they are the
hottest documents there are; every update is a checkout / edit / commit
round with the same conflict-retry discipline as account partitions.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass

from src.ar_common.enums import CommitResult, LeaderboardName
from src.ar_common.errors import ConflictError, InvalidOperationError, PartitionUnavailableError
from src.ar_common.retry import sleep_backoff
from src.ar_partition.application.handle import MutationHandle, PartitionLocks
from src.ar_partition.domain.backend import PartitionBackendProtocol
from src.ar_transaction.domain.plan import LedgerContribution

logger = logging.getLogger(__name__)

_AMOUNT_FIELDS = {LeaderboardName.GAME_WINS.value: "score"}


def amount_field(board: str) -> str:
    return _AMOUNT_FIELDS.get(board, "amount")


@dataclass
class LeaderboardEntry:
    account_id: int
    username: str
    amount: int


def _apply(handle: MutationHandle, board: str, contributions: list[LedgerContribution]) -> None:
    field_name = amount_field(board)
    entries = handle.collection(board)
    by_id = {e.get("id"): e for e in entries if isinstance(e, dict)}
    for c in contributions:
        entry = by_id.get(c.account_id)
        if entry is None:
            entry = {"id": c.account_id, "username": c.username, field_name: 0}
            entries.append(entry)
            by_id[c.account_id] = entry
        entry[field_name] = int(entry.get(field_name, 0)) + c.amount
        if c.username:
            entry["username"] = c.username


class LedgerAggregator:
    def __init__(
        self,
        backend: PartitionBackendProtocol,
        boards: dict[str, str],
        locks: PartitionLocks | None = None,
        max_attempts: int = 5,
        base_delay_ms: int = 50,
        max_delay_ms: int = 1000,
    ) -> None:
        self._backend = backend
        self._boards = dict(boards)
        self._locks = locks or PartitionLocks()
        self._max_attempts = max_attempts
        self._base_delay_ms = base_delay_ms
        self._max_delay_ms = max_delay_ms

    @property
    def board_names(self) -> list[str]:
        return list(self._boards)

    def _document_id(self, board: str) -> str:
        document_id = self._boards.get(board)
        if document_id is None:
            raise InvalidOperationError(f"unknown leaderboard '{board}'")
        return document_id

    async def accumulate(
        self, board: str, account_id: int, delta: int, username: str = ""
    ) -> None:
        await self.accumulate_many([LedgerContribution(board, account_id, username, delta)])

    async def accumulate_many(self, contributions: list[LedgerContribution]) -> None:
        """One read-modify-write per board touched."""
        grouped: dict[str, list[LedgerContribution]] = defaultdict(list)
        for c in contributions:
            grouped[c.board].append(c)
        for board, items in grouped.items():
            await self._update_board(board, items)

    async def _update_board(self, board: str, contributions: list[LedgerContribution]) -> None:
        document_id = self._document_id(board)
        for attempt in range(1, self._max_attempts + 1):
            handle = await MutationHandle.checkout(self._backend, document_id)
            handle.edit(lambda h: _apply(h, board, contributions))
            result = await handle.commit(self._locks.for_partition(document_id))
            if result == CommitResult.COMMITTED:
                return
            if result == CommitResult.UNAVAILABLE:
                raise PartitionUnavailableError([document_id])
            logger.warning(
                "Leaderboard %s conflict (attempt %d/%d)", board, attempt, self._max_attempts
            )
            if attempt < self._max_attempts:
                await sleep_backoff(attempt, self._base_delay_ms, self._max_delay_ms)
        raise ConflictError(f"Leaderboard {board} stayed contended after {self._max_attempts} attempts")

    async def top(self, board: str, limit: int = 10) -> list[LeaderboardEntry]:
        doc = await self._backend.fetch(self._document_id(board))
        field_name = amount_field(board)
        raw_entries = doc.record.get(board) or []
        entries = [
            LeaderboardEntry(
                account_id=int(e["id"]),
                username=str(e.get("username", "")),
                amount=int(e.get(field_name, 0)),
            )
            for e in raw_entries
            if isinstance(e, dict) and "id" in e
        ]
        entries.sort(key=lambda e: (-e.amount, e.account_id))
        return entries[:limit]
