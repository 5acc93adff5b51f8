"""MutationHandle: scoped checkout of one partition with a single write-back.

The backend has no conditional write, so commit() re-reads the partition
right before writing and refuses to overwrite if the revision moved since
checkout. An optional in-process lock narrows the re-read/write window for
callers inside one service instance.

Writers in other instances can still pass their re-read before our write
lands and then overwrite it. Every write therefore carries a stamp
{"id": <this write>, "parent": <stamp seen at checkout>}, and commit() reads
the document back once more after writing:
  - our stamp, or a stamp whose parent is ours: the write stands;
  - a stamp sharing our parent: a writer that never saw our write replaced
    it, so the commit is a CONFLICT and the caller re-applies;
  - anything else (unstamped writer, longer chain): cannot be told apart,
    logged and treated as committed.
"""

import asyncio
import logging
import uuid
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from src.ar_common.enums import CommitResult, CommitRisk, HandleState
from src.ar_common.errors import AccountNotFoundError, InternalError, PartitionUnavailableError
from src.ar_partition.domain.backend import PartitionBackendProtocol
from src.ar_partition.domain.codec import decode_accounts, encode_accounts
from src.ar_partition.domain.models import Account

logger = logging.getLogger(__name__)

STAMP_KEY = "writeStamp"


def read_stamp(record: dict[str, Any]) -> tuple[str | None, str | None]:
    """(id, parent) of a document's write stamp; (None, None) if unstamped."""
    stamp = record.get(STAMP_KEY)
    if not isinstance(stamp, dict):
        return None, None
    return stamp.get("id"), stamp.get("parent")


class PartitionLocks:
    """One asyncio.Lock per partition id, shared by every handle in-process."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def for_partition(self, partition_id: str) -> asyncio.Lock:
        return self._locks[partition_id]


class MutationHandle:
    def __init__(
        self,
        backend: PartitionBackendProtocol,
        partition_id: str,
        record: dict[str, Any],
        revision: str,
    ) -> None:
        self.partition_id = partition_id
        self.revision = revision
        self.record = record
        self.state = HandleState.OPEN
        self._backend = backend
        self._base_stamp, _ = read_stamp(record)
        self._accounts: list[Account] | None = None
        self._by_id: dict[int, Account] = {}
        self._initial_balances: dict[int, int] = {}
        self._touched: list[int] = []

    @classmethod
    async def checkout(
        cls, backend: PartitionBackendProtocol, partition_id: str
    ) -> "MutationHandle":
        doc = await backend.fetch(partition_id)
        return cls(backend, partition_id, doc.record, doc.revision)

    # -- accounts -----------------------------------------------------------

    def _decode(self) -> list[Account]:
        if self._accounts is None:
            self._accounts = decode_accounts(self.record, self.partition_id)
            self._by_id = {a.id: a for a in self._accounts}
            self._initial_balances = {a.id: a.balance for a in self._accounts}
        return self._accounts

    @property
    def accounts(self) -> list[Account]:
        """Decoded account list; decoding happens once, on first access."""
        return self._decode()

    def account(self, account_id: int) -> Account:
        self._decode()
        account = self._by_id.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        if account_id not in self._touched:
            self._touched.append(account_id)
        return account

    def collection(self, key: str) -> list[Any]:
        """Mutable list under a top-level key of a non-account document."""
        items = self.record.setdefault(key, [])
        if not isinstance(items, list):
            raise InternalError(f"{self.partition_id}.{key} is not a list")
        return items

    @property
    def touched_accounts(self) -> list[int]:
        return list(self._touched)

    def balance_deltas(self) -> dict[int, int]:
        """Per touched account: balance now minus balance at checkout."""
        if self._accounts is None:
            return {}
        return {
            aid: self._by_id[aid].balance - self._initial_balances.get(aid, 0)
            for aid in self._touched
        }

    def risk(self) -> CommitRisk:
        deltas = self.balance_deltas().values()
        if any(d < 0 for d in deltas):
            return CommitRisk.DEBIT
        if any(d > 0 for d in deltas):
            return CommitRisk.CREDIT
        return CommitRisk.NEUTRAL

    # -- lifecycle ----------------------------------------------------------

    def edit(self, fn: Callable[["MutationHandle"], None]) -> None:
        if self.state != HandleState.OPEN:
            raise InternalError(f"Handle for {self.partition_id} is {self.state.value}")
        fn(self)

    def document(self) -> dict[str, Any]:
        if self._accounts is None:
            return self.record
        return encode_accounts(self.record, self._accounts)

    def abort(self) -> None:
        if self.state == HandleState.OPEN:
            self.state = HandleState.ABORTED

    async def commit(self, lock: asyncio.Lock | None = None) -> CommitResult:
        if self.state != HandleState.OPEN:
            raise InternalError(f"Handle for {self.partition_id} is {self.state.value}")
        if lock is None:
            return await self._commit()
        async with lock:
            return await self._commit()

    async def _commit(self) -> CommitResult:
        try:
            current = await self._backend.fetch(self.partition_id)
        except PartitionUnavailableError:
            return CommitResult.UNAVAILABLE
        if current.revision != self.revision:
            logger.info(
                "Write conflict on %s: checkout %s, now %s",
                self.partition_id, self.revision[:12], current.revision[:12],
            )
            return CommitResult.CONFLICT

        write_id = f"w_{uuid.uuid4().hex[:16]}"
        document = {**self.document(), STAMP_KEY: {"id": write_id, "parent": self._base_stamp}}
        try:
            await self._backend.store(self.partition_id, document)
        except PartitionUnavailableError:
            return CommitResult.UNAVAILABLE

        result = await self._verify(write_id)
        if result == CommitResult.COMMITTED:
            self.state = HandleState.COMMITTED
        return result

    async def _verify(self, write_id: str) -> CommitResult:
        try:
            after = await self._backend.fetch(self.partition_id)
        except PartitionUnavailableError:
            # The store call succeeded; an unreadable partition is not a reason to write twice.
            logger.warning("Could not read back %s after write %s", self.partition_id, write_id)
            return CommitResult.COMMITTED
        stamp_id, parent = read_stamp(after.record)
        if write_id in (stamp_id, parent):
            return CommitResult.COMMITTED
        if stamp_id is not None and parent == self._base_stamp:
            logger.warning(
                "Write %s on %s was replaced by concurrent write %s", write_id, self.partition_id, stamp_id
            )
            return CommitResult.CONFLICT
        logger.warning(
            "Write %s on %s superseded by %s, assuming it landed",
            write_id, self.partition_id, stamp_id or "an unstamped writer",
        )
        return CommitResult.COMMITTED
