"""In-process partition backend for local development and tests.

Documents are deep-copied on the way in and out so callers can never
mutate stored state without going through store().
"""

import asyncio
import copy
from typing import Any

from src.ar_partition.domain.codec import compute_revision
from src.ar_partition.domain.models import PartitionDocument


class InMemoryPartitionBackend:
    def __init__(
        self,
        documents: dict[str, dict[str, Any]] | None = None,
        latency_seconds: float = 0.0,
    ) -> None:
        self._documents: dict[str, dict[str, Any]] = copy.deepcopy(documents or {})
        self._latency = latency_seconds
        self.fetch_count = 0
        self.store_count = 0

    async def _simulate_latency(self) -> None:
        if self._latency > 0:
            await asyncio.sleep(self._latency)

    async def fetch(self, partition_id: str) -> PartitionDocument:
        await self._simulate_latency()
        self.fetch_count += 1
        record = copy.deepcopy(self._documents.get(partition_id, {}))
        return PartitionDocument(record=record, revision=compute_revision(record))

    async def store(self, partition_id: str, record: dict[str, Any]) -> None:
        await self._simulate_latency()
        self.store_count += 1
        self._documents[partition_id] = copy.deepcopy(record)

    def peek(self, partition_id: str) -> dict[str, Any]:
        """Synchronous read-back for assertions and diagnostics."""
        return copy.deepcopy(self._documents.get(partition_id, {}))
