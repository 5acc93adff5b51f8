"""RegistryReader: concurrent fan-out read of every account partition.

Fails closed: if any partition cannot be read or decoded, no view is
returned. A view missing a partition would make lookups report NotFound for
accounts that exist and would hide duplicate ids.
"""

import asyncio
import logging

from src.ar_common.errors import PartitionUnavailableError
from src.ar_partition.domain.backend import PartitionBackendProtocol
from src.ar_partition.domain.codec import decode_accounts
from src.ar_partition.domain.models import PartitionDocument, PartitionSnapshot
from src.ar_registry.domain.view import UnifiedView

logger = logging.getLogger(__name__)


class RegistryReader:
    def __init__(
        self, backend: PartitionBackendProtocol, partition_ids: list[str]
    ) -> None:
        if not partition_ids:
            raise ValueError("At least one account partition is required")
        if len(set(partition_ids)) != len(partition_ids):
            raise ValueError(f"Duplicate partition ids: {partition_ids}")
        self._backend = backend
        self.partition_ids = list(partition_ids)

    async def read_all(self) -> UnifiedView:
        results = await asyncio.gather(
            *(self._backend.fetch(pid) for pid in self.partition_ids),
            return_exceptions=True,
        )

        failed: list[str] = []
        snapshots: list[PartitionSnapshot] = []
        for pid, result in zip(self.partition_ids, results, strict=True):
            if isinstance(result, PartitionUnavailableError):
                failed.append(pid)
                continue
            if isinstance(result, BaseException):
                raise result
            try:
                snapshots.append(self._decode(pid, result))
            except PartitionUnavailableError as e:
                logger.error("Partition %s is malformed: %s", pid, e.message)
                failed.append(pid)

        if failed:
            logger.error("Registry read failed closed; unavailable partitions %s", failed)
            raise PartitionUnavailableError(failed)
        return UnifiedView(snapshots)

    def _decode(self, partition_id: str, doc: PartitionDocument) -> PartitionSnapshot:
        accounts = decode_accounts(doc.record, partition_id)
        return PartitionSnapshot(partition_id, accounts, doc.revision)
