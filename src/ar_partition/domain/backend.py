"""Partition backend Protocol.

A backend stores one JSON document per partition id and offers only
whole-document read and whole-document overwrite. There is no conditional
write; revision markers are compared by the caller (see MutationHandle).

Both methods raise PartitionUnavailableError on any transport or payload
failure. A missing document is returned as an empty record, not an error.
"""

from typing import Any, Protocol

from src.ar_partition.domain.models import PartitionDocument


class PartitionBackendProtocol(Protocol):
    async def fetch(self, partition_id: str) -> PartitionDocument: ...

    async def store(self, partition_id: str, record: dict[str, Any]) -> None: ...
