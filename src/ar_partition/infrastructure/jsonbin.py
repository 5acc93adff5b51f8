"""JSONBin v3 partition backend.

  GET  {base}/b/{id}/latest  -> {"record": {...}, "metadata": {...}}
  PUT  {base}/b/{id}         <- full record

Uses httpx for async HTTP. The revision marker is the metadata version when
the service reports one, otherwise a content hash of the record.
"""

import logging
from typing import Any

import httpx

from src.ar_common.errors import MalformedPartitionError, PartitionUnavailableError
from src.ar_partition.domain.codec import compute_revision
from src.ar_partition.domain.models import PartitionDocument

logger = logging.getLogger(__name__)


class JsonBinBackend:
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.jsonbin.io/v3",
        timeout: float = 10.0,
    ) -> None:
        if not api_key:
            raise ValueError("JSONBIN_API_KEY is not set")
        self.base_url = base_url.rstrip("/")
        self._headers = {
            "X-Master-Key": api_key,
            "Content-Type": "application/json",
        }
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers,
                timeout=self._timeout,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def fetch(self, partition_id: str) -> PartitionDocument:
        client = await self._ensure_client()
        try:
            resp = await client.get(f"/b/{partition_id}/latest")
        except httpx.HTTPError as e:
            logger.warning("Partition %s read failed: %s", partition_id, e)
            raise PartitionUnavailableError([partition_id], str(e)) from e

        if resp.status_code == 404:
            return PartitionDocument(record={}, revision=compute_revision({}))
        if resp.status_code >= 400:
            raise PartitionUnavailableError([partition_id], f"HTTP {resp.status_code}")

        try:
            body = resp.json()
        except ValueError as e:
            raise MalformedPartitionError(partition_id, "response is not JSON") from e
        if not isinstance(body, dict):
            raise MalformedPartitionError(partition_id, "response is not an object")

        record = body.get("record") or {}
        if not isinstance(record, dict):
            raise MalformedPartitionError(partition_id, "record is not an object")
        metadata = body.get("metadata") or {}
        version = metadata.get("version") if isinstance(metadata, dict) else None
        revision = f"v{version}" if version is not None else compute_revision(record)
        return PartitionDocument(record=record, revision=revision)

    async def store(self, partition_id: str, record: dict[str, Any]) -> None:
        client = await self._ensure_client()
        try:
            resp = await client.put(f"/b/{partition_id}", json=record)
        except httpx.HTTPError as e:
            logger.warning("Partition %s write failed: %s", partition_id, e)
            raise PartitionUnavailableError([partition_id], str(e)) from e
        if resp.status_code >= 400:
            raise PartitionUnavailableError([partition_id], f"HTTP {resp.status_code}")
