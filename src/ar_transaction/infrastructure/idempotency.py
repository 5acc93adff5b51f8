"""Idempotency records for client-submitted transactions.

Key layout: "idem:{key}" -> JSON {"fingerprint": ..., "result": {...} | null}
A null result means the first submission is still in flight.
"""

import hashlib
import json
from typing import Any

import redis.asyncio as aioredis

from src.ar_transaction.domain.models import IdempotencyRecord, TransactionResult

_KEY_PREFIX = "idem:"


def fingerprint_operations(op: str, operations: list[dict[str, Any]]) -> str:
    canonical = json.dumps(
        {"op": op, "operations": operations},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _decode(key: str, raw: str) -> IdempotencyRecord:
    data = json.loads(raw)
    result = data.get("result")
    return IdempotencyRecord(
        key=key,
        fingerprint=data["fingerprint"],
        result=TransactionResult.from_dict(result) if result else None,
    )


class RedisIdempotencyStore:
    def __init__(self, redis: aioredis.Redis, ttl_seconds: int) -> None:
        self._redis = redis
        self._ttl = ttl_seconds

    async def reserve(self, key: str, fingerprint: str) -> IdempotencyRecord | None:
        payload = json.dumps({"fingerprint": fingerprint, "result": None})
        claimed = await self._redis.set(_KEY_PREFIX + key, payload, nx=True, ex=self._ttl)
        if claimed:
            return None
        raw = await self._redis.get(_KEY_PREFIX + key)
        if raw is None:
            # Expired between SET and GET; try once more.
            claimed = await self._redis.set(_KEY_PREFIX + key, payload, nx=True, ex=self._ttl)
            return None if claimed else IdempotencyRecord(key, fingerprint)
        return _decode(key, raw)

    async def complete(self, key: str, fingerprint: str, result: TransactionResult) -> None:
        payload = json.dumps({"fingerprint": fingerprint, "result": result.to_dict()})
        await self._redis.set(_KEY_PREFIX + key, payload, ex=self._ttl)

    async def release(self, key: str) -> None:
        await self._redis.delete(_KEY_PREFIX + key)


class InMemoryIdempotencyStore:
    """Process-local store for local runs and tests. No expiry."""

    def __init__(self) -> None:
        self._records: dict[str, IdempotencyRecord] = {}

    async def reserve(self, key: str, fingerprint: str) -> IdempotencyRecord | None:
        existing = self._records.get(key)
        if existing is not None:
            return existing
        self._records[key] = IdempotencyRecord(key, fingerprint)
        return None

    async def complete(self, key: str, fingerprint: str, result: TransactionResult) -> None:
        self._records[key] = IdempotencyRecord(key, fingerprint, result)

    async def release(self, key: str) -> None:
        self._records.pop(key, None)
