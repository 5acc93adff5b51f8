"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.ar_api.middleware.request_log import RequestLogMiddleware
from src.ar_api.router import router as registry_router
from src.ar_common.database import async_session_factory, engine
from src.ar_common.errors import AppError
from src.ar_common.response import error_response
from src.ar_partition.infrastructure.jsonbin import JsonBinBackend
from src.ar_registry.application.factory import (
    auxiliary_documents,
    build_backend,
    build_registry_service,
)
from src.ar_transaction.infrastructure.idempotency import (
    InMemoryIdempotencyStore,
    RedisIdempotencyStore,
)
from src.ar_transaction.infrastructure.reconciliation import (
    InMemoryReconciliationLog,
    SqlReconciliationLog,
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: build the registry, verify DB + Redis. Shutdown: dispose."""
    backend = build_backend(settings)
    redis: aioredis.Redis | None = None
    if settings.PARTITION_BACKEND == "memory":
        # Local dev: nothing outside the process.
        app.state.registry = build_registry_service(
            settings, backend, InMemoryReconciliationLog(), InMemoryIdempotencyStore()
        )
    else:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
        await redis.ping()
        app.state.registry = build_registry_service(
            settings,
            backend,
            SqlReconciliationLog(async_session_factory),
            RedisIdempotencyStore(redis, settings.IDEMPOTENCY_TTL_SECONDS),
        )
    app.state.documents = auxiliary_documents(settings)
    logger.info(
        "Registry ready: backend=%s partitions=%s",
        settings.PARTITION_BACKEND, settings.ACCOUNT_PARTITION_IDS,
    )
    yield
    if isinstance(backend, JsonBinBackend):
        await backend.close()
    if redis is not None:
        await redis.aclose()
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, request_id=getattr(request.state, "request_id", None))
    if exc.http_status >= 500:
        logger.error("%s %s failed: [%d] %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(registry_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
