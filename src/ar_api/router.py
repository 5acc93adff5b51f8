"""Account registry REST API.

Transactions require an Idempotency-Key header: a client that times out
must be able to resend without risking a double charge.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import JSONResponse

from src.ar_api.dependencies import get_auxiliary_documents, get_registry_service
from src.ar_api.schemas import TransactionRequest
from src.ar_common.enums import TransactionStatus
from src.ar_common.errors import (
    AppError,
    IdempotencyKeyRequiredError,
    TransactionAbortedError,
    TransactionIndeterminateError,
)
from src.ar_common.response import ApiResponse, error_response, success_response
from src.ar_registry.application.service import RegistryService
from src.ar_transaction.domain.models import TransactionResult

router = APIRouter(tags=["registry"])

Registry = Annotated[RegistryService, Depends(get_registry_service)]


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _result_error(result: TransactionResult) -> AppError:
    if result.status == TransactionStatus.PARTIAL_COMMIT:
        return TransactionIndeterminateError(result.reconciliation_ref or "")
    return TransactionAbortedError(result.transaction_id, result.outcome)


@router.get("/accounts/{account_id}")
async def get_account(account_id: int, registry: Registry, request: Request) -> ApiResponse:
    data = await registry.lookup_account(account_id)
    return success_response(data.model_dump(), _request_id(request))


@router.get("/accounts")
async def find_account(
    registry: Registry,
    request: Request,
    username: str = Query(..., min_length=1, max_length=64),
) -> ApiResponse:
    data = await registry.find_account(username)
    return success_response(data.model_dump(), _request_id(request))


@router.post("/transactions", response_model=None)
async def run_transaction(
    body: TransactionRequest,
    registry: Registry,
    documents: Annotated[dict[str, str], Depends(get_auxiliary_documents)],
    request: Request,
    idempotency_key: Annotated[str | None, Header(alias="Idempotency-Key", max_length=128)] = None,
) -> ApiResponse | JSONResponse:
    if not idempotency_key:
        raise IdempotencyKeyRequiredError()
    result = await registry.run_transaction(
        body.op, body.to_operations(documents), idempotency_key=idempotency_key
    )
    if result.status == TransactionStatus.SUCCESS:
        return success_response(result.to_dict(), _request_id(request))

    # Failed outcomes still carry the result so clients see the reconciliation ref.
    exc = _result_error(result)
    resp = error_response(exc.code, exc.message, result.to_dict(), _request_id(request))
    return JSONResponse(status_code=exc.http_status, content=resp.model_dump())


@router.get("/leaderboards/{board}")
async def get_leaderboard(
    board: str,
    registry: Registry,
    request: Request,
    limit: int = Query(10, ge=1, le=100, description="Number of entries"),
) -> ApiResponse:
    entries = await registry.leaderboard(board, limit)
    return success_response([e.model_dump() for e in entries], _request_id(request))


@router.get("/reconciliation/{reference}")
async def get_reconciliation(reference: str, registry: Registry, request: Request) -> ApiResponse:
    entries = await registry.reconciliation(reference)
    data = [
        {
            "reference": e.reference,
            "transaction_id": e.transaction_id,
            "op": e.op,
            "partition_id": e.partition_id,
            "account_id": e.account_id,
            "delta": e.delta,
            "committed": e.committed,
            "reason": e.reason,
            "created_at": e.created_at.isoformat() if e.created_at else None,
        }
        for e in entries
    ]
    return success_response(data, _request_id(request))
