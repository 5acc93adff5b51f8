"""Unified API response envelope.

{
    "code": 0,           // 0 = success, otherwise an AppError code
    "message": "success",
    "data": { ... },     // transaction results ride along on failures too
    "timestamp": "...",
    "request_id": "req_..."
}
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    request_id: str = Field(default_factory=new_request_id)


def success_response(data: Any = None, request_id: str | None = None) -> ApiResponse:
    return ApiResponse(data=data, request_id=request_id or new_request_id())


def error_response(
    code: int, message: str, data: Any = None, request_id: str | None = None
) -> ApiResponse:
    return ApiResponse(code=code, message=message, data=data, request_id=request_id or new_request_id())
