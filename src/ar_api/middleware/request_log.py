"""Request logging middleware.

Logs every HTTP request with method, path, status code, latency, and a
short request ID. The request_id is placed on request.state so handlers
can echo it in ApiResponse, and the Idempotency-Key (when sent) is logged
alongside so replays can be traced.

Log format:
    INFO [POST] /api/v1/transactions → 200 (41ms) req=a1b2c3d4 key=grp-77
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.ar_common.response import new_request_id

logger = logging.getLogger("ar.request")


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.request_id = new_request_id()

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        key = request.headers.get("Idempotency-Key")
        logger.info(
            "[%s] %s → %d (%.0fms) %s%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request.state.request_id,
            f" key={key}" if key else "",
        )
        return response
