from __future__ import annotations

import logging
import time
import uuid
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from appcore.core.observability.metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_TOTAL,
    normalize_path,
)

log = logging.getLogger("appcore.request")

REQUEST_ID_HEADER = "X-Request-Id"


def _observe(method: str, path: str, status: int, seconds: float) -> None:
    label_path = normalize_path(path)
    HTTP_REQUESTS_TOTAL.labels(method=method, path=label_path, status=str(status)).inc()
    HTTP_REQUEST_DURATION_SECONDS.labels(method=method, path=label_path).observe(seconds)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Request id, Prometheus request metrics and one structured log line per
    API call. The caller is logged by access scope only; credentials and
    security tokens never reach the log.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER.lower()) or uuid.uuid4().hex
        request.state.request_id = request_id

        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started

        response.headers[REQUEST_ID_HEADER] = request_id
        _observe(request.method.upper(), request.url.path, response.status_code, elapsed)

        if request.url.path.startswith("/api/"):
            auth = getattr(request.state, "auth", None)
            log.info(
                "%s",
                {
                    "event": "request",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": int(elapsed * 1000),
                    "scope": auth.access_scope if auth is not None else "anonymous",
                },
            )
        return response
