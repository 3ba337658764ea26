from __future__ import annotations

import logging
from typing import Any, Callable, Dict

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from appcore.core.errors import ExecutionError

log = logging.getLogger("appcore.errors")

DISPATCH_PATH = "/api/v1/dispatch"


def _debug_enabled(request: Request) -> bool:
    container = getattr(request.app.state, "container", None)
    return bool(container is not None and container.settings.debug)


class SafeErrorMiddleware(BaseHTTPMiddleware):
    """
    Outermost guard: an exception that escapes every inner layer becomes a
    500 without a stack trace. Dispatch callers get the usual
    `{success: false, data: {message, code}}` envelope so that one client
    error path handles both; other routes get `{"detail": ...}`.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            rid = getattr(request.state, "request_id", None) or request.headers.get("x-request-id")
            log.exception("unhandled error rid=%s method=%s path=%s", rid, request.method, request.url.path)

            if request.url.path == DISPATCH_PATH:
                data: Dict[str, Any] = {"message": ExecutionError.public_message, "code": ExecutionError.code}
                if _debug_enabled(request):
                    data["debug"] = str(e)
                if rid:
                    data["request_id"] = rid
                return JSONResponse(status_code=500, content={"success": False, "data": data})

            payload: Dict[str, Any] = {"detail": "Internal Server Error"}
            if rid:
                payload["request_id"] = rid
            return JSONResponse(status_code=500, content=payload)
