from __future__ import annotations

import json
from typing import Any, Dict, Tuple

from fastapi import APIRouter, Request
from starlette.concurrency import run_in_threadpool
from starlette.responses import JSONResponse

from appcore.core.auth.context import AuthContext
from appcore.core.dispatch.dispatcher import DispatchContext

router = APIRouter()

NONCE_HEADER = "x-appcore-nonce"
_NONCE_FIELDS = ("nonce", "security")


async def _read_payload(request: Request) -> Tuple[Dict[str, Any], bool]:
    """Return (payload, is_json). Form bodies keep their flat DataTables keys."""
    content_type = (request.headers.get("content-type") or "").lower()
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return {}, True
        return (body if isinstance(body, dict) else {}), True

    form = await request.form()
    return {k: v for k, v in form.multi_items()}, False


@router.post("/dispatch")
async def dispatch(request: Request):
    container = request.app.state.container
    payload, is_json = await _read_payload(request)

    action = str(payload.get("action") or request.query_params.get("action") or "")
    token = request.headers.get(NONCE_HEADER)
    if not token:
        token = next((str(payload[f]) for f in _NONCE_FIELDS if payload.get(f)), None)

    is_async = is_json or request.headers.get("x-requested-with", "").lower() == "xmlhttprequest"
    auth = getattr(request.state, "auth", None) or AuthContext.anonymous()

    ctx = DispatchContext(auth=auth, is_async=is_async, token=token)
    envelope = await run_in_threadpool(container.dispatcher.dispatch, action, payload, ctx)
    return JSONResponse(status_code=200, content=envelope)
