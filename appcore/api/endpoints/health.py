from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

from appcore.core.observability.metrics import inc_named

log = logging.getLogger("appcore.health")

router = APIRouter()


@router.get("/health/live")
def liveness():
    inc_named("health_live")
    return {"status": "alive"}


@router.get("/health/ready")
def readiness(request: Request):
    """Ready when the relational store answers; the cache is optional."""
    inc_named("health_ready")
    container = request.app.state.container
    problems: list[str] = []

    try:
        container.db.fetch_value("SELECT 1")
    except Exception as e:
        log.warning("readiness db check failed error=%s", e)
        problems.append(f"db_unavailable:{type(e).__name__}")

    if problems:
        return JSONResponse(status_code=503, content={"status": "not_ready", "problems": problems})

    return {
        "status": "ready",
        "extensions": container.loaded_extensions,
        "extensions_fingerprint": container.extensions_fingerprint,
    }
