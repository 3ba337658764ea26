from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from appcore.api.endpoints import dispatch, health, nonce
from appcore.api.endpoints import metrics_export
from appcore.api.middleware.auth import AuthMiddleware
from appcore.api.middleware.error_shaping import SafeErrorMiddleware
from appcore.api.middleware.request_context import RequestContextMiddleware
from appcore.bootstrap import Container, build_container
from appcore.core.config import Settings

log = logging.getLogger("appcore.api")


def create_app(settings: Optional[Settings] = None, container: Optional[Container] = None) -> FastAPI:
    if container is None:
        container = build_container(settings)
    settings = container.settings

    app = FastAPI(title="AppCore API", version="0.1.0")
    app.state.container = container

    # ------------------------------------------------------------
    # Middleware stack (ORDER MATTERS)
    # Starlette reverses add_middleware order: the LAST call is the OUTERMOST.
    # Runtime order (outermost → innermost):
    #   SafeErrorMiddleware → CORSMiddleware → RequestContext → Auth → handler
    # ------------------------------------------------------------
    if not settings.auth_enabled:
        if settings.is_prod:
            raise RuntimeError("APPCORE_AUTH_ENABLED=false is not allowed in prod")
        log.warning("auth disabled: every request runs as administrator")
    app.add_middleware(
        AuthMiddleware,
        provider=container.auth_provider,
        enabled=settings.auth_enabled,
        role_map=container.role_map,
    )

    app.add_middleware(RequestContextMiddleware)

    # CORS outside auth so OPTIONS preflight never needs credentials
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(SafeErrorMiddleware)

    app.include_router(dispatch.router, prefix="/api/v1")
    app.include_router(nonce.router, prefix="/api/v1")
    app.include_router(health.router, prefix="/api/v1")
    app.include_router(metrics_export.router)

    @app.get("/health")
    def health_check():
        return {"status": "healthy"}

    return app
