from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from appcore.core.auth.capabilities import RoleMap
from appcore.core.auth.context import AuthContext
from appcore.core.auth.models import Principal
from appcore.core.auth.provider import AuthError

log = logging.getLogger("appcore.auth")

_DEV_ADMIN = Principal(subject="anonymous", roles=["administrator"], user_id=0)


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Resolves the caller into request.state.auth and never rejects: a missing
    or bad credential yields an anonymous context and the dispatcher decides
    what an anonymous caller may do.

    With `enabled=False` (dev only) every request runs as an administrator.
    """

    def __init__(self, app, *, provider: Any = None, enabled: bool = True, role_map: Optional[RoleMap] = None):
        super().__init__(app)
        self.provider = provider
        self.enabled = enabled
        self.role_map = role_map

    def _resolve(self, request: Request) -> AuthContext:
        if not self.enabled:
            return AuthContext.for_principal(_DEV_ADMIN, role_map=self.role_map)
        if self.provider is None:
            return AuthContext.anonymous()

        try:
            principal = self.provider.authenticate(request.headers)
        except AuthError as e:
            log.info("authn anonymous method=%s path=%s reason=%s", request.method, request.url.path, str(e))
            return AuthContext.anonymous()

        if principal is None:
            return AuthContext.anonymous()
        return AuthContext.for_principal(principal, role_map=self.role_map)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.auth = self._resolve(request)
        return await call_next(request)
