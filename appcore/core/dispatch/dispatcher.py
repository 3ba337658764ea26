from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from appcore.core.auth.capabilities import READ
from appcore.core.auth.context import AuthContext
from appcore.core.auth.nonce import NonceManager
from appcore.core.config import Settings
from appcore.core.errors import (
    AppCoreError,
    AuthenticationError,
    AuthorizationError,
    ExecutionError,
    ValidationError,
)
from appcore.core.extensions.registry import ExtensionRegistry
from appcore.core.observability.metrics import record_dispatch

log = logging.getLogger("appcore.dispatch")

CAN_ACCESS_POINT = "datatable.can_access"
OUTPUT_POINT = "datatable.output"


@dataclass
class DispatchContext:
    auth: AuthContext = field(default_factory=AuthContext.anonymous)
    is_async: bool = False
    token: Optional[str] = None


@dataclass(frozen=True)
class ActionRoute:
    action: str
    handler_factory: Callable[[], Any]
    capability: str = READ
    token_action: str = "datatable"
    method: str = "get_datatable_data"


class RequestDispatcher:
    """
    Single entry point for listing and entity actions.

    Validation runs in a fixed order (async call, security token,
    authentication, access, handler) and the first failure short-circuits.
    `dispatch` never raises: every outcome is a `{success, data}` envelope.
    """

    def __init__(self, extensions: ExtensionRegistry, nonces: NonceManager, settings: Optional[Settings] = None):
        self.extensions = extensions
        self.nonces = nonces
        self.settings = settings or Settings()
        self._routes: Dict[str, ActionRoute] = {}

    def register(
        self,
        action: str,
        handler_factory: Callable[[], Any],
        capability: str = READ,
        token_action: str = "datatable",
        method: str = "get_datatable_data",
    ) -> None:
        """
        Route `action` to `handler_factory().<method>(request, auth)`. Listing
        handlers use the default method; entity controllers register one
        action per operation.
        """
        if not action:
            raise ValueError("action is required")
        if action in self._routes:
            raise ValueError(f"action already registered: {action}")
        self._routes[action] = ActionRoute(action, handler_factory, capability, token_action, method)
        log.debug("dispatch action registered action=%s capability=%s method=%s", action, capability, method)

    def actions(self) -> List[str]:
        return sorted(self._routes)

    def route(self, action: str) -> Optional[ActionRoute]:
        return self._routes.get(action)

    # ------------------------------------------------------------------

    def _check_token(self, route: Optional[ActionRoute], ctx: DispatchContext) -> None:
        token_action = route.token_action if route else "datatable"
        if not self.nonces.verify(ctx.token, token_action, ctx.auth.session_id):
            raise ValidationError("Security check failed")

    def _check_access(self, action: str, route: Optional[ActionRoute], auth: AuthContext) -> None:
        capability = route.capability if route else READ
        allowed = self.extensions.apply(CAN_ACCESS_POINT, auth.can(capability), action, auth)
        if not allowed:
            raise AuthorizationError(context={"action": action, "capability": capability})

    def _resolve_handler(self, action: str, route: Optional[ActionRoute]) -> Callable[..., Any]:
        if route is None:
            raise ValidationError("Invalid action", context={"action": action})
        handler = getattr(route.handler_factory(), route.method, None)
        if not callable(handler):
            raise ValidationError("Invalid handler", context={"action": action})
        return handler

    def _run(self, action: str, raw_request: Mapping[str, Any], ctx: DispatchContext) -> Any:
        if not ctx.is_async:
            raise ValidationError("Invalid request")

        route = self._routes.get(action)
        self._check_token(route, ctx)

        if not ctx.auth.is_authenticated:
            raise AuthenticationError()

        self._check_access(action, route, ctx.auth)
        handler = self._resolve_handler(action, route)

        try:
            data = handler(raw_request, ctx.auth)
        except AppCoreError:
            raise
        except Exception as e:
            raise ExecutionError(str(e)) from e

        return self.extensions.apply(OUTPUT_POINT, data, action, ctx.auth)

    def _failure(self, action: str, err: Exception) -> Dict[str, Any]:
        if isinstance(err, AppCoreError):
            message, code = err.public_message, err.code
        else:
            message, code = ExecutionError.public_message, ExecutionError.code

        payload: Dict[str, Any] = {"message": message, "code": code}
        if isinstance(err, ValidationError) and err.context.get("errors"):
            payload["errors"] = dict(err.context["errors"])
        if self.settings.debug:
            payload["debug"] = str(err)
            log.exception("dispatch failed action=%s code=%s", action, code, exc_info=err)
        else:
            log.warning("dispatch failed action=%s code=%s error=%s", action, code, err)
        return {"success": False, "data": payload}

    def dispatch(
        self,
        action: str,
        raw_request: Optional[Mapping[str, Any]] = None,
        ctx: Optional[DispatchContext] = None,
    ) -> Dict[str, Any]:
        ctx = ctx or DispatchContext()
        try:
            data = self._run(action, raw_request or {}, ctx)
        except Exception as e:
            outcome = e.code if isinstance(e, AppCoreError) else ExecutionError.code
            record_dispatch(action, outcome)
            return self._failure(action, e)
        finally:
            # relation memo lives exactly one dispatch
            ctx.auth.relations.clear()

        record_dispatch(action, "success")
        return {"success": True, "data": data}
