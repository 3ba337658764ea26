from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request

from appcore.core.auth.context import AuthContext

router = APIRouter()


@router.get("/nonce")
def issue_nonce(request: Request, action: str = Query("datatable", min_length=1, max_length=64)):
    auth = getattr(request.state, "auth", None) or AuthContext.anonymous()
    if not auth.is_authenticated:
        raise HTTPException(status_code=401, detail="Authentication required")

    nonces = request.app.state.container.nonces
    return {
        "action": action,
        "nonce": nonces.create(action, auth.session_id),
        "ttl_seconds": nonces.ttl_seconds,
    }
