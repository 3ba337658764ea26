from __future__ import annotations

import json
import os
from typing import Any, Dict, Mapping, Optional, Sequence

import jwt

from appcore.core.auth.models import Principal


class AuthError(Exception):
    pass


def _setting(name: str, default: str = "") -> str:
    return (os.getenv(f"APPCORE_{name}") or default).strip()


def _bearer(headers: Mapping[str, str]) -> str:
    raw = headers.get("authorization") or headers.get("x-forwarded-authorization")
    if not raw:
        raise AuthError("Authentication required")
    scheme, _, token = raw.partition(" ")
    if scheme != "Bearer" or not token.strip():
        raise AuthError("Invalid authorization header")
    return token.strip()


def _to_user_id(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _roles(value: Any, default: Sequence[str] = ("viewer",)) -> list:
    if isinstance(value, str):
        return [value]
    return list(value or default)


class DevTokenProvider:
    """Fixed bearer tokens for local development and tests. Refused in prod."""

    TOKENS: Dict[str, Principal] = {
        "dev_admin_token": Principal(subject="dev_admin", roles=["administrator"], user_id=1),
        "dev_staff_admin_token": Principal(subject="dev_staff_admin", roles=["platform_admin"], user_id=2),
        "dev_staff_token": Principal(subject="dev_staff", roles=["platform_staff"], user_id=3),
        "dev_viewer_token": Principal(subject="dev_viewer", roles=["viewer"], user_id=4),
        "dev_restricted_token": Principal(subject="dev_restricted", roles=["restricted"], user_id=5),
    }

    def authenticate(self, headers: Mapping[str, str]) -> Optional[Principal]:
        principal = self.TOKENS.get(_bearer(headers))
        if principal is None:
            raise AuthError("Invalid bearer token")
        return principal


class StaticTokenProvider:
    """One shared bearer token per role, e.g. for a reverse proxy in front of the admin."""

    def __init__(self, tokens: Mapping[str, str]):
        self.tokens = {t: role for t, role in tokens.items() if t}
        if not self.tokens:
            raise AuthError(
                "Missing static token config: set APPCORE_STATIC_ADMIN_TOKEN or APPCORE_STATIC_VIEWER_TOKEN"
            )

    @classmethod
    def from_env(cls) -> "StaticTokenProvider":
        return cls(
            {
                _setting("STATIC_ADMIN_TOKEN"): "administrator",
                _setting("STATIC_VIEWER_TOKEN"): "viewer",
            }
        )

    def authenticate(self, headers: Mapping[str, str]) -> Optional[Principal]:
        role = self.tokens.get(_bearer(headers))
        if role is None:
            raise AuthError("Invalid bearer token")
        return Principal(subject=role, roles=[role])


class ApiKeyProvider:
    """
    Service accounts sending `X-API-Key: <key>`.

    APPCORE_API_KEYS_JSON maps each key to its account:
      {"key_abc": {"sub": "svc-sync", "roles": ["platform_admin"], "user_id": 7}}
    """

    def __init__(self, accounts: Mapping[str, Mapping[str, Any]]):
        if not isinstance(accounts, Mapping) or not accounts:
            raise AuthError("APPCORE_API_KEYS_JSON must be a non-empty object")
        self.accounts = dict(accounts)

    @classmethod
    def from_env(cls) -> "ApiKeyProvider":
        raw = _setting("API_KEYS_JSON")
        if not raw:
            raise AuthError("Missing APPCORE_API_KEYS_JSON for api_key mode")
        try:
            accounts = json.loads(raw)
        except ValueError as e:
            raise AuthError(f"Invalid APPCORE_API_KEYS_JSON: {e}") from e
        return cls(accounts)

    def authenticate(self, headers: Mapping[str, str]) -> Optional[Principal]:
        key = headers.get("x-api-key")
        if not key:
            raise AuthError("Authentication required")
        account = self.accounts.get(key)
        if not account:
            raise AuthError("Invalid api key")
        return Principal(
            subject=account.get("sub") or "service",
            roles=_roles(account.get("roles")),
            user_id=_to_user_id(account.get("user_id")),
        )


class JwtProvider:
    """
    HS256 bearer tokens issued by the identity provider.

    Claims used: sub, roles (or role), uid. Issuer and audience are only
    checked when configured.
    """

    def __init__(
        self,
        signing_key: str,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
        leeway_seconds: int = 30,
    ):
        if not signing_key:
            raise AuthError("Missing APPCORE_SIGNING_KEY for jwt mode")
        self.signing_key = signing_key
        self.issuer = issuer
        self.audience = audience
        self.leeway_seconds = leeway_seconds

    @classmethod
    def from_env(cls) -> "JwtProvider":
        try:
            leeway = int(_setting("JWT_LEEWAY_SECONDS", "30"))
        except ValueError:
            leeway = 30
        return cls(
            signing_key=_setting("SIGNING_KEY"),
            issuer=_setting("JWT_ISSUER") or None,
            audience=_setting("JWT_AUDIENCE") or None,
            leeway_seconds=leeway,
        )

    def authenticate(self, headers: Mapping[str, str]) -> Optional[Principal]:
        try:
            claims = jwt.decode(
                _bearer(headers),
                self.signing_key,
                algorithms=["HS256"],
                issuer=self.issuer,
                audience=self.audience,
                leeway=self.leeway_seconds,
                options={
                    "verify_iss": self.issuer is not None,
                    "verify_aud": self.audience is not None,
                },
            )
        except jwt.PyJWTError as e:
            raise AuthError("Invalid bearer token") from e

        return Principal(
            subject=claims.get("sub") or "user",
            roles=_roles(claims.get("roles") or claims.get("role")),
            user_id=_to_user_id(claims.get("uid")),
        )


def get_auth_provider(mode: Optional[str] = None, env: Optional[str] = None):
    """Provider for APPCORE_AUTH_MODE; None means every caller is anonymous."""
    mode = (mode or _setting("AUTH_MODE", "none")).lower()
    env = (env or _setting("ENV", "dev")).lower()

    if mode == "none":
        return None
    if mode == "dev":
        if env == "prod":
            raise AuthError("dev tokens are not allowed in prod")
        return DevTokenProvider()
    if mode == "static_token":
        if env == "prod" and _setting("ALLOW_STATIC_TOKEN_IN_PROD").lower() not in ("1", "true", "yes"):
            raise AuthError("static_token not allowed in prod (set APPCORE_ALLOW_STATIC_TOKEN_IN_PROD=true to override)")
        return StaticTokenProvider.from_env()
    if mode == "jwt":
        return JwtProvider.from_env()
    if mode == "api_key":
        return ApiKeyProvider.from_env()

    raise AuthError(f"Unsupported auth mode: {mode}")
