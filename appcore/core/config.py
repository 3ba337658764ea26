from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

_TRUE = ("1", "true", "yes", "on")


def _env(name: str, default: str = "") -> str:
    return (os.getenv(f"APPCORE_{name}") or default).strip()


def _env_bool(name: str, default: bool = False) -> bool:
    raw = _env(name, "true" if default else "false").lower()
    return raw in _TRUE


def _env_int(name: str, default: int) -> int:
    raw = _env(name, str(default))
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str) -> List[str]:
    raw = _env(name)
    return [x.strip() for x in raw.split(",") if x.strip()]


@dataclass(frozen=True)
class Settings:
    """
    Runtime configuration, read from APPCORE_* environment variables.

      APPCORE_ENV                 dev | prod
      APPCORE_DEBUG               echo exception detail in failure envelopes
      APPCORE_AUTH_ENABLED        resolve principals from request credentials
      APPCORE_AUTH_MODE           none | dev | static_token | api_key | jwt
      APPCORE_NONCE_SECRET        HMAC key for security tokens
      APPCORE_NONCE_TTL_SECONDS   lifetime of one nonce tick pair
      APPCORE_CACHE_BACKEND       memory | redis
      APPCORE_REDIS_URL
      APPCORE_CACHE_GROUP
      APPCORE_CACHE_DEFAULT_TTL
      APPCORE_LISTING_CACHE_TTL
      APPCORE_UNCACHED_CONTEXTS   comma separated listing contexts never cached
      APPCORE_DATABASE_PATH       SQLite file (":memory:" by default)
      APPCORE_EXTENSIONS_DIR      directory of feature modules to load
      APPCORE_CORS_ORIGINS        comma separated
      APPCORE_ROLES_FILE          YAML role -> capabilities overlay
    """

    env: str = "dev"
    debug: bool = False
    auth_enabled: bool = True
    auth_mode: str = "none"
    nonce_secret: str = "dev-nonce-secret"
    nonce_ttl_seconds: int = 86400
    cache_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    cache_group: str = "wp_app_core"
    cache_default_ttl: int = 12 * 3600
    listing_cache_ttl: int = 120
    uncached_contexts: List[str] = field(default_factory=list)
    database_path: str = ":memory:"
    extensions_dir: Optional[str] = None
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    roles_file: Optional[str] = None

    @property
    def is_prod(self) -> bool:
        return self.env == "prod"

    @classmethod
    def from_env(cls) -> "Settings":
        env = _env("ENV", "dev").lower()
        secret = _env("NONCE_SECRET")
        if not secret:
            if env == "prod":
                raise RuntimeError("APPCORE_NONCE_SECRET must be set in prod")
            secret = "dev-nonce-secret"

        return cls(
            env=env,
            debug=_env_bool("DEBUG", False),
            auth_enabled=_env_bool("AUTH_ENABLED", True),
            auth_mode=_env("AUTH_MODE", "none").lower(),
            nonce_secret=secret,
            nonce_ttl_seconds=_env_int("NONCE_TTL_SECONDS", 86400),
            cache_backend=_env("CACHE_BACKEND", "memory").lower(),
            redis_url=_env("REDIS_URL", "redis://localhost:6379/0"),
            cache_group=_env("CACHE_GROUP", "wp_app_core"),
            cache_default_ttl=_env_int("CACHE_DEFAULT_TTL", 12 * 3600),
            listing_cache_ttl=_env_int("LISTING_CACHE_TTL", 120),
            uncached_contexts=_env_list("UNCACHED_CONTEXTS"),
            database_path=_env("DATABASE_PATH", ":memory:"),
            extensions_dir=_env("EXTENSIONS_DIR") or None,
            cors_origins=_env_list("CORS_ORIGINS") or ["*"],
            roles_file=_env("ROLES_FILE") or None,
        )
