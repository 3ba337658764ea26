from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from appcore.core.auth.capabilities import MANAGE_OPTIONS, RoleMap, capabilities_for
from appcore.core.auth.models import Principal
from appcore.core.cache.keys import content_hash
from appcore.core.cache.request_cache import RelationCache

SCOPE_HASH_LENGTH = 16


@dataclass
class AuthContext:
    """
    Who is calling, threaded explicitly through dispatch, handlers and
    permission checks. One instance per request; its RelationCache dies with it.
    """

    principal: Optional[Principal] = None
    session_id: str = ""
    relations: RelationCache = field(default_factory=RelationCache)
    extra_capabilities: FrozenSet[str] = frozenset()
    role_map: Optional[RoleMap] = None

    @classmethod
    def anonymous(cls) -> "AuthContext":
        return cls(principal=None, session_id="")

    @classmethod
    def for_principal(
        cls,
        principal: Principal,
        session_id: Optional[str] = None,
        role_map: Optional[RoleMap] = None,
    ) -> "AuthContext":
        return cls(
            principal=principal,
            session_id=session_id if session_id is not None else principal.subject,
            role_map=role_map,
        )

    @property
    def is_authenticated(self) -> bool:
        return self.principal is not None

    @property
    def user_id(self) -> Optional[int]:
        return self.principal.user_id if self.principal else None

    @property
    def capabilities(self) -> FrozenSet[str]:
        if self.principal is None:
            return frozenset()
        return capabilities_for(self.principal.roles, self.role_map) | self.extra_capabilities

    def can(self, capability: str) -> bool:
        return self.is_authenticated and capability in self.capabilities

    @property
    def access_scope(self) -> str:
        """
        Visibility class for listing caches: two callers with different
        scopes must never share a cached page.

        Cached rows carry capability-gated actions, so the scope always ends
        with a digest of the effective capability set. Admins share pages only
        with admins holding exactly the same capabilities.
        """
        if self.principal is None:
            return "anonymous"
        caps = content_hash(sorted(self.capabilities))[:SCOPE_HASH_LENGTH]
        if self.can(MANAGE_OPTIONS):
            return f"admin|{caps}"
        roles = ",".join(sorted(set(self.principal.roles or [])))
        return f"user_{self.principal.user_id or self.principal.subject}|{roles}|{caps}"
