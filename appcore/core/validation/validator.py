from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from appcore.core.auth.context import AuthContext

log = logging.getLogger("appcore.validation")

Capability = Union[str, Sequence[str]]


class PermissionValidator(ABC):
    """
    Per-entity permission checks for one caller.

    Checks without an id are capability checks. Checks with an id look up the
    caller's relation to that entity (owner, admin, ...) once per request:
    relations are memoised in `auth.relations`, which dies with the dispatch.
    """

    entity: str = ""
    entity_display_name: str = ""
    create_capability: Capability = ""
    view_capabilities: Capability = ()
    update_capabilities: Capability = ()
    delete_capability: Capability = ""
    list_capability: Capability = ""

    def __init__(self, auth: AuthContext):
        self.auth = auth

    # ------------------------------------------------------------------
    # entity specific
    # ------------------------------------------------------------------

    @abstractmethod
    def load_relation(self, entity_id: Any) -> Dict[str, Any]:
        """Return the caller's relation to the entity; must include access_type."""

    @abstractmethod
    def check_view(self, relation: Mapping[str, Any]) -> bool:
        ...

    @abstractmethod
    def check_update(self, relation: Mapping[str, Any]) -> bool:
        ...

    @abstractmethod
    def check_delete(self, relation: Mapping[str, Any]) -> bool:
        ...

    def validate_form(self, data: Mapping[str, Any], entity_id: Optional[Any] = None) -> Dict[str, str]:
        return {}

    # ------------------------------------------------------------------

    def _label(self) -> str:
        return (self.entity_display_name or self.entity).lower()

    def _action_capabilities(self) -> Dict[str, Capability]:
        return {
            "create": self.create_capability,
            "update": self.update_capabilities,
            "edit": self.update_capabilities,
            "view": self.view_capabilities,
            "delete": self.delete_capability,
            "list": self.list_capability,
        }

    def _has_any(self, required: Capability) -> bool:
        caps = [required] if isinstance(required, str) else list(required)
        return any(self.auth.can(c) for c in caps if c)

    def _relation_key(self, entity_id: Any):
        return (self.entity, entity_id, self.auth.user_id)

    def get_user_relation(self, entity_id: Any) -> Dict[str, Any]:
        return self.auth.relations.get_or_load(self._relation_key(entity_id), lambda: self.load_relation(entity_id))

    def validate_basic_permission(self, action: str) -> Dict[str, str]:
        required = self._action_capabilities().get(action)
        if not required:
            raise ValueError(f"Invalid action specified: {action}")
        if self._has_any(required):
            return {}
        return {"permission": f"You do not have permission for this operation on {self._label()}."}

    def validate_permission(self, action: str, entity_id: Optional[Any] = None) -> Dict[str, str]:
        if not entity_id:
            return self.validate_basic_permission(action)

        relation = self.get_user_relation(entity_id)
        if action == "view":
            ok, verb = self.check_view(relation), "view"
        elif action in ("update", "edit"):
            ok, verb = self.check_update(relation), "edit"
        elif action == "delete":
            ok, verb = self.check_delete(relation), "delete"
        else:
            raise ValueError(f"Invalid action specified: {action}")

        if ok:
            return {}
        log.debug("permission denied entity=%s id=%s action=%s user=%s", self.entity, entity_id, action, self.auth.user_id)
        return {"permission": f"You do not have permission to {verb} this {self._label()}."}

    def validate_access(self, entity_id: Any) -> Dict[str, Any]:
        relation = self.get_user_relation(entity_id)
        return {
            "has_access": self.check_view(relation),
            "access_type": relation.get("access_type", "none"),
            "relation": relation,
            "entity_id": entity_id,
        }

    def clear_cache(self, entity_id: Optional[Any] = None) -> None:
        if entity_id is None:
            self.auth.relations.clear()
        else:
            self.auth.relations.forget(self._relation_key(entity_id))

    def validate(self, data: Mapping[str, Any], entity_id: Optional[Any] = None) -> Dict[str, str]:
        return self.validate_form(data, entity_id)
