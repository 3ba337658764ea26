from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, Mapping, Optional

import yaml

READ = "read"
MANAGE_OPTIONS = "manage_options"

VIEW_PLATFORM_STAFF = "view_platform_staff"
EDIT_PLATFORM_STAFF = "edit_platform_staff"
DELETE_PLATFORM_STAFF = "delete_platform_staff"
ADD_PLATFORM_STAFF = "add_platform_staff"
LIST_PLATFORM_STAFF = "view_platform_staff_list"

_STAFF_ALL = {
    VIEW_PLATFORM_STAFF,
    EDIT_PLATFORM_STAFF,
    DELETE_PLATFORM_STAFF,
    ADD_PLATFORM_STAFF,
    LIST_PLATFORM_STAFF,
}

ROLE_CAPABILITIES: Dict[str, FrozenSet[str]] = {
    "administrator": frozenset({READ, MANAGE_OPTIONS} | _STAFF_ALL),
    "platform_admin": frozenset({READ} | _STAFF_ALL),
    "platform_staff": frozenset({READ, VIEW_PLATFORM_STAFF, LIST_PLATFORM_STAFF}),
    "viewer": frozenset({READ}),
    # authenticated but without even "read" (e.g. a suspended account)
    "restricted": frozenset(),
}

RoleMap = Mapping[str, FrozenSet[str]]

# aliases used by static tokens and api keys
ROLE_ALIASES = {"admin": "administrator"}


def capabilities_for(roles: Iterable[str], role_map: Optional[RoleMap] = None) -> FrozenSet[str]:
    table = ROLE_CAPABILITIES if role_map is None else role_map
    caps = set()
    for role in roles or []:
        caps |= table.get(ROLE_ALIASES.get(role, role), frozenset())
    return frozenset(caps)


def load_role_capabilities(path: str, base: Optional[RoleMap] = None) -> Dict[str, FrozenSet[str]]:
    """
    Overlay role definitions from a YAML file onto `base` (the built-in map
    by default). A listed role replaces the built-in role of the same name:

      roles:
        auditor: [read, view_platform_staff, view_platform_staff_list]
        viewer: [read]
    """
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    roles = raw.get("roles") if isinstance(raw, dict) else None
    if not isinstance(roles, dict):
        raise ValueError(f"{path}: expected a 'roles' mapping")

    merged = dict(ROLE_CAPABILITIES if base is None else base)
    for role, caps in roles.items():
        if not isinstance(caps, list) or not all(isinstance(c, str) for c in caps):
            raise ValueError(f"{path}: role {role!r} must list capability names")
        merged[str(role)] = frozenset(caps)
    return merged
