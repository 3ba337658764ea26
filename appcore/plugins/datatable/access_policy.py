from __future__ import annotations

from dataclasses import dataclass

from appcore.core.auth.capabilities import LIST_PLATFORM_STAFF, MANAGE_OPTIONS
from appcore.core.extensions.registry import ExtensionRegistry

STAFF_ACTION = "platform_staff_datatable"


def _staff_list_access(allowed: bool, action: str, auth) -> bool:
    # "read" is not enough to list staff
    if action != STAFF_ACTION:
        return allowed
    return bool(allowed) and (auth.can(LIST_PLATFORM_STAFF) or auth.can(MANAGE_OPTIONS))


@dataclass
class StaffAccessPolicyExtension:
    name: str = "staff_access_policy"
    version: str = "0.1.0"

    def register(self, registry: ExtensionRegistry) -> None:
        registry.add("datatable.can_access", _staff_list_access, priority=20, name=self.name)


EXTENSION = StaffAccessPolicyExtension()
