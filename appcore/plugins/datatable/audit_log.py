from __future__ import annotations

import logging
from dataclasses import dataclass

from appcore.core.extensions.registry import ExtensionRegistry

log = logging.getLogger("appcore.audit")


def _created(staff_id, data) -> None:
    log.info("audit platform_staff created id=%s employee_id=%s", staff_id, data.get("employee_id"))


def _updated(staff_id, before, changes) -> None:
    log.info("audit platform_staff updated id=%s fields=%s", staff_id, ",".join(sorted(changes)))


def _deleted(staff_id, before) -> None:
    log.info("audit platform_staff deleted id=%s employee_id=%s", staff_id, (before or {}).get("employee_id"))


@dataclass
class AuditLogExtension:
    name: str = "audit_log"
    version: str = "0.1.0"

    def register(self, registry: ExtensionRegistry) -> None:
        registry.add("platform_staff.created", _created, name=f"{self.name}.created")
        registry.add("platform_staff.updated", _updated, name=f"{self.name}.updated")
        registry.add("platform_staff.deleted", _deleted, name=f"{self.name}.deleted")


EXTENSION = AuditLogExtension()
