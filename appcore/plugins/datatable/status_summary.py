from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from appcore.core.extensions.registry import ExtensionRegistry
from appcore.core.query.entity_model import STATUS_ALL

POINT = "datatable.platform_staff.response"


def _status_summary(page: Dict[str, Any], request, model, auth) -> Dict[str, Any]:
    page["summary"] = {
        "active": model.get_total_count("active", auth),
        "inactive": model.get_total_count("inactive", auth),
        "all": model.get_total_count(STATUS_ALL, auth),
    }
    return page


@dataclass
class StatusSummaryExtension:
    name: str = "status_summary"
    version: str = "0.1.0"

    def register(self, registry: ExtensionRegistry) -> None:
        registry.add(POINT, _status_summary, priority=50, name=self.name)


EXTENSION = StatusSummaryExtension()
