from __future__ import annotations

from dataclasses import dataclass
from typing import List

from appcore.core.extensions.registry import ExtensionRegistry
from appcore.core.query.fragments import WhereFragment

POINT = "datatable.platform_staff.where"


def _department_where(where: List[WhereFragment], request, model, auth) -> List[WhereFragment]:
    department = request.filter_value("filter_department")
    if not department:
        return where
    where.append(WhereFragment.eq(f"{model.table_alias}.department", str(department)))
    return where


@dataclass
class DepartmentFilterExtension:
    name: str = "department_filter"
    version: str = "0.1.0"

    def register(self, registry: ExtensionRegistry) -> None:
        registry.add(POINT, _department_where, priority=10, name=self.name)


EXTENSION = DepartmentFilterExtension()
