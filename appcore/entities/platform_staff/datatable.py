from __future__ import annotations

from typing import Any, Dict

from appcore.core.auth.capabilities import DELETE_PLATFORM_STAFF, EDIT_PLATFORM_STAFF
from appcore.core.auth.context import AuthContext
from appcore.core.db.store import Row
from appcore.core.query.entity_model import EntityDataTableModel
from appcore.core.query.fragments import ColumnSpec, JoinSpec
from appcore.entities.platform_staff.cache import ENTITY
from appcore.entities.platform_staff.schema import TABLE, USERS_TABLE


class PlatformStaffDataTableModel(EntityDataTableModel):
    entity = ENTITY
    entity_display_name = "Platform Staff"
    table = f"{TABLE} s"
    table_alias = "s"
    index_column = "s.id"
    columns = (
        "s.id AS id",
        "s.employee_id AS employee_id",
        "s.full_name AS full_name",
        "s.department AS department",
        "s.hire_date AS hire_date",
        "s.phone AS phone",
        "s.status AS status",
        "u.user_email AS user_email",
        ColumnSpec("s.created_at", alias="created_at"),
        ColumnSpec("s.user_id", alias="user_id", sortable=False),
    )
    searchable_columns = ("s.employee_id", "s.full_name", "s.department", "s.phone")
    base_joins = (JoinSpec(f"LEFT JOIN {USERS_TABLE} u ON s.user_id = u.id"),)
    edit_capability = EDIT_PLATFORM_STAFF
    delete_capability = DELETE_PLATFORM_STAFF

    def format_row(self, record: Row, auth: AuthContext) -> Dict[str, Any]:
        badge = self.format_status_badge(record.get("status"))
        row = {
            **self.format_panel_row_data(record),
            "id": record.get("id"),
            "employee_id": record.get("employee_id"),
            "full_name": record.get("full_name"),
            "department": record.get("department") or "-",
            "hire_date": record.get("hire_date") or "-",
            "phone": record.get("phone") or "-",
            "user_email": record.get("user_email") or "",
            "status": badge.as_dict(),
            "actions": [a.as_dict() for a in self.generate_action_buttons(record, auth)],
        }
        return row
