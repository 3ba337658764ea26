from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional

from appcore.core.cache.store import MISS
from appcore.core.crud.model import CrudModel
from appcore.core.db.store import Row
from appcore.entities.platform_staff.cache import ENTITY, STAFF_DEPARTMENT, PlatformStaffCacheManager
from appcore.entities.platform_staff.schema import TABLE, USERS_TABLE

EMPLOYEE_ID_PREFIX = "STAFF-"
STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"

_SORTABLE = ("id", "employee_id", "full_name", "department", "hire_date", "created_at")
_EMPLOYEE_NUMBER_RE = re.compile(r"^STAFF-(\d+)$")


class PlatformStaffModel(CrudModel):
    entity = ENTITY
    table = TABLE
    insert_fields = ("user_id", "employee_id", "full_name", "department", "hire_date", "phone", "status")
    update_fields = ("full_name", "department", "hire_date", "phone", "status")

    cache: Optional[PlatformStaffCacheManager]

    def load(self, entity_id: Any) -> Optional[Row]:
        return self.db.fetch_one(
            f"""
            SELECT s.*, s.full_name AS name, u.user_email AS email
            FROM {TABLE} s
            LEFT JOIN {USERS_TABLE} u ON s.user_id = u.id
            WHERE s.id = ?
            """,
            (entity_id,),
        )

    def prepare_insert(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "user_id": data.get("user_id"),
            "employee_id": data.get("employee_id") or self.generate_employee_id(),
            "full_name": data.get("full_name"),
            "department": data.get("department") or None,
            "hire_date": data.get("hire_date") or None,
            "phone": data.get("phone") or None,
            "status": data.get("status") or STATUS_ACTIVE,
        }

    def invalidate_related(self, entity_id: Any, before: Optional[Row]) -> None:
        if self.cache is None:
            return
        before = before or {}
        self.cache.clear_specific(entity_id, before.get("user_id"), before.get("department"))
        # the row may have moved into another department
        self.cache.clear(STAFF_DEPARTMENT)

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------

    def find_by_user_id(self, user_id: int) -> Optional[Row]:
        if self.cache is not None:
            cached = self.cache.get_user_staff(user_id)
            if cached is not MISS:
                return cached
        row = self.db.fetch_one(f"SELECT * FROM {TABLE} WHERE user_id = ?", (user_id,))
        if row is not None and self.cache is not None:
            self.cache.set_user_staff(user_id, row)
        return row

    def find_by_employee_id(self, employee_id: str) -> Optional[Row]:
        return self.db.fetch_one(f"SELECT * FROM {TABLE} WHERE employee_id = ?", (employee_id,))

    def get_all(self, department: Optional[str] = None, order_by: str = "created_at", order: str = "DESC") -> List[Row]:
        unfiltered = department is None and order_by == "created_at" and order == "DESC"
        if unfiltered and self.cache is not None:
            cached = self.cache.get_staff_list()
            if cached is not MISS:
                return cached

        column = order_by if order_by in _SORTABLE else "created_at"
        direction = "ASC" if str(order).upper() == "ASC" else "DESC"
        sql = f"SELECT * FROM {TABLE}"
        params: List[Any] = []
        if department:
            sql += " WHERE department = ?"
            params.append(department)
        sql += f" ORDER BY {column} {direction}, id ASC"
        rows = self.db.fetch_all(sql, params)

        if unfiltered and self.cache is not None:
            self.cache.set_staff_list(rows)
        return rows

    def get_by_department(self, department: str) -> List[Row]:
        if self.cache is not None:
            cached = self.cache.get_staff_by_department(department)
            if cached is not MISS:
                return cached
        rows = self.get_all(department=department)
        if self.cache is not None:
            self.cache.set_staff_by_department(department, rows)
        return rows

    def get_departments(self) -> List[str]:
        rows = self.db.fetch_all(
            f"SELECT DISTINCT department FROM {TABLE} WHERE department IS NOT NULL ORDER BY department ASC"
        )
        return [r["department"] for r in rows]

    def get_statistics(self) -> Dict[str, Any]:
        if self.cache is not None:
            cached = self.cache.get_staff_stats()
            if cached is not MISS:
                return cached

        by_department: Dict[str, int] = {}
        for r in self.db.fetch_all(
            f"""
            SELECT department, COUNT(*) AS count FROM {TABLE}
            WHERE department IS NOT NULL
            GROUP BY department
            ORDER BY count DESC, department ASC
            """
        ):
            by_department[r["department"]] = int(r["count"])

        stats = {
            "total_staff": int(self.db.fetch_value(f"SELECT COUNT(*) FROM {TABLE}") or 0),
            "active_staff": int(
                self.db.fetch_value(f"SELECT COUNT(*) FROM {TABLE} WHERE status = ?", (STATUS_ACTIVE,)) or 0
            ),
            "by_department": by_department,
            "departments": list(by_department),
            "recent_hires": int(
                self.db.fetch_value(
                    f"SELECT COUNT(*) FROM {TABLE} WHERE hire_date >= date('now', '-30 day')"
                )
                or 0
            ),
        }
        if self.cache is not None:
            self.cache.set_staff_stats(stats)
        return stats

    def generate_employee_id(self) -> str:
        """Next id in the STAFF-001, STAFF-002, ... sequence."""
        last = 0
        for r in self.db.fetch_all(f"SELECT employee_id FROM {TABLE} WHERE employee_id LIKE 'STAFF-%'"):
            m = _EMPLOYEE_NUMBER_RE.match(r["employee_id"] or "")
            if m:
                last = max(last, int(m.group(1)))
        return f"{EMPLOYEE_ID_PREFIX}{last + 1:03d}"
