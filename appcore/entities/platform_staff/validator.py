from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from appcore.core.auth.capabilities import (
    ADD_PLATFORM_STAFF,
    DELETE_PLATFORM_STAFF,
    EDIT_PLATFORM_STAFF,
    LIST_PLATFORM_STAFF,
    MANAGE_OPTIONS,
    VIEW_PLATFORM_STAFF,
)
from appcore.core.auth.context import AuthContext
from appcore.core.validation.validator import PermissionValidator
from appcore.entities.platform_staff.cache import ENTITY
from appcore.entities.platform_staff.model import STATUS_ACTIVE, STATUS_INACTIVE, PlatformStaffModel
from appcore.entities.platform_staff.schema import DEPARTMENTS

_PHONE_RE = re.compile(r"^[\d\s\+\-\(\)]+$")

MAX_NAME_LENGTH = 100
MAX_DEPARTMENT_LENGTH = 50
MAX_PHONE_LENGTH = 20


class PlatformStaffValidator(PermissionValidator):
    """
    Staff permissions and form rules. A staff member may always view and edit
    their own record; other rows need the staff capabilities.
    """

    entity = ENTITY
    entity_display_name = "Platform Staff"
    create_capability = ADD_PLATFORM_STAFF
    view_capabilities = (VIEW_PLATFORM_STAFF, MANAGE_OPTIONS)
    update_capabilities = (EDIT_PLATFORM_STAFF, MANAGE_OPTIONS)
    delete_capability = DELETE_PLATFORM_STAFF
    list_capability = LIST_PLATFORM_STAFF

    def __init__(self, auth: AuthContext, model: PlatformStaffModel, allowed_departments=DEPARTMENTS):
        super().__init__(auth)
        self.model = model
        self.allowed_departments = tuple(allowed_departments or ())

    def load_relation(self, entity_id: Any) -> Dict[str, Any]:
        staff = self.model.find(entity_id)
        is_admin = self.auth.can(MANAGE_OPTIONS)
        is_owner = bool(staff) and self.auth.user_id is not None and staff.get("user_id") == self.auth.user_id
        if staff is None:
            access_type = "none"
        elif is_admin:
            access_type = "admin"
        elif is_owner:
            access_type = "owner"
        elif self._has_any(self.view_capabilities):
            access_type = "staff"
        else:
            access_type = "none"
        return {"exists": staff is not None, "is_admin": is_admin, "is_owner": is_owner, "access_type": access_type}

    def check_view(self, relation: Mapping[str, Any]) -> bool:
        return relation["exists"] and (relation["is_owner"] or self._has_any(self.view_capabilities))

    def check_update(self, relation: Mapping[str, Any]) -> bool:
        return relation["exists"] and (relation["is_owner"] or self._has_any(self.update_capabilities))

    def check_delete(self, relation: Mapping[str, Any]) -> bool:
        return relation["exists"] and self._has_any(self.delete_capability)

    # ------------------------------------------------------------------
    # form rules
    # ------------------------------------------------------------------

    def validate_department(self, department: str) -> Optional[str]:
        if len(department) > MAX_DEPARTMENT_LENGTH:
            return f"Department must be at most {MAX_DEPARTMENT_LENGTH} characters"
        if self.allowed_departments and department not in self.allowed_departments:
            return "Department must be one of: " + ", ".join(self.allowed_departments)
        return None

    def validate_phone(self, phone: str) -> Optional[str]:
        if len(phone) > MAX_PHONE_LENGTH:
            return f"Phone number must be at most {MAX_PHONE_LENGTH} characters"
        if not _PHONE_RE.match(phone):
            return "Phone number may only contain digits, spaces, +, - and parentheses"
        return None

    @staticmethod
    def validate_date(value: str) -> bool:
        try:
            datetime.strptime(value, "%Y-%m-%d")
        except (TypeError, ValueError):
            return False
        return True

    def _optional_fields(self, data: Mapping[str, Any], errors: Dict[str, str]) -> None:
        if data.get("department"):
            msg = self.validate_department(str(data["department"]))
            if msg:
                errors["department"] = msg
        if data.get("hire_date") and not self.validate_date(str(data["hire_date"])):
            errors["hire_date"] = "Invalid hire_date (use YYYY-MM-DD)"
        if data.get("phone"):
            msg = self.validate_phone(str(data["phone"]))
            if msg:
                errors["phone"] = msg
        if data.get("status") and data["status"] not in (STATUS_ACTIVE, STATUS_INACTIVE):
            errors["status"] = f"Status must be {STATUS_ACTIVE} or {STATUS_INACTIVE}"

    def validate_form(self, data: Mapping[str, Any], entity_id: Optional[Any] = None) -> Dict[str, str]:
        errors: Dict[str, str] = {}
        if entity_id is None:
            for field in ("user_id", "full_name"):
                if not data.get(field):
                    errors[field] = f"Field {field} is required"
            if data.get("user_id") and self.model.find_by_user_id(data["user_id"]):
                errors["user_id"] = "User already has a staff profile"
            if data.get("employee_id") and self.model.find_by_employee_id(data["employee_id"]):
                errors["employee_id"] = "Employee ID is already in use"
        else:
            if self.model.find(entity_id) is None:
                return {"id": "Staff not found"}
            if "full_name" in data and not data["full_name"]:
                errors["full_name"] = "Full name must not be empty"

        if data.get("full_name") and len(str(data["full_name"])) > MAX_NAME_LENGTH:
            errors["full_name"] = f"Full name must be at most {MAX_NAME_LENGTH} characters"
        self._optional_fields(data, errors)
        return errors
