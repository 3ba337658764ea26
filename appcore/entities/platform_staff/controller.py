from __future__ import annotations

from typing import Any, Dict, Mapping

from appcore.core.auth.context import AuthContext
from appcore.core.crud.controller import CrudController
from appcore.entities.platform_staff.model import PlatformStaffModel
from appcore.entities.platform_staff.validator import PlatformStaffValidator

TOKEN_ACTION = "platform_staff"

CREATE_ACTION = "create_platform_staff"
UPDATE_ACTION = "update_platform_staff"
DELETE_ACTION = "delete_platform_staff"
DETAILS_ACTION = "get_platform_staff_details"
STATS_ACTION = "get_platform_staff_stats"

_CREATE_FIELDS = ("employee_id", "full_name", "department", "hire_date", "phone", "status")


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


class PlatformStaffController(CrudController):
    entity_label = "Platform staff"
    token_action = TOKEN_ACTION
    id_fields = ("staff_id", "id")
    operations = {
        CREATE_ACTION: "store",
        UPDATE_ACTION: "update",
        DELETE_ACTION: "delete",
        DETAILS_ACTION: "show",
        STATS_ACTION: "statistics",
    }

    model: PlatformStaffModel

    def validator(self, auth: AuthContext) -> PlatformStaffValidator:
        return PlatformStaffValidator(auth, self.model)

    def prepare_create_data(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        try:
            data["user_id"] = int(payload.get("user_id"))
        except (TypeError, ValueError):
            data["user_id"] = None
        for name in _CREATE_FIELDS:
            value = _text(payload.get(name))
            if value:
                data[name] = value
        return data

    def prepare_update_data(self, entity_id: int, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return {name: _text(payload[name]) for name in self.model.update_fields if name in payload}

    def show(self, payload: Mapping[str, Any], auth: AuthContext) -> Dict[str, Any]:
        out = super().show(payload, auth)
        validator = self.validator(auth)
        staff = dict(out["data"])
        staff["can_edit"] = not validator.validate_permission("update", staff["id"])
        staff["can_delete"] = not validator.validate_permission("delete", staff["id"])
        out["data"] = staff
        return out

    def statistics(self, payload: Mapping[str, Any], auth: AuthContext) -> Dict[str, Any]:
        self.check_permission(self.validator(auth), "list")
        return {"message": "Statistics retrieved successfully", "data": self.model.get_statistics()}
