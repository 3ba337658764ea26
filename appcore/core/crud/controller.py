from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional, Sequence

from appcore.core.auth.context import AuthContext
from appcore.core.crud.model import CrudModel
from appcore.core.errors import AuthorizationError, ExecutionError, ValidationError
from appcore.core.validation.validator import PermissionValidator

log = logging.getLogger("appcore.crud")


class CrudController(ABC):
    """
    Create/read/update/delete actions for one entity, served through the
    dispatcher. The dispatcher has already checked the security token and
    authentication; each action then runs permission check, form validation
    and the model call, and returns `{"message", "data"}`.

    `operations` maps a dispatch action name to the controller method and is
    what `register_controller` installs. A missing row is reported before the
    permission check so that callers get "not found" rather than "denied".
    """

    entity_label: str = ""
    token_action: str = ""
    id_fields: Sequence[str] = ("id",)
    operations: Mapping[str, str] = {}

    def __init__(self, model: CrudModel):
        self.model = model

    @abstractmethod
    def validator(self, auth: AuthContext) -> PermissionValidator:
        ...

    @abstractmethod
    def prepare_create_data(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    def prepare_update_data(self, entity_id: int, payload: Mapping[str, Any]) -> Dict[str, Any]:
        ...

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    @property
    def label(self) -> str:
        return self.entity_label or self.model.entity

    def entity_id(self, payload: Mapping[str, Any]) -> int:
        raw = next((payload[f] for f in self.id_fields if payload.get(f) not in (None, "")), None)
        try:
            value = int(raw)
        except (TypeError, ValueError):
            value = 0
        if value <= 0:
            raise ValidationError("Invalid ID")
        return value

    def check_permission(self, validator: PermissionValidator, action: str, entity_id: Optional[int] = None) -> None:
        errors = validator.validate_permission(action, entity_id)
        if errors:
            raise AuthorizationError(next(iter(errors.values())), context={"action": action, "id": entity_id})

    def validate(self, validator: PermissionValidator, data: Mapping[str, Any], entity_id: Optional[int] = None) -> None:
        errors = validator.validate(data, entity_id)
        if errors:
            raise ValidationError(" ".join(errors.values()), context={"errors": errors})

    def _require(self, entity_id: int) -> Dict[str, Any]:
        row = self.model.find(entity_id)
        if row is None:
            raise ValidationError(f"{self.label} not found")
        return row

    # ------------------------------------------------------------------
    # actions
    # ------------------------------------------------------------------

    def store(self, payload: Mapping[str, Any], auth: AuthContext) -> Dict[str, Any]:
        validator = self.validator(auth)
        self.check_permission(validator, "create")

        data = self.prepare_create_data(payload)
        self.validate(validator, data)

        new_id = self.model.create(data)
        if not new_id:
            raise ExecutionError(f"{self.model.entity} create failed")
        return {"message": f"{self.label} created successfully", "data": self.model.find(new_id)}

    def update(self, payload: Mapping[str, Any], auth: AuthContext) -> Dict[str, Any]:
        validator = self.validator(auth)
        entity_id = self.entity_id(payload)
        self._require(entity_id)
        self.check_permission(validator, "update", entity_id)

        data = self.prepare_update_data(entity_id, payload)
        self.validate(validator, data, entity_id)

        if not self.model.update(entity_id, data):
            raise ValidationError(f"Nothing to update for this {self.label.lower()}")
        return {"message": f"{self.label} updated successfully", "data": self.model.find(entity_id)}

    def delete(self, payload: Mapping[str, Any], auth: AuthContext) -> Dict[str, Any]:
        validator = self.validator(auth)
        entity_id = self.entity_id(payload)
        self._require(entity_id)
        self.check_permission(validator, "delete", entity_id)

        if not self.model.delete(entity_id):
            raise ExecutionError(f"{self.model.entity} delete failed id={entity_id}")
        return {"message": f"{self.label} deleted successfully", "data": {"id": entity_id}}

    def show(self, payload: Mapping[str, Any], auth: AuthContext) -> Dict[str, Any]:
        validator = self.validator(auth)
        entity_id = self.entity_id(payload)
        row = self._require(entity_id)
        self.check_permission(validator, "view", entity_id)
        return {"message": f"{self.label} retrieved successfully", "data": row}


def register_controller(dispatcher, factory, controller_cls) -> None:
    """Install one dispatch action per entry of `controller_cls.operations`."""
    for action, method in controller_cls.operations.items():
        dispatcher.register(action, factory, token_action=controller_cls.token_action, method=method)
    log.debug("crud actions registered entity=%s actions=%s", controller_cls.entity_label, sorted(controller_cls.operations))
