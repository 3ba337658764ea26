from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional

from appcore.core.auth.capabilities import READ
from appcore.core.auth.context import AuthContext
from appcore.core.db.store import Row
from appcore.core.query.fragments import WhereFragment
from appcore.core.query.model import DataTableModel
from appcore.core.query.request import DataTableRequest

STATUS_ALL = "all"


@dataclass(frozen=True)
class StatusBadge:
    state: str  # "active" | "inactive"
    label: str

    def as_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class RowAction:
    name: str
    label: str
    entity: str
    row_id: Any
    icon: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class EntityDataTableModel(DataTableModel):
    """
    Shared behaviour for entity listings: active/inactive status filtering,
    status badges, permission-gated row actions and whole-table counts that
    go through the same WHERE pipeline as the listing.
    """

    entity_display_name: str = ""
    table_alias: str = ""
    status_column: str = "status"
    status_active_value: str = "active"
    view_capability: str = READ
    edit_capability: str = ""
    delete_capability: str = ""

    @property
    def status_expr(self) -> str:
        return f"{self.table_alias}.{self.status_column}" if self.table_alias else self.status_column

    def format_status_badge(self, status: Any) -> StatusBadge:
        if status == self.status_active_value:
            return StatusBadge(state="active", label="Active")
        return StatusBadge(state="inactive", label="Inactive")

    def generate_action_buttons(
        self, row: Row, auth: AuthContext, custom: Iterable[RowAction] = ()
    ) -> List[RowAction]:
        row_id = row.get(self.index_name)
        actions = [RowAction(name="view", label="View Details", entity=self.entity, row_id=row_id, icon="visibility")]
        if self.edit_capability and auth.can(self.edit_capability):
            actions.append(RowAction(name="edit", label="Edit", entity=self.entity, row_id=row_id, icon="edit"))
        if self.delete_capability and auth.can(self.delete_capability):
            actions.append(RowAction(name="delete", label="Delete", entity=self.entity, row_id=row_id, icon="trash"))
        actions.extend(custom)
        return actions

    def format_panel_row_data(self, row: Row) -> Dict[str, Any]:
        row_id = row.get(self.index_name)
        return {
            "DT_RowId": f"{self.entity}-{row_id}",
            "DT_RowData": {"id": row_id, "entity": self.entity},
        }

    def status_where(self, status_filter: Optional[str]) -> List[WhereFragment]:
        status = status_filter if status_filter not in (None, "") else self.status_active_value
        if status == STATUS_ALL:
            return []
        return [WhereFragment.eq(self.status_expr, status)]

    def get_where(self, request: DataTableRequest, auth: AuthContext) -> List[WhereFragment]:
        return self.status_where(request.filter_value("status_filter"))

    def get_total_count(self, status_filter: Optional[str] = None, auth: Optional[AuthContext] = None) -> int:
        """
        Count rows for statistics boxes outside a DataTables request. Feature
        modules' WHERE contributions apply exactly as they do to the listing.
        """
        status = status_filter if status_filter is not None else self.status_active_value
        request = DataTableRequest(start=0, length=1, extra={"status_filter": status})
        return self.count(request, auth)
