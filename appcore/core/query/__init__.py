from .builder import QueryDescriptor
from .entity_model import STATUS_ALL, EntityDataTableModel, RowAction, StatusBadge
from .fragments import ColumnSpec, JoinSpec, WhereFragment, escape_like
from .model import DataTableModel
from .request import DataTableRequest, OrderSpec

__all__ = [
    "ColumnSpec",
    "DataTableModel",
    "DataTableRequest",
    "EntityDataTableModel",
    "JoinSpec",
    "OrderSpec",
    "QueryDescriptor",
    "RowAction",
    "STATUS_ALL",
    "StatusBadge",
    "WhereFragment",
    "escape_like",
]
