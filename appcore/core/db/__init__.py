from .sqlite import SQLiteStore
from .store import ExecuteResult, RelationalStore, Row

__all__ = ["ExecuteResult", "RelationalStore", "Row", "SQLiteStore"]
