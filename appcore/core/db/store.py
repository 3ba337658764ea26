from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

Row = Dict[str, Any]


@dataclass(frozen=True)
class ExecuteResult:
    rowcount: int
    lastrowid: Optional[int] = None


class RelationalStore(Protocol):
    """
    Generic query/execute interface to the relational store.

    Statements use qmark placeholders; values are always bound, never
    interpolated. Implementations raise their own driver errors; the query
    layer wraps them in ExecutionError.
    """

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Row]:
        ...

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Row]:
        ...

    def fetch_value(self, sql: str, params: Sequence[Any] = ()) -> Any:
        ...

    def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecuteResult:
        ...
