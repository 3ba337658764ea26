from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from appcore.core.query.fragments import ColumnSpec, JoinSpec, WhereFragment

Statement = Tuple[str, Tuple[Any, ...]]


@dataclass
class QueryDescriptor:
    """
    Everything needed to run one listing: built fresh per call, never stored.

    Compiles to three parameterized statements: unfiltered count, filtered
    count and the paginated select.
    """

    table: str
    columns: List[ColumnSpec]
    index_column: str
    joins: List[JoinSpec] = field(default_factory=list)
    where: List[WhereFragment] = field(default_factory=list)
    search_value: str = ""
    searchable_columns: List[str] = field(default_factory=list)
    order_column: Optional[ColumnSpec] = None
    order_dir: str = "ASC"
    limit: int = 10
    offset: int = 0

    def search_fragment(self) -> Optional[WhereFragment]:
        return WhereFragment.contains_any(self.searchable_columns, self.search_value)

    def _from(self) -> Statement:
        sql = f"FROM {self.table}"
        params: List[Any] = []
        for j in self.joins:
            sql += f" {j.sql}"
            params.extend(j.params)
        return sql, tuple(params)

    def _where(self, include_search: bool = True) -> Statement:
        parts = [w for w in self.where if not w.is_empty]
        if include_search:
            s = self.search_fragment()
            if s is not None:
                parts.append(s)
        if not parts:
            return "", ()
        combined = WhereFragment.all_of(parts)
        return f" WHERE {combined.sql}", combined.params

    def _order(self) -> str:
        direction = "DESC" if str(self.order_dir).upper() == "DESC" else "ASC"
        if self.order_column is None:
            return f" ORDER BY {self.index_column} {direction}"
        # index column as tie-breaker keeps pages stable across requests
        return f" ORDER BY {self.order_column.order_sql} {direction}, {self.index_column} ASC"

    def count_total_sql(self) -> Statement:
        from_sql, from_params = self._from()
        return f"SELECT COUNT(DISTINCT {self.index_column}) AS total {from_sql}", from_params

    def count_filtered_sql(self) -> Statement:
        from_sql, from_params = self._from()
        where_sql, where_params = self._where()
        return (
            f"SELECT COUNT(DISTINCT {self.index_column}) AS total {from_sql}{where_sql}",
            from_params + where_params,
        )

    def count_where_sql(self) -> Statement:
        """Count under the assembled WHERE only (no free-text search)."""
        from_sql, from_params = self._from()
        where_sql, where_params = self._where(include_search=False)
        return (
            f"SELECT COUNT(DISTINCT {self.index_column}) AS total {from_sql}{where_sql}",
            from_params + where_params,
        )

    def select_sql(self) -> Statement:
        select = ", ".join(c.select_sql for c in self.columns)
        from_sql, from_params = self._from()
        where_sql, where_params = self._where()
        sql = f"SELECT {select} {from_sql}{where_sql}{self._order()} LIMIT ? OFFSET ?"
        return sql, from_params + where_params + (int(self.limit), max(0, int(self.offset)))
