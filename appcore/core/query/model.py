from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from appcore.core.auth.context import AuthContext
from appcore.core.cache.manager import CacheManager
from appcore.core.cache.store import MISS
from appcore.core.db.store import RelationalStore, Row
from appcore.core.errors import ExecutionError
from appcore.core.extensions.registry import ExtensionRegistry
from appcore.core.query.builder import QueryDescriptor
from appcore.core.query.fragments import ColumnSpec, JoinSpec, WhereFragment
from appcore.core.query.request import DataTableRequest

log = logging.getLogger("appcore.datatable")

RequestLike = Union[DataTableRequest, Mapping[str, Any]]


class DataTableModel(ABC):
    """
    Server-side DataTables query engine for one entity.

    Subclasses declare the static schema; feature modules extend a listing
    through the extension points named by `hook(kind)`:

      datatable.<entity>.columns   fn(columns, request, model, auth)
      datatable.<entity>.where     fn(where, request, model, auth)
      datatable.<entity>.joins     fn(joins, request, model, auth)
      datatable.<entity>.query     fn(descriptor, request, model, auth)
      datatable.<entity>.row_data  fn(row, record, model, auth)
      datatable.<entity>.response  fn(page, request, model, auth)

    A contribution that raises or returns nothing is skipped; the listing
    degrades instead of failing.
    """

    entity: str = ""
    table: str = ""
    columns: Sequence[Union[str, ColumnSpec]] = ()
    searchable_columns: Sequence[str] = ()
    index_column: str = "id"
    base_where: Sequence[WhereFragment] = ()
    base_joins: Sequence[JoinSpec] = ()
    default_order_column: Optional[str] = None

    def __init__(
        self,
        db: RelationalStore,
        extensions: ExtensionRegistry,
        cache: Optional[CacheManager] = None,
    ):
        if not self.entity or not self.table:
            raise TypeError(f"{type(self).__name__} must set entity and table")
        self.db = db
        self.extensions = extensions
        self.cache = cache

    # ------------------------------------------------------------------
    # schema
    # ------------------------------------------------------------------

    def hook(self, kind: str) -> str:
        return f"datatable.{self.entity}.{kind}"

    @property
    def index_name(self) -> str:
        return self.index_column.split(".")[-1]

    def get_table(self) -> str:
        return self.table

    def get_searchable_columns(self) -> List[str]:
        return list(self.searchable_columns)

    def get_index_column(self) -> str:
        return self.index_column

    def get_columns(self, request: DataTableRequest, auth: AuthContext) -> List[ColumnSpec]:
        base = [ColumnSpec.parse(c) for c in self.columns]
        out = self.extensions.apply_resilient(self.hook("columns"), base, request, self, auth)
        cols: List[ColumnSpec] = []
        for c in out:
            try:
                cols.append(ColumnSpec.parse(c))
            except (AttributeError, TypeError):
                log.warning("column contribution ignored entity=%s value=%r", self.entity, c)
        return cols or base

    def get_where(self, request: DataTableRequest, auth: AuthContext) -> List[WhereFragment]:
        """Entity-specific predicates; the plain engine adds none."""
        return []

    # ------------------------------------------------------------------
    # assembly
    # ------------------------------------------------------------------

    def _clean_where(self, items: Any) -> List[WhereFragment]:
        out: List[WhereFragment] = []
        for raw in items or []:
            try:
                fragment = WhereFragment.coerce(raw)
            except ValueError as e:
                log.warning("where fragment rejected entity=%s error=%s", self.entity, e)
                continue
            if fragment is None or fragment.is_empty:
                continue
            out.append(fragment)
        return out

    def build_where(self, request: DataTableRequest, auth: AuthContext) -> List[WhereFragment]:
        where = list(self.base_where) + list(self.get_where(request, auth))
        contributed = self.extensions.apply_resilient(self.hook("where"), where, request, self, auth)
        return self._clean_where(contributed)

    def build_joins(self, request: DataTableRequest, auth: AuthContext) -> List[JoinSpec]:
        contributed = self.extensions.apply_resilient(
            self.hook("joins"), list(self.base_joins), request, self, auth
        )
        joins = [JoinSpec.coerce(j) for j in contributed or []]
        return [j for j in joins if j is not None]

    def resolve_order(
        self, request: DataTableRequest, columns: List[ColumnSpec]
    ) -> Tuple[Optional[ColumnSpec], str]:
        if request.order:
            o = request.order[0]
            if o.column is not None and 0 <= o.column < len(columns) and columns[o.column].sortable:
                return columns[o.column], "DESC" if o.dir == "desc" else "ASC"

        if self.default_order_column:
            for c in columns:
                if c.name == self.default_order_column or c.expr == self.default_order_column:
                    return c, "ASC"
        for c in columns:
            if c.sortable:
                return c, "ASC"
        return None, "ASC"

    def build_query(self, request: DataTableRequest, auth: AuthContext) -> QueryDescriptor:
        columns = self.get_columns(request, auth)
        order_column, order_dir = self.resolve_order(request, columns)
        descriptor = QueryDescriptor(
            table=self.table,
            columns=columns,
            index_column=self.index_column,
            joins=self.build_joins(request, auth),
            where=self.build_where(request, auth),
            search_value=request.search_value,
            searchable_columns=list(self.searchable_columns),
            order_column=order_column,
            order_dir=order_dir,
            limit=request.length,
            offset=request.start,
        )
        out = self.extensions.apply_resilient(self.hook("query"), descriptor, request, self, auth)
        return out if isinstance(out, QueryDescriptor) else descriptor

    # ------------------------------------------------------------------
    # execution
    # ------------------------------------------------------------------

    def _execute(self, d: QueryDescriptor) -> Tuple[int, int, List[Row]]:
        try:
            total = int(self.db.fetch_value(*d.count_total_sql()) or 0)
            filtered = int(self.db.fetch_value(*d.count_filtered_sql()) or 0)
            records = self.db.fetch_all(*d.select_sql())
        except Exception as e:
            log.error("datatable query failed entity=%s error=%s", self.entity, e)
            raise ExecutionError(f"{self.entity} query failed: {e}") from e
        return total, filtered, records

    @abstractmethod
    def format_row(self, record: Row, auth: AuthContext) -> Dict[str, Any]:
        ...

    def _project(self, record: Row, auth: AuthContext) -> Dict[str, Any]:
        row = self.format_row(record, auth)
        row = self.extensions.apply_resilient(self.hook("row_data"), row, record, self, auth)
        if isinstance(row, dict):
            row.setdefault("id", record.get(self.index_name))
        return row

    def _listing_cache_args(self, request: DataTableRequest, auth: AuthContext, d: QueryDescriptor):
        order = d.order_column.name if d.order_column else self.index_name
        return (
            self.entity,
            auth.access_scope,
            request.start,
            request.length,
            request.search_value,
            order,
            d.order_dir,
        )

    def get_datatable_data(self, request: RequestLike, auth: Optional[AuthContext] = None) -> Dict[str, Any]:
        if not isinstance(request, DataTableRequest):
            request = DataTableRequest.from_payload(request)
        auth = auth or AuthContext.anonymous()

        try:
            descriptor = self.build_query(request, auth)
        except Exception as e:
            log.error("datatable assembly failed entity=%s error=%s", self.entity, e)
            raise ExecutionError(f"{self.entity} query assembly failed: {e}") from e

        page = MISS
        cache_args = None
        if self.cache is not None:
            cache_args = self._listing_cache_args(request, auth, descriptor)
            page = self.cache.get_listing_cache(*cache_args, extra=request.extra)

        if page is MISS:
            total, filtered, records = self._execute(descriptor)
            page = {
                "recordsTotal": total,
                "recordsFiltered": filtered,
                "data": [self._project(r, auth) for r in records],
            }
            if cache_args is not None:
                self.cache.set_listing_cache(*cache_args, page, extra=request.extra)
            log.debug(
                "datatable page entity=%s total=%s filtered=%s rows=%s",
                self.entity,
                total,
                filtered,
                len(page["data"]),
            )

        response = {"draw": request.draw, **page}
        return self.extensions.apply_resilient(self.hook("response"), response, request, self, auth)

    def get_data(self, request: RequestLike, auth: Optional[AuthContext] = None) -> Dict[str, Any]:
        return self.get_datatable_data(request, auth)

    def count(self, request: RequestLike, auth: Optional[AuthContext] = None) -> int:
        """Rows matching the assembled WHERE, ignoring search and paging."""
        if not isinstance(request, DataTableRequest):
            request = DataTableRequest.from_payload(request)
        auth = auth or AuthContext.anonymous()
        descriptor = QueryDescriptor(
            table=self.table,
            columns=[ColumnSpec.parse(c) for c in self.columns],
            index_column=self.index_column,
            joins=self.build_joins(request, auth),
            where=self.build_where(request, auth),
        )
        try:
            return int(self.db.fetch_value(*descriptor.count_where_sql()) or 0)
        except Exception as e:
            raise ExecutionError(f"{self.entity} count failed: {e}") from e
