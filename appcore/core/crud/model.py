from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Sequence

from appcore.core.cache.manager import CacheManager
from appcore.core.cache.store import MISS
from appcore.core.db.store import RelationalStore, Row
from appcore.core.extensions.registry import ExtensionRegistry
from appcore.core.query.fragments import is_identifier

log = logging.getLogger("appcore.crud")


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


class CrudModel:
    """
    Cache-aside persistence for one entity table.

    Reads go through the entity cache; every write drops the entity key and
    every cached listing page of the entity. Extension points:

      <entity>.before_insert   filter  fn(insert_data, raw_data) -> insert_data
      <entity>.created         action  fn(id, insert_data)
      <entity>.updated         action  fn(id, before, changes)
      <entity>.deleted         action  fn(id, before)
    """

    entity: str = ""
    table: str = ""
    index_column: str = "id"
    insert_fields: Sequence[str] = ()
    update_fields: Sequence[str] = ()
    timestamps: bool = True

    def __init__(
        self,
        db: RelationalStore,
        extensions: ExtensionRegistry,
        cache: Optional[CacheManager] = None,
    ):
        if not self.entity or not self.table:
            raise TypeError(f"{type(self).__name__} must set entity and table")
        for name in (self.index_column, *self.insert_fields, *self.update_fields):
            if not is_identifier(name):
                raise TypeError(f"{type(self).__name__}: invalid column name {name!r}")
        self.db = db
        self.extensions = extensions
        self.cache = cache

    def hook(self, kind: str) -> str:
        return f"{self.entity}.{kind}"

    @property
    def listing_context(self) -> str:
        return self.entity

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def load(self, entity_id: Any) -> Optional[Row]:
        return self.db.fetch_one(
            f"SELECT * FROM {self.table} WHERE {self.index_column} = ?",
            (entity_id,),
        )

    def find(self, entity_id: Any) -> Optional[Row]:
        if self.cache is not None:
            cached = self.cache.get(self.entity, entity_id)
            if cached is not MISS:
                return cached
        row = self.load(entity_id)
        if row is not None and self.cache is not None:
            self.cache.set(self.entity, row, entity_id)
        return row

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    def prepare_insert(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        return {f: data.get(f) for f in self.insert_fields if f in data}

    def create(self, data: Mapping[str, Any]) -> Optional[int]:
        insert_data = self.prepare_insert(data)
        insert_data = self.extensions.apply_resilient(self.hook("before_insert"), insert_data, dict(data))

        # a filter may inject a static id; it goes first
        if self.index_column in insert_data:
            insert_data = {self.index_column: insert_data.pop(self.index_column), **insert_data}
        if self.timestamps:
            now = _now()
            insert_data.setdefault("created_at", now)
            insert_data.setdefault("updated_at", now)

        columns = list(insert_data)
        bad = [c for c in columns if not is_identifier(c)]
        if bad:
            log.error("insert rejected entity=%s invalid_columns=%s", self.entity, bad)
            return None

        sql = "INSERT INTO {} ({}) VALUES ({})".format(
            self.table, ", ".join(columns), ", ".join("?" for _ in columns)
        )
        try:
            result = self.db.execute(sql, [insert_data[c] for c in columns])
        except Exception as e:
            log.error("insert failed entity=%s error=%s", self.entity, e)
            return None

        new_id = insert_data.get(self.index_column) or result.lastrowid
        self.invalidate(new_id, None)
        self.extensions.emit(self.hook("created"), new_id, insert_data)
        log.info("entity created entity=%s id=%s", self.entity, new_id)
        return new_id

    def update(self, entity_id: Any, data: Mapping[str, Any]) -> bool:
        before = self.find(entity_id)
        if before is None:
            return False

        changes = {f: data[f] for f in self.update_fields if f in data}
        if not changes:
            return False
        if self.timestamps:
            changes["updated_at"] = _now()

        assignments = ", ".join(f"{c} = ?" for c in changes)
        sql = f"UPDATE {self.table} SET {assignments} WHERE {self.index_column} = ?"
        try:
            self.db.execute(sql, [*changes.values(), entity_id])
        except Exception as e:
            log.error("update failed entity=%s id=%s error=%s", self.entity, entity_id, e)
            return False

        self.invalidate(entity_id, before)
        self.extensions.emit(self.hook("updated"), entity_id, before, changes)
        log.info("entity updated entity=%s id=%s fields=%s", self.entity, entity_id, sorted(changes))
        return True

    def delete(self, entity_id: Any) -> bool:
        before = self.find(entity_id)
        if before is None:
            return False
        try:
            result = self.db.execute(f"DELETE FROM {self.table} WHERE {self.index_column} = ?", (entity_id,))
        except Exception as e:
            log.error("delete failed entity=%s id=%s error=%s", self.entity, entity_id, e)
            return False
        if not result.rowcount:
            return False

        self.invalidate(entity_id, before)
        self.extensions.emit(self.hook("deleted"), entity_id, before)
        log.info("entity deleted entity=%s id=%s", self.entity, entity_id)
        return True

    # ------------------------------------------------------------------
    # invalidation
    # ------------------------------------------------------------------

    def invalidate_related(self, entity_id: Any, before: Optional[Row]) -> None:
        """Drop caches derived from the row (lookups by owner, group, ...)."""

    def invalidate(self, entity_id: Any, before: Optional[Row]) -> None:
        if self.cache is None:
            return
        if entity_id is not None:
            self.cache.delete(self.entity, entity_id)
        self.invalidate_related(entity_id, before)
        self.cache.invalidate_listing_cache(self.listing_context)

