from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, TypeVar

from appcore.core.cache.keys import KEY_HASH_LENGTH, KEY_PREFIX_LENGTH, content_hash, generate_key, key_prefix
from appcore.core.cache.store import MISS, CacheStore
from appcore.core.errors import CacheError
from appcore.core.observability.metrics import record_cache

log = logging.getLogger("appcore.cache")

T = TypeVar("T")

LISTING_TYPE = "datatable"
INDEX_TYPE = "__keys"

_LISTING_FILTER_FIELDS = ("access_scope", "start", "length", "search", "order_column", "order_dir")


class CacheManager:
    """
    Typed facade over a CacheStore.

    Keys are `generate_key(type, *components)`. Every store failure is logged
    and turned into a miss (reads) or False (writes); callers never see a
    CacheError. Entity managers subclass this and override the class-level
    configuration.
    """

    entity_name = "app"
    cache_group = "wp_app_core"
    default_ttl = 12 * 3600
    listing_ttl = 120
    known_cache_types: Sequence[str] = (LISTING_TYPE,)
    uncached_contexts: Sequence[str] = ()

    def __init__(
        self,
        store: CacheStore,
        *,
        group: Optional[str] = None,
        default_ttl: Optional[int] = None,
        listing_ttl: Optional[int] = None,
        uncached_contexts: Optional[Iterable[str]] = None,
    ):
        self.store = store
        self.group = group or self.cache_group
        self.ttl = self.default_ttl if default_ttl is None else int(default_ttl)
        self.list_ttl = self.listing_ttl if listing_ttl is None else int(listing_ttl)
        self.bypass_contexts = frozenset(
            self.uncached_contexts if uncached_contexts is None else uncached_contexts
        )

    # ------------------------------------------------------------------
    # store access
    # ------------------------------------------------------------------

    def _guard(self, op: str, fn: Callable[[], T], fallback: T) -> T:
        try:
            return fn()
        except Exception as e:
            err = e if isinstance(e, CacheError) else CacheError(str(e))
            record_cache(op, "error")
            log.warning("cache %s failed entity=%s group=%s error=%s", op, self.entity_name, self.group, err)
            return fallback

    def _index_key(self, cache_type: str) -> str:
        return generate_key(INDEX_TYPE, cache_type)

    def _read_index(self, cache_type: str) -> List[str]:
        known = self.store.get(self._index_key(cache_type), self.group)
        return [k for k in known if isinstance(k, str)] if isinstance(known, list) else []

    def _write_index(self, cache_type: str, keys: List[str]) -> None:
        if keys:
            self.store.set(self._index_key(cache_type), keys, self.group, None)
        else:
            self.store.delete(self._index_key(cache_type), self.group)

    def _track(self, cache_type: str, key: str) -> None:
        """Record `key` in the per-type index, dropping keys that have expired."""
        if self.store.supports_scan:
            return
        live = [k for k in self._read_index(cache_type) if k != key and self.store.get(k, self.group) is not MISS]
        live.append(key)
        self._write_index(cache_type, live)

    def _untrack(self, cache_types: Iterable[str], removed: Iterable[str]) -> None:
        if self.store.supports_scan:
            return
        gone = set(removed)
        if not gone:
            return
        for cache_type in cache_types:
            known = self._read_index(cache_type)
            kept = [k for k in known if k not in gone]
            if len(kept) != len(known):
                self._write_index(cache_type, kept)

    def _indexed_keys(self, cache_types: Iterable[str]) -> List[str]:
        out: List[str] = []
        for cache_type in cache_types:
            out.extend(self._read_index(cache_type))
        return out

    def _keys_with_prefix(self, prefix: str, cache_types: Iterable[str]) -> List[str]:
        if self.store.supports_scan:
            return self.store.keys(self.group, prefix)
        return sorted(k for k in set(self._indexed_keys(cache_types)) if k.startswith(prefix))

    # ------------------------------------------------------------------
    # generic API
    # ------------------------------------------------------------------

    def generate_key(self, *components: Any) -> str:
        return generate_key(*components)

    def get(self, cache_type: str, *components: Any) -> Any:
        key = generate_key(cache_type, *components)
        value = self._guard("get", lambda: self.store.get(key, self.group), MISS)
        if value is MISS:
            record_cache("get", "miss")
            log.debug("cache miss entity=%s key=%s", self.entity_name, key)
        else:
            record_cache("get", "hit")
            log.debug("cache hit entity=%s key=%s", self.entity_name, key)
        return value

    def set(self, cache_type: str, value: Any, *components: Any, ttl: Optional[int] = None) -> bool:
        key = generate_key(cache_type, *components)
        expiry = self.ttl if ttl is None else int(ttl)
        log.debug("cache set entity=%s key=%s type=%s ttl=%s", self.entity_name, key, cache_type, expiry)

        def _write() -> bool:
            ok = bool(self.store.set(key, value, self.group, expiry))
            if ok:
                self._track(cache_type, key)
            return ok

        ok = self._guard("set", _write, False)
        record_cache("set", "ok" if ok else "fail")
        return ok

    def delete(self, cache_type: str, *components: Any) -> bool:
        key = generate_key(cache_type, *components)
        log.debug("cache delete entity=%s key=%s", self.entity_name, key)

        def _run() -> bool:
            deleted = bool(self.store.delete(key, self.group))
            self._untrack([cache_type], [key])
            return deleted

        return self._guard("delete", _run, False)

    def exists(self, cache_type: str, *components: Any) -> bool:
        key = generate_key(cache_type, *components)
        return self._guard("get", lambda: self.store.get(key, self.group), MISS) is not MISS

    def remember(self, cache_type: str, loader: Callable[[], T], *components: Any, ttl: Optional[int] = None) -> T:
        """Cache-aside helper: return the cached value or load, store and return it."""
        cached = self.get(cache_type, *components)
        if cached is not MISS:
            return cached
        value = loader()
        self.set(cache_type, value, *components, ttl=ttl)
        return value

    # ------------------------------------------------------------------
    # listing cache
    # ------------------------------------------------------------------

    @staticmethod
    def listing_context(context: str) -> str:
        """
        Context component as stored in listing keys. A context whose key prefix
        would not fit in the readable head of a shortened key is replaced by
        its digest, so prefix invalidation still reaches all of its pages.
        """
        if len(key_prefix(LISTING_TYPE, context)) <= KEY_PREFIX_LENGTH:
            return context
        return "ctx_" + content_hash(context)[:KEY_HASH_LENGTH]

    @staticmethod
    def _listing_components(
        context: str,
        access_scope: str,
        start: int,
        length: int,
        search: str,
        order_column: Any,
        order_dir: str,
        extra: Optional[Mapping[str, Any]],
    ) -> List[str]:
        components = [
            CacheManager.listing_context(context),
            str(access_scope),
            f"start_{int(start)}",
            f"length_{int(length)}",
            "search_" + content_hash(search or "")[:KEY_HASH_LENGTH],
            f"order_{order_column}",
            f"dir_{str(order_dir).lower()}",
        ]
        for name in sorted(extra or {}):
            components.append(f"{name}_{content_hash(extra[name])[:KEY_HASH_LENGTH]}")
        return components

    @staticmethod
    def _valid_listing_params(context: str, access_scope: str, start: Any, length: Any) -> bool:
        if not context or not access_scope:
            return False
        try:
            int(start)
            int(length)
        except (TypeError, ValueError):
            return False
        return True

    def is_cacheable_context(self, context: str) -> bool:
        return context not in self.bypass_contexts

    def get_listing_cache(
        self,
        context: str,
        access_scope: str,
        start: int,
        length: int,
        search: str,
        order_column: Any,
        order_dir: str,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        if not self.is_cacheable_context(context):
            return MISS
        if not self._valid_listing_params(context, access_scope, start, length):
            log.debug("invalid listing cache lookup context=%r scope=%r", context, access_scope)
            return MISS
        components = self._listing_components(
            context, access_scope, start, length, search, order_column, order_dir, extra
        )
        return self.get(LISTING_TYPE, *components)

    def set_listing_cache(
        self,
        context: str,
        access_scope: str,
        start: int,
        length: int,
        search: str,
        order_column: Any,
        order_dir: str,
        data: Any,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        if not self.is_cacheable_context(context):
            return True
        if not self._valid_listing_params(context, access_scope, start, length):
            log.debug("invalid listing cache write context=%r scope=%r", context, access_scope)
            return False
        components = self._listing_components(
            context, access_scope, start, length, search, order_column, order_dir, extra
        )
        return self.set(LISTING_TYPE, data, *components, ttl=self.list_ttl)

    def invalidate_listing_cache(self, context: str, filters: Optional[Dict[str, Any]] = None) -> bool:
        """
        Drop cached listing pages for a context.

        With `filters` (access_scope, start, length, search, order_column,
        order_dir and optionally extra) exactly one page is removed. Without
        them every page cached for the context is removed by prefix, since a
        write cannot know which sort/search/page combinations were cached.
        """
        if not context:
            log.debug("invalid context in invalidate_listing_cache")
            return False

        if filters:
            missing = [f for f in _LISTING_FILTER_FIELDS if f not in filters]
            if missing:
                log.debug("listing invalidation missing fields=%s context=%s", missing, context)
                return False
            components = self._listing_components(
                context,
                filters["access_scope"],
                filters["start"],
                filters["length"],
                filters["search"],
                filters["order_column"],
                filters["order_dir"],
                filters.get("extra"),
            )
            self.delete(LISTING_TYPE, *components)
            log.info("listing cache invalidated entity=%s context=%s scope=exact", self.entity_name, context)
            return True

        deleted = self.delete_by_prefix(
            key_prefix(LISTING_TYPE, self.listing_context(context)), cache_types=[LISTING_TYPE]
        )
        log.info(
            "listing cache invalidated entity=%s context=%s scope=prefix deleted=%s",
            self.entity_name,
            context,
            deleted,
        )
        return True

    def delete_by_prefix(self, prefix: str, cache_types: Optional[Iterable[str]] = None) -> int:
        types = list(cache_types or self.known_cache_types)

        def _run() -> int:
            deleted = 0
            matched = self._keys_with_prefix(prefix, types)
            for key in matched:
                if self.store.delete(key, self.group):
                    deleted += 1
            self._untrack(types, matched)
            return deleted

        return self._guard("delete_prefix", _run, 0)

    # ------------------------------------------------------------------
    # bulk clear
    # ------------------------------------------------------------------

    def clear(self, cache_type: Optional[str] = None) -> bool:
        def _run() -> bool:
            if self.store.supports_scan:
                if cache_type is None:
                    return bool(self.store.flush_group(self.group))
                for key in self.store.keys(self.group, key_prefix(cache_type)):
                    self.store.delete(key, self.group)
                return True

            types = [t for t in self.known_cache_types if cache_type is None or t == cache_type]
            for key in set(self._indexed_keys(types)):
                self.store.delete(key, self.group)
            for t in types:
                self.store.delete(generate_key(INDEX_TYPE, t), self.group)
            return True

        ok = self._guard("clear", _run, False)
        log.info("cache cleared entity=%s group=%s type=%s ok=%s", self.entity_name, self.group, cache_type, ok)
        return ok

    def clear_all(self) -> bool:
        return self.clear()
