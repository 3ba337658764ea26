from __future__ import annotations

import copy
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

import redis

from appcore.core.errors import CacheError

log = logging.getLogger("appcore.cache")


class _Miss:
    """Returned by stores and managers when a key is absent."""

    _instance: Optional["_Miss"] = None

    def __new__(cls) -> "_Miss":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISS"

    def __reduce__(self):
        return (_Miss, ())


MISS = _Miss()


def is_miss(value: Any) -> bool:
    return value is MISS


class CacheStore(Protocol):
    """
    Group-scoped key/value store with TTL.

    `get` returns MISS (never None) for an absent key so that a cached None or
    False survives a round trip. Stores that cannot enumerate their keys set
    `supports_scan = False` and raise NotImplementedError from `keys`.
    """

    supports_scan: bool

    def get(self, key: str, group: str) -> Any:
        ...

    def set(self, key: str, value: Any, group: str, ttl: Optional[int] = None) -> bool:
        ...

    def delete(self, key: str, group: str) -> bool:
        ...

    def keys(self, group: str, prefix: str = "") -> List[str]:
        ...

    def flush_group(self, group: str) -> bool:
        ...


@dataclass
class CacheEntry:
    key: str
    value: Any
    group: str
    expires_at: Optional[float]


class InMemoryCacheStore:
    """
    Process-local store. ttl of None or 0 means "no expiry".

    Past `max_entries` the entry closest to expiry is evicted first. Values
    are copied on the way in and out, so callers never hold the cached object.
    """

    supports_scan = True

    def __init__(self, max_entries: int = 10_000, clock: Callable[[], float] = time.time):
        self.max_entries = max_entries
        self._clock = clock
        self._groups: Dict[str, Dict[str, CacheEntry]] = {}
        self.hits = 0
        self.misses = 0

    def _is_expired(self, entry: CacheEntry) -> bool:
        return entry.expires_at is not None and self._clock() >= entry.expires_at

    def _evict_if_needed(self) -> None:
        total = sum(len(g) for g in self._groups.values())
        if total <= self.max_entries:
            return
        group, oldest = min(
            ((g, e) for g, entries in self._groups.items() for e in entries.values()),
            key=lambda ge: ge[1].expires_at if ge[1].expires_at is not None else float("inf"),
        )
        self._groups[group].pop(oldest.key, None)

    def get(self, key: str, group: str) -> Any:
        entry = self._groups.get(group, {}).get(key)
        if entry is None:
            self.misses += 1
            return MISS
        if self._is_expired(entry):
            self._groups[group].pop(key, None)
            self.misses += 1
            return MISS
        self.hits += 1
        return copy.deepcopy(entry.value)

    def set(self, key: str, value: Any, group: str, ttl: Optional[int] = None) -> bool:
        expires_at = self._clock() + ttl if ttl else None
        self._groups.setdefault(group, {})[key] = CacheEntry(
            key=key, value=copy.deepcopy(value), group=group, expires_at=expires_at
        )
        self._evict_if_needed()
        return True

    def delete(self, key: str, group: str) -> bool:
        return self._groups.get(group, {}).pop(key, None) is not None

    def keys(self, group: str, prefix: str = "") -> List[str]:
        entries = self._groups.get(group, {})
        live = [k for k, e in list(entries.items()) if not self._is_expired(e)]
        return sorted(k for k in live if k.startswith(prefix))

    def flush_group(self, group: str) -> bool:
        self._groups.pop(group, None)
        return True


def _glob_escape(s: str) -> str:
    out = []
    for ch in s:
        if ch in "*?[]\\":
            out.append("\\")
        out.append(ch)
    return "".join(out)


class RedisCacheStore:
    """
    Redis-backed store. Keys are namespaced as "<group>:<key>" and values are
    JSON wrapped in {"v": ...} so that None/False are distinguishable from an
    absent key. Prefix enumeration uses SCAN MATCH.
    """

    supports_scan = True

    def __init__(self, client, scan_count: int = 500):
        if client is None:
            raise ValueError("Redis client is required")
        self.client = client
        self.scan_count = scan_count

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheStore":
        return cls(redis.Redis.from_url(url))

    @staticmethod
    def _full_key(key: str, group: str) -> str:
        return f"{group}:{key}"

    @staticmethod
    def _decode(raw: Any) -> str:
        return raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else str(raw)

    def get(self, key: str, group: str) -> Any:
        try:
            raw = self.client.get(self._full_key(key, group))
        except Exception as e:
            raise CacheError(f"redis get failed: {e}", context={"key": key}) from e
        if raw is None:
            return MISS
        try:
            payload = json.loads(self._decode(raw))
        except ValueError as e:
            raise CacheError(f"corrupt cache payload for {key}") from e
        if not isinstance(payload, dict) or "v" not in payload:
            return MISS
        return payload["v"]

    def set(self, key: str, value: Any, group: str, ttl: Optional[int] = None) -> bool:
        try:
            data = json.dumps({"v": value}, default=str)
            if ttl:
                return bool(self.client.set(self._full_key(key, group), data, ex=int(ttl)))
            return bool(self.client.set(self._full_key(key, group), data))
        except Exception as e:
            raise CacheError(f"redis set failed: {e}", context={"key": key}) from e

    def delete(self, key: str, group: str) -> bool:
        try:
            return bool(self.client.delete(self._full_key(key, group)))
        except Exception as e:
            raise CacheError(f"redis delete failed: {e}", context={"key": key}) from e

    def keys(self, group: str, prefix: str = "") -> List[str]:
        ns = f"{group}:"
        pattern = _glob_escape(ns + prefix) + "*"
        try:
            found = [self._decode(k) for k in self.client.scan_iter(match=pattern, count=self.scan_count)]
        except Exception as e:
            raise CacheError(f"redis scan failed: {e}", context={"pattern": pattern}) from e
        return sorted(k[len(ns):] for k in found if k.startswith(ns))

    def flush_group(self, group: str) -> bool:
        for key in self.keys(group):
            self.delete(key, group)
        log.info("cache group flushed group=%s", group)
        return True
