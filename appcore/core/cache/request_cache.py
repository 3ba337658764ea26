from __future__ import annotations

from typing import Any, Callable, Dict, Hashable


class RelationCache:
    """
    Per-request memo of principal/entity relations used by permission checks.

    Lives exactly as long as one AuthContext (one dispatch). It has no TTL, no
    group and no persistence, and is intentionally not a CacheStore.
    """

    def __init__(self) -> None:
        self._data: Dict[Hashable, Any] = {}
        self.loads = 0

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        if key in self._data:
            return self._data[key]
        value = loader()
        self.loads += 1
        self._data[key] = value
        return value

    def forget(self, key: Hashable) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def __contains__(self, key: Hashable) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)
