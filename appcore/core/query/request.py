from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_LENGTH = 10

# Transport/protocol fields that never reach entity filters.
RESERVED_FIELDS = {"action", "draw", "start", "length", "search", "order", "columns", "nonce", "security", "_"}

_BRACKET_RE = re.compile(r"^(?P<root>[^\[]+)(?P<rest>(\[[^\]]*\])+)$")
_PART_RE = re.compile(r"\[([^\]]*)\]")


def _to_int(value: Any, default: Optional[int]) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def _unflatten(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Turn form keys like "order[0][column]" into nested dicts:
    {"order": {"0": {"column": ...}}}. Plain keys pass through.
    """
    out: Dict[str, Any] = {}
    for raw_key, value in payload.items():
        m = _BRACKET_RE.match(str(raw_key))
        if not m:
            out[raw_key] = value
            continue
        node = out.setdefault(m.group("root"), {})
        if not isinstance(node, dict):
            continue
        parts = _PART_RE.findall(m.group("rest"))
        for part in parts[:-1]:
            node = node.setdefault(part, {})
            if not isinstance(node, dict):
                break
        else:
            node[parts[-1]] = value
    return out


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        keys = sorted(value.keys(), key=lambda k: _to_int(k, 0))
        return [value[k] for k in keys]
    return []


class OrderSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    column: Optional[int] = None
    dir: str = "asc"


class DataTableRequest(BaseModel):
    """One DataTables server-side request, immutable for the whole call."""

    model_config = ConfigDict(frozen=True)

    action: str = ""
    draw: int = 0
    start: int = 0
    length: int = DEFAULT_LENGTH
    search_value: str = ""
    order: List[OrderSpec] = Field(default_factory=list)
    extra: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "DataTableRequest":
        """
        Accepts the flat form encoding (search[value], order[0][dir]) or the
        equivalent nested JSON. Malformed numbers fall back to defaults.
        """
        data = _unflatten(payload or {})

        search = data.get("search")
        if isinstance(search, dict):
            search_value = search.get("value") or ""
        elif isinstance(search, str):
            search_value = search
        else:
            search_value = ""

        order: List[OrderSpec] = []
        for item in _as_list(data.get("order")):
            if not isinstance(item, dict):
                continue
            direction = str(item.get("dir") or "asc").strip().lower()
            order.append(
                OrderSpec(
                    column=_to_int(item.get("column"), None),
                    dir="desc" if direction == "desc" else "asc",
                )
            )

        extra = {k: v for k, v in data.items() if k not in RESERVED_FIELDS}

        return cls(
            action=str(data.get("action") or ""),
            draw=_to_int(data.get("draw"), 0),
            start=_to_int(data.get("start"), 0),
            length=_to_int(data.get("length"), DEFAULT_LENGTH),
            search_value=str(search_value).strip(),
            order=order,
            extra=extra,
        )

    def filter_value(self, name: str, default: Any = None) -> Any:
        value = self.extra.get(name, default)
        return default if value in (None, "") else value

    def with_extra(self, **fields: Any) -> "DataTableRequest":
        return self.model_copy(update={"extra": {**self.extra, **fields}})
