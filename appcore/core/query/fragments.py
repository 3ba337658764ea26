from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence, Tuple

_AS_RE = re.compile(r"\s+as\s+", re.IGNORECASE)
_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

LIKE_ESCAPE = "\\"


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so user input only ever matches literally."""
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def is_identifier(name: str) -> bool:
    return bool(_IDENT_RE.match(name or ""))


@dataclass(frozen=True)
class ColumnSpec:
    """One selected column: `expr` is SQL from static config, never user input."""

    expr: str
    alias: str = ""
    sortable: bool = True

    @classmethod
    def parse(cls, raw: "str | ColumnSpec") -> "ColumnSpec":
        if isinstance(raw, ColumnSpec):
            return raw
        parts = _AS_RE.split(raw.strip(), maxsplit=1)
        if len(parts) == 2:
            return cls(expr=parts[0].strip(), alias=parts[1].strip())
        return cls(expr=raw.strip())

    @property
    def name(self) -> str:
        """Key of this column in a fetched record."""
        return self.alias or self.expr.split(".")[-1]

    @property
    def select_sql(self) -> str:
        return f"{self.expr} AS {self.alias}" if self.alias else self.expr

    @property
    def order_sql(self) -> str:
        return self.alias or self.expr


@dataclass(frozen=True)
class WhereFragment:
    sql: str
    params: Tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "params", tuple(self.params))
        if self.sql.count("?") != len(self.params):
            raise ValueError(f"placeholder/param mismatch in WHERE fragment: {self.sql!r}")

    @property
    def is_empty(self) -> bool:
        return not self.sql.strip()

    @classmethod
    def coerce(cls, raw: Any) -> Optional["WhereFragment"]:
        if isinstance(raw, WhereFragment):
            return raw
        if isinstance(raw, str):
            return cls(raw)
        if isinstance(raw, (tuple, list)) and len(raw) == 2 and isinstance(raw[0], str):
            return cls(raw[0], tuple(raw[1]))
        return None

    @classmethod
    def eq(cls, column: str, value: Any) -> "WhereFragment":
        return cls(f"{column} = ?", (value,))

    @classmethod
    def in_(cls, column: str, values: Iterable[Any]) -> "WhereFragment":
        vals = tuple(values)
        if not vals:
            return cls("1 = 0")
        return cls(f"{column} IN ({', '.join('?' for _ in vals)})", vals)

    @classmethod
    def is_not_null(cls, column: str) -> "WhereFragment":
        return cls(f"{column} IS NOT NULL")

    @classmethod
    def contains_any(cls, columns: Sequence[str], term: str) -> Optional["WhereFragment"]:
        """Case-insensitive substring match OR-ed across columns."""
        if not term or not columns:
            return None
        pattern = f"%{escape_like(term)}%"
        parts = [f"LOWER({c}) LIKE LOWER(?) ESCAPE '{LIKE_ESCAPE}'" for c in columns]
        return cls("(" + " OR ".join(parts) + ")", tuple(pattern for _ in columns))

    @classmethod
    def all_of(cls, fragments: Iterable["WhereFragment"]) -> "WhereFragment":
        frs = [f for f in fragments if not f.is_empty]
        if not frs:
            return cls("")
        return cls(
            " AND ".join(f"({f.sql})" for f in frs),
            tuple(p for f in frs for p in f.params),
        )


@dataclass(frozen=True)
class JoinSpec:
    sql: str
    params: Tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "params", tuple(self.params))

    @classmethod
    def coerce(cls, raw: Any) -> Optional["JoinSpec"]:
        if isinstance(raw, JoinSpec):
            return raw
        if isinstance(raw, str) and raw.strip():
            return cls(raw.strip())
        return None
