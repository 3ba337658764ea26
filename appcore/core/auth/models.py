from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class Principal:
    subject: str
    roles: List[str] = field(default_factory=list)
    user_id: Optional[int] = None

    def has_any_role(self, allowed: List[str]) -> bool:
        s = set(self.roles or [])
        return any(r in s for r in allowed)
