from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

log = logging.getLogger("appcore.extensions")

DEFAULT_PRIORITY = 10


@dataclass(frozen=True, order=True)
class ExtensionContribution:
    priority: int
    seq: int
    fn: Callable[..., Any] = field(compare=False)
    name: str = field(default="", compare=False)


class ExtensionRegistry:
    """
    Named extension points, each an ordered list of callbacks.

    Filters are left folds: fn(accumulator, *args) -> accumulator, applied in
    ascending priority; equal priorities keep registration order. Modules
    contribute without knowing about each other, only about point names.
    """

    def __init__(self) -> None:
        self._points: Dict[str, List[ExtensionContribution]] = {}
        self._seq = itertools.count()
        self.modules: Dict[str, str] = {}

    def add(
        self,
        point: str,
        fn: Callable[..., Any],
        priority: int = DEFAULT_PRIORITY,
        name: Optional[str] = None,
    ) -> ExtensionContribution:
        if not point:
            raise ValueError("extension point name is required")
        if not callable(fn):
            raise TypeError(f"extension for {point} must be callable")
        contribution = ExtensionContribution(
            priority=int(priority),
            seq=next(self._seq),
            fn=fn,
            name=name or getattr(fn, "__qualname__", repr(fn)),
        )
        bucket = self._points.setdefault(point, [])
        bucket.append(contribution)
        bucket.sort()
        log.debug("extension added point=%s name=%s priority=%s", point, contribution.name, priority)
        return contribution

    def remove(self, point: str, fn: Callable[..., Any]) -> bool:
        bucket = self._points.get(point, [])
        kept = [c for c in bucket if c.fn is not fn]
        self._points[point] = kept
        return len(kept) != len(bucket)

    def has(self, point: str) -> bool:
        return bool(self._points.get(point))

    def callbacks(self, point: str) -> List[ExtensionContribution]:
        return list(self._points.get(point, []))

    def points(self) -> List[str]:
        return sorted(p for p, cs in self._points.items() if cs)

    def clear(self, point: Optional[str] = None) -> None:
        if point is None:
            self._points.clear()
        else:
            self._points.pop(point, None)

    def apply(self, point: str, value: Any, *args: Any) -> Any:
        """Strict fold: an exception in any contribution propagates."""
        acc = value
        for c in self.callbacks(point):
            acc = c.fn(acc, *args)
        return acc

    def apply_resilient(self, point: str, value: Any, *args: Any) -> Any:
        """
        Fold that skips a contribution which raises or returns None, keeping
        the accumulator as it was before that contribution. List and dict
        accumulators are shallow-copied per call so a contribution that
        mutates and then fails leaves no trace.
        """
        acc = value
        for c in self.callbacks(point):
            arg = list(acc) if isinstance(acc, list) else dict(acc) if isinstance(acc, dict) else acc
            try:
                out = c.fn(arg, *args)
            except Exception as e:
                log.warning("extension skipped point=%s name=%s error=%s", point, c.name, e)
                continue
            if out is None:
                log.warning("extension skipped point=%s name=%s reason=returned_none", point, c.name)
                continue
            acc = out
        return acc

    def emit(self, point: str, *args: Any) -> None:
        """Action hooks: results are ignored, failures are logged and skipped."""
        for c in self.callbacks(point):
            try:
                c.fn(*args)
            except Exception as e:
                log.warning("action failed point=%s name=%s error=%s", point, c.name, e)
