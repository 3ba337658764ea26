from __future__ import annotations

import re
from collections import Counter
from typing import Dict

from prometheus_client import Counter as PromCounter
from prometheus_client import Histogram

# Named counters (in-process snapshot, used by tests and /health)
_NAMED = Counter()


def normalize_path(path: str) -> str:
    """Reduce high-cardinality paths for metrics labels."""
    p = path or "/"
    p = re.sub(r"/[0-9a-fA-F]{16,}", "/:hex", p)
    p = re.sub(r"/\d+", "/:id", p)
    return p


HTTP_REQUESTS_TOTAL = PromCounter(
    "appcore_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "appcore_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

CACHE_OPERATIONS_TOTAL = PromCounter(
    "appcore_cache_operations_total",
    "Cache operations by outcome",
    ["op", "result"],
)

DISPATCH_TOTAL = PromCounter(
    "appcore_dispatch_total",
    "Dispatch outcomes per action",
    ["action", "outcome"],
)


def record_cache(op: str, result: str) -> None:
    CACHE_OPERATIONS_TOTAL.labels(op=op, result=result).inc()
    _NAMED[f"cache_{op}_{result}"] += 1


def record_dispatch(action: str, outcome: str) -> None:
    DISPATCH_TOTAL.labels(action=action or "unknown", outcome=outcome).inc()
    _NAMED[f"dispatch_{outcome}"] += 1


def inc_named(name: str, value: int = 1) -> None:
    if not name:
        return
    _NAMED[name] += int(value)


def snapshot_named() -> Dict[str, int]:
    return dict(_NAMED)


def reset_metrics() -> None:
    """
    Test helper: clears the in-process counters to avoid cross-test leakage.
    Prometheus collectors are process-global and are not reset.
    """
    _NAMED.clear()
