from __future__ import annotations

import hashlib
import json
from typing import Any, Iterable, List

KEY_DELIMITER = ":"
_ESCAPE = "\\"

# Memcached-style backends reject keys past 250 bytes once the group and
# site prefixes are added; 172 leaves room for both.
KEY_MAX_LENGTH = 172
KEY_HASH_LENGTH = 32
KEY_PREFIX_LENGTH = KEY_MAX_LENGTH - KEY_HASH_LENGTH - len(KEY_DELIMITER)


def content_hash(value: Any) -> str:
    """Stable SHA-256 hex digest of a string or any JSON-serialisable value."""
    if isinstance(value, str):
        raw = value
    else:
        raw = json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _normalize(component: Any) -> str:
    if isinstance(component, bool):
        return ""
    if isinstance(component, (int, float)):
        return str(component)
    if isinstance(component, str):
        return component
    return ""


def _escape(component: str) -> str:
    return component.replace(_ESCAPE, _ESCAPE * 2).replace(KEY_DELIMITER, _ESCAPE + KEY_DELIMITER)


def key_components(components: Iterable[Any]) -> List[str]:
    return [_escape(c) for c in (_normalize(x) for x in components) if c]


def generate_key(*components: Any) -> str:
    """
    Build a cache key from ordered components.

    Empty and non-scalar components are dropped; numbers are stringified and
    the delimiter is escaped inside components, so the join is injective.
    Keys longer than KEY_MAX_LENGTH keep a readable prefix followed by a
    digest of the full key: distinct long inputs stay distinct and prefix
    scans over the readable head keep working.
    """
    valid = key_components(components)
    if not valid:
        return "default" + KEY_DELIMITER + content_hash(repr(components))[:KEY_HASH_LENGTH]

    key = KEY_DELIMITER.join(valid)
    if len(key) > KEY_MAX_LENGTH:
        key = key[:KEY_PREFIX_LENGTH] + KEY_DELIMITER + content_hash(key)[:KEY_HASH_LENGTH]
    return key


def key_prefix(*components: Any) -> str:
    """
    Prefix matching every key generated from these leading components.

    Ends with the delimiter so that context "staff" does not match keys of
    context "staff:archive" or "staffing".
    """
    return KEY_DELIMITER.join(key_components(components)) + KEY_DELIMITER
