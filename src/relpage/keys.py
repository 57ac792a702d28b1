"""Key serialization and structural comparison."""

import hashlib
import json
from collections.abc import Mapping, Set
from typing import Any

_ESCAPE_MAP = {"\\": "\\\\", ":": "\\:"}


def _normalize(value: Any) -> Any:
    """Turn a structured value into plain JSON-compatible data."""
    if isinstance(value, Mapping):
        return {str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, Set):
        return sorted((_normalize(v) for v in value), key=repr)
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return value


def canonical(value: Any) -> str:
    """Canonical string form of a structured value.

    Mapping key order does not matter; sets compare by content.
    """
    return json.dumps(
        _normalize(value), sort_keys=True, separators=(",", ":"), default=str
    )


def same_value(left: Any, right: Any) -> bool:
    """Deep structural equality, independent of identity and key order."""
    if left is right:
        return True
    return canonical(left) == canonical(right)


def digest(value: Any) -> str:
    """Short stable hash of a structured value."""
    return hashlib.sha256(canonical(value).encode()).hexdigest()[:16]


def serialize_key(parts: tuple[Any, ...]) -> str:
    """Serialize key parts to a ``:``-joined storage key."""

    def escape(part: str) -> str:
        result = part
        for char, escaped in _ESCAPE_MAP.items():
            result = result.replace(char, escaped)
        return result

    return ":".join(escape(str(p)) for p in parts)


def record_key(resource: str, record_id: Any, meta: Any = None) -> str:
    """Storage key of a single record: ``resource:getOne:id[:meta-digest]``."""
    parts: tuple[Any, ...] = (resource, "getOne", str(record_id))
    if meta is not None:
        parts = (*parts, digest(meta))
    return serialize_key(parts)
