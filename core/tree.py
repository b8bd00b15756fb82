"""
Recursive walks over JSON-like trees (dict / list / scalar).

Each helper dispatches explicitly on the node kind and returns a new tree;
inputs are never mutated.
"""

from typing import Any, Iterable, Optional

REDACTED = '[REDACTED]'

SENSITIVE_KEY_MARKERS = (
    'api_key',
    'apikey',
    'token',
    'secret',
    'password',
    'auth',
    'credentials',
)


def is_sensitive_key(key: str, markers: Iterable[str] = SENSITIVE_KEY_MARKERS) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in markers)


def redact_sensitive(node: Any, markers: Iterable[str] = SENSITIVE_KEY_MARKERS) -> Any:
    """Replace the value of every key that looks secret with REDACTED."""
    markers = tuple(markers)
    if isinstance(node, dict):
        return {
            key: REDACTED if is_sensitive_key(str(key), markers) else redact_sensitive(value, markers)
            for key, value in node.items()
        }
    if isinstance(node, list):
        return [redact_sensitive(item, markers) for item in node]
    return node


def deep_merge(base: Any, override: Any) -> Any:
    """
    Merge override into base.

    Dicts merge key by key; any other kind (lists included) is replaced by
    the override value.
    """
    if isinstance(base, dict) and isinstance(override, dict):
        merged = dict(base)
        for key, value in override.items():
            merged[key] = deep_merge(base[key], value) if key in base else value
        return merged
    return override


def get_path(node: Any, dotted: str, default: Optional[Any] = None) -> Any:
    """Walk a dotted path (a.b.c) through nested dicts."""
    current = node
    for part in dotted.split('.'):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return default
    return current


def prune_empty(node: dict) -> dict:
    """Drop top-level keys whose value is None or an empty container."""
    return {
        key: value for key, value in node.items()
        if value is not None and not (isinstance(value, (dict, list, str)) and not value)
    }
