"""Parameter assembly for remote action calls.

Action parameters are composed from named override layers. Layers are listed
highest precedence first; for every key the first layer that defines it wins,
and when the winning value and a lower layer's value are both mappings they
are merged recursively under the same rule:

    merge_layers(
        ParamLayer("args", {"limit": 5}),
        ParamLayer("params", {"limit": 10, "sort": "-date"}),
    )
    # {"limit": 5, "sort": "-date"}

A key holding ``None`` counts as defined; an absent key does not.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, NamedTuple

_MISSING = object()


class ParamLayer(NamedTuple):
    """One named source of action parameters."""

    name: str
    values: Mapping[str, Any]


def merge_layers(*layers: ParamLayer) -> dict[str, Any]:
    """Merge layers into a new dict, highest precedence first.

    Inputs are never mutated; nested mappings in the result are fresh dicts.
    """
    result: dict[str, Any] = {}
    for layer in reversed(layers):
        result = _overlay(result, layer.values)
    return result


def _overlay(base: Mapping[str, Any], top: Mapping[str, Any]) -> dict[str, Any]:
    merged = {key: _copy(value) for key, value in base.items()}
    for key, value in top.items():
        current = merged.get(key, _MISSING)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = _overlay(current, value)
        else:
            merged[key] = _copy(value)
    return merged


def _copy(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _copy(item) for key, item in value.items()}
    return value


def get_path(source: Any, path: str, default: Any = None) -> Any:
    """Read a dotted path from nested mappings or object attributes."""
    current = source
    for part in path.split("."):
        if current is None:
            return default
        if isinstance(current, Mapping):
            current = current.get(part, _MISSING)
        else:
            current = getattr(current, part, _MISSING)
        if current is _MISSING:
            return default
    return current


def set_path(target: dict[str, Any], path: str, value: Any) -> dict[str, Any]:
    """Write ``value`` at a dotted path, creating intermediate dicts."""
    parts = path.split(".")
    current = target
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[parts[-1]] = value
    return target


def pop_path(target: dict[str, Any], path: str, default: Any = None) -> Any:
    """Remove and return the value at a dotted path."""
    parts = path.split(".")
    current: Any = target
    for part in parts[:-1]:
        current = current.get(part) if isinstance(current, dict) else None
        if current is None:
            return default
    if not isinstance(current, dict):
        return default
    return current.pop(parts[-1], default)


def map_values(source: Any, mapping: Mapping[str, str]) -> dict[str, Any]:
    """Build a layer by copying ``source`` paths to parameter paths.

    ``mapping`` is ``{source path: parameter path}``. Paths absent from the
    source are skipped so that lower layers can still provide them.
    """
    layer: dict[str, Any] = {}
    if source is None:
        return layer
    for source_path, param_path in mapping.items():
        value = get_path(source, source_path, _MISSING)
        if value is not _MISSING:
            set_path(layer, param_path, value)
    return layer


__all__ = [
    "ParamLayer",
    "get_path",
    "map_values",
    "merge_layers",
    "pop_path",
    "set_path",
]
