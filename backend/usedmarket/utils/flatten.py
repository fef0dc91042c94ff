"""
Flat key/value helpers for record persistence.

WHAT: Convert nested record dumps to dotted flat mappings and back
WHY: The host save format is a flat attribute set per record
HOW: Dotted keys for nested dicts, numeric segments for list items
"""

from typing import Any, Dict

SEPARATOR = "."

Scalar = str | int | float | bool | None


def flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Scalar]:
    """
    Flatten a nested dict into dotted keys.

    Lists become numeric segments (``offers.0.amount``). Sets and tuples are
    treated as lists. Empty containers are dropped; loaders fill defaults.

    Args:
        data: Nested mapping, typically a pydantic ``model_dump(mode="json")``
        prefix: Key prefix used during recursion

    Returns:
        Flat mapping of dotted key -> scalar
    """
    flat: Dict[str, Scalar] = {}
    for key, value in data.items():
        full_key = f"{prefix}{SEPARATOR}{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(flatten(value, full_key))
        elif isinstance(value, (list, tuple, set)):
            items = sorted(value) if isinstance(value, set) else value
            for index, item in enumerate(items):
                item_key = f"{full_key}{SEPARATOR}{index}"
                if isinstance(item, dict):
                    flat.update(flatten(item, item_key))
                else:
                    flat[item_key] = item
        else:
            flat[full_key] = value
    return flat


def unflatten(flat: Dict[str, Any]) -> Dict[str, Any]:
    """
    Rebuild a nested structure from dotted keys.

    Numeric segments rebuild lists in index order; gaps are skipped.

    Args:
        flat: Mapping produced by ``flatten``

    Returns:
        Nested dict suitable for ``model_validate``
    """
    root: Dict[str, Any] = {}
    for key, value in flat.items():
        parts = str(key).split(SEPARATOR)
        node = root
        for part in parts[:-1]:
            node = node.setdefault(part, {})
            if not isinstance(node, dict):
                raise ValueError(f"Key collision at '{key}'")
        node[parts[-1]] = value
    return _lists_from_numeric_keys(root)


def _lists_from_numeric_keys(node: Any) -> Any:
    """Turn dicts whose keys are all digits into ordered lists."""
    if not isinstance(node, dict):
        return node
    converted = {k: _lists_from_numeric_keys(v) for k, v in node.items()}
    if converted and all(k.isdigit() for k in converted):
        return [converted[k] for k in sorted(converted, key=int)]
    return converted
