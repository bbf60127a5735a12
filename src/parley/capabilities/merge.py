"""Merging of capability trees."""

from __future__ import annotations

from typing import Any


def merge_capability_dicts(
    base: dict[str, Any],
    additional: dict[str, Any],
) -> dict[str, Any]:
    """
    Merge two wire-format capability dicts.

    Non-null values from ``additional`` win. When both sides hold an
    object for the same key, the objects are merged one level deep.

    Args:
        base: Existing capabilities.
        additional: Capabilities to layer on top.

    Returns:
        A new merged dict; neither input is modified.
    """
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in base.items()}
    for key, value in additional.items():
        if value is None:
            continue
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = {**current, **value}
        else:
            merged[key] = value
    return merged
