"""Utility functions for keysounds-engine."""

from typing import Any


def deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Deep merge a partial record over a full one.

    Nested mappings are merged key by key, so a partial effect update only
    needs to name the fields it changes. Any other overlay value replaces the
    base value.

    Args:
        base: Complete record
        overlay: Partial update (takes precedence)

    Returns:
        New merged dictionary (base and overlay are not modified)

    Examples:
        >>> base = {"pitch_shift": {"enabled": False, "lower": -3, "upper": 3}}
        >>> deep_merge(base, {"pitch_shift": {"lower": -5}})
        {'pitch_shift': {'enabled': False, 'lower': -5, 'upper': 3}}

        >>> deep_merge({"bands": {"hz60": 0.0}}, {"bands": None})
        {'bands': None}
    """
    result = base.copy()

    for key, value in overlay.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result
