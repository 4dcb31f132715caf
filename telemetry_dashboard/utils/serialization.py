"""Shared serialization helpers for camelCase conversion.

Output models and the persisted tracker entry use camelCase field
names so the dashboard front end and the extension's stored data
can consume them unchanged.
"""

from __future__ import annotations

import pydantic


def snake_to_camel(name: str) -> str:
    """Convert a snake_case string to camelCase.

    Args:
        name: A snake_case identifier such as
            ``"total_requests"``.

    Returns:
        The camelCase equivalent, e.g. ``"totalRequests"``.
    """
    parts = name.split("_")
    return parts[0] + "".join(w.capitalize() for w in parts[1:])


# Shared model config: camelCase on the wire, snake_case in Python.
CAMEL_CONFIG = pydantic.ConfigDict(alias_generator=snake_to_camel, populate_by_name=True)
