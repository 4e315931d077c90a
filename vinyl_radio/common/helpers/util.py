"""Helper and utility functions."""

from __future__ import annotations

import re
from typing import Any

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def camel_to_snake(name: str) -> str:
    """Convert a camelCase (wire) key to its snake_case equivalent."""
    return _CAMEL_RE.sub("_", name).lower()


def snake_keys(values: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of a dict with all (top level) keys in snake_case."""
    return {camel_to_snake(key): value for key, value in values.items()}
