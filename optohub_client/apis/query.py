from __future__ import annotations

from typing import Any
from urllib.parse import urlencode


def with_query(path: str, filters: dict[str, Any] | None = None) -> str:
    """Append non-empty filter values to ``path`` as a query string."""
    if not filters:
        return path

    params = [
        (key, _stringify(value))
        for key, value in filters.items()
        if value is not None and value != ""
    ]
    if not params:
        return path
    return f"{path}?{urlencode(params)}"


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
