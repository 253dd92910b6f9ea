"""
Nested query-string parameters, e.g. ``filter[name][value]=foo&filter[_page]=2``.
"""

import re
from collections.abc import Iterable
from typing import Any
from urllib.parse import urlencode

_KEY_PART = re.compile(r"\[([^\[\]]*)\]")


def split_key(key: str) -> list[str]:
    """``"filter[name][value]"`` -> ``["filter", "name", "value"]``."""
    head, _, rest = key.partition("[")
    if not rest:
        return [key]
    return [head, *_KEY_PART.findall("[" + rest)]


def parse_nested(items: Iterable[tuple[str, Any]], root: str) -> dict[str, Any]:
    """Collect every ``root[...]`` item into a nested dict. ``[]`` keys become lists."""
    result: dict[str, Any] = {}
    for key, value in items:
        parts = split_key(key)
        if parts[0] != root or len(parts) < 2:
            continue
        node = result
        for part in parts[1:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        last = parts[-1]
        if last == "":
            continue
        node[last] = value
    return result


def flatten(params: dict[str, Any], prefix: str | None = None) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            pairs.extend(flatten(value, name))
        elif isinstance(value, (list, tuple)):
            pairs.extend((f"{name}[]", str(item)) for item in value)
        elif isinstance(value, bool):
            pairs.append((name, "1" if value else "0"))
        else:
            pairs.append((name, str(value)))
    return pairs


def build_query_string(params: dict[str, Any]) -> str:
    return urlencode(flatten(params))
