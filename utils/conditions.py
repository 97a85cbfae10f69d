"""
Shared answer matching and dotted-path helpers — used by the Store,
the template renderer and the passive listeners.

Paths use dot notation; numeric segments index into lists
(e.g. "output.colors.0.label").
"""
from __future__ import annotations

import re
from typing import Any, Callable


def _match_includes(answer: Any, expected: Any) -> bool:
    return str(expected) in str(answer)


def _match_equals(answer: Any, expected: Any) -> bool:
    return str(answer).strip() == str(expected).strip()


def _match_regex(answer: Any, expected: Any) -> bool:
    return bool(re.search(str(expected), str(answer)))


def _match_function(answer: Any, expected: Callable[[Any], bool]) -> bool:
    return bool(expected(answer))


MATCHERS: dict[str, Callable[[Any, Any], bool]] = {
    "includes": _match_includes,
    "equals": _match_equals,
    "regex": _match_regex,
    "function": _match_function,
}


def match_answer(matcher: str, expected: Any, answer: Any) -> bool:
    """Evaluate one listener matcher against an answer. Unknown matchers never match."""
    fn = MATCHERS.get(matcher)
    if fn is None:
        return False
    return fn(answer, expected)


def get_nested_value(data: Any, field: str) -> Any:
    """Get a value from nested dicts/lists using dot notation. e.g. 'order.items.0'"""
    if not field:
        return data
    current = data
    for part in field.split("."):
        if isinstance(current, dict):
            current = current.get(part)
        elif isinstance(current, (list, tuple)) and part.lstrip("-").isdigit():
            idx = int(part)
            current = current[idx] if -len(current) <= idx < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


def set_nested_value(data: dict, field: str, value: Any):
    """Set a value in nested dicts using dot notation, creating containers on the way."""
    parts = field.split(".")
    current = data
    for part in parts[:-1]:
        nxt = current.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            current[part] = nxt
        current = nxt
    current[parts[-1]] = value


def delete_nested_value(data: dict, field: str) -> bool:
    """Remove the leaf at a dotted path. Returns False when nothing was there."""
    parts = field.split(".")
    parent = get_nested_value(data, ".".join(parts[:-1])) if len(parts) > 1 else data
    if isinstance(parent, dict) and parts[-1] in parent:
        del parent[parts[-1]]
        return True
    return False
