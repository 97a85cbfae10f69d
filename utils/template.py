"""
Message templates — `{name}` placeholders filled from accepted answers.

    render("Your color: {color}", store)          → "Your color: red"
    render("{number} ({number.label})", store, rules)  → "1 (One)"
    render("{numbers.0.label}", store, rules)     → "One"

Each placeholder is looked up under "output." in the store. When the
answer belongs to a choice rule, the stored value(s) are expanded into
option views ({"value", "label"}) before the rest of the path is walked.
Anything that does not resolve renders as an empty string, and the
rendered message is stripped of surrounding whitespace.
"""
from __future__ import annotations

import re
from typing import Any, Mapping, Optional

from models.schemas import Rule
from utils.conditions import get_nested_value

PLACEHOLDER = re.compile(r"\{(\w+(?:\.\w+)*)\}")


def render(template: str, store, rules: Optional[Mapping[str, Rule]] = None) -> str:
    """Replace {path} placeholders with values from the store's output."""
    if not template:
        return ""

    def replacer(match):
        head, _, rest = match.group(1).partition(".")
        value = store.get(f"output.{head}")
        rule = rules.get(head) if rules else None
        if value is not None and rule is not None and rule.options:
            value = option_views(rule, value)
        if rest:
            value = get_nested_value(value, rest)
        return to_text(value)

    return PLACEHOLDER.sub(replacer, template).strip()


def option_views(rule: Rule, value: Any) -> Any:
    """Expand a choice answer into {"value", "label"} views (one per selected value)."""
    if isinstance(value, list):
        return [_view(rule, v) for v in value]
    return _view(rule, value)


def _view(rule: Rule, value: Any) -> dict[str, Any]:
    option = next((o for o in rule.options if o.accepts(value)), None)
    return {"value": value, "label": option.label if option else value}


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dict):
        return to_text(value["value"]) if "value" in value else ""
    if isinstance(value, (list, tuple)):
        return ", ".join(to_text(v) for v in value)
    return str(value)
