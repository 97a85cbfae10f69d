"""
Built-in validators.

Each validator is invoked as validate(expected, answer, rule) where
`expected` is the argument from the rule script (True for bare names).
Warnings are plain strings or fn(expected, answer); a None warning lets
the rule type's default message through.
"""
from __future__ import annotations

import re
from numbers import Number
from typing import Any

from core.registry import Validator, ValidatorRegistry
from models.schemas import Rule

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

validators = ValidatorRegistry()


def is_number(answer: Any) -> bool:
    if isinstance(answer, bool):
        return False
    if isinstance(answer, Number):
        return True
    try:
        float(str(answer).strip())
    except ValueError:
        return False
    return True


def measure(answer: Any) -> float:
    """Numbers compare by value, everything else by length."""
    if isinstance(answer, Number) and not isinstance(answer, bool):
        return answer
    if isinstance(answer, (list, tuple, dict)):
        return len(answer)
    return len(str(answer))


def split_choices(answer: Any) -> list[Any]:
    """A multiple-choice answer: a list as-is, or a comma separated string."""
    if isinstance(answer, (list, tuple)):
        items = list(answer)
    else:
        items = str(answer).split(",")
    return [i.strip() if isinstance(i, str) else i for i in items if str(i).strip()]


def _required(expected: Any, answer: Any, rule: Rule) -> bool:
    if not expected:
        return True
    if isinstance(answer, (list, tuple, dict)):
        return len(answer) > 0
    return answer is not None and str(answer).strip() != ""


def _string(expected: Any, answer: Any, rule: Rule) -> bool:
    return not isinstance(answer, (list, tuple, dict)) and answer is not None


def _number(expected: Any, answer: Any, rule: Rule) -> bool:
    return is_number(answer)


def _min(expected: Any, answer: Any, rule: Rule) -> bool:
    return measure(answer) >= expected


def _max(expected: Any, answer: Any, rule: Rule) -> bool:
    return measure(answer) <= expected


def _length(expected: Any, answer: Any, rule: Rule) -> bool:
    return len(answer if isinstance(answer, (list, tuple)) else str(answer)) == expected


def _regex(expected: Any, answer: Any, rule: Rule) -> bool:
    return bool(re.search(str(expected), str(answer)))


def _email(expected: Any, answer: Any, rule: Rule) -> bool:
    return bool(EMAIL_PATTERN.match(str(answer).strip()))


def _function(expected: Any, answer: Any, rule: Rule) -> Any:
    return expected(answer, rule)


def _option(expected: Any, answer: Any, rule: Rule) -> bool:
    return any(o.accepts(answer) for o in rule.options)


def _options(expected: Any, answer: Any, rule: Rule) -> bool:
    items = split_choices(answer)
    return bool(items) and all(_option(expected, item, rule) for item in items)


validators.define("required", Validator(validate=_required, warning="This is required"))
validators.define("string", Validator(validate=_string))
validators.define("number", Validator(validate=_number, warning="Invalid number"))
validators.define("min", Validator(
    validate=_min,
    warning=lambda expected, answer: f"This answer length must be min {expected}",
))
validators.define("max", Validator(
    validate=_max,
    warning=lambda expected, answer: f"This answer length must be max {expected}",
))
validators.define("length", Validator(
    validate=_length,
    warning=lambda expected, answer: f"This answer length must be {expected}",
))
validators.define("regex", Validator(validate=_regex))
validators.define("email", Validator(validate=_email, warning="Invalid email"))
validators.define("function", Validator(validate=_function))
validators.define("option", Validator(validate=_option, warning="Unknown option"))
validators.define("options", Validator(validate=_options, warning="Unknown option"))
