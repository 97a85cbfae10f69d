"""
Built-in executor steps.

Types reference these by name in their pipelines. WaitForUserInput is
the suspend sentinel: when the pipeline reaches it, the controller saves
the position and waits for another answer before running the rest.
"""
from __future__ import annotations

from typing import Any

from catalog.validators import split_choices
from core.registry import Executor, ExecutorRegistry
from models.schemas import Rule

executors = ExecutorRegistry()

WaitForUserInput = Executor(wait_for_user_input=True)


def _trim(answer: Any, rule: Rule, bot) -> Any:
    return answer.strip() if isinstance(answer, str) else answer


def _to_number(answer: Any, rule: Rule, bot) -> Any:
    if isinstance(answer, (int, float)) and not isinstance(answer, bool):
        return answer
    text = str(answer).strip()
    try:
        return int(text)
    except ValueError:
        return float(text)


def _pick_option(answer: Any, rule: Rule, bot) -> Any:
    option = next(o for o in rule.options if o.accepts(answer))
    return option.value


def _pick_options(answer: Any, rule: Rule, bot) -> list[Any]:
    return [_pick_option(item, rule, bot) for item in split_choices(answer)]


executors.define("WaitForUserInput", WaitForUserInput)
executors.define("trim", Executor(transform=_trim))
executors.define("text", Executor(validators=["string"], transform=_trim))
executors.define("number", Executor(validators=["number"], transform=_to_number))
executors.define("option", Executor(validators=["option"], transform=_pick_option))
executors.define("options", Executor(validators=["options"], transform=_pick_options))
