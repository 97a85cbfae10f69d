"""
Error taxonomy for the dialogue engine.

Hard errors (RuleNotFound, InvalidAttributeError, TransformFailure and
anything raised by user actions) end the conversation through the bot's
error funnel. ValidationFailure never leaves the controller: it turns
into a warning message and a re-ask.
"""
from __future__ import annotations

from typing import Any, Optional


class RuleBotError(Exception):
    """Base exception for all dialogue engine failures."""

    def __init__(self, message: str, rule_name: Optional[str] = None):
        self.rule_name = rule_name
        super().__init__(message)


class RuleNotFound(RuleBotError):
    """A `next` / jump target does not resolve to any rule or flow."""

    def __init__(self, target: str, rule_name: Optional[str] = None):
        self.target = target
        super().__init__(f"Rule not found: '{target}'", rule_name)


class InvalidAttributeError(RuleBotError):
    """A rule attribute names something the catalogs do not know."""

    def __init__(self, attribute: str, value: Any, rule_name: Optional[str] = None):
        self.attribute = attribute
        self.value = value
        super().__init__(f"Invalid value '{value}' for attribute '{attribute}'", rule_name)


class ValidationFailure(RuleBotError):
    """An answer was rejected by a validator; carries the warning to send."""

    def __init__(self, warning: str, validator: str = "", rule_name: Optional[str] = None):
        self.warning = warning
        self.validator = validator
        super().__init__(warning, rule_name)


class TransformFailure(RuleBotError):
    """A pipeline step raised while transforming an answer."""

    def __init__(self, rule_name: Optional[str], step: int):
        self.step = step
        super().__init__(f"Executor step {step} failed for rule '{rule_name}'", rule_name)
