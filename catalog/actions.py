"""
Built-in actions. An action is called as fn(argument, rule, bot) and may
be a coroutine; the controller awaits it before moving on.
"""
from __future__ import annotations

import structlog
from typing import Any

from core.registry import ActionRegistry
from models.schemas import Rule

logger = structlog.get_logger()

actions = ActionRegistry()


async def _timeout(ms: Any, rule: Rule, bot):
    """Pause the conversation for `ms` milliseconds (skipped when pacing is off)."""
    await bot.controller.pause(float(ms))


def _remember(values: Any, rule: Rule, bot):
    """Copy fixed values into the session output, e.g. {remember: {plan: basic}}."""
    if not isinstance(values, dict):
        logger.warning("remember_action_needs_mapping", rule=rule.name)
        return
    for key, value in values.items():
        bot.store.save_answer(key, value)


actions.define("timeout", _timeout)
actions.define("remember", _remember)
