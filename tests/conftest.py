"""Shared test fixtures for the dialogue engine."""
import pytest
from typing import Any

import catalog
from config.loader import load_rules
from config.settings import BotOptions
from core.bot import RuleBot
from core.events import BotEvent


class EventRecorder:
    """Subscribes to every event of a bot and keeps them in order."""

    def __init__(self, bot: RuleBot, errors: bool = True):
        self.events: list[tuple[str, tuple[Any, ...]]] = []
        for evt in BotEvent:
            if evt is BotEvent.ERROR and not errors:
                continue
            bot.on(evt, self._recorder(evt.value))

    def _recorder(self, name: str):
        def record(*args):
            self.events.append((name, args))
        return record

    def of(self, name: str) -> list[tuple[Any, ...]]:
        return [args for evt, args in self.events if evt == name]

    @property
    def names(self) -> list[str]:
        return [evt for evt, _ in self.events]

    @property
    def messages(self) -> list[str]:
        return [args[0] for args in self.of("talk")]

    @property
    def errors(self) -> list[BaseException]:
        return [args[0] for args in self.of("error")]


@pytest.fixture(autouse=True)
def restore_catalogs():
    """Tests define custom types/validators/actions; keep the process-wide catalogs clean."""
    registries = [catalog.types, catalog.validators, catalog.actions, catalog.executors]
    saved = [dict(r._entries) for r in registries]
    yield
    for registry, entries in zip(registries, saved):
        registry._entries = entries


@pytest.fixture
def options() -> BotOptions:
    return BotOptions(enable_wait_for_sleep=False)


@pytest.fixture
def make_bot(options):
    """Build a bot from YAML text (or a list) with pacing disabled and an event recorder."""
    def factory(script: Any = None, listeners: list[dict] = None, errors: bool = True,
                bot_options: Any = None):
        bot = RuleBot(load_rules(script) if isinstance(script, str) else script,
                      bot_options or options)
        if listeners:
            bot.listen(listeners)
        bot.recorder = EventRecorder(bot, errors=errors)
        return bot
    return factory
