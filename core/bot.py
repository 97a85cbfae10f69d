"""
RuleBot — the public face of the dialogue engine.

Owns the rule script, options, session store, controller, passive
listeners and event channels. Presentation layers subscribe with on()
and feed user input with hear():

    bot = RuleBot(load_rules("script.yaml"))
    bot.on("talk", lambda message, rule, session_id: print(message))
    await bot.start()          # runs until the first question
    await bot.hear("blue")     # answers it and keeps going

Every hard failure from the controller goes through one funnel: the
error event is dispatched (the default handler re-raises) and the end
event fires afterwards in all cases.
"""
from __future__ import annotations

import copy
import structlog
from typing import Any, Awaitable, Callable, Optional, Union

import catalog
from config.loader import load_rules, parse_listener, parse_rule
from config.settings import BotOptions, coerce_options
from core.controller import Controller
from core.events import BotEvent, EventChannels
from core.store import Store
from models.schemas import PassiveListener, StoreData

logger = structlog.get_logger()

DEFAULT_SESSION_ID = "session"


class RuleBot:

    # process-wide catalogs, shared by every bot
    types = catalog.types
    validators = catalog.validators
    actions = catalog.actions
    executors = catalog.executors

    def __init__(
        self,
        rules: Optional[Union[str, list[Any]]] = None,
        options: Union[BotOptions, dict[str, Any], None] = None,
    ):
        self.options = coerce_options(options)
        self.session_id: Any = DEFAULT_SESSION_ID
        self.rules = load_rules(rules or [])
        self._original_rules: Optional[list[Any]] = None
        self.listeners: list[PassiveListener] = []
        self._events = EventChannels()

        self.store = Store(copy.deepcopy(self.options.context))
        self.controller = Controller(self)

    @property
    def context(self) -> dict[str, Any]:
        return self.store.get("context")

    # ── Subscription ──────────────────────────────────────────

    def on(self, event: Union[BotEvent, str], fn: Callable) -> "RuleBot":
        self._events.on(event, fn)
        return self

    def listen(self, listeners: list[Any]) -> "RuleBot":
        """Install passive listeners (global intents such as "help")."""
        self.listeners = [parse_listener(raw) for raw in listeners]
        logger.debug("passive_listeners_installed", count=len(self.listeners))
        return self

    async def dispatch(self, event: Union[BotEvent, str], *args: Any):
        await self._events.dispatch(event, *args, session_id=self.session_id)

    # ── Conversation ──────────────────────────────────────────

    async def start(self) -> "RuleBot":
        logger.info("conversation_started", session_id=self.session_id, rules=len(self.rules))
        await self.dispatch(BotEvent.START)
        await self._guard(self.controller.run)
        return self

    async def end(self) -> "RuleBot":
        self.store.idle()
        output = self.store.output()
        logger.info("conversation_ended", session_id=self.session_id, answers=len(output))
        await self.dispatch(BotEvent.END, output)
        return self

    async def talk(self, message: str, opts: Optional[dict[str, Any]] = None) -> "RuleBot":
        """Send a message as the bot, outside of the script."""
        rule = parse_rule({**self.options.rule, **(opts or {})})
        await self.controller.send_message(message, rule)
        return self

    async def hear(self, answer: Any) -> "RuleBot":
        """Feed a user answer; ignored unless the bot is waiting for one."""
        await self._guard(self.controller.receive_message, answer)
        return self

    def add_rules(self, rules: Union[str, list[Any]]) -> "RuleBot":
        self.rules = self.rules + load_rules(rules)
        self.controller.reindex()
        return self

    def session(
        self,
        session_id: Any,
        store: Optional[Union[StoreData, dict[str, Any]]] = None,
        rules: Optional[Union[str, list[Any]]] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> "RuleBot":
        """
        Switch to another session.

        A given store is installed as-is; otherwise the store is reset
        (with `context` when given). Custom rules replace the script for
        this session; switching without rules restores the original script.
        """
        self.session_id = session_id

        if rules is not None:
            if self._original_rules is None:
                self._original_rules = self.rules
            self.rules = load_rules(rules)
        elif self._original_rules is not None:
            self.rules = self._original_rules

        if store is not None:
            self.store.replace(store)
        else:
            self.store.reset(context)
        self.controller.reindex()

        logger.info("session_switched",
                    session_id=session_id,
                    restored=store is not None,
                    custom_rules=rules is not None)
        return self

    # ── Error funnel ──────────────────────────────────────────

    async def _guard(self, fn: Callable[..., Awaitable[Any]], *args: Any):
        try:
            await fn(*args)
        except Exception as err:
            logger.error("conversation_failed",
                         session_id=self.session_id,
                         error_type=type(err).__name__,
                         error=str(err))
            try:
                await self.dispatch(BotEvent.ERROR, err)
            finally:
                await self.end()
