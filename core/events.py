"""
Event channels — how the engine talks to its presentation layer.

The set of channels is closed (BotEvent). Every channel accepts any
number of subscribers except ERROR, which holds exactly one handler:
registering a new error handler replaces the previous one. Handlers are
called with the event arguments followed by the session id and may be
plain functions or coroutines.
"""
from __future__ import annotations

import inspect
import structlog
from enum import Enum
from typing import Any, Callable, Union

logger = structlog.get_logger()


class BotEvent(str, Enum):
    START = "start"
    END = "end"            # (output)
    TALK = "talk"          # (message, rule)
    HEAR = "hear"          # bot started waiting for an answer
    TYPING = "typing"
    TYPED = "typed"
    ERROR = "error"        # (exception)


SINGLE_HANDLER_EVENTS = {BotEvent.ERROR}


def raise_error(err: BaseException, session_id: Any = None):
    """Default error handler: surface the failure to whoever awaited the run."""
    raise err


class EventChannels:

    def __init__(self):
        self._handlers: dict[BotEvent, list[Callable]] = {evt: [] for evt in BotEvent}
        self._handlers[BotEvent.ERROR] = [raise_error]

    def on(self, event: Union[BotEvent, str], fn: Callable):
        evt = BotEvent(event)
        if evt in SINGLE_HANDLER_EVENTS:
            self._handlers[evt] = [fn]
        else:
            self._handlers[evt].append(fn)

    def handlers(self, event: Union[BotEvent, str]) -> list[Callable]:
        return list(self._handlers[BotEvent(event)])

    async def dispatch(self, event: Union[BotEvent, str], *args: Any, session_id: Any = None):
        evt = BotEvent(event)
        for fn in list(self._handlers[evt]):
            result = fn(*args, session_id)
            if inspect.isawaitable(result):
                await result
