#!/usr/bin/env python3
"""
Console front-end — chat with a rule script in the terminal.

Renders bot messages (with numbered options for choice rules) and feeds
each typed line back to the bot. A number typed on a choice rule picks
the matching option.

Usage:
    python -m ui.console script.yaml
    python -m ui.console script.yaml --no-delay       # skip typing pauses
    python -m ui.console script.yaml --name Ana --log-level DEBUG
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, Callable, Optional, TextIO

import structlog

from config.settings import BotOptions, load_options
from core.bot import RuleBot
from core.events import BotEvent
from models.schemas import Rule


class ConsoleBot(RuleBot):
    """A RuleBot wired to a text stream."""

    def __init__(
        self,
        rules: Any = None,
        options: Any = None,
        name: str = "Bot",
        stream: Optional[TextIO] = None,
    ):
        super().__init__(rules, options)
        self.name = name
        self.stream = stream or sys.stdout
        self.finished = False
        self.on(BotEvent.TALK, self._print_message).on(BotEvent.END, self._mark_finished)

    def _print_message(self, message: str, rule: Rule, session_id: Any):
        print(f"{self.name}: {message}", file=self.stream)
        for number, option in enumerate(rule.options, start=1):
            print(f"  {number}) {option.label}", file=self.stream)

    def _mark_finished(self, output: dict[str, Any], session_id: Any):
        self.finished = True

    def interpret(self, line: str) -> Any:
        """Map a typed option number to the option value on choice rules."""
        rule = self.controller.rule_at(self.store.get("currentIdx"))
        text = line.strip()
        if rule is not None and rule.options and text.isdigit():
            number = int(text)
            if 1 <= number <= len(rule.options):
                return rule.options[number - 1].value
        return text

    async def converse(self, read_line: Optional[Callable[[str], str]] = None) -> dict[str, Any]:
        """Run the whole conversation, reading answers with `read_line` until it ends."""
        read_line = read_line or input
        await self.start()
        loop = asyncio.get_running_loop()
        while not self.finished and self.store.get("waitingForAnswer"):
            try:
                line = await loop.run_in_executor(None, read_line, "> ")
            except EOFError:
                break
            await self.hear(self.interpret(line))
        return self.store.output()


def configure_logging(level: str):
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
    )


def main(argv: Optional[list[str]] = None):
    parser = argparse.ArgumentParser(description="Chat with a rule script")
    parser.add_argument("script", help="YAML rule script")
    parser.add_argument("--config", default=None, help="YAML options file")
    parser.add_argument("--name", default="Bot", help="Bot display name")
    parser.add_argument("--no-delay", action="store_true", help="Disable typing delays and sleeps")
    parser.add_argument("--log-level", default=None, help="Log level (default from options)")
    args = parser.parse_args(argv)

    options: BotOptions = load_options(args.config)
    if args.no_delay:
        options.enable_wait_for_sleep = False
    configure_logging(args.log_level or options.log_level)

    bot = ConsoleBot(args.script, options, name=args.name)
    output = asyncio.run(bot.converse())
    print(output)


if __name__ == "__main__":
    main()
