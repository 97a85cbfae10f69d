"""
Dialogue Controller — the state machine that walks a rule script.

    Idle → Running → WaitingForAnswer ⇄ Running → Ended
                 (any state) → Ended(error)

The controller owns traversal only. It never renders anything: every
message, typing indicator and lifecycle change is dispatched through the
bot that owns it, and every failure is raised back to the bot's error
funnel.

Main loop (run):
  statement rule  → pre-actions, message, actions, jump or advance
  question rule   → pre-actions, message, wait for hear()

Answer processing (receive_message):
  passive listeners → executor pipeline (validators + transforms)
    → warning + re-ask       on validation failure
    → wait again silently     on WaitForUserInput
    → store, actions, reply   on success, then continue the loop

A pipeline suspended by WaitForUserInput keeps its continuation index in
the store under executors.<rule name>.currentIdx, so a session handed off
as StoreData resumes exactly where it stopped.
"""
from __future__ import annotations

import asyncio
import inspect
import structlog
from typing import Any, Optional, Union

from catalog.rule_types import DEFAULT_WARNING
from core.events import BotEvent
from core.exceptions import (
    InvalidAttributeError, RuleNotFound, TransformFailure, ValidationFailure,
)
from core.registry import Executor, PassiveMode, RuleType, as_executor, iter_invocations
from models.schemas import PassiveListener, Rule, RuleFlow
from utils.conditions import match_answer
from utils.template import render
from utils.timing import calculate_delay_to_type_message

logger = structlog.get_logger()

FLOW_PREFIX = "flow:"

PIPELINE_SUSPENDED = object()   # returned by execute() when WaitForUserInput is reached


async def _resolve(result: Any) -> Any:
    """Await coroutine results from user-supplied callables; pass plain values through."""
    if inspect.isawaitable(result):
        return await result
    return result


def flatten_rules(entries: list[Union[Rule, RuleFlow]]) -> list[Rule]:
    """Inline flow groups in source order, stamping each rule with its flow."""
    rules: list[Rule] = []
    for entry in entries:
        if isinstance(entry, RuleFlow):
            rules.extend(r.model_copy(update={"flow": entry.flow}) for r in entry.rules)
        else:
            rules.append(entry)
    return rules


class Controller:

    def __init__(self, bot):
        self.bot = bot
        self.indexes: dict[str, int] = {}          # rule name (and flow.name) → index
        self.flow_indexes: dict[str, int] = {}     # flow name → index of its first rule
        self.reindex()

    # ══════════════════════════════════════════════════════════
    #  INDEXING
    # ══════════════════════════════════════════════════════════

    def reindex(self) -> "Controller":
        """Flatten the bot's rules and rebuild the jump-target indexes."""
        rules = flatten_rules(self.bot.rules)
        self.bot.rules = rules

        indexes: dict[str, int] = {}
        flow_indexes: dict[str, int] = {}
        for idx, rule in enumerate(rules):
            if rule.flow and rule.flow not in flow_indexes:
                flow_indexes[rule.flow] = idx
            if not rule.name:
                continue
            keys = [rule.name]
            if rule.flow:
                keys.append(f"{rule.flow}.{rule.name}")
            for key in keys:
                if key in indexes:
                    logger.warning("duplicate_rule_name",
                                   name=key, previous=indexes[key], index=idx)
                indexes[key] = idx

        self.indexes = indexes
        self.flow_indexes = flow_indexes
        logger.debug("rules_indexed",
                     rules=len(rules), names=len(indexes), flows=len(flow_indexes))
        return self

    @property
    def named_rules(self) -> dict[str, Rule]:
        return {name: self.bot.rules[idx] for name, idx in self.indexes.items()}

    def rule_at(self, idx: Optional[int]) -> Optional[Rule]:
        if idx is None or not 0 <= idx < len(self.bot.rules):
            return None
        return self.bot.rules[idx]

    def resolve_jump(self, target: str, rule: Optional[Rule] = None) -> int:
        """
        Resolve a jump target to a rule index.

        "flow:<name>" lands on the first rule of that flow; a bare name is
        tried inside the current rule's flow first, then globally.
        """
        if target.startswith(FLOW_PREFIX):
            flow = target[len(FLOW_PREFIX):]
            if flow in self.flow_indexes:
                return self.flow_indexes[flow]
        else:
            if rule is not None and rule.flow:
                scoped = f"{rule.flow}.{target}"
                if scoped in self.indexes:
                    return self.indexes[scoped]
            if target in self.indexes:
                return self.indexes[target]

        rule_name = rule.name if rule else None
        logger.error("rule_not_found", target=target, rule=rule_name)
        raise RuleNotFound(target, rule_name)

    def resolve_type(self, rule: Rule) -> Optional[RuleType]:
        """The rule's type definition, or None for a plain statement."""
        type_name = rule.type_name
        if type_name is None:
            return None
        rule_type = self.bot.types.get(type_name)
        if rule_type is None:
            raise InvalidAttributeError("type", type_name, rule.name)
        return rule_type

    # ══════════════════════════════════════════════════════════
    #  MAIN LOOP
    # ══════════════════════════════════════════════════════════

    async def run(self, idx: Optional[int] = None) -> "Controller":
        """
        Drive the script from `idx` until a rule needs an answer, an exit
        rule is reached, or the rules run out.

        Without an index the run resumes from the stored cursor; a store
        that is already waiting only re-enters the waiting state.
        """
        store = self.bot.store
        if idx is None:
            if store.get("waitingForAnswer") and self.rule_at(store.get("currentIdx")):
                logger.info("conversation_resumed", index=store.get("currentIdx"))
                await self.bot.dispatch(BotEvent.HEAR)
                return self
            idx = store.get("currentIdx") or 0

        while True:
            rule = self.rule_at(idx)
            if rule is None:
                await self.bot.end()
                return self

            store.set("currentIdx", idx)
            rule_type = self.resolve_type(rule)
            logger.debug("rule_started", index=idx, name=rule.name, type=rule.type_name)

            await self.run_actions(rule, "pre_actions")
            if rule.sleep:
                await self.pause(rule.sleep)
            if rule.message:
                await self.send_message(rule.message, rule)

            if rule_type is None:
                await self.run_actions(rule, "actions")

            if rule.exit:
                logger.info("conversation_exit", index=idx, name=rule.name)
                await self.bot.end()
                return self

            if rule_type is not None:
                await self._wait_for_answer()
                return self

            idx = self.resolve_jump(rule.next, rule) if rule.next else idx + 1

    async def receive_message(self, answer: Any) -> "Controller":
        """Process an answer for the rule being waited on; ignored when not waiting."""
        store = self.bot.store
        if not store.get("waitingForAnswer"):
            logger.debug("answer_ignored_not_waiting")
            return self
        store.set("waitingForAnswer", False)

        idx = store.get("currentIdx")
        rule = self.rule_at(idx)
        if rule is None:
            logger.warning("answer_for_missing_rule", index=idx)
            await self.bot.end()
            return self
        rule_type = self.resolve_type(rule)
        if rule_type is None:
            logger.warning("answer_for_statement_ignored", index=idx, name=rule.name)
            return await self.run(idx)

        listener = self.match_listener(rule, rule_type, answer)
        if listener is not None:
            logger.info("passive_listener_matched", rule=rule.name, next=listener.next)
            store.clear_checkpoint(self._checkpoint_key(rule, idx))
            return await self.run(self.resolve_jump(listener.next, rule))

        if rule_type.passive is PassiveMode.LOOP:
            await self._wait_for_answer()
            return self

        try:
            value = await self.execute(rule, rule_type, answer, idx)
        except ValidationFailure as failure:
            logger.info("answer_rejected", rule=rule.name, validator=failure.validator)
            await self.send_message(failure.warning, rule)
            await self._wait_for_answer()
            return self

        if value is PIPELINE_SUSPENDED:
            await self._wait_for_answer()
            return self

        return await self._accept(rule, idx, value)

    async def _accept(self, rule: Rule, idx: int, value: Any) -> "Controller":
        store = self.bot.store
        if rule.name:
            store.save_answer(rule.name, value)
        logger.info("answer_accepted", rule=rule.name, index=idx)

        await self.run_actions(rule, "actions")
        await self.run_actions(rule, "post_actions")

        selected = rule.selected_options(value) if rule.options else []
        target = next((o.next for o in selected if o.next), None) or rule.next
        reply = next((o.reply_message for o in selected if o.reply_message), None) or rule.reply_message

        next_idx = self.resolve_jump(target, rule) if target else idx + 1
        if reply:
            await self.send_message(reply, Rule(delay=rule.delay))
        return await self.run(next_idx)

    async def _wait_for_answer(self):
        self.bot.store.set("waitingForAnswer", True)
        await self.bot.dispatch(BotEvent.HEAR)

    async def pause(self, ms: float):
        """Sleep for `ms` milliseconds, unless pacing is disabled."""
        if self.bot.options.enable_wait_for_sleep:
            await asyncio.sleep(ms / 1000)

    # ══════════════════════════════════════════════════════════
    #  MESSAGES
    # ══════════════════════════════════════════════════════════

    async def send_message(self, message: str, rule: Optional[Rule] = None):
        """Render a message against the answers so far and deliver it with typing pacing."""
        rule = rule or Rule()
        text = render(message, self.bot.store, self.named_rules)

        options = self.bot.options
        delay = 0
        if options.enable_wait_for_sleep:
            delay = rule.delay if rule.delay is not None else \
                calculate_delay_to_type_message(text, options.time_per_char)

        await self.bot.dispatch(BotEvent.TYPING)
        if delay:
            await asyncio.sleep(delay / 1000)
        await self.bot.dispatch(BotEvent.TYPED)
        await self.bot.dispatch(BotEvent.TALK, text, rule)
        logger.debug("message_sent", rule=rule.name, delay=delay)

    # ══════════════════════════════════════════════════════════
    #  PASSIVE LISTENERS
    # ══════════════════════════════════════════════════════════

    def match_listener(
        self, rule: Rule, rule_type: RuleType, answer: Any,
    ) -> Optional[PassiveListener]:
        """
        First listener that intercepts this answer, if any.

        A rule's own `passive` flag wins; otherwise a listener applies when
        it is marked passive or when the rule's type is a passive type.
        """
        for listener in self.bot.listeners:
            if rule.passive is not None:
                enabled = rule.passive
            else:
                enabled = listener.passive or rule_type.passive is not PassiveMode.NONE
            if not enabled:
                continue
            matcher = listener.matcher
            if matcher is None:
                continue
            if match_answer(matcher[0], matcher[1], answer):
                return listener
        return None

    # ══════════════════════════════════════════════════════════
    #  EXECUTOR PIPELINE
    # ══════════════════════════════════════════════════════════

    async def execute(self, rule: Rule, rule_type: RuleType, answer: Any, idx: int) -> Any:
        """
        Run the type's steps over the answer, resuming from a saved checkpoint.

        Returns the final value, or PIPELINE_SUSPENDED when a WaitForUserInput
        step is reached. The rule's own validators run once, after the first
        step of a fresh run.
        """
        store = self.bot.store
        key = self._checkpoint_key(rule, idx)
        start = store.checkpoint(key) or 0
        steps = rule_type.executors
        rule_checked = start > 0

        for position in range(start, len(steps)):
            step = self.resolve_step(steps[position])

            if step.wait_for_user_input:
                if not rule_checked:
                    await self.validate(rule, rule_type, rule.validators, answer)
                store.save_checkpoint(key, position + 1)
                logger.info("executor_suspended", rule=key, resume_at=position + 1)
                return PIPELINE_SUSPENDED

            await self.validate(rule, rule_type, step.validators, answer)
            if step.transform is not None:
                try:
                    answer = await _resolve(step.transform(answer, rule, self.bot))
                except ValidationFailure:
                    raise
                except Exception as exc:
                    logger.error("executor_failed", rule=key, step=position, error=str(exc))
                    raise TransformFailure(key, position) from exc

            if not rule_checked:
                await self.validate(rule, rule_type, rule.validators, answer)
                rule_checked = True

        if not rule_checked:
            await self.validate(rule, rule_type, rule.validators, answer)

        store.clear_checkpoint(key)
        return answer

    def resolve_step(self, step: Any) -> Executor:
        if isinstance(step, str):
            return self.bot.executors.require(step)
        return as_executor(step)

    async def validate(
        self, rule: Rule, rule_type: RuleType, invocations: list[Any], answer: Any,
    ):
        """Raise ValidationFailure with the rendered warning of the first failing validator."""
        for name, expected in iter_invocations(invocations):
            validator = self.bot.validators.get(name)
            if validator is None:
                logger.warning("unknown_validator_skipped", validator=name, rule=rule.name)
                continue
            if await _resolve(validator.validate(expected, answer, rule)):
                continue

            warning = await self._warning(validator.warning, expected, answer)
            if warning is None:
                warning = await self._warning(rule_type.warning, expected, answer)
            if warning is None:
                warning = DEFAULT_WARNING.format(type=rule.type_name)
            raise ValidationFailure(str(warning), name, rule.name)

    @staticmethod
    async def _warning(warning: Any, expected: Any, answer: Any) -> Optional[str]:
        if callable(warning):
            return await _resolve(warning(expected, answer))
        return warning

    @staticmethod
    def _checkpoint_key(rule: Rule, idx: Optional[int]) -> str:
        return rule.name or f"__rule_{idx}"

    # ══════════════════════════════════════════════════════════
    #  ACTIONS
    # ══════════════════════════════════════════════════════════

    async def run_actions(self, rule: Rule, kind: str):
        """Run a rule's actions / pre_actions / post_actions in order."""
        for name, argument in iter_invocations(getattr(rule, kind)):
            action = self.bot.actions.get(name)
            if action is None:
                logger.warning("unknown_action_skipped", action=name, kind=kind, rule=rule.name)
                continue
            logger.debug("action_started", action=name, kind=kind, rule=rule.name)
            await _resolve(action(argument, rule, self.bot))
