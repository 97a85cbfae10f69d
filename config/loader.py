"""
Script loader — turns YAML or plain Python rule scripts into rule models.

Accepted shorthands:
  - a bare string is a statement:            "Hello!"
  - option strings are options by value:      options: [Red, Blue]
  - synonyms may be a comma separated string: synonyms: "1, one, ONE"
  - camelCase keys from hand-written scripts: replyMessage, preActions, ...
  - flow groups:                              {flow: welcome, rules: [...]}
"""
from __future__ import annotations

import structlog
import textwrap
from pathlib import Path
from typing import Any, Union

import yaml

from models.schemas import PassiveListener, Rule, RuleFlow, RuleOption

logger = structlog.get_logger()

ScriptEntry = Union[Rule, RuleFlow]


def load_rules(source: Union[str, Path, list[Any]]) -> list[ScriptEntry]:
    """Load a script from YAML text, a YAML file path, or an already parsed list."""
    if isinstance(source, Path) or (
        isinstance(source, str) and source.endswith((".yaml", ".yml")) and Path(source).exists()
    ):
        with open(source) as f:
            raw = yaml.safe_load(f) or []
        logger.info("script_loaded", path=str(source))
    elif isinstance(source, str):
        raw = yaml.safe_load(textwrap.dedent(source)) or []
    else:
        raw = source or []

    if not isinstance(raw, list):
        raw = [raw]
    return [parse_entry(entry) for entry in raw]


def parse_entry(raw: Any) -> ScriptEntry:
    if isinstance(raw, (Rule, RuleFlow)):
        return raw
    if isinstance(raw, dict) and "flow" in raw and "rules" in raw:
        return RuleFlow(
            flow=raw["flow"],
            rules=[parse_rule(r) for r in raw.get("rules") or []],
        )
    return parse_rule(raw)


def parse_rule(raw: Any) -> Rule:
    """Parse one script entry (string or dict) into a Rule."""
    if isinstance(raw, Rule):
        return raw
    if raw is None:
        return Rule()
    if not isinstance(raw, dict):
        return Rule(message=str(raw))

    message = raw.get("message")
    return Rule(
        message="" if message is None else str(message),
        name=raw.get("name"),
        type=raw.get("type"),
        options=[parse_option(o) for o in raw.get("options") or []],
        validators=raw.get("validators") or [],
        actions=raw.get("actions") or [],
        pre_actions=_pick(raw, "pre_actions", "preActions") or [],
        post_actions=_pick(raw, "post_actions", "postActions") or [],
        next=raw.get("next"),
        reply_message=_pick(raw, "reply_message", "replyMessage"),
        delay=raw.get("delay"),
        sleep=raw.get("sleep"),
        flow=raw.get("flow"),
        passive=raw.get("passive"),
        exit=bool(raw.get("exit", False)),
    )


def parse_option(raw: Any) -> RuleOption:
    if isinstance(raw, RuleOption):
        return raw
    if not isinstance(raw, dict):
        return RuleOption(value=raw)

    synonyms = raw.get("synonyms") or []
    if isinstance(synonyms, str):
        synonyms = [s.strip() for s in synonyms.split(",")]
    return RuleOption(
        value=raw.get("value"),
        label=raw.get("label"),
        synonyms=[str(s).strip() for s in synonyms],
        reply_message=_pick(raw, "reply_message", "replyMessage"),
        next=raw.get("next"),
    )


def parse_listener(raw: Any) -> PassiveListener:
    if isinstance(raw, PassiveListener):
        return raw
    return PassiveListener(**raw)


def _pick(raw: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None
