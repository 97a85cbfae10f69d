"""Tests for script loading and bot options."""
from pathlib import Path

import pytest

from config.loader import load_rules, parse_listener, parse_rule
from config.settings import BotOptions, coerce_options, load_options
from models.schemas import PassiveListener, Rule, RuleFlow

SCRIPTS_DIR = Path(__file__).parent.parent / "scripts"


class TestLoadRules:
    def test_sanitize_shorthands(self):
        rules = load_rules("""
        - Hello
        - type: SingleChoice
        - type: MultipleChoice
          options:
            - One
        - type: SingleChoice
          options:
            - value: One
              synonyms: 1, one, oNe,ONE
        """)
        assert rules[0].message == "Hello"
        assert rules[1].options == []
        assert [o.value for o in rules[2].options] == ["One"]
        assert rules[2].options[0].label == "One"
        assert rules[3].options[0].synonyms == ["1", "one", "oNe", "ONE"]

    def test_camel_case_keys(self):
        rule = parse_rule({
            "message": "Color",
            "type": "String",
            "replyMessage": "Thanks",
            "preActions": ["a"],
            "postActions": [{"b": 1}],
        })
        assert rule.reply_message == "Thanks"
        assert rule.pre_actions == ["a"]
        assert rule.post_actions == [{"b": 1}]

    def test_flow_groups(self):
        entries = load_rules("""
        - flow: welcome
          rules:
            - Hello!
            - type: String
        - Bye!
        """)
        assert isinstance(entries[0], RuleFlow)
        assert entries[0].flow == "welcome"
        assert len(entries[0].rules) == 2
        assert isinstance(entries[1], Rule)

    def test_option_label_only_fills_value(self):
        rule = parse_rule({"type": "SingleChoice", "options": [{"label": "red"}]})
        assert rule.options[0].value == "red"

    def test_load_from_file(self):
        rules = load_rules(str(SCRIPTS_DIR / "onboarding.yaml"))
        assert len(rules) > 0

    def test_passthrough_models(self):
        rule = Rule(message="Hi")
        assert load_rules([rule]) == [rule]

    def test_parse_listener(self):
        listener = parse_listener({"includes": "help", "next": "help", "passive": True})
        assert isinstance(listener, PassiveListener)
        assert listener.matcher == ("includes", "help")
        assert parse_listener({"unknown": "asd", "next": "help"}).matcher is None

    def test_listener_requires_next(self):
        with pytest.raises(ValueError):
            parse_listener({"includes": "help"})


class TestOptions:
    def test_defaults(self):
        opts = BotOptions()
        assert opts.enable_wait_for_sleep is True
        assert opts.time_per_char == 40

    def test_from_camel_case_dict(self):
        opts = coerce_options({"enableWaitForSleep": False, "timePerChar": 10, "context": {"a": 1}})
        assert opts.enable_wait_for_sleep is False
        assert opts.time_per_char == 10
        assert opts.context == {"a": 1}

    def test_load_with_env_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BOT_USER", "ana")
        config = tmp_path / "options.yaml"
        config.write_text("time_per_char: 5\ncontext:\n  user: ${BOT_USER}\n")
        opts = load_options(str(config))
        assert opts.time_per_char == 5
        assert opts.context == {"user": "ana"}

    def test_missing_file_gives_defaults(self, tmp_path):
        opts = load_options(str(tmp_path / "nope.yaml"))
        assert opts == BotOptions()
