"""
Configuration loader for bot options.
Reads options from a YAML file with environment variable substitution.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import yaml


@dataclass
class BotOptions:
    enable_wait_for_sleep: bool = True      # honour typing delays and rule sleeps
    time_per_char: int = 40                 # ms per character when simulating typing
    context: dict[str, Any] = field(default_factory=dict)   # initial session context
    rule: dict[str, Any] = field(default_factory=dict)      # default rule fields for talk()
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "BotOptions":
        defaults = cls()
        return cls(
            enable_wait_for_sleep=raw.get("enable_wait_for_sleep",
                                          raw.get("enableWaitForSleep", defaults.enable_wait_for_sleep)),
            time_per_char=raw.get("time_per_char", raw.get("timePerChar", defaults.time_per_char)),
            context=raw.get("context") or {},
            rule=raw.get("rule") or {},
            log_level=raw.get("log_level", defaults.log_level),
        )


_options: Optional[BotOptions] = None


def _substitute_env_vars(value: str) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""
    pattern = re.compile(r'\$\{(\w+)\}')
    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))
    return pattern.sub(replacer, value)


def _process_values(obj: Any) -> Any:
    """Recursively substitute env vars in all string values."""
    if isinstance(obj, str):
        return _substitute_env_vars(obj)
    elif isinstance(obj, dict):
        return {k: _process_values(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_process_values(v) for v in obj]
    return obj


def coerce_options(options: Union[BotOptions, dict[str, Any], None]) -> BotOptions:
    """Accept options as a BotOptions, a plain dict, or nothing (cached defaults)."""
    if isinstance(options, BotOptions):
        return options
    if isinstance(options, dict):
        return BotOptions.from_dict(options)
    return get_options()


def load_options(config_path: str = None) -> BotOptions:
    """Load options from YAML file."""
    global _options

    if config_path is None:
        config_path = os.environ.get(
            "RULEBOT_CONFIG",
            str(Path(__file__).parent / "settings.yaml"),
        )

    options = BotOptions()

    if Path(config_path).exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        raw = _process_values(raw)
        options = BotOptions.from_dict(raw)

    _options = options
    return options


def get_options() -> BotOptions:
    """Return cached options or load from default path."""
    global _options
    if _options is None:
        _options = load_options()
    return _options
