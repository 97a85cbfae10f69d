"""
Built-in rule types.

A type is the pipeline an answer goes through (steps by executor name or
inline) plus the warning used when a failing validator has none of its
own. Passive / PassiveLoop exist only to hand answers to the passive
listeners.
"""
from __future__ import annotations

from core.registry import PassiveMode, RuleType, TypeRegistry

DEFAULT_WARNING = 'Invalid value for "{type}" type'

types = TypeRegistry()

types.define("Any", RuleType())
types.define("String", RuleType(executors=["text"]))
types.define("Number", RuleType(executors=["number"]))
types.define("SingleChoice", RuleType(executors=["option"]))
types.define("MultipleChoice", RuleType(executors=["options"]))
types.define("Passive", RuleType(passive=PassiveMode.ONCE))
types.define("PassiveLoop", RuleType(passive=PassiveMode.LOOP))
