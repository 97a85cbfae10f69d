"""
Core data models for the rule-driven dialogue engine.
These are the universal types shared across all modules.
"""
from __future__ import annotations

from typing import Any, Callable, Optional

from pydantic import BaseModel, Field, model_validator


# ──────────────────────────────────────────────────────────────
#  Rule — one scripted conversational step
# ──────────────────────────────────────────────────────────────

class RuleOption(BaseModel):
    """One choice offered by a SingleChoice / MultipleChoice rule."""
    value: Any = None
    label: Any = None                             # display text, defaults to value
    synonyms: list[str] = []                      # extra accepted inputs (case-sensitive)
    reply_message: Optional[str] = None
    next: Optional[str] = None

    @model_validator(mode="after")
    def _fill_value_and_label(self) -> "RuleOption":
        if self.value is None:
            self.value = self.label
        if self.label is None:
            self.label = self.value
        return self

    def accepts(self, answer: Any) -> bool:
        """True when the answer names this option by value, label or synonym."""
        if answer == self.value:
            return True
        text = str(answer).strip()
        candidates = [self.value, self.label, *self.synonyms]
        return any(text == str(c).strip() for c in candidates if c is not None)


class Rule(BaseModel):
    """
    A single step of the script.

    Without a type (and without options) a rule is a plain statement:
    its message is sent and the conversation moves on. With a type the
    rule waits for an answer that is processed by the type's pipeline.
    """
    message: str = ""
    name: Optional[str] = None
    type: Optional[str] = None
    options: list[RuleOption] = []

    validators: list[Any] = []                    # "name" or {"name": argument}
    actions: list[Any] = []
    pre_actions: list[Any] = []
    post_actions: list[Any] = []

    next: Optional[str] = None                    # rule name, "flow:<name>" or "<flow>.<name>"
    reply_message: Optional[str] = None
    delay: Optional[int] = None                   # ms spent "typing" the message
    sleep: Optional[int] = None                   # ms paused before the message
    flow: Optional[str] = None                    # stamped when flattened out of a flow group
    passive: Optional[bool] = None                # overrides listener interception for this rule
    exit: bool = False

    @property
    def type_name(self) -> Optional[str]:
        """Effective type: options without an explicit type mean SingleChoice."""
        if self.type:
            return self.type
        if self.options:
            return "SingleChoice"
        return None

    @property
    def expects_answer(self) -> bool:
        return self.type_name is not None

    def selected_options(self, value: Any) -> list[RuleOption]:
        """Options matching an accepted (already transformed) value."""
        values = value if isinstance(value, list) else [value]
        return [o for v in values for o in self.options if o.accepts(v)]


class RuleFlow(BaseModel):
    """A named group of rules, flattened into the main sequence at load time."""
    flow: str
    rules: list[Rule] = []


# ──────────────────────────────────────────────────────────────
#  Passive listener — global intents independent of the active rule
# ──────────────────────────────────────────────────────────────

class PassiveListener(BaseModel):
    """
    Matches answers regardless of the rule being asked.

    Exactly one matcher is expected (includes / equals / regex / function);
    a listener without a known matcher never matches.
    """
    next: str
    passive: bool = False                         # intercept on every rule, not only passive types
    includes: Optional[str] = None
    equals: Optional[str] = None
    regex: Optional[str] = None
    function: Optional[Callable[[Any], bool]] = None

    @property
    def matcher(self) -> Optional[tuple[str, Any]]:
        for key in ("includes", "equals", "regex", "function"):
            expected = getattr(self, key)
            if expected is not None:
                return key, expected
        return None


# ──────────────────────────────────────────────────────────────
#  Store data — the session hand-off layout
# ──────────────────────────────────────────────────────────────

class ExecutorCheckpoint(BaseModel):
    currentIdx: int


class StoreData(BaseModel):
    """Per-session state. Field names are the persisted layout."""
    context: dict[str, Any] = {}
    output: dict[str, Any] = {}
    currentIdx: Optional[int] = None
    waitingForAnswer: bool = False
    executors: dict[str, ExecutorCheckpoint] = Field(default_factory=dict)
