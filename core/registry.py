"""
Catalog Registries — string identifiers resolved to typed definitions.

Four independent registries back the dialogue engine:

  Types       name → RuleType    (executor pipeline + default warning)
  Validators  name → Validator   (predicate + warning)
  Actions     name → callable    (side effect run around a rule)
  Executors   name → Executor    (reusable pipeline step)

`define` normalizes whatever it is given (plain function, dict, dataclass)
into the catalog's variant, so the controller only ever sees one shape
per catalog. Registries are process-wide and meant to be populated at
startup; defining entries while sessions are running is not synchronized.
"""
from __future__ import annotations

import structlog
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar, Union

from core.exceptions import InvalidAttributeError

logger = structlog.get_logger()

T = TypeVar("T")


# ──────────────────────────────────────────────────────────────
#  Catalog variants
# ──────────────────────────────────────────────────────────────

class PassiveMode(str, Enum):
    """How a rule type interacts with passive listeners."""
    NONE = "none"      # listeners only when enabled by listener/rule flags
    ONCE = "once"      # check listeners, fall through to normal processing
    LOOP = "loop"      # keep waiting silently until a listener matches


@dataclass
class Executor:
    """
    One step of a type's answer pipeline.

    validators run against the step's input before transform; a step with
    wait_for_user_input set is the suspend sentinel and does nothing else.
    """
    transform: Optional[Callable] = None          # fn(answer, rule, bot) → value, may be async
    validators: list[Any] = field(default_factory=list)
    wait_for_user_input: bool = False


Step = Union[Executor, Callable, str]


@dataclass
class RuleType:
    executors: list[Step] = field(default_factory=list)
    warning: Optional[Union[str, Callable]] = None  # fallback when a validator has none
    passive: PassiveMode = PassiveMode.NONE


@dataclass
class Validator:
    validate: Callable                             # fn(expected, answer, rule) → bool, may be async
    warning: Optional[Union[str, Callable]] = None  # str or fn(expected, answer) → Optional[str]


# ──────────────────────────────────────────────────────────────
#  Registry
# ──────────────────────────────────────────────────────────────

class Registry(Generic[T]):
    """Named mapping from identifier to definition for one catalog."""

    kind = "registry"

    def __init__(self):
        self._entries: dict[str, T] = {}

    def define(self, name: str, value: Any) -> "Registry[T]":
        """Insert or overwrite a definition."""
        if name in self._entries:
            logger.debug("registry_entry_overwritten", registry=self.kind, name=name)
        self._entries[name] = self._coerce(name, value)
        return self

    def get(self, name: str) -> Optional[T]:
        return self._entries.get(name)

    def require(self, name: str) -> T:
        """Like get, but a miss is an InvalidAttributeError."""
        entry = self._entries.get(name)
        if entry is None:
            raise InvalidAttributeError(self.kind, name)
        return entry

    def names(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __getattr__(self, name: str) -> T:
        # registry.WaitForUserInput style access
        entries = self.__dict__.get("_entries", {})
        if name in entries:
            return entries[name]
        raise AttributeError(name)

    def _coerce(self, name: str, value: Any) -> T:
        return value


class TypeRegistry(Registry[RuleType]):
    kind = "type"

    def _coerce(self, name: str, value: Any) -> RuleType:
        if isinstance(value, RuleType):
            return value
        if isinstance(value, dict):
            return RuleType(
                executors=list(value.get("executors", [])),
                warning=value.get("warning"),
                passive=PassiveMode(value.get("passive", PassiveMode.NONE)),
            )
        raise TypeError(f"Cannot define type '{name}' from {type(value).__name__}")


class ValidatorRegistry(Registry[Validator]):
    kind = "validator"

    def _coerce(self, name: str, value: Any) -> Validator:
        if isinstance(value, Validator):
            return value
        if isinstance(value, dict):
            return Validator(validate=value["validate"], warning=value.get("warning"))
        if callable(value):
            return Validator(validate=value)
        raise TypeError(f"Cannot define validator '{name}' from {type(value).__name__}")


class ActionRegistry(Registry[Callable]):
    kind = "action"

    def _coerce(self, name: str, value: Any) -> Callable:
        if not callable(value):
            raise TypeError(f"Action '{name}' must be callable")
        return value


class ExecutorRegistry(Registry[Executor]):
    kind = "executor"

    def _coerce(self, name: str, value: Any) -> Executor:
        return as_executor(value)


def as_executor(step: Any) -> Executor:
    """Normalize a pipeline step (Executor, dict or bare transform) into an Executor."""
    if isinstance(step, Executor):
        return step
    if isinstance(step, dict):
        return Executor(
            transform=step.get("transform"),
            validators=list(step.get("validators", [])),
            wait_for_user_input=bool(step.get("wait_for_user_input", False)),
        )
    if callable(step):
        return Executor(transform=step)
    raise TypeError(f"Cannot use {type(step).__name__} as an executor step")


def iter_invocations(items: list[Any]):
    """
    Yield (name, argument) pairs from a validators/actions list.

    A bare name means argument True; a mapping contributes each of its
    name → argument pairs in order.
    """
    for item in items or []:
        if isinstance(item, str):
            yield item, True
        elif isinstance(item, dict):
            for name, argument in item.items():
                yield name, argument
        else:
            logger.warning("invalid_invocation_skipped", item=repr(item))
