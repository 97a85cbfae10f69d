"""
Built-in catalogs shared by every bot in the process.

  types       rule types (answer pipelines)
  validators  answer checks with warning messages
  actions     side effects around rules
  executors   reusable pipeline steps, incl. the WaitForUserInput sentinel
"""
from catalog.validators import validators
from catalog.executors import executors, WaitForUserInput
from catalog.rule_types import types, DEFAULT_WARNING
from catalog.actions import actions

__all__ = [
    "types", "validators", "actions", "executors",
    "WaitForUserInput", "DEFAULT_WARNING",
]
