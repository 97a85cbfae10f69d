"""
Session Store — per-session state for one conversation.

Holds the StoreData layout:

    {
      "context": {...},            # caller data, never written by answers
      "output": {name: answer},    # accepted answers keyed by rule name
      "currentIdx": 3,             # rule being processed / awaiting an answer
      "waitingForAnswer": True,
      "executors": {name: {"currentIdx": 2}},   # suspended pipelines
    }

Dotted paths read through nested dicts and lists and never raise.
"""
from __future__ import annotations

import copy
import structlog
from typing import Any, Optional, Union

from models.schemas import StoreData
from utils.conditions import delete_nested_value, get_nested_value, set_nested_value

logger = structlog.get_logger()


class Store:

    def __init__(self, context: Optional[dict[str, Any]] = None):
        self._context = context or {}
        self._data: dict[str, Any] = {}
        self.reset()

    def _defaults(self) -> dict[str, Any]:
        return StoreData(context=copy.deepcopy(self._context)).model_dump()

    # ── Access ────────────────────────────────────────────────

    def get(self, path: Optional[str] = None) -> Any:
        """Full data without a path, otherwise the value at the dotted path (or None)."""
        if not path:
            return self._data
        return get_nested_value(self._data, path)

    def set(self, path: str, value: Any) -> "Store":
        set_nested_value(self._data, path, value)
        return self

    def unset(self, path: str) -> "Store":
        delete_nested_value(self._data, path)
        return self

    def output(self) -> dict[str, Any]:
        return self._data.setdefault("output", {})

    # ── Answers and checkpoints (keyed by rule name, never split on dots) ──

    def save_answer(self, name: str, value: Any) -> "Store":
        self.output()[name] = value
        return self

    def checkpoint(self, key: str) -> Optional[int]:
        entry = self._data.get("executors", {}).get(key)
        return entry.get("currentIdx") if isinstance(entry, dict) else None

    def save_checkpoint(self, key: str, idx: int) -> "Store":
        self._data.setdefault("executors", {})[key] = {"currentIdx": idx}
        return self

    def clear_checkpoint(self, key: str) -> "Store":
        self._data.get("executors", {}).pop(key, None)
        return self

    def idle(self) -> "Store":
        """Leave the conversation: no cursor, no pending answer, no suspended pipelines."""
        self._data["currentIdx"] = None
        self._data["waitingForAnswer"] = False
        self._data["executors"] = {}
        return self

    # ── Lifecycle ─────────────────────────────────────────────

    def reset(self, context: Optional[dict[str, Any]] = None) -> "Store":
        """Back to empty defaults; keeps the constructor context unless a new one is given."""
        if context is not None:
            self._context = context
        self._data = self._defaults()
        return self

    def replace(self, data: Union[StoreData, dict[str, Any]]) -> "Store":
        """Install caller-supplied session data wholesale (no merge)."""
        if isinstance(data, StoreData):
            self._data = data.model_dump()
        else:
            StoreData.model_validate(data)
            self._data = data
        logger.debug("store_replaced",
                     current_idx=self._data.get("currentIdx"),
                     waiting=self._data.get("waitingForAnswer"))
        return self
