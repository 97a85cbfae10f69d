"""Typing-delay pacing for bot messages."""
from __future__ import annotations

MIN_TYPING_DELAY = 300      # ms, even one-character messages "type" for a moment
MAX_TYPING_DELAY = 5000     # ms


def calculate_delay_to_type_message(message: str, time_per_char: int) -> int:
    """Milliseconds a human would need to type the message."""
    delay = len(message or "") * time_per_char
    return max(MIN_TYPING_DELAY, min(delay, MAX_TYPING_DELAY))
