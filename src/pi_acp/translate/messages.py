"""pi conversation history to plain text for replay."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any


def _text_blocks(content: list[Any]) -> str:
    return "".join(
        c["text"]
        for c in content
        if isinstance(c, dict) and c.get("type") == "text" and isinstance(c.get("text"), str)
    )


def normalize_user_text(content: Any) -> str:
    """User content is either a plain string or a list of blocks."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return _text_blocks(content)
    return ""


def normalize_assistant_text(content: Any) -> str:
    """Assistant content is a list of blocks; only text blocks are replayed."""
    if isinstance(content, list):
        return _text_blocks(content)
    return ""


def iter_history(messages: Any) -> Iterator[tuple[str, str]]:
    """Yield (role, text) for user and assistant messages that carry text."""
    if not isinstance(messages, list):
        return
    for m in messages:
        if not isinstance(m, dict):
            continue
        role = m.get("role")
        if role == "user":
            text = normalize_user_text(m.get("content"))
        elif role == "assistant":
            text = normalize_assistant_text(m.get("content"))
        else:
            continue
        if text:
            yield role, text
