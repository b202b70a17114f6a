"""Compose the provider-agnostic message sequence for one relay call."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from ..domain import CHAT_ROLES, Message


def _as_message(item: Message | Mapping[str, Any]) -> Message | None:
    if isinstance(item, Message):
        return item
    if isinstance(item, Mapping):
        role = item.get("role")
        content = item.get("content")
        if isinstance(role, str) and isinstance(content, str):
            return Message(role=role, content=content)
    return None


def build_messages(
    system_prompt: str | None,
    history: Iterable[Message | Mapping[str, Any]],
    new_user_text: str,
) -> list[Message]:
    """Return ``[system?] + user/assistant history + new user turn``.

    History keeps its stored order (oldest first). Roles other than user and
    assistant are dropped. The new user turn is always last.
    """

    messages: list[Message] = []
    if system_prompt and system_prompt.strip():
        messages.append(Message(role="system", content=system_prompt))
    for item in history:
        message = _as_message(item)
        if message is None or message.role not in CHAT_ROLES:
            continue
        messages.append(message)
    messages.append(Message(role="user", content=new_user_text))
    return messages


def truncate_history(history: list, limit: int) -> list:
    if limit <= 0:
        return []
    return history[-limit:]


__all__ = ["build_messages", "truncate_history"]
