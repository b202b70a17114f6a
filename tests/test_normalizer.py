from __future__ import annotations

import itertools

from airelay.domain import Message
from airelay.gateway.normalizer import build_messages, truncate_history

_ROLES = ["user", "assistant", "system", "tool"]


def _histories():
    yield []
    for length in (1, 2, 3):
        for roles in itertools.product(_ROLES, repeat=length):
            yield [Message(role=role, content=f"{role}-{idx}") for idx, role in enumerate(roles)]


def test_new_user_turn_is_always_last() -> None:
    for history in _histories():
        for system_prompt in (None, "", "  ", "sys"):
            messages = build_messages(system_prompt, history, "new text")
            assert messages[-1] == Message(role="user", content="new text")
            assert sum(1 for m in messages if m.content == "new text") == 1


def test_history_is_filtered_but_not_reordered() -> None:
    for history in _histories():
        messages = build_messages(None, history, "n")
        expected = [m for m in history if m.role in ("user", "assistant")]
        assert messages[:-1] == expected


def test_system_prompt_prepended_only_when_non_blank() -> None:
    history = [Message(role="assistant", content="a")]
    assert build_messages("be kind", history, "q")[0] == Message(role="system", content="be kind")
    assert build_messages("   ", history, "q")[0].role == "assistant"
    assert build_messages(None, [], "q") == [Message(role="user", content="q")]


def test_history_accepts_mappings_and_skips_malformed_entries() -> None:
    history = [
        {"role": "user", "content": "hi"},
        {"role": "assistant"},
        {"role": "assistant", "content": "hello"},
        {"role": "function", "content": "{}"},
    ]
    messages = build_messages(None, history, "next")
    assert [m.to_dict() for m in messages] == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
        {"role": "user", "content": "next"},
    ]


def test_truncate_history_keeps_most_recent() -> None:
    history = list(range(10))
    assert truncate_history(history, 3) == [7, 8, 9]
    assert truncate_history(history, 20) == history
    assert truncate_history(history, 0) == []
