"""Conversation history normalization."""

from collections.abc import Iterable, Mapping
from typing import Any

from src.infrastructure.llm.schemas import ChatTurn

_ROLES = ("user", "assistant")

HistoryInput = Iterable[ChatTurn | Mapping[str, Any]]


def build_history(turns: HistoryInput | None) -> tuple[ChatTurn, ...]:
    """Normalize caller-supplied turns into ``ChatTurn`` values.

    Accepts ``ChatTurn`` instances or ``{"role": ..., "content": ...}``
    mappings. Turns with an unknown role or blank content are dropped;
    content is trimmed. Order is preserved.
    """
    if not turns:
        return ()

    history: list[ChatTurn] = []
    for turn in turns:
        if isinstance(turn, ChatTurn):
            role, content = turn.role, turn.content
        else:
            role, content = turn.get("role"), turn.get("content")

        if role not in _ROLES or not isinstance(content, str):
            continue
        content = content.strip()
        if content:
            history.append(ChatTurn(role=role, content=content))
    return tuple(history)
