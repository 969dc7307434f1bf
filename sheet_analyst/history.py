"""Conversation turns and a minimal JSON file store for them.

History is an ordered list of turns, oldest first.  Functions here return
new lists instead of modifying the one they are given.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, List

if TYPE_CHECKING:
    from .gateway import GatewayResult

ROLES = ("user", "assistant")


@dataclass(frozen=True)
class ConversationTurn:
    role: str
    content: str

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown conversation role: {self.role!r}")

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


def append_exchange(
    history: Iterable[ConversationTurn], query: str, result: "GatewayResult"
) -> List[ConversationTurn]:
    """Return ``history`` extended with the user's query and, on success, the answer."""
    updated = list(history)
    updated.append(ConversationTurn("user", query))
    if result.success:
        updated.append(ConversationTurn("assistant", result.text))
    return updated


class JsonHistoryStore:
    """Persist a conversation as a JSON list of ``{"role", "content"}`` objects."""

    def __init__(self, path: str) -> None:
        self.path = path

    def load(self) -> List[ConversationTurn]:
        if not os.path.exists(self.path):
            return []
        with open(self.path, "r", encoding="utf-8") as fh:
            raw = json.load(fh)
        return [ConversationTurn(item["role"], item["content"]) for item in raw]

    def save(self, history: Iterable[ConversationTurn]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump([turn.to_dict() for turn in history], fh, ensure_ascii=False, indent=2)

    def clear(self) -> None:
        if os.path.exists(self.path):
            os.remove(self.path)
