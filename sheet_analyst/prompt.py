"""Assemble the request payload sent to the model.

The prompt text is instructions, dataset context and the user's query
separated by blank lines.  Conversation history travels next to it as a
list of turns so it can be mapped to the provider's structured
conversation field.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .history import ConversationTurn

DEFAULT_INSTRUCTIONS = (
    "You are a data analysis assistant working on spreadsheet data. "
    "Answer the user's question using the dataset description below. "
    "Be concise, cite the columns and values you rely on, and say so when "
    "the sample rows are not enough to answer with confidence."
)

# The provider calls the assistant side of a conversation "model".
_WIRE_ROLES = {"user": "user", "assistant": "model"}


@dataclass(frozen=True)
class PromptPayload:
    instructions: str
    dataset_context: str
    history: Tuple[ConversationTurn, ...]
    query: str

    @property
    def text(self) -> str:
        """Single prompt string: instructions, context and query."""
        sections = [self.instructions, self.dataset_context, self.query]
        return "\n\n".join(section for section in sections if section)


def build_prompt(
    instructions: Optional[str],
    context: str,
    history: Iterable[ConversationTurn],
    query: str,
    max_history_turns: Optional[int] = None,
) -> PromptPayload:
    """Build a ``PromptPayload``.

    Parameters
    ----------
    instructions : str or None
        Operator instructions; blank values fall back to
        ``DEFAULT_INSTRUCTIONS``.
    context : str
        Output of the context assembler, may be empty.
    history : iterable of ConversationTurn
        Prior turns, oldest first.  Order is preserved and nothing is
        deduplicated.
    query : str
        The user's question.
    max_history_turns : int, optional
        Keep only the most recent N turns.  ``None`` keeps all of them.
    """
    turns = list(history)
    if max_history_turns is not None:
        if max_history_turns < 0:
            raise ValueError("max_history_turns must be non-negative")
        turns = turns[-max_history_turns:] if max_history_turns else []
    chosen = instructions if instructions and instructions.strip() else DEFAULT_INSTRUCTIONS
    return PromptPayload(
        instructions=chosen,
        dataset_context=context or "",
        history=tuple(turns),
        query=query,
    )


def to_contents(payload: PromptPayload) -> List[Dict[str, Any]]:
    """Map the payload to provider conversation turns, ending with the prompt.

    The provider expects the conversation to open with a user turn and to
    alternate roles.  Leading assistant turns (left over when the history
    window cut a question off) are dropped, and consecutive turns with the
    same role, such as a question whose answer failed followed by the next
    one, are merged into a single turn with several parts.
    """
    turns = [(_WIRE_ROLES[turn.role], turn.content) for turn in payload.history]
    turns.append(("user", payload.text))
    contents: List[Dict[str, Any]] = []
    for role, text in turns:
        if not contents and role != "user":
            continue
        if contents and contents[-1]["role"] == role:
            contents[-1]["parts"].append({"text": text})
        else:
            contents.append({"role": role, "parts": [{"text": text}]})
    return contents
