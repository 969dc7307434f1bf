"""Operator settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """Settings consumed by the gateway and the agent.

    Parameters
    ----------
    api_key : str
        Key for the model provider.  Empty means not configured.
    custom_instructions : str
        Replaces the default system instructions when non-empty.
    save_history : bool
        Whether the conversation should be persisted between calls.
    """

    api_key: str = ""
    custom_instructions: str = ""
    save_history: bool = True

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    def __repr__(self) -> str:
        masked = "***" if self.has_api_key else "''"
        return (
            f"Settings(api_key={masked}, custom_instructions={self.custom_instructions!r}, "
            f"save_history={self.save_history})"
        )

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from ``GEMINI_API_KEY`` (or ``GOOGLE_API_KEY``),
        ``SHEET_ANALYST_INSTRUCTIONS`` and ``SHEET_ANALYST_SAVE_HISTORY``."""
        api_key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY") or ""
        save = os.getenv("SHEET_ANALYST_SAVE_HISTORY", "true").strip().lower()
        return cls(
            api_key=api_key,
            custom_instructions=os.getenv("SHEET_ANALYST_INSTRUCTIONS", ""),
            save_history=save not in _FALSE_VALUES,
        )
