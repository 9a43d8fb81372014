"""Conversation turns and the bounded history kept by the pipeline."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

Role = Literal["system", "user", "assistant"]


class ConversationTurn(BaseModel):
    role: Role
    content: str


class ConversationHistory:
    """Ordered turns with the system turn pinned at index 0.

    Holds the system turn plus at most ``max_turns`` later turns. Older turns
    are dropped, never summarized.
    """

    def __init__(self, system_prompt: str, max_turns: int = 20) -> None:
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self.max_turns = max_turns
        self._turns: list[ConversationTurn] = [
            ConversationTurn(role="system", content=system_prompt)
        ]

    def __len__(self) -> int:
        return len(self._turns)

    @property
    def system(self) -> ConversationTurn:
        return self._turns[0]

    def append(self, role: Role, content: str) -> None:
        if role == "system":
            raise ValueError("the system turn is fixed; append user or assistant turns")
        self._turns.append(ConversationTurn(role=role, content=content))

    def trim(self) -> int:
        """Drop the oldest non-system turns beyond the cap. Returns how many were dropped."""
        overflow = len(self._turns) - 1 - self.max_turns
        if overflow <= 0:
            return 0
        self._turns = [self._turns[0], *self._turns[1 + overflow:]]
        return overflow

    def clear(self) -> None:
        self._turns = [self._turns[0]]

    def turns(self) -> list[ConversationTurn]:
        """A copy of the turns, safe to hand to the model client."""
        return list(self._turns)

    def as_messages(self) -> list[dict[str, str]]:
        return [turn.model_dump() for turn in self._turns]
