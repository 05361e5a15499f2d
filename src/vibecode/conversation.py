"""Conversation management for LLM context."""

from __future__ import annotations

from dataclasses import dataclass

ROLES = ("user", "assistant")


@dataclass(frozen=True)
class ConversationTurn:
    """One message in the session transcript."""

    role: str
    content: str


class ConversationManager:
    """Append-only message history for one session."""

    def __init__(self) -> None:
        self._turns: list[ConversationTurn] = []

    def add_message(self, role: str, content: str) -> ConversationTurn:
        """Append a turn to the history.

        Args:
            role: "user" or "assistant"
            content: The message content

        Raises:
            ValueError: If role is not a known conversation role.
        """
        if role not in ROLES:
            raise ValueError(f"Unknown conversation role: {role!r}")
        turn = ConversationTurn(role=role, content=content)
        self._turns.append(turn)
        return turn

    @property
    def turns(self) -> tuple[ConversationTurn, ...]:
        """Snapshot of all turns in order."""
        return tuple(self._turns)

    def transcript(self) -> str:
        """Render the history as ``ROLE: content`` lines for the context prompt."""
        return "\n".join(f"{t.role.upper()}: {t.content}" for t in self._turns)

    def __len__(self) -> int:
        return len(self._turns)
