"""Tests for conversation history."""

import pytest

from vibecode.conversation import ConversationManager, ConversationTurn


class TestConversationManager:
    """Append-only history and transcript rendering."""

    def test_starts_empty(self):
        conversation = ConversationManager()
        assert len(conversation) == 0
        assert conversation.transcript() == ""

    def test_add_message_returns_turn(self):
        turn = ConversationManager().add_message("user", "hi")
        assert turn == ConversationTurn(role="user", content="hi")

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            ConversationManager().add_message("system", "nope")

    def test_transcript(self):
        conversation = ConversationManager()
        conversation.add_message("user", "make a script")
        conversation.add_message("assistant", "done")
        assert conversation.transcript() == "USER: make a script\nASSISTANT: done"

    def test_turns_snapshot_is_immutable(self):
        conversation = ConversationManager()
        conversation.add_message("user", "hi")
        snapshot = conversation.turns
        conversation.add_message("assistant", "hello")
        assert len(snapshot) == 1
        assert len(conversation.turns) == 2
