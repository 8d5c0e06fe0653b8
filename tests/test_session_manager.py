"""
Tests for session storage (in-memory mode; Redis is optional).
"""

import pytest

from clerk.models.schemas import ConversationTurn, MessageRole
from clerk.tools.session_manager import MAX_SESSION_MESSAGES, SessionManager


@pytest.fixture
def sessions():
    return SessionManager()


class TestSessionManager:
    def test_unknown_session_starts_empty(self, sessions):
        session = sessions.get_session("new")
        assert session.session_id == "new"
        assert session.messages == []
        assert session.state.pending_size_selection is None
        # not stored until saved
        assert sessions.get_session_stats()["active_sessions"] == 0

    def test_save_and_reload(self, sessions, products):
        session = sessions.get_session("s1")
        session.messages.append(ConversationTurn(role=MessageRole.USER, content="show me shoes"))
        session.state.show_products([products["2"]])
        sessions.save_session(session)

        reloaded = sessions.get_session("s1")
        assert [m.content for m in reloaded.messages] == ["show me shoes"]
        assert reloaded.state.last_shown_products[0].id == "2"

    def test_history_is_truncated(self, sessions):
        session = sessions.get_session("s1")
        for i in range(MAX_SESSION_MESSAGES + 5):
            session.messages.append(ConversationTurn(role=MessageRole.USER, content=f"message {i}"))
        sessions.save_session(session)

        history = sessions.get_history("s1")
        assert len(history) == MAX_SESSION_MESSAGES
        assert history[0].content == "message 5"
        assert [m.content for m in sessions.get_history("s1", limit=2)] == ["message 23", "message 24"]

    def test_clear_session(self, sessions):
        sessions.save_session(sessions.get_session("s1"))
        assert sessions.clear_session("s1")
        assert not sessions.clear_session("s1")

    def test_stats(self, sessions):
        session = sessions.get_session("s1")
        session.messages.append(ConversationTurn(role=MessageRole.USER, content="hi"))
        session.messages.append(ConversationTurn(role=MessageRole.ASSISTANT, content="hello!"))
        sessions.save_session(session)

        stats = sessions.get_session_stats()
        assert stats["storage_type"] == "in_memory"
        assert stats["active_sessions"] == 1
        assert stats["total_messages"] == 2

    def test_unreachable_redis_falls_back_to_memory(self):
        sessions = SessionManager("redis://localhost:1/0")
        assert not sessions.use_redis
        sessions.save_session(sessions.get_session("s1"))
        assert sessions.get_session_stats()["storage_type"] == "in_memory"
