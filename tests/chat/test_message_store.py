"""Tests for MessageStore."""

from pathlib import Path

import pytest

from vitalcoach.attachments import AttachmentRef
from vitalcoach.chat import ChatMessage, MessageStore


@pytest.fixture
def store(tmp_path: Path) -> MessageStore:
    store = MessageStore(tmp_path / "chat.db")
    store.init_db()
    yield store
    store.close()


class TestMessageStore:
    """Tests for message persistence."""

    def test_add_and_get_conversation(self, store: MessageStore):
        store.add_message(ChatMessage("c1", "user", "Hi", user_id=1))
        store.add_message(ChatMessage("c1", "assistant", "Hello!", user_id=1))
        store.add_message(ChatMessage("c2", "user", "Other", user_id=1))

        messages = store.get_conversation("c1")
        assert [m.content for m in messages] == ["Hi", "Hello!"]
        assert all(m.id is not None for m in messages)

    def test_attachments_round_trip(self, store: MessageStore):
        ref = AttachmentRef("a.png", "image/png", display_name="Lunch", file_size=10)
        store.add_message(ChatMessage("c1", "user", "Look", attachments=(ref,), user_id=1))

        assert store.get_conversation("c1")[0].attachments == (ref,)

    def test_user_history_is_oldest_first_and_limited(self, store: MessageStore):
        for i in range(5):
            store.add_message(ChatMessage(f"c{i % 2}", "user", f"m{i}", user_id=1))
        store.add_message(ChatMessage("c9", "user", "not mine", user_id=2))

        history = store.get_user_history(1, limit=3)
        assert [m.content for m in history] == ["m2", "m3", "m4"]

    def test_iter_message_attachments(self, store: MessageStore):
        store.add_message(ChatMessage("c1", "user", "no files", user_id=1))
        store.add_message(
            ChatMessage("c1", "user", "blood work", attachments=(AttachmentRef("lab.pdf", "application/pdf"),))
        )

        found = list(store.iter_message_attachments())
        assert len(found) == 1
        assert found[0].content == "blood work"
        assert found[0].attachments[0].file_name == "lab.pdf"

    def test_malformed_metadata_is_ignored(self, store: MessageStore):
        conn = store._get_connection()
        conn.execute(
            "INSERT INTO conversation_messages (conversation_id, role, content, metadata) VALUES (?, ?, ?, ?)",
            ("c1", "user", "x", '{"attachments": [{"nope": 1}, "bad"]}'),
        )
        conn.execute(
            "INSERT INTO conversation_messages (conversation_id, role, content, metadata) VALUES (?, ?, ?, ?)",
            ("c1", "user", "y", "{broken"),
        )
        conn.commit()

        messages = store.get_conversation("c1")
        assert [m.attachments for m in messages] == [(), ()]
        assert list(store.iter_message_attachments()) == []
