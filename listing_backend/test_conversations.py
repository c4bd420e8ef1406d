"""
listing_backend/test_conversations.py

Tests for conversation aggregation over a newest-first message list.
"""

from datetime import datetime

from listing_backend.conversations import aggregate_conversations
from listing_backend.models import Message


def msg(id, sender, receiver, hour, is_read=False, text=None):
    return Message(
        id=id,
        sender_id=sender,
        receiver_id=receiver,
        message=text or f"message {id}",
        is_read=is_read,
        created_at=datetime(2024, 1, 1, hour),
    )


class TestAggregation:
    def test_three_message_thread_seen_by_b(self):
        """A->B@t3 unread, B->A@t2 read, A->B@t1 unread, viewed by B."""
        messages = [
            msg("m3", "A", "B", 3, text="see you at five"),
            msg("m2", "B", "A", 2, is_read=True),
            msg("m1", "A", "B", 1),
        ]
        conversations = aggregate_conversations(messages, "B")

        assert len(conversations) == 1
        conversation = conversations[0]
        assert conversation.counterpart_id == "A"
        assert conversation.last_message == "see you at five"
        assert conversation.last_message_time == datetime(2024, 1, 1, 3)
        # B received m3 and m1; both unread
        assert conversation.unread_count == 2

    def test_same_thread_seen_by_a(self):
        messages = [
            msg("m3", "A", "B", 3),
            msg("m2", "B", "A", 2, is_read=True),
            msg("m1", "A", "B", 1),
        ]
        conversation = aggregate_conversations(messages, "A")[0]
        assert conversation.counterpart_id == "B"
        assert conversation.unread_count == 0

    def test_most_recent_conversation_first(self):
        messages = [
            msg("m4", "C", "A", 4),
            msg("m3", "A", "B", 3),
            msg("m2", "C", "A", 2),
            msg("m1", "D", "A", 1, is_read=True),
        ]
        conversations = aggregate_conversations(messages, "A")
        assert [c.counterpart_id for c in conversations] == ["C", "B", "D"]
        assert [c.unread_count for c in conversations] == [2, 0, 0]

    def test_counterpart_details(self):
        people = {"B": {"name": "Bea", "email": "bea@example.com", "role": "broker"}}
        conversation = aggregate_conversations([msg("m1", "A", "B", 1)], "A", people)[0]
        assert conversation.counterpart_name == "Bea"
        assert conversation.counterpart_role == "broker"

    def test_empty_input(self):
        assert aggregate_conversations([], "A") == []

    def test_inputs_not_mutated(self):
        messages = [msg("m1", "A", "B", 1)]
        before = [m.model_dump() for m in messages]
        aggregate_conversations(messages, "B")
        assert [m.model_dump() for m in messages] == before
