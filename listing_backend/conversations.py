"""
listing_backend/conversations.py

Conversation Aggregator: groups a user's messages by counterpart.

Input must already be ordered newest first; the first message seen for a
counterpart seeds lastMessage/lastMessageTime and output keeps first-seen
order, so the most recently active conversation comes first.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from listing_backend.models import Conversation, Message


def counterpart_of(message: Message, viewer_id: str) -> str:
    return message.receiver_id if message.sender_id == viewer_id else message.sender_id


def aggregate_conversations(
    messages: Sequence[Message],
    viewer_id: str,
    people: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> List[Conversation]:
    """
    Build one Conversation per distinct counterpart of `viewer_id`.

    unread_count counts every message addressed to the viewer that is still
    unread, wherever it sits in the thread. Inputs are not mutated.

    Args:
        messages: the viewer's messages, newest first
        viewer_id: id of the requesting user
        people: optional user id -> {"name", "email", "role"} lookup
    """
    people = people or {}
    summaries: Dict[str, Dict[str, Any]] = {}

    for message in messages:
        counterpart_id = counterpart_of(message, viewer_id)

        summary = summaries.get(counterpart_id)
        if summary is None:
            person = people.get(counterpart_id, {})
            summary = {
                "counterpart_id": counterpart_id,
                "counterpart_name": person.get("name"),
                "counterpart_email": person.get("email"),
                "counterpart_role": person.get("role"),
                "last_message": message.message,
                "last_message_time": message.created_at,
                "unread_count": 0,
            }
            summaries[counterpart_id] = summary

        if message.receiver_id == viewer_id and not message.is_read:
            summary["unread_count"] += 1

    # dicts keep insertion order: first-seen counterpart first
    return [Conversation(**summary) for summary in summaries.values()]
