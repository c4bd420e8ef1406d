"""
listing_backend/routes_messages.py

Direct messages between users. Every route requires authentication and
only ever touches messages the caller sent or received.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Path
from sqlalchemy.engine import Connection

from listing_backend import store
from listing_backend.auth_context import require_principal
from listing_backend.conversations import aggregate_conversations, counterpart_of
from listing_backend.db import get_conn
from listing_backend.errors import BadRequest, NotFound
from listing_backend.models import Principal
from listing_backend.schemas import (
    ConversationListResponse,
    MarkedReadResponse,
    MessageCreateRequest,
    MessageEnvelope,
    MessageListResponse,
    SuccessResponse,
    UnreadCountResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/messages",
    tags=["messages"],
)


@router.post("", response_model=MessageEnvelope, status_code=201)
def send_message(
    req: MessageCreateRequest,
    principal: Principal = Depends(require_principal),
    conn: Connection = Depends(get_conn),
):
    receiver_id = req.receiver_id or req.recipient_id
    text_body = req.message.strip()
    if not receiver_id or not text_body:
        raise BadRequest("Please provide receiver and message")
    if receiver_id == principal.subject_id:
        raise BadRequest("You cannot send a message to yourself")
    if store.get_user_by_id(conn, receiver_id) is None:
        raise NotFound("Receiver not found")
    if req.property_id and store.get_listing(conn, req.property_id) is None:
        raise NotFound("Property not found")

    message = store.insert_message(
        conn,
        sender_id=principal.subject_id,
        receiver_id=receiver_id,
        message=text_body,
        subject=req.subject,
        property_id=req.property_id,
    )
    logger.info("[MESSAGES] %s -> %s (%s)", principal.subject_id, receiver_id, message.id)
    return {"message": "Message sent successfully", "data": message.model_dump()}


@router.get("/conversations", response_model=ConversationListResponse)
def conversations(principal: Principal = Depends(require_principal), conn: Connection = Depends(get_conn)):
    """One summary per counterpart, most recently active first."""
    messages = store.list_messages_for_user(conn, principal.subject_id)
    people = store.get_people(conn, (counterpart_of(m, principal.subject_id) for m in messages))
    summaries = aggregate_conversations(messages, principal.subject_id, people)
    return {"conversations": [summary.model_dump() for summary in summaries]}


@router.get("/unread-count", response_model=UnreadCountResponse)
def unread_count(principal: Principal = Depends(require_principal), conn: Connection = Depends(get_conn)):
    return {"unread_count": store.count_unread(conn, principal.subject_id)}


@router.get("/user/{other_id}", response_model=MessageListResponse)
def thread(
    other_id: str = Path(..., min_length=1),
    principal: Principal = Depends(require_principal),
    conn: Connection = Depends(get_conn),
):
    """Full thread with `other_id`, oldest first. Marks their messages to the caller as read."""
    marked = store.mark_thread_read(conn, receiver_id=principal.subject_id, sender_id=other_id)
    if marked:
        logger.debug("[MESSAGES] Marked %d read for %s", marked, principal.subject_id)
    messages = store.list_thread(conn, principal.subject_id, other_id)
    return {"messages": [message.model_dump() for message in messages]}


@router.get("/property/{property_id}", response_model=MessageListResponse)
def property_messages(
    property_id: str = Path(..., min_length=1),
    principal: Principal = Depends(require_principal),
    conn: Connection = Depends(get_conn),
):
    """The caller's messages about one listing, oldest first."""
    if store.get_listing(conn, property_id) is None:
        raise NotFound("Property not found")
    messages = store.list_messages_for_property(conn, property_id, principal.subject_id)
    return {"messages": [message.model_dump() for message in messages]}


@router.patch("/read-all/{sender_id}", response_model=MarkedReadResponse)
def mark_all_read(
    sender_id: str = Path(..., min_length=1),
    principal: Principal = Depends(require_principal),
    conn: Connection = Depends(get_conn),
):
    """Mark everything `sender_id` sent the caller as read."""
    marked = store.mark_thread_read(conn, receiver_id=principal.subject_id, sender_id=sender_id)
    return {"message": "All messages marked as read", "marked_count": marked}


@router.patch("/{message_id}/read", response_model=MessageEnvelope)
def mark_read(
    message_id: str = Path(..., min_length=1),
    principal: Principal = Depends(require_principal),
    conn: Connection = Depends(get_conn),
):
    message = store.get_message(conn, message_id)
    # Only the receiver can mark a message read; others cannot learn it exists
    if message is None or message.receiver_id != principal.subject_id:
        raise NotFound("Message not found")
    store.mark_message_read(conn, message_id)
    return {"data": message.model_copy(update={"is_read": True}).model_dump()}


@router.delete("/{message_id}", response_model=SuccessResponse)
def delete_message(
    message_id: str = Path(..., min_length=1),
    principal: Principal = Depends(require_principal),
    conn: Connection = Depends(get_conn),
):
    message = store.get_message(conn, message_id)
    if message is None or principal.subject_id not in (message.sender_id, message.receiver_id):
        raise NotFound("Message not found")
    store.delete_message(conn, message_id)
    return {"message": "Message deleted successfully"}
