"""
listing_backend/routes_visits.py

Visit requests: customers see their own, verified brokers see and answer
the requests for their listings.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Path
from sqlalchemy.engine import Connection

from listing_backend import store
from listing_backend.auth_context import check_broker_verified, require_principal
from listing_backend.db import get_conn
from listing_backend.errors import BadRequest, Forbidden, NotFound
from listing_backend.models import Principal, UserRole, VisitStatus
from listing_backend.schemas import VisitEnvelope, VisitListResponse, VisitStatusRequest

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/visits",
    tags=["visits"],
)

# Statuses the listing's broker may set; the requester may only cancel
BROKER_DECISIONS = frozenset({VisitStatus.confirmed, VisitStatus.rejected, VisitStatus.completed})


@router.get("/mine", response_model=VisitListResponse)
def my_visits(principal: Principal = Depends(require_principal), conn: Connection = Depends(get_conn)):
    visits = store.list_visits_for_user(conn, principal.subject_id)
    return {"count": len(visits), "data": visits}


@router.get("/incoming", response_model=VisitListResponse)
def incoming_visits(principal: Principal = Depends(require_principal), conn: Connection = Depends(get_conn)):
    profile = check_broker_verified(principal, store.get_broker_by_user(conn, principal.subject_id))
    visits = store.list_visits_for_broker(conn, profile.id)
    return {"count": len(visits), "data": visits}


@router.put("/{visit_id}/status", response_model=VisitEnvelope)
def update_visit_status(
    req: VisitStatusRequest,
    visit_id: str = Path(..., min_length=1),
    principal: Principal = Depends(require_principal),
    conn: Connection = Depends(get_conn),
):
    """
    Move a visit request along.

    - The listing's (verified) broker may confirm, reject or complete it
    - The requester may cancel it
    - Admins may set any status

    Raises:
        NotFound(404): visit does not exist or is not visible to the caller
        Forbidden(403): caller may not set this status
        BadRequest(400): status is "pending"
    """
    visit = store.get_visit(conn, visit_id)
    if visit is None:
        raise NotFound("Visit request not found")
    if req.status == VisitStatus.pending:
        raise BadRequest("A visit request cannot be moved back to pending")

    if principal.role == UserRole.admin:
        pass
    elif principal.subject_id == visit["user_id"]:
        if req.status != VisitStatus.cancelled:
            raise Forbidden("You can only cancel your own visit request")
    elif principal.role == UserRole.broker:
        profile = check_broker_verified(principal, store.get_broker_by_user(conn, principal.subject_id))
        if visit["broker_id"] != profile.id:
            raise NotFound("Visit request not found")
        if req.status not in BROKER_DECISIONS:
            raise Forbidden("Brokers can confirm, reject or complete a visit request")
    else:
        raise NotFound("Visit request not found")

    store.update_visit_status(conn, visit_id, req.status.value)
    logger.info("[LISTINGS] Visit %s -> %s by %s", visit_id, req.status.value, principal.subject_id)
    return {"message": "Visit request updated", "data": store.get_visit(conn, visit_id)}
