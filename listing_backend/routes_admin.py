"""
listing_backend/routes_admin.py

Admin console: broker review queue, verification decisions, featuring,
removal and counts.
Every route requires role admin.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.engine import Connection

from listing_backend import store, verification
from listing_backend.auth_context import require_role
from listing_backend.db import get_conn
from listing_backend.errors import BadRequest, NotFound
from listing_backend.models import Principal, UserRole, VerificationStatus
from listing_backend.schemas import (
    AdminStatsResponse,
    BrokerAdminListResponse,
    BrokerAdminResponse,
    FeaturedRequest,
    SuccessResponse,
    VerifyBrokerRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_role(UserRole.admin))],
)


def _admin_view(conn: Connection, broker_id: str):
    profile = store.get_broker(conn, broker_id)
    if profile is None:
        raise NotFound("Broker not found")
    user = store.get_user_by_id(conn, profile.user_id) or {}
    view = profile.model_dump()
    view["user"] = {"name": user.get("name"), "email": user.get("email"), "phone": user.get("phone")}
    return view


@router.get("/brokers", response_model=BrokerAdminListResponse)
def list_brokers(
    status: Optional[str] = Query(None, description="pending | verified | rejected | all"),
    conn: Connection = Depends(get_conn),
):
    """Brokers awaiting review come first."""
    status = (status or "").strip() or None
    if status == "all":
        status = None
    if status is not None and status not in {s.value for s in VerificationStatus}:
        raise BadRequest(f"Invalid status filter: {status}", field="status")

    brokers = store.list_brokers(conn, status=status)
    data = []
    for profile, user in brokers:
        view = profile.model_dump()
        view["user"] = user
        data.append(view)
    return {"count": len(data), "data": data}


@router.get("/brokers/{broker_id}", response_model=BrokerAdminResponse)
def get_broker(broker_id: str = Path(..., min_length=1), conn: Connection = Depends(get_conn)):
    return {"data": _admin_view(conn, broker_id)}


@router.put("/brokers/{broker_id}/verify", response_model=BrokerAdminResponse)
def verify_broker(
    req: VerifyBrokerRequest,
    broker_id: str = Path(..., min_length=1),
    principal: Principal = Depends(require_role(UserRole.admin)),
    conn: Connection = Depends(get_conn),
):
    """
    Verify or reject a broker.

    Body: {"verificationStatus": "verified" | "rejected", "rejectionReason"?}

    Raises:
        BadRequest(400): unknown decision, or rejection without a reason
        Forbidden(403): transition not allowed from the current state
        NotFound(404): broker does not exist
    """
    profile = store.get_broker(conn, broker_id)
    if profile is None:
        raise NotFound("Broker not found")

    transition = verification.review(profile, principal, req.verification_status, req.rejection_reason)
    store.save_broker_changes(conn, broker_id, transition.changes)

    logger.info("[VERIFY] Broker %s: %s -> %s by admin %s",
                broker_id, transition.previous.value, transition.status.value, principal.subject_id)
    return {
        "message": f"Broker {transition.status.value} successfully",
        "data": _admin_view(conn, broker_id),
    }


@router.put("/brokers/{broker_id}/featured", response_model=BrokerAdminResponse)
def set_broker_featured(
    req: FeaturedRequest,
    broker_id: str = Path(..., min_length=1),
    conn: Connection = Depends(get_conn),
):
    """Featured brokers are listed first in the public directory."""
    if store.get_broker(conn, broker_id) is None:
        raise NotFound("Broker not found")
    store.save_broker_changes(conn, broker_id, {"is_featured": req.is_featured, "updated_at": store.now_iso()})
    return {
        "message": "Broker set as featured" if req.is_featured else "Broker removed from featured",
        "data": _admin_view(conn, broker_id),
    }


@router.delete("/brokers/{broker_id}", response_model=SuccessResponse)
def delete_broker(
    broker_id: str = Path(..., min_length=1),
    principal: Principal = Depends(require_role(UserRole.admin)),
    conn: Connection = Depends(get_conn),
):
    """
    Remove a broker profile and every listing it owns.

    The user account is kept; broker-only routes answer 404 for it afterwards.
    """
    if store.get_broker(conn, broker_id) is None:
        raise NotFound("Broker not found")
    removed = store.delete_broker(conn, broker_id)
    logger.info("[ADMIN] Broker %s deleted by admin %s (%d listings removed)",
                broker_id, principal.subject_id, removed)
    return {"message": "Broker deleted successfully"}


@router.get("/stats", response_model=AdminStatsResponse)
def stats(conn: Connection = Depends(get_conn)):
    brokers = {status.value: 0 for status in VerificationStatus}
    brokers.update(store.count_brokers_by_status(conn))
    brokers["total"] = sum(count for key, count in brokers.items() if key != "total")

    users = {role.value: 0 for role in UserRole}
    users.update(store.count_users_by_role(conn))
    users["total"] = sum(count for key, count in users.items() if key != "total")
    return {"brokers": brokers, "users": users}
