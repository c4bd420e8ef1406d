"""
listing_backend/routes_brokers.py

Broker-facing endpoints: public directory, own profile, dashboard stats
and profile completion (which sends the profile back for review).
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Path
from sqlalchemy.engine import Connection

from listing_backend import store, verification
from listing_backend.auth_context import require_role
from listing_backend.db import get_conn
from listing_backend.errors import NotFound
from listing_backend.models import BrokerProfile, Principal, UserRole, VerificationStatus
from listing_backend.schemas import (
    BrokerProfileUpdateRequest,
    BrokerPublicListResponse,
    BrokerPublicResponse,
    BrokerResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/brokers",
    tags=["brokers"],
)


def _public_view(profile: BrokerProfile, user: Dict[str, Any]) -> Dict[str, Any]:
    view = profile.model_dump(exclude={"license_document", "id_proof", "rejection_reason"})
    view["name"] = user.get("name")
    return view


def _own_profile(conn: Connection, principal: Principal) -> BrokerProfile:
    profile = store.get_broker_by_user(conn, principal.subject_id)
    if profile is None:
        raise NotFound("Broker profile not found")
    return profile


@router.get("", response_model=BrokerPublicListResponse)
def list_brokers(conn: Connection = Depends(get_conn)):
    """Public directory: verified brokers only."""
    brokers = store.list_brokers(conn, status=VerificationStatus.verified.value)
    return {"count": len(brokers), "data": [_public_view(profile, user) for profile, user in brokers]}


@router.get("/me", response_model=BrokerResponse)
def my_profile(
    principal: Principal = Depends(require_role(UserRole.broker)),
    conn: Connection = Depends(get_conn),
):
    """Own profile including verificationStatus and any rejectionReason."""
    return {"data": _own_profile(conn, principal).model_dump()}


@router.get("/stats")
def my_stats(
    principal: Principal = Depends(require_role(UserRole.broker)),
    conn: Connection = Depends(get_conn),
):
    profile = _own_profile(conn, principal)
    stats = store.broker_listing_stats(conn, profile.id)
    return {
        "success": True,
        "data": {
            "totalProperties": stats["total_properties"],
            "activeListings": stats["active_listings"],
            "totalViews": stats["total_views"],
            "inquiries": stats["inquiries"],
        },
    }


@router.put("/complete-profile", response_model=BrokerResponse)
def complete_profile(
    req: BrokerProfileUpdateRequest,
    principal: Principal = Depends(require_role(UserRole.broker)),
    conn: Connection = Depends(get_conn),
):
    """
    Update the caller's broker profile.

    Any edit moves the profile back to pending and clears the rejection
    reason; an admin must verify it again before listings can be changed.

    Raises:
        NotFound(404): caller has no broker profile
        Conflict(409): license number already used by another broker
    """
    profile = _own_profile(conn, principal)
    transition = verification.edit_profile(profile, principal, req.model_dump(exclude_unset=True))
    store.save_broker_changes(conn, profile.id, transition.changes)

    logger.info("[VERIFY] Broker %s edited profile: %s -> %s",
                profile.id, transition.previous.value, transition.status.value)
    return {
        "message": "Profile submitted for verification",
        "data": transition.profile.model_dump(),
    }


@router.get("/{broker_id}", response_model=BrokerPublicResponse)
def get_broker(broker_id: str = Path(..., min_length=1), conn: Connection = Depends(get_conn)):
    profile = store.get_broker(conn, broker_id)
    if profile is None or profile.verification_status != VerificationStatus.verified:
        raise NotFound("Broker not found")
    user = store.get_user_by_id(conn, profile.user_id) or {}
    return {"data": _public_view(profile, user)}
