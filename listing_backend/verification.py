"""
listing_backend/verification.py

Broker verification lifecycle: pending -> verified | rejected, and back to
pending whenever the broker edits their profile.

Transitions are explicit functions that return the next profile plus the
column changes the caller must persist. Nothing here touches storage, so a
"save" elsewhere can never silently move a profile between states.

Pure Python logic - no FastAPI imports, no database access.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from listing_backend.errors import BadRequest, Forbidden
from listing_backend.models import BrokerProfile, Principal, VerificationStatus


class VerificationEvent(str, Enum):
    ADMIN_VERIFIES = "admin_verifies"
    ADMIN_REJECTS = "admin_rejects"
    BROKER_EDITS = "broker_edits"


# (from, event) -> to. Anything absent is a disallowed transition.
TRANSITIONS: Dict[tuple, VerificationStatus] = {
    (VerificationStatus.pending, VerificationEvent.ADMIN_VERIFIES): VerificationStatus.verified,
    (VerificationStatus.rejected, VerificationEvent.ADMIN_VERIFIES): VerificationStatus.verified,
    (VerificationStatus.pending, VerificationEvent.ADMIN_REJECTS): VerificationStatus.rejected,
    (VerificationStatus.verified, VerificationEvent.ADMIN_REJECTS): VerificationStatus.rejected,
    (VerificationStatus.pending, VerificationEvent.BROKER_EDITS): VerificationStatus.pending,
    (VerificationStatus.verified, VerificationEvent.BROKER_EDITS): VerificationStatus.pending,
    (VerificationStatus.rejected, VerificationEvent.BROKER_EDITS): VerificationStatus.pending,
}

# Profile fields a broker may change through a profile edit
EDITABLE_FIELDS = frozenset({
    "company_name",
    "license_number",
    "years_of_experience",
    "specialization",
    "address",
    "city",
    "state",
    "pincode",
    "serving_cities",
    "about",
    "profile_image",
    "license_document",
    "id_proof",
})


@dataclass(frozen=True)
class Transition:
    """Result of a state-machine step: the new profile and what to persist."""
    previous: VerificationStatus
    profile: BrokerProfile
    changes: Dict[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> VerificationStatus:
        return self.profile.verification_status


def next_status(current: VerificationStatus, event: VerificationEvent) -> VerificationStatus:
    """
    Look up the target state for an event.

    Raises:
        Forbidden: the event is not allowed from the current state
    """
    target = TRANSITIONS.get((current, event))
    if target is None:
        raise Forbidden(
            f"Cannot apply '{event.value}' to a broker profile that is '{current.value}'",
            verificationStatus=current.value,
        )
    return target


def _require_admin(actor: Principal) -> None:
    if not actor.is_admin:
        raise Forbidden("Access denied. Admin role required.")


def _apply(profile: BrokerProfile, event: VerificationEvent, changes: Dict[str, Any]) -> Transition:
    target = next_status(profile.verification_status, event)
    changes = dict(changes, verification_status=target)
    return Transition(
        previous=profile.verification_status,
        profile=profile.model_copy(update=changes),
        changes=changes,
    )


def verify(profile: BrokerProfile, actor: Principal, *, now: Optional[datetime] = None) -> Transition:
    """Admin approves a pending or rejected broker."""
    _require_admin(actor)
    timestamp = now or datetime.utcnow()
    return _apply(
        profile,
        VerificationEvent.ADMIN_VERIFIES,
        {
            "verified_at": timestamp,
            "verified_by": actor.subject_id,
            "rejection_reason": None,
            "updated_at": timestamp,
        },
    )


def reject(profile: BrokerProfile, actor: Principal, reason: Optional[str], *, now: Optional[datetime] = None) -> Transition:
    """
    Admin rejects a pending or verified broker.

    Raises:
        Forbidden: actor is not an admin, or profile is already rejected
        BadRequest: reason is missing or blank
    """
    _require_admin(actor)
    reason = (reason or "").strip()
    if not reason:
        raise BadRequest("Rejection reason is required when rejecting a broker")
    return _apply(
        profile,
        VerificationEvent.ADMIN_REJECTS,
        {"rejection_reason": reason, "updated_at": now or datetime.utcnow()},
    )


def edit_profile(
    profile: BrokerProfile,
    actor: Principal,
    edits: Mapping[str, Any],
    *,
    now: Optional[datetime] = None,
) -> Transition:
    """
    Broker edits their own profile; any edit sends the profile back for review.

    Unknown or protected fields in `edits` are dropped.
    """
    if actor.subject_id != profile.user_id:
        raise Forbidden("Only the profile owner can edit this broker profile")

    changes = {key: value for key, value in edits.items() if key in EDITABLE_FIELDS}
    changes["rejection_reason"] = None
    changes["updated_at"] = now or datetime.utcnow()
    return _apply(profile, VerificationEvent.BROKER_EDITS, changes)


def review(profile: BrokerProfile, actor: Principal, decision: str, reason: Optional[str] = None) -> Transition:
    """Dispatch an admin review decision ("verified" or "rejected")."""
    if decision == VerificationStatus.verified.value:
        return verify(profile, actor)
    if decision == VerificationStatus.rejected.value:
        return reject(profile, actor, reason)
    raise BadRequest('Invalid verification status. Must be "verified" or "rejected"')
