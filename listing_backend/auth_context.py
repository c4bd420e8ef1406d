"""
listing_backend/auth_context.py

Access Guard: resolves the request's Principal from its bearer token and
enforces role and broker-verification admission.

Contains:
- resolve_principal / check_role / check_broker_verified: plain functions
  holding the decision logic (no FastAPI, easy to test)
- require_principal, optional_principal, require_role, require_verified_broker,
  require_listing_editor: FastAPI dependencies applied declaratively per route

Guards are read-only. The only side effect is attaching the Principal (and,
for the verification gate, the loaded BrokerProfile) to request.state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.engine import Connection

from listing_backend import store
from listing_backend.config import IS_DEV
from listing_backend.db import get_conn
from listing_backend.errors import Forbidden, NotFound, Unauthenticated
from listing_backend.models import BrokerProfile, Principal, UserRole, VerificationStatus
from listing_backend.tokens import TokenService, token_service

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


# ---------------------------------------------------------
# Decision logic
# ---------------------------------------------------------
def resolve_principal(authorization: Optional[str], tokens: TokenService = token_service) -> Principal:
    """
    Turn a raw Authorization header into a Principal.

    Raises:
        Unauthenticated: header missing or not "Bearer <token>", or the token
            is expired, tampered or carries an unknown role
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise Unauthenticated("Not authorized, no token")

    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise Unauthenticated("Not authorized, no token")

    claims = tokens.verify(token)
    try:
        role = UserRole(claims["role"])
    except ValueError:
        logger.warning("[AUTH] Token carries unknown role: %r", claims["role"])
        raise Unauthenticated("Invalid token payload")

    return Principal(subject_id=claims["sub"], role=role)


def check_role(principal: Principal, allowed: Iterable[UserRole]) -> Principal:
    allowed = set(allowed)
    if principal.role not in allowed:
        if IS_DEV:
            logger.info("[AUTHZ] Role denied: user=%s role=%s allowed=%s",
                        principal.subject_id, principal.role.value, sorted(r.value for r in allowed))
        raise Forbidden(f"User role '{principal.role.value}' is not authorized to access this route")
    return principal


def check_broker_verified(principal: Principal, profile: Optional[BrokerProfile]) -> BrokerProfile:
    """
    Admit only brokers whose profile is verified.

    Raises:
        Forbidden: caller is not a broker, or the profile is pending/rejected
            (body carries verificationStatus and any rejectionReason)
        NotFound: broker never completed registration
    """
    if not principal.is_broker:
        raise Forbidden("Access denied. Broker role required.")

    if profile is None:
        raise NotFound("Broker profile not found. Please complete your registration.")

    status = profile.verification_status
    if status == VerificationStatus.verified:
        return profile

    if IS_DEV:
        logger.info("[AUTHZ] Unverified broker blocked: user=%s status=%s", principal.subject_id, status.value)

    if status == VerificationStatus.rejected:
        raise Forbidden(
            "Your broker verification was rejected.",
            verificationStatus=status.value,
            rejectionReason=profile.rejection_reason,
        )
    raise Forbidden(
        "Your broker account is under verification. Please wait for admin approval.",
        verificationStatus=status.value,
    )


# ---------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------
@dataclass(frozen=True)
class BrokerContext:
    """Principal plus the caller's verified broker profile (None for admins)."""
    principal: Principal
    broker: Optional[BrokerProfile]


def require_principal(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> Principal:
    """
    Auth dependency for protected routes.

    Usage:
        @router.get("/protected")
        def protected_route(principal: Principal = Depends(require_principal)):
            ...
    """
    principal = resolve_principal(authorization)
    request.state.principal = principal
    return principal


def optional_principal(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> Optional[Principal]:
    """Public routes: resolve a principal when a token is sent, else None."""
    if authorization is None:
        return None
    return require_principal(request, authorization)


def require_role(*roles: UserRole) -> Callable:
    """
    Dependency factory for role admission.

    Usage in routes:
        @router.get("/admin/stats", dependencies=[Depends(require_role(UserRole.admin))])
    """
    allowed = frozenset(roles)

    def _check_role(principal: Principal = Depends(require_principal)) -> Principal:
        return check_role(principal, allowed)

    return _check_role


def require_verified_broker(
    request: Request,
    principal: Principal = Depends(require_role(UserRole.broker)),
    conn: Connection = Depends(get_conn),
) -> BrokerContext:
    """Role admission first, then the verification gate."""
    profile = check_broker_verified(principal, store.get_broker_by_user(conn, principal.subject_id))
    request.state.broker = profile
    return BrokerContext(principal=principal, broker=profile)


def require_listing_editor(
    request: Request,
    principal: Principal = Depends(require_role(UserRole.broker, UserRole.admin)),
    conn: Connection = Depends(get_conn),
) -> BrokerContext:
    """Brokers must pass the verification gate; admins skip it."""
    if principal.is_admin:
        return BrokerContext(principal=principal, broker=None)
    profile = check_broker_verified(principal, store.get_broker_by_user(conn, principal.subject_id))
    request.state.broker = profile
    return BrokerContext(principal=principal, broker=profile)
