"""
listing_backend/routes_auth.py

Registration, login and "who am I" endpoints.

Tokens carry only {sub, role}; everything else is read from the store on
each request.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.engine import Connection

from listing_backend import store
from listing_backend.auth_context import require_principal
from listing_backend.config import IS_DEV
from listing_backend.db import get_conn
from listing_backend.errors import Conflict, Forbidden, NotFound, Unauthenticated
from listing_backend.models import Principal, UserRole
from listing_backend.passwords import hash_password, verify_password
from listing_backend.schemas import AuthResponse, LoginRequest, MeResponse, RegisterRequest
from listing_backend.tokens import token_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/auth",
    tags=["auth"],
)


def user_payload(conn: Connection, user: Dict[str, Any]) -> Dict[str, Any]:
    """Public view of a user row, with the broker profile attached for brokers."""
    payload = {key: value for key, value in user.items() if key != "password_hash"}
    if user["role"] == UserRole.broker.value:
        profile = store.get_broker_by_user(conn, user["id"])
        payload["broker_profile"] = profile.model_dump() if profile else None
    return payload


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(req: RegisterRequest, conn: Connection = Depends(get_conn)):
    """
    Create a customer or broker account and return a token.

    A broker registration also creates the broker profile, in the pending
    state, inside the same transaction.

    Raises:
        Conflict(409): email or phone already registered
    """
    if store.get_user_by_email(conn, req.email):
        raise Conflict("User already exists with this email", field="email")
    if req.phone and store.get_user_by_phone(conn, req.phone):
        raise Conflict("User already exists with this phone number", field="phone")

    user = store.create_user(
        conn,
        name=req.name,
        email=req.email,
        phone=req.phone,
        password_hash=hash_password(req.password),
        role=req.role,
    )
    if req.role == UserRole.broker:
        store.create_broker_profile(conn, user["id"])

    logger.info("[AUTH] Registered user %s as %s", user["id"], req.role.value)
    return {
        "message": "User registered successfully",
        "token": token_service.issue(user["id"], req.role.value),
        "user": user_payload(conn, user),
    }


@router.post("/login", response_model=AuthResponse)
def login(req: LoginRequest, conn: Connection = Depends(get_conn)):
    user = store.get_user_by_email(conn, req.email)
    if not user or not verify_password(req.password, user["password_hash"]):
        if IS_DEV:
            logger.info("[AUTH] Failed login for %s", req.email)
        raise Unauthenticated("Invalid credentials")

    if not user["is_active"]:
        raise Forbidden("Your account has been deactivated")

    store.touch_last_login(conn, user["id"])
    user = store.get_user_by_id(conn, user["id"])

    logger.info("[AUTH] Login ok for user %s", user["id"])
    return {
        "message": "Login successful",
        "token": token_service.issue(user["id"], user["role"]),
        "user": user_payload(conn, user),
    }


@router.get("/me", response_model=MeResponse)
def me(principal: Principal = Depends(require_principal), conn: Connection = Depends(get_conn)):
    user = store.get_user_by_id(conn, principal.subject_id)
    if not user:
        raise NotFound("User not found")
    return {"user": user_payload(conn, user)}


def ensure_admin(conn: Connection, email: str, password: str) -> None:
    """Create the bootstrap admin account if it does not exist yet."""
    if store.get_user_by_email(conn, email):
        return
    user = store.create_user(
        conn,
        name="Administrator",
        email=email,
        password_hash=hash_password(password),
        role=UserRole.admin,
    )
    logger.info("[AUTH] Bootstrap admin created: %s", user["id"])
