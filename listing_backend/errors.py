"""
listing_backend/errors.py

Error taxonomy shared by every layer of the backend.

Pure modules (search compiler, verification state machine, conversation
aggregator, token service) raise these and never import FastAPI. main.py
renders them as {"success": false, "message": ..., **extra}.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class MarketplaceError(Exception):
    """Base exception for the listing marketplace backend."""

    status_code = 500
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra: Dict[str, Any] = extra
        super().__init__(self.message)

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": False, "message": self.message}
        body.update(self.extra)
        return body


class BadRequest(MarketplaceError):
    """Malformed filter value, missing rejection reason, invalid payload."""
    status_code = 400
    default_message = "Bad request"


class Unauthenticated(MarketplaceError):
    """Missing, malformed, expired or tampered bearer token."""
    status_code = 401
    default_message = "Not authorized"


class Forbidden(MarketplaceError):
    """Role mismatch, unverified broker or disallowed state transition."""
    status_code = 403
    default_message = "Access denied"


class NotFound(MarketplaceError):
    status_code = 404
    default_message = "Not found"


class Conflict(MarketplaceError):
    """Duplicate unique value (email, phone, license) or duplicate pending visit."""
    status_code = 409
    default_message = "Duplicate field value entered"


class ServerError(MarketplaceError):
    """Storage-layer failure surfaced to the caller without internals."""
    status_code = 500
    default_message = "Server error"
