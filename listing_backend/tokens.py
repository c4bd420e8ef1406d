"""
listing_backend/tokens.py

Token Service: issues and verifies signed identity assertions carrying
{subjectId, role}. The signing secret is the only process-wide state; it is
read once from config and never mutated.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from listing_backend.config import ACCESS_TOKEN_DAYS, ALGORITHM, SECRET_KEY
from listing_backend.errors import Unauthenticated


class TokenService:
    """Stateless HS256 token issuer/verifier bound to one secret."""

    def __init__(self, secret: str, algorithm: str = ALGORITHM, lifetime: Optional[timedelta] = None) -> None:
        if not secret:
            raise ValueError("Token secret must not be empty")
        self._secret = secret
        self._algorithm = algorithm
        self._lifetime = lifetime or timedelta(days=ACCESS_TOKEN_DAYS)

    def issue(self, subject_id: str, role: str, *, now: Optional[datetime] = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(subject_id),
            "role": role,
            "iat": issued_at,
            "exp": issued_at + self._lifetime,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> Dict[str, Any]:
        """
        Verify signature and expiry, returning {"sub", "role"}.

        Raises:
            Unauthenticated: expired, tampered or structurally invalid token
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise Unauthenticated("Token expired")
        except jwt.InvalidTokenError:
            raise Unauthenticated("Invalid token")

        if not payload.get("role"):
            raise Unauthenticated("Invalid token payload")
        return {"sub": payload["sub"], "role": payload["role"]}


token_service = TokenService(SECRET_KEY)
