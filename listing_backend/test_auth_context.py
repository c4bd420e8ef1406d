"""
listing_backend/test_auth_context.py

Tests for token verification, role admission and the broker verification
gate. Decision functions are tested directly; the FastAPI wiring is covered
in test_api_flow.py.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from listing_backend.auth_context import check_broker_verified, check_role, resolve_principal
from listing_backend.errors import Forbidden, NotFound, Unauthenticated
from listing_backend.models import BrokerProfile, Principal, UserRole, VerificationStatus
from listing_backend.tokens import TokenService

SECRET = "test-secret"
tokens = TokenService(SECRET)


def bearer(token):
    return f"Bearer {token}"


class TestTokenService:
    """Issue / verify round trip and failure modes."""

    def test_verify_returns_issued_claims(self):
        token = tokens.issue("user-42", "broker")
        assert tokens.verify(token) == {"sub": "user-42", "role": "broker"}

    def test_expired_token(self):
        issued = datetime.now(timezone.utc) - timedelta(days=31)
        token = tokens.issue("user-42", "customer", now=issued)
        with pytest.raises(Unauthenticated) as exc_info:
            tokens.verify(token)
        assert exc_info.value.message == "Token expired"

    def test_wrong_secret(self):
        token = TokenService("another-secret").issue("user-42", "customer")
        with pytest.raises(Unauthenticated):
            tokens.verify(token)

    def test_tampered_payload(self):
        header, payload, signature = tokens.issue("user-42", "customer").split(".")
        forged = jwt.encode({"sub": "user-42", "role": "admin", "exp": 9999999999}, "guess", algorithm="HS256")
        tampered = ".".join([header, forged.split(".")[1], signature])
        with pytest.raises(Unauthenticated):
            tokens.verify(tampered)

    def test_missing_role(self):
        token = jwt.encode(
            {"sub": "user-42", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(Unauthenticated):
            tokens.verify(token)

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            TokenService("")


class TestResolvePrincipal:
    """Authorization header -> Principal."""

    def test_valid_header(self):
        principal = resolve_principal(bearer(tokens.issue("user-1", "admin")), tokens)
        assert principal == Principal(subject_id="user-1", role=UserRole.admin)

    @pytest.mark.parametrize("header", [None, "", "Token abc", "Bearer ", "bearer abc"])
    def test_missing_or_malformed_header(self, header):
        with pytest.raises(Unauthenticated):
            resolve_principal(header, tokens)

    def test_unknown_role(self):
        with pytest.raises(Unauthenticated):
            resolve_principal(bearer(tokens.issue("user-1", "superuser")), tokens)

    def test_garbage_token(self):
        with pytest.raises(Unauthenticated):
            resolve_principal("Bearer not.a.token", tokens)


class TestRoleAdmission:
    def test_allowed(self):
        principal = Principal(subject_id="u", role=UserRole.broker)
        assert check_role(principal, {UserRole.broker, UserRole.admin}) is principal

    def test_denied(self):
        with pytest.raises(Forbidden) as exc_info:
            check_role(Principal(subject_id="u", role=UserRole.customer), {UserRole.admin})
        assert "customer" in exc_info.value.message


class TestBrokerVerificationGate:
    """Admits if and only if the profile is verified."""

    broker = Principal(subject_id="user-1", role=UserRole.broker)

    def make_profile(self, status, reason=None):
        return BrokerProfile(id="b-1", user_id="user-1", verification_status=status, rejection_reason=reason)

    def test_verified_is_admitted(self):
        profile = self.make_profile(VerificationStatus.verified)
        assert check_broker_verified(self.broker, profile) is profile

    def test_pending_is_forbidden_with_status(self):
        with pytest.raises(Forbidden) as exc_info:
            check_broker_verified(self.broker, self.make_profile(VerificationStatus.pending))
        body = exc_info.value.to_body()
        assert body["verificationStatus"] == "pending"
        assert "rejectionReason" not in body

    def test_rejected_carries_reason(self):
        with pytest.raises(Forbidden) as exc_info:
            check_broker_verified(self.broker, self.make_profile(VerificationStatus.rejected, "Blurry ID"))
        body = exc_info.value.to_body()
        assert body["verificationStatus"] == "rejected"
        assert body["rejectionReason"] == "Blurry ID"

    def test_missing_profile_is_not_found(self):
        with pytest.raises(NotFound):
            check_broker_verified(self.broker, None)

    def test_non_broker_is_forbidden(self):
        customer = Principal(subject_id="user-9", role=UserRole.customer)
        with pytest.raises(Forbidden):
            check_broker_verified(customer, self.make_profile(VerificationStatus.verified))
