"""
Shared pytest fixtures.

Every test that touches storage gets a fresh in-memory SQLite database
(one shared connection via StaticPool), so tests never see each other's rows.
"""

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text

from listing_backend import db, store
from listing_backend.main import app
from listing_backend.passwords import hash_password
from listing_backend.tokens import token_service

TEST_PASSWORD = "secret123"


@pytest.fixture
def engine():
    """Fresh in-memory database with the full schema."""
    engine = db.init_engine("sqlite://")
    db.init_db()
    yield engine
    engine.dispose()


@pytest.fixture
def client(engine):
    return TestClient(app)


@pytest.fixture
def make_account(engine):
    """
    Factory for users (and broker profiles) with a ready-to-use token.

    Usage:
        broker = make_account("broker", broker_status="verified")
        client.post("/api/properties", json=..., headers=broker["headers"])
    """
    def _make(role="customer", *, name="Test User", email=None, broker_status="pending"):
        with db.get_db_connection() as connection:
            user = store.create_user(
                connection,
                name=name,
                email=email or f"{role}-{uuid.uuid4().hex[:8]}@example.com",
                # Low iteration count keeps the suite fast
                password_hash=hash_password(TEST_PASSWORD, iterations=1000),
                role=role,
            )
            broker_id = None
            if role == "broker":
                broker_id = store.create_broker_profile(connection, user["id"]).id
                if broker_status != "pending":
                    changes = {"verification_status": broker_status}
                    if broker_status == "rejected":
                        changes["rejection_reason"] = "License document unreadable"
                    store.save_broker_changes(connection, broker_id, changes)

        token = token_service.issue(user["id"], role)
        return {
            "user": user,
            "id": user["id"],
            "broker_id": broker_id,
            "token": token,
            "headers": {"Authorization": f"Bearer {token}"},
        }

    return _make


@pytest.fixture
def make_listing(engine):
    """Factory inserting a listing straight into the store."""
    def _make(broker_id, *, created_at=None, **fields):
        values = {
            "title": "Sunny two bedroom flat",
            "description": "Close to the metro",
            "property_type": "residential",
            "listing_type": "sale",
            "price": 250000,
            "city": "Pune",
            "bedrooms": 2,
            "bathrooms": 1,
            "area": 900,
            "status": "active",
        }
        values.update(fields)
        with db.get_db_connection() as connection:
            listing_id = store.insert_listing(connection, broker_id, values)
            if created_at:
                connection.execute(
                    text("UPDATE listings SET created_at = :created_at WHERE id = :id"),
                    {"created_at": created_at, "id": listing_id},
                )
        return listing_id

    return _make
