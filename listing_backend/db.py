# listing_backend/db.py
# Database engine and schema for PostgreSQL (production) and SQLite (dev)
# Run: python -m listing_backend.db   (creates tables, idempotent)

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional
from urllib.parse import urlparse

from sqlalchemy import create_engine, event, pool, text
from sqlalchemy.engine import Connection, Engine

from listing_backend.config import DATABASE_URL
from listing_backend.models import FACILITIES

logger = logging.getLogger(__name__)

# Global engine, created lazily on first use
_engine: Optional[Engine] = None


def _unicode_lower(value: Optional[str]) -> Optional[str]:
    return value.lower() if isinstance(value, str) else value


def _register_sqlite_functions(dbapi_connection, connection_record) -> None:
    # SQLite's built-in LOWER() only folds ASCII letters
    dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)


def init_engine(url: str = DATABASE_URL) -> Engine:
    """(Re)create the global engine for `url`."""
    global _engine

    if url.startswith("postgres://"):
        # SQLAlchemy only understands the postgresql:// scheme
        url = "postgresql://" + url[len("postgres://"):]

    parsed = urlparse(url)
    if not parsed.scheme:
        raise ValueError(f"Invalid DATABASE_URL: {url[:20]}...")

    if parsed.scheme.startswith("sqlite"):
        in_memory = url in ("sqlite://", "sqlite:///:memory:")
        _engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            # A single shared connection keeps an in-memory database alive
            poolclass=pool.StaticPool if in_memory else pool.QueuePool,
        )
        event.listen(_engine, "connect", _register_sqlite_functions)
        logger.info("[DB] Using SQLite (%s)", "in-memory" if in_memory else parsed.path)
    else:
        _engine = create_engine(
            url,
            poolclass=pool.QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,  # Verify connections before use
        )
        logger.info("[DB] Using PostgreSQL (%s)", parsed.hostname)

    return _engine


def get_engine() -> Engine:
    if _engine is None:
        init_engine()
    return _engine


@contextmanager
def get_db_connection() -> Generator[Connection, None, None]:
    """
    One connection and one transaction per unit of work.

    Commits when the block exits cleanly and rolls back on any exception, so a
    failed multi-statement mutation leaves no partial effects.
    """
    with get_engine().begin() as conn:
        yield conn


def get_conn() -> Generator[Connection, None, None]:
    """FastAPI dependency wrapper around get_db_connection()."""
    with get_db_connection() as conn:
        yield conn


def row_to_dict(row) -> Dict[str, Any]:
    """
    Convert a SQLAlchemy Row to a plain dict.

    This is the single boundary for converting DB rows to dicts.
    """
    if row is None:
        return {}
    return dict(row._mapping)


# ---------------------------------------------------------
# Schema
# ---------------------------------------------------------
_FACILITY_DDL = ",\n".join(
    f"            {column} BOOLEAN NOT NULL DEFAULT FALSE" for column in sorted(FACILITIES)
)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        phone TEXT UNIQUE,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'customer',
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        last_login TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS brokers (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
        verification_status TEXT NOT NULL DEFAULT 'pending',
        rejection_reason TEXT,
        verified_at TEXT,
        verified_by TEXT,
        company_name TEXT,
        license_number TEXT UNIQUE,
        years_of_experience INTEGER,
        specialization TEXT,
        address TEXT,
        city TEXT,
        state TEXT,
        pincode TEXT,
        serving_cities TEXT,
        about TEXT,
        profile_image TEXT,
        license_document TEXT,
        id_proof TEXT,
        is_featured BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS listings (
        id TEXT PRIMARY KEY,
        broker_id TEXT NOT NULL REFERENCES brokers(id) ON DELETE CASCADE,
        title TEXT NOT NULL,
        description TEXT,
        property_type TEXT NOT NULL,
        listing_type TEXT NOT NULL,
        price REAL NOT NULL,
        address TEXT,
        city TEXT NOT NULL,
        state TEXT,
        pincode TEXT,
        country TEXT,
        latitude REAL,
        longitude REAL,
        bedrooms INTEGER NOT NULL DEFAULT 0,
        bathrooms INTEGER NOT NULL DEFAULT 0,
        dining_rooms INTEGER NOT NULL DEFAULT 0,
        area REAL,
        furnished TEXT,
{_FACILITY_DDL},
        images TEXT,
        year_built INTEGER,
        condition TEXT,
        style TEXT,
        status TEXT NOT NULL DEFAULT 'active',
        is_featured BOOLEAN NOT NULL DEFAULT FALSE,
        views INTEGER NOT NULL DEFAULT 0,
        inquiries INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        id TEXT PRIMARY KEY,
        sender_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        receiver_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        property_id TEXT REFERENCES listings(id) ON DELETE SET NULL,
        subject TEXT,
        message TEXT NOT NULL,
        is_read BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS visits (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        property_id TEXT NOT NULL REFERENCES listings(id) ON DELETE CASCADE,
        scheduled_date TEXT NOT NULL,
        scheduled_time TEXT NOT NULL,
        message TEXT,
        status TEXT NOT NULL DEFAULT 'pending',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_listings_broker ON listings (broker_id)",
    "CREATE INDEX IF NOT EXISTS idx_listings_status ON listings (status)",
    "CREATE INDEX IF NOT EXISTS idx_listings_city ON listings (city)",
    "CREATE INDEX IF NOT EXISTS idx_listings_price ON listings (price)",
    "CREATE INDEX IF NOT EXISTS idx_listings_featured_created ON listings (is_featured, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_messages_sender ON messages (sender_id)",
    "CREATE INDEX IF NOT EXISTS idx_messages_receiver ON messages (receiver_id)",
    "CREATE INDEX IF NOT EXISTS idx_visits_property ON visits (property_id)",
]


def init_db() -> None:
    """Create all tables and indexes. Safe to run multiple times."""
    with get_db_connection() as conn:
        for statement in SCHEMA:
            conn.execute(text(statement))
    logger.info("[DB] Schema ready (%d statements)", len(SCHEMA))


if __name__ == "__main__":
    from listing_backend.logging_config import setup_logging

    setup_logging()
    init_db()
