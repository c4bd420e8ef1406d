"""
listing_backend/store.py

Storage collaborator: every SQL statement the backend runs lives here.

All statements are parameterized. Column names interpolated into SQL come
only from the allowlists in this module (never from request input), which
is what keeps the dynamic search WHERE clause injection-safe.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Connection

from listing_backend.db import row_to_dict
from listing_backend.models import FACILITIES, BrokerProfile, Message
from listing_backend.search import Contains, Equals, InSet, IsTrue, Predicate, Range, SearchQuery

logger = logging.getLogger(__name__)


# ---------------------------------------------------------
# Helpers
# ---------------------------------------------------------
def now_iso() -> str:
    return datetime.utcnow().isoformat(timespec="microseconds")


def new_id() -> str:
    return str(uuid.uuid4())


def _to_db(value: Any) -> Any:
    """Adapt Python values to what both SQLite and PostgreSQL accept."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat(timespec="microseconds")
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(list(value) if isinstance(value, tuple) else value)
    return value


def _json_list(raw: Optional[str]) -> List[Any]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return []
    return value if isinstance(value, list) else []


def _set_clause(changes: Mapping[str, Any], allowed: Iterable[str]) -> Tuple[str, Dict[str, Any]]:
    allowed = set(allowed)
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Unsupported columns: {sorted(unknown)}")
    assignments = ", ".join(f"{column} = :{column}" for column in changes)
    return assignments, {column: _to_db(value) for column, value in changes.items()}


# ---------------------------------------------------------
# Users
# ---------------------------------------------------------
def create_user(
    conn: Connection,
    *,
    name: str,
    email: str,
    password_hash: str,
    role: str,
    phone: Optional[str] = None,
) -> Dict[str, Any]:
    now = now_iso()
    user = {
        "id": new_id(),
        "name": name,
        "email": email,
        "phone": phone,
        "password_hash": password_hash,
        "role": _to_db(role),
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    }
    conn.execute(
        text(
            """
            INSERT INTO users (id, name, email, phone, password_hash, role, is_active, created_at, updated_at)
            VALUES (:id, :name, :email, :phone, :password_hash, :role, :is_active, :created_at, :updated_at)
            """
        ),
        user,
    )
    return user


def get_user_by_id(conn: Connection, user_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(text("SELECT * FROM users WHERE id = :id"), {"id": user_id}).fetchone()
    return row_to_dict(row) if row else None


def get_user_by_email(conn: Connection, email: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(text("SELECT * FROM users WHERE email = :email"), {"email": email}).fetchone()
    return row_to_dict(row) if row else None


def get_user_by_phone(conn: Connection, phone: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(text("SELECT * FROM users WHERE phone = :phone"), {"phone": phone}).fetchone()
    return row_to_dict(row) if row else None


def get_people(conn: Connection, user_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """Public name/email/role for a set of user ids."""
    ids = sorted(set(user_ids))
    if not ids:
        return {}
    stmt = text("SELECT id, name, email, role FROM users WHERE id IN :ids").bindparams(
        bindparam("ids", expanding=True)
    )
    return {row.id: row_to_dict(row) for row in conn.execute(stmt, {"ids": ids})}


def touch_last_login(conn: Connection, user_id: str) -> None:
    conn.execute(
        text("UPDATE users SET last_login = :now WHERE id = :id"),
        {"now": now_iso(), "id": user_id},
    )


def count_users_by_role(conn: Connection) -> Dict[str, int]:
    rows = conn.execute(text("SELECT role, COUNT(*) AS total FROM users GROUP BY role"))
    return {row.role: row.total for row in rows}


# ---------------------------------------------------------
# Broker profiles
# ---------------------------------------------------------
BROKER_COLUMNS = frozenset({
    "verification_status",
    "rejection_reason",
    "verified_at",
    "verified_by",
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
    "is_featured",
    "updated_at",
})


def _broker_from_row(row) -> BrokerProfile:
    data = row_to_dict(row)
    data["specialization"] = _json_list(data.get("specialization"))
    return BrokerProfile(**data)


def create_broker_profile(conn: Connection, user_id: str) -> BrokerProfile:
    """New broker profiles always start out pending review."""
    now = now_iso()
    broker_id = new_id()
    conn.execute(
        text(
            """
            INSERT INTO brokers (id, user_id, verification_status, created_at, updated_at)
            VALUES (:id, :user_id, 'pending', :now, :now)
            """
        ),
        {"id": broker_id, "user_id": user_id, "now": now},
    )
    return BrokerProfile(id=broker_id, user_id=user_id, created_at=now, updated_at=now)


def get_broker(conn: Connection, broker_id: str) -> Optional[BrokerProfile]:
    row = conn.execute(text("SELECT * FROM brokers WHERE id = :id"), {"id": broker_id}).fetchone()
    return _broker_from_row(row) if row else None


def get_broker_by_user(conn: Connection, user_id: str) -> Optional[BrokerProfile]:
    row = conn.execute(text("SELECT * FROM brokers WHERE user_id = :user_id"), {"user_id": user_id}).fetchone()
    return _broker_from_row(row) if row else None


def save_broker_changes(conn: Connection, broker_id: str, changes: Mapping[str, Any]) -> None:
    """Persist column changes, such as those described by a verification Transition."""
    assignments, params = _set_clause(changes, BROKER_COLUMNS)
    params["id"] = broker_id
    conn.execute(text(f"UPDATE brokers SET {assignments} WHERE id = :id"), params)
    logger.debug("[STORE] broker %s updated: %s", broker_id, sorted(changes))


def list_brokers(
    conn: Connection,
    status: Optional[str] = None,
) -> List[Tuple[BrokerProfile, Dict[str, Any]]]:
    """Brokers with their user's contact details; pending reviews first, then featured."""
    sql = """
        SELECT b.*, u.name AS user_name, u.email AS user_email, u.phone AS user_phone
        FROM brokers b
        JOIN users u ON u.id = b.user_id
    """
    params: Dict[str, Any] = {}
    if status:
        sql += " WHERE b.verification_status = :status"
        params["status"] = status
    sql += """
        ORDER BY CASE b.verification_status
                     WHEN 'pending' THEN 0 WHEN 'rejected' THEN 1 ELSE 2
                 END,
                 b.is_featured DESC,
                 b.created_at DESC
    """
    results = []
    for row in conn.execute(text(sql), params):
        data = row_to_dict(row)
        user = {
            "name": data.pop("user_name"),
            "email": data.pop("user_email"),
            "phone": data.pop("user_phone"),
        }
        data["specialization"] = _json_list(data.get("specialization"))
        results.append((BrokerProfile(**data), user))
    return results


def count_brokers_by_status(conn: Connection) -> Dict[str, int]:
    rows = conn.execute(
        text("SELECT verification_status, COUNT(*) AS total FROM brokers GROUP BY verification_status")
    )
    return {row.verification_status: row.total for row in rows}


def delete_broker(conn: Connection, broker_id: str) -> int:
    """
    Remove a broker profile together with its listings.

    The user account stays. Returns the number of listings removed.
    """
    listing_ids = [
        row.id for row in conn.execute(text("SELECT id FROM listings WHERE broker_id = :id"), {"id": broker_id})
    ]
    for listing_id in listing_ids:
        delete_listing(conn, listing_id)
    conn.execute(text("DELETE FROM brokers WHERE id = :id"), {"id": broker_id})
    return len(listing_ids)


# ---------------------------------------------------------
# Listings
# ---------------------------------------------------------
LISTING_WRITABLE_COLUMNS = frozenset({
    "title",
    "description",
    "property_type",
    "listing_type",
    "price",
    "address",
    "city",
    "state",
    "pincode",
    "country",
    "latitude",
    "longitude",
    "bedrooms",
    "bathrooms",
    "dining_rooms",
    "area",
    "furnished",
    "images",
    "year_built",
    "condition",
    "style",
    "status",
    "is_featured",
    "updated_at",
}) | FACILITIES

SEARCHABLE_COLUMNS = frozenset({
    "broker_id",
    "status",
    "property_type",
    "listing_type",
    "price",
    "area",
    "bedrooms",
    "bathrooms",
    "city",
    "title",
    "description",
    "is_featured",
    "created_at",
}) | FACILITIES

COUNTER_COLUMNS = frozenset({"views", "inquiries"})

_BOOLEAN_LISTING_COLUMNS = FACILITIES | {"is_featured"}

_LISTING_SELECT = """
    SELECT l.*,
           b.user_id AS broker_user_id,
           b.company_name AS broker_company,
           b.license_number AS broker_license_number,
           b.years_of_experience AS broker_experience
    FROM listings l
    LEFT JOIN brokers b ON b.id = l.broker_id
"""


def _listing_from_row(row) -> Dict[str, Any]:
    data = row_to_dict(row)
    data["images"] = _json_list(data.get("images"))
    for column in _BOOLEAN_LISTING_COLUMNS:
        if column in data:
            data[column] = bool(data[column])
    return data


def insert_listing(conn: Connection, broker_id: str, fields: Mapping[str, Any]) -> str:
    now = now_iso()
    values = {column: _to_db(value) for column, value in fields.items() if column in LISTING_WRITABLE_COLUMNS}
    values.update({"id": new_id(), "broker_id": broker_id, "created_at": now, "updated_at": now})
    columns = ", ".join(values)
    placeholders = ", ".join(f":{column}" for column in values)
    conn.execute(text(f"INSERT INTO listings ({columns}) VALUES ({placeholders})"), values)
    return values["id"]


def get_listing(conn: Connection, listing_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(text(f"{_LISTING_SELECT} WHERE l.id = :id"), {"id": listing_id}).fetchone()
    return _listing_from_row(row) if row else None


def update_listing(conn: Connection, listing_id: str, changes: Mapping[str, Any]) -> None:
    changes = dict(changes, updated_at=now_iso())
    assignments, params = _set_clause(changes, LISTING_WRITABLE_COLUMNS)
    params["id"] = listing_id
    conn.execute(text(f"UPDATE listings SET {assignments} WHERE id = :id"), params)


def delete_listing(conn: Connection, listing_id: str) -> None:
    conn.execute(text("UPDATE messages SET property_id = NULL WHERE property_id = :id"), {"id": listing_id})
    conn.execute(text("DELETE FROM visits WHERE property_id = :id"), {"id": listing_id})
    conn.execute(text("DELETE FROM listings WHERE id = :id"), {"id": listing_id})


def increment_listing_counter(conn: Connection, listing_id: str, column: str) -> int:
    """Atomically bump views/inquiries by exactly one; returns rows touched."""
    if column not in COUNTER_COLUMNS:
        raise ValueError(f"Unsupported counter: {column}")
    result = conn.execute(
        text(f"UPDATE listings SET {column} = {column} + 1 WHERE id = :id"),
        {"id": listing_id},
    )
    return result.rowcount


def _column(name: str) -> str:
    if name not in SEARCHABLE_COLUMNS:
        raise ValueError(f"Unsupported search field: {name}")
    return f"l.{name}"


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def render_predicates(predicates: Sequence[Predicate]) -> Tuple[str, Dict[str, Any]]:
    """Render compiled predicates into an AND-ed WHERE body plus bind params."""
    clauses: List[str] = []
    params: Dict[str, Any] = {}

    for index, predicate in enumerate(predicates):
        key = f"p{index}"
        if isinstance(predicate, Equals):
            clauses.append(f"{_column(predicate.field)} = :{key}")
            params[key] = _to_db(predicate.value)
        elif isinstance(predicate, IsTrue):
            clauses.append(f"{_column(predicate.field)} = :{key}")
            params[key] = True
        elif isinstance(predicate, Range):
            column = _column(predicate.field)
            if predicate.minimum is not None:
                clauses.append(f"{column} >= :{key}_min")
                params[f"{key}_min"] = predicate.minimum
            if predicate.maximum is not None:
                clauses.append(f"{column} <= :{key}_max")
                params[f"{key}_max"] = predicate.maximum
        elif isinstance(predicate, Contains):
            alternatives = " OR ".join(
                f"LOWER({_column(field)}) LIKE :{key} ESCAPE '\\'" for field in predicate.fields
            )
            clauses.append(f"({alternatives})")
            params[key] = f"%{_escape_like(predicate.value.lower())}%"
        elif isinstance(predicate, InSet):
            names = [f"{key}_{position}" for position in range(len(predicate.values))]
            clauses.append(f"{_column(predicate.field)} IN ({', '.join(':' + name for name in names)})")
            params.update({name: _to_db(value) for name, value in zip(names, predicate.values)})
        else:
            raise TypeError(f"Unknown predicate: {predicate!r}")

    return (" AND ".join(clauses) if clauses else "1 = 1"), params


def search_listings(conn: Connection, query: SearchQuery) -> Tuple[List[Dict[str, Any]], int]:
    """Execute a compiled SearchQuery; returns (page of listings, total matches)."""
    where, params = render_predicates(query.predicates)
    order = ", ".join(
        f"{_column(order.field)} {'DESC' if order.descending else 'ASC'}" for order in query.ordering
    )

    total = conn.execute(text(f"SELECT COUNT(*) FROM listings l WHERE {where}"), params).scalar_one()
    rows = conn.execute(
        text(f"{_LISTING_SELECT} WHERE {where} ORDER BY {order} LIMIT :limit OFFSET :offset"),
        dict(params, limit=query.limit, offset=query.offset),
    ).fetchall()
    return [_listing_from_row(row) for row in rows], total


# ---------------------------------------------------------
# Messages
# ---------------------------------------------------------
def _message_from_row(row) -> Message:
    return Message(**row_to_dict(row))


def insert_message(
    conn: Connection,
    *,
    sender_id: str,
    receiver_id: str,
    message: str,
    subject: Optional[str] = None,
    property_id: Optional[str] = None,
) -> Message:
    record = Message(
        id=new_id(),
        sender_id=sender_id,
        receiver_id=receiver_id,
        property_id=property_id,
        subject=subject or "Property Inquiry",
        message=message,
        is_read=False,
        created_at=now_iso(),
    )
    conn.execute(
        text(
            """
            INSERT INTO messages (id, sender_id, receiver_id, property_id, subject, message, is_read, created_at)
            VALUES (:id, :sender_id, :receiver_id, :property_id, :subject, :message, :is_read, :created_at)
            """
        ),
        {key: _to_db(value) for key, value in record.model_dump().items()},
    )
    return record


def list_messages_for_user(conn: Connection, user_id: str) -> List[Message]:
    """Every message the user sent or received, newest first."""
    rows = conn.execute(
        text(
            """
            SELECT * FROM messages
            WHERE sender_id = :user_id OR receiver_id = :user_id
            ORDER BY created_at DESC
            """
        ),
        {"user_id": user_id},
    )
    return [_message_from_row(row) for row in rows]


def list_thread(conn: Connection, user_id: str, other_id: str) -> List[Message]:
    """Messages between two users, oldest first."""
    rows = conn.execute(
        text(
            """
            SELECT * FROM messages
            WHERE (sender_id = :user_id AND receiver_id = :other_id)
               OR (sender_id = :other_id AND receiver_id = :user_id)
            ORDER BY created_at ASC
            """
        ),
        {"user_id": user_id, "other_id": other_id},
    )
    return [_message_from_row(row) for row in rows]


def list_messages_for_property(conn: Connection, property_id: str, user_id: str) -> List[Message]:
    """The caller's messages about one listing, oldest first."""
    rows = conn.execute(
        text(
            """
            SELECT * FROM messages
            WHERE property_id = :property_id
              AND (sender_id = :user_id OR receiver_id = :user_id)
            ORDER BY created_at ASC
            """
        ),
        {"property_id": property_id, "user_id": user_id},
    )
    return [_message_from_row(row) for row in rows]


def mark_thread_read(conn: Connection, receiver_id: str, sender_id: str) -> int:
    result = conn.execute(
        text(
            """
            UPDATE messages SET is_read = :read
            WHERE sender_id = :sender_id AND receiver_id = :receiver_id AND is_read = :unread
            """
        ),
        {"read": True, "unread": False, "sender_id": sender_id, "receiver_id": receiver_id},
    )
    return result.rowcount


def get_message(conn: Connection, message_id: str) -> Optional[Message]:
    row = conn.execute(text("SELECT * FROM messages WHERE id = :id"), {"id": message_id}).fetchone()
    return _message_from_row(row) if row else None


def mark_message_read(conn: Connection, message_id: str) -> None:
    conn.execute(text("UPDATE messages SET is_read = :read WHERE id = :id"), {"read": True, "id": message_id})


def delete_message(conn: Connection, message_id: str) -> None:
    conn.execute(text("DELETE FROM messages WHERE id = :id"), {"id": message_id})


def count_unread(conn: Connection, user_id: str) -> int:
    return conn.execute(
        text("SELECT COUNT(*) FROM messages WHERE receiver_id = :user_id AND is_read = :unread"),
        {"user_id": user_id, "unread": False},
    ).scalar_one()


# ---------------------------------------------------------
# Visit requests
# ---------------------------------------------------------
def insert_visit(
    conn: Connection,
    *,
    user_id: str,
    property_id: str,
    scheduled_date: str,
    scheduled_time: str,
    message: Optional[str] = None,
) -> Dict[str, Any]:
    now = now_iso()
    visit = {
        "id": new_id(),
        "user_id": user_id,
        "property_id": property_id,
        "scheduled_date": scheduled_date,
        "scheduled_time": scheduled_time,
        "message": message,
        "status": "pending",
        "created_at": now,
        "updated_at": now,
    }
    conn.execute(
        text(
            """
            INSERT INTO visits (id, user_id, property_id, scheduled_date, scheduled_time, message, status, created_at, updated_at)
            VALUES (:id, :user_id, :property_id, :scheduled_date, :scheduled_time, :message, :status, :created_at, :updated_at)
            """
        ),
        visit,
    )
    return visit


def find_pending_visit(conn: Connection, user_id: str, property_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        text(
            """
            SELECT * FROM visits
            WHERE user_id = :user_id AND property_id = :property_id AND status = 'pending'
            """
        ),
        {"user_id": user_id, "property_id": property_id},
    ).fetchone()
    return row_to_dict(row) if row else None


_VISIT_SELECT = """
    SELECT v.*, l.title AS property_title, l.city AS property_city, l.broker_id AS broker_id
    FROM visits v
    JOIN listings l ON l.id = v.property_id
"""


def list_visits_for_user(conn: Connection, user_id: str) -> List[Dict[str, Any]]:
    rows = conn.execute(
        text(f"{_VISIT_SELECT} WHERE v.user_id = :user_id ORDER BY v.created_at DESC"),
        {"user_id": user_id},
    )
    return [row_to_dict(row) for row in rows]


def list_visits_for_broker(conn: Connection, broker_id: str) -> List[Dict[str, Any]]:
    rows = conn.execute(
        text(f"{_VISIT_SELECT} WHERE l.broker_id = :broker_id ORDER BY v.created_at DESC"),
        {"broker_id": broker_id},
    )
    return [row_to_dict(row) for row in rows]


def get_visit(conn: Connection, visit_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(text(f"{_VISIT_SELECT} WHERE v.id = :id"), {"id": visit_id}).fetchone()
    return row_to_dict(row) if row else None


def update_visit_status(conn: Connection, visit_id: str, status: str) -> None:
    conn.execute(
        text("UPDATE visits SET status = :status, updated_at = :now WHERE id = :id"),
        {"status": status, "now": now_iso(), "id": visit_id},
    )


def broker_listing_stats(conn: Connection, broker_id: str) -> Dict[str, int]:
    row = conn.execute(
        text(
            """
            SELECT COUNT(*) AS total_properties,
                   COALESCE(SUM(CASE WHEN status = 'active' THEN 1 ELSE 0 END), 0) AS active_listings,
                   COALESCE(SUM(views), 0) AS total_views,
                   COALESCE(SUM(inquiries), 0) AS inquiries
            FROM listings
            WHERE broker_id = :broker_id
            """
        ),
        {"broker_id": broker_id},
    ).fetchone()
    return {key: int(value) for key, value in row_to_dict(row).items()}
