"""
listing_backend/listings.py

Listing Service: orchestrates listing reads and mutations.

Routes run the Access Guard declaratively (see auth_context.py); by the
time a mutation reaches this module the caller is a verified broker or an
admin. What remains here is ownership, counter bookkeeping, search
orchestration and response shaping.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Mapping, Optional

from sqlalchemy.engine import Connection

from listing_backend import store
from listing_backend.auth_context import BrokerContext
from listing_backend.config import IS_DEV
from listing_backend.errors import BadRequest, Conflict, Forbidden, NotFound
from listing_backend.models import FACILITIES, Principal
from listing_backend.schemas import ListingCreateRequest, ListingUpdateRequest, VisitCreateRequest
from listing_backend.search import ALL_STATUSES, compile_search, normalize_facility, total_pages

logger = logging.getLogger(__name__)

# Columns that may be omitted from an update but never set to null
REQUIRED_COLUMNS = frozenset({
    "title",
    "property_type",
    "listing_type",
    "price",
    "city",
    "status",
    "bedrooms",
    "bathrooms",
    "dining_rooms",
})

LOCATION_FIELDS = ("address", "city", "state", "pincode", "country", "latitude", "longitude")
SPECIFICATION_FIELDS = ("bedrooms", "bathrooms", "dining_rooms", "area", "furnished")


# ---------------------------------------------------------
# Response shaping
# ---------------------------------------------------------
def facility_flags(names: Iterable[str]) -> Dict[str, bool]:
    """Every facility column, True for the (normalized) names given."""
    enabled = {normalize_facility(name) for name in names}
    return {column: column in enabled for column in sorted(FACILITIES)}


def shape_listing(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Flat listing row -> nested response document."""
    broker = None
    if row.get("broker_id"):
        broker = {
            "id": row["broker_id"],
            "user_id": row.get("broker_user_id"),
            "company": row.get("broker_company"),
            "license_number": row.get("broker_license_number"),
            "experience": row.get("broker_experience"),
        }
    return {
        "id": row["id"],
        "title": row["title"],
        "description": row.get("description"),
        "property_type": row["property_type"],
        "listing_type": row["listing_type"],
        "price": row["price"],
        "location": {field: row.get(field) for field in LOCATION_FIELDS},
        "specifications": {field: row.get(field) for field in SPECIFICATION_FIELDS},
        "facilities": {column: bool(row.get(column)) for column in sorted(FACILITIES)},
        "images": row.get("images") or [],
        "year_built": row.get("year_built"),
        "condition": row.get("condition"),
        "style": row.get("style"),
        "status": row["status"],
        "is_featured": bool(row.get("is_featured")),
        "views": row.get("views") or 0,
        "inquiries": row.get("inquiries") or 0,
        "broker": broker,
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


def _page_response(rows, total: int, page: int, limit: int) -> Dict[str, Any]:
    return {
        "success": True,
        "count": len(rows),
        "total_count": total,
        "current_page": page,
        "total_pages": total_pages(total, limit),
        "properties": [shape_listing(row) for row in rows],
    }


# ---------------------------------------------------------
# Reads
# ---------------------------------------------------------
def search(conn: Connection, params: Mapping[str, Any], viewer: Optional[Principal] = None) -> Dict[str, Any]:
    """Public search: compile the filters, run them, shape one page."""
    query = compile_search(params, viewer)
    rows, total = store.search_listings(conn, query)
    if IS_DEV:
        logger.info("[SEARCH] %d predicates, page %d (limit %d), %d matches",
                    len(query.predicates), query.page, query.limit, total)
    return _page_response(rows, total, query.page, query.limit)


def my_listings(conn: Connection, ctx: BrokerContext, params: Mapping[str, Any]) -> Dict[str, Any]:
    """A broker's own listings; every status is visible unless one is asked for."""
    params = dict(params)
    if not str(params.get("status") or "").strip():
        params["status"] = ALL_STATUSES
    query = compile_search(params, ctx.principal, owner_broker_id=ctx.broker.id)
    rows, total = store.search_listings(conn, query)
    return _page_response(rows, total, query.page, query.limit)


def get_listing(conn: Connection, listing_id: str) -> Dict[str, Any]:
    """Fetch one listing and count the read. Exactly one view per call."""
    if not store.increment_listing_counter(conn, listing_id, "views"):
        raise NotFound("Property not found")
    return store.get_listing(conn, listing_id)


# ---------------------------------------------------------
# Mutations
# ---------------------------------------------------------
def _load_for_edit(conn: Connection, ctx: BrokerContext, listing_id: str) -> Dict[str, Any]:
    listing = store.get_listing(conn, listing_id)
    if listing is None:
        raise NotFound("Property not found")
    if ctx.principal.is_admin:
        return listing
    if ctx.broker is None or listing["broker_id"] != ctx.broker.id:
        logger.warning("[LISTINGS] Ownership denied: user=%s listing=%s", ctx.principal.subject_id, listing_id)
        raise Forbidden("Not authorized to modify this property")
    return listing


def create_listing(conn: Connection, ctx: BrokerContext, payload: ListingCreateRequest) -> Dict[str, Any]:
    if ctx.broker is None:
        raise Forbidden("Only brokers can create properties")

    fields = payload.model_dump(exclude={"facilities"})
    fields.update(facility_flags(payload.facilities))
    listing_id = store.insert_listing(conn, ctx.broker.id, fields)

    logger.info("[LISTINGS] Created %s for broker %s", listing_id, ctx.broker.id)
    return store.get_listing(conn, listing_id)


def update_listing(
    conn: Connection,
    ctx: BrokerContext,
    listing_id: str,
    payload: ListingUpdateRequest,
) -> Dict[str, Any]:
    """
    Apply a partial update as a single UPDATE statement.

    Raises:
        NotFound: listing does not exist
        Forbidden: caller is a broker who does not own the listing
        BadRequest: a required field was explicitly set to null
    """
    listing = _load_for_edit(conn, ctx, listing_id)

    changes = payload.model_dump(exclude_unset=True)
    nulled = sorted(field for field in REQUIRED_COLUMNS if field in changes and changes[field] is None)
    if nulled:
        raise BadRequest(f"Fields cannot be null: {', '.join(nulled)}", fields=nulled)

    facilities = changes.pop("facilities", None)
    if facilities is not None:
        changes.update(facility_flags(facilities))

    if not changes:
        return listing

    store.update_listing(conn, listing_id, changes)
    logger.info("[LISTINGS] Updated %s (%s)", listing_id, ", ".join(sorted(changes)))
    return store.get_listing(conn, listing_id)


def delete_listing(conn: Connection, ctx: BrokerContext, listing_id: str) -> None:
    _load_for_edit(conn, ctx, listing_id)
    store.delete_listing(conn, listing_id)
    logger.info("[LISTINGS] Deleted %s by %s", listing_id, ctx.principal.subject_id)


def set_featured(conn: Connection, listing_id: str, is_featured: bool) -> Dict[str, Any]:
    if store.get_listing(conn, listing_id) is None:
        raise NotFound("Property not found")
    store.update_listing(conn, listing_id, {"is_featured": is_featured})
    return store.get_listing(conn, listing_id)


def schedule_visit(
    conn: Connection,
    principal: Principal,
    listing_id: str,
    payload: VisitCreateRequest,
) -> Dict[str, Any]:
    """
    Record a visit request and count it as one inquiry.

    Raises:
        NotFound: listing does not exist
        Conflict: the caller already has a pending request for this listing
    """
    if store.get_listing(conn, listing_id) is None:
        raise NotFound("Property not found")
    if store.find_pending_visit(conn, principal.subject_id, listing_id):
        raise Conflict("You already have a pending visit request for this property")

    visit = store.insert_visit(
        conn,
        user_id=principal.subject_id,
        property_id=listing_id,
        scheduled_date=payload.scheduled_date.isoformat(),
        scheduled_time=payload.scheduled_time.strftime("%H:%M"),
        message=payload.message,
    )
    store.increment_listing_counter(conn, listing_id, "inquiries")
    logger.info("[LISTINGS] Visit %s requested for %s", visit["id"], listing_id)
    return store.get_visit(conn, visit["id"])
