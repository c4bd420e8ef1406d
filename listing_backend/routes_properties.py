"""
listing_backend/routes_properties.py

Property listing endpoints.

Security guarantees:
- Search and detail reads are public; a bearer token, when sent, is still
  verified so admins can widen the status filter
- Create requires role broker AND a verified broker profile
- Update/delete require a verified broker owning the listing, or an admin
- Featured toggling is admin only
- Scheduling a visit requires any authenticated user
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Path, Request
from sqlalchemy.engine import Connection

from listing_backend import listings
from listing_backend.auth_context import (
    BrokerContext,
    optional_principal,
    require_listing_editor,
    require_principal,
    require_role,
    require_verified_broker,
)
from listing_backend.db import get_conn
from listing_backend.models import Principal, UserRole
from listing_backend.schemas import (
    FeaturedRequest,
    ListingCreateRequest,
    ListingEnvelope,
    ListingSearchResponse,
    ListingUpdateRequest,
    SuccessResponse,
    VisitCreateRequest,
    VisitEnvelope,
)

router = APIRouter(
    prefix="/api/properties",
    tags=["properties"],
)


@router.get("", response_model=ListingSearchResponse)
def search_properties(
    request: Request,
    viewer: Optional[Principal] = Depends(optional_principal),
    conn: Connection = Depends(get_conn),
):
    """
    Search listings.

    Every query parameter is optional; unknown parameters are ignored.
    Recognized: propertyType, listingType, city, keyword, minPrice, maxPrice,
    minArea, maxArea, bedrooms, bathrooms, facilities, featured, status,
    page, limit.

    Raises:
        BadRequest(400): non-numeric or negative numeric filter, bad page/limit
    """
    return listings.search(conn, request.query_params, viewer)


@router.get("/broker/my-properties", response_model=ListingSearchResponse)
def my_properties(
    request: Request,
    ctx: BrokerContext = Depends(require_verified_broker),
    conn: Connection = Depends(get_conn),
):
    """The calling broker's listings in every status (narrow with ?status=)."""
    return listings.my_listings(conn, ctx, request.query_params)


@router.get("/{listing_id}", response_model=ListingEnvelope)
def get_property(
    listing_id: str = Path(..., min_length=1),
    conn: Connection = Depends(get_conn),
):
    return {"property": listings.shape_listing(listings.get_listing(conn, listing_id))}


@router.post("", response_model=ListingEnvelope, status_code=201)
def create_property(
    req: ListingCreateRequest,
    ctx: BrokerContext = Depends(require_verified_broker),
    conn: Connection = Depends(get_conn),
):
    """
    Create a listing owned by the calling broker.

    Security:
    - Role broker (403 otherwise)
    - Broker profile must be verified (403 with verificationStatus otherwise)
    - broker_id comes from the broker profile ONLY, never from the client
    """
    listing = listings.create_listing(conn, ctx, req)
    return {"message": "Property created successfully", "property": listings.shape_listing(listing)}


@router.put("/{listing_id}", response_model=ListingEnvelope)
def update_property(
    req: ListingUpdateRequest,
    listing_id: str = Path(..., min_length=1),
    ctx: BrokerContext = Depends(require_listing_editor),
    conn: Connection = Depends(get_conn),
):
    listing = listings.update_listing(conn, ctx, listing_id, req)
    return {"message": "Property updated successfully", "property": listings.shape_listing(listing)}


@router.delete("/{listing_id}", response_model=SuccessResponse)
def delete_property(
    listing_id: str = Path(..., min_length=1),
    ctx: BrokerContext = Depends(require_listing_editor),
    conn: Connection = Depends(get_conn),
):
    listings.delete_listing(conn, ctx, listing_id)
    return {"message": "Property deleted successfully"}


@router.put(
    "/{listing_id}/featured",
    response_model=ListingEnvelope,
    dependencies=[Depends(require_role(UserRole.admin))],
)
def toggle_featured(
    req: FeaturedRequest,
    listing_id: str = Path(..., min_length=1),
    conn: Connection = Depends(get_conn),
):
    listing = listings.set_featured(conn, listing_id, req.is_featured)
    state = "featured" if req.is_featured else "unfeatured"
    return {"message": f"Property {state} successfully", "property": listings.shape_listing(listing)}


@router.post("/{listing_id}/schedule-visit", response_model=VisitEnvelope, status_code=201)
def schedule_visit(
    req: VisitCreateRequest,
    listing_id: str = Path(..., min_length=1),
    principal: Principal = Depends(require_principal),
    conn: Connection = Depends(get_conn),
):
    visit = listings.schedule_visit(conn, principal, listing_id, req)
    return {"message": "Visit scheduled successfully", "data": visit}
