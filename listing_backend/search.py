"""
listing_backend/search.py

Filter Compiler: turns the flat, open-ended set of optional property-search
query parameters into an immutable SearchQuery.

A SearchQuery is a tuple of typed predicates (equality, range, substring,
set-membership, boolean-true), a fixed ordering and a page window. It is
storage-agnostic; store.py renders it into parameterized SQL. Field names in
predicates only ever come from the constants below, never from the request.

Pure Python logic - no FastAPI imports, no database access.
"""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple, Union

from listing_backend.config import DEFAULT_LIMIT, DEFAULT_PAGE, MAX_LIMIT
from listing_backend.errors import BadRequest
from listing_backend.models import FACILITIES, FACILITY_ALIASES, ListingStatus, Principal


# ============================================================================
# Predicates
# ============================================================================

@dataclass(frozen=True)
class Equals:
    field: str
    value: Any


@dataclass(frozen=True)
class Range:
    """Inclusive range; either bound may be open. min > max is allowed and matches nothing."""
    field: str
    minimum: Optional[float] = None
    maximum: Optional[float] = None


@dataclass(frozen=True)
class Contains:
    """Case-insensitive substring match, OR-ed across `fields`."""
    fields: Tuple[str, ...]
    value: str


@dataclass(frozen=True)
class InSet:
    field: str
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class IsTrue:
    field: str


Predicate = Union[Equals, Range, Contains, InSet, IsTrue]


@dataclass(frozen=True)
class OrderBy:
    field: str
    descending: bool = True


@dataclass(frozen=True)
class SearchQuery:
    predicates: Tuple[Predicate, ...]
    ordering: Tuple[OrderBy, ...]
    page: int
    limit: int
    offset: int


# Featured listings first, then newest. Ties keep the store's insertion order.
DEFAULT_ORDERING: Tuple[OrderBy, ...] = (
    OrderBy("is_featured", descending=True),
    OrderBy("created_at", descending=True),
)

# Query parameter -> listing column for "min/max" range filters
RANGE_PARAMS = (
    ("minPrice", "maxPrice", "price"),
    ("minArea", "maxArea", "area"),
)

# Query parameter -> listing column for "at least N" filters
AT_LEAST_PARAMS = (
    ("bedrooms", "bedrooms"),
    ("bathrooms", "bathrooms"),
)

# Upper bounds keep every bound value inside a 64-bit storage integer
MAX_ROOM_COUNT = 1000
MAX_PAGE = sys.maxsize // MAX_LIMIT

KEYWORD_FIELDS = ("title", "description")

ALL_STATUSES = "all"


# ============================================================================
# Parameter parsing
# ============================================================================

def _param(params: Mapping[str, Any], name: str) -> Optional[str]:
    """Return a trimmed parameter value; empty strings count as absent."""
    raw = params.get(name)
    if raw is None:
        return None
    value = str(raw).strip()
    return value or None


def _split(raw: str) -> Tuple[str, ...]:
    seen = []
    for part in raw.split(","):
        part = part.strip()
        if part and part not in seen:
            seen.append(part)
    return tuple(seen)


def parse_non_negative(
    name: str,
    raw: str,
    *,
    integer: bool = False,
    maximum: Optional[float] = None,
) -> Union[int, float]:
    """
    Parse a numeric filter value.

    Raises:
        BadRequest: value is not a finite, non-negative number
            (or not a whole number when `integer` is set, or above `maximum`)
    """
    try:
        value = float(raw)
    except ValueError:
        raise BadRequest(f"Invalid value for '{name}': must be a number", field=name, value=raw)
    if not math.isfinite(value) or value < 0:
        raise BadRequest(f"Invalid value for '{name}': must be a non-negative number", field=name, value=raw)
    if integer:
        if not value.is_integer():
            raise BadRequest(f"Invalid value for '{name}': must be a whole number", field=name, value=raw)
        value = int(value)
    if maximum is not None and value > maximum:
        raise BadRequest(f"Invalid value for '{name}': must be at most {maximum}", field=name, value=raw)
    return value


def _parse_page_number(name: str, raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        raise BadRequest(f"Invalid value for '{name}': must be an integer", field=name, value=raw)


def paginate(page_raw: Optional[str], limit_raw: Optional[str]) -> Tuple[int, int, int]:
    """
    Resolve (page, limit, offset).

    page defaults to 1 and never goes below it; limit defaults to 12, a
    non-positive limit falls back to the default and anything above 100 is
    clamped to 100. A page past MAX_PAGE is rejected.
    """
    page = _parse_page_number("page", page_raw)
    limit = _parse_page_number("limit", limit_raw)

    if page is not None and page > MAX_PAGE:
        raise BadRequest(f"Invalid value for 'page': must be at most {MAX_PAGE}", field="page", value=page_raw)

    if page is None or page < 1:
        page = DEFAULT_PAGE
    if limit is None or limit <= 0:
        limit = DEFAULT_LIMIT
    limit = min(limit, MAX_LIMIT)
    return page, limit, (page - 1) * limit


def normalize_facility(name: str) -> Optional[str]:
    """Map a client facility name onto its column, or None when unknown."""
    name = name.strip()
    if name in FACILITY_ALIASES:
        return FACILITY_ALIASES[name]
    snake = name.lower().replace("-", "_").replace(" ", "_")
    return snake if snake in FACILITIES else None


def _equals_or_in(field: str, raw: str) -> Predicate:
    values = _split(raw)
    if len(values) == 1:
        return Equals(field, values[0])
    return InSet(field, values)


def _status_predicate(raw: Optional[str], can_see_inactive: bool) -> Optional[Predicate]:
    active = Equals("status", ListingStatus.active.value)
    if not can_see_inactive or raw is None:
        return active
    if raw == ALL_STATUSES:
        return None

    allowed = {status.value for status in ListingStatus}
    values = _split(raw)
    unknown = [value for value in values if value not in allowed]
    if unknown:
        raise BadRequest(
            f"Invalid status filter: {', '.join(unknown)}",
            field="status",
            allowed=sorted(allowed),
        )
    return _equals_or_in("status", raw)


# ============================================================================
# Compiler
# ============================================================================

def compile_search(
    params: Mapping[str, Any],
    viewer: Optional[Principal] = None,
    *,
    owner_broker_id: Optional[str] = None,
) -> SearchQuery:
    """
    Compile request parameters into a SearchQuery.

    Args:
        params: raw query parameters; unrecognized keys are ignored
        viewer: the resolved principal, if the request carried a token
        owner_broker_id: restrict to one broker's listings (their dashboard)

    Returns:
        SearchQuery whose predicates combine with AND

    Raises:
        BadRequest: malformed numeric, pagination or status value
    """
    predicates = []

    if owner_broker_id is not None:
        predicates.append(Equals("broker_id", owner_broker_id))

    # Only admins and a broker looking at their own listings may ask for a
    # status other than active; everyone else silently gets active.
    can_see_inactive = owner_broker_id is not None or (viewer is not None and viewer.is_admin)
    status = _status_predicate(_param(params, "status"), can_see_inactive)
    if status is not None:
        predicates.append(status)

    property_type = _param(params, "propertyType")
    if property_type:
        predicates.append(_equals_or_in("property_type", property_type))

    listing_type = _param(params, "listingType")
    if listing_type:
        predicates.append(_equals_or_in("listing_type", listing_type))

    for min_name, max_name, field in RANGE_PARAMS:
        min_raw = _param(params, min_name)
        max_raw = _param(params, max_name)
        if min_raw is None and max_raw is None:
            continue
        predicates.append(Range(
            field,
            minimum=parse_non_negative(min_name, min_raw) if min_raw is not None else None,
            maximum=parse_non_negative(max_name, max_raw) if max_raw is not None else None,
        ))

    for name, field in AT_LEAST_PARAMS:
        raw = _param(params, name)
        if raw is not None:
            predicates.append(Range(field, minimum=parse_non_negative(name, raw, integer=True, maximum=MAX_ROOM_COUNT)))

    city = _param(params, "city")
    if city:
        predicates.append(Contains(("city",), city))

    keyword = _param(params, "keyword")
    if keyword:
        predicates.append(Contains(KEYWORD_FIELDS, keyword))

    facilities = _param(params, "facilities")
    if facilities:
        columns = {normalize_facility(name) for name in facilities.split(",")}
        columns.discard(None)
        predicates.extend(IsTrue(column) for column in sorted(columns))

    featured = _param(params, "featured")
    if featured and featured.lower() in ("true", "1", "yes"):
        predicates.append(IsTrue("is_featured"))

    page, limit, offset = paginate(_param(params, "page"), _param(params, "limit"))

    return SearchQuery(
        predicates=tuple(predicates),
        ordering=DEFAULT_ORDERING,
        page=page,
        limit=limit,
        offset=offset,
    )


def total_pages(total_count: int, limit: int) -> int:
    return math.ceil(total_count / limit) if limit else 0
