"""
listing_backend/schemas.py

Pydantic request/response schemas for the HTTP surface.

The web client speaks camelCase; every schema accepts and emits camelCase
aliases while Python code uses snake_case field names.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from listing_backend.models import (
    Furnished,
    ListingStatus,
    ListingType,
    PropertyType,
    UserRole,
    VerificationStatus,
    VisitStatus,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ========================================================================
# AUTH SCHEMAS
# ========================================================================

class RegisterRequest(CamelModel):
    """Self-registration. Admin accounts are never created this way."""
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    password: str = Field(..., min_length=6, max_length=128)
    role: UserRole = UserRole.customer

    @field_validator("name", "phone", mode="before")
    @classmethod
    def trim(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("email must be a valid email address")
        return v

    @field_validator("role")
    @classmethod
    def no_self_service_admin(cls, v: UserRole) -> UserRole:
        if v == UserRole.admin:
            raise ValueError("role must be 'customer' or 'broker'")
        return v


class LoginRequest(CamelModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class BrokerProfileResponse(CamelModel):
    id: str
    user_id: str
    verification_status: VerificationStatus
    rejection_reason: Optional[str] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None
    company_name: Optional[str] = None
    license_number: Optional[str] = None
    years_of_experience: Optional[int] = None
    specialization: List[str] = Field(default_factory=list)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    serving_cities: Optional[str] = None
    about: Optional[str] = None
    profile_image: Optional[str] = None
    license_document: Optional[str] = None
    id_proof: Optional[str] = None
    is_featured: bool = False
    created_at: datetime
    updated_at: datetime


class UserResponse(CamelModel):
    """Never includes the password hash."""
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    role: UserRole
    is_active: bool = True
    last_login: Optional[datetime] = None
    created_at: datetime
    broker_profile: Optional[BrokerProfileResponse] = None


class AuthResponse(CamelModel):
    success: bool = True
    message: str
    token: str
    user: UserResponse


class MeResponse(CamelModel):
    success: bool = True
    user: UserResponse


# ========================================================================
# BROKER SCHEMAS
# ========================================================================

class BrokerProfileUpdateRequest(CamelModel):
    company_name: Optional[str] = Field(None, max_length=200)
    license_number: Optional[str] = Field(None, max_length=100)
    years_of_experience: Optional[int] = Field(None, ge=0, le=100)
    specialization: Optional[List[str]] = None
    address: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    pincode: Optional[str] = Field(None, max_length=20)
    serving_cities: Optional[str] = None
    about: Optional[str] = None
    profile_image: Optional[str] = None
    license_document: Optional[str] = None
    id_proof: Optional[str] = None


class VerifyBrokerRequest(CamelModel):
    verification_status: str
    rejection_reason: Optional[str] = None


class BrokerContact(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class BrokerAdminView(BrokerProfileResponse):
    user: BrokerContact


class BrokerPublicView(CamelModel):
    id: str
    company_name: Optional[str] = None
    license_number: Optional[str] = None
    years_of_experience: Optional[int] = None
    specialization: List[str] = Field(default_factory=list)
    city: Optional[str] = None
    serving_cities: Optional[str] = None
    about: Optional[str] = None
    profile_image: Optional[str] = None
    is_featured: bool = False
    verification_status: VerificationStatus
    name: Optional[str] = None


class BrokerResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None
    data: BrokerProfileResponse


class BrokerAdminResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None
    data: BrokerAdminView


class BrokerAdminListResponse(CamelModel):
    success: bool = True
    count: int
    data: List[BrokerAdminView]


class BrokerPublicResponse(CamelModel):
    success: bool = True
    data: BrokerPublicView


class BrokerPublicListResponse(CamelModel):
    success: bool = True
    count: int
    data: List[BrokerPublicView]


class AdminStatsResponse(CamelModel):
    success: bool = True
    brokers: Dict[str, int]
    users: Dict[str, int]


# ========================================================================
# LISTING SCHEMAS
# ========================================================================

class ListingCreateRequest(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    property_type: PropertyType
    listing_type: ListingType
    price: float = Field(..., ge=0)
    address: Optional[str] = None
    city: str = Field(..., min_length=1, max_length=100)
    state: Optional[str] = None
    pincode: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    bedrooms: int = Field(0, ge=0)
    bathrooms: int = Field(0, ge=0)
    dining_rooms: int = Field(0, ge=0)
    area: Optional[float] = Field(None, ge=0)
    furnished: Optional[Furnished] = None
    facilities: List[str] = Field(default_factory=list, description="Facility names, e.g. ['wifi', 'swimmingPool']")
    images: List[str] = Field(default_factory=list)
    year_built: Optional[int] = Field(None, ge=1800, le=2100)
    condition: Optional[str] = None
    style: Optional[str] = None
    status: ListingStatus = ListingStatus.active

    @field_validator("title", "city", mode="before")
    @classmethod
    def trim(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class ListingUpdateRequest(CamelModel):
    """Partial update; only fields present in the body are written."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    property_type: Optional[PropertyType] = None
    listing_type: Optional[ListingType] = None
    price: Optional[float] = Field(None, ge=0)
    address: Optional[str] = None
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[str] = None
    pincode: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    dining_rooms: Optional[int] = Field(None, ge=0)
    area: Optional[float] = Field(None, ge=0)
    furnished: Optional[Furnished] = None
    facilities: Optional[List[str]] = None
    images: Optional[List[str]] = None
    year_built: Optional[int] = Field(None, ge=1800, le=2100)
    condition: Optional[str] = None
    style: Optional[str] = None
    status: Optional[ListingStatus] = None


class FeaturedRequest(CamelModel):
    is_featured: bool


class Location(CamelModel):
    address: Optional[str] = None
    city: str
    state: Optional[str] = None
    pincode: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class Specifications(CamelModel):
    bedrooms: int = 0
    bathrooms: int = 0
    dining_rooms: int = 0
    area: Optional[float] = None
    furnished: Optional[str] = None


class ListingBroker(CamelModel):
    id: str
    user_id: Optional[str] = None
    company: Optional[str] = None
    license_number: Optional[str] = None
    experience: Optional[int] = None


class ListingResponse(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    property_type: str
    listing_type: str
    price: float
    location: Location
    specifications: Specifications
    facilities: Dict[str, bool]
    images: List[str] = Field(default_factory=list)
    year_built: Optional[int] = None
    condition: Optional[str] = None
    style: Optional[str] = None
    status: ListingStatus
    is_featured: bool = False
    views: int = 0
    inquiries: int = 0
    broker: Optional[ListingBroker] = None
    created_at: datetime
    updated_at: datetime


class ListingEnvelope(CamelModel):
    success: bool = True
    message: Optional[str] = None
    property: ListingResponse


class ListingSearchResponse(CamelModel):
    success: bool = True
    count: int
    total_count: int
    current_page: int
    total_pages: int
    properties: List[ListingResponse]


class SuccessResponse(CamelModel):
    success: bool = True
    message: str


# ========================================================================
# MESSAGE SCHEMAS
# ========================================================================

class MessageCreateRequest(CamelModel):
    receiver_id: Optional[str] = None
    recipient_id: Optional[str] = None  # older web clients send this name
    property_id: Optional[str] = None
    subject: Optional[str] = Field(None, max_length=255)
    message: str = ""


class MessageResponse(CamelModel):
    id: str
    sender_id: str
    receiver_id: str
    property_id: Optional[str] = None
    subject: Optional[str] = None
    message: str
    is_read: bool
    created_at: datetime


class MessageEnvelope(CamelModel):
    success: bool = True
    message: Optional[str] = None
    data: MessageResponse


class MessageListResponse(CamelModel):
    success: bool = True
    messages: List[MessageResponse]


class ConversationResponse(CamelModel):
    counterpart_id: str
    counterpart_name: Optional[str] = None
    counterpart_email: Optional[str] = None
    counterpart_role: Optional[str] = None
    last_message: str
    last_message_time: datetime
    unread_count: int


class ConversationListResponse(CamelModel):
    success: bool = True
    conversations: List[ConversationResponse]


class UnreadCountResponse(CamelModel):
    success: bool = True
    unread_count: int


class MarkedReadResponse(CamelModel):
    success: bool = True
    message: str
    marked_count: int


# ========================================================================
# VISIT SCHEMAS
# ========================================================================

class VisitCreateRequest(CamelModel):
    scheduled_date: date
    scheduled_time: time
    message: Optional[str] = Field(None, max_length=2000)


class VisitStatusRequest(CamelModel):
    status: VisitStatus


class VisitResponse(CamelModel):
    id: str
    user_id: str
    property_id: str
    property_title: Optional[str] = None
    property_city: Optional[str] = None
    scheduled_date: str
    scheduled_time: str
    message: Optional[str] = None
    status: VisitStatus
    created_at: datetime
    updated_at: datetime


class VisitEnvelope(CamelModel):
    success: bool = True
    message: Optional[str] = None
    data: VisitResponse


class VisitListResponse(CamelModel):
    success: bool = True
    count: int
    data: List[VisitResponse]

