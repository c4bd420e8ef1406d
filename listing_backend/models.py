from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# Enums
class UserRole(str, Enum):
    customer = "customer"
    broker = "broker"
    admin = "admin"


class VerificationStatus(str, Enum):
    pending = "pending"
    verified = "verified"
    rejected = "rejected"


class ListingStatus(str, Enum):
    active = "active"
    pending = "pending"
    sold = "sold"
    rented = "rented"
    inactive = "inactive"


class ListingType(str, Enum):
    sale = "sale"
    rent = "rent"


class PropertyType(str, Enum):
    residential = "residential"
    commercial = "commercial"
    land = "land"
    luxury = "luxury"
    # Legacy categories still present on older listings
    apartment = "Apartment"
    villa = "Villa"
    house = "House"
    commercial_legacy = "Commercial"
    land_legacy = "Land"
    office = "Office"
    shop = "Shop"
    warehouse = "Warehouse"


class Furnished(str, Enum):
    furnished = "furnished"
    semi_furnished = "semi-furnished"
    unfurnished = "unfurnished"


class VisitStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    rejected = "rejected"
    completed = "completed"
    cancelled = "cancelled"


# Facility flags; each is a boolean storage column of the same name
FACILITIES = frozenset({
    "parking_slot",
    "wifi",
    "security",
    "kitchen",
    "ac",
    "swimming_pool",
    "gym",
    "pet_allowed",
    "home_theater",
    "spa",
    "elevator",
    "conference_room",
    "gated_community",
    "water_supply",
    "electricity",
})

# camelCase spellings used by the web client
FACILITY_ALIASES = {
    "parkingSlot": "parking_slot",
    "parking": "parking_slot",
    "swimmingPool": "swimming_pool",
    "pool": "swimming_pool",
    "petAllowed": "pet_allowed",
    "homeTheater": "home_theater",
    "conferenceRoom": "conference_room",
    "gatedCommunity": "gated_community",
    "waterSupply": "water_supply",
}


# Records
class BrokerProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    verification_status: VerificationStatus = VerificationStatus.pending
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
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Message(BaseModel):
    id: str
    sender_id: str
    receiver_id: str
    property_id: Optional[str] = None
    subject: str = "Property Inquiry"
    message: str
    is_read: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Conversation(BaseModel):
    """Per-counterpart summary of a message thread. Never stored."""
    counterpart_id: str
    counterpart_name: Optional[str] = None
    counterpart_email: Optional[str] = None
    counterpart_role: Optional[str] = None
    last_message: str
    last_message_time: datetime
    unread_count: int = 0


class Principal(BaseModel):
    """Identity resolved from a verified bearer token. Rebuilt every request."""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin

    @property
    def is_broker(self) -> bool:
        return self.role == UserRole.broker
