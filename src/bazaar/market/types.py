import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import assert_never


def utcnow() -> datetime:
    return datetime.now(UTC)


class Category(str, enum.Enum):
    """Fixed set of marketplace categories a request can be filed under."""

    AUTO_PARTS = "Auto Parts"
    PLUMBING = "Plumbing"
    ELECTRONICS = "Electronics"
    HARDWARE = "Hardware"
    COMPUTING = "Computing"
    HOME_IMPROVEMENT = "Home Improvement"
    APPLIANCES = "Appliances"
    GARDENING = "Gardening"
    SPORTING_GOODS = "Sporting Goods"
    INDUSTRIAL = "Industrial"
    GENERAL = "General"


MAX_CATEGORIES = 3


class RequestStatus(str, enum.Enum):
    ACTIVE = "active"
    PENDING_CONFIRMATION = "pending-confirmation"  # A quote was accepted by the buyer
    COMPLETED = "completed"  # A vendor confirmed the deal
    CANCELLED = "cancelled"  # Withdrawn by the buyer

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.COMPLETED, RequestStatus.CANCELLED)


class OfferStatus(str, enum.Enum):
    PENDING = "pending"
    USER_ACCEPTED = "user-accepted"
    USER_COUNTERED = "user-countered"
    VENDOR_COUNTERED = "vendor-countered"
    ON_HOLD = "on-hold"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_OFFER_STATUSES


TERMINAL_OFFER_STATUSES = frozenset(
    {OfferStatus.CONFIRMED, OfferStatus.REJECTED, OfferStatus.WITHDRAWN}
)


class Role(str, enum.Enum):
    USER = "user"
    VENDOR = "vendor"


class ContactSource(str, enum.Enum):
    PROFILE = "profile"
    EDITED = "edited"


class RentPeriod(str, enum.Enum):
    HOUR = "per hour"
    DAY = "per day"
    WEEK = "per week"
    MONTH = "per month"


@dataclass(frozen=True)
class Buyer:
    id: str
    name: str
    email: str


@dataclass(frozen=True)
class Vendor:
    id: str
    business_name: str
    email: str
    specialties: tuple[Category, ...] = ()
    phone: str | None = None


# A party taking part in a negotiation, discriminated by its concrete type.
Party = Buyer | Vendor


def role_of(party: Party) -> Role:
    if isinstance(party, Buyer):
        return Role.USER
    elif isinstance(party, Vendor):
        return Role.VENDOR
    else:
        assert_never(party)


@dataclass(frozen=True)
class RequestItem:
    id: str
    title: str
    description: str
    quantity: int = 1
    image_url: str | None = None


@dataclass(frozen=True)
class Request:
    """A buyer's multi-item enquiry sent out to vendors."""

    id: str
    user_id: str
    title: str
    items: tuple[RequestItem, ...]
    categories: tuple[Category, ...]
    status: RequestStatus = RequestStatus.ACTIVE
    created_at: datetime = field(default_factory=utcnow)
    targeted_vendor_ids: tuple[str, ...] | None = None
    source_product_id: str | None = None
    source_product_title: str | None = None

    def item(self, item_id: str) -> RequestItem | None:
        return next((i for i in self.items if i.id == item_id), None)

    @property
    def is_targeted(self) -> bool:
        return bool(self.targeted_vendor_ids)


@dataclass(frozen=True)
class QuotedItem:
    request_item_id: str
    price: float


@dataclass(frozen=True)
class SharedContactDetails:
    """Vendor contact details revealed to the buyer once a deal is confirmed."""

    business_name: str
    email: str
    phone: str
    source: ContactSource
    notes: str | None = None


@dataclass(frozen=True)
class Offer:
    """
    A vendor's itemized quote against a request.

    total_price is derived from quoted_items and the parent request's item
    quantities; build offers through the engine so it stays consistent.
    """

    id: str
    request_id: str
    vendor_id: str
    quoted_items: tuple[QuotedItem, ...]
    total_price: float
    status: OfferStatus = OfferStatus.PENDING
    created_at: datetime = field(default_factory=utcnow)
    notes: str | None = None
    shared_contact_details: SharedContactDetails | None = None


@dataclass(frozen=True)
class Product:
    """A catalog listing a vendor offers for sale or rent."""

    id: str
    vendor_id: str
    title: str
    description: str
    price: float
    category: Category
    image_url: str | None = None
    for_rent: bool = False
    rent_price: float | None = None
    rent_period: RentPeriod | None = None


@dataclass
class RequestDraft:
    """Unvalidated input for a new request."""

    user_id: str
    title: str
    items: list[RequestItem]
    categories: list[Category | str]
    targeted_vendor_ids: list[str] | None = None
    source_product_id: str | None = None
    source_product_title: str | None = None


@dataclass
class OfferDraft:
    """Unvalidated input for a new offer."""

    request_id: str
    vendor_id: str
    quoted_items: list[QuotedItem]
    notes: str | None = None
