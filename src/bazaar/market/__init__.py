"""Enquiry marketplace core: request and offer types, negotiation engine, views."""

from .engine import NegotiationEngine, Transition
from .errors import (
    ConcurrentModification,
    Failure,
    Forbidden,
    InvalidTransition,
    MarketError,
    NotFound,
    Outcome,
    RequestTerminal,
    Success,
    ValidationError,
    ValidationKind,
)
from .store import Changeset, InMemoryMarketStore, MarketStore
from .types import (
    Buyer,
    Category,
    ContactSource,
    Offer,
    OfferDraft,
    OfferStatus,
    Party,
    Product,
    QuotedItem,
    Request,
    RequestDraft,
    RequestItem,
    RequestStatus,
    Role,
    SharedContactDetails,
    Vendor,
)

__all__ = [
    "Buyer",
    "Category",
    "Changeset",
    "ConcurrentModification",
    "ContactSource",
    "Failure",
    "Forbidden",
    "InMemoryMarketStore",
    "InvalidTransition",
    "MarketError",
    "MarketStore",
    "NegotiationEngine",
    "NotFound",
    "Offer",
    "OfferDraft",
    "OfferStatus",
    "Outcome",
    "Party",
    "Product",
    "QuotedItem",
    "Request",
    "RequestDraft",
    "RequestItem",
    "RequestStatus",
    "RequestTerminal",
    "Role",
    "SharedContactDetails",
    "Success",
    "Transition",
    "ValidationError",
    "ValidationKind",
    "Vendor",
]
