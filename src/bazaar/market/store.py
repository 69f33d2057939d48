"""
Repository interface the negotiation engine reads from and commits through.

Collections are indexed by id and hold immutable entities; a mutation is a
Changeset that replaces entities wholesale after a compare-and-swap on the
statuses the engine observed.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

import structlog

from .errors import ConcurrentModification
from .types import (
    Buyer,
    Offer,
    OfferStatus,
    Product,
    Request,
    RequestStatus,
    Vendor,
)

logger = structlog.get_logger(__name__)


@dataclass
class Changeset:
    """All writes of one engine operation, applied together or not at all."""

    requests: list[Request] = field(default_factory=list)
    offers: list[Offer] = field(default_factory=list)
    # Status each updated entity must still have at commit time.
    # Entities without an entry are inserts.
    expected_requests: dict[str, RequestStatus] = field(default_factory=dict)
    expected_offers: dict[str, OfferStatus] = field(default_factory=dict)
    # Requests read but not written, and the offer ids each request had
    guarded_requests: dict[str, RequestStatus] = field(default_factory=dict)
    guarded_offer_sets: dict[str, frozenset[str]] = field(default_factory=dict)

    def update_request(self, before: Request, after: Request) -> None:
        self.expected_requests[before.id] = before.status
        self.requests.append(after)

    def update_offer(self, before: Offer, after: Offer) -> None:
        self.expected_offers[before.id] = before.status
        self.offers.append(after)

    def insert_request(self, request: Request) -> None:
        self.requests.append(request)

    def insert_offer(self, offer: Offer) -> None:
        self.offers.append(offer)

    def guard_request(self, request: Request) -> None:
        """Require ``request`` to keep its status without rewriting it."""
        if request.id not in self.expected_requests:
            self.guarded_requests[request.id] = request.status

    def guard_offer_set(self, request_id: str, offers: Iterable[Offer]) -> None:
        """Require the request to have exactly these offers at commit time."""
        self.guarded_offer_sets[request_id] = frozenset(o.id for o in offers)

    @property
    def locked_request_ids(self) -> list[str]:
        ids = [r.id for r in self.requests]
        ids.extend(i for i in self.guarded_requests if i not in ids)
        return ids


def verify_status(
    entity_id: str,
    current: RequestStatus | OfferStatus | None,
    expected: RequestStatus | OfferStatus | None,
) -> None:
    """Compare-and-swap check for one entity; None means absent / insert."""
    if expected is None:
        if current is not None:
            raise ConcurrentModification(entity_id, "absent", current.value)
        return
    if current != expected:
        raise ConcurrentModification(
            entity_id, expected.value, current.value if current else None
        )


def verify_offer_set(
    request_id: str, current: Iterable[str], expected: frozenset[str]
) -> None:
    """Fail if offers were added to or removed from the request since it was read."""
    found = frozenset(current)
    if found != expected:
        raise ConcurrentModification(
            request_id, f"{len(expected)} offers", f"{len(found)} offers"
        )


class MarketStore(Protocol):
    """Persistence/sync collaborator for the marketplace collections."""

    def get_request(self, request_id: str) -> Request | None: ...

    def list_requests(self, user_id: str | None = None) -> list[Request]: ...

    def get_offer(self, offer_id: str) -> Offer | None: ...

    def list_offers(
        self, request_id: str | None = None, vendor_id: str | None = None
    ) -> list[Offer]: ...

    def apply(self, changeset: Changeset) -> None:
        """Commit a changeset atomically.

        Raises:
            ConcurrentModification: If any touched or guarded entity no longer
                has the status recorded in the changeset, a guarded request
                gained or lost offers, or an insert collides.
        """
        ...

    def add_buyer(self, buyer: Buyer) -> None: ...

    def get_buyer(self, buyer_id: str) -> Buyer | None: ...

    def list_buyers(self) -> list[Buyer]: ...

    def add_vendor(self, vendor: Vendor) -> None: ...

    def get_vendor(self, vendor_id: str) -> Vendor | None: ...

    def list_vendors(self) -> list[Vendor]: ...

    def save_product(self, product: Product) -> None: ...

    def get_product(self, product_id: str) -> Product | None: ...

    def list_products(self, vendor_id: str | None = None) -> list[Product]: ...


class InMemoryMarketStore:
    """Single-process arena of marketplace entities keyed by id."""

    def __init__(self) -> None:
        self._requests: dict[str, Request] = {}
        self._offers: dict[str, Offer] = {}
        self._buyers: dict[str, Buyer] = {}
        self._vendors: dict[str, Vendor] = {}
        self._products: dict[str, Product] = {}

    def get_request(self, request_id: str) -> Request | None:
        return self._requests.get(request_id)

    def list_requests(self, user_id: str | None = None) -> list[Request]:
        return [
            r
            for r in self._requests.values()
            if user_id is None or r.user_id == user_id
        ]

    def get_offer(self, offer_id: str) -> Offer | None:
        return self._offers.get(offer_id)

    def list_offers(
        self, request_id: str | None = None, vendor_id: str | None = None
    ) -> list[Offer]:
        return [
            o
            for o in self._offers.values()
            if (request_id is None or o.request_id == request_id)
            and (vendor_id is None or o.vendor_id == vendor_id)
        ]

    def apply(self, changeset: Changeset) -> None:
        # Verify everything before writing anything
        for request in changeset.requests:
            current = self._requests.get(request.id)
            verify_status(
                request.id,
                current.status if current else None,
                changeset.expected_requests.get(request.id),
            )
        for request_id, expected in changeset.guarded_requests.items():
            current = self._requests.get(request_id)
            verify_status(request_id, current.status if current else None, expected)
        for request_id, expected_ids in changeset.guarded_offer_sets.items():
            verify_offer_set(
                request_id,
                (o.id for o in self._offers.values() if o.request_id == request_id),
                expected_ids,
            )
        for offer in changeset.offers:
            current = self._offers.get(offer.id)
            verify_status(
                offer.id,
                current.status if current else None,
                changeset.expected_offers.get(offer.id),
            )

        for request in changeset.requests:
            self._requests[request.id] = request
        for offer in changeset.offers:
            self._offers[offer.id] = offer

        logger.debug(
            "changeset_applied",
            requests=len(changeset.requests),
            offers=len(changeset.offers),
        )

    def add_buyer(self, buyer: Buyer) -> None:
        self._buyers[buyer.id] = buyer

    def get_buyer(self, buyer_id: str) -> Buyer | None:
        return self._buyers.get(buyer_id)

    def list_buyers(self) -> list[Buyer]:
        return list(self._buyers.values())

    def add_vendor(self, vendor: Vendor) -> None:
        self._vendors[vendor.id] = vendor

    def get_vendor(self, vendor_id: str) -> Vendor | None:
        return self._vendors.get(vendor_id)

    def list_vendors(self) -> list[Vendor]:
        return list(self._vendors.values())

    def save_product(self, product: Product) -> None:
        self._products[product.id] = product

    def get_product(self, product_id: str) -> Product | None:
        return self._products.get(product_id)

    def list_products(self, vendor_id: str | None = None) -> list[Product]:
        return [
            p
            for p in self._products.values()
            if vendor_id is None or p.vendor_id == vendor_id
        ]
