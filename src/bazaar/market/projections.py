"""
Role-specific views over the request and offer collections.

All functions are pure: they take the current collections and return the
requests that belong in a view, preserving input order.

Buyer tabs are keyed off the request's own status, vendor tabs off the
vendor's latest offer on each request. The two sides therefore do not always
agree (a vendor's pending offer on a cancelled request shows in both the
vendor's active and history tabs). That asymmetry is long-standing marketplace
behavior and is kept as is.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import assert_never

from .types import (
    Buyer,
    Offer,
    OfferStatus,
    Party,
    Request,
    RequestStatus,
    Vendor,
)


@dataclass(frozen=True)
class Tab:
    """A named view selecting requests by offer status or request status."""

    name: str
    offer_statuses: frozenset[OfferStatus] = frozenset()
    request_statuses: frozenset[RequestStatus] = frozenset()


ACTIVE = "active"
CONFIRMED = "confirmed"
HISTORY = "history"

USER_TABS: tuple[Tab, ...] = (
    Tab(
        ACTIVE,
        request_statuses=frozenset(
            {RequestStatus.ACTIVE, RequestStatus.PENDING_CONFIRMATION}
        ),
    ),
    Tab(CONFIRMED, request_statuses=frozenset({RequestStatus.COMPLETED})),
    Tab(HISTORY, request_statuses=frozenset({RequestStatus.CANCELLED})),
)

VENDOR_TABS: tuple[Tab, ...] = (
    Tab(
        ACTIVE,
        offer_statuses=frozenset(
            {
                OfferStatus.PENDING,
                OfferStatus.USER_ACCEPTED,
                OfferStatus.ON_HOLD,
                OfferStatus.USER_COUNTERED,
                OfferStatus.VENDOR_COUNTERED,
            }
        ),
    ),
    Tab(CONFIRMED, offer_statuses=frozenset({OfferStatus.CONFIRMED})),
    Tab(
        HISTORY,
        offer_statuses=frozenset({OfferStatus.REJECTED, OfferStatus.WITHDRAWN}),
        request_statuses=frozenset({RequestStatus.CANCELLED}),
    ),
)


def latest_offers(vendor_id: str, offers: Iterable[Offer]) -> dict[str, Offer]:
    """The most recent offer ``vendor_id`` made on each request, by request id."""
    latest: dict[str, Offer] = {}
    for offer in offers:
        if offer.vendor_id != vendor_id:
            continue
        current = latest.get(offer.request_id)
        # later entries win ties so insertion order breaks equal timestamps
        if current is None or offer.created_at >= current.created_at:
            latest[offer.request_id] = offer
    return latest


def project(
    viewer: Party,
    tab: Tab,
    requests: Sequence[Request],
    offers: Iterable[Offer],
) -> list[Request]:
    """Requests ``viewer`` sees under ``tab``."""
    if isinstance(viewer, Buyer):
        return [
            r
            for r in requests
            if r.user_id == viewer.id and r.status in tab.request_statuses
        ]
    elif isinstance(viewer, Vendor):
        mine = latest_offers(viewer.id, offers)
        selected = []
        for request in requests:
            offer = mine.get(request.id)
            if offer is None:
                continue
            if (
                offer.status in tab.offer_statuses
                or request.status in tab.request_statuses
            ):
                selected.append(request)
        return selected
    else:
        assert_never(viewer)


def tabs_for(
    viewer: Party, requests: Sequence[Request], offers: Sequence[Offer]
) -> dict[str, list[Request]]:
    if isinstance(viewer, Buyer):
        tabs = USER_TABS
    elif isinstance(viewer, Vendor):
        tabs = VENDOR_TABS
    else:
        assert_never(viewer)
    return {tab.name: project(viewer, tab, requests, offers) for tab in tabs}


def _tab(tabs: tuple[Tab, ...], name: str) -> Tab:
    return next(t for t in tabs if t.name == name)


def active_enquiries_for_vendor(vendor, requests, offers) -> list[Request]:
    return project(vendor, _tab(VENDOR_TABS, ACTIVE), requests, offers)


def confirmed_orders_for_vendor(vendor, requests, offers) -> list[Request]:
    return project(vendor, _tab(VENDOR_TABS, CONFIRMED), requests, offers)


def enquiry_history_for_vendor(vendor, requests, offers) -> list[Request]:
    return project(vendor, _tab(VENDOR_TABS, HISTORY), requests, offers)


def active_enquiries_for_user(user, requests, offers=()) -> list[Request]:
    return project(user, _tab(USER_TABS, ACTIVE), requests, offers)


def confirmed_orders_for_user(user, requests, offers=()) -> list[Request]:
    return project(user, _tab(USER_TABS, CONFIRMED), requests, offers)


def history_for_user(user, requests, offers=()) -> list[Request]:
    return project(user, _tab(USER_TABS, HISTORY), requests, offers)


def leads_for_vendor(
    vendor: Vendor, requests: Sequence[Request], offers: Iterable[Offer]
) -> list[Request]:
    """
    Requests a vendor could quote on.

    A lead is an active request that is either open to everyone and shares a
    category with the vendor's specialties, or explicitly targeted at the
    vendor. Requests the vendor already won are never leads, nor are closed
    requests the vendor never quoted on.
    """
    mine = [o for o in offers if o.vendor_id == vendor.id]
    fulfilled = {o.request_id for o in mine if o.status == OfferStatus.CONFIRMED}
    quoted = {o.request_id for o in mine}
    specialties = set(vendor.specialties)

    leads = []
    for request in requests:
        if request.id in fulfilled:
            continue
        if request.status.is_terminal and request.id not in quoted:
            continue
        if request.status != RequestStatus.ACTIVE:
            continue
        public_match = not request.is_targeted and bool(
            specialties.intersection(request.categories)
        )
        targeted_here = vendor.id in (request.targeted_vendor_ids or ())
        if public_match or targeted_here:
            leads.append(request)
    return leads


@dataclass(frozen=True)
class MarketplaceStats:
    buyers: int
    vendors: int
    requests: int
    active_requests: int
    offers: int
    confirmed_deals: int


def marketplace_stats(
    buyers: Sequence[Buyer],
    vendors: Sequence[Vendor],
    requests: Sequence[Request],
    offers: Sequence[Offer],
) -> MarketplaceStats:
    """Platform-wide counts for the admin overview."""
    return MarketplaceStats(
        buyers=len(buyers),
        vendors=len(vendors),
        requests=len(requests),
        active_requests=sum(1 for r in requests if r.status == RequestStatus.ACTIVE),
        offers=len(offers),
        confirmed_deals=sum(1 for o in offers if o.status == OfferStatus.CONFIRMED),
    )
