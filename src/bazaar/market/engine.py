"""
Offer negotiation state machine.

Every operation reads a consistent snapshot of one request and its offers from
the store, checks the transition against the current statuses, and commits
all resulting writes as a single Changeset. A rejected operation leaves the
store untouched.

Request:  active -> pending-confirmation -> completed
          active -> cancelled
          pending-confirmation -> active   (accepted offer rejected)

Offer:    pending --hold--> on-hold
          pending | on-hold | vendor-countered --accept--> user-accepted
          pending | on-hold | vendor-countered --counter(user)--> user-countered
          user-countered --counter(vendor)--> vendor-countered
          pending --withdraw--> withdrawn
          user-accepted | user-countered --confirm--> confirmed
          any non-terminal --reject--> rejected
"""

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import assert_never

import structlog

from bazaar.config.negotiation import NegotiationSettings

from . import disclosure
from .errors import (
    ConcurrentModification,
    Forbidden,
    InvalidTransition,
    NotFound,
    RequestTerminal,
    ValidationError,
    ValidationKind,
)
from .pricing import compute_total
from .store import Changeset, MarketStore
from .types import (
    Buyer,
    Offer,
    OfferDraft,
    OfferStatus,
    Party,
    QuotedItem,
    Request,
    RequestDraft,
    RequestStatus,
    Role,
    SharedContactDetails,
    Vendor,
    role_of,
)
from .validation import validate_offer_draft, validate_quoted_items, validate_request

logger = structlog.get_logger(__name__)

ACCEPTABLE = frozenset(
    {OfferStatus.PENDING, OfferStatus.ON_HOLD, OfferStatus.VENDOR_COUNTERED}
)
USER_COUNTERABLE = ACCEPTABLE
CONFIRMABLE = frozenset({OfferStatus.USER_ACCEPTED, OfferStatus.USER_COUNTERED})


@dataclass
class Transition:
    """Result of a successful operation: the request and its full offer set."""

    request: Request
    offers: list[Offer]
    changed: list[Offer] = field(default_factory=list)
    previous_request_status: RequestStatus | None = None

    def offer(self, offer_id: str) -> Offer:
        found = next((o for o in self.offers if o.id == offer_id), None)
        if found is None:
            raise NotFound("Offer", offer_id)
        return found

    @property
    def request_changed(self) -> bool:
        return (
            self.previous_request_status is not None
            and self.previous_request_status != self.request.status
        )


class NegotiationEngine:
    """Validates and applies negotiation operations against a MarketStore."""

    def __init__(
        self, store: MarketStore, settings: NegotiationSettings | None = None
    ):
        self.store = store
        self.settings = settings or NegotiationSettings()

    # --- Requests ---

    def create_request(self, draft: RequestDraft) -> Request:
        request = validate_request(draft)
        changeset = Changeset()
        changeset.insert_request(request)
        self._commit(changeset, "create_request")
        logger.info(
            "request_created",
            request_id=request.id,
            user_id=request.user_id,
            items=len(request.items),
            categories=[c.value for c in request.categories],
            targeted=request.is_targeted,
        )
        return request

    def cancel_request(self, request_id: str, actor: Party | None = None) -> Transition:
        request = self._get_request(request_id)
        self._ensure_open(request)
        if actor is not None:
            self._authorize(actor, Role.USER, request, None, "cancel")
        if request.status != RequestStatus.ACTIVE:
            raise InvalidTransition(request.status.value, RequestStatus.CANCELLED.value)

        changeset = Changeset()
        updated = replace(request, status=RequestStatus.CANCELLED)
        changeset.update_request(request, updated)
        self._commit(changeset, "cancel")
        logger.info("request_cancelled", request_id=request.id)
        return self._transition(updated, [], request.status)

    # --- Offers ---

    def create_offer(self, draft: OfferDraft) -> Offer:
        request = self._get_request(draft.request_id)
        self._ensure_open(request)
        if request.status != RequestStatus.ACTIVE:
            raise InvalidTransition(
                request.status.value,
                OfferStatus.PENDING.value,
                "Offers can only be made on active requests",
            )

        if self.settings.single_offer_per_vendor:
            live = [
                o
                for o in self.store.list_offers(
                    request_id=request.id, vendor_id=draft.vendor_id
                )
                if not o.status.is_terminal
            ]
            if live:
                raise ValidationError(
                    ValidationKind.DUPLICATE_OFFER,
                    "You already have an open offer on this request",
                    offer_id=live[0].id,
                )

        offer = validate_offer_draft(draft, request)
        changeset = Changeset()
        changeset.insert_offer(offer)
        changeset.guard_request(request)
        self._commit(changeset, "create_offer")
        logger.info(
            "offer_created",
            offer_id=offer.id,
            request_id=request.id,
            vendor_id=offer.vendor_id,
            total_price=offer.total_price,
        )
        return offer

    def accept(self, offer_id: str, actor: Party | None = None) -> Transition:
        """Buyer accepts a quote; the request waits for vendor confirmation."""
        offer, request = self._load(offer_id)
        attempted = OfferStatus.USER_ACCEPTED
        if actor is not None:
            self._authorize(actor, Role.USER, request, offer, attempted.value)
        self._require_offer(offer, ACCEPTABLE, attempted)
        self._require_request(request, {RequestStatus.ACTIVE}, attempted)

        changeset = Changeset()
        accepted = replace(offer, status=attempted)
        changeset.update_offer(offer, accepted)
        changeset.update_request(
            request, replace(request, status=RequestStatus.PENDING_CONFIRMATION)
        )
        return self._finish(changeset, request, "accept")

    def hold(self, offer_id: str, actor: Party | None = None) -> Transition:
        offer, request = self._load(offer_id)
        attempted = OfferStatus.ON_HOLD
        if actor is not None:
            self._authorize(actor, Role.USER, request, offer, attempted.value)
        self._require_offer(offer, {OfferStatus.PENDING}, attempted)
        self._require_request(request, {RequestStatus.ACTIVE}, attempted)

        changeset = Changeset()
        changeset.update_offer(offer, replace(offer, status=attempted))
        return self._finish(changeset, request, "hold")

    def counter(
        self,
        offer_id: str,
        quoted_items: Iterable[QuotedItem],
        by: Role,
        actor: Party | None = None,
    ) -> Transition:
        """
        Replace the quoted prices with a counter proposal.

        The buyer counters an open quote and the vendor may answer a buyer
        counter. Unless the negotiation policy makes the vendor counter final,
        the buyer may counter again. The total is recomputed from the new
        prices against the request's items and the previous prices are dropped.
        """
        by = Role(by)
        offer, request = self._load(offer_id)
        if actor is not None:
            self._authorize(actor, by, request, offer, "counter")

        if by == Role.USER:
            attempted = OfferStatus.USER_COUNTERED
            allowed = set(USER_COUNTERABLE)
            if self.settings.vendor_counter_is_final:
                allowed.discard(OfferStatus.VENDOR_COUNTERED)
            self._require_offer(offer, allowed, attempted)
            self._require_request(request, {RequestStatus.ACTIVE}, attempted)
        elif by == Role.VENDOR:
            attempted = OfferStatus.VENDOR_COUNTERED
            self._require_offer(offer, {OfferStatus.USER_COUNTERED}, attempted)
        else:
            assert_never(by)

        quoted = validate_quoted_items(request, quoted_items)
        countered = replace(
            offer,
            quoted_items=quoted,
            total_price=compute_total(request.items, quoted),
            status=attempted,
        )
        changeset = Changeset()
        changeset.update_offer(offer, countered)
        transition = self._finish(changeset, request, "counter")
        logger.info(
            "offer_countered",
            offer_id=offer.id,
            by=by.value,
            previous_total=offer.total_price,
            total_price=countered.total_price,
        )
        return transition

    def reject(self, offer_id: str, actor: Party | None = None) -> Transition:
        """
        Either party declines a quote.

        Rejecting the quote the buyer had accepted reopens the request.
        """
        offer, request = self._load(offer_id)
        attempted = OfferStatus.REJECTED
        if actor is not None:
            self._authorize(actor, None, request, offer, attempted.value)
        if offer.status.is_terminal:
            raise InvalidTransition(offer.status.value, attempted.value)

        changeset = Changeset()
        changeset.update_offer(offer, replace(offer, status=attempted))
        if (
            offer.status == OfferStatus.USER_ACCEPTED
            and request.status == RequestStatus.PENDING_CONFIRMATION
        ):
            changeset.update_request(
                request, replace(request, status=RequestStatus.ACTIVE)
            )
        return self._finish(changeset, request, "reject")

    def withdraw(self, offer_id: str, actor: Party | None = None) -> Transition:
        offer, request = self._load(offer_id)
        attempted = OfferStatus.WITHDRAWN
        if actor is not None:
            self._authorize(actor, Role.VENDOR, request, offer, attempted.value)
        self._require_offer(offer, {OfferStatus.PENDING}, attempted)

        changeset = Changeset()
        changeset.update_offer(offer, replace(offer, status=attempted))
        return self._finish(changeset, request, "withdraw")

    def confirm(
        self,
        offer_id: str,
        shared_details: SharedContactDetails | None,
        actor: Party | None = None,
    ) -> Transition:
        """
        Vendor closes the deal and discloses contact details.

        One atomic write: this offer becomes confirmed, every other open offer
        on the request is rejected, and the request completes.
        """
        offer, request = self._load(offer_id)
        attempted = OfferStatus.CONFIRMED
        if actor is not None:
            self._authorize(actor, Role.VENDOR, request, offer, attempted.value)
        self._require_offer(offer, CONFIRMABLE, attempted)
        if offer.status == OfferStatus.USER_ACCEPTED:
            self._require_request(
                request, {RequestStatus.PENDING_CONFIRMATION}, attempted
            )
        if shared_details is None:
            raise ValidationError(
                ValidationKind.INCOMPLETE_CONTACT_DETAILS,
                "Contact details must be shared to confirm a deal",
                offer_id=offer.id,
            )

        changeset = Changeset()
        changeset.update_offer(offer, disclosure.attach(offer, shared_details))
        offers = self.store.list_offers(request_id=request.id)
        changeset.guard_offer_set(request.id, offers)
        siblings = [o for o in offers if o.id != offer.id]
        for sibling in siblings:
            if not sibling.status.is_terminal:
                changeset.update_offer(
                    sibling, replace(sibling, status=OfferStatus.REJECTED)
                )
        changeset.update_request(
            request, replace(request, status=RequestStatus.COMPLETED)
        )
        transition = self._finish(changeset, request, "confirm")
        logger.info(
            "offer_confirmed",
            offer_id=offer.id,
            request_id=request.id,
            vendor_id=offer.vendor_id,
            total_price=offer.total_price,
            contact_source=shared_details.source.value,
            siblings_rejected=len(changeset.offers) - 1,
        )
        return transition

    def apply_status(
        self,
        offer_id: str,
        new_status: OfferStatus,
        shared_details: SharedContactDetails | None = None,
        actor: Party | None = None,
    ) -> Transition:
        """Route a requested target status to the operation that produces it."""
        if new_status == OfferStatus.USER_ACCEPTED:
            return self.accept(offer_id, actor)
        if new_status == OfferStatus.ON_HOLD:
            return self.hold(offer_id, actor)
        if new_status == OfferStatus.REJECTED:
            return self.reject(offer_id, actor)
        if new_status == OfferStatus.WITHDRAWN:
            return self.withdraw(offer_id, actor)
        if new_status == OfferStatus.CONFIRMED:
            return self.confirm(offer_id, shared_details, actor)

        # pending is only ever an initial status and counters carry prices
        offer, _ = self._load(offer_id)
        raise InvalidTransition(
            offer.status.value,
            new_status.value,
            f"'{new_status.value}' cannot be set directly",
        )

    # --- Internals ---

    def _get_request(self, request_id: str) -> Request:
        request = self.store.get_request(request_id)
        if request is None:
            raise NotFound("Request", request_id)
        return request

    def _load(self, offer_id: str) -> tuple[Offer, Request]:
        offer = self.store.get_offer(offer_id)
        if offer is None:
            raise NotFound("Offer", offer_id)
        request = self._get_request(offer.request_id)
        self._ensure_open(request)
        return offer, request

    @staticmethod
    def _ensure_open(request: Request) -> None:
        if request.status.is_terminal:
            raise RequestTerminal(request.id, request.status.value)

    @staticmethod
    def _require_offer(
        offer: Offer, allowed: Iterable[OfferStatus], attempted: OfferStatus
    ) -> None:
        if offer.status not in allowed:
            raise InvalidTransition(offer.status.value, attempted.value)

    @staticmethod
    def _require_request(
        request: Request, allowed: Iterable[RequestStatus], attempted: OfferStatus
    ) -> None:
        if request.status not in allowed:
            raise InvalidTransition(
                request.status.value,
                attempted.value,
                f"Request is {request.status.value}",
            )

    @staticmethod
    def _authorize(
        actor: Party,
        required: Role | None,
        request: Request,
        offer: Offer | None,
        attempted: str,
    ) -> None:
        role = role_of(actor)
        if required is not None and role != required:
            current = offer.status.value if offer else request.status.value
            raise InvalidTransition(
                current, attempted, f"A {role.value} cannot {attempted} here"
            )
        if isinstance(actor, Buyer):
            owns = actor.id == request.user_id
        elif isinstance(actor, Vendor):
            owns = offer is not None and actor.id == offer.vendor_id
        else:
            assert_never(actor)
        if not owns:
            raise Forbidden(
                f"{actor.id} is not a party to this negotiation",
                actor_id=actor.id,
                request_id=request.id,
            )

    def _commit(self, changeset: Changeset, operation: str) -> None:
        try:
            self.store.apply(changeset)
        except ConcurrentModification as e:
            logger.warning(
                "stale_snapshot",
                operation=operation,
                entity_id=e.entity_id,
                expected=e.expected,
                actual=e.actual,
            )
            raise InvalidTransition(
                e.actual or "missing",
                operation,
                "The negotiation changed in the meantime; refresh and retry",
            ) from e

    def _finish(
        self, changeset: Changeset, request: Request, operation: str
    ) -> Transition:
        changeset.guard_request(request)
        self._commit(changeset, operation)
        updated_request = next(
            (r for r in changeset.requests if r.id == request.id), request
        )
        for o in changeset.offers:
            logger.info(
                "offer_status_changed",
                offer_id=o.id,
                request_id=request.id,
                operation=operation,
                status=o.status.value,
            )
        return self._transition(updated_request, changeset.offers, request.status)

    def _transition(
        self,
        request: Request,
        changed: list[Offer],
        previous_status: RequestStatus,
    ) -> Transition:
        return Transition(
            request=request,
            offers=self.store.list_offers(request_id=request.id),
            changed=list(changed),
            previous_request_status=previous_status,
        )
