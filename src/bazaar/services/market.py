"""
Consumer-facing marketplace operations.

Every public method returns an Outcome: ``Success`` carrying the committed
entities plus the domain events to publish, or ``Failure`` describing a
caller-correctable problem. Store failures are not caller-correctable and
propagate.
"""

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import replace
from typing import Any, TypeVar

import structlog
from opentelemetry import trace
from sqlalchemy.exc import SQLAlchemyError

from bazaar import events
from bazaar.config import Settings, get_settings
from bazaar.logging_config import bind_actor, clear_request_context
from bazaar.market import disclosure, projections
from bazaar.market.engine import NegotiationEngine, Transition
from bazaar.market.errors import (
    Failure,
    InvalidTransition,
    MarketError,
    NotFound,
    Outcome,
    Success,
    ValidationError,
    ValidationKind,
)
from bazaar.market.store import MarketStore
from bazaar.market.types import (
    Buyer,
    Category,
    Offer,
    OfferDraft,
    OfferStatus,
    Party,
    QuotedItem,
    Request,
    RequestDraft,
    RequestItem,
    Role,
    SharedContactDetails,
    Vendor,
    role_of,
)
from bazaar.market.validation import new_id

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

T = TypeVar("T")

ItemInput = RequestItem | Mapping[str, Any]
QuoteInput = QuotedItem | Mapping[str, Any]


def _as_item(raw: ItemInput) -> RequestItem:
    if isinstance(raw, RequestItem):
        return raw
    return RequestItem(
        id=raw.get("id") or new_id("item"),
        title=raw.get("title", ""),
        description=raw.get("description", ""),
        quantity=raw.get("quantity", 1),
        image_url=raw.get("image_url"),
    )


def _as_quote(raw: QuoteInput) -> QuotedItem:
    if isinstance(raw, QuotedItem):
        return raw
    return QuotedItem(
        request_item_id=raw.get("request_item_id", ""), price=raw.get("price")
    )


def run_operation(
    operation: str,
    fn: Callable[[], Outcome[T]],
    actor: Party | None = None,
    **attributes: str,
) -> Outcome[T]:
    """
    Run ``fn`` inside a ``market.<operation>`` span and turn MarketError into
    a Failure.

    The actor, when given, is bound to the log context for the duration of
    the call.
    """
    with tracer.start_as_current_span(f"market.{operation}") as span:
        for key, value in attributes.items():
            span.set_attribute(key, value)
        if actor is not None:
            role = role_of(actor)
            bind_actor(actor.id, role.value)
            span.set_attribute("actor_id", actor.id)
            span.set_attribute("actor_role", role.value)
        try:
            outcome = fn()
        except MarketError as e:
            logger.info(
                "transition_rejected",
                operation=operation,
                code=e.code,
                reason=e.message,
                **e.details,
            )
            span.set_attribute("outcome", e.code)
            return Failure.from_error(e)
        except SQLAlchemyError as e:
            logger.error("store_error", operation=operation, error=str(e))
            span.record_exception(e)
            raise
        finally:
            if actor is not None:
                clear_request_context()
        span.set_attribute("outcome", "ok" if outcome.ok else outcome.code)
        return outcome


class MarketService:
    """Entry point for buyers, vendors and the admin overview."""

    def __init__(self, store: MarketStore, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.store = store
        self.engine = NegotiationEngine(store, self.settings.negotiation)
        self.prefix = self.settings.events.subject_prefix

    # --- Requests ---

    def create_request(
        self,
        owner_id: str,
        title: str,
        items: Sequence[ItemInput],
        categories: Sequence[Category | str],
        targeted_vendor_ids: Sequence[str] | None = None,
        source_product_id: str | None = None,
        source_product_title: str | None = None,
    ) -> Outcome[Request]:
        def op() -> Success[Request]:
            draft = RequestDraft(
                user_id=owner_id,
                title=title,
                items=[_as_item(i) for i in items],
                categories=list(categories),
                targeted_vendor_ids=(
                    list(targeted_vendor_ids) if targeted_vendor_ids else None
                ),
                source_product_id=source_product_id,
                source_product_title=source_product_title,
            )
            request = self.engine.create_request(draft)
            return Success(request, [events.request_created(request, self.prefix)])

        return run_operation("create_request", op, owner_id=owner_id)

    def cancel_request(
        self, request_id: str, actor: Party | None = None
    ) -> Outcome[Transition]:
        def op() -> Success[Transition]:
            transition = self.engine.cancel_request(request_id, actor)
            return Success(
                transition,
                events.transition_events(transition, self.prefix, "cancel"),
            )

        return run_operation("cancel_request", op, actor=actor, request_id=request_id)

    # --- Offers ---

    def create_offer(
        self,
        request_id: str,
        vendor_id: str,
        quoted_items: Iterable[QuoteInput],
        notes: str | None = None,
    ) -> Outcome[Offer]:
        def op() -> Success[Offer]:
            if self.store.get_vendor(vendor_id) is None:
                raise NotFound("Vendor", vendor_id)
            offer = self.engine.create_offer(
                OfferDraft(
                    request_id=request_id,
                    vendor_id=vendor_id,
                    quoted_items=[_as_quote(q) for q in quoted_items],
                    notes=notes or None,
                )
            )
            return Success(offer, [events.offer_created(offer, self.prefix)])

        return run_operation(
            "create_offer", op, request_id=request_id, vendor_id=vendor_id
        )

    def update_offer_status(
        self,
        offer_id: str,
        new_status: OfferStatus | str,
        shared_details: SharedContactDetails | None = None,
        actor: Party | None = None,
    ) -> Outcome[Transition]:
        """
        Move an offer to ``new_status`` (accept, hold, reject, withdraw, confirm).

        Confirming requires ``shared_details``; build them with
        ``profile_contact`` or ``disclosure.edited``.
        """

        def op() -> Success[Transition]:
            status = self._parse_status(offer_id, new_status)
            transition = self.engine.apply_status(
                offer_id, status, shared_details, actor
            )
            return Success(
                transition,
                events.transition_events(transition, self.prefix, status.value),
            )

        return run_operation(
            "update_offer_status",
            op,
            actor=actor,
            offer_id=offer_id,
            new_status=str(getattr(new_status, "value", new_status)),
        )

    def submit_counter_offer(
        self,
        offer_id: str,
        new_quoted_items: Iterable[QuoteInput],
        by: Role | str,
        actor: Party | None = None,
    ) -> Outcome[Offer]:
        def op() -> Success[Offer]:
            try:
                role = Role(by)
            except ValueError as e:
                raise InvalidTransition(
                    "unknown", "counter", f"Unknown counter party: {by}"
                ) from e
            transition = self.engine.counter(
                offer_id, [_as_quote(q) for q in new_quoted_items], role, actor
            )
            return Success(
                transition.offer(offer_id),
                events.transition_events(transition, self.prefix, "counter"),
            )

        return run_operation("submit_counter_offer", op, actor=actor, offer_id=offer_id)

    def profile_contact(self, vendor_id: str) -> Outcome[SharedContactDetails]:
        """The vendor's stored profile as shareable contact details."""

        def op() -> Success[SharedContactDetails]:
            vendor = self.store.get_vendor(vendor_id)
            if vendor is None:
                raise NotFound("Vendor", vendor_id)
            return Success(disclosure.from_profile(vendor))

        return run_operation("profile_contact", op, vendor_id=vendor_id)

    # --- Participants ---

    def register_buyer(
        self, name: str, email: str, buyer_id: str | None = None
    ) -> Outcome[Buyer]:
        def op() -> Success[Buyer]:
            buyer = Buyer(id=buyer_id or new_id("user"), name=name, email=email)
            self.store.add_buyer(buyer)
            logger.info("buyer_registered", buyer_id=buyer.id)
            return Success(buyer)

        return run_operation("register_buyer", op)

    def register_vendor(
        self,
        business_name: str,
        email: str,
        specialties: Sequence[Category | str],
        phone: str | None = None,
        vendor_id: str | None = None,
    ) -> Outcome[Vendor]:
        def op() -> Success[Vendor]:
            try:
                parsed = tuple(Category(s) for s in specialties)
            except ValueError as e:
                raise ValidationError(
                    ValidationKind.INVALID_CATEGORIES, f"Unknown category: {e}"
                ) from e
            vendor = Vendor(
                id=vendor_id or new_id("vendor"),
                business_name=business_name,
                email=email,
                specialties=parsed,
                phone=phone or None,
            )
            self.store.add_vendor(vendor)
            logger.info(
                "vendor_registered",
                vendor_id=vendor.id,
                specialties=[s.value for s in parsed],
            )
            return Success(vendor)

        return run_operation("register_vendor", op)

    # --- Views ---

    def offers_for_request(
        self, request_id: str, viewer: Party | None = None
    ) -> Outcome[list[Offer]]:
        """
        All offers on a request.

        With a ``viewer``, contact details are masked unless that party may
        see them.
        """

        def op() -> Success[list[Offer]]:
            request = self.store.get_request(request_id)
            if request is None:
                raise NotFound("Request", request_id)
            offers = self.store.list_offers(request_id=request_id)
            if viewer is not None:
                offers = [
                    replace(
                        o,
                        shared_contact_details=disclosure.visible_contact(
                            o, request, viewer
                        ),
                    )
                    for o in offers
                ]
            return Success(offers)

        return run_operation("offers_for_request", op, request_id=request_id)

    def tabs_for(self, party: Party) -> Outcome[dict[str, list[Request]]]:
        def op() -> Success[dict[str, list[Request]]]:
            tabs = projections.tabs_for(
                party, self.store.list_requests(), self.store.list_offers()
            )
            return Success(tabs)

        return run_operation("tabs_for", op, party_id=party.id)

    def leads_for(self, vendor_id: str) -> Outcome[list[Request]]:
        def op() -> Success[list[Request]]:
            vendor = self.store.get_vendor(vendor_id)
            if vendor is None:
                raise NotFound("Vendor", vendor_id)
            leads = projections.leads_for_vendor(
                vendor,
                self.store.list_requests(),
                self.store.list_offers(vendor_id=vendor_id),
            )
            return Success(leads)

        return run_operation("leads_for", op, vendor_id=vendor_id)

    def stats(self) -> Outcome[projections.MarketplaceStats]:
        def op() -> Success[projections.MarketplaceStats]:
            return Success(
                projections.marketplace_stats(
                    self.store.list_buyers(),
                    self.store.list_vendors(),
                    self.store.list_requests(),
                    self.store.list_offers(),
                )
            )

        return run_operation("stats", op)

    # --- Internals ---

    def _parse_status(self, offer_id: str, raw: OfferStatus | str) -> OfferStatus:
        try:
            return OfferStatus(raw)
        except ValueError:
            offer = self.store.get_offer(offer_id)
            if offer is None:
                raise NotFound("Offer", offer_id) from None
            raise InvalidTransition(
                offer.status.value, str(raw), f"Unknown offer status '{raw}'"
            ) from None

