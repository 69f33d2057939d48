"""
SQLAlchemy-backed MarketStore.

Each changeset commits in one transaction. The rows it touches are locked with
SELECT ... FOR UPDATE and their statuses compared against the changeset before
anything is written, so two confirmations racing on the same request cannot
both complete it.
"""

from dataclasses import asdict
from datetime import UTC, datetime

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from bazaar.db import (
    BuyerRow,
    OfferRow,
    ProductRow,
    RequestRow,
    SessionLocal,
    VendorRow,
)

from .store import Changeset, verify_offer_set, verify_status
from .types import (
    Buyer,
    Category,
    ContactSource,
    Offer,
    Product,
    QuotedItem,
    RentPeriod,
    Request,
    RequestItem,
    SharedContactDetails,
    Vendor,
)

logger = structlog.get_logger(__name__)


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def _to_request(row: RequestRow) -> Request:
    return Request(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        items=tuple(RequestItem(**item) for item in row.items),
        categories=tuple(Category(c) for c in row.categories),
        status=row.status,
        created_at=_aware(row.created_at),
        targeted_vendor_ids=(
            tuple(row.targeted_vendor_ids)
            if row.targeted_vendor_ids is not None
            else None
        ),
        source_product_id=row.source_product_id,
        source_product_title=row.source_product_title,
    )


def _fill_request(row: RequestRow, request: Request) -> RequestRow:
    row.id = request.id
    row.user_id = request.user_id
    row.title = request.title
    row.items = [asdict(item) for item in request.items]
    row.categories = [c.value for c in request.categories]
    row.status = request.status
    row.created_at = request.created_at
    row.targeted_vendor_ids = (
        list(request.targeted_vendor_ids)
        if request.targeted_vendor_ids is not None
        else None
    )
    row.source_product_id = request.source_product_id
    row.source_product_title = request.source_product_title
    return row


def _to_offer(row: OfferRow) -> Offer:
    details = None
    if row.shared_contact_details is not None:
        raw = dict(row.shared_contact_details)
        details = SharedContactDetails(
            business_name=raw["business_name"],
            email=raw["email"],
            phone=raw["phone"],
            source=ContactSource(raw["source"]),
            notes=raw.get("notes"),
        )
    return Offer(
        id=row.id,
        request_id=row.request_id,
        vendor_id=row.vendor_id,
        quoted_items=tuple(QuotedItem(**q) for q in row.quoted_items),
        total_price=row.total_price,
        status=row.status,
        created_at=_aware(row.created_at),
        notes=row.notes,
        shared_contact_details=details,
    )


def _fill_offer(row: OfferRow, offer: Offer) -> OfferRow:
    row.id = offer.id
    row.request_id = offer.request_id
    row.vendor_id = offer.vendor_id
    row.quoted_items = [asdict(q) for q in offer.quoted_items]
    row.total_price = offer.total_price
    row.status = offer.status
    row.created_at = offer.created_at
    row.notes = offer.notes
    if offer.shared_contact_details is None:
        row.shared_contact_details = None
    else:
        details = asdict(offer.shared_contact_details)
        details["source"] = offer.shared_contact_details.source.value
        row.shared_contact_details = details
    return row


def _to_vendor(row: VendorRow) -> Vendor:
    return Vendor(
        id=row.id,
        business_name=row.business_name,
        email=row.email,
        phone=row.phone,
        specialties=tuple(Category(s) for s in row.specialties),
    )


def _to_product(row: ProductRow) -> Product:
    return Product(
        id=row.id,
        vendor_id=row.vendor_id,
        title=row.title,
        description=row.description,
        price=row.price,
        category=Category(row.category),
        image_url=row.image_url,
        for_rent=row.for_rent,
        rent_price=row.rent_price,
        rent_period=RentPeriod(row.rent_period) if row.rent_period else None,
    )


class SqlMarketStore:
    """MarketStore over a relational database."""

    def __init__(self, session_factory: sessionmaker[Session] = SessionLocal):
        self.session_factory = session_factory

    # --- Requests and offers ---

    def get_request(self, request_id: str) -> Request | None:
        with self.session_factory() as session:
            row = session.get(RequestRow, request_id)
            return _to_request(row) if row else None

    def list_requests(self, user_id: str | None = None) -> list[Request]:
        stmt = select(RequestRow).order_by(RequestRow.created_at)
        if user_id is not None:
            stmt = stmt.where(RequestRow.user_id == user_id)
        with self.session_factory() as session:
            return [_to_request(row) for row in session.scalars(stmt)]

    def get_offer(self, offer_id: str) -> Offer | None:
        with self.session_factory() as session:
            row = session.get(OfferRow, offer_id)
            return _to_offer(row) if row else None

    def list_offers(
        self, request_id: str | None = None, vendor_id: str | None = None
    ) -> list[Offer]:
        stmt = select(OfferRow).order_by(OfferRow.created_at)
        if request_id is not None:
            stmt = stmt.where(OfferRow.request_id == request_id)
        if vendor_id is not None:
            stmt = stmt.where(OfferRow.vendor_id == vendor_id)
        with self.session_factory() as session:
            return [_to_offer(row) for row in session.scalars(stmt)]

    def apply(self, changeset: Changeset) -> None:
        request_ids = changeset.locked_request_ids
        offer_ids = [o.id for o in changeset.offers]

        with self.session_factory() as session, session.begin():
            # Lock every touched or guarded row for the rest of the transaction
            request_rows = {
                row.id: row
                for row in session.scalars(
                    select(RequestRow)
                    .where(RequestRow.id.in_(request_ids))
                    .with_for_update()
                )
            }
            offer_rows = {
                row.id: row
                for row in session.scalars(
                    select(OfferRow).where(OfferRow.id.in_(offer_ids)).with_for_update()
                )
            }

            for request in changeset.requests:
                row = request_rows.get(request.id)
                verify_status(
                    request.id,
                    row.status if row else None,
                    changeset.expected_requests.get(request.id),
                )
            for request_id, expected in changeset.guarded_requests.items():
                row = request_rows.get(request_id)
                verify_status(request_id, row.status if row else None, expected)
            for request_id, expected_ids in changeset.guarded_offer_sets.items():
                # The request row lock serializes offer inserts on this request
                verify_offer_set(
                    request_id,
                    session.scalars(
                        select(OfferRow.id).where(OfferRow.request_id == request_id)
                    ),
                    expected_ids,
                )
            for offer in changeset.offers:
                row = offer_rows.get(offer.id)
                verify_status(
                    offer.id,
                    row.status if row else None,
                    changeset.expected_offers.get(offer.id),
                )

            for request in changeset.requests:
                row = request_rows.get(request.id)
                if row is None:
                    session.add(_fill_request(RequestRow(), request))
                else:
                    _fill_request(row, request)
            # Parent requests must exist before their offers are inserted
            session.flush()
            for offer in changeset.offers:
                row = offer_rows.get(offer.id)
                if row is None:
                    session.add(_fill_offer(OfferRow(), offer))
                else:
                    _fill_offer(row, offer)

        logger.debug(
            "changeset_applied",
            requests=len(changeset.requests),
            offers=len(changeset.offers),
        )

    # --- Participants ---

    def add_buyer(self, buyer: Buyer) -> None:
        with self.session_factory() as session, session.begin():
            session.merge(BuyerRow(id=buyer.id, name=buyer.name, email=buyer.email))

    def get_buyer(self, buyer_id: str) -> Buyer | None:
        with self.session_factory() as session:
            row = session.get(BuyerRow, buyer_id)
            return Buyer(id=row.id, name=row.name, email=row.email) if row else None

    def list_buyers(self) -> list[Buyer]:
        with self.session_factory() as session:
            return [
                Buyer(id=row.id, name=row.name, email=row.email)
                for row in session.scalars(select(BuyerRow).order_by(BuyerRow.id))
            ]

    def add_vendor(self, vendor: Vendor) -> None:
        with self.session_factory() as session, session.begin():
            session.merge(
                VendorRow(
                    id=vendor.id,
                    business_name=vendor.business_name,
                    email=vendor.email,
                    phone=vendor.phone,
                    specialties=[s.value for s in vendor.specialties],
                )
            )

    def get_vendor(self, vendor_id: str) -> Vendor | None:
        with self.session_factory() as session:
            row = session.get(VendorRow, vendor_id)
            return _to_vendor(row) if row else None

    def list_vendors(self) -> list[Vendor]:
        with self.session_factory() as session:
            return [
                _to_vendor(row)
                for row in session.scalars(select(VendorRow).order_by(VendorRow.id))
            ]

    # --- Catalog ---

    def save_product(self, product: Product) -> None:
        with self.session_factory() as session, session.begin():
            session.merge(
                ProductRow(
                    id=product.id,
                    vendor_id=product.vendor_id,
                    title=product.title,
                    description=product.description,
                    price=product.price,
                    category=product.category.value,
                    image_url=product.image_url,
                    for_rent=product.for_rent,
                    rent_price=product.rent_price,
                    rent_period=product.rent_period.value
                    if product.rent_period
                    else None,
                )
            )

    def get_product(self, product_id: str) -> Product | None:
        with self.session_factory() as session:
            row = session.get(ProductRow, product_id)
            return _to_product(row) if row else None

    def list_products(self, vendor_id: str | None = None) -> list[Product]:
        stmt = select(ProductRow)
        if vendor_id is not None:
            stmt = stmt.where(ProductRow.vendor_id == vendor_id)
        with self.session_factory() as session:
            return [_to_product(row) for row in session.scalars(stmt)]
