"""
Vendor product catalog and product-driven enquiries.

Enquiring about a listing opens an ordinary request, targeted at the listing's
vendor, so the rest of the negotiation runs through MarketService unchanged.
"""

from dataclasses import fields, replace
from typing import Any, Literal

import structlog

from bazaar.market.errors import (
    Forbidden,
    NotFound,
    Outcome,
    Success,
    ValidationError,
    ValidationKind,
)
from bazaar.market.store import MarketStore
from bazaar.market.types import Category, Product, RentPeriod, Request, RequestItem
from bazaar.market.validation import new_id

from .market import MarketService, run_operation

logger = structlog.get_logger(__name__)

SearchMode = Literal["all", "buy", "rent"]

EDITABLE_FIELDS = frozenset(f.name for f in fields(Product))


def _is_price(value: object) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _validated(product: Product) -> Product:
    if not isinstance(product.title, str) or not product.title.strip():
        raise ValidationError(ValidationKind.MISSING_TITLE, "A product needs a title")
    if not _is_price(product.price) or product.price <= 0:
        raise ValidationError(
            ValidationKind.INVALID_PRICE,
            "Please provide a valid price",
            price=product.price,
        )
    try:
        category = Category(product.category)
    except ValueError as e:
        raise ValidationError(
            ValidationKind.INVALID_CATEGORIES, f"Unknown category: {e}"
        ) from e

    if not product.for_rent:
        # Rental terms only exist on rentable listings
        return replace(
            product,
            title=product.title.strip(),
            category=category,
            rent_price=None,
            rent_period=None,
        )
    if not _is_price(product.rent_price) or product.rent_price < 0:
        raise ValidationError(
            ValidationKind.INVALID_PRICE,
            "Rentable products need a rent price",
            rent_price=product.rent_price,
        )
    try:
        period = RentPeriod(product.rent_period or RentPeriod.DAY)
    except ValueError as e:
        raise ValidationError(
            ValidationKind.INVALID_RENT_PERIOD,
            f"Unknown rent period: {product.rent_period}",
        ) from e
    return replace(
        product,
        title=product.title.strip(),
        category=category,
        rent_period=period,
    )


def matches(product: Product, query: str, mode: SearchMode = "all") -> bool:
    """Case-insensitive match on title, description or category, then mode."""
    needle = query.lower().strip()
    if needle and not any(
        needle in field.lower()
        for field in (product.title, product.description, product.category.value)
    ):
        return False
    if mode == "buy":
        return product.price > 0
    if mode == "rent":
        return product.for_rent
    return True


class CatalogService:
    def __init__(self, store: MarketStore, market: MarketService):
        self.store = store
        self.market = market

    def add_product(
        self,
        vendor_id: str,
        title: str,
        description: str,
        price: float,
        category: Category | str,
        image_url: str | None = None,
        for_rent: bool = False,
        rent_price: float | None = None,
        rent_period: RentPeriod | str | None = None,
    ) -> Outcome[Product]:
        def op() -> Success[Product]:
            if self.store.get_vendor(vendor_id) is None:
                raise NotFound("Vendor", vendor_id)
            product = _validated(
                Product(
                    id=new_id("prod"),
                    vendor_id=vendor_id,
                    title=title,
                    description=description,
                    price=price,
                    category=category,
                    image_url=image_url,
                    for_rent=for_rent,
                    rent_price=rent_price,
                    rent_period=rent_period,
                )
            )
            self.store.save_product(product)
            logger.info(
                "product_added",
                product_id=product.id,
                vendor_id=vendor_id,
                for_rent=product.for_rent,
            )
            return Success(product)

        return run_operation("add_product", op, vendor_id=vendor_id)

    def update_product(
        self, vendor_id: str, product_id: str, **changes: Any
    ) -> Outcome[Product]:
        """Edit a listing; only the vendor who owns it may change it."""

        def op() -> Success[Product]:
            product = self.store.get_product(product_id)
            if product is None:
                raise NotFound("Product", product_id)
            if product.vendor_id != vendor_id:
                raise Forbidden(
                    "Only the listing vendor can edit this product",
                    product_id=product_id,
                    vendor_id=vendor_id,
                )
            # id and owner are fixed for the lifetime of a listing
            changes.pop("id", None)
            changes.pop("vendor_id", None)
            unknown = sorted(set(changes) - EDITABLE_FIELDS)
            if unknown:
                raise ValidationError(
                    ValidationKind.UNKNOWN_FIELD,
                    f"Products have no field(s): {', '.join(unknown)}",
                    fields=unknown,
                )
            updated = _validated(replace(product, **changes))
            self.store.save_product(updated)
            logger.info(
                "product_updated", product_id=product_id, fields=sorted(changes)
            )
            return Success(updated)

        return run_operation("update_product", op, product_id=product_id)

    def search_products(
        self, query: str = "", mode: SearchMode = "all"
    ) -> list[Product]:
        """Catalog listings matching ``query``, sorted by title."""
        if mode not in ("all", "buy", "rent"):
            raise ValueError(f"Unknown search mode: {mode}")
        found = [p for p in self.store.list_products() if matches(p, query, mode)]
        return sorted(found, key=lambda p: p.title.lower())

    def enquire_about_product(
        self, owner_id: str, product_id: str, message: str = ""
    ) -> Outcome[Request]:
        """Send the listing's vendor a free-text enquiry about it."""

        def op() -> Outcome[Request]:
            product = self._product(product_id)
            item = RequestItem(
                id=new_id("item"),
                title=product.title,
                description=message.strip() or f"Enquiry about {product.title}",
                quantity=1,
                image_url=product.image_url,
            )
            return self._open_request(
                owner_id, product, f"Enquiry about: {product.title}", item
            )

        return run_operation("enquire_about_product", op, product_id=product_id)

    def request_product(self, owner_id: str, product_id: str) -> Outcome[Request]:
        """Ask the listing's vendor for the product exactly as listed."""

        def op() -> Outcome[Request]:
            product = self._product(product_id)
            item = RequestItem(
                id=new_id("item"),
                title=product.title,
                description=f"A standard request for: {product.description}",
                quantity=1,
                image_url=product.image_url,
            )
            return self._open_request(
                owner_id, product, f"Product Request: {product.title}", item
            )

        return run_operation("request_product", op, product_id=product_id)

    def _product(self, product_id: str) -> Product:
        product = self.store.get_product(product_id)
        if product is None:
            raise NotFound("Product", product_id)
        return product

    def _open_request(
        self, owner_id: str, product: Product, title: str, item: RequestItem
    ) -> Outcome[Request]:
        return self.market.create_request(
            owner_id=owner_id,
            title=title,
            items=[item],
            categories=[product.category],
            targeted_vendor_ids=[product.vendor_id],
            source_product_id=product.id,
            source_product_title=product.title,
        )
