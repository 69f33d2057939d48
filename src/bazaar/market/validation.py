import uuid
from collections.abc import Iterable, Sequence

import structlog

from .errors import ValidationError, ValidationKind
from .pricing import compute_total
from .types import (
    MAX_CATEGORIES,
    Category,
    Offer,
    OfferDraft,
    OfferStatus,
    QuotedItem,
    Request,
    RequestDraft,
    RequestItem,
    RequestStatus,
    utcnow,
)

logger = structlog.get_logger(__name__)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _parse_categories(raw: Sequence[Category | str]) -> tuple[Category, ...]:
    if not raw or len(raw) > MAX_CATEGORIES:
        raise ValidationError(
            ValidationKind.INVALID_CATEGORIES,
            f"Choose between 1 and {MAX_CATEGORIES} categories",
            count=len(raw),
        )
    try:
        categories = tuple(Category(c) for c in raw)
    except ValueError as e:
        raise ValidationError(
            ValidationKind.INVALID_CATEGORIES, f"Unknown category: {e}"
        ) from e
    if len(set(categories)) != len(categories):
        raise ValidationError(
            ValidationKind.INVALID_CATEGORIES, "Categories must be unique"
        )
    return categories


def _is_number(value: object) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _check_items(items: Sequence[RequestItem]) -> None:
    seen: set[str] = set()
    for item in items:
        if not isinstance(item.title, str) or not item.title.strip():
            raise ValidationError(
                ValidationKind.MISSING_TITLE,
                "Every item needs a title",
                item_id=item.id,
            )
        if item.id in seen:
            raise ValidationError(
                ValidationKind.DUPLICATE_ITEM,
                f"Item id '{item.id}' appears more than once",
                item_id=item.id,
            )
        seen.add(item.id)
        if (
            not isinstance(item.quantity, int)
            or isinstance(item.quantity, bool)
            or item.quantity < 1
        ):
            raise ValidationError(
                ValidationKind.INVALID_QUANTITY,
                f"Quantity for '{item.title}' must be a whole number of at least 1",
                item_id=item.id,
                quantity=item.quantity,
            )


def validate_request(draft: RequestDraft) -> Request:
    """
    Validate a request draft and build the active Request from it.

    Raises:
        ValidationError: EmptyItems, MissingTitle, DuplicateItem,
            InvalidQuantity or InvalidCategories
    """
    if not draft.items:
        raise ValidationError(
            ValidationKind.EMPTY_ITEMS, "A request needs at least one item"
        )
    _check_items(draft.items)
    categories = _parse_categories(draft.categories)

    targeted = tuple(draft.targeted_vendor_ids) if draft.targeted_vendor_ids else None
    return Request(
        id=new_id("req"),
        user_id=draft.user_id,
        title=draft.title,
        items=tuple(draft.items),
        categories=categories,
        status=RequestStatus.ACTIVE,
        created_at=utcnow(),
        targeted_vendor_ids=targeted,
        source_product_id=draft.source_product_id,
        source_product_title=draft.source_product_title,
    )


def validate_quoted_items(
    request: Request, quoted_items: Iterable[QuotedItem]
) -> tuple[QuotedItem, ...]:
    """
    Check a set of quoted prices against the request they answer.

    At least one quoted item that maps onto a request item must carry a
    positive price; items missing from the quote are "not available".
    """
    quoted = tuple(quoted_items)
    for q in quoted:
        if not _is_number(q.price) or q.price < 0:
            raise ValidationError(
                ValidationKind.INVALID_PRICE,
                "Prices must be numbers of at least 0",
                request_item_id=q.request_item_id,
                price=q.price,
            )

    known_ids = {item.id for item in request.items}
    orphaned = [q.request_item_id for q in quoted if q.request_item_id not in known_ids]
    if orphaned:
        logger.warning(
            "quote_references_unknown_items",
            request_id=request.id,
            item_ids=orphaned,
        )

    if not any(q.price > 0 and q.request_item_id in known_ids for q in quoted):
        raise ValidationError(
            ValidationKind.NO_AVAILABLE_ITEMS,
            "Quote at least one requested item with a positive price",
            request_id=request.id,
        )
    return quoted


def validate_offer_draft(draft: OfferDraft, request: Request) -> Offer:
    """
    Validate an offer draft against its request and build the pending Offer.

    Raises:
        ValidationError: NoAvailableItems or InvalidPrice
    """
    quoted = validate_quoted_items(request, draft.quoted_items)
    return Offer(
        id=new_id("offer"),
        request_id=request.id,
        vendor_id=draft.vendor_id,
        quoted_items=quoted,
        total_price=compute_total(request.items, quoted),
        status=OfferStatus.PENDING,
        created_at=utcnow(),
        notes=draft.notes or None,
    )
