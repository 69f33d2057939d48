from collections.abc import Iterable

from .types import QuotedItem, RequestItem


def compute_total(
    request_items: Iterable[RequestItem], quoted_items: Iterable[QuotedItem]
) -> float:
    """
    Total of a quote: sum of price x requested quantity per quoted item.

    Each quoted item is priced against the first request item with its id.
    Quoted items whose request_item_id does not match a request item are
    treated as unavailable and contribute nothing.
    """
    quantities: dict[str, int] = {}
    for item in request_items:
        quantities.setdefault(item.id, item.quantity)
    return sum(
        (
            quoted.price * quantities.get(quoted.request_item_id, 0)
            for quoted in quoted_items
        ),
        0.0,
    )
