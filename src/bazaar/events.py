"""
Domain events emitted after successful marketplace operations.

Events are built from committed state only and published to NATS by the
caller. A publishing failure never undoes a committed transition.
"""

import json
import time
from dataclasses import dataclass, field
from typing import Any

import nats.aio.errors
import structlog

from bazaar.market.engine import Transition
from bazaar.market.types import Offer, Request

logger = structlog.get_logger(__name__)


@dataclass
class MarketEvent:
    """A single message on the marketplace subject tree."""

    topic: str
    payload: dict[str, Any]
    timestamp: float = field(default_factory=time.time)


def _offer_payload(offer: Offer) -> dict[str, Any]:
    return {
        "offer_id": offer.id,
        "request_id": offer.request_id,
        "vendor_id": offer.vendor_id,
        "status": offer.status.value,
        "total_price": offer.total_price,
    }


def _request_payload(request: Request) -> dict[str, Any]:
    return {
        "request_id": request.id,
        "user_id": request.user_id,
        "status": request.status.value,
        "categories": [c.value for c in request.categories],
        "targeted_vendor_ids": list(request.targeted_vendor_ids or []),
    }


def request_created(request: Request, prefix: str) -> MarketEvent:
    return MarketEvent(
        topic=f"{prefix}.requests.created",
        payload={**_request_payload(request), "title": request.title},
    )


def offer_created(offer: Offer, prefix: str) -> MarketEvent:
    return MarketEvent(
        topic=f"{prefix}.offers.{offer.status.value}",
        payload=_offer_payload(offer),
    )


def transition_events(
    transition: Transition, prefix: str, operation: str
) -> list[MarketEvent]:
    """One event per changed offer, plus one if the request status moved."""
    events = [
        MarketEvent(
            topic=f"{prefix}.offers.{offer.status.value}",
            payload={**_offer_payload(offer), "operation": operation},
        )
        for offer in transition.changed
    ]
    if transition.request_changed:
        events.append(
            MarketEvent(
                topic=f"{prefix}.requests.{transition.request.status.value}",
                payload={
                    **_request_payload(transition.request),
                    "previous_status": transition.previous_request_status.value,
                    "operation": operation,
                },
            )
        )
    return events


class EventPublisher:
    """Sends marketplace events to NATS as JSON."""

    def __init__(self, nats_client=None):
        """
        Args:
            nats_client: An active nats-py client instance. Without one,
                publishing is a logged no-op.
        """
        self.nc = nats_client

    async def publish(self, events: list[MarketEvent]) -> int:
        """Publish ``events`` in order; returns how many were sent."""
        if not (self.nc and self.nc.is_connected):
            logger.debug("nats_not_connected_skipping_emit", events=len(events))
            return 0

        sent = 0
        for event in events:
            body = {**event.payload, "timestamp": event.timestamp}
            try:
                await self.nc.publish(event.topic, json.dumps(body).encode())
                sent += 1
            except (
                nats.aio.errors.ErrConnectionClosed,
                nats.aio.errors.ErrTimeout,
            ) as e:
                logger.error("nats_publish_failed", topic=event.topic, error=str(e))
        return sent
