from datetime import timedelta

from bazaar.config import get_settings
from bazaar.db import init_db
from bazaar.logging_config import configure_logging, get_logger
from bazaar.market.sql_store import SqlMarketStore
from bazaar.market.store import Changeset, MarketStore
from bazaar.market.types import (
    Buyer,
    Category,
    Request,
    RequestItem,
    RequestStatus,
    Vendor,
    utcnow,
)
from bazaar.telemetry import init_telemetry

logger = get_logger("seed")

BUYERS = [
    Buyer(id="user-1", name="Alex Johnson", email="alex@example.com"),
    Buyer(id="user-2", name="Maria Garcia", email="maria@example.com"),
    Buyer(id="user-3", name="Sam Chen", email="sam@example.com"),
]

VENDORS = [
    Vendor(
        id="vendor-1",
        business_name="Auto Parts Pro",
        email="parts@example.com",
        specialties=(Category.AUTO_PARTS,),
    ),
    Vendor(
        id="vendor-2",
        business_name="Plumb Perfect",
        email="plumbing@example.com",
        specialties=(Category.PLUMBING, Category.HARDWARE),
    ),
    Vendor(
        id="vendor-3",
        business_name="Circuit City Surplus",
        email="electronics@example.com",
        specialties=(Category.ELECTRONICS, Category.COMPUTING),
    ),
    Vendor(
        id="vendor-4",
        business_name="General Hardware Hub",
        email="hardware@example.com",
        specialties=(Category.HARDWARE, Category.GENERAL),
    ),
]

# (id, owner, title, description, category, image, status, age in days)
RAW_REQUESTS = [
    (
        "req-1",
        "user-1",
        "Brake Caliper for 2018 Honda Civic",
        "Looking for a front-left brake caliper for a 2018 Honda Civic EX. OEM "
        "part number is 45019-TBA-A00. Must be new or in excellent refurbished "
        "condition.",
        Category.AUTO_PARTS,
        "https://picsum.photos/seed/carpart/400/300",
        RequestStatus.ACTIVE,
        2,
    ),
    (
        "req-2",
        "user-2",
        "Leaky Faucet Cartridge",
        "Need a replacement cartridge for a Delta kitchen faucet, model 101-DST. "
        "It is a single-handle model. The leak is a slow drip from the spout.",
        Category.PLUMBING,
        "https://picsum.photos/seed/faucet/400/300",
        RequestStatus.ACTIVE,
        1,
    ),
    (
        "req-3",
        "user-3",
        "Raspberry Pi 4 Model B - 4GB",
        "Searching for a Raspberry Pi 4 with 4GB of RAM. The official power "
        "supply would be a plus. Used is fine if in good working condition.",
        Category.COMPUTING,
        "https://picsum.photos/seed/raspberrypi/400/300",
        RequestStatus.ACTIVE,
        4,
    ),
    (
        "req-4",
        "user-1",
        "Set of 4 Lug Nuts for Alloy Wheels",
        "Need a set of 4 M12x1.5 acorn-style lug nuts for aftermarket alloy "
        "wheels. Chrome finish preferred.",
        Category.AUTO_PARTS,
        None,
        RequestStatus.COMPLETED,
        10,
    ),
]


def demo_requests() -> list[Request]:
    now = utcnow()
    requests = []
    for rid, owner, title, desc, category, image, status, days in RAW_REQUESTS:
        requests.append(
            Request(
                id=rid,
                user_id=owner,
                title=title,
                items=(
                    RequestItem(
                        id=f"{rid}-item-1",
                        title=title,
                        description=desc,
                        quantity=1,
                        image_url=image,
                    ),
                ),
                categories=(category,),
                status=status,
                created_at=now - timedelta(days=days),
            )
        )
    return requests


def seed(store: MarketStore) -> None:
    logger.info(
        "seeding_started",
        buyers=len(BUYERS),
        vendors=len(VENDORS),
        requests=len(RAW_REQUESTS),
    )

    for buyer in BUYERS:
        store.add_buyer(buyer)
    for vendor in VENDORS:
        store.add_vendor(vendor)

    changeset = Changeset()
    for request in demo_requests():
        if store.get_request(request.id) is not None:
            logger.info("request_exists", request_id=request.id)
            continue
        changeset.insert_request(request)
        logger.info("request_created", request_id=request.id, title=request.title)
    store.apply(changeset)

    logger.info("seeding_completed", status="success")


def main() -> None:
    configure_logging()
    settings = get_settings()
    if settings.telemetry.enabled:
        init_telemetry(
            settings.telemetry.otel_service_name,
            str(settings.telemetry.otel_exporter_otlp_endpoint),
        )
    init_db()
    seed(SqlMarketStore())


if __name__ == "__main__":
    main()
