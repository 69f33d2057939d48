"""Pytest configuration and shared fixtures."""

import os

import pytest

# Set required environment variables before importing any modules
os.environ.setdefault("BAZAAR_DATABASE__URL", "sqlite://")
os.environ.setdefault("BAZAAR_TELEMETRY__ENABLED", "false")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from bazaar.config import get_settings  # noqa: E402
from bazaar.config.negotiation import NegotiationSettings  # noqa: E402
from bazaar.db import init_db  # noqa: E402
from bazaar.market.engine import NegotiationEngine  # noqa: E402
from bazaar.market.sql_store import SqlMarketStore  # noqa: E402
from bazaar.market.store import InMemoryMarketStore  # noqa: E402
from bazaar.market.types import (  # noqa: E402
    Buyer,
    Category,
    OfferDraft,
    QuotedItem,
    RequestDraft,
    RequestItem,
    Vendor,
)
from bazaar.services.market import MarketService  # noqa: E402


def r1_draft(user_id: str) -> RequestDraft:
    """Two-item brake job: pads x1, rotors x2."""
    return RequestDraft(
        user_id=user_id,
        title="Front brake job for 2018 Civic",
        items=[
            RequestItem(id="i1", title="Brake pads", description="Front set"),
            RequestItem(
                id="i2", title="Brake rotor", description="Front, vented", quantity=2
            ),
        ],
        categories=[Category.AUTO_PARTS],
    )


@pytest.fixture
def store():
    return InMemoryMarketStore()


@pytest.fixture
def buyer(store):
    b = Buyer(id="user-1", name="Alex Johnson", email="alex@example.com")
    store.add_buyer(b)
    return b


@pytest.fixture
def other_buyer(store):
    b = Buyer(id="user-2", name="Maria Garcia", email="maria@example.com")
    store.add_buyer(b)
    return b


@pytest.fixture
def vendor_a(store):
    v = Vendor(
        id="vendor-a",
        business_name="Auto Parts Pro",
        email="parts@example.com",
        specialties=(Category.AUTO_PARTS,),
        phone="555-0101",
    )
    store.add_vendor(v)
    return v


@pytest.fixture
def vendor_b(store):
    v = Vendor(
        id="vendor-b",
        business_name="General Hardware Hub",
        email="hardware@example.com",
        specialties=(Category.HARDWARE, Category.AUTO_PARTS),
    )
    store.add_vendor(v)
    return v


@pytest.fixture
def negotiation_settings():
    return NegotiationSettings()


@pytest.fixture
def engine(store, negotiation_settings):
    return NegotiationEngine(store, negotiation_settings)


@pytest.fixture
def request_r1(engine, buyer):
    return engine.create_request(r1_draft(buyer.id))


@pytest.fixture
def offer_a(engine, request_r1, vendor_a):
    """Quotes both items: 10 x 1 + 5 x 2 = 20."""
    return engine.create_offer(
        OfferDraft(
            request_id=request_r1.id,
            vendor_id=vendor_a.id,
            quoted_items=[QuotedItem("i1", 10.0), QuotedItem("i2", 5.0)],
        )
    )


@pytest.fixture
def offer_b(engine, request_r1, vendor_b):
    """Quotes only the pads: 12 x 1 = 12."""
    return engine.create_offer(
        OfferDraft(
            request_id=request_r1.id,
            vendor_id=vendor_b.id,
            quoted_items=[QuotedItem("i1", 12.0)],
        )
    )


@pytest.fixture
def service(store):
    return MarketService(store, get_settings())


@pytest.fixture
def sql_engine():
    """In-memory SQLite shared across sessions of one test."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def sql_store(sql_engine):
    return SqlMarketStore(sessionmaker(bind=sql_engine))
