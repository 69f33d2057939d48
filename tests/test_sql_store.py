"""SQLAlchemy store: persistence and compare-and-swap commits."""

from dataclasses import replace

import pytest
from conftest import r1_draft

from bazaar.market import disclosure
from bazaar.market.engine import NegotiationEngine
from bazaar.market.errors import ConcurrentModification
from bazaar.market.store import Changeset
from bazaar.market.types import (
    Buyer,
    Category,
    ContactSource,
    OfferDraft,
    OfferStatus,
    Product,
    QuotedItem,
    RentPeriod,
    RequestStatus,
    Vendor,
)
from bazaar.seed import seed

VENDOR = Vendor(
    id="vendor-a",
    business_name="Auto Parts Pro",
    email="parts@example.com",
    specialties=(Category.AUTO_PARTS, Category.HARDWARE),
    phone="555-0101",
)


@pytest.fixture
def sql_engine_ops(sql_store):
    sql_store.add_buyer(Buyer(id="user-1", name="Alex", email="alex@example.com"))
    sql_store.add_vendor(VENDOR)
    return NegotiationEngine(sql_store)


class TestPersistence:
    def test_request_round_trip(self, sql_store, sql_engine_ops):
        created = sql_engine_ops.create_request(r1_draft("user-1"))
        loaded = sql_store.get_request(created.id)
        assert loaded == created
        assert loaded.items[1].quantity == 2
        assert loaded.created_at.tzinfo is not None

    def test_negotiation_against_database(self, sql_store, sql_engine_ops):
        request = sql_engine_ops.create_request(r1_draft("user-1"))
        offer = sql_engine_ops.create_offer(
            OfferDraft(
                request.id, VENDOR.id, [QuotedItem("i1", 10.0), QuotedItem("i2", 5.0)]
            )
        )
        other = sql_engine_ops.create_offer(
            OfferDraft(request.id, VENDOR.id, [QuotedItem("i1", 30.0)])
        )
        sql_engine_ops.accept(offer.id)
        sql_engine_ops.confirm(
            offer.id, disclosure.edited("Counter 3", "c3@example.com", "555-0303")
        )

        assert sql_store.get_request(request.id).status == RequestStatus.COMPLETED
        confirmed = sql_store.get_offer(offer.id)
        assert confirmed.status == OfferStatus.CONFIRMED
        assert confirmed.total_price == 20.0
        assert confirmed.shared_contact_details.source == ContactSource.EDITED
        assert confirmed.shared_contact_details.phone == "555-0303"
        assert sql_store.get_offer(other.id).status == OfferStatus.REJECTED

    def test_filters(self, sql_store, sql_engine_ops):
        mine = sql_engine_ops.create_request(r1_draft("user-1"))
        sql_engine_ops.create_request(r1_draft("user-2"))
        assert [r.id for r in sql_store.list_requests(user_id="user-1")] == [mine.id]
        assert len(sql_store.list_requests()) == 2
        assert sql_store.list_offers(vendor_id=VENDOR.id) == []

    def test_participants_and_products(self, sql_store, sql_engine_ops):
        assert sql_store.get_vendor(VENDOR.id) == VENDOR
        assert [b.id for b in sql_store.list_buyers()] == ["user-1"]

        product = Product(
            id="prod-1",
            vendor_id=VENDOR.id,
            title="Floor jack",
            description="2 ton trolley jack",
            price=89.0,
            category=Category.AUTO_PARTS,
            for_rent=True,
            rent_price=15.0,
            rent_period=RentPeriod.DAY,
        )
        sql_store.save_product(product)
        sql_store.save_product(replace(product, price=79.0))
        assert sql_store.get_product("prod-1").price == 79.0
        assert sql_store.list_products(vendor_id=VENDOR.id)[0].rent_period == (
            RentPeriod.DAY
        )


class TestCompareAndSwap:
    def test_stale_status_writes_nothing(self, sql_store, sql_engine_ops):
        request = sql_engine_ops.create_request(r1_draft("user-1"))
        offer = sql_engine_ops.create_offer(
            OfferDraft(request.id, VENDOR.id, [QuotedItem("i1", 10.0)])
        )
        sql_engine_ops.hold(offer.id)

        # Built from the pre-hold snapshot
        changeset = Changeset()
        changeset.update_request(
            request, replace(request, status=RequestStatus.PENDING_CONFIRMATION)
        )
        changeset.update_offer(offer, replace(offer, status=OfferStatus.USER_ACCEPTED))
        with pytest.raises(ConcurrentModification) as exc:
            sql_store.apply(changeset)

        assert exc.value.expected == "pending"
        assert exc.value.actual == "on-hold"
        assert sql_store.get_request(request.id).status == RequestStatus.ACTIVE
        assert sql_store.get_offer(offer.id).status == OfferStatus.ON_HOLD

    def test_guarded_request_must_keep_status(self, sql_store, sql_engine_ops):
        request = sql_engine_ops.create_request(r1_draft("user-1"))
        offer = sql_engine_ops.create_offer(
            OfferDraft(request.id, VENDOR.id, [QuotedItem("i1", 10.0)])
        )
        # Hold built while the request was still active
        changeset = Changeset()
        changeset.update_offer(offer, replace(offer, status=OfferStatus.ON_HOLD))
        changeset.guard_request(request)
        sql_engine_ops.cancel_request(request.id)

        with pytest.raises(ConcurrentModification) as exc:
            sql_store.apply(changeset)
        assert exc.value.actual == "cancelled"
        assert sql_store.get_offer(offer.id).status == OfferStatus.PENDING

    def test_offer_set_change_writes_nothing(self, sql_store, sql_engine_ops):
        request = sql_engine_ops.create_request(r1_draft("user-1"))
        first = sql_engine_ops.create_offer(
            OfferDraft(request.id, VENDOR.id, [QuotedItem("i1", 10.0)])
        )
        snapshot = sql_store.list_offers(request_id=request.id)
        sql_engine_ops.create_offer(
            OfferDraft(request.id, VENDOR.id, [QuotedItem("i1", 12.0)])
        )

        changeset = Changeset()
        changeset.update_offer(first, replace(first, status=OfferStatus.REJECTED))
        changeset.guard_request(request)
        changeset.guard_offer_set(request.id, snapshot)
        with pytest.raises(ConcurrentModification):
            sql_store.apply(changeset)
        assert sql_store.get_offer(first.id).status == OfferStatus.PENDING

    def test_duplicate_insert(self, sql_store, sql_engine_ops):
        request = sql_engine_ops.create_request(r1_draft("user-1"))
        changeset = Changeset()
        changeset.insert_request(request)
        with pytest.raises(ConcurrentModification):
            sql_store.apply(changeset)


def test_seed_is_idempotent(sql_store):
    seed(sql_store)
    seed(sql_store)
    requests = {r.id: r for r in sql_store.list_requests()}
    assert sorted(requests) == ["req-1", "req-2", "req-3", "req-4"]
    assert requests["req-4"].status == RequestStatus.COMPLETED
    assert len(sql_store.list_vendors()) == 4
    assert sql_store.get_vendor("vendor-2").specialties == (
        Category.PLUMBING,
        Category.HARDWARE,
    )
