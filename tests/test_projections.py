"""Role-specific tabs, vendor leads and marketplace totals."""

from datetime import timedelta

from conftest import r1_draft

from bazaar.market import disclosure, projections
from bazaar.market.types import (
    Category,
    Offer,
    OfferDraft,
    OfferStatus,
    QuotedItem,
    RequestDraft,
    RequestItem,
    Vendor,
    utcnow,
)


def tabs(store, party):
    return {
        name: [r.id for r in requests]
        for name, requests in projections.tabs_for(
            party, store.list_requests(), store.list_offers()
        ).items()
    }


class TestUserTabs:
    def test_open_request_is_active(self, store, buyer, request_r1):
        assert tabs(store, buyer) == {
            "active": [request_r1.id],
            "confirmed": [],
            "history": [],
        }

    def test_pending_confirmation_is_still_active(self, engine, store, buyer, offer_a):
        engine.accept(offer_a.id)
        assert tabs(store, buyer)["active"] == [offer_a.request_id]

    def test_completed_and_cancelled(self, engine, store, buyer, offer_a, vendor_a):
        second = engine.create_request(r1_draft(buyer.id))
        engine.accept(offer_a.id)
        engine.confirm(offer_a.id, disclosure.from_profile(vendor_a))
        engine.cancel_request(second.id)

        assert tabs(store, buyer) == {
            "active": [],
            "confirmed": [offer_a.request_id],
            "history": [second.id],
        }

    def test_other_buyers_requests_are_hidden(self, store, other_buyer, request_r1):
        assert tabs(store, other_buyer)["active"] == []


class TestVendorTabs:
    def test_open_quote_is_active(self, store, vendor_a, offer_a):
        assert tabs(store, vendor_a)["active"] == [offer_a.request_id]

    def test_requests_without_a_quote_are_absent(self, store, vendor_a, request_r1):
        assert tabs(store, vendor_a) == {"active": [], "confirmed": [], "history": []}

    def test_confirm_splits_winner_and_losers(
        self, engine, store, vendor_a, vendor_b, offer_a, offer_b
    ):
        engine.accept(offer_a.id)
        engine.confirm(offer_a.id, disclosure.from_profile(vendor_a))
        assert tabs(store, vendor_a)["confirmed"] == [offer_a.request_id]
        assert tabs(store, vendor_b)["history"] == [offer_b.request_id]
        assert tabs(store, vendor_b)["active"] == []

    def test_cancelled_request_shows_in_active_and_history(
        self, engine, store, vendor_a, request_r1, offer_a
    ):
        engine.cancel_request(request_r1.id)
        vendor_tabs = tabs(store, vendor_a)
        assert vendor_tabs["active"] == [request_r1.id]
        assert vendor_tabs["history"] == [request_r1.id]

    def test_latest_offer_decides(self, engine, store, vendor_a, request_r1, offer_a):
        engine.withdraw(offer_a.id)
        assert tabs(store, vendor_a)["history"] == [request_r1.id]

        engine.create_offer(
            OfferDraft(request_r1.id, vendor_a.id, [QuotedItem("i1", 9.5)])
        )
        vendor_tabs = tabs(store, vendor_a)
        assert vendor_tabs["active"] == [request_r1.id]
        assert vendor_tabs["history"] == []


class TestLatestOffers:
    def _offer(self, offer_id, created_at, status=OfferStatus.PENDING):
        return Offer(
            id=offer_id,
            request_id="req-1",
            vendor_id="vendor-a",
            quoted_items=(QuotedItem("i1", 1.0),),
            total_price=1.0,
            status=status,
            created_at=created_at,
        )

    def test_newest_by_timestamp(self):
        now = utcnow()
        older = self._offer("o1", now - timedelta(minutes=5))
        newer = self._offer("o2", now)
        assert projections.latest_offers("vendor-a", [newer, older])["req-1"] is newer

    def test_later_entry_wins_a_tie(self):
        now = utcnow()
        first = self._offer("o1", now)
        second = self._offer("o2", now)
        assert projections.latest_offers("vendor-a", [first, second])["req-1"] is second

    def test_other_vendors_ignored(self):
        offers = [self._offer("o1", utcnow())]
        assert projections.latest_offers("vendor-z", offers) == {}


class TestLeads:
    def _plumber(self, store):
        v = Vendor(
            id="vendor-p",
            business_name="Plumb Perfect",
            email="plumbing@example.com",
            specialties=(Category.PLUMBING,),
        )
        store.add_vendor(v)
        return v

    def _leads(self, store, vendor):
        return [
            r.id
            for r in projections.leads_for_vendor(
                vendor, store.list_requests(), store.list_offers()
            )
        ]

    def test_specialty_match(self, store, vendor_a, vendor_b, request_r1):
        assert self._leads(store, vendor_a) == [request_r1.id]
        assert self._leads(store, vendor_b) == [request_r1.id]
        assert self._leads(store, self._plumber(store)) == []

    def test_targeted_requests_go_only_to_their_vendors(
        self, engine, store, buyer, vendor_a, vendor_b
    ):
        plumber = self._plumber(store)
        targeted = engine.create_request(
            RequestDraft(
                user_id=buyer.id,
                title="Spare caliper",
                items=[RequestItem(id="i1", title="Caliper", description="")],
                categories=[Category.AUTO_PARTS],
                targeted_vendor_ids=[plumber.id],
            )
        )
        assert self._leads(store, plumber) == [targeted.id]
        assert self._leads(store, vendor_a) == []

    def test_closed_requests_are_not_leads(
        self, engine, store, vendor_a, vendor_b, offer_a
    ):
        engine.accept(offer_a.id)
        # pending-confirmation is no longer open for quotes
        assert self._leads(store, vendor_b) == []
        engine.confirm(offer_a.id, disclosure.from_profile(vendor_a))
        assert self._leads(store, vendor_a) == []
        assert self._leads(store, vendor_b) == []


def test_marketplace_stats(engine, store, buyer, vendor_a, vendor_b, offer_a, offer_b):
    engine.accept(offer_a.id)
    engine.confirm(offer_a.id, disclosure.from_profile(vendor_a))
    engine.create_request(r1_draft(buyer.id))

    stats = projections.marketplace_stats(
        store.list_buyers(),
        store.list_vendors(),
        store.list_requests(),
        store.list_offers(),
    )
    assert stats == projections.MarketplaceStats(
        buyers=1,
        vendors=2,
        requests=2,
        active_requests=1,
        offers=2,
        confirmed_deals=1,
    )
