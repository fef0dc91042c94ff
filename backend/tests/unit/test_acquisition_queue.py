"""
Unit tests for the acquisition queue.

WHAT: Test search fees, resolution, found-listing TTLs, offers and purchases
WHY: Money moves here; a refused debit must leave every record untouched
HOW: Queue over an in-memory ledger and a scripted random source
"""

import pytest

from usedmarket.models.listing import ListingStatus
from usedmarket.models.requests import SearchStatus
from usedmarket.models.results import NegotiationOutcome
from usedmarket.services.acquisition_queue import AcquisitionQueue
from usedmarket.services.listing_store import ListingStore
from usedmarket.services.tiers import WeatherCondition
from usedmarket.utils.exceptions import (
    FundsError,
    InvalidTierError,
    RaceRejection,
    RecordNotFoundError,
    ValidationError,
)

NOW = 1000


@pytest.fixture
def store():
    return ListingStore()


@pytest.fixture
def rng(scripted_rng):
    return scripted_rng(seed=7)


@pytest.fixture
def queue(store, ledger, notifications, rng):
    return AcquisitionQueue(store, ledger, notifications, rng,
                            listing_ttl_hours=72, commission_percent=0.08)


def run_until_resolved(queue, search):
    for hour in range(1, search.hours_remaining + 1):
        queue.tick(NOW + hour)


@pytest.mark.unit
@pytest.mark.engine
class TestRequestSearch:

    def test_regional_fee_and_duration(self, queue, ledger, tractor):
        search = queue.request_search("farm_1", tractor, 3, 2, NOW)
        assert search.fee_paid == 6000.0
        assert ledger.balance("farm_1") == 494000.0
        assert search.hours_remaining in (24, 48)
        assert search.completes_at_hour == NOW + search.hours_remaining
        assert search.status == SearchStatus.ACTIVE

    def test_national_duration_in_whole_days(self, queue, tractor):
        for _ in range(20):
            search = queue.request_search("farm_1", tractor, 3, 3, NOW)
            assert search.hours_remaining in (48, 72, 96)

    @pytest.mark.parametrize("quality_tier, search_tier", [(0, 2), (6, 2), (3, 0), (3, 4)])
    def test_invalid_tier_charges_nothing(self, queue, ledger, tractor, quality_tier, search_tier):
        with pytest.raises(InvalidTierError):
            queue.request_search("farm_1", tractor, quality_tier, search_tier, NOW)
        assert ledger.transactions == []
        assert queue.searches == {}

    def test_insufficient_funds(self, queue, ledger, tractor):
        ledger.set_balance("farm_1", 100.0)
        with pytest.raises(FundsError):
            queue.request_search("farm_1", tractor, 3, 2, NOW)
        assert queue.searches == {}
        assert ledger.balance("farm_1") == 100.0

    @pytest.mark.parametrize("search_tier, quality_tier, expected", [
        (1, 5, 0.10),
        (3, 1, 0.95),
        (2, 3, 0.55),
    ])
    def test_success_chance_clamped(self, queue, tractor, search_tier, quality_tier, expected):
        search = queue.request_search("farm_1", tractor, quality_tier, search_tier, NOW)
        assert queue.success_chance(search) == pytest.approx(expected)


@pytest.mark.unit
@pytest.mark.engine
class TestResolveSearch:

    def test_success_creates_found_listings(self, queue, store, rng, tractor):
        search = queue.request_search("farm_1", tractor, 3, 2, NOW)
        rng.script = [0.0]
        run_until_resolved(queue, search)

        assert search.status == SearchStatus.RESOLVED
        assert len(search.result_ids) == 2
        for listing_id in search.result_ids:
            listing = store.get(listing_id)
            assert listing.status == ListingStatus.FOUND
            assert listing.ttl == 72
            assert listing.ttl_started is False
            assert listing.source_request_id == search.id
            assert listing.asking_price == pytest.approx(listing.price * 1.08, abs=0.02)
            assert listing.hidden.visible() == {}

    def test_failure_drops_search(self, queue, rng, notifications, tractor):
        search = queue.request_search("farm_1", tractor, 3, 1, NOW)
        rng.script = [0.99]
        run_until_resolved(queue, search)

        assert search.status == SearchStatus.FAILED
        assert search.id not in queue.searches
        assert notifications.entries[-1].severity == "warning"

    def test_search_counts_down_hourly(self, queue, tractor):
        search = queue.request_search("farm_1", tractor, 3, 2, NOW)
        start = search.hours_remaining
        queue.tick(NOW + 1)
        assert search.hours_remaining == start - 1

    def test_cancel_search_expires_results(self, queue, store, rng, ledger, tractor):
        search = queue.request_search("farm_1", tractor, 3, 2, NOW)
        rng.script = [0.0]
        run_until_resolved(queue, search)
        result_ids = list(search.result_ids)

        queue.cancel_search(search.id, "farm_1")

        assert ledger.balance("farm_1") == 494000.0
        assert search.id not in queue.searches
        for listing_id in result_ids:
            with pytest.raises(RaceRejection):
                store.get(listing_id)

    def test_cancel_search_by_other_requester(self, queue, tractor):
        search = queue.request_search("farm_1", tractor, 3, 2, NOW)
        with pytest.raises(ValidationError) as exc_info:
            queue.cancel_search(search.id, "farm_2")
        assert exc_info.value.code == "NOT_OWNER"

    def test_cancel_unknown_search(self, queue):
        with pytest.raises(RecordNotFoundError):
            queue.cancel_search("srch_missing")


@pytest.mark.unit
@pytest.mark.engine
class TestFoundListingTtl:

    def test_countdown_waits_for_first_interaction(self, queue, store, listing_factory):
        listing = listing_factory(ttl=3)
        store.add(listing)
        for hour in range(1, 6):
            queue.tick(NOW + hour)
        assert listing.ttl == 3

    def test_expires_after_touch(self, queue, store, listing_factory):
        listing = listing_factory(ttl=3)
        store.add(listing)
        queue.touch(listing)
        for hour in range(1, 4):
            queue.tick(NOW + hour)
        assert listing.status == ListingStatus.EXPIRED
        with pytest.raises(RaceRejection):
            store.get(listing.id)

    def test_hold_pauses_countdown(self, queue, store, listing_factory):
        listing = listing_factory(ttl=3, ttl_started=True, on_hold=True)
        store.add(listing)
        queue.tick(NOW + 1)
        assert listing.ttl == 3


@pytest.mark.unit
@pytest.mark.engine
class TestOffers:

    def test_accepted_offer_pays_and_sells(self, queue, store, ledger, listing_factory):
        listing = listing_factory(quality=0.5)
        store.add(listing)

        decision, result = queue.submit_offer(listing.id, "farm_1", 90000.0, WeatherCondition.SUN)

        assert decision.outcome == NegotiationOutcome.ACCEPTED
        assert result.status == ListingStatus.SOLD
        assert ledger.balance("farm_1") == 410000.0
        with pytest.raises(RaceRejection):
            store.get(listing.id)

    def test_offer_above_asking_pays_seller_price(self, queue, store, ledger, listing_factory):
        listing = listing_factory(quality=0.5)
        store.add(listing)

        decision, result = queue.submit_offer(listing.id, "farm_1", 180000.0, WeatherCondition.SUN)

        assert decision.outcome == NegotiationOutcome.ACCEPTED
        assert decision.settled_price == 100000.0
        assert result.negotiation.current_price == 100000.0
        assert ledger.balance("farm_1") == 400000.0

    def test_days_on_market_soften_seller(self, queue, store, ledger, listing_factory):
        listing = listing_factory(quality=0.5)
        store.add(listing)

        decision, _ = queue.submit_offer(listing.id, "farm_1", 83000.0, WeatherCondition.SUN,
                                         now_hour=NOW + 20 * 24)

        assert decision.situation_modifier == pytest.approx(0.06)
        assert decision.outcome == NegotiationOutcome.ACCEPTED
        assert ledger.balance("farm_1") == 500000.0 - 83000.0

    def test_heavy_damage_softens_seller(self, queue, store, listing_factory):
        listing = listing_factory(quality=0.5, damage=0.3)
        store.add(listing)
        decision, _ = queue.submit_offer(listing.id, "farm_1", 83000.0, WeatherCondition.SUN, now_hour=NOW)
        assert decision.outcome == NegotiationOutcome.ACCEPTED

    def test_refused_debit_leaves_listing_untouched(self, queue, store, ledger, listing_factory):
        listing = listing_factory(quality=0.5)
        store.add(listing)
        ledger.set_balance("farm_1", 1000.0)

        with pytest.raises(FundsError):
            queue.submit_offer(listing.id, "farm_1", 90000.0, WeatherCondition.SUN)

        assert listing.status == ListingStatus.FOUND
        assert listing.negotiation is None
        assert listing.ttl_started is False
        assert store.get(listing.id) is listing

    def test_counter_starts_negotiation(self, queue, store, listing_factory):
        listing = listing_factory(quality=0.5)
        store.add(listing)

        decision, result = queue.submit_offer(listing.id, "farm_1", 83000.0, WeatherCondition.SUN)

        assert decision.outcome == NegotiationOutcome.COUNTERED
        assert result.status == ListingStatus.NEGOTIATING
        assert result.ttl_started is True
        assert result.seller_price == 93200.0

    def test_purchase_at_counter_price(self, queue, store, ledger, listing_factory):
        listing = listing_factory(quality=0.5)
        store.add(listing)
        queue.submit_offer(listing.id, "farm_1", 83000.0, WeatherCondition.SUN)

        price, result = queue.purchase_listing(listing.id, "farm_1")

        assert price == 93200.0
        assert result.status == ListingStatus.SOLD
        assert ledger.balance("farm_1") == 500000.0 - 93200.0

    def test_walk_away_withdraws_listing(self, queue, store, rng, listing_factory):
        listing = listing_factory(quality=0.1)
        store.add(listing)
        rng.script = [0.0]

        decision, _ = queue.submit_offer(listing.id, "farm_1", 40000.0, WeatherCondition.SUN)

        assert decision.outcome == NegotiationOutcome.WALKED_AWAY
        assert store.tombstones[listing.id].status == ListingStatus.WITHDRAWN
        with pytest.raises(RaceRejection):
            queue.submit_offer(listing.id, "farm_1", 90000.0, WeatherCondition.SUN)

    def test_offer_blocked_during_inspection(self, queue, store, listing_factory):
        listing = listing_factory(inspection_tier=1, inspection_completes_at_hour=NOW + 2)
        store.add(listing)
        with pytest.raises(ValidationError) as exc_info:
            queue.submit_offer(listing.id, "farm_1", 90000.0, WeatherCondition.SUN)
        assert exc_info.value.code == "INSPECTION_IN_PROGRESS"

    def test_offer_from_other_requester(self, queue, store, listing_factory):
        listing = listing_factory()
        store.add(listing)
        with pytest.raises(ValidationError) as exc_info:
            queue.submit_offer(listing.id, "farm_2", 90000.0, WeatherCondition.SUN)
        assert exc_info.value.code == "NOT_OWNER"

    def test_decline_without_counter(self, queue, store, listing_factory):
        listing = listing_factory()
        store.add(listing)
        with pytest.raises(ValidationError) as exc_info:
            queue.decline_counter(listing.id, "farm_1")
        assert exc_info.value.code == "NO_PENDING_OFFER"

    def test_decline_counter_keeps_listing_open(self, queue, store, listing_factory):
        listing = listing_factory(quality=0.5)
        store.add(listing)
        queue.submit_offer(listing.id, "farm_1", 83000.0, WeatherCondition.SUN)

        result = queue.decline_counter(listing.id, "farm_1")

        assert result.status == ListingStatus.NEGOTIATING
        assert result.negotiation.last_response == "declined"
        assert store.get(listing.id) is listing

    def test_purchase_expires_sibling_results(self, queue, store, rng, tractor):
        search = queue.request_search("farm_1", tractor, 3, 2, NOW)
        rng.script = [0.0]
        run_until_resolved(queue, search)
        bought, sibling = search.result_ids

        queue.purchase_listing(bought, "farm_1")

        assert store.tombstones[bought].status == ListingStatus.SOLD
        assert store.tombstones[sibling].status == ListingStatus.EXPIRED
        assert search.id not in queue.searches


@pytest.mark.unit
@pytest.mark.engine
class TestStandFirm:

    @pytest.fixture
    def countered(self, queue, store, listing_factory):
        """Found listing whose reasonable seller countered 83000 with 93200."""
        listing = listing_factory(quality=0.5)
        store.add(listing)
        queue.submit_offer(listing.id, "farm_1", 83000.0, WeatherCondition.SUN, now_hour=NOW)
        return listing

    def test_seller_caves_at_original_offer(self, queue, store, rng, ledger, countered):
        rng.script = [0.1]

        decision, result = queue.stand_firm(countered.id, "farm_1", NOW)

        assert decision.outcome == NegotiationOutcome.ACCEPTED
        assert result.status == ListingStatus.SOLD
        assert ledger.balance("farm_1") == 500000.0 - 83000.0
        assert store.tombstones[countered.id].status == ListingStatus.SOLD

    def test_refused_debit_keeps_counter(self, queue, rng, ledger, countered):
        ledger.set_balance("farm_1", 1000.0)
        rng.script = [0.1]

        with pytest.raises(FundsError):
            queue.stand_firm(countered.id, "farm_1", NOW)

        assert countered.status == ListingStatus.NEGOTIATING
        assert countered.negotiation.stood_firm is False
        assert countered.seller_price == 93200.0

    def test_seller_holds_at_counter(self, queue, rng, ledger, notifications, countered):
        rng.script = [0.5]

        decision, result = queue.stand_firm(countered.id, "farm_1", NOW)

        assert decision.outcome == NegotiationOutcome.COUNTERED
        assert result.seller_price == 93200.0
        assert "won't budge" in notifications.entries[-1].message
        price, _ = queue.purchase_listing(countered.id, "farm_1")
        assert price == 93200.0

    def test_seller_leaves_table_and_locks_offers(self, queue, rng, ledger, countered):
        rng.script = [0.9]

        decision, result = queue.stand_firm(countered.id, "farm_1", NOW)

        assert decision.outcome == NegotiationOutcome.REJECTED
        assert result.status == ListingStatus.NEGOTIATING
        assert result.negotiation.locked_until_hour == NOW + 1
        with pytest.raises(ValidationError) as exc_info:
            queue.submit_offer(countered.id, "farm_1", 95000.0, WeatherCondition.SUN, now_hour=NOW)
        assert exc_info.value.code == "NEGOTIATION_LOCKED"

        decision, _ = queue.submit_offer(countered.id, "farm_1", 95000.0, WeatherCondition.SUN,
                                         now_hour=NOW + 1)
        assert decision.settled_price == 93200.0
        assert ledger.balance("farm_1") == 500000.0 - 93200.0

    def test_without_negotiation(self, queue, store, listing_factory):
        listing = listing_factory()
        store.add(listing)
        with pytest.raises(ValidationError) as exc_info:
            queue.stand_firm(listing.id, "farm_1", NOW)
        assert exc_info.value.code == "NO_PENDING_OFFER"
