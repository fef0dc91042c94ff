"""
Unit tests for flat record serialization.

WHAT: Test flatten/unflatten and FlatRecord serialize/deserialize
WHY: Save files must reload every live record, and reject broken ones
HOW: Serialize factory records, reload them, corrupt individual keys
"""

import pytest

from usedmarket.models.listing import ListingRecord
from usedmarket.models.requests import OfferEntry, SaleRequest, SearchRequest
from usedmarket.services.negotiation_engine import open_negotiation
from usedmarket.utils.exceptions import CorruptRecordError
from usedmarket.utils.flatten import flatten, unflatten


@pytest.mark.unit
class TestFlatten:

    def test_nested_dicts_use_dotted_keys(self):
        flat = flatten({"a": 1, "b": {"c": 2, "d": {"e": "x"}}})
        assert flat == {"a": 1, "b.c": 2, "b.d.e": "x"}

    def test_lists_use_numeric_segments(self):
        flat = flatten({"offers": [{"amount": 10}, {"amount": 20}], "ids": ["x", "y"]})
        assert flat == {"offers.0.amount": 10, "offers.1.amount": 20, "ids.0": "x", "ids.1": "y"}

    def test_sets_are_sorted(self):
        assert flatten({"revealed": {"b", "a"}}) == {"revealed.0": "a", "revealed.1": "b"}

    def test_empty_containers_dropped(self):
        assert flatten({"ids": [], "meta": {}, "x": None}) == {"x": None}

    def test_unflatten_rebuilds_lists_in_order(self):
        nested = unflatten({"ids.10": "k", "ids.2": "c", "ids.0": "a"})
        assert nested == {"ids": ["a", "c", "k"]}

    def test_key_collision(self):
        with pytest.raises(ValueError):
            unflatten({"a": 1, "a.b": 2})


@pytest.mark.unit
class TestListingRecordSerialization:

    def test_negotiating_listing_survives_reload(self, listing_factory):
        listing = listing_factory(quality=0.5)
        listing.negotiation = open_negotiation(listing)
        listing.negotiation.round = 2
        listing.hidden.reveal(["overall_rating", "engine_reliability"])

        flat = listing.serialize()
        restored = ListingRecord.deserialize(flat)

        assert not any(isinstance(v, (dict, list, set)) for v in flat.values())
        assert flat["hidden.revealed.0"] == "engine_reliability"
        assert restored == listing
        assert restored is not listing

    def test_missing_optional_fields_default(self, listing_factory):
        flat = listing_factory().serialize()
        for key in [k for k in flat if k.startswith("inspection_")]:
            del flat[key]
        flat.pop("ttl_started")
        restored = ListingRecord.deserialize(flat)
        assert restored.inspection_tier is None
        assert restored.ttl_started is False

    def test_unknown_keys_ignored(self, listing_factory):
        flat = listing_factory().serialize()
        flat["added_later"] = "value"
        assert ListingRecord.deserialize(flat).id == flat["id"]

    def test_missing_required_field(self, listing_factory):
        flat = listing_factory().serialize()
        del flat["hidden.quality"]
        with pytest.raises(CorruptRecordError) as exc_info:
            ListingRecord.deserialize(flat)
        assert exc_info.value.code == "CORRUPT_RECORD"
        assert exc_info.value.details["record_id"] == flat["id"]

    def test_bad_enum_value(self, listing_factory):
        flat = listing_factory().serialize()
        flat["status"] = "haunted"
        with pytest.raises(CorruptRecordError):
            ListingRecord.deserialize(flat)

    @pytest.mark.parametrize("payload", [None, "listing", ["id"]])
    def test_non_mapping_payload(self, payload):
        with pytest.raises(CorruptRecordError):
            ListingRecord.deserialize(payload)

    def test_older_negotiation_without_stand_firm_state(self, listing_factory):
        listing = listing_factory()
        listing.negotiation = open_negotiation(listing)
        flat = listing.serialize()
        for key in ("negotiation.stood_firm", "negotiation.locked_until_hour",
                    "negotiation.situation_modifier"):
            flat.pop(key)

        restored = ListingRecord.deserialize(flat).negotiation

        assert restored.stood_firm is False
        assert restored.locked_until_hour is None
        assert restored.situation_modifier == 0.0


@pytest.mark.unit
class TestRequestSerialization:

    def test_sale_with_offer_history(self, sale_item):
        sale = SaleRequest(owner_id="farm_1", item=sale_item, agent_tier=2, listing_id="lst_1")
        sale.offers.append(OfferEntry(amount=31000.0, hour=1020, accepted=False))
        sale.offers.append(OfferEntry(amount=32000.0, hour=1050))

        restored = SaleRequest.deserialize(sale.serialize())

        assert [o.amount for o in restored.offers] == [31000.0, 32000.0]
        assert restored.offers[0].accepted is False
        assert restored.offers[1].accepted is None

    def test_search_tier_out_of_range(self, tractor):
        flat = SearchRequest(requester_id="farm_1", category=tractor, quality_tier=3, search_tier=2).serialize()
        flat["search_tier"] = 7
        with pytest.raises(CorruptRecordError):
            SearchRequest.deserialize(flat)
