"""
Integration tests for the HTTP API.

WHAT: Test the FastAPI routes end to end with TestClient
WHY: Hosts drive the market over HTTP; status codes and bodies are the contract
HOW: Real app and lifespan, with a seeded MarketContext swapped onto app.state
"""

import pytest
from fastapi.testclient import TestClient

from usedmarket.core.context import MarketContext
from usedmarket.main import app

START = 1000

TRACTOR = {"id": "tractor_m", "name": "Medium Tractor", "base_price": 100000.0}
ITEM = {
    "item_id": "veh_42",
    "name": "Old Tractor",
    "category": TRACTOR,
    "vanilla_value": 40000.0,
    "age": 6,
    "operating_hours": 3200,
    "damage": 0.2,
    "wear": 0.3,
}


@pytest.fixture
def rng(scripted_rng):
    return scripted_rng(seed=11)


@pytest.fixture
def ctx(ledger, weather, notifications, rng):
    return MarketContext(ledger=ledger, weather=weather, notifier=notifications,
                         rng=rng, start_hour=START)


@pytest.fixture
def client(ctx):
    with TestClient(app) as test_client:
        app.state.market = ctx
        yield test_client


@pytest.fixture
def found(ctx, listing_factory):
    listing = listing_factory(quality=0.5)
    ctx.store.add(listing)
    return listing


@pytest.mark.integration
@pytest.mark.api
class TestStatusRoutes:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self, client, found):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["components"]["market"]["live_listings"] == 1


@pytest.mark.integration
@pytest.mark.api
class TestSearchRoutes:

    def test_create_and_list(self, client):
        response = client.post("/api/v1/searches", json={
            "requester_id": "farm_1", "category": TRACTOR, "quality_tier": 3, "search_tier": 2,
        })
        assert response.status_code == 201
        search = response.json()
        assert search["fee_paid"] == 6000.0
        assert search["status"] == "active"

        listed = client.get("/api/v1/searches", params={"requester_id": "farm_1"}).json()
        assert [s["id"] for s in listed] == [search["id"]]

    def test_invalid_tier_is_400(self, client):
        response = client.post("/api/v1/searches", json={
            "requester_id": "farm_1", "category": TRACTOR, "quality_tier": 3, "search_tier": 7,
        })
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_TIER"

    def test_refused_fee_is_402(self, client, ledger):
        ledger.set_balance("farm_1", 5.0)
        response = client.post("/api/v1/searches", json={
            "requester_id": "farm_1", "category": TRACTOR, "quality_tier": 3, "search_tier": 2,
        })
        assert response.status_code == 402
        assert response.json()["error"] == "INSUFFICIENT_FUNDS"

    def test_missing_fields_is_400(self, client):
        response = client.post("/api/v1/searches", json={"requester_id": "farm_1"})
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_cancel(self, client):
        search = client.post("/api/v1/searches", json={
            "requester_id": "farm_1", "category": TRACTOR, "quality_tier": 3, "search_tier": 1,
        }).json()
        response = client.delete(f"/api/v1/searches/{search['id']}", params={"requester_id": "farm_1"})
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert client.get("/api/v1/searches").json() == []


@pytest.mark.integration
@pytest.mark.api
class TestListingRoutes:

    def test_view_hides_condition(self, client, found):
        response = client.get(f"/api/v1/listings/{found.id}")
        assert response.status_code == 200
        body = response.json()
        assert body["revealed_condition"] == {}
        assert "hidden" not in body
        assert body["ttl_started"] is True

    def test_unknown_listing_is_404(self, client):
        response = client.get("/api/v1/listings/lst_missing")
        assert response.status_code == 404
        assert response.json()["error"] == "LISTING_NOT_FOUND"

    def test_counter_offer(self, client, found):
        response = client.post(f"/api/v1/listings/{found.id}/offers",
                               json={"offerer_id": "farm_1", "amount": 83000})
        assert response.status_code == 200
        body = response.json()
        assert body["outcome"] == "countered"
        assert body["counter_price"] == 93200.0
        assert body["listing"]["seller_price"] == 93200.0

    def test_stand_firm_hold(self, client, rng, found):
        client.post(f"/api/v1/listings/{found.id}/offers", json={"offerer_id": "farm_1", "amount": 83000})
        rng.script = [0.5]

        response = client.post(f"/api/v1/listings/{found.id}/stand-firm", json={"owner_id": "farm_1"})

        assert response.status_code == 200
        body = response.json()
        assert body["outcome"] == "countered"
        assert body["counter_price"] == 93200.0

        again = client.post(f"/api/v1/listings/{found.id}/stand-firm", json={"owner_id": "farm_1"})
        assert again.status_code == 400
        assert again.json()["error"] == "ALREADY_STOOD_FIRM"

    def test_offer_above_asking_settles_at_asking(self, client, found, ledger):
        response = client.post(f"/api/v1/listings/{found.id}/offers",
                               json={"offerer_id": "farm_1", "amount": 180000})
        body = response.json()
        assert body["outcome"] == "accepted"
        assert body["settled_price"] == 100000.0
        assert ledger.balance("farm_1") == 400000.0

    def test_non_positive_offer_is_400(self, client, found):
        response = client.post(f"/api/v1/listings/{found.id}/offers",
                               json={"offerer_id": "farm_1", "amount": 0})
        assert response.status_code == 400

    def test_purchase_then_conflict(self, client, found):
        response = client.post(f"/api/v1/listings/{found.id}/purchase", json={"buyer_id": "farm_1"})
        assert response.status_code == 200
        assert response.json() == {"listing_id": found.id, "price": 100000.0}

        again = client.post(f"/api/v1/listings/{found.id}/purchase", json={"buyer_id": "farm_1"})
        assert again.status_code == 409
        assert again.json()["error"] == "ALREADY_HANDLED"

    def test_accept_counter(self, client, found):
        client.post(f"/api/v1/listings/{found.id}/offers", json={"offerer_id": "farm_1", "amount": 83000})
        response = client.post(f"/api/v1/listings/{found.id}/accept", json={"owner_id": "farm_1"})
        assert response.status_code == 200
        assert response.json()["price"] == 93200.0

    def test_inspection_and_hours(self, client, found):
        response = client.post(f"/api/v1/listings/{found.id}/inspection",
                               json={"tier": 2, "requester_id": "farm_1"})
        assert response.status_code == 202
        assert response.json()["inspection_active"] is True

        hours = client.get(f"/api/v1/listings/{found.id}/hours").json()
        assert hours["on_hold"] is True
        assert hours["inspection_hours_remaining"] == 6

        client.post("/api/v1/clock/hour", json={"hour": START + 6})
        body = client.get(f"/api/v1/listings/{found.id}").json()
        assert set(body["revealed_condition"]) == {
            "overall_rating", "engine_reliability", "hydraulic_reliability", "electrical_reliability",
        }

    def test_cancel_inspection_without_one(self, client, found):
        response = client.delete(f"/api/v1/listings/{found.id}/inspection")
        assert response.status_code == 400
        assert response.json()["error"] == "NO_INSPECTION"


@pytest.mark.integration
@pytest.mark.api
class TestSaleRoutes:

    def test_sale_offer_accept(self, client, rng, ledger):
        sale = client.post("/api/v1/sales", json={"owner_id": "farm_1", "item": ITEM, "agent_tier": 2})
        assert sale.status_code == 201
        sale = sale.json()

        rng.script = [0.0, 0.5, 0.5]
        client.post("/api/v1/clock/hour", json={"hour": START + sale["hours_until_check"]})
        pending = client.get("/api/v1/sales", params={"owner_id": "farm_1"}).json()[0]
        assert pending["pending_offer"]["amount"] == 31000.0

        blocked = client.delete(f"/api/v1/sales/{sale['id']}")
        assert blocked.status_code == 400
        assert blocked.json()["error"] == "OFFER_PENDING"

        accepted = client.post(f"/api/v1/listings/{sale['listing_id']}/accept", json={})
        assert accepted.status_code == 200
        assert accepted.json()["status"] == "sold"
        assert ledger.balance("farm_1") == 500000.0 - 650.0 + 31000.0

    def test_hours_for_sale(self, client):
        sale = client.post("/api/v1/sales", json={"owner_id": "farm_1", "item": ITEM, "agent_tier": 1}).json()
        hours = client.get(f"/api/v1/listings/{sale['id']}/hours").json()
        assert hours["hours_remaining"] == 72


@pytest.mark.integration
@pytest.mark.api
class TestClockRoutes:

    def test_hour_and_period(self, client):
        response = client.post("/api/v1/clock/hour", json={"hour": START + 3})
        assert response.json() == {"hour": START + 3, "period": 0, "processed": 3}

        stale = client.post("/api/v1/clock/hour", json={"hour": START})
        assert stale.json()["processed"] == 0

        step = client.post("/api/v1/clock/hour")
        assert step.json()["hour"] == START + 4

        period = client.post("/api/v1/clock/period")
        assert period.json()["period"] == 1
        assert client.get("/api/v1/clock").json()["period"] == 1


@pytest.mark.integration
@pytest.mark.api
class TestNotificationAndSaveRoutes:

    def test_notifications_since(self, client, notifications):
        notifications.notify("farm_1", "first")
        notifications.notify("farm_2", "second")
        notifications.notify("farm_1", "third")

        body = client.get("/api/v1/notifications", params={"owner_id": "farm_1", "since": 1}).json()
        assert [n["message"] for n in body] == ["third"]

    def test_save_load_delete(self, client, found):
        saved = client.post("/api/v1/saves/api_slot")
        assert saved.status_code == 201
        assert saved.json()["counts"]["listings"] == 1

        client.post(f"/api/v1/listings/{found.id}/purchase", json={"buyer_id": "farm_1"})
        assert client.get("/api/v1/listings").json() == []

        loaded = client.post("/api/v1/saves/api_slot/load")
        assert loaded.status_code == 200
        assert [v["id"] for v in client.get("/api/v1/listings").json()] == [found.id]

        assert "api_slot" in [s["name"] for s in client.get("/api/v1/saves").json()]
        assert client.delete("/api/v1/saves/api_slot").status_code == 204
        assert client.post("/api/v1/saves/api_slot/load").status_code == 404
