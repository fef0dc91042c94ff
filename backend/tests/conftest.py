"""
Pytest configuration and shared fixtures for backend tests.

WHAT: Centralized test configuration with markers and market fixtures
WHY: Enable test organization, filtering, and shared test utilities
HOW: Define pytest markers, fixtures, and test helpers
"""

import os
import tempfile

# Settings are read on first import; keep tests off the real data directory
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "usedmarket-tests", "app.log"))

import random

import pytest

from usedmarket.core.context import MarketContext
from usedmarket.host.memory import FixedWeather, InMemoryLedger, NotificationLog
from usedmarket.models.listing import CategoryRef, HiddenCondition, ListingKind, ListingRecord, ListingStatus
from usedmarket.models.requests import SaleItem
from usedmarket.services.negotiation_engine import personality_for
from usedmarket.services.tiers import WeatherCondition


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (isolated component tests)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (multiple components)"
    )
    config.addinivalue_line(
        "markers", "engine: Marketplace engine tests (generator, negotiation, queues, inspection)"
    )
    config.addinivalue_line(
        "markers", "api: FastAPI endpoint tests"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take significant time to run"
    )


class ScriptedRandom(random.Random):
    """
    Random source whose ``random()`` calls return scripted values.

    Once the script runs out it falls back to the seeded generator. Other
    methods (uniform, randint) use the seeded generator unchanged.
    """

    def __init__(self, values=(), seed: int = 0):
        super().__init__(seed)
        self.script = list(values)

    def random(self):
        if self.script:
            return self.script.pop(0)
        return super().random()

    def getrandbits(self, k):
        # Keeps randint/randrange on the seeded bit source, off the script
        return super().getrandbits(k)


@pytest.fixture
def scripted_rng():
    """Factory for ScriptedRandom instances."""
    return ScriptedRandom


@pytest.fixture
def ledger():
    return InMemoryLedger(starting_balance=500000.0)


@pytest.fixture
def notifications():
    return NotificationLog()


@pytest.fixture
def weather():
    return FixedWeather(WeatherCondition.SUN)


@pytest.fixture
def market(ledger, notifications, weather):
    """Seeded context starting at hour 1000."""
    return MarketContext(
        ledger=ledger,
        weather=weather,
        notifier=notifications,
        seed=1234,
        start_hour=1000,
    )


@pytest.fixture
def tractor():
    return CategoryRef(id="tractor_m", name="Medium Tractor", base_price=100000.0)


@pytest.fixture
def sale_item(tractor):
    return SaleItem(
        item_id="veh_42",
        name="Old Tractor",
        category=tractor,
        vanilla_value=40000.0,
        age=6,
        operating_hours=3200,
        damage=0.2,
        wear=0.3,
    )


def make_hidden(quality: float) -> HiddenCondition:
    return HiddenCondition(
        quality=quality,
        overall_rating=0.7,
        engine_reliability=0.72,
        hydraulic_reliability=0.68,
        electrical_reliability=0.7,
        quality_hint="above average",
    )


def make_listing(
    quality: float = 0.5,
    asking_price: float = 100000.0,
    owner_id: str = "farm_1",
    status: ListingStatus = ListingStatus.FOUND,
    ttl: int = 72,
    **overrides,
) -> ListingRecord:
    """Found listing with a chosen hidden quality and asking price."""
    fields = dict(
        kind=ListingKind.ACQUISITION,
        category=CategoryRef(id="tractor_m", name="Medium Tractor", base_price=150000.0),
        owner_id=owner_id,
        status=status,
        created_at_hour=1000,
        ttl=ttl,
        base_price=150000.0,
        price=round(asking_price / 1.08, 2),
        asking_price=asking_price,
        commission=round(asking_price - asking_price / 1.08, 2),
        hidden=make_hidden(quality),
        seller_personality=personality_for(quality).personality,
        age=5,
        damage=0.15,
        wear=0.3,
        operating_hours=4000,
        generation="Mid-age",
    )
    fields.update(overrides)
    return ListingRecord(**fields)


@pytest.fixture
def listing_factory():
    return make_listing
