"""
Tier catalog for the marketplace.

WHAT: Quality, generation, agent, personality, weather and inspection tables
WHY: Every component reads the same balance numbers from one place
HOW: Frozen dataclasses indexed 1..N, lookup helpers with validation/fallback
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple

from ..utils.exceptions import InvalidTierError

Range = Tuple[float, float]


@dataclass(frozen=True)
class QualityTier:
    """Player's desired condition band."""
    index: int
    name: str
    damage_range: Range
    wear_range: Range
    price_multiplier: float  # fraction of new price
    success_modifier: float  # added to the search tier's success chance


@dataclass(frozen=True)
class Generation:
    """Age class of a used item."""
    index: int
    name: str
    age_range: Tuple[int, int]  # years, inclusive
    hours_per_year: Range


@dataclass(frozen=True)
class SearchTier:
    """Acquisition agent tier."""
    index: int
    name: str
    fee_percent: float
    duration_hours: Tuple[int, int]  # inclusive, multiples of 24
    success_chance: float
    find_count: int
    generation_weights: Tuple[float, float, float]  # recent, mid-age, old
    condition_multiplier: float  # damage/wear scale


@dataclass(frozen=True)
class SaleTier:
    """Disposition agent tier."""
    index: int
    name: str
    fee_flat: float
    fee_percent: float
    listing_hours: int
    check_interval_hours: Tuple[int, int]
    success_chance: float
    return_range: Range  # fraction of vanilla value

    def fee_for(self, vanilla_value: float) -> float:
        """Agent fee charged at listing time, never refunded."""
        return float(round(self.fee_flat + vanilla_value * self.fee_percent))


@dataclass(frozen=True)
class InspectionTier:
    """Inspection depth and pricing."""
    index: int
    name: str
    base_cost: float
    percent_cost: float
    max_cost: float
    duration_hours: int
    reveals: Tuple[str, ...]

    def cost_for(self, price: float) -> float:
        """Flat fee plus percentage of price, capped."""
        return float(int(min(self.base_cost + price * self.percent_cost, self.max_cost)))


class Personality(str, Enum):
    """Seller personality derived from hidden quality."""
    DESPERATE = "desperate"
    MOTIVATED = "motivated"
    REASONABLE = "reasonable"
    FIRM = "firm"
    IMMOVABLE = "immovable"


@dataclass(frozen=True)
class PersonalityProfile:
    """Negotiation parameters of one personality band."""
    personality: Personality
    min_quality: float  # inclusive lower bound of the hidden quality band
    acceptance_threshold: float
    tolerance: float
    walk_away_chance: float
    concession: float  # share of the gap the seller gives up when countering


class WeatherCondition(str, Enum):
    """Discrete weather states reported by the host."""
    SUN = "sun"
    CLOUDY = "cloudy"
    RAIN = "rain"
    STORM = "storm"
    HAIL = "hail"
    SNOW = "snow"
    FOG = "fog"


QUALITY_TIERS: Dict[int, QualityTier] = {
    1: QualityTier(1, "Poor Condition", (0.55, 0.80), (0.60, 0.85), 0.15, 0.15),
    2: QualityTier(2, "Any Condition", (0.35, 0.60), (0.40, 0.65), 0.30, 0.08),
    3: QualityTier(3, "Fair Condition", (0.18, 0.35), (0.22, 0.40), 0.48, 0.00),
    4: QualityTier(4, "Good Condition", (0.06, 0.18), (0.08, 0.22), 0.65, -0.08),
    5: QualityTier(5, "Excellent Condition", (0.00, 0.06), (0.00, 0.08), 0.80, -0.15),
}

GENERATIONS: Dict[int, Generation] = {
    1: Generation(1, "Recent", (1, 3), (100, 800)),
    2: Generation(2, "Mid-age", (4, 7), (200, 1200)),
    3: Generation(3, "Old", (8, 15), (500, 2500)),
}

SEARCH_TIERS: Dict[int, SearchTier] = {
    1: SearchTier(1, "Local", 0.04, (24, 24), 0.25, 1, (0.20, 0.50, 0.30), 1.3),
    2: SearchTier(2, "Regional", 0.06, (24, 48), 0.55, 2, (0.40, 0.40, 0.20), 1.0),
    3: SearchTier(3, "National", 0.10, (48, 96), 0.80, 3, (0.55, 0.35, 0.10), 0.7),
}

SALE_TIERS: Dict[int, SaleTier] = {
    1: SaleTier(1, "Local", 50.0, 0.0, 72, (12, 24), 0.45, (0.60, 0.75)),
    2: SaleTier(2, "Regional", 250.0, 0.01, 144, (18, 36), 0.60, (0.70, 0.85)),
    3: SaleTier(3, "National", 1000.0, 0.02, 240, (24, 48), 0.75, (0.80, 0.95)),
}

RELIABILITY_FIELDS = ("engine_reliability", "hydraulic_reliability", "electrical_reliability")

INSPECTION_TIERS: Dict[int, InspectionTier] = {
    1: InspectionTier(1, "Quick", 1000.0, 0.02, 2500.0, 2, ("overall_rating",)),
    2: InspectionTier(2, "Standard", 2000.0, 0.03, 5000.0, 6,
                      ("overall_rating",) + RELIABILITY_FIELDS),
    3: InspectionTier(3, "Comprehensive", 4000.0, 0.05, 10000.0, 12,
                      ("overall_rating",) + RELIABILITY_FIELDS + ("quality_hint",)),
}

# Ordered from the lowest hidden-quality band upwards
PERSONALITY_PROFILES: Tuple[PersonalityProfile, ...] = (
    PersonalityProfile(Personality.DESPERATE, 0.00, 0.80, 0.15, 0.05, 0.60),
    PersonalityProfile(Personality.MOTIVATED, 0.20, 0.84, 0.08, 0.15, 0.50),
    PersonalityProfile(Personality.REASONABLE, 0.40, 0.88, 0.00, 0.35, 0.40),
    PersonalityProfile(Personality.FIRM, 0.60, 0.92, -0.05, 0.60, 0.25),
    PersonalityProfile(Personality.IMMOVABLE, 0.80, 0.83, -0.15, 0.90, 0.10),
)

WEATHER_MODIFIERS: Dict[WeatherCondition, float] = {
    WeatherCondition.HAIL: 0.12,
    WeatherCondition.STORM: 0.08,
    WeatherCondition.RAIN: 0.05,
    WeatherCondition.SNOW: 0.05,
}

QUALITY_HINTS: Tuple[Tuple[float, str], ...] = (
    (0.80, "workhorse"),
    (0.60, "above average"),
    (0.40, "average"),
    (0.20, "below average"),
    (0.00, "lemon"),
)

FALLBACK_QUALITY_TIER = 2
FALLBACK_AGENT_TIER = 2


def _require(table: Dict[int, object], kind: str, index) -> object:
    if not isinstance(index, int) or isinstance(index, bool) or index not in table:
        raise InvalidTierError(kind, index, range(min(table), max(table) + 1))
    return table[index]


def get_quality_tier(index: int) -> QualityTier:
    """Strict lookup, raises InvalidTierError."""
    return _require(QUALITY_TIERS, "quality", index)


def get_search_tier(index: int) -> SearchTier:
    """Strict lookup, raises InvalidTierError."""
    return _require(SEARCH_TIERS, "search", index)


def get_sale_tier(index: int) -> SaleTier:
    """Strict lookup, raises InvalidTierError."""
    return _require(SALE_TIERS, "sale", index)


def get_inspection_tier(index: int) -> InspectionTier:
    """Strict lookup, raises InvalidTierError."""
    return _require(INSPECTION_TIERS, "inspection", index)


def quality_hint_for(quality: float) -> str:
    """Inspector's wording for a hidden quality value."""
    for lower_bound, hint in QUALITY_HINTS:
        if quality >= lower_bound:
            return hint
    return QUALITY_HINTS[-1][1]


def weather_modifier_for(condition: WeatherCondition) -> float:
    """Seller eagerness bonus for bad weather."""
    return WEATHER_MODIFIERS.get(condition, 0.0)
