"""
Unit tests for the tier catalog.

WHAT: Test tier tables, fee formulas and strict lookups
WHY: Every component prices off these numbers
HOW: Direct assertions against the tables and helper functions
"""

import pytest

from usedmarket.services.tiers import (
    GENERATIONS,
    QUALITY_TIERS,
    SALE_TIERS,
    SEARCH_TIERS,
    WeatherCondition,
    get_inspection_tier,
    get_quality_tier,
    get_sale_tier,
    get_search_tier,
    quality_hint_for,
    weather_modifier_for,
)
from usedmarket.utils.exceptions import InvalidTierError


@pytest.mark.unit
class TestTables:

    def test_generation_weights_sum_to_one(self):
        for tier in SEARCH_TIERS.values():
            assert sum(tier.generation_weights) == pytest.approx(1.0)

    def test_search_durations_are_whole_days(self):
        for tier in SEARCH_TIERS.values():
            low, high = tier.duration_hours
            assert low % 24 == 0 and high % 24 == 0

    def test_quality_tiers_get_cleaner(self):
        highs = [QUALITY_TIERS[i].damage_range[1] for i in range(1, 6)]
        assert highs == sorted(highs, reverse=True)

    def test_generations_are_contiguous(self):
        assert GENERATIONS[1].age_range[1] + 1 == GENERATIONS[2].age_range[0]
        assert GENERATIONS[2].age_range[1] + 1 == GENERATIONS[3].age_range[0]


@pytest.mark.unit
class TestFees:

    @pytest.mark.parametrize("tier, expected", [(1, 50.0), (2, 650.0), (3, 1800.0)])
    def test_sale_fee(self, tier, expected):
        assert SALE_TIERS[tier].fee_for(40000.0) == expected

    def test_inspection_cost_cap(self):
        assert get_inspection_tier(2).cost_for(1000000.0) == 5000.0


@pytest.mark.unit
class TestLookups:

    @pytest.mark.parametrize("lookup, bad", [
        (get_quality_tier, 0),
        (get_quality_tier, 6),
        (get_search_tier, 4),
        (get_sale_tier, -1),
        (get_inspection_tier, "2"),
        (get_inspection_tier, True),
    ])
    def test_strict_lookup_rejects(self, lookup, bad):
        with pytest.raises(InvalidTierError) as exc_info:
            lookup(bad)
        assert exc_info.value.code == "INVALID_TIER"

    def test_strict_lookup_returns_tier(self):
        assert get_search_tier(3).name == "National"
        assert get_quality_tier(5).name == "Excellent Condition"

    @pytest.mark.parametrize("quality, hint", [
        (0.95, "workhorse"),
        (0.8, "workhorse"),
        (0.65, "above average"),
        (0.4, "average"),
        (0.25, "below average"),
        (0.0, "lemon"),
    ])
    def test_quality_hints(self, quality, hint):
        assert quality_hint_for(quality) == hint

    @pytest.mark.parametrize("condition, modifier", [
        (WeatherCondition.HAIL, 0.12),
        (WeatherCondition.STORM, 0.08),
        (WeatherCondition.RAIN, 0.05),
        (WeatherCondition.SNOW, 0.05),
        (WeatherCondition.SUN, 0.0),
        (WeatherCondition.FOG, 0.0),
    ])
    def test_weather_modifiers(self, condition, modifier):
        assert weather_modifier_for(condition) == modifier
