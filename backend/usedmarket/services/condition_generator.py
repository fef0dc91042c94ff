"""
Condition generator for used equipment.

WHAT: Produce consistent age, hours, damage, wear, price and hidden condition
WHY: Every found listing needs a believable used-item record from tier inputs
HOW: Weighted generation draw, uniform draws within tier ranges, clamped
"""

import random
from dataclasses import dataclass
from typing import Optional

from .tiers import (
    FALLBACK_AGENT_TIER,
    FALLBACK_QUALITY_TIER,
    GENERATIONS,
    QUALITY_TIERS,
    SEARCH_TIERS,
    Generation,
    QualityTier,
    SearchTier,
    quality_hint_for,
)
from ..models.listing import HiddenCondition
from ..utils.logger import get_logger

logger = get_logger(__name__)

DAMAGE_WEAR_BOUNDS = (0.01, 0.95)
AGE_DEPRECIATION_PER_YEAR = 0.03
MAX_AGE_DEPRECIATION = 0.25
MIN_PRICE_MULTIPLIER = 0.05
HIDDEN_QUALITY_VARIANCE = 0.25

# (field, variance) for hidden reliabilities
RELIABILITY_VARIANCE = (
    ("engine_reliability", 0.20),
    ("hydraulic_reliability", 0.25),
    ("electrical_reliability", 0.15),
)
RELIABILITY_BOUNDS = (0.1, 1.0)


@dataclass
class GeneratedCondition:
    """Output of one generator call."""
    generation: Generation
    quality_tier: int
    agent_tier: int
    age: int
    operating_hours: int
    damage: float
    wear: float
    price_multiplier: float
    base_price: float
    price: float
    hidden: HiddenCondition


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def resolve_quality_tier(index) -> QualityTier:
    """Quality tier lookup that falls back to "Any" instead of failing."""
    tier = QUALITY_TIERS.get(index) if isinstance(index, int) else None
    if tier is None:
        logger.warning(f"Quality tier {index!r} out of range, using {FALLBACK_QUALITY_TIER}")
        tier = QUALITY_TIERS[FALLBACK_QUALITY_TIER]
    return tier


def resolve_agent_tier(index) -> SearchTier:
    """Agent tier lookup that falls back to Regional instead of failing."""
    tier = SEARCH_TIERS.get(index) if isinstance(index, int) else None
    if tier is None:
        logger.warning(f"Agent tier {index!r} out of range, using {FALLBACK_AGENT_TIER}")
        tier = SEARCH_TIERS[FALLBACK_AGENT_TIER]
    return tier


def pick_generation(agent_tier: SearchTier, rng: random.Random,
                    forced: Optional[int] = None) -> Generation:
    """
    Draw a generation class weighted by agent tier.

    Higher tiers skew toward recent equipment. A valid ``forced`` index
    skips the draw; an invalid one is ignored.
    """
    if forced is not None:
        if forced in GENERATIONS:
            return GENERATIONS[forced]
        logger.warning(f"Forced generation {forced!r} out of range, ignoring")

    roll = rng.random()
    cumulative = 0.0
    for index, weight in enumerate(agent_tier.generation_weights, start=1):
        cumulative += weight
        if roll < cumulative:
            return GENERATIONS[index]
    return GENERATIONS[len(GENERATIONS)]


def price_multiplier_for(quality: QualityTier, age: int) -> float:
    """Quality multiplier reduced by age depreciation, floored at 5%."""
    depreciation = min(MAX_AGE_DEPRECIATION, age * AGE_DEPRECIATION_PER_YEAR)
    return max(MIN_PRICE_MULTIPLIER, quality.price_multiplier * (1.0 - depreciation))


def generate_hidden_condition(damage: float, rng: random.Random,
                              wear_penalty: float = 0.0) -> HiddenCondition:
    """
    Build the hidden condition record for a damage level.

    The quality scalar is biased toward ``1 - damage`` with variance. Each
    reliability follows the same bias with its own variance and is capped by
    a ceiling derived from the quality scalar, so a lemon can never test as
    a workhorse.
    """
    quality = clamp((1.0 - damage - wear_penalty)
                    + rng.uniform(-HIDDEN_QUALITY_VARIANCE, HIDDEN_QUALITY_VARIANCE))
    ceiling = 0.6 + 0.4 * quality

    reliabilities = {}
    for field_name, variance in RELIABILITY_VARIANCE:
        value = clamp((1.0 - damage) + rng.uniform(-variance, variance), *RELIABILITY_BOUNDS)
        reliabilities[field_name] = round(min(value, ceiling), 4)

    overall = round(sum(reliabilities.values()) / len(reliabilities), 4)
    return HiddenCondition(
        quality=round(quality, 6),
        overall_rating=overall,
        quality_hint=quality_hint_for(quality),
        **reliabilities,
    )


def generate_condition(
    base_price: float,
    quality_tier: int,
    agent_tier: int,
    rng: random.Random,
    forced_generation: Optional[int] = None,
) -> GeneratedCondition:
    """
    Generate one used-item record.

    WHAT: Age, hours, damage, wear, price and hidden condition
    WHY: Search results must be internally consistent for their tiers
    HOW: Draw order is fixed so a seeded rng reproduces the same item

    Args:
        base_price: New price of the equipment category
        quality_tier: 1 Poor .. 5 Excellent (out of range -> 2)
        agent_tier: 1 Local .. 3 National (out of range -> 2)
        rng: Random source owned by the caller
        forced_generation: Optional generation index 1..3

    Returns:
        GeneratedCondition
    """
    quality = resolve_quality_tier(quality_tier)
    agent = resolve_agent_tier(agent_tier)
    generation = pick_generation(agent, rng, forced_generation)

    age = rng.randint(*generation.age_range)
    operating_hours = int(age * rng.uniform(*generation.hours_per_year))

    damage = clamp(rng.uniform(*quality.damage_range) * agent.condition_multiplier, *DAMAGE_WEAR_BOUNDS)
    wear = clamp(rng.uniform(*quality.wear_range) * agent.condition_multiplier, *DAMAGE_WEAR_BOUNDS)

    multiplier = price_multiplier_for(quality, age)
    price = base_price * multiplier

    hidden = generate_hidden_condition(damage, rng)

    logger.debug(
        f"Generated {generation.name} item: age={age} hours={operating_hours} "
        f"damage={damage:.3f} wear={wear:.3f} multiplier={multiplier:.3f} "
        f"quality={hidden.read_privileged('quality'):.3f}"
    )

    return GeneratedCondition(
        generation=generation,
        quality_tier=quality.index,
        agent_tier=agent.index,
        age=age,
        operating_hours=operating_hours,
        damage=round(damage, 4),
        wear=round(wear, 4),
        price_multiplier=multiplier,
        base_price=base_price,
        price=price,
        hidden=hidden,
    )


def hidden_condition_for_item(damage: float, operating_hours: int,
                              rng: random.Random) -> HiddenCondition:
    """Hidden condition for an owner's item entering the sale queue."""
    wear_penalty = min(0.10, operating_hours / 50000.0)
    return generate_hidden_condition(clamp(damage), rng, wear_penalty=wear_penalty)
