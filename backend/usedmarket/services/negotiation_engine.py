"""
Negotiation engine for seller responses.

WHAT: Classify seller personality and decide the response to an offer
WHY: Offers carry graduated risk; insulting a seller can lose the listing
HOW: Pure functions over a passed-in NegotiationRecord and random source

Gap bands (gap = threshold - offer / reference asking):

    gap <= 0       accept (immovable below 98% of asking counters)
    (0, .05]       counter
    (.05, .10]     counter, reject chance rises 0 -> 30%
    (.10, .15]     50/50 counter vs reject
    (.15, .20]     reject, counter chance falls 30% -> 0
    > .20          reject, then roll the personality's walk-away chance

Immovable sellers turn every band counter into a reject.

The threshold drops with bad weather and with the listing's situation:
days on market, heavy damage and high operating hours make a seller more
willing to deal, a premium machine less so. Immovable sellers ignore the
situation.
"""

import math
import random
from typing import Optional, Tuple

from .tiers import (
    PERSONALITY_PROFILES,
    Personality,
    PersonalityProfile,
    WeatherCondition,
    weather_modifier_for,
)
from ..models.listing import ListingRecord, NegotiationRecord
from ..models.results import NegotiationDecision, NegotiationOutcome
from ..utils.exceptions import ValidationError
from ..utils.logger import get_logger

logger = get_logger(__name__)

GAP_PRECISION = 6
ALWAYS_COUNTER_GAP = 0.05
RISING_REJECT_GAP = 0.10
COIN_FLIP_GAP = 0.15
INSULT_GAP = 0.20
BAND_SLOPE = 6.0  # 30% change across a 5% band
IMMOVABLE_FLOOR = 0.98

# Situation modifiers
MARKET_DAY_DISCOUNT = 0.003
MAX_MARKET_DISCOUNT = 0.10
HEAVY_DAMAGE = 0.20
HEAVY_DAMAGE_DISCOUNT = 0.05
HIGH_OPERATING_HOURS = 5000
HIGH_HOURS_DISCOUNT = 0.03
PREMIUM_BASE_PRICE = 200000.0
PREMIUM_SURCHARGE = 0.05

# Stand-firm roll after a counter: accept the original offer, hold, or leave the table
STAND_FIRM_ACCEPT = 0.30
STAND_FIRM_HOLD = 0.50
STAND_FIRM_LOCK_HOURS = 1

_PROFILES_BY_PERSONALITY = {p.personality: p for p in PERSONALITY_PROFILES}


def personality_for(quality: float) -> PersonalityProfile:
    """
    Map a hidden quality scalar to its personality band.

    Pure: the same scalar always lands in the same band. Values outside
    [0, 1] are clamped first.
    """
    q = max(0.0, min(1.0, quality))
    for profile in reversed(PERSONALITY_PROFILES):
        if q >= profile.min_quality:
            return profile
    return PERSONALITY_PROFILES[0]


def profile_for(personality: Personality) -> PersonalityProfile:
    return _PROFILES_BY_PERSONALITY[Personality(personality)]


def effective_threshold(
    profile: PersonalityProfile,
    weather_modifier: float = 0.0,
    situation_modifier: float = 0.0,
) -> float:
    """Acceptance threshold after personality tolerance, weather and situation."""
    return profile.acceptance_threshold - profile.tolerance - weather_modifier - situation_modifier


def days_on_market(listing: ListingRecord, now_hour: Optional[int]) -> int:
    """Whole simulated days since the listing was created."""
    if now_hour is None:
        return 0
    return max(0, now_hour - listing.created_at_hour) // 24


def situation_modifier(listing: ListingRecord, now_hour: Optional[int] = None) -> float:
    """
    Threshold reduction from the listing's situation.

    +0.3% per day on market (capped at 10%), +5% above 20% damage, +3%
    above 5000 operating hours, -5% when the machine is worth over $200k new.
    """
    if Personality(listing.seller_personality) == Personality.IMMOVABLE:
        return 0.0

    modifier = min(days_on_market(listing, now_hour) * MARKET_DAY_DISCOUNT, MAX_MARKET_DISCOUNT)
    if listing.damage > HEAVY_DAMAGE:
        modifier += HEAVY_DAMAGE_DISCOUNT
    if listing.operating_hours > HIGH_OPERATING_HOURS:
        modifier += HIGH_HOURS_DISCOUNT
    if listing.base_price > PREMIUM_BASE_PRICE:
        modifier -= PREMIUM_SURCHARGE
    return round(modifier, GAP_PRECISION)

def reject_probability(gap: float, personality: Personality) -> float:
    """
    Probability that an offer at ``gap`` is rejected outright.

    Walk-away is rolled separately for gaps above the insult line. The
    accept band returns 0.0.
    """
    if gap <= 0:
        return 0.0
    if gap > INSULT_GAP or personality == Personality.IMMOVABLE:
        return 1.0
    if gap <= ALWAYS_COUNTER_GAP:
        return 0.0
    if gap <= RISING_REJECT_GAP:
        return round((gap - ALWAYS_COUNTER_GAP) * BAND_SLOPE, GAP_PRECISION)
    if gap <= COIN_FLIP_GAP:
        return 0.5
    return round(1.0 - (INSULT_GAP - gap) * BAND_SLOPE, GAP_PRECISION)


def open_negotiation(listing: ListingRecord) -> NegotiationRecord:
    """Start a negotiation record using the listing's fixed personality."""
    profile = profile_for(listing.seller_personality)
    return NegotiationRecord(
        personality=profile.personality,
        acceptance_threshold=profile.acceptance_threshold,
        tolerance=profile.tolerance,
        reference_asking=listing.asking_price,
        current_price=listing.asking_price,
    )


def counter_price(record: NegotiationRecord, offer: float, threshold: float) -> float:
    """
    Seller's new price, partway from the current price toward the offer.

    Never below the acceptance threshold, never above the current price,
    rounded up to whole currency units.
    """
    profile = profile_for(record.personality)
    asking = record.current_price
    proposed = asking - (asking - offer) * profile.concession
    floor = threshold * record.reference_asking
    return float(min(asking, math.ceil(max(proposed, floor))))


def evaluate_offer(
    record: NegotiationRecord,
    offer: float,
    weather: WeatherCondition,
    rng: random.Random,
    situation: float = 0.0,
) -> NegotiationDecision:
    """
    Decide the seller's response to one offer.

    WHAT: Accept, counter, reject or walk away
    WHY: Seller behaviour depends on hidden quality, weather and the listing's situation
    HOW: Compute the gap below threshold, look up the band, roll once

    Args:
        record: Negotiation state (not modified)
        offer: Amount offered, must be positive
        weather: Current weather, sampled once for this offer
        rng: Random source owned by the caller
        situation: Threshold reduction from ``situation_modifier``

    Returns:
        NegotiationDecision; ``settled_price`` is set when accepted

    Raises:
        ValidationError: If the offer is not a positive amount
    """
    if offer is None or not isinstance(offer, (int, float)) or offer <= 0 or math.isnan(offer):
        raise ValidationError(f"Offer must be a positive amount, got {offer!r}", code="INVALID_OFFER")

    profile = profile_for(record.personality)
    weather_mod = weather_modifier_for(weather)
    threshold = effective_threshold(profile, weather_mod, situation)
    fraction = offer / record.reference_asking
    gap = round(threshold - fraction, GAP_PRECISION)

    decision = NegotiationDecision(
        outcome=NegotiationOutcome.ACCEPTED,
        offer=float(offer),
        offer_fraction=fraction,
        threshold=threshold,
        gap=gap,
        weather_modifier=weather_mod,
        situation_modifier=situation,
    )

    # Offering at or above the seller's price closes at the seller's price
    if offer >= record.current_price:
        decision.settled_price = record.current_price
        return decision

    if gap <= 0:
        if profile.personality == Personality.IMMOVABLE and fraction < IMMOVABLE_FLOOR:
            decision.outcome = NegotiationOutcome.COUNTERED
            decision.counter_price = counter_price(record, offer, threshold)
        else:
            decision.settled_price = float(offer)
        return decision

    decision.reject_probability = reject_probability(gap, profile.personality)

    if gap > INSULT_GAP:
        decision.outcome = NegotiationOutcome.REJECTED
        if rng.random() < profile.walk_away_chance:
            decision.outcome = NegotiationOutcome.WALKED_AWAY
        logger.debug(
            f"Insulting offer ({fraction:.3f} of asking, gap {gap:.3f}) to "
            f"{profile.personality.value} seller -> {decision.outcome.value}"
        )
        return decision

    p = decision.reject_probability
    if p >= 1.0 or (p > 0.0 and rng.random() < p):
        decision.outcome = NegotiationOutcome.REJECTED
    else:
        decision.outcome = NegotiationOutcome.COUNTERED
        decision.counter_price = counter_price(record, offer, threshold)

    logger.debug(
        f"Offer {offer:.0f} ({fraction:.3f} of asking) to {profile.personality.value} seller: "
        f"threshold={threshold:.3f} gap={gap:.3f} p_reject={p:.2f} -> {decision.outcome.value}"
    )
    return decision


def record_offer(record: NegotiationRecord, decision: NegotiationDecision) -> None:
    """
    Apply a decision to the negotiation record.

    Only the owning queue calls this. A rejection leaves the seller price
    where it was.
    """
    record.round += 1
    record.last_offer = decision.offer
    record.weather_modifier = decision.weather_modifier
    record.situation_modifier = decision.situation_modifier
    record.last_response = decision.outcome.value
    if decision.outcome == NegotiationOutcome.COUNTERED and decision.counter_price is not None:
        record.current_price = decision.counter_price
        record.stood_firm = False
    elif decision.outcome == NegotiationOutcome.ACCEPTED and decision.settled_price is not None:
        record.current_price = decision.settled_price


def stand_firm(record: NegotiationRecord, rng: random.Random) -> NegotiationDecision:
    """
    Answer a counter by holding at the last offer.

    WHAT: The seller caves, holds at the counter, or leaves the table
    WHY: Players can push back once per counter instead of declining
    HOW: One roll: 30% accept the original offer, 50% hold, 20% reject with
         a short negotiation lock applied by the caller

    Raises:
        ValidationError: If there is no counter to push back on, or the
            player already stood firm on it
    """
    if record.last_response != NegotiationOutcome.COUNTERED.value or record.last_offer is None:
        raise ValidationError("There is no counter offer to stand firm against", code="NO_PENDING_OFFER")
    if record.stood_firm:
        raise ValidationError("You already stood firm on this counter", code="ALREADY_STOOD_FIRM")

    profile = profile_for(record.personality)
    threshold = effective_threshold(profile, record.weather_modifier, record.situation_modifier)
    fraction = record.last_offer / record.reference_asking
    decision = NegotiationDecision(
        outcome=NegotiationOutcome.COUNTERED,
        offer=record.last_offer,
        offer_fraction=fraction,
        threshold=threshold,
        gap=round(threshold - fraction, GAP_PRECISION),
        weather_modifier=record.weather_modifier,
        situation_modifier=record.situation_modifier,
    )

    roll = rng.random()
    if roll < STAND_FIRM_ACCEPT:
        decision.outcome = NegotiationOutcome.ACCEPTED
        decision.settled_price = record.last_offer
    elif roll < STAND_FIRM_ACCEPT + STAND_FIRM_HOLD:
        decision.counter_price = record.current_price
    else:
        decision.outcome = NegotiationOutcome.REJECTED

    logger.debug(f"Stand firm at {record.last_offer:.0f} (roll {roll:.3f}) -> {decision.outcome.value}")
    return decision


def record_stand_firm(record: NegotiationRecord, decision: NegotiationDecision, now_hour: int) -> None:
    """Apply a stand-firm decision. Holding keeps the counter open."""
    record.stood_firm = True
    if decision.outcome == NegotiationOutcome.ACCEPTED:
        record.current_price = decision.settled_price
        record.last_response = decision.outcome.value
    elif decision.outcome == NegotiationOutcome.REJECTED:
        record.last_response = decision.outcome.value
        record.locked_until_hour = now_hour + STAND_FIRM_LOCK_HOURS


def describe_decision(decision: NegotiationDecision) -> str:
    """Player-facing line for a decision."""
    if decision.outcome == NegotiationOutcome.ACCEPTED:
        return f"Seller accepted at ${decision.settled_price:,.0f}"
    if decision.outcome == NegotiationOutcome.COUNTERED:
        return f"Seller countered at ${decision.counter_price:,.0f}"
    if decision.outcome == NegotiationOutcome.WALKED_AWAY:
        return "Seller was insulted by the offer and withdrew the listing"
    return f"Seller rejected your offer of ${decision.offer:,.0f}"


def buyer_offer_fraction(return_range: Tuple[float, float], rng: random.Random) -> Tuple[float, Personality]:
    """
    Fraction of vanilla value a buyer offers inside a return range.

    The buyer's personality is rolled fresh; eager buyers sit at the top of
    the range and immovable ones at the bottom.
    """
    profile = personality_for(rng.random())
    slot = len(PERSONALITY_PROFILES) - 1 - PERSONALITY_PROFILES.index(profile)
    low, high = return_range
    width = (high - low) / len(PERSONALITY_PROFILES)
    fraction = low + width * (slot + rng.random())
    return min(high, max(low, fraction)), profile.personality
