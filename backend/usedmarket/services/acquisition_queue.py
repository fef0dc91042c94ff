"""
Acquisition queue for search requests and found listings.

WHAT: Create searches, resolve them on the hour tick, negotiate found listings
WHY: Players commission agents to find used equipment over simulated time
HOW: Timers are hour counters on the records; the queue is their only writer
"""

import random
from typing import Dict, List, Optional, Tuple

from .billing import charge
from .condition_generator import clamp, generate_condition
from .listing_store import ListingStore
from .negotiation_engine import (
    describe_decision,
    evaluate_offer,
    open_negotiation,
    personality_for,
    record_offer,
    record_stand_firm,
    situation_modifier,
    stand_firm,
)
from .tiers import WeatherCondition, get_quality_tier, get_search_tier
from ..core.config import settings
from ..host.interfaces import Ledger, NotificationSink, Severity
from ..models.listing import (
    CategoryRef,
    ListingKind,
    ListingRecord,
    ListingStatus,
    NegotiationRecord,
)
from ..models.requests import SearchRequest, SearchStatus
from ..models.results import NegotiationDecision, NegotiationOutcome
from ..utils.exceptions import RecordNotFoundError, ValidationError
from ..utils.logger import get_logger

logger = get_logger(__name__)

SUCCESS_BOUNDS = (0.05, 0.95)
OFFERABLE_STATUSES = (ListingStatus.FOUND, ListingStatus.NEGOTIATING)


class AcquisitionQueue:
    """
    Owns SearchRequests and the listings they find.

    Args:
        store: Shared live listing store
        ledger: Host ledger for search fees and purchases
        notifier: Host notification sink
        rng: Random source shared with the rest of the context
        listing_ttl_hours: Offer window of a found listing
        commission_percent: Agent commission added on top of the found price
    """

    def __init__(
        self,
        store: ListingStore,
        ledger: Ledger,
        notifier: NotificationSink,
        rng: random.Random,
        listing_ttl_hours: Optional[int] = None,
        commission_percent: Optional[float] = None,
    ):
        self.store = store
        self.ledger = ledger
        self.notifier = notifier
        self.rng = rng
        self.listing_ttl_hours = listing_ttl_hours or settings.FOUND_LISTING_TTL_HOURS
        self.commission_percent = (
            settings.SEARCH_COMMISSION_PERCENT if commission_percent is None else commission_percent
        )
        self.searches: Dict[str, SearchRequest] = {}

    # ------------------------------------------------------------------
    # Searches
    # ------------------------------------------------------------------

    def request_search(
        self,
        requester_id: str,
        category: CategoryRef,
        quality_tier: int,
        search_tier: int,
        now_hour: int,
    ) -> SearchRequest:
        """
        Start a search. The fee is charged up front and never refunded.

        Raises:
            InvalidTierError: If a tier index is out of range
            FundsError: If the requester cannot pay the fee
        """
        if not requester_id:
            raise ValidationError("Requester id is required", code="MISSING_REQUESTER")
        quality = get_quality_tier(quality_tier)
        tier = get_search_tier(search_tier)

        fee = float(round(category.base_price * tier.fee_percent))
        low, high = tier.duration_hours
        duration = self.rng.randrange(low, high + 1, 24)

        charge(self.ledger, requester_id, fee, f"{tier.name} search")

        search = SearchRequest(
            requester_id=requester_id,
            category=category.model_copy(),
            quality_tier=quality.index,
            search_tier=tier.index,
            fee_paid=fee,
            created_at_hour=now_hour,
            completes_at_hour=now_hour + duration,
            hours_remaining=duration,
        )
        self.searches[search.id] = search

        logger.info(
            f"Search {search.id} started for {requester_id}: {category.name or category.id} "
            f"({quality.name}, {tier.name}, {duration}h, fee ${fee:,.0f})"
        )
        self.notifier.notify(
            requester_id,
            f"{tier.name} agent is searching for {category.name or category.id} ({quality.name}). "
            f"Results in {duration} hours.",
            Severity.INFO,
        )
        return search

    def get_search(self, search_id: str) -> SearchRequest:
        search = self.searches.get(search_id)
        if search is None:
            raise RecordNotFoundError("search", search_id)
        return search

    def cancel_search(self, search_id: str, requester_id: Optional[str] = None) -> SearchRequest:
        """
        Cancel a search. No refund; found listings not yet bought expire.

        Raises:
            RecordNotFoundError: If the search is not live
            ValidationError: If the caller does not own the search
        """
        search = self.get_search(search_id)
        if requester_id is not None and requester_id != search.requester_id:
            raise ValidationError("Search belongs to another requester", code="NOT_OWNER")

        search.status = SearchStatus.CANCELLED
        expired = self._expire_results(search)
        del self.searches[search.id]

        logger.info(f"Search {search.id} cancelled ({expired} found listings expired)")
        self.notifier.notify(search.requester_id, "Search cancelled. The agent fee is not refunded.",
                             Severity.WARNING)
        return search

    def _expire_results(self, search: SearchRequest, keep: Optional[str] = None) -> int:
        count = 0
        for listing_id in search.result_ids:
            listing = self.store.find(listing_id)
            if listing is None or listing.id == keep:
                continue
            self._clear_inspection(listing)
            self.store.retire(listing, ListingStatus.EXPIRED)
            count += 1
        return count

    @staticmethod
    def _clear_inspection(listing: ListingRecord) -> None:
        listing.inspection_tier = None
        listing.inspection_requested_by = None
        listing.inspection_requested_at_hour = None
        listing.inspection_completes_at_hour = None
        listing.on_hold = False

    def success_chance(self, search: SearchRequest) -> float:
        tier = get_search_tier(search.search_tier)
        quality = get_quality_tier(search.quality_tier)
        return clamp(tier.success_chance + quality.success_modifier, *SUCCESS_BOUNDS)

    def _resolve(self, search: SearchRequest, now_hour: int) -> None:
        """Roll the search outcome and create its listings."""
        tier = get_search_tier(search.search_tier)
        chance = self.success_chance(search)
        roll = self.rng.random()

        if roll >= chance:
            search.status = SearchStatus.FAILED
            del self.searches[search.id]
            logger.info(f"Search {search.id} failed (roll {roll:.3f} >= {chance:.2f})")
            self.notifier.notify(
                search.requester_id,
                f"The {tier.name} agent could not find any {search.category.name or search.category.id}.",
                Severity.WARNING,
            )
            return

        for _ in range(tier.find_count):
            listing = self._create_listing(search, now_hour)
            self.store.add(listing)
            search.result_ids.append(listing.id)

        search.status = SearchStatus.RESOLVED
        logger.info(f"Search {search.id} resolved with {len(search.result_ids)} listings")
        self.notifier.notify(
            search.requester_id,
            f"The {tier.name} agent found {len(search.result_ids)} "
            f"{search.category.name or search.category.id} listing(s).",
            Severity.SUCCESS,
        )

    def _create_listing(self, search: SearchRequest, now_hour: int) -> ListingRecord:
        generated = generate_condition(
            base_price=search.category.base_price,
            quality_tier=search.quality_tier,
            agent_tier=search.search_tier,
            rng=self.rng,
        )
        commission = round(generated.price * self.commission_percent, 2)
        return ListingRecord(
            kind=ListingKind.ACQUISITION,
            category=search.category.model_copy(),
            owner_id=search.requester_id,
            status=ListingStatus.FOUND,
            created_at_hour=now_hour,
            ttl=self.listing_ttl_hours,
            source_request_id=search.id,
            age=generated.age,
            operating_hours=generated.operating_hours,
            damage=generated.damage,
            wear=generated.wear,
            generation=generated.generation.name,
            quality_tier=generated.quality_tier,
            agent_tier=generated.agent_tier,
            base_price=generated.base_price,
            price=generated.price,
            asking_price=round(generated.price + commission, 2),
            commission=commission,
            hidden=generated.hidden,
            seller_personality=personality_for(generated.hidden.read_privileged("quality")).personality,
        )

    # ------------------------------------------------------------------
    # Found listings
    # ------------------------------------------------------------------

    def get_listing(self, listing_id: str, requester_id: Optional[str] = None) -> ListingRecord:
        """
        Live acquisition listing, optionally checked against its requester.

        Raises:
            RaceRejection: If the listing was already resolved
            RecordNotFoundError: If the id is unknown
            ValidationError: If the listing is not a found listing of the caller
        """
        listing = self.store.get(listing_id)
        if listing.kind != ListingKind.ACQUISITION:
            raise ValidationError(f"Listing {listing_id} is not a found listing", code="WRONG_LISTING_KIND")
        if requester_id is not None and requester_id != listing.owner_id:
            raise ValidationError("Listing belongs to another requester", code="NOT_OWNER")
        return listing

    @staticmethod
    def touch(listing: ListingRecord) -> None:
        """First interaction starts the offer window."""
        if not listing.ttl_started:
            listing.ttl_started = True
            logger.debug(f"Offer window started for {listing.id} ({listing.ttl}h)")

    def submit_offer(
        self,
        listing_id: str,
        offerer_id: str,
        amount: float,
        weather: WeatherCondition,
        now_hour: Optional[int] = None,
    ) -> Tuple[NegotiationDecision, ListingRecord]:
        """
        Make an offer on a found listing.

        An accepted offer is paid immediately at the settled price, never
        above the seller's current price; if the ledger refuses, nothing
        about the listing changes. ``now_hour`` drives the days-on-market
        modifier and the stand-firm lock.

        Raises:
            ValidationError: Bad amount, wrong owner, inspection in progress,
                or negotiation locked
            RaceRejection: If the listing was already resolved
            FundsError: If an accepted offer cannot be paid
        """
        listing = self.get_listing(listing_id, offerer_id)
        if listing.status not in OFFERABLE_STATUSES:
            raise ValidationError(f"Listing {listing_id} is not open for offers", code="NOT_OFFERABLE")
        if listing.inspection_active:
            raise ValidationError("Wait for the inspection to finish before offering",
                                  code="INSPECTION_IN_PROGRESS")

        negotiation = listing.negotiation or open_negotiation(listing)
        self._check_lock(negotiation, now_hour)
        situation = situation_modifier(listing, now_hour)
        decision = evaluate_offer(negotiation, amount, weather, self.rng, situation)

        if decision.outcome == NegotiationOutcome.ACCEPTED:
            charge(self.ledger, offerer_id, decision.settled_price, f"purchase of {listing.id}")

        self.touch(listing)
        record_offer(negotiation, decision)
        listing.negotiation = negotiation
        listing.status = ListingStatus.NEGOTIATING

        message = describe_decision(decision)
        if decision.outcome == NegotiationOutcome.ACCEPTED:
            self._complete_purchase(listing, decision.settled_price)
        elif decision.outcome == NegotiationOutcome.WALKED_AWAY:
            self.store.retire(listing, ListingStatus.WITHDRAWN)
            self._forget_result(listing)
            self.notifier.notify(offerer_id, message, Severity.ERROR)
        else:
            severity = Severity.INFO if decision.outcome == NegotiationOutcome.COUNTERED else Severity.WARNING
            self.notifier.notify(offerer_id, message, severity)

        logger.info(
            f"Offer ${decision.offer:,.0f} on {listing.id} (round {negotiation.round}): "
            f"{decision.outcome.value}"
        )
        return decision, listing

    def purchase_listing(self, listing_id: str, buyer_id: str) -> Tuple[float, ListingRecord]:
        """
        Buy a found listing at the seller's current price.

        Raises:
            ValidationError: Wrong owner or inspection in progress
            RaceRejection: If the listing was already resolved
            FundsError: If the buyer cannot pay
        """
        listing = self.get_listing(listing_id, buyer_id)
        if listing.status not in OFFERABLE_STATUSES:
            raise ValidationError(f"Listing {listing_id} is not for sale", code="NOT_OFFERABLE")
        if listing.inspection_active:
            raise ValidationError("Wait for the inspection to finish before buying",
                                  code="INSPECTION_IN_PROGRESS")

        price = listing.seller_price
        charge(self.ledger, buyer_id, price, f"purchase of {listing.id}")
        self._complete_purchase(listing, price)
        return price, listing

    def decline_counter(self, listing_id: str, requester_id: Optional[str] = None) -> ListingRecord:
        """Turn down the seller's counter. The listing stays open."""
        listing = self.get_listing(listing_id, requester_id)
        if listing.negotiation is None or listing.negotiation.last_response != NegotiationOutcome.COUNTERED.value:
            raise ValidationError("There is no counter offer to decline", code="NO_PENDING_OFFER")
        listing.negotiation.last_response = "declined"
        self.touch(listing)
        self.notifier.notify(listing.owner_id, "You declined the seller's counter offer.", Severity.INFO)
        return listing

    def stand_firm(
        self,
        listing_id: str,
        requester_id: Optional[str],
        now_hour: int,
    ) -> Tuple[NegotiationDecision, ListingRecord]:
        """
        Hold at the last offer instead of taking or declining a counter.

        If the seller caves the purchase closes at the original offer. If the
        seller leaves the table, offers are locked for a short while but the
        listing stays open at the counter price.

        Raises:
            ValidationError: No counter, already stood firm, or inspection in progress
            RaceRejection: If the listing was already resolved
            FundsError: If the original offer cannot be paid
        """
        listing = self.get_listing(listing_id, requester_id)
        if listing.inspection_active:
            raise ValidationError("Wait for the inspection to finish before negotiating",
                                  code="INSPECTION_IN_PROGRESS")
        negotiation = listing.negotiation
        if negotiation is None:
            raise ValidationError("There is no counter offer to stand firm against", code="NO_PENDING_OFFER")

        decision = stand_firm(negotiation, self.rng)
        if decision.outcome == NegotiationOutcome.ACCEPTED:
            charge(self.ledger, listing.owner_id, decision.settled_price, f"purchase of {listing.id}")

        self.touch(listing)
        record_stand_firm(negotiation, decision, now_hour)

        if decision.outcome == NegotiationOutcome.ACCEPTED:
            self._complete_purchase(listing, decision.settled_price)
        elif decision.outcome == NegotiationOutcome.COUNTERED:
            self.notifier.notify(
                listing.owner_id,
                f"The seller won't budge: ${decision.counter_price:,.0f} is as low as they go.",
                Severity.INFO,
            )
        else:
            self.notifier.notify(
                listing.owner_id,
                "The seller walked away from the table. Try again later.",
                Severity.WARNING,
            )

        logger.info(f"Stand firm on {listing.id} at ${decision.offer:,.0f}: {decision.outcome.value}")
        return decision, listing

    @staticmethod
    def _check_lock(negotiation: NegotiationRecord, now_hour: Optional[int]) -> None:
        locked_until = negotiation.locked_until_hour
        if locked_until is not None and now_hour is not None and now_hour < locked_until:
            raise ValidationError(
                f"The seller will not negotiate again until hour {locked_until}",
                code="NEGOTIATION_LOCKED",
                details={"locked_until_hour": locked_until},
            )

    def _complete_purchase(self, listing: ListingRecord, price: float) -> None:
        self.store.retire(listing, ListingStatus.SOLD)
        search = self.searches.get(listing.source_request_id or "")
        if search is not None:
            self._expire_results(search, keep=listing.id)
            del self.searches[search.id]
        logger.info(f"Listing {listing.id} purchased by {listing.owner_id} for ${price:,.0f}")
        self.notifier.notify(
            listing.owner_id,
            f"Purchased {listing.category.name or listing.category.id} for ${price:,.0f}.",
            Severity.SUCCESS,
        )

    def _forget_result(self, listing: ListingRecord) -> None:
        search = self.searches.get(listing.source_request_id or "")
        if search is not None and all(self.store.find(i) is None for i in search.result_ids):
            del self.searches[search.id]

    # ------------------------------------------------------------------
    # Clock
    # ------------------------------------------------------------------

    def tick(self, now_hour: int) -> None:
        """
        Advance one simulated hour.

        Search timers count down and resolve at zero. Found listings whose
        offer window has started lose one hour unless on hold, and expire
        at zero.
        """
        for search in list(self.searches.values()):
            if search.status != SearchStatus.ACTIVE:
                continue
            search.hours_remaining = max(0, search.hours_remaining - 1)
            if search.hours_remaining == 0:
                self._resolve(search, now_hour)

        for listing in self.store:
            if listing.kind != ListingKind.ACQUISITION or listing.status not in OFFERABLE_STATUSES:
                continue
            if not listing.ttl_started or listing.on_hold:
                continue
            listing.ttl = max(0, listing.ttl - 1)
            if listing.ttl == 0:
                self.store.retire(listing, ListingStatus.EXPIRED)
                self.notifier.notify(
                    listing.owner_id,
                    f"The offer window on {listing.category.name or listing.category.id} has closed.",
                    Severity.WARNING,
                )

        self.prune_searches()

    def prune_searches(self) -> int:
        """Drop resolved searches whose listings have all been resolved."""
        finished = [
            search_id for search_id, search in self.searches.items()
            if search.status == SearchStatus.RESOLVED
            and all(self.store.find(i) is None for i in search.result_ids)
        ]
        for search_id in finished:
            del self.searches[search_id]
        return len(finished)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def active_searches(self, requester_id: Optional[str] = None) -> List[SearchRequest]:
        return [
            s for s in self.searches.values()
            if requester_id is None or s.requester_id == requester_id
        ]

    def active_listings(self, requester_id: Optional[str] = None) -> List[ListingRecord]:
        return [
            listing for listing in self.store
            if listing.kind == ListingKind.ACQUISITION
            and (requester_id is None or listing.owner_id == requester_id)
        ]
