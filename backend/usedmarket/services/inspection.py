"""
Inspection subsystem.

WHAT: Paid, time-delayed reveal of a found listing's hidden condition
WHY: Buyers can pay to see past the visible damage before negotiating
HOW: Request places a hold; the hour tick completes due inspections
"""

from typing import List, Optional

from .billing import charge
from .listing_store import ListingStore
from .tiers import INSPECTION_TIERS, InspectionTier, get_inspection_tier
from ..host.interfaces import Ledger, NotificationSink, Severity
from ..models.listing import ListingKind, ListingRecord, ListingStatus
from ..utils.exceptions import ValidationError
from ..utils.logger import get_logger

logger = get_logger(__name__)

INSPECTABLE_STATUSES = (ListingStatus.FOUND, ListingStatus.NEGOTIATING)


def inspection_cost(listing: ListingRecord, tier: InspectionTier) -> float:
    """Fee for inspecting a listing, based on its asking price."""
    return tier.cost_for(listing.asking_price)


def inspection_hours_remaining(listing: ListingRecord, now_hour: int) -> Optional[int]:
    """Hours until the active inspection completes, None when idle."""
    if listing.inspection_completes_at_hour is None:
        return None
    return max(0, listing.inspection_completes_at_hour - now_hour)


def describe_findings(listing: ListingRecord) -> str:
    """Inspector's summary of the revealed fields."""
    findings = listing.hidden.visible()
    parts = []
    if "overall_rating" in findings:
        parts.append(f"overall {findings['overall_rating']:.0%}")
    for name in ("engine_reliability", "hydraulic_reliability", "electrical_reliability"):
        if name in findings:
            parts.append(f"{name.split('_')[0]} {findings[name]:.0%}")
    if "quality_hint" in findings:
        parts.append(f"verdict: {findings['quality_hint']}")
    return ", ".join(parts)


class InspectionService:
    """Runs inspections on live acquisition listings."""

    def __init__(self, store: ListingStore, ledger: Ledger, notifier: NotificationSink):
        self.store = store
        self.ledger = ledger
        self.notifier = notifier

    def request_inspection(
        self,
        listing_id: str,
        tier_index: int,
        now_hour: int,
        requester_id: Optional[str] = None,
    ) -> ListingRecord:
        """
        Start an inspection and put the listing on hold.

        Raises:
            InvalidTierError: If the tier is out of range
            ValidationError: Wrong listing, inspection already running, or
                the tier does not go deeper than a finished inspection
            RaceRejection: If the listing was already resolved
            FundsError: If the requester cannot pay
        """
        tier = get_inspection_tier(tier_index)
        listing = self.store.get(listing_id)

        if listing.kind != ListingKind.ACQUISITION:
            raise ValidationError("Only found listings can be inspected", code="WRONG_LISTING_KIND")
        if requester_id is not None and requester_id != listing.owner_id:
            raise ValidationError("Listing belongs to another requester", code="NOT_OWNER")
        if listing.status not in INSPECTABLE_STATUSES:
            raise ValidationError(f"Listing {listing_id} cannot be inspected now", code="NOT_INSPECTABLE")
        if listing.inspection_active:
            raise ValidationError("An inspection is already in progress", code="INSPECTION_IN_PROGRESS")
        if tier.index <= listing.completed_inspection_tier:
            done = INSPECTION_TIERS[listing.completed_inspection_tier].name
            raise ValidationError(
                f"A {done} inspection was already completed; choose a deeper tier",
                code="ALREADY_INSPECTED",
            )

        cost = inspection_cost(listing, tier)
        charge(self.ledger, listing.owner_id, cost, f"{tier.name} inspection")

        listing.ttl_started = True
        listing.on_hold = True
        listing.inspection_tier = tier.index
        listing.inspection_requested_by = listing.owner_id
        listing.inspection_requested_at_hour = now_hour
        listing.inspection_completes_at_hour = now_hour + tier.duration_hours

        logger.info(
            f"{tier.name} inspection of {listing.id} requested at hour {now_hour}, "
            f"completes at {listing.inspection_completes_at_hour} (fee ${cost:,.0f})"
        )
        self.notifier.notify(
            listing.owner_id,
            f"{tier.name} inspection booked for ${cost:,.0f}. Report in {tier.duration_hours} hours.",
            Severity.INFO,
        )
        return listing

    def cancel_inspection(self, listing_id: str, requester_id: Optional[str] = None) -> ListingRecord:
        """Stop an inspection. The fee is not refunded and nothing is revealed."""
        listing = self.store.get(listing_id)
        if requester_id is not None and requester_id != listing.owner_id:
            raise ValidationError("Listing belongs to another requester", code="NOT_OWNER")
        if not listing.inspection_active:
            raise ValidationError("No inspection in progress", code="NO_INSPECTION")

        tier = INSPECTION_TIERS[listing.inspection_tier]
        self._release(listing)
        logger.info(f"{tier.name} inspection of {listing.id} cancelled")
        self.notifier.notify(listing.owner_id, f"{tier.name} inspection cancelled. The fee is not refunded.",
                             Severity.WARNING)
        return listing

    @staticmethod
    def _release(listing: ListingRecord) -> None:
        listing.on_hold = False
        listing.inspection_tier = None
        listing.inspection_requested_by = None
        listing.inspection_requested_at_hour = None
        listing.inspection_completes_at_hour = None

    def tick(self, now_hour: int) -> List[ListingRecord]:
        """
        Complete every inspection due at ``now_hour``.

        Returns:
            Listings whose inspections completed on this tick
        """
        completed = []
        for listing in self.store:
            if not listing.inspection_active or now_hour < listing.inspection_completes_at_hour:
                continue
            tier = INSPECTION_TIERS[listing.inspection_tier]
            listing.hidden.reveal(tier.reveals)
            listing.completed_inspection_tier = max(listing.completed_inspection_tier, tier.index)
            self._release(listing)
            completed.append(listing)

            logger.info(f"{tier.name} inspection of {listing.id} completed at hour {now_hour}")
            self.notifier.notify(
                listing.owner_id,
                f"{tier.name} inspection report for {listing.category.name or listing.category.id}: "
                f"{describe_findings(listing)}",
                Severity.SUCCESS,
            )
        return completed
