"""
Disposition queue for owner sale listings.

WHAT: List owned equipment through a sale agent and collect buyer offers
WHY: Agents find buyers over simulated time for a non-refundable fee
HOW: Hour tick counts down listing TTL and buyer-search timers per SaleRequest
"""

import random
from typing import Dict, List, Optional

from .billing import charge, pay_out
from .condition_generator import hidden_condition_for_item
from .listing_store import ListingStore
from .negotiation_engine import buyer_offer_fraction, personality_for
from .tiers import SaleTier, get_sale_tier
from ..core.config import settings
from ..host.interfaces import Ledger, NotificationSink, Severity
from ..models.listing import ListingKind, ListingRecord, ListingStatus
from ..models.requests import (
    OPEN_SALE_STATUSES,
    OfferEntry,
    PendingOffer,
    SaleItem,
    SaleRequest,
    SaleStatus,
)
from ..utils.exceptions import RecordNotFoundError, ValidationError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class DispositionQueue:
    """
    Owns SaleRequests and their listings.

    Args:
        store: Shared live listing store
        ledger: Host ledger for agent fees and sale payouts
        notifier: Host notification sink
        rng: Random source shared with the rest of the context
        offer_response_hours: How long a buyer offer stays open
    """

    def __init__(
        self,
        store: ListingStore,
        ledger: Ledger,
        notifier: NotificationSink,
        rng: random.Random,
        offer_response_hours: Optional[int] = None,
    ):
        self.store = store
        self.ledger = ledger
        self.notifier = notifier
        self.rng = rng
        self.offer_response_hours = offer_response_hours or settings.OFFER_RESPONSE_HOURS
        self.sales: Dict[str, SaleRequest] = {}
        self._by_listing: Dict[str, str] = {}

    def list_for_sale(self, owner_id: str, item: SaleItem, agent_tier: int, now_hour: int) -> SaleRequest:
        """
        Hand an item to a sale agent. The fee is charged immediately.

        Raises:
            InvalidTierError: If the agent tier is out of range
            ValidationError: If the item is already listed
            FundsError: If the owner cannot pay the fee
        """
        if not owner_id:
            raise ValidationError("Owner id is required", code="MISSING_OWNER")
        tier = get_sale_tier(agent_tier)
        if any(s.item.item_id == item.item_id and s.owner_id == owner_id for s in self.sales.values()):
            raise ValidationError(f"Item {item.item_id} is already listed for sale", code="ALREADY_LISTED")

        fee = tier.fee_for(item.vanilla_value)
        charge(self.ledger, owner_id, fee, f"{tier.name} sale agent")

        hidden = hidden_condition_for_item(item.damage, item.operating_hours, self.rng)
        listing = ListingRecord(
            kind=ListingKind.DISPOSITION,
            category=item.category.model_copy(),
            owner_id=owner_id,
            status=ListingStatus.SEARCHING,
            created_at_hour=now_hour,
            ttl=tier.listing_hours,
            ttl_started=True,
            age=item.age,
            operating_hours=item.operating_hours,
            damage=item.damage,
            wear=item.wear,
            agent_tier=tier.index,
            base_price=item.category.base_price,
            price=item.vanilla_value,
            asking_price=item.vanilla_value,
            hidden=hidden,
            seller_personality=personality_for(hidden.read_privileged("quality")).personality,
        )
        sale = SaleRequest(
            owner_id=owner_id,
            item=item.model_copy(deep=True),
            agent_tier=tier.index,
            fee_paid=fee,
            created_at_hour=now_hour,
            hours_until_check=self._roll_check_interval(tier),
            listing_id=listing.id,
        )
        listing.source_request_id = sale.id

        self.store.add(listing)
        self.sales[sale.id] = sale
        self._by_listing[listing.id] = sale.id

        logger.info(
            f"Sale {sale.id} listed for {owner_id}: {item.name or item.item_id} "
            f"({tier.name}, fee ${fee:,.0f}, {tier.listing_hours}h)"
        )
        self.notifier.notify(
            owner_id,
            f"{item.name or item.item_id} listed with a {tier.name} agent for {tier.listing_hours} hours. "
            f"Agent fee ${fee:,.0f} charged.",
            Severity.INFO,
        )
        return sale

    def _roll_check_interval(self, tier: SaleTier) -> int:
        return self.rng.randint(*tier.check_interval_hours)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_sale(self, sale_id: str) -> SaleRequest:
        sale = self.sales.get(sale_id)
        if sale is None:
            raise RecordNotFoundError("sale", sale_id)
        return sale

    def sale_for_listing(self, listing_id: str) -> SaleRequest:
        """
        Open sale behind a listing id.

        Raises:
            RaceRejection: If the listing was already resolved
            RecordNotFoundError: If the id is unknown
        """
        self.store.get(listing_id)
        sale_id = self._by_listing.get(listing_id)
        if sale_id is None or sale_id not in self.sales:
            raise RecordNotFoundError("sale", listing_id)
        return self.sales[sale_id]

    def owns_listing(self, listing_id: str) -> bool:
        return listing_id in self._by_listing

    @staticmethod
    def _check_owner(sale: SaleRequest, owner_id: Optional[str]) -> None:
        if owner_id is not None and owner_id != sale.owner_id:
            raise ValidationError("Sale belongs to another owner", code="NOT_OWNER")

    def _close(self, sale: SaleRequest, sale_status: SaleStatus, listing_status: ListingStatus) -> None:
        sale.status = sale_status
        sale.pending_offer = None
        listing = self.store.find(sale.listing_id)
        if listing is not None:
            self.store.retire(listing, listing_status)
        self.sales.pop(sale.id, None)
        self._by_listing.pop(sale.listing_id, None)

    # ------------------------------------------------------------------
    # Owner operations
    # ------------------------------------------------------------------

    def accept_offer(self, listing_id: str, owner_id: Optional[str] = None) -> SaleRequest:
        """
        Accept the pending buyer offer and get paid.

        Raises:
            ValidationError: If no offer is pending
            RaceRejection: If the listing was already resolved
            FundsError: If the ledger refuses the payout
        """
        sale = self.sale_for_listing(listing_id)
        self._check_owner(sale, owner_id)
        pending = sale.pending_offer
        if pending is None:
            raise ValidationError("There is no pending offer to accept", code="NO_PENDING_OFFER")

        pay_out(self.ledger, sale.owner_id, pending.amount, f"sale of {sale.item.item_id}")
        sale.offers[-1].accepted = True
        self._close(sale, SaleStatus.SOLD, ListingStatus.SOLD)

        logger.info(f"Sale {sale.id} completed for ${pending.amount:,.0f}")
        self.notifier.notify(
            sale.owner_id,
            f"Sold {sale.item.name or sale.item.item_id} for ${pending.amount:,.0f}.",
            Severity.SUCCESS,
        )
        return sale

    def decline_offer(self, listing_id: str, owner_id: Optional[str] = None) -> SaleRequest:
        """Decline the pending offer; the agent keeps looking."""
        sale = self.sale_for_listing(listing_id)
        self._check_owner(sale, owner_id)
        pending = sale.pending_offer
        if pending is None:
            raise ValidationError("There is no pending offer to decline", code="NO_PENDING_OFFER")

        sale.offers[-1].accepted = False
        self._resume_search(sale)
        logger.info(f"Sale {sale.id}: owner declined ${pending.amount:,.0f}")
        self.notifier.notify(sale.owner_id, "Offer declined. The agent keeps looking for buyers.",
                             Severity.INFO)
        return sale

    def cancel_sale(self, sale_id: str, owner_id: Optional[str] = None) -> SaleRequest:
        """
        Take the item off the market. The agent fee is forfeited.

        Raises:
            RecordNotFoundError: If the sale is not open
            ValidationError: If a buyer offer is pending
        """
        sale = self.sales.get(sale_id)
        if sale is None and sale_id in self._by_listing:
            sale = self.sales.get(self._by_listing[sale_id])
        if sale is None:
            raise RecordNotFoundError("sale", sale_id)
        self._check_owner(sale, owner_id)
        if sale.status == SaleStatus.OFFER_PENDING:
            raise ValidationError("Accept or decline the pending offer before cancelling",
                                  code="OFFER_PENDING")

        self._close(sale, SaleStatus.CANCELLED, ListingStatus.WITHDRAWN)
        logger.info(f"Sale {sale.id} cancelled, fee ${sale.fee_paid:,.0f} forfeited")
        self.notifier.notify(
            sale.owner_id,
            f"{sale.item.name or sale.item.item_id} returned to your inventory. "
            f"The ${sale.fee_paid:,.0f} agent fee is not refunded.",
            Severity.WARNING,
        )
        return sale

    def _resume_search(self, sale: SaleRequest) -> None:
        sale.pending_offer = None
        sale.status = SaleStatus.ACTIVE
        sale.hours_until_check = self._roll_check_interval(get_sale_tier(sale.agent_tier))
        listing = self.store.find(sale.listing_id)
        if listing is not None:
            listing.status = ListingStatus.SEARCHING

    # ------------------------------------------------------------------
    # Clock
    # ------------------------------------------------------------------

    def tick(self, now_hour: int) -> None:
        """
        Advance one simulated hour for every open sale.

        Listing TTL counts down first; at zero the sale expires and the item
        goes back to the owner. Pending offers lapse after the response
        window. Otherwise the buyer-search timer counts down and rolls for a
        buyer at zero.
        """
        for sale in list(self.sales.values()):
            if sale.status not in OPEN_SALE_STATUSES:
                continue
            listing = self.store.find(sale.listing_id)
            if listing is None:
                logger.warning(f"Sale {sale.id} lost its listing {sale.listing_id}, closing")
                self.sales.pop(sale.id, None)
                self._by_listing.pop(sale.listing_id, None)
                continue

            if not listing.on_hold:
                listing.ttl = max(0, listing.ttl - 1)
            if listing.ttl == 0:
                self._expire(sale)
                continue

            if sale.pending_offer is not None:
                if now_hour >= sale.pending_offer.expires_at_hour:
                    self._lapse_offer(sale)
                continue

            sale.hours_until_check = max(0, sale.hours_until_check - 1)
            if sale.hours_until_check == 0:
                self._roll_for_buyer(sale, listing, now_hour)

    def _expire(self, sale: SaleRequest) -> None:
        had_offer = sale.pending_offer is not None
        self._close(sale, SaleStatus.EXPIRED, ListingStatus.EXPIRED)
        logger.info(f"Sale {sale.id} expired (pending offer lapsed: {had_offer})")
        self.notifier.notify(
            sale.owner_id,
            f"No sale for {sale.item.name or sale.item.item_id}. The item was returned to you.",
            Severity.WARNING,
        )

    def _lapse_offer(self, sale: SaleRequest) -> None:
        amount = sale.pending_offer.amount
        self._resume_search(sale)
        logger.info(f"Sale {sale.id}: offer of ${amount:,.0f} lapsed")
        self.notifier.notify(
            sale.owner_id,
            f"The ${amount:,.0f} offer for {sale.item.name or sale.item.item_id} lapsed. "
            f"The agent keeps looking.",
            Severity.INFO,
        )

    def _roll_for_buyer(self, sale: SaleRequest, listing: ListingRecord, now_hour: int) -> None:
        tier = get_sale_tier(sale.agent_tier)
        roll = self.rng.random()
        if roll >= tier.success_chance:
            sale.hours_until_check = self._roll_check_interval(tier)
            logger.debug(f"Sale {sale.id}: no buyer this round (roll {roll:.3f})")
            return

        fraction, buyer_personality = buyer_offer_fraction(tier.return_range, self.rng)
        amount = float(round(sale.item.vanilla_value * fraction))
        sale.pending_offer = PendingOffer(
            amount=amount,
            made_at_hour=now_hour,
            expires_at_hour=now_hour + self.offer_response_hours,
            buyer_personality=buyer_personality,
        )
        sale.offers.append(OfferEntry(amount=amount, hour=now_hour))
        sale.status = SaleStatus.OFFER_PENDING
        listing.status = ListingStatus.NEGOTIATING

        logger.info(
            f"Sale {sale.id}: {buyer_personality.value} buyer offers ${amount:,.0f} "
            f"({fraction:.0%} of value)"
        )
        self.notifier.notify(
            sale.owner_id,
            f"A buyer offers ${amount:,.0f} for {sale.item.name or sale.item.item_id}. "
            f"Respond within {self.offer_response_hours} hours.",
            Severity.SUCCESS,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def active_sales(self, owner_id: Optional[str] = None) -> List[SaleRequest]:
        return [
            s for s in self.sales.values()
            if owner_id is None or s.owner_id == owner_id
        ]

    def restore(self, sales: List[SaleRequest]) -> None:
        """Rebuild the sale index after a load."""
        self.sales = {s.id: s for s in sales}
        self._by_listing = {s.listing_id: s.id for s in sales}
