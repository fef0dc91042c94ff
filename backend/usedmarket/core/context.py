"""
Market context.

WHAT: The single authoritative marketplace instance of a host session
WHY: Queues, clock, random source and host collaborators live together and
     every operation is applied in arrival order
HOW: One lock around ticks and operations; results are returned as values
"""

import random
import threading
from typing import Any, Callable, Dict, List, Optional, Union

from .config import settings
from ..host.interfaces import Ledger, NotificationSink, Severity, WeatherService
from ..host.memory import FixedWeather, InMemoryLedger, NotificationLog
from ..models.listing import CategoryRef, ListingKind, ListingRecord, ListingStatus
from ..models.requests import SaleItem, SaleRequest, SearchRequest
from ..models.results import NegotiationOutcome, OperationResult
from ..services.acquisition_queue import AcquisitionQueue
from ..services.disposition_queue import DispositionQueue
from ..services.inspection import InspectionService
from ..services.listing_store import ListingStore, Tombstone
from ..utils.exceptions import CorruptRecordError, MarketError, RaceRejection, ValidationError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class MarketContext:
    """
    Owns the clock counter, the queues and the host collaborators.

    Tick order inside one hour: acquisition queue, disposition queue, then
    inspection completions.

    Args:
        ledger: Host money ledger (in-memory ledger when omitted)
        weather: Host weather source (fixed sunny weather when omitted)
        notifier: Host notification sink (in-memory log when omitted)
        seed: Random seed; None seeds from system entropy
        rng: Ready-made random source, overrides ``seed``
        start_hour: Current simulated hour
    """

    def __init__(
        self,
        ledger: Optional[Ledger] = None,
        weather: Optional[WeatherService] = None,
        notifier: Optional[NotificationSink] = None,
        seed: Optional[int] = None,
        start_hour: int = 0,
        listing_ttl_hours: Optional[int] = None,
        offer_response_hours: Optional[int] = None,
        tombstone_retention_periods: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        self.ledger = ledger if ledger is not None else InMemoryLedger()
        self.weather = weather if weather is not None else FixedWeather()
        self.notifier = notifier if notifier is not None else NotificationLog()
        self.rng = rng if rng is not None else random.Random(seed)
        self.hour = start_hour
        self.tombstone_retention_periods = (
            settings.TOMBSTONE_RETENTION_PERIODS
            if tombstone_retention_periods is None else tombstone_retention_periods
        )
        self.lock = threading.Lock()

        self.store = ListingStore()
        self.acquisition = AcquisitionQueue(
            self.store, self.ledger, self.notifier, self.rng,
            listing_ttl_hours=listing_ttl_hours,
        )
        self.disposition = DispositionQueue(
            self.store, self.ledger, self.notifier, self.rng,
            offer_response_hours=offer_response_hours,
        )
        self.inspections = InspectionService(self.store, self.ledger, self.notifier)

    @classmethod
    def from_settings(cls) -> "MarketContext":
        """Context for the standalone HTTP host."""
        return cls(seed=settings.RANDOM_SEED)

    @property
    def period(self) -> int:
        return self.store.period

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _run(self, owner_id: Optional[str], operation: Callable[[], OperationResult]) -> OperationResult:
        """Apply one operation under the lock and turn failures into results."""
        with self.lock:
            try:
                return operation()
            except RaceRejection as e:
                logger.warning(f"Race rejected: {e.message}")
                if owner_id:
                    self.notifier.notify(owner_id, "Already handled.", Severity.INFO)
                return OperationResult.from_error(e)
            except MarketError as e:
                logger.warning(f"Operation rejected ({e.code}): {e.message}")
                if owner_id:
                    severity = Severity.ERROR if e.code == "INSUFFICIENT_FUNDS" else Severity.WARNING
                    self.notifier.notify(owner_id, e.message, severity)
                return OperationResult.from_error(e)

    @staticmethod
    def _category(category: Union[CategoryRef, Dict[str, Any]]) -> CategoryRef:
        if isinstance(category, CategoryRef):
            return category
        try:
            return CategoryRef.model_validate(category)
        except ValueError as e:
            raise ValidationError(f"Invalid category: {e}", code="INVALID_CATEGORY") from e

    @staticmethod
    def _item(item: Union[SaleItem, Dict[str, Any]]) -> SaleItem:
        if isinstance(item, SaleItem):
            return item
        try:
            return SaleItem.model_validate(item)
        except ValueError as e:
            raise ValidationError(f"Invalid item: {e}", code="INVALID_ITEM") from e

    def _listing_view(self, listing: ListingRecord):
        return listing.view(self.hour)

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------

    def request_search(self, requester_id: str, category, quality_tier: int, agent_tier: int) -> OperationResult:
        """Commission a search. ``data`` is the SearchView."""
        def op():
            search = self.acquisition.request_search(
                requester_id, self._category(category), quality_tier, agent_tier, self.hour
            )
            return OperationResult.ok("Search started", data=search.view())
        return self._run(requester_id, op)

    def cancel_search(self, search_id: str, requester_id: Optional[str] = None) -> OperationResult:
        def op():
            search = self.acquisition.cancel_search(search_id, requester_id)
            return OperationResult.ok("Search cancelled", data=search.view())
        return self._run(requester_id or self._search_owner(search_id), op)

    def _search_owner(self, search_id: str) -> Optional[str]:
        search = self.acquisition.searches.get(search_id)
        return search.requester_id if search else None

    def view_listing(self, listing_id: str, requester_id: Optional[str] = None) -> OperationResult:
        """Read a listing. Viewing a found listing starts its offer window."""
        def op():
            listing = self.store.get(listing_id)
            if requester_id is not None and requester_id != listing.owner_id:
                raise ValidationError("Listing belongs to another owner", code="NOT_OWNER")
            if listing.kind == ListingKind.ACQUISITION:
                self.acquisition.touch(listing)
            return OperationResult.ok("Listing", data=self._listing_view(listing))
        return self._run(requester_id, op)

    def submit_offer(self, listing_id: str, offerer_id: str, amount: float) -> OperationResult:
        """
        Offer on a found listing.

        ``outcome`` holds the seller response; ``data`` holds the decision
        and the listing view (None once the listing left the market).
        """
        def op():
            weather = self.weather.current_weather()
            decision, listing = self.acquisition.submit_offer(
                listing_id, offerer_id, amount, weather, now_hour=self.hour
            )
            view = None if listing.is_terminal else self._listing_view(listing)
            return OperationResult.ok(
                decision.outcome.value,
                data={"decision": decision, "listing": view},
                outcome=decision.outcome,
            )
        return self._run(offerer_id, op)

    def stand_firm(self, listing_id: str, requester_id: Optional[str] = None) -> OperationResult:
        """
        Hold at the last offer after a seller counter.

        ``outcome`` is accepted (bought at the original offer), countered
        (the seller holds) or rejected (offers locked for an hour).
        """
        def op():
            decision, listing = self.acquisition.stand_firm(listing_id, requester_id, self.hour)
            view = None if listing.is_terminal else self._listing_view(listing)
            return OperationResult.ok(
                decision.outcome.value,
                data={"decision": decision, "listing": view},
                outcome=decision.outcome,
            )
        return self._run(requester_id or self._sale_owner(listing_id), op)

    def purchase_listing(self, listing_id: str, buyer_id: str) -> OperationResult:
        """Buy a found listing at the seller's current price."""
        def op():
            price, listing = self.acquisition.purchase_listing(listing_id, buyer_id)
            return OperationResult.ok("Purchased", data={"listing_id": listing.id, "price": price})
        return self._run(buyer_id, op)

    # ------------------------------------------------------------------
    # Disposition
    # ------------------------------------------------------------------

    def list_for_sale(self, owner_id: str, item, agent_tier: int) -> OperationResult:
        """Hand an item to a sale agent. ``data`` is the SaleView."""
        def op():
            sale = self.disposition.list_for_sale(owner_id, self._item(item), agent_tier, self.hour)
            return OperationResult.ok("Listed for sale", data=sale.view())
        return self._run(owner_id, op)

    def cancel_sale(self, sale_id: str, owner_id: Optional[str] = None) -> OperationResult:
        def op():
            sale = self.disposition.cancel_sale(sale_id, owner_id)
            return OperationResult.ok("Sale cancelled", data=sale.view())
        return self._run(owner_id or self._sale_owner(sale_id), op)

    def _sale_owner(self, sale_or_listing_id: str) -> Optional[str]:
        sale = self.disposition.sales.get(sale_or_listing_id)
        if sale is None:
            listing = self.store.find(sale_or_listing_id)
            return listing.owner_id if listing else None
        return sale.owner_id

    def accept_offer(self, listing_id: str, owner_id: Optional[str] = None) -> OperationResult:
        """
        Accept the offer standing on a listing.

        For a sale listing this takes the buyer's pending offer. For a found
        listing it buys at the seller's current (possibly countered) price.
        """
        def op():
            if self.disposition.owns_listing(listing_id):
                sale = self.disposition.accept_offer(listing_id, owner_id)
                return OperationResult.ok("Offer accepted", data=sale.view(),
                                          outcome=NegotiationOutcome.ACCEPTED)
            listing = self.acquisition.get_listing(listing_id, owner_id)
            price, listing = self.acquisition.purchase_listing(listing_id, listing.owner_id)
            return OperationResult.ok("Offer accepted", data={"listing_id": listing.id, "price": price},
                                      outcome=NegotiationOutcome.ACCEPTED)
        return self._run(owner_id or self._sale_owner(listing_id), op)

    def decline_offer(self, listing_id: str, owner_id: Optional[str] = None) -> OperationResult:
        """Decline a buyer offer, or a seller's counter on a found listing."""
        def op():
            if self.disposition.owns_listing(listing_id):
                sale = self.disposition.decline_offer(listing_id, owner_id)
                return OperationResult.ok("Offer declined", data=sale.view())
            listing = self.acquisition.decline_counter(listing_id, owner_id)
            return OperationResult.ok("Counter declined", data=self._listing_view(listing))
        return self._run(owner_id or self._sale_owner(listing_id), op)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def request_inspection(self, listing_id: str, tier: int, requester_id: Optional[str] = None) -> OperationResult:
        """Book an inspection. The report arrives as a notification."""
        def op():
            listing = self.inspections.request_inspection(listing_id, tier, self.hour, requester_id)
            return OperationResult.ok("Inspection requested", data=self._listing_view(listing))
        return self._run(requester_id or self._sale_owner(listing_id), op)

    def cancel_inspection(self, listing_id: str, requester_id: Optional[str] = None) -> OperationResult:
        def op():
            listing = self.inspections.cancel_inspection(listing_id, requester_id)
            return OperationResult.ok("Inspection cancelled", data=self._listing_view(listing))
        return self._run(requester_id or self._sale_owner(listing_id), op)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_active_searches(self, requester_id: Optional[str] = None) -> list:
        with self.lock:
            return [s.view() for s in self.acquisition.active_searches(requester_id)]

    def get_active_listings(self, requester_id: Optional[str] = None) -> list:
        """Live listings of a requester. Resolved listings never appear."""
        with self.lock:
            return [
                self._listing_view(listing) for listing in self.store
                if requester_id is None or listing.owner_id == requester_id
            ]

    def get_active_sales(self, owner_id: Optional[str] = None) -> list:
        with self.lock:
            return [s.view() for s in self.disposition.active_sales(owner_id)]

    def get_hours_remaining(self, record_id: str) -> OperationResult:
        """
        Hours left on a listing's TTL, a search's timer, or a sale's listing.

        ``data`` also carries the inspection countdown when one is running.
        """
        def op():
            search = self.acquisition.searches.get(record_id)
            if search is not None:
                return OperationResult.ok("Search", data={"hours_remaining": search.hours_remaining})
            sale = self.disposition.sales.get(record_id)
            listing = self.store.get(sale.listing_id if sale is not None else record_id)
            inspection = None
            if listing.inspection_completes_at_hour is not None:
                inspection = max(0, listing.inspection_completes_at_hour - self.hour)
            return OperationResult.ok("Listing", data={
                "hours_remaining": listing.ttl,
                "on_hold": listing.on_hold,
                "countdown_started": listing.ttl_started,
                "inspection_hours_remaining": inspection,
            })
        return self._run(None, op)

    # ------------------------------------------------------------------
    # Clock
    # ------------------------------------------------------------------

    def on_hour_tick(self, hour: Optional[int] = None) -> int:
        """
        Advance the market to ``hour`` (or by one hour).

        Each skipped hour is ticked individually so timers stay exact. Stale
        or repeated hours are ignored.

        Returns:
            Number of hours processed
        """
        with self.lock:
            target = self.hour + 1 if hour is None else hour
            if target <= self.hour:
                logger.debug(f"Ignoring hour tick {target} (current {self.hour})")
                return 0
            processed = 0
            while self.hour < target:
                self.hour += 1
                self.acquisition.tick(self.hour)
                self.disposition.tick(self.hour)
                self.inspections.tick(self.hour)
                processed += 1
            return processed

    def on_period_tick(self) -> int:
        """Monthly housekeeping. Returns the number of pruned tombstones."""
        with self.lock:
            pruned = self.store.advance_period(self.tombstone_retention_periods)
            self.acquisition.prune_searches()
            logger.info(f"Period {self.store.period} started ({len(self.store)} live listings)")
            return pruned

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """Flat records of every live object plus the clock and tombstones."""
        with self.lock:
            return {
                "hour": self.hour,
                "period": self.store.period,
                "listings": [listing.serialize() for listing in self.store],
                "searches": [s.serialize() for s in self.acquisition.searches.values()],
                "sales": [s.serialize() for s in self.disposition.sales.values()],
                "tombstones": {
                    listing_id: {"status": stone.status.value, "period": stone.period}
                    for listing_id, stone in self.store.tombstones.items()
                },
            }

    def restore(self, snapshot: Dict[str, Any]) -> List[CorruptRecordError]:
        """
        Replace live state with a snapshot.

        Corrupt records are logged and skipped; the rest still loads.

        Returns:
            Errors for the records that were skipped
        """
        skipped: List[CorruptRecordError] = []

        def load_all(raw_records, record_cls):
            loaded = []
            for raw in raw_records or []:
                try:
                    loaded.append(record_cls.deserialize(raw))
                except CorruptRecordError as e:
                    logger.warning(f"Skipping record on load: {e.message}")
                    skipped.append(e)
            return loaded

        listings = load_all(snapshot.get("listings"), ListingRecord)
        searches = load_all(snapshot.get("searches"), SearchRequest)
        sales = load_all(snapshot.get("sales"), SaleRequest)

        with self.lock:
            self.hour = int(snapshot.get("hour", self.hour) or 0)
            self.store.period = int(snapshot.get("period", 0) or 0)
            self.store.listings = {listing.id: listing for listing in listings}
            self.store.tombstones = {}
            for listing_id, stone in (snapshot.get("tombstones") or {}).items():
                try:
                    self.store.tombstones[listing_id] = Tombstone(
                        status=ListingStatus(stone["status"]), period=int(stone.get("period", 0))
                    )
                except (KeyError, TypeError, ValueError, AttributeError):
                    logger.warning(f"Skipping bad tombstone for {listing_id}")

            live_sales = []
            for sale in sales:
                if sale.listing_id not in self.store.listings:
                    logger.warning(f"Skipping sale {sale.id}: listing {sale.listing_id} missing")
                    skipped.append(CorruptRecordError("sale", "listing missing", sale.id))
                    continue
                live_sales.append(sale)
            self._drop_orphaned_sale_listings(live_sales, skipped)
            self.acquisition.searches = {s.id: s for s in searches}
            self.disposition.restore(live_sales)

        logger.info(
            f"Restored hour {self.hour}: {len(listings)} listings, {len(searches)} searches, "
            f"{len(live_sales)} sales ({len(skipped)} skipped)"
        )
        return skipped

    def _drop_orphaned_sale_listings(self, live_sales: List[SaleRequest],
                                     skipped: List[CorruptRecordError]) -> None:
        """Sale listings without a loaded sale have no owner queue; expire them."""
        owned = {sale.listing_id for sale in live_sales}
        for listing in self.store:
            if listing.kind != ListingKind.DISPOSITION or listing.id in owned:
                continue
            logger.warning(f"Expiring sale listing {listing.id}: its sale record was not loaded")
            self.store.retire(listing, ListingStatus.EXPIRED)
            skipped.append(CorruptRecordError("listing", "sale record missing", listing.id))
