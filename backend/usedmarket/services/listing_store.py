"""
Live listing store.

WHAT: Holds live listings and the tombstones of resolved ones
WHY: Sold, expired and withdrawn listings must vanish from every query
HOW: Terminal listings are deleted; only an id -> status tombstone remains
"""

from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from ..models.listing import ListingRecord, ListingStatus, TERMINAL_STATUSES
from ..utils.exceptions import RaceRejection, RecordNotFoundError
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Tombstone:
    """Marker left behind by a resolved listing."""
    status: ListingStatus
    period: int  # period counter when the listing was resolved


class ListingStore:
    """Shared by the acquisition queue, the disposition queue and inspections."""

    def __init__(self):
        self.listings: Dict[str, ListingRecord] = {}
        self.tombstones: Dict[str, Tombstone] = {}
        self.period = 0

    def __len__(self) -> int:
        return len(self.listings)

    def __iter__(self) -> Iterator[ListingRecord]:
        # Copy so tick handlers can retire listings while iterating
        return iter(list(self.listings.values()))

    def add(self, listing: ListingRecord) -> None:
        self.listings[listing.id] = listing

    def get(self, listing_id: str) -> ListingRecord:
        """
        Live listing by id.

        Raises:
            RaceRejection: If the listing was already resolved
            RecordNotFoundError: If the id was never seen
        """
        listing = self.listings.get(listing_id)
        if listing is not None:
            return listing
        tombstone = self.tombstones.get(listing_id)
        if tombstone is not None:
            raise RaceRejection(listing_id, tombstone.status.value)
        raise RecordNotFoundError("listing", listing_id)

    def find(self, listing_id: str) -> Optional[ListingRecord]:
        return self.listings.get(listing_id)

    def retire(self, listing: ListingRecord, status: ListingStatus) -> None:
        """Move a listing to a terminal status and drop it from the live set."""
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"Cannot retire listing with non-terminal status {status}")
        listing.status = status
        listing.on_hold = False
        self.listings.pop(listing.id, None)
        self.tombstones[listing.id] = Tombstone(status=status, period=self.period)
        logger.info(f"Listing {listing.id} resolved as {status.value}")

    def advance_period(self, retention_periods: int) -> int:
        """
        Count one period and prune old tombstones.

        Withdrawn tombstones are kept for good so a withdrawn id can never be
        offered on again.

        Returns:
            Number of tombstones pruned
        """
        self.period += 1
        expired_ids = [
            listing_id for listing_id, stone in self.tombstones.items()
            if stone.status != ListingStatus.WITHDRAWN
            and self.period - stone.period > retention_periods
        ]
        for listing_id in expired_ids:
            del self.tombstones[listing_id]
        if expired_ids:
            logger.debug(f"Pruned {len(expired_ids)} tombstones at period {self.period}")
        return len(expired_ids)
