"""
Search and sale request models.

WHAT: SearchRequest and SaleRequest jobs plus their detached views
WHY: In-flight acquisition and disposition jobs advanced by the hour tick
HOW: Pydantic v2 records; timers are simulated-hour integers
"""

from enum import Enum
from typing import ClassVar, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from .listing import CategoryRef
from .record import FlatRecord
from ..services.tiers import Personality


class SearchStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"
    FAILED = "failed"
    CANCELLED = "cancelled"


class SaleStatus(str, Enum):
    ACTIVE = "active"
    OFFER_PENDING = "offer_pending"
    SOLD = "sold"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


OPEN_SALE_STATUSES = frozenset({SaleStatus.ACTIVE, SaleStatus.OFFER_PENDING})


class SearchRequest(FlatRecord):
    """One in-flight acquisition job."""

    RECORD_TYPE: ClassVar[str] = "search"

    id: str = Field(default_factory=lambda: f"srch_{uuid4().hex[:12]}")
    requester_id: str
    category: CategoryRef
    quality_tier: int = Field(..., ge=1, le=5)
    search_tier: int = Field(..., ge=1, le=3)
    fee_paid: float = Field(default=0.0, ge=0)
    created_at_hour: int = Field(default=0, ge=0)
    completes_at_hour: int = Field(default=0, ge=0)
    hours_remaining: int = Field(default=0, ge=0)
    status: SearchStatus = SearchStatus.ACTIVE
    result_ids: List[str] = Field(default_factory=list)

    def view(self) -> "SearchView":
        return SearchView(
            id=self.id,
            requester_id=self.requester_id,
            category=self.category.model_copy(),
            quality_tier=self.quality_tier,
            search_tier=self.search_tier,
            fee_paid=self.fee_paid,
            created_at_hour=self.created_at_hour,
            completes_at_hour=self.completes_at_hour,
            hours_remaining=self.hours_remaining,
            status=self.status,
            result_ids=list(self.result_ids),
        )


class SaleItem(BaseModel):
    """Owner's piece of equipment handed to a sale agent."""
    item_id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(default="", max_length=200)
    category: CategoryRef
    vanilla_value: float = Field(..., gt=0, description="Current sell value before agent returns")
    age: int = Field(default=0, ge=0)
    operating_hours: int = Field(default=0, ge=0)
    damage: float = Field(default=0.0, ge=0.0, le=1.0)
    wear: float = Field(default=0.0, ge=0.0, le=1.0)


class OfferEntry(BaseModel):
    """One buyer offer in a sale's history."""
    amount: float
    hour: int
    accepted: Optional[bool] = None  # None while pending or after lapsing


class PendingOffer(BaseModel):
    """Buyer offer waiting for the owner's answer."""
    amount: float = Field(..., gt=0)
    made_at_hour: int
    expires_at_hour: int
    buyer_personality: Personality


class SaleRequest(FlatRecord):
    """One in-flight disposition job."""

    RECORD_TYPE: ClassVar[str] = "sale"

    id: str = Field(default_factory=lambda: f"sale_{uuid4().hex[:12]}")
    owner_id: str
    item: SaleItem
    agent_tier: int = Field(..., ge=1, le=3)
    fee_paid: float = Field(default=0.0, ge=0)
    created_at_hour: int = Field(default=0, ge=0)
    hours_until_check: int = Field(default=0, ge=0)
    listing_id: str
    offers: List[OfferEntry] = Field(default_factory=list)
    pending_offer: Optional[PendingOffer] = None
    status: SaleStatus = SaleStatus.ACTIVE

    def view(self) -> "SaleView":
        return SaleView(
            id=self.id,
            owner_id=self.owner_id,
            item=self.item.model_copy(deep=True),
            agent_tier=self.agent_tier,
            fee_paid=self.fee_paid,
            created_at_hour=self.created_at_hour,
            hours_until_check=self.hours_until_check,
            listing_id=self.listing_id,
            offers=[o.model_copy() for o in self.offers],
            pending_offer=self.pending_offer.model_copy() if self.pending_offer else None,
            status=self.status,
        )


class SearchView(BaseModel):
    """Detached copy of a SearchRequest."""

    model_config = ConfigDict(frozen=True)

    id: str
    requester_id: str
    category: CategoryRef
    quality_tier: int
    search_tier: int
    fee_paid: float
    created_at_hour: int
    completes_at_hour: int
    hours_remaining: int
    status: SearchStatus
    result_ids: List[str]


class SaleView(BaseModel):
    """Detached copy of a SaleRequest."""

    model_config = ConfigDict(frozen=True)

    id: str
    owner_id: str
    item: SaleItem
    agent_tier: int
    fee_paid: float
    created_at_hour: int
    hours_until_check: int
    listing_id: str
    offers: List[OfferEntry]
    pending_offer: Optional[PendingOffer] = None
    status: SaleStatus
