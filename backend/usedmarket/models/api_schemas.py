"""
Pydantic API schemas for the marketplace endpoints.

WHAT: Request and response models for FastAPI
WHY: Type-safe validation and serialization of the HTTP surface
HOW: Pydantic v2 models with constraints; tier ranges are checked by the engine
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

from .listing import CategoryRef, ListingView
from .requests import SaleItem


# ========== Requests ==========

class SearchCreateRequest(BaseModel):
    """Commission a search."""
    requester_id: str = Field(..., min_length=1, max_length=100)
    category: CategoryRef
    quality_tier: int = Field(..., description="1 Poor .. 5 Excellent")
    search_tier: int = Field(..., description="1 Local, 2 Regional, 3 National")


class SaleCreateRequest(BaseModel):
    """Hand an item to a sale agent."""
    owner_id: str = Field(..., min_length=1, max_length=100)
    item: SaleItem
    agent_tier: int = Field(..., description="1 Local, 2 Regional, 3 National")


class OfferRequest(BaseModel):
    """Offer on a found listing."""
    offerer_id: str = Field(..., min_length=1, max_length=100)
    amount: float = Field(..., gt=0, description="Offered price")


class PurchaseRequest(BaseModel):
    """Buy a found listing at the seller's price."""
    buyer_id: str = Field(..., min_length=1, max_length=100)


class OwnerRequest(BaseModel):
    """Owner-scoped action (accept, decline, stand firm)."""
    owner_id: Optional[str] = Field(default=None, max_length=100)


class InspectionRequest(BaseModel):
    """Book an inspection."""
    tier: int = Field(..., description="1 Quick, 2 Standard, 3 Comprehensive")
    requester_id: Optional[str] = Field(default=None, max_length=100)


class HourTickRequest(BaseModel):
    """Advance the clock; omit ``hour`` to advance by one."""
    hour: Optional[int] = Field(default=None, ge=0)


# ========== Responses ==========

class OfferResponse(BaseModel):
    """Seller response to an offer."""
    outcome: str
    offer: float
    counter_price: Optional[float] = None
    settled_price: Optional[float] = None
    listing: Optional[ListingView] = None
    message: str


class PurchaseResponse(BaseModel):
    listing_id: str
    price: float


class ClockResponse(BaseModel):
    hour: int
    period: int
    processed: int = 0


class HoursRemainingResponse(BaseModel):
    record_id: str
    hours_remaining: int
    on_hold: bool = False
    countdown_started: bool = True
    inspection_hours_remaining: Optional[int] = None


class SaveSlotInfo(BaseModel):
    name: str
    hour: int
    period: int
    saved_at: str


class SaveResponse(BaseModel):
    slot: str
    counts: Dict[str, int] = Field(default_factory=dict)
    skipped: List[Dict[str, Any]] = Field(default_factory=list)
