"""
Listing domain models.

WHAT: ListingRecord, its hidden condition and its negotiation state
WHY: One unit of used goods flows through search, sale and inspection
HOW: Pydantic v2 records with explicit visibility flags for hidden fields
"""

from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Set
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from .record import FlatRecord
from ..services.tiers import Personality


class ListingStatus(str, Enum):
    """Lifecycle of a listing."""
    SEARCHING = "searching"
    FOUND = "found"
    NEGOTIATING = "negotiating"
    SOLD = "sold"
    EXPIRED = "expired"
    WITHDRAWN = "withdrawn"


TERMINAL_STATUSES = frozenset({ListingStatus.SOLD, ListingStatus.EXPIRED, ListingStatus.WITHDRAWN})

# Statuses whose TTL counts down
COUNTDOWN_STATUSES = frozenset({ListingStatus.SEARCHING, ListingStatus.FOUND, ListingStatus.NEGOTIATING})


class ListingKind(str, Enum):
    """Which queue owns the listing."""
    ACQUISITION = "acquisition"
    DISPOSITION = "disposition"


class CategoryRef(BaseModel):
    """Equipment category reference."""
    id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(default="", max_length=200)
    base_price: float = Field(..., gt=0, description="New price of the equipment")


class HiddenCondition(BaseModel):
    """
    Condition data the requester cannot see until an inspection reveals it.

    Queries go through ``visible()``; engine code that needs the raw values
    calls ``read_privileged()``. The quality scalar itself is never revealable,
    only its hint.
    """

    REVEALABLE: ClassVar[tuple] = (
        "overall_rating",
        "engine_reliability",
        "hydraulic_reliability",
        "electrical_reliability",
        "quality_hint",
    )

    quality: float = Field(..., ge=0.0, le=1.0)
    overall_rating: float = Field(..., ge=0.0, le=1.0)
    engine_reliability: float = Field(..., ge=0.0, le=1.0)
    hydraulic_reliability: float = Field(..., ge=0.0, le=1.0)
    electrical_reliability: float = Field(..., ge=0.0, le=1.0)
    quality_hint: str = "average"
    revealed: Set[str] = Field(default_factory=set)

    @field_serializer("revealed")
    def _sorted_revealed(self, revealed: Set[str]) -> list:
        return sorted(revealed)

    def reveal(self, fields) -> None:
        """Mark fields as visible. Unknown names are ignored."""
        self.revealed.update(f for f in fields if f in self.REVEALABLE)

    def visible(self) -> Dict[str, Any]:
        """Revealed fields only."""
        return {name: getattr(self, name) for name in self.REVEALABLE if name in self.revealed}

    def read_privileged(self, name: str) -> Any:
        """Engine-only accessor, bypasses the visibility flags."""
        if name != "quality" and name not in self.REVEALABLE:
            raise AttributeError(f"Unknown hidden field: {name}")
        return getattr(self, name)


class NegotiationRecord(BaseModel):
    """Offer exchange state attached to a listing."""
    personality: Personality
    acceptance_threshold: float
    tolerance: float
    reference_asking: float = Field(..., gt=0)  # opening asking price, fixed
    current_price: float = Field(..., gt=0)  # seller's latest proposed price
    last_offer: Optional[float] = None
    round: int = Field(default=0, ge=0)
    weather_modifier: float = 0.0
    situation_modifier: float = 0.0
    last_response: Optional[str] = None
    stood_firm: bool = False  # once per counter
    locked_until_hour: Optional[int] = None  # no offers before this hour


class ListingRecord(FlatRecord):
    """One unit of used goods owned by exactly one requester/owner."""

    RECORD_TYPE: ClassVar[str] = "listing"

    id: str = Field(default_factory=lambda: f"lst_{uuid4().hex[:12]}")
    kind: ListingKind = ListingKind.ACQUISITION
    category: CategoryRef
    owner_id: str
    status: ListingStatus = ListingStatus.FOUND
    created_at_hour: int = Field(default=0, ge=0)
    ttl: int = Field(default=0, ge=0)
    ttl_started: bool = False
    on_hold: bool = False
    source_request_id: Optional[str] = None

    # Visible condition
    age: int = Field(default=0, ge=0)
    operating_hours: int = Field(default=0, ge=0)
    damage: float = Field(default=0.0, ge=0.0, le=1.0)
    wear: float = Field(default=0.0, ge=0.0, le=1.0)
    generation: str = ""
    quality_tier: int = 2
    agent_tier: int = 2

    # Prices
    base_price: float = Field(..., gt=0)
    price: float = Field(..., ge=0)
    asking_price: float = Field(..., ge=0)
    commission: float = Field(default=0.0, ge=0)

    hidden: HiddenCondition
    seller_personality: Personality
    negotiation: Optional[NegotiationRecord] = None

    # Inspection
    inspection_tier: Optional[int] = None
    inspection_requested_by: Optional[str] = None
    inspection_requested_at_hour: Optional[int] = None
    inspection_completes_at_hour: Optional[int] = None
    completed_inspection_tier: int = Field(default=0, ge=0)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def inspection_active(self) -> bool:
        return self.inspection_completes_at_hour is not None

    @property
    def seller_price(self) -> float:
        """Price the seller currently stands behind."""
        if self.negotiation is not None:
            return self.negotiation.current_price
        return self.asking_price

    def view(self, now_hour: Optional[int] = None) -> "ListingView":
        """Detached, read-only snapshot with hidden fields filtered."""
        inspection_hours_remaining = None
        if self.inspection_active and now_hour is not None:
            inspection_hours_remaining = max(0, self.inspection_completes_at_hour - now_hour)
        return ListingView(
            id=self.id,
            kind=self.kind,
            category=self.category.model_copy(),
            owner_id=self.owner_id,
            status=self.status,
            created_at_hour=self.created_at_hour,
            hours_remaining=self.ttl,
            ttl_started=self.ttl_started,
            on_hold=self.on_hold,
            source_request_id=self.source_request_id,
            age=self.age,
            operating_hours=self.operating_hours,
            damage=self.damage,
            wear=self.wear,
            generation=self.generation,
            base_price=self.base_price,
            price=self.price,
            asking_price=self.asking_price,
            commission=self.commission,
            seller_price=self.seller_price,
            negotiation_round=self.negotiation.round if self.negotiation else 0,
            last_response=self.negotiation.last_response if self.negotiation else None,
            locked_until_hour=self.negotiation.locked_until_hour if self.negotiation else None,
            revealed_condition=self.hidden.visible(),
            inspection_active=self.inspection_active,
            inspection_tier=self.inspection_tier,
            inspection_hours_remaining=inspection_hours_remaining,
            completed_inspection_tier=self.completed_inspection_tier,
        )


class ListingView(BaseModel):
    """What a requester sees of a listing."""

    model_config = ConfigDict(frozen=True)

    id: str
    kind: ListingKind
    category: CategoryRef
    owner_id: str
    status: ListingStatus
    created_at_hour: int
    hours_remaining: int
    ttl_started: bool
    on_hold: bool
    source_request_id: Optional[str] = None
    age: int
    operating_hours: int
    damage: float
    wear: float
    generation: str
    base_price: float
    price: float
    asking_price: float
    commission: float
    seller_price: float
    negotiation_round: int = 0
    last_response: Optional[str] = None
    locked_until_hour: Optional[int] = None
    revealed_condition: Dict[str, Any] = Field(default_factory=dict)
    inspection_active: bool = False
    inspection_tier: Optional[int] = None
    inspection_hours_remaining: Optional[int] = None
    completed_inspection_tier: int = 0
