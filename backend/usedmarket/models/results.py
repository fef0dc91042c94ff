"""
Result value objects.

WHAT: Negotiation decisions and the result of every exposed operation
WHY: Callers get values back instead of holding live engine records
HOW: Dataclasses, mirroring the analysis result objects of the services
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..utils.exceptions import MarketError


class NegotiationOutcome(str, Enum):
    """Seller response to one offer."""
    AWAITING_OFFER = "awaiting_offer"
    COUNTERED = "countered"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WALKED_AWAY = "walked_away"


@dataclass
class NegotiationDecision:
    """
    Output of the stateless negotiation engine for one offer.

    Attributes:
        outcome: Seller response
        offer: Amount offered
        offer_fraction: offer / reference asking price
        threshold: Effective acceptance threshold for this offer
        gap: threshold - offer_fraction, rounded to 6 places
        weather_modifier: Modifier sampled for this offer
        situation_modifier: Threshold reduction from the listing situation
        counter_price: New seller price when countered
        settled_price: Price the deal closes at when accepted
        reject_probability: Chance of rejection in the gap's band
    """
    outcome: NegotiationOutcome
    offer: float
    offer_fraction: float
    threshold: float
    gap: float
    weather_modifier: float = 0.0
    situation_modifier: float = 0.0
    counter_price: Optional[float] = None
    settled_price: Optional[float] = None
    reject_probability: float = 0.0


@dataclass
class OperationResult:
    """
    Result of a host/UI operation.

    ``data`` holds detached views (never live records). ``outcome`` is set
    for offer submissions.
    """
    success: bool
    message: str
    code: str = "OK"
    data: Any = None
    outcome: Optional[NegotiationOutcome] = None
    details: Any = None
    error: Optional[MarketError] = field(default=None, repr=False, compare=False)

    @classmethod
    def ok(cls, message: str, data: Any = None,
           outcome: Optional[NegotiationOutcome] = None) -> "OperationResult":
        return cls(success=True, message=message, data=data, outcome=outcome)

    @classmethod
    def from_error(cls, error: MarketError) -> "OperationResult":
        return cls(success=False, message=error.message, code=error.code,
                   details=error.details, error=error)

    def unwrap(self) -> Any:
        """Return ``data`` or re-raise the failure for the HTTP error handlers."""
        if not self.success and self.error is not None:
            raise self.error
        return self.data
