"""
Market exceptions.

WHAT: Domain-specific exceptions for every failure the engine can report
WHY: One taxonomy shared by the queues, the context and the HTTP handlers
HOW: Custom exception classes with error codes, messages and details
"""

from typing import Optional, Any


class MarketError(Exception):
    """Base class for marketplace failures."""

    def __init__(self, message: str, code: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class ValidationError(MarketError):
    """Malformed input, missing record, or operation not allowed right now."""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR", details: Optional[Any] = None):
        super().__init__(message=message, code=code, details=details)


class RecordNotFoundError(ValidationError):
    """Raised when a listing, search or sale id is unknown."""

    def __init__(self, record_type: str, record_id: str):
        super().__init__(
            message=f"{record_type} not found: {record_id}",
            code=f"{record_type.upper()}_NOT_FOUND",
            details={"record_type": record_type, "record_id": record_id}
        )


class InvalidTierError(ValidationError):
    """Raised when a tier index is outside its table."""

    def __init__(self, tier_kind: str, value: Any, allowed: range):
        super().__init__(
            message=f"Invalid {tier_kind} tier: {value} (allowed {allowed.start}-{allowed.stop - 1})",
            code="INVALID_TIER",
            details={"tier_kind": tier_kind, "value": value}
        )


class FundsError(MarketError):
    """Raised when the ledger refuses a debit. Nothing was committed."""

    def __init__(self, owner_id: str, amount: float, purpose: str):
        super().__init__(
            message=f"Insufficient funds: {owner_id} cannot pay ${amount:,.0f} for {purpose}",
            code="INSUFFICIENT_FUNDS",
            details={"owner_id": owner_id, "amount": amount, "purpose": purpose}
        )


class RaceRejection(MarketError):
    """Raised when an action targets a listing that was already resolved."""

    def __init__(self, listing_id: str, resolved_as: str):
        super().__init__(
            message=f"Listing {listing_id} was already handled ({resolved_as})",
            code="ALREADY_HANDLED",
            details={"listing_id": listing_id, "resolved_as": resolved_as}
        )


class CorruptRecordError(MarketError):
    """Raised when a persisted record cannot be rebuilt."""

    def __init__(self, record_type: str, reason: str, record_id: Optional[str] = None):
        super().__init__(
            message=f"Corrupt {record_type} record {record_id or '<unknown>'}: {reason}",
            code="CORRUPT_RECORD",
            details={"record_type": record_type, "record_id": record_id}
        )
