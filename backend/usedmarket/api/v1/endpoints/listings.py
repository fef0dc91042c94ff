"""
Listing endpoints.

WHAT: View listings, make offers, stand firm, buy, accept/decline, inspect
WHY: Every per-listing player action goes through here
HOW: Thin wrappers over MarketContext; failures re-raise for the handlers
"""

from typing import List, Optional, Union

from fastapi import APIRouter, Depends

from ...deps import get_market
from ....core.context import MarketContext
from ....models.api_schemas import (
    HoursRemainingResponse,
    InspectionRequest,
    OfferRequest,
    OfferResponse,
    OwnerRequest,
    PurchaseRequest,
    PurchaseResponse,
)
from ....models.listing import ListingView
from ....models.requests import SaleView
from ....models.results import OperationResult
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/listings", response_model=List[ListingView])
async def list_listings(requester_id: Optional[str] = None, market: MarketContext = Depends(get_market)):
    """Live listings; resolved listings never appear."""
    return market.get_active_listings(requester_id)


@router.get("/listings/{listing_id}", response_model=ListingView)
async def get_listing(listing_id: str, requester_id: Optional[str] = None,
                      market: MarketContext = Depends(get_market)):
    """View a listing. Viewing a found listing starts its offer window."""
    return market.view_listing(listing_id, requester_id).unwrap()


@router.get("/listings/{record_id}/hours", response_model=HoursRemainingResponse)
async def get_hours_remaining(record_id: str, market: MarketContext = Depends(get_market)):
    """Hours remaining on a listing, a search or a sale."""
    data = market.get_hours_remaining(record_id).unwrap()
    return HoursRemainingResponse(record_id=record_id, **data)


@router.post("/listings/{listing_id}/offers", response_model=OfferResponse)
async def submit_offer(listing_id: str, request: OfferRequest, market: MarketContext = Depends(get_market)):
    """
    Offer on a found listing.

    Returns:
        Seller response; ``listing`` is null once the listing left the market
    """
    return _offer_response(market.submit_offer(listing_id, request.offerer_id, request.amount))


@router.post("/listings/{listing_id}/stand-firm", response_model=OfferResponse)
async def stand_firm(listing_id: str, request: OwnerRequest = OwnerRequest(),
                     market: MarketContext = Depends(get_market)):
    """
    Hold at the last offer after a counter.

    Returns:
        accepted (bought at the offer), countered (seller holds) or
        rejected (offers locked for an hour)
    """
    return _offer_response(market.stand_firm(listing_id, request.owner_id))


def _offer_response(result: OperationResult) -> OfferResponse:
    data = result.unwrap()
    decision = data["decision"]
    return OfferResponse(
        outcome=decision.outcome.value,
        offer=decision.offer,
        counter_price=decision.counter_price,
        settled_price=decision.settled_price,
        listing=data["listing"],
        message=result.message,
    )


@router.post("/listings/{listing_id}/purchase", response_model=PurchaseResponse)
async def purchase_listing(listing_id: str, request: PurchaseRequest,
                           market: MarketContext = Depends(get_market)):
    """Buy at the seller's current price."""
    return market.purchase_listing(listing_id, request.buyer_id).unwrap()


@router.post("/listings/{listing_id}/accept", response_model=Union[SaleView, PurchaseResponse])
async def accept_offer(listing_id: str, request: OwnerRequest = OwnerRequest(),
                       market: MarketContext = Depends(get_market)):
    """Accept a buyer offer (sale) or the seller's price (found listing)."""
    return market.accept_offer(listing_id, request.owner_id).unwrap()


@router.post("/listings/{listing_id}/decline", response_model=Union[SaleView, ListingView])
async def decline_offer(listing_id: str, request: OwnerRequest = OwnerRequest(),
                        market: MarketContext = Depends(get_market)):
    return market.decline_offer(listing_id, request.owner_id).unwrap()


@router.post("/listings/{listing_id}/inspection", response_model=ListingView, status_code=202)
async def request_inspection(listing_id: str, request: InspectionRequest,
                             market: MarketContext = Depends(get_market)):
    """Book an inspection; the report arrives as a notification."""
    return market.request_inspection(listing_id, request.tier, request.requester_id).unwrap()


@router.delete("/listings/{listing_id}/inspection", response_model=ListingView)
async def cancel_inspection(listing_id: str, requester_id: Optional[str] = None,
                            market: MarketContext = Depends(get_market)):
    return market.cancel_inspection(listing_id, requester_id).unwrap()
