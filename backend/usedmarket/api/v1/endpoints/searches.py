"""
Search endpoints.

WHAT: Commission, list and cancel acquisition searches
WHY: Players hire agents to find used equipment
HOW: Thin wrappers over MarketContext operations
"""

from typing import List, Optional

from fastapi import APIRouter, Depends

from ...deps import get_market
from ....core.context import MarketContext
from ....models.api_schemas import SearchCreateRequest
from ....models.requests import SearchView
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/searches", response_model=SearchView, status_code=201)
async def create_search(request: SearchCreateRequest, market: MarketContext = Depends(get_market)):
    """
    Commission a search.

    Raises:
        InvalidTierError: Tier out of range (400)
        FundsError: Fee refused by the ledger (402)
    """
    result = market.request_search(
        request.requester_id, request.category, request.quality_tier, request.search_tier
    )
    return result.unwrap()


@router.get("/searches", response_model=List[SearchView])
async def list_searches(requester_id: Optional[str] = None, market: MarketContext = Depends(get_market)):
    """Live searches, optionally for one requester."""
    return market.get_active_searches(requester_id)


@router.delete("/searches/{search_id}", response_model=SearchView)
async def cancel_search(search_id: str, requester_id: Optional[str] = None,
                        market: MarketContext = Depends(get_market)):
    """Cancel a search. The fee is not refunded."""
    return market.cancel_search(search_id, requester_id).unwrap()
