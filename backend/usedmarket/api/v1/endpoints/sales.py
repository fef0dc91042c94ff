"""
Sale endpoints.

WHAT: List owned equipment for sale, list and cancel sales
WHY: Owners sell through agents that collect buyer offers
HOW: Thin wrappers over MarketContext operations
"""

from typing import List, Optional

from fastapi import APIRouter, Depends

from ...deps import get_market
from ....core.context import MarketContext
from ....models.api_schemas import SaleCreateRequest
from ....models.requests import SaleView

router = APIRouter()


@router.post("/sales", response_model=SaleView, status_code=201)
async def create_sale(request: SaleCreateRequest, market: MarketContext = Depends(get_market)):
    """
    List an item for sale. The agent fee is charged immediately.

    Raises:
        InvalidTierError: Tier out of range (400)
        FundsError: Fee refused by the ledger (402)
    """
    return market.list_for_sale(request.owner_id, request.item, request.agent_tier).unwrap()


@router.get("/sales", response_model=List[SaleView])
async def list_sales(owner_id: Optional[str] = None, market: MarketContext = Depends(get_market)):
    return market.get_active_sales(owner_id)


@router.delete("/sales/{sale_id}", response_model=SaleView)
async def cancel_sale(sale_id: str, owner_id: Optional[str] = None,
                      market: MarketContext = Depends(get_market)):
    """Cancel a sale. Rejected while a buyer offer is pending."""
    return market.cancel_sale(sale_id, owner_id).unwrap()
