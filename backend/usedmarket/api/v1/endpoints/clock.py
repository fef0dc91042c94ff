"""
Clock endpoints.

WHAT: Deliver hour and period events to the market
WHY: The host game owns time; the engine only reacts to its ticks
HOW: POST to advance, GET to read the current position
"""

from fastapi import APIRouter, Depends

from ...deps import get_market
from ....core.context import MarketContext
from ....models.api_schemas import ClockResponse, HourTickRequest
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/clock", response_model=ClockResponse)
async def get_clock(market: MarketContext = Depends(get_market)):
    return ClockResponse(hour=market.hour, period=market.period)


@router.post("/clock/hour", response_model=ClockResponse)
async def hour_tick(request: HourTickRequest = HourTickRequest(), market: MarketContext = Depends(get_market)):
    """
    Advance to ``hour`` (or by one hour).

    Skipped hours are ticked one by one; stale hours are ignored.
    """
    processed = market.on_hour_tick(request.hour)
    return ClockResponse(hour=market.hour, period=market.period, processed=processed)


@router.post("/clock/period", response_model=ClockResponse)
async def period_tick(market: MarketContext = Depends(get_market)):
    """Start a new period (monthly housekeeping)."""
    market.on_period_tick()
    return ClockResponse(hour=market.hour, period=market.period)
