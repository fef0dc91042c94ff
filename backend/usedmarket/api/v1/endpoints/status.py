"""
Status and health check endpoints.

WHAT: Health monitoring for the market and the save database
WHY: Quick diagnostics for hosts and ops
HOW: FastAPI endpoint aggregating context counters and a DB ping
"""

from fastapi import APIRouter, Depends

from ...deps import get_market
from ....core.config import settings
from ....core.context import MarketContext
from ....core.database import ping_database

router = APIRouter()


@router.get("/health")
async def health_check(market: MarketContext = Depends(get_market)):
    """
    Overall application health check.

    Returns:
        JSON with overall health status
    """
    db_status = ping_database()
    return {
        "status": "healthy" if db_status["available"] else "degraded",
        "version": settings.APP_VERSION,
        "app_name": settings.APP_NAME,
        "components": {
            "market": {
                "hour": market.hour,
                "period": market.period,
                "live_listings": len(market.store),
                "active_searches": len(market.acquisition.searches),
                "active_sales": len(market.disposition.sales),
            },
            "database": {
                "available": db_status["available"]
            }
        }
    }
