"""
API v1 router aggregation.

WHAT: Combine all v1 endpoint routers
WHY: Single place to register all API routes
HOW: Include routers from endpoints with prefixes
"""

from fastapi import APIRouter

from .endpoints import status, searches, sales, listings, clock, saves, notifications

# Create main v1 router
api_router = APIRouter()

# Include endpoint routers
api_router.include_router(
    status.router,
    prefix="/api/v1",
    tags=["status"]
)

api_router.include_router(
    searches.router,
    prefix="/api/v1",
    tags=["searches"]
)

api_router.include_router(
    sales.router,
    prefix="/api/v1",
    tags=["sales"]
)

api_router.include_router(
    listings.router,
    prefix="/api/v1",
    tags=["listings"]
)

api_router.include_router(
    clock.router,
    prefix="/api/v1",
    tags=["clock"]
)

api_router.include_router(
    saves.router,
    prefix="/api/v1",
    tags=["saves"]
)

api_router.include_router(
    notifications.router,
    prefix="/api/v1",
    tags=["notifications"]
)
