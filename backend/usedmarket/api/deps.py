"""
Request dependencies.

WHAT: Resolve the session's MarketContext and save store
WHY: Endpoints never reach for a module-level singleton
HOW: Read the objects the lifespan placed on app.state
"""

from fastapi import Request

from ..core.context import MarketContext
from ..core.persistence import SaveGameStore


def get_market(request: Request) -> MarketContext:
    return request.app.state.market


def get_save_store(request: Request) -> SaveGameStore:
    return request.app.state.saves
