"""
Save slot endpoints.

WHAT: Save, load, list and delete market snapshots
WHY: Hosts persist the market between sessions
HOW: SaveGameStore over the SQLAlchemy save tables
"""

from typing import List

from fastapi import APIRouter, Depends

from ...deps import get_market, get_save_store
from ....core.context import MarketContext
from ....core.persistence import SaveGameStore
from ....models.api_schemas import SaveResponse, SaveSlotInfo

router = APIRouter()


@router.get("/saves", response_model=List[SaveSlotInfo])
async def list_saves(saves: SaveGameStore = Depends(get_save_store)):
    return saves.list_slots()


@router.post("/saves/{slot}", response_model=SaveResponse, status_code=201)
async def save_slot(slot: str, market: MarketContext = Depends(get_market),
                    saves: SaveGameStore = Depends(get_save_store)):
    counts = saves.save(market, slot)
    return SaveResponse(slot=slot, counts=counts)


@router.post("/saves/{slot}/load", response_model=SaveResponse)
async def load_slot(slot: str, market: MarketContext = Depends(get_market),
                    saves: SaveGameStore = Depends(get_save_store)):
    """
    Replace the live market with a saved slot.

    Corrupt records are skipped and listed in the response.
    """
    skipped = saves.load(market, slot)
    return SaveResponse(
        slot=slot,
        skipped=[{"code": e.code, "message": e.message, "details": e.details} for e in skipped],
    )


@router.delete("/saves/{slot}", status_code=204)
async def delete_slot(slot: str, saves: SaveGameStore = Depends(get_save_store)):
    saves.delete(slot)
