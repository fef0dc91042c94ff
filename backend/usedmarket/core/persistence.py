"""
Save slot persistence.

WHAT: Write a market snapshot to a named slot and read it back
WHY: The host saves and loads games; timestamps stay simulated hours
HOW: SQLAlchemy rows with flat JSON payloads; bad payloads are skipped
"""

from typing import Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from .context import MarketContext
from .database import get_db
from .models import SaveSlot, SavedRecord
from ..utils.exceptions import CorruptRecordError, RecordNotFoundError
from ..utils.logger import get_logger

logger = get_logger(__name__)

RECORD_GROUPS = (("listing", "listings"), ("search", "searches"), ("sale", "sales"))


class SaveGameStore:
    """Reads and writes snapshots of a MarketContext."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory

    def save(self, context: MarketContext, slot_name: str) -> Dict[str, int]:
        """
        Overwrite ``slot_name`` with the context's current state.

        Returns:
            Record counts per type
        """
        snapshot = context.snapshot()
        counts = {}
        with get_db(self.session_factory) as db:
            slot = db.query(SaveSlot).filter(SaveSlot.name == slot_name).first()
            if slot is None:
                slot = SaveSlot(name=slot_name)
                db.add(slot)
            else:
                slot.records.clear()
                db.flush()
            slot.hour = snapshot["hour"]
            slot.period = snapshot["period"]
            slot.tombstones = snapshot["tombstones"]

            for record_type, key in RECORD_GROUPS:
                for payload in snapshot[key]:
                    slot.records.append(SavedRecord(
                        record_type=record_type,
                        record_id=payload.get("id"),
                        payload=payload,
                    ))
                counts[key] = len(snapshot[key])

        logger.info(f"Saved slot '{slot_name}' at hour {snapshot['hour']}: {counts}")
        return counts

    def load(self, context: MarketContext, slot_name: str) -> List[CorruptRecordError]:
        """
        Restore ``slot_name`` into the context.

        Returns:
            Errors for records that were skipped

        Raises:
            RecordNotFoundError: If the slot does not exist
        """
        with get_db(self.session_factory) as db:
            slot = db.query(SaveSlot).filter(SaveSlot.name == slot_name).first()
            if slot is None:
                raise RecordNotFoundError("save_slot", slot_name)
            snapshot = {
                "hour": slot.hour,
                "period": slot.period,
                "tombstones": dict(slot.tombstones or {}),
                "listings": [],
                "searches": [],
                "sales": [],
            }
            groups = dict(RECORD_GROUPS)
            for record in slot.records:
                key = groups.get(record.record_type)
                if key is None:
                    logger.warning(f"Unknown record type '{record.record_type}' in slot '{slot_name}'")
                    continue
                snapshot[key].append(record.payload)

        skipped = context.restore(snapshot)
        logger.info(f"Loaded slot '{slot_name}' ({len(skipped)} records skipped)")
        return skipped

    def list_slots(self) -> List[Dict]:
        with get_db(self.session_factory) as db:
            return [
                {"name": s.name, "hour": s.hour, "period": s.period, "saved_at": s.saved_at.isoformat()}
                for s in db.query(SaveSlot).order_by(SaveSlot.name).all()
            ]

    def delete(self, slot_name: str) -> None:
        with get_db(self.session_factory) as db:
            slot = db.query(SaveSlot).filter(SaveSlot.name == slot_name).first()
            if slot is None:
                raise RecordNotFoundError("save_slot", slot_name)
            db.delete(slot)
        logger.info(f"Deleted slot '{slot_name}'")
