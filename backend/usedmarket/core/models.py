"""
ORM models for save slots.

WHAT: SQLAlchemy tables holding marketplace snapshots
WHY: Each saved record stays a flat attribute set, so one bad row cannot
     spoil the rest of a save
HOW: SaveSlot header row plus one SavedRecord row per listing/search/sale
"""

from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, DateTime, JSON,
    ForeignKey, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship

from .database import Base


class SaveSlot(Base):
    """
    SaveSlot table - one named save of the market state.

    WHAT: Clock position and tombstones of a saved market
    WHY: Loading must restore the simulated hour, not wall-clock time
    HOW: Slot name is unique; records cascade on delete
    """
    __tablename__ = "save_slots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    hour = Column(Integer, nullable=False, default=0)
    period = Column(Integer, nullable=False, default=0)
    tombstones = Column(JSON, nullable=False, default=dict)
    saved_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    records = relationship("SavedRecord", back_populates="slot", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<SaveSlot(name={self.name}, hour={self.hour}, records={len(self.records)})>"


class SavedRecord(Base):
    """
    SavedRecord table - one flat record of a slot.

    WHAT: Serialized listing, search or sale
    WHY: Records load independently and corrupt ones are skipped
    HOW: JSON payload of the record's flat key/value mapping
    """
    __tablename__ = "saved_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slot_id = Column(Integer, ForeignKey("save_slots.id", ondelete="CASCADE"), nullable=False)
    record_type = Column(String(20), nullable=False)  # listing, search or sale
    record_id = Column(String(64), nullable=True)
    payload = Column(JSON, nullable=False)

    __table_args__ = (
        UniqueConstraint("slot_id", "record_type", "record_id", name="uq_slot_record"),
        Index("idx_saved_records_slot_type", "slot_id", "record_type"),
    )

    slot = relationship("SaveSlot", back_populates="records")

    def __repr__(self):
        return f"<SavedRecord(type={self.record_type}, id={self.record_id})>"
