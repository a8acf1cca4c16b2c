import uuid
import enum
from sqlalchemy import Column, String, DateTime, func, DECIMAL, Integer, JSON, Enum as SAEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from app.db.session import Base

class ListingKind(str, enum.Enum):
    event = "event"
    activity = "activity"

class CatalogMode(str, enum.Enum):
    fixed = "fixed"          # explicit (date, start, end) occurrences with ticket tiers
    recurring = "recurring"  # weekly schedule + closed-date exceptions

class Listing(Base):
    __tablename__ = "listings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    kind = Column(SAEnum(ListingKind, native_enum=False), nullable=False, index=True)
    mode = Column(SAEnum(CatalogMode, native_enum=False), nullable=False)
    title = Column(String(255), nullable=False)
    price = Column(DECIMAL(10, 2), nullable=True) # flat per-ticket price (recurring mode)
    currency = Column(String(3), default="INR")
    # {"Monday": {"is_open": true, "slots": [{"start_time": "09:00", "end_time": "10:00", "capacity": 20}]}}
    weekly_schedule = Column(JSON, nullable=True)
    closed_dates = Column(JSON, nullable=True) # ["2026-12-25", ...]
    # Bumped in the same transaction as every ledger write
    ledger_version = Column(Integer, nullable=False, default=0)
    status = Column(String(20), default="active", index=True) # active, draft, archived
    created_by = Column(String(128), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    # Relationships
    occurrences = relationship(
        "Occurrence", back_populates="listing", cascade="all, delete-orphan",
        order_by="Occurrence.slot_date",
    )
    tiers = relationship("TicketTier", back_populates="listing", cascade="all, delete-orphan")
    bookings = relationship("Booking", back_populates="listing")
