import uuid
from sqlalchemy import Column, String, Boolean, Date, Integer, DECIMAL, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from app.db.session import Base

class Occurrence(Base):
    __tablename__ = "occurrences"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    listing_id = Column(UUID(as_uuid=True), ForeignKey("listings.id"), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    slot_date = Column(Date, nullable=False, index=True)
    # "HH:MM" strings; slot identity is string equality
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    available = Column(Boolean, default=True)

    # Relationships
    listing = relationship("Listing", back_populates="occurrences")
    tiers = relationship("TicketTier", back_populates="occurrence", cascade="all, delete-orphan")

class TicketTier(Base):
    __tablename__ = "ticket_tiers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    listing_id = Column(UUID(as_uuid=True), ForeignKey("listings.id"), nullable=False, index=True)
    # NULL = shared pool reused across every occurrence of the listing
    occurrence_id = Column(UUID(as_uuid=True), ForeignKey("occurrences.id"), nullable=True, index=True)
    name = Column(String(100), nullable=False)
    capacity = Column(Integer, nullable=False)
    price = Column(DECIMAL(10, 2), nullable=False)

    listing = relationship("Listing", back_populates="tiers")
    occurrence = relationship("Occurrence", back_populates="tiers")
