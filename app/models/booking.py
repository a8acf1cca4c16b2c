import uuid
from sqlalchemy import Column, String, Boolean, DateTime, func, DECIMAL, Integer, ForeignKey, Date, JSON, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from app.db.session import Base

class Booking(Base):
    """Ledger entry. Append-only: only check-in and status flags change after insert."""
    __tablename__ = "bookings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_number = Column(String(20), unique=True, nullable=False, index=True)
    listing_id = Column(UUID(as_uuid=True), ForeignKey("listings.id"), nullable=False, index=True)
    occurrence_id = Column(UUID(as_uuid=True), nullable=True, index=True) # snapshot ref; catalog edits may drop the occurrence
    # Slot key fields
    slot_date = Column(Date, nullable=False, index=True)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    tickets = Column(JSON, nullable=True) # {"VIP": 2, "General": 1}
    ticket_type = Column(String(100), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    amount = Column(DECIMAL(10, 2), nullable=True)
    individual_amount = Column(DECIMAL(10, 2), nullable=True) # per-attendee share (imported session records)
    currency = Column(String(3), default="INR")
    buyer_id = Column(String(128), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(32), nullable=True)
    payment_id = Column(String(64), unique=True, nullable=True, index=True)
    order_id = Column(String(64), nullable=True)
    payment_status = Column(String(20), default="confirmed", index=True) # confirmed, refunded, failed
    status = Column(String(20), default="confirmed", index=True) # confirmed, pending, cancelled
    checked_in = Column(Boolean, default=False, nullable=False)
    check_in_time = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    listing = relationship("Listing", back_populates="bookings")

class PaymentOrder(Base):
    """One booking attempt: validated selection + gateway order, until paid, failed or expired."""
    __tablename__ = "payment_orders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    listing_id = Column(UUID(as_uuid=True), ForeignKey("listings.id"), nullable=False, index=True)
    occurrence_id = Column(UUID(as_uuid=True), nullable=True)
    buyer_id = Column(String(128), nullable=False, index=True)
    slot_date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    tickets = Column(JSON, nullable=True)
    quantity = Column(Integer, nullable=False)
    amount = Column(DECIMAL(10, 2), nullable=False)
    currency = Column(String(3), default="INR")
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(32), nullable=True)
    receipt = Column(String(64), nullable=False)
    gateway_order_id = Column(String(64), unique=True, nullable=True, index=True)
    status = Column(String(20), default="created", index=True) # created, paid, failed, capacity_conflict, expired
    failure_reason = Column(Text, nullable=True)
    booking_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id"), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    listing = relationship("Listing")
    booking = relationship("Booking")

    @property
    def amount_minor(self) -> int:
        """Amount in paise, as the gateway expects it."""
        return int(round(self.amount * 100))
