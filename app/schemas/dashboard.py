from typing import Optional, List, Dict
from pydantic import BaseModel, Field, UUID4, field_validator, model_validator
from datetime import date, datetime

from app.schemas.booking import Booking

# Upper bound on tickets per manual entry
MAX_MANUAL_QUANTITY = 50


class Permissions(BaseModel):
    can_view: bool
    can_edit: bool
    can_manage_attendees: bool
    can_view_financials: bool
    role: str


class AttendeeStats(BaseModel):
    total: int
    checked_in: int
    pending: int
    check_in_percentage: float
    # Omitted without financial access
    total_revenue: Optional[float] = None


class TierBreakdown(BaseModel):
    name: str
    capacity: int
    price: Optional[float] = None
    sold: int
    available: int
    revenue: Optional[float] = None
    percentage: float


class TicketBreakdown(BaseModel):
    tiers: List[TierBreakdown]
    total_sold: int
    total_capacity: int
    total_revenue: Optional[float] = None
    available_tickets: int


class SessionSummary(BaseModel):
    """One slot (occurrence or recurring slot) that has bookings or is on the catalog."""
    slot_date: date
    start_time: str
    end_time: str
    name: Optional[str] = None
    attendees: int
    checked_in: int


class DashboardResponse(BaseModel):
    listing_id: UUID4
    title: str
    ledger_version: int
    permissions: Permissions
    stats: AttendeeStats
    breakdown: Optional[TicketBreakdown] = None
    sessions: List[SessionSummary] = []


class Attendee(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    slot_date: Optional[date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    ticket_type: Optional[str] = None
    tickets: Dict[str, int] = {}
    quantity: int
    amount: Optional[float] = None
    status: str
    payment_status: Optional[str] = None
    checked_in: bool
    check_in_time: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CheckInRequest(BaseModel):
    checked_in: bool = True


class CheckInResponse(BaseModel):
    id: UUID4
    booking_number: str
    checked_in: bool
    check_in_time: Optional[datetime] = None
    ledger_version: int


# Organizer-entered attendee (POST /admin/listings/{id}/attendees)
class ManualAttendeeCreate(BaseModel):
    slot_date: date
    start_time: str
    end_time: str
    quantity: Optional[int] = Field(None, ge=1, le=MAX_MANUAL_QUANTITY)   # recurring mode
    tickets: Optional[Dict[str, int]] = None                               # fixed mode: {tierName: qty}
    name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("tickets", mode="before")
    @classmethod
    def drop_empty_tiers(cls, v):
        if isinstance(v, dict):
            return {k: q for k, q in v.items() if q}
        return v

    @field_validator("name", "phone")
    @classmethod
    def strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_total(self):
        if self.tickets:
            total = sum(self.tickets.values())
            if total < 1 or total > MAX_MANUAL_QUANTITY:
                raise ValueError(f"Quantity must be between 1 and {MAX_MANUAL_QUANTITY}")
        elif self.quantity is None:
            raise ValueError("Either quantity or tickets is required")
        return self


class ManualAttendeeResponse(BaseModel):
    booking: Booking
    ledger_version: int
