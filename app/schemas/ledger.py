"""
Ledger documents exported from the legacy document store.

Two shapes coexist in old exports:

  * legacy booking      one document per purchase, ``tickets`` is ``{tier: qty}`` or a bare count
  * session attendee    one document per attendee, tied to a ``sessionId`` with a ``ticketType``

Both are parsed through ``LedgerDocument`` (a tagged union) and normalized into
``app.utils.records.LedgerRecord`` before anything computes on them.
"""

from typing import Annotated, Optional, Dict, List, Union
from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter
from datetime import date, datetime


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TimeSlotDoc(_Document):
    start_time: str
    end_time: str


class SessionDoc(_Document):
    slot_date: Optional[date] = Field(default=None, alias="date")
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    name: Optional[str] = None


class _AttendeeFields(_Document):
    id: str
    event_id: Optional[str] = Field(default=None, alias="eventId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    selected_date: Optional[date] = Field(default=None, alias="selectedDate")
    selected_time_slot: Optional[TimeSlotDoc] = Field(default=None, alias="selectedTimeSlot")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    status: Optional[str] = None
    payment_status: Optional[str] = Field(default=None, alias="paymentStatus")
    payment_id: Optional[str] = Field(default=None, alias="paymentId")
    order_id: Optional[str] = Field(default=None, alias="orderId")
    checked_in: bool = Field(default=False, alias="checkedIn")
    check_in_time: Optional[datetime] = Field(default=None, alias="checkInTime")


class LegacyBookingDoc(_AttendeeFields):
    activity_id: Optional[str] = Field(default=None, alias="activityId")
    tickets: Union[Dict[str, int], int, None] = None
    total_amount: Optional[float] = Field(default=None, alias="totalAmount")
    amount: Optional[float] = None


class SessionAttendeeDoc(_AttendeeFields):
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    selected_session: Optional[SessionDoc] = Field(default=None, alias="selectedSession")
    ticket_type: Optional[str] = Field(default=None, alias="ticketType")
    individual_amount: Optional[float] = Field(default=None, alias="individualAmount")
    amount: Optional[float] = None
    original_booking_data: Optional[dict] = Field(default=None, alias="originalBookingData")


def _document_shape(value) -> str:
    if isinstance(value, dict):
        return "session" if ("sessionId" in value or "ticketType" in value) else "legacy"
    if getattr(value, "session_id", None) or getattr(value, "ticket_type", None):
        return "session"
    return "legacy"


LedgerDocument = Annotated[
    Union[
        Annotated[LegacyBookingDoc, Tag("legacy")],
        Annotated[SessionAttendeeDoc, Tag("session")],
    ],
    Discriminator(_document_shape),
]

ledger_documents = TypeAdapter(List[LedgerDocument])
