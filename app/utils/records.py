"""
Normalization of ledger entries into ``LedgerRecord``.

Every consumer of the ledger (availability, dashboard, export) works on
``LedgerRecord`` only; ORM bookings and imported legacy documents are
converted here, at the boundary.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from app.schemas.ledger import LegacyBookingDoc, SessionAttendeeDoc, ledger_documents

# A booking stops holding capacity once cancelled, refunded or failed
RELEASED_STATUSES = frozenset({"cancelled"})
RELEASED_PAYMENT_STATUSES = frozenset({"refunded", "failed"})


@dataclass(frozen=True)
class LedgerRecord:
    id: str
    slot_date: Optional[date]
    start_time: Optional[str]
    end_time: Optional[str]
    quantity: int = 1
    tickets: Dict[str, int] = field(default_factory=dict)
    ticket_type: Optional[str] = None
    amount: Optional[float] = None
    individual_amount: Optional[float] = None
    session_id: Optional[str] = None
    buyer_id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: str = "confirmed"
    payment_status: Optional[str] = None
    payment_id: Optional[str] = None
    order_id: Optional[str] = None
    checked_in: bool = False
    check_in_time: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def holds_capacity(self) -> bool:
        return (
            self.status not in RELEASED_STATUSES
            and self.payment_status not in RELEASED_PAYMENT_STATUSES
        )

    def matches_slot(self, slot_date: date, start_time: str, end_time: str) -> bool:
        return (
            self.slot_date == slot_date
            and self.start_time == start_time
            and self.end_time == end_time
        )

    def tier_quantity(self, tier_name: str) -> int:
        if self.tickets:
            return self.tickets.get(tier_name, 0)
        return self.quantity if self.ticket_type == tier_name else 0


def _money(value) -> Optional[float]:
    if value is None:
        return None
    return float(value) if isinstance(value, Decimal) else value


def from_booking(booking) -> LedgerRecord:
    """Normalize an ORM ``Booking`` row."""
    return LedgerRecord(
        id=str(booking.id),
        slot_date=booking.slot_date,
        start_time=booking.start_time,
        end_time=booking.end_time,
        quantity=booking.quantity or 0,
        tickets=dict(booking.tickets or {}),
        ticket_type=booking.ticket_type,
        amount=_money(booking.amount),
        individual_amount=_money(booking.individual_amount),
        session_id=str(booking.occurrence_id) if booking.occurrence_id else None,
        buyer_id=booking.buyer_id,
        name=booking.name,
        email=booking.email,
        phone=booking.phone,
        status=booking.status or "confirmed",
        payment_status=booking.payment_status,
        payment_id=booking.payment_id,
        order_id=booking.order_id,
        checked_in=bool(booking.checked_in),
        check_in_time=booking.check_in_time,
        created_at=booking.created_at,
    )


def _from_legacy(doc: LegacyBookingDoc) -> LedgerRecord:
    if isinstance(doc.tickets, dict):
        tickets = {name: qty for name, qty in doc.tickets.items() if qty}
        quantity = sum(tickets.values())
    elif isinstance(doc.tickets, int):
        tickets, quantity = {}, doc.tickets
    else:
        tickets, quantity = {}, 1
    slot = doc.selected_time_slot
    return LedgerRecord(
        id=doc.id,
        slot_date=doc.selected_date,
        start_time=slot.start_time if slot else None,
        end_time=slot.end_time if slot else None,
        quantity=quantity,
        tickets=tickets,
        ticket_type=next(iter(tickets)) if len(tickets) == 1 else None,
        amount=doc.total_amount if doc.total_amount is not None else doc.amount,
        buyer_id=doc.user_id,
        name=doc.name,
        email=doc.email,
        phone=doc.phone,
        status=doc.status or "confirmed",
        payment_status=doc.payment_status,
        payment_id=doc.payment_id,
        order_id=doc.order_id,
        checked_in=doc.checked_in,
        check_in_time=doc.check_in_time,
        created_at=doc.created_at,
    )


def _from_session(doc: SessionAttendeeDoc) -> LedgerRecord:
    # Session fields win; selectedDate/selectedTimeSlot are the legacy fallback
    session = doc.selected_session
    slot = doc.selected_time_slot
    slot_date = (session.slot_date if session else None) or doc.selected_date
    start_time = (session.start_time if session else None) or (slot.start_time if slot else None)
    end_time = (session.end_time if session else None) or (slot.end_time if slot else None)
    original = doc.original_booking_data or {}
    return LedgerRecord(
        id=doc.id,
        slot_date=slot_date,
        start_time=start_time,
        end_time=end_time,
        quantity=1,
        tickets={doc.ticket_type: 1} if doc.ticket_type else {},
        ticket_type=doc.ticket_type,
        amount=doc.amount,
        individual_amount=doc.individual_amount,
        session_id=doc.session_id,
        buyer_id=doc.user_id,
        name=doc.name,
        email=doc.email,
        phone=doc.phone,
        status=doc.status or "confirmed",
        payment_status=doc.payment_status,
        payment_id=doc.payment_id or original.get("paymentId"),
        order_id=doc.order_id or original.get("orderId"),
        checked_in=doc.checked_in,
        check_in_time=doc.check_in_time,
        created_at=doc.created_at,
    )


def from_document(doc) -> LedgerRecord:
    if isinstance(doc, SessionAttendeeDoc):
        return _from_session(doc)
    return _from_legacy(doc)


def normalize_documents(raw: Iterable[dict]) -> List[LedgerRecord]:
    """Parse raw exported documents (either shape) into records."""
    return [from_document(doc) for doc in ledger_documents.validate_python(list(raw))]


def normalize_bookings(bookings) -> List[LedgerRecord]:
    return [from_booking(b) for b in bookings]
