"""
Booking ledger writes and the availability reads derived from it.

Every write happens with the listing row locked (``SELECT ... FOR UPDATE``) and
bumps ``Listing.ledger_version`` in the same transaction, so a reader holding a
version stamp can tell whether its snapshot predates a write.
"""

import random
import string
from datetime import date, datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.errors import CheckInNotAllowedError, ListingNotFoundError
from app.models.booking import Booking
from app.models.listing import CatalogMode, Listing
from app.utils.availability import compute_occurrence_availability, compute_slot_availability
from app.utils.catalog import fixed_slots_for_date, slots_for_date
from app.utils.records import LedgerRecord, normalize_bookings


def _generate_booking_number(db: Session) -> str:
    """Generate a unique 'SLT-XXXXXXXX' booking reference."""
    chars = string.ascii_uppercase + string.digits
    while True:
        number = "SLT-" + "".join(random.choices(chars, k=8))
        if not db.query(Booking).filter(Booking.booking_number == number).first():
            return number


def get_listing(db: Session, listing_id: UUID, lock: bool = False) -> Listing:
    query = db.query(Listing).filter(Listing.id == listing_id)
    if lock:
        # The row may already be in the identity map; overwrite it with what the lock reads
        query = query.populate_existing().with_for_update()
    listing = query.first()
    if not listing:
        raise ListingNotFoundError()
    return listing


def listing_records(db: Session, listing_id: UUID) -> List[LedgerRecord]:
    bookings = (
        db.query(Booking)
        .filter(Booking.listing_id == listing_id)
        .order_by(Booking.created_at)
        .all()
    )
    return normalize_bookings(bookings)


def payment_recorded(db: Session, payment_id: str) -> bool:
    return db.query(Booking.id).filter(Booking.payment_id == payment_id).first() is not None


def availability_for_date(
    listing: Listing,
    target_date: date,
    records: List[LedgerRecord],
    now: Optional[datetime] = None,
    allow_elapsed: Optional[bool] = None,
) -> List[dict]:
    """Derived availability of every slot the catalog offers on ``target_date``."""
    if listing.mode == CatalogMode.recurring:
        slots = slots_for_date(listing.weekly_schedule, listing.closed_dates, target_date, now, allow_elapsed)
        return compute_slot_availability(slots, records, target_date)
    occurrences = fixed_slots_for_date(listing.occurrences, target_date, now, allow_elapsed)
    return [compute_occurrence_availability(o, listing.tiers, records) for o in occurrences]


def append_booking(db: Session, listing: Listing, **fields) -> Booking:
    """
    Append one entry to the ledger. The caller holds the listing lock and has
    re-checked capacity inside the same transaction.
    """
    booking = Booking(
        booking_number=_generate_booking_number(db),
        listing_id=listing.id,
        **fields,
    )
    db.add(booking)
    listing.ledger_version = (listing.ledger_version or 0) + 1
    db.flush()
    return booking


def set_check_in(db: Session, booking: Booking, checked_in: bool) -> Booking:
    listing = get_listing(db, booking.listing_id, lock=True)
    # Check-ins of this listing are serialized from here on
    db.refresh(booking)
    if checked_in:
        if booking.checked_in:
            raise CheckInNotAllowedError("Already checked in")
        if booking.status != "confirmed":
            raise CheckInNotAllowedError(f"Ticket status: {booking.status}")
        booking.checked_in = True
        booking.check_in_time = datetime.now(timezone.utc)
    else:
        booking.checked_in = False
        booking.check_in_time = None
    listing.ledger_version = (listing.ledger_version or 0) + 1
    db.commit()
    db.refresh(booking)
    return booking

