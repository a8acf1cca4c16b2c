"""
Booking transaction orchestrator (server half).

One ``PaymentOrder`` row is one booking attempt:

    create_order   validate the selection against freshly derived availability,
                   then open a gateway order; nothing is written to the ledger
    confirm        verify the gateway signature, reject replayed payment ids,
                   then reserve-before-commit: lock the listing, recompute
                   availability inside the transaction and append the booking
                   only if the quantity still fits
    fail           record the failure reason; nothing is written to the ledger

Organizers can also add attendees by hand (``add_manual_attendee``). That path
skips the gateway but takes the same listing lock and capacity recheck.
"""

import logging
import secrets
import time
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    AmountOutOfRangeError,
    CapacityConflictError,
    DomainError,
    DuplicatePaymentError,
    GatewayError,
    InvalidSlotError,
    OrderNotFoundError,
    OrderNotPendingError,
    PaymentVerificationError,
    UnsupportedCurrencyError,
)
from app.models.booking import Booking, PaymentOrder
from app.models.listing import CatalogMode, Listing
from app.services import ledger
from app.services.payment_gateway import PaymentGateway
from app.utils.selection import Selection, check_selection, shortfall
from app.utils.records import LedgerRecord

logger = logging.getLogger(__name__)

# Attempts that may still turn into a booking
CONFIRMABLE_STATUSES = ("created", "expired")


def validate_selection(
    listing: Listing,
    slot_date: date,
    start_time: str,
    end_time: str,
    records: List[LedgerRecord],
    quantity: Optional[int] = None,
    tickets: Optional[Dict[str, int]] = None,
    now: Optional[datetime] = None,
) -> Selection:
    """Check a selection against availability derived from ``records``."""
    rows = ledger.availability_for_date(listing, slot_date, records, now)
    return check_selection(
        rows,
        tiered=listing.mode == CatalogMode.fixed,
        flat_price=listing.price,
        slot_date=slot_date,
        start_time=start_time,
        end_time=end_time,
        quantity=quantity,
        tickets=tickets,
    )


def _receipt() -> str:
    return f"rcpt_{int(time.time())}_{secrets.token_hex(4)}"


class BookingOrchestrator:
    def __init__(self, db: Session, gateway: PaymentGateway, now: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.gateway = gateway
        self._now = now or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_order(self, order_id: UUID, buyer_id: str) -> PaymentOrder:
        order = (
            self.db.query(PaymentOrder)
            .filter(PaymentOrder.id == order_id, PaymentOrder.buyer_id == buyer_id)
            .first()
        )
        if not order:
            raise OrderNotFoundError()
        return order

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_order(
        self,
        listing_id: UUID,
        buyer_id: str,
        slot_date: date,
        start_time: str,
        end_time: str,
        quantity: Optional[int] = None,
        tickets: Optional[Dict[str, int]] = None,
        name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> PaymentOrder:
        listing = ledger.get_listing(self.db, listing_id)
        if listing.status != "active":
            raise InvalidSlotError("This listing is not open for booking")

        currency = listing.currency or settings.PAYMENT_CURRENCY
        if currency != settings.PAYMENT_CURRENCY:
            raise UnsupportedCurrencyError(currency)

        records = ledger.listing_records(self.db, listing.id)
        selection = validate_selection(
            listing, slot_date, start_time, end_time, records,
            quantity=quantity, tickets=tickets,
        )
        if selection.amount > settings.MAX_ORDER_AMOUNT:
            raise AmountOutOfRangeError(settings.MAX_ORDER_AMOUNT)

        order = PaymentOrder(
            listing_id=listing.id,
            occurrence_id=selection.occurrence_id,
            buyer_id=buyer_id,
            slot_date=selection.slot_date,
            start_time=selection.start_time,
            end_time=selection.end_time,
            tickets=selection.tickets or None,
            quantity=selection.quantity,
            amount=selection.amount,
            currency=currency,
            name=name,
            email=email,
            phone=phone,
            receipt=_receipt(),
            status="created",
            expires_at=self._now() + timedelta(minutes=settings.PAYMENT_ORDER_TTL_MINUTES),
        )
        self.db.add(order)
        self.db.flush()

        try:
            gateway_order = self.gateway.create_order(
                selection.amount,
                currency,
                order.receipt,
                notes={"listing_id": str(listing.id), "attempt_id": str(order.id)},
            )
        except GatewayError as exc:
            order.status = "failed"
            order.failure_reason = exc.message
            self.db.commit()
            logger.error("Gateway order failed for attempt %s: %s", order.id, exc.message)
            raise

        order.gateway_order_id = gateway_order.order_id
        self.db.commit()
        self.db.refresh(order)
        logger.info("Created payment order %s for listing %s (%s x%d)", order.gateway_order_id, listing.id, order.amount, order.quantity)
        return order

    # ------------------------------------------------------------------
    # Gateway callbacks
    # ------------------------------------------------------------------

    def confirm(
        self,
        order_id: UUID,
        buyer_id: str,
        payment_id: str,
        signature: str,
        on_success: Optional[Callable[[Booking], None]] = None,
    ) -> Booking:
        order = self.get_order(order_id, buyer_id)

        if not order.gateway_order_id or not self.gateway.verify_signature(order.gateway_order_id, payment_id, signature):
            logger.warning("Payment verification failed for attempt %s", order.id)
            raise PaymentVerificationError()

        if ledger.payment_recorded(self.db, payment_id):
            logger.warning("Duplicate payment %s for attempt %s", payment_id, order.id)
            raise DuplicatePaymentError(payment_id)

        if order.status not in CONFIRMABLE_STATUSES:
            raise OrderNotPendingError(order.status)

        # Reserve-before-commit
        listing = ledger.get_listing(self.db, order.listing_id, lock=True)
        records = ledger.listing_records(self.db, listing.id)
        rows = ledger.availability_for_date(listing, order.slot_date, records, allow_elapsed=True)
        short = shortfall(rows, order.start_time, order.end_time, order.quantity, order.tickets or {})
        if short is not None:
            available, requested = short
            order.status = "capacity_conflict"
            order.failure_reason = f"Only {available} left, {requested} requested"
            self.db.commit()
            logger.warning(
                "Capacity conflict for attempt %s (payment %s): available=%d requested=%d",
                order.id, payment_id, available, requested,
            )
            raise CapacityConflictError(available, requested)

        tickets = order.tickets or {}
        try:
            booking = ledger.append_booking(
                self.db,
                listing,
                occurrence_id=order.occurrence_id,
                slot_date=order.slot_date,
                start_time=order.start_time,
                end_time=order.end_time,
                tickets=tickets or None,
                ticket_type=next(iter(tickets)) if len(tickets) == 1 else None,
                quantity=order.quantity,
                amount=order.amount,
                currency=order.currency,
                buyer_id=order.buyer_id,
                name=order.name,
                email=order.email,
                phone=order.phone,
                payment_id=payment_id,
                order_id=order.gateway_order_id,
                payment_status="confirmed",
                status="confirmed",
            )
            order.status = "paid"
            order.booking_id = booking.id
            order.failure_reason = None
            self.db.commit()
        except IntegrityError as exc:
            # payment_id is unique; a concurrent confirm got there first
            self.db.rollback()
            logger.warning("Duplicate payment %s rejected by the ledger", payment_id)
            raise DuplicatePaymentError(payment_id) from exc

        self.db.refresh(booking)
        logger.info("Booking %s confirmed (payment %s)", booking.booking_number, payment_id)
        if on_success:
            on_success(booking)
        return booking

    def fail(
        self,
        order_id: UUID,
        buyer_id: str,
        reason: str,
        on_failure: Optional[Callable[[str], None]] = None,
    ) -> PaymentOrder:
        order = self.get_order(order_id, buyer_id)
        if order.status == "paid":
            return order
        if order.status in CONFIRMABLE_STATUSES:
            order.status = "failed"
            order.failure_reason = reason
            self.db.commit()
            self.db.refresh(order)
            logger.info("Payment attempt %s failed: %s", order.id, reason)
        if on_failure:
            on_failure(order.failure_reason or reason)
        return order


def expire_stale_orders(db: Session, now: Optional[datetime] = None) -> int:
    """Mark attempts still in 'created' past their deadline as expired. Returns the count."""
    now = now or datetime.now(timezone.utc)
    count = (
        db.query(PaymentOrder)
        .filter(PaymentOrder.status == "created", PaymentOrder.expires_at < now)
        .update({"status": "expired"}, synchronize_session="fetch")
    )
    db.commit()
    return count



def add_manual_attendee(
    db: Session,
    listing_id: UUID,
    added_by: str,
    slot_date: date,
    start_time: str,
    end_time: str,
    quantity: Optional[int] = None,
    tickets: Optional[Dict[str, int]] = None,
    name: Optional[str] = None,
    email: Optional[str] = None,
    phone: Optional[str] = None,
) -> Booking:
    """
    Append an organizer-entered booking (walk-in, complimentary, offline sale).

    No payment is taken, so the entry is recorded with ``payment_status``
    ``manual_entry``, but it consumes capacity like any other booking: the
    selection is checked with the listing locked and a request that no longer
    fits raises ``StaleAvailabilityError`` without writing anything.
    """
    listing = ledger.get_listing(db, listing_id, lock=True)
    records = ledger.listing_records(db, listing.id)
    rows = ledger.availability_for_date(listing, slot_date, records, allow_elapsed=True)
    try:
        selection = check_selection(
            rows,
            tiered=listing.mode == CatalogMode.fixed,
            flat_price=listing.price,
            slot_date=slot_date,
            start_time=start_time,
            end_time=end_time,
            quantity=quantity,
            tickets=tickets,
            paid=False,
        )
    except DomainError:
        db.rollback()
        raise

    booking = ledger.append_booking(
        db,
        listing,
        occurrence_id=selection.occurrence_id,
        slot_date=selection.slot_date,
        start_time=selection.start_time,
        end_time=selection.end_time,
        tickets=selection.tickets or None,
        ticket_type=next(iter(selection.tickets)) if len(selection.tickets) == 1 else None,
        quantity=selection.quantity,
        amount=selection.amount,
        currency=listing.currency or settings.PAYMENT_CURRENCY,
        buyer_id=added_by,
        name=name,
        email=email,
        phone=phone,
        payment_status="manual_entry",
        status="confirmed",
    )
    db.commit()
    db.refresh(booking)
    logger.info("Manual booking %s added to listing %s by %s (x%d)", booking.booking_number, listing.id, added_by, booking.quantity)
    return booking
