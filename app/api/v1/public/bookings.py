from uuid import UUID
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.errors import BookingNotFoundError, DomainError, to_http_exception
from app.db.session import get_db
from app.api.deps import get_current_user, get_payment_gateway
from app.models.booking import Booking, PaymentOrder
from app.schemas.booking import (
    OrderCreate,
    Order as OrderSchema,
    PaymentConfirm,
    PaymentFail,
    OrderOutcome,
    Booking as BookingSchema,
)
from app.schemas.common import PaginatedResponse, ErrorEnvelope, CapacityErrorEnvelope
from app.services.booking_orchestrator import BookingOrchestrator
from app.services.payment_gateway import PaymentGateway


router = APIRouter(prefix="/bookings", tags=["Bookings"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _serialize_order(order: PaymentOrder, gateway: PaymentGateway) -> OrderSchema:
    return OrderSchema(
        id=order.id,
        listing_id=order.listing_id,
        gateway_order_id=order.gateway_order_id,
        key_id=gateway.key_id,
        receipt=order.receipt,
        amount=order.amount,
        amount_minor=order.amount_minor,
        currency=order.currency,
        quantity=order.quantity,
        tickets=order.tickets,
        status=order.status,
        failure_reason=order.failure_reason,
        booking_id=order.booking_id,
        expires_at=order.expires_at,
    )


# ---------------------------------------------------------------------------
# POST /bookings/orders - validate the selection and open a gateway order
# ---------------------------------------------------------------------------


@router.post(
    "/orders",
    response_model=OrderSchema,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"model": CapacityErrorEnvelope},
        422: {"model": ErrorEnvelope},
        502: {"model": ErrorEnvelope},
    },
)
def create_order(
    body: OrderCreate,
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Start a booking attempt.
    - 422 on invalid quantity/price, free bookings, unknown slots or tiers.
    - 409 when the selection no longer fits the current availability.
    - 502 when the gateway refuses the order.
    Nothing is written to the ledger here.
    """
    orchestrator = BookingOrchestrator(db, gateway)
    try:
        order = orchestrator.create_order(
            listing_id=body.listing_id,
            buyer_id=current_user,
            slot_date=body.slot_date,
            start_time=body.start_time,
            end_time=body.end_time,
            quantity=body.quantity,
            tickets=body.tickets,
            name=body.name,
            email=body.email,
            phone=body.phone,
        )
    except DomainError as exc:
        raise to_http_exception(exc)
    return _serialize_order(order, gateway)


# ---------------------------------------------------------------------------
# POST /bookings/orders/{id}/confirm - gateway success callback
# ---------------------------------------------------------------------------


@router.post(
    "/orders/{order_id}/confirm",
    response_model=BookingSchema,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorEnvelope},
        409: {"model": CapacityErrorEnvelope},
    },
)
def confirm_order(
    order_id: UUID,
    body: PaymentConfirm,
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Verify the payment and append the booking to the ledger.
    Capacity is re-checked under the listing lock; losing the race returns 409.
    """
    orchestrator = BookingOrchestrator(db, gateway)
    try:
        return orchestrator.confirm(order_id, current_user, body.payment_id, body.signature)
    except DomainError as exc:
        raise to_http_exception(exc)


# ---------------------------------------------------------------------------
# POST /bookings/orders/{id}/fail - gateway failure / user cancel callback
# ---------------------------------------------------------------------------


@router.post("/orders/{order_id}/fail", response_model=OrderOutcome)
def fail_order(
    order_id: UUID,
    body: PaymentFail,
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    orchestrator = BookingOrchestrator(db, gateway)
    try:
        order = orchestrator.fail(order_id, current_user, body.reason)
    except DomainError as exc:
        raise to_http_exception(exc)
    return OrderOutcome(order=_serialize_order(order, gateway), booking=order.booking)


@router.get("/orders/{order_id}", response_model=OrderSchema)
def get_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    try:
        order = BookingOrchestrator(db, gateway).get_order(order_id, current_user)
    except DomainError as exc:
        raise to_http_exception(exc)
    return _serialize_order(order, gateway)


# ---------------------------------------------------------------------------
# GET /bookings - list current user's bookings
# ---------------------------------------------------------------------------


@router.get("/", response_model=PaginatedResponse[BookingSchema])
def list_my_bookings(
    status: Optional[str] = Query(
        None, description="Filter by status: confirmed, cancelled, pending"
    ),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user),
):
    """Return the authenticated user's bookings, newest first."""
    query = db.query(Booking).filter(Booking.buyer_id == current_user)
    if status:
        query = query.filter(Booking.status == status)

    total = query.count()
    bookings = (
        query.order_by(Booking.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return PaginatedResponse(
        data=bookings,
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


# ---------------------------------------------------------------------------
# GET /bookings/{id} - single booking detail
# ---------------------------------------------------------------------------


@router.get("/{booking_id}", response_model=BookingSchema)
def get_booking(
    booking_id: UUID,
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user),
):
    """Return a single booking. Only the buyer can access it."""
    booking = db.query(Booking).filter(
        Booking.id == booking_id,
        Booking.buyer_id == current_user,
    ).first()
    if not booking:
        raise to_http_exception(BookingNotFoundError())
    return booking
