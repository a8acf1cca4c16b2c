from uuid import UUID
from typing import Optional
from datetime import date
from collections import OrderedDict

from fastapi import APIRouter, Depends, HTTPException, Query, status as http_status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.core.access import Access, AccessGate
from app.core.errors import (
    AccessDeniedError,
    BookingNotFoundError,
    DomainError,
    ListingNotFoundError,
    to_http_exception,
)
from app.db.session import get_db
from app.api.deps import get_current_user, get_access_gate
from app.models.booking import Booking
from app.models.listing import Listing, CatalogMode
from app.schemas.dashboard import (
    Attendee,
    AttendeeStats,
    CheckInRequest,
    CheckInResponse,
    DashboardResponse,
    ManualAttendeeCreate,
    ManualAttendeeResponse,
    Permissions,
    SessionSummary,
    TicketBreakdown,
)
from app.schemas.booking import Booking as BookingSchema
from app.schemas.common import CapacityErrorEnvelope, ErrorEnvelope, PaginatedResponse
from app.services import ledger
from app.services.booking_orchestrator import add_manual_attendee
from app.utils import dashboard as agg
from app.utils.availability import tiers_in_scope

router = APIRouter(prefix="/admin/listings", tags=["Admin - Dashboard"])
bookings_router = APIRouter(prefix="/admin/bookings", tags=["Admin - Dashboard"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _authorize(id: UUID, user_id: str, gate: AccessGate, db: Session):
    """404 for a missing listing, 403 when the gate refuses the dashboard."""
    listing = db.query(Listing).filter(Listing.id == id).first()
    if not listing:
        raise to_http_exception(ListingNotFoundError())
    access = gate.check_access(listing, user_id)
    if not access.can_view:
        raise to_http_exception(AccessDeniedError())
    return listing, access


def _find_occurrence(listing: Listing, slot_date, start_time, end_time):
    if listing.mode != CatalogMode.fixed or slot_date is None or start_time is None:
        return None
    for occ in listing.occurrences:
        if occ.slot_date == slot_date and occ.start_time == start_time and (end_time is None or occ.end_time == end_time):
            return occ
    return None


def _scope_name(occurrence, slot_date, start_time) -> Optional[str]:
    if occurrence is not None and occurrence.name:
        return occurrence.name
    if slot_date is None:
        return None
    if start_time:
        return f"{slot_date.isoformat()}_{start_time.replace(':', '')}"
    return slot_date.isoformat()


def _sessions(listing: Listing, records) -> list:
    sessions = OrderedDict()
    if listing.mode == CatalogMode.fixed:
        for occ in listing.occurrences:
            sessions[(occ.slot_date, occ.start_time, occ.end_time)] = {"name": occ.name, "attendees": 0, "checked_in": 0}
    for r in records:
        if r.slot_date is None or r.start_time is None or r.end_time is None:
            continue
        entry = sessions.setdefault((r.slot_date, r.start_time, r.end_time), {"name": None, "attendees": 0, "checked_in": 0})
        entry["attendees"] += 1
        entry["checked_in"] += 1 if r.checked_in else 0
    return [
        SessionSummary(slot_date=key[0], start_time=key[1], end_time=key[2], **value)
        for key, value in sorted(sessions.items(), key=lambda item: item[0])
    ]


def _permissions(access: Access) -> Permissions:
    return Permissions(
        can_view=access.can_view,
        can_edit=access.can_edit,
        can_manage_attendees=access.can_manage_attendees,
        can_view_financials=access.can_view_financials,
        role=access.role,
    )


# ---------------------------------------------------------------------------
# GET /admin/listings/{id}/dashboard
# ---------------------------------------------------------------------------


@router.get("/{id}/dashboard", response_model=DashboardResponse)
def get_dashboard(
    id: UUID,
    slot_date: Optional[date] = Query(None, description="Scope to one date (YYYY-MM-DD)"),
    start_time: Optional[str] = Query(None, description="Scope to one slot (HH:MM); needs slot_date"),
    end_time: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user),
    gate: AccessGate = Depends(get_access_gate),
):
    """
    Occupancy and revenue overview for one listing, optionally scoped to a session.
    Revenue figures are omitted without financial access.
    """
    listing, access = _authorize(id, current_user, gate, db)
    all_records = ledger.listing_records(db, listing.id)
    records = agg.scope_records(all_records, slot_date, start_time, end_time)

    occurrence = _find_occurrence(listing, slot_date, start_time, end_time)
    tiers = tiers_in_scope(listing.tiers, occurrence) if listing.mode == CatalogMode.fixed else []

    stats = agg.compute_stats(records, tiers)
    breakdown = None
    if tiers:
        breakdown = agg.ticket_breakdown(records, tiers)

    if not access.can_view_financials:
        stats["total_revenue"] = None
        if breakdown:
            breakdown["total_revenue"] = None
            for row in breakdown["tiers"]:
                row["price"] = None
                row["revenue"] = None

    return DashboardResponse(
        listing_id=listing.id,
        title=listing.title,
        ledger_version=listing.ledger_version or 0,
        permissions=_permissions(access),
        stats=AttendeeStats(**stats),
        breakdown=TicketBreakdown(**breakdown) if breakdown else None,
        sessions=_sessions(listing, all_records),
    )


# ---------------------------------------------------------------------------
# GET /admin/listings/{id}/attendees
# ---------------------------------------------------------------------------


@router.get("/{id}/attendees", response_model=PaginatedResponse[Attendee])
def list_attendees(
    id: UUID,
    search: str = Query("", description="Substring of name, email or phone"),
    status: str = Query("all", description="all, checked-in, not-checked-in, confirmed, pending"),
    sort: str = Query("date", description="name, email, date, status, amount, check_in_time"),
    direction: str = Query("desc", pattern="^(asc|desc)$"),
    slot_date: Optional[date] = Query(None),
    start_time: Optional[str] = Query(None),
    end_time: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user),
    gate: AccessGate = Depends(get_access_gate),
):
    if status not in agg.STATUS_FILTERS:
        raise HTTPException(status_code=422, detail=f"Unknown status filter '{status}'")
    if sort not in agg.SORT_KEYS:
        raise HTTPException(status_code=422, detail=f"Unknown sort key '{sort}'")

    listing, access = _authorize(id, current_user, gate, db)
    records = agg.scope_records(ledger.listing_records(db, listing.id), slot_date, start_time, end_time)
    rows = agg.sort_records(agg.filter_records(records, search, status), sort, direction)

    total = len(rows)
    page_rows = rows[(page - 1) * limit: page * limit]
    data = [
        Attendee(
            id=r.id,
            name=r.name,
            email=r.email,
            phone=r.phone,
            slot_date=r.slot_date,
            start_time=r.start_time,
            end_time=r.end_time,
            ticket_type=r.ticket_type,
            tickets=r.tickets,
            quantity=r.quantity,
            amount=agg.amount_paid(r) if access.can_view_financials else None,
            status=r.status,
            payment_status=r.payment_status,
            checked_in=r.checked_in,
            check_in_time=r.check_in_time,
            created_at=r.created_at,
        )
        for r in page_rows
    ]
    return PaginatedResponse(
        data=data,
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


# ---------------------------------------------------------------------------
# POST /admin/listings/{id}/attendees
# ---------------------------------------------------------------------------


@router.post(
    "/{id}/attendees",
    response_model=ManualAttendeeResponse,
    status_code=http_status.HTTP_201_CREATED,
    responses={
        403: {"model": ErrorEnvelope},
        404: {"model": ErrorEnvelope},
        409: {"model": CapacityErrorEnvelope},
        422: {"model": ErrorEnvelope},
    },
)
def add_attendee(
    id: UUID,
    body: ManualAttendeeCreate,
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user),
    gate: AccessGate = Depends(get_access_gate),
):
    """Add an attendee by hand. Skips payment, never capacity."""
    listing, access = _authorize(id, current_user, gate, db)
    if not access.can_manage_attendees:
        raise to_http_exception(AccessDeniedError("You do not have permission to manage attendees"))

    try:
        booking = add_manual_attendee(
            db,
            listing.id,
            current_user,
            body.slot_date,
            body.start_time,
            body.end_time,
            quantity=body.quantity,
            tickets=body.tickets,
            name=body.name,
            email=body.email,
            phone=body.phone,
        )
    except DomainError as exc:
        raise to_http_exception(exc)

    return ManualAttendeeResponse(
        booking=BookingSchema.model_validate(booking),
        ledger_version=listing.ledger_version,
    )


# ---------------------------------------------------------------------------
# GET /admin/listings/{id}/attendees/export
# ---------------------------------------------------------------------------


@router.get("/{id}/attendees/export")
def export_attendees(
    id: UUID,
    search: str = Query(""),
    status: str = Query("all"),
    slot_date: Optional[date] = Query(None),
    start_time: Optional[str] = Query(None),
    end_time: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user),
    gate: AccessGate = Depends(get_access_gate),
):
    """CSV of the filtered attendees. Exports exactly the rows the filter shows."""
    listing, access = _authorize(id, current_user, gate, db)
    if not access.can_view_financials:
        raise to_http_exception(AccessDeniedError("You do not have permission to export attendee data"))

    records = agg.scope_records(ledger.listing_records(db, listing.id), slot_date, start_time, end_time)
    rows = agg.sort_records(agg.filter_records(records, search, status), "date", "desc")
    try:
        content = agg.export_csv(rows)
    except DomainError as exc:
        raise to_http_exception(exc)

    occurrence = _find_occurrence(listing, slot_date, start_time, end_time)
    filename = agg.export_filename(listing.title, _scope_name(occurrence, slot_date, start_time))
    return StreamingResponse(
        iter([content.encode("utf-8")]),
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"'
        },
    )


# ---------------------------------------------------------------------------
# PATCH /admin/bookings/{id}/check-in
# ---------------------------------------------------------------------------


@bookings_router.patch("/{booking_id}/check-in", response_model=CheckInResponse)
def check_in(
    booking_id: UUID,
    body: CheckInRequest,
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user),
    gate: AccessGate = Depends(get_access_gate),
):
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking:
        raise to_http_exception(BookingNotFoundError())
    if not gate.check_access(booking.listing, current_user).can_manage_attendees:
        raise to_http_exception(AccessDeniedError("You do not have permission to manage attendees"))

    try:
        booking = ledger.set_check_in(db, booking, body.checked_in)
    except DomainError as exc:
        raise to_http_exception(exc)

    return CheckInResponse(
        id=booking.id,
        booking_number=booking.booking_number,
        checked_in=booking.checked_in,
        check_in_time=booking.check_in_time,
        ledger_version=booking.listing.ledger_version,
    )
