from uuid import UUID
from typing import Optional
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.core.errors import ListingNotFoundError, to_http_exception
from app.db.session import get_db
from app.models.listing import Listing, ListingKind, CatalogMode
from app.schemas.listing import Listing as ListingSchema, ListingDatesResponse
from app.schemas.availability import AvailabilityResponse
from app.schemas.common import PaginatedResponse
from app.services import ledger
from app.utils.catalog import available_dates

router = APIRouter(prefix="/listings", tags=["Listings"])


def _get_active_listing(id: UUID, db: Session) -> Listing:
    listing = (
        db.query(Listing)
        .options(selectinload(Listing.occurrences), selectinload(Listing.tiers))
        .filter(Listing.id == id, Listing.status == "active")
        .first()
    )
    if not listing:
        raise to_http_exception(ListingNotFoundError())
    return listing


@router.get("/", response_model=PaginatedResponse[ListingSchema])
def list_listings(
    kind: Optional[ListingKind] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = db.query(Listing).filter(Listing.status == "active")
    if kind:
        query = query.filter(Listing.kind == kind)

    query = query.order_by(Listing.created_at.desc())
    total = query.count()
    listings = query.offset((page - 1) * limit).limit(limit).all()

    return PaginatedResponse(
        data=listings,
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


@router.get("/{id}", response_model=ListingSchema)
def get_listing(id: UUID, db: Session = Depends(get_db)):
    return _get_active_listing(id, db)


@router.get("/{id}/dates", response_model=ListingDatesResponse)
def get_bookable_dates(id: UUID, db: Session = Depends(get_db)):
    """Dates a buyer can pick: open weekdays minus exception dates, or the occurrence dates."""
    listing = _get_active_listing(id, db)
    today = date.today()
    if listing.mode == CatalogMode.recurring:
        dates = available_dates(
            listing.weekly_schedule, listing.closed_dates, today, settings.BOOKING_HORIZON_DAYS
        )
    else:
        dates = sorted({o.slot_date for o in listing.occurrences if o.available and o.slot_date >= today})
    return ListingDatesResponse(listing_id=listing.id, dates=dates)


@router.get("/{id}/availability", response_model=AvailabilityResponse)
def get_availability(
    id: UUID,
    date: date = Query(..., description="Slot date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
):
    """
    Remaining capacity per slot on ``date``, derived from the ledger on every call.
    ``ledger_version`` stamps the snapshot so clients can drop out-of-order responses.
    """
    listing = _get_active_listing(id, db)
    records = ledger.listing_records(db, listing.id)
    slots = ledger.availability_for_date(listing, date, records)
    return AvailabilityResponse(
        listing_id=listing.id,
        date=date,
        ledger_version=listing.ledger_version or 0,
        slots=slots,
    )
