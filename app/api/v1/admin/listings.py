from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.core.access import AccessGate
from app.core.errors import AccessDeniedError, ListingNotFoundError, to_http_exception
from app.db.session import get_db
from app.api.deps import get_current_user, get_access_gate
from app.models.listing import Listing, CatalogMode
from app.models.occurrence import Occurrence, TicketTier
from app.schemas.listing import Listing as ListingSchema, ListingCreate, ListingUpdate
from app.schemas.common import PaginatedResponse

router = APIRouter(prefix="/admin/listings", tags=["Admin - Listings"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _dump_schedule(schedule) -> dict:
    return {day: entry.model_dump() for day, entry in schedule.items()}


def _dump_dates(dates) -> list:
    return sorted({d.isoformat() for d in dates})


def _build_occurrences(listing: Listing, occurrences) -> None:
    for occ in occurrences:
        occurrence = Occurrence(
            name=occ.name,
            slot_date=occ.slot_date,
            start_time=occ.start_time,
            end_time=occ.end_time,
            available=occ.available,
        )
        listing.occurrences.append(occurrence)
        for tier in occ.tiers:
            occurrence.tiers.append(TicketTier(listing=listing, **tier.model_dump()))


def _build_shared_tiers(listing: Listing, tiers) -> None:
    for tier in tiers:
        listing.tiers.append(TicketTier(**tier.model_dump()))


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


@router.get("/", response_model=PaginatedResponse[ListingSchema])
def list_my_listings(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user),
):
    """Listings created by the current organizer, newest first."""
    query = db.query(Listing).filter(Listing.created_by == current_user).order_by(Listing.created_at.desc())
    total = query.count()
    listings = query.offset((page - 1) * limit).limit(limit).all()
    return PaginatedResponse(
        data=listings,
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


@router.post("/", response_model=ListingSchema, status_code=status.HTTP_201_CREATED)
def create_listing(
    data: ListingCreate,
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user),
):
    listing = Listing(
        kind=data.kind,
        mode=data.mode,
        title=data.title,
        price=data.price,
        currency=data.currency,
        weekly_schedule=_dump_schedule(data.weekly_schedule) if data.weekly_schedule else None,
        closed_dates=_dump_dates(data.closed_dates),
        status=data.status,
        created_by=current_user,
        ledger_version=0,
    )
    _build_occurrences(listing, data.occurrences)
    _build_shared_tiers(listing, data.tiers)
    db.add(listing)
    db.commit()
    db.refresh(listing)
    return listing


@router.patch("/{id}", response_model=ListingSchema)
def update_listing(
    id: UUID,
    data: ListingUpdate,
    db: Session = Depends(get_db),
    current_user: str = Depends(get_current_user),
    gate: AccessGate = Depends(get_access_gate),
):
    """
    Replace catalog parts of a listing. Existing bookings are never touched:
    they keep their slot key and still count against a slot with the same
    boundaries in the new catalog.
    """
    listing = db.query(Listing).filter(Listing.id == id).first()
    if not listing:
        raise to_http_exception(ListingNotFoundError())
    if not gate.check_access(listing, current_user).can_edit:
        raise to_http_exception(AccessDeniedError("You do not have permission to edit this listing"))

    changes = data.model_dump(exclude_unset=True)
    recurring_fields = {"weekly_schedule", "closed_dates"} & changes.keys()
    fixed_fields = {"occurrences", "tiers"} & changes.keys()
    if listing.mode == CatalogMode.recurring and fixed_fields:
        raise HTTPException(status_code=422, detail="Recurring listings have no occurrences or tiers")
    if listing.mode == CatalogMode.fixed and recurring_fields:
        raise HTTPException(status_code=422, detail="Fixed listings have no weekly schedule")

    for field in ("title", "price", "currency", "status"):
        if field in changes:
            setattr(listing, field, changes[field])

    if "weekly_schedule" in changes:
        if not data.weekly_schedule:
            raise HTTPException(status_code=422, detail="Recurring listings need a weekly_schedule")
        listing.weekly_schedule = _dump_schedule(data.weekly_schedule)
    if "closed_dates" in changes:
        listing.closed_dates = _dump_dates(data.closed_dates or [])

    if "occurrences" in changes:
        if not data.occurrences:
            raise HTTPException(status_code=422, detail="Fixed listings need at least one occurrence")
        # delete-orphan cascade drops the old occurrences and their session tiers
        listing.occurrences = []
        db.flush()
        db.expire(listing, ["tiers"])
        _build_occurrences(listing, data.occurrences)
    if "tiers" in changes:
        listing.tiers = [t for t in listing.tiers if t.occurrence_id is not None]
        _build_shared_tiers(listing, data.tiers or [])

    if listing.mode == CatalogMode.fixed:
        shared = any(t.occurrence_id is None for t in listing.tiers)
        if not shared and not all(o.tiers for o in listing.occurrences):
            db.rollback()
            raise HTTPException(status_code=422, detail="Every occurrence needs at least one ticket tier")

    db.commit()
    db.refresh(listing)
    return listing
