import re
from typing import Optional, List, Dict
from pydantic import BaseModel, Field, UUID4, field_validator, model_validator
from decimal import Decimal
from datetime import date, datetime

from app.models.listing import ListingKind, CatalogMode

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _check_hhmm(value: str) -> str:
    if not isinstance(value, str) or not _HHMM.match(value):
        raise ValueError("time must be HH:MM (24h)")
    return value


def _unique_names(tiers) -> None:
    names = [t.name for t in tiers]
    if len(names) != len(set(names)):
        raise ValueError("ticket tier names must be unique")


# ---------------------------------------------------------------------------
# Catalog input
# ---------------------------------------------------------------------------

class SlotDefinition(BaseModel):
    """One nominal slot of a weekday in a recurring schedule."""
    start_time: str
    end_time: str
    capacity: int = Field(ge=0)

    @field_validator("start_time", "end_time")
    @classmethod
    def check_hhmm(cls, v):
        return _check_hhmm(v)

    @model_validator(mode="after")
    def check_order(self):
        # zero-padded HH:MM compares correctly as strings
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class DaySchedule(BaseModel):
    is_open: bool = False
    slots: List[SlotDefinition] = []


class TicketTierCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    capacity: int = Field(ge=0)
    price: Decimal = Field(ge=0, allow_inf_nan=False)


class OccurrenceCreate(BaseModel):
    name: Optional[str] = None
    slot_date: date
    start_time: str
    end_time: str
    available: bool = True
    tiers: List[TicketTierCreate] = []   # session-scoped tiers; omit to use the listing's shared pool

    @field_validator("start_time", "end_time")
    @classmethod
    def check_hhmm(cls, v):
        return _check_hhmm(v)

    @model_validator(mode="after")
    def check_occurrence(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        _unique_names(self.tiers)
        return self


def _check_weekly(schedule: Optional[Dict[str, DaySchedule]]):
    if schedule is None:
        return schedule
    unknown = [day for day in schedule if day not in WEEKDAY_NAMES]
    if unknown:
        raise ValueError(f"unknown weekday name(s): {', '.join(unknown)}")
    return schedule


# Listing - Create (admin POST /admin/listings)
class ListingCreate(BaseModel):
    kind: ListingKind
    mode: CatalogMode
    title: str = Field(min_length=1, max_length=255)
    price: Optional[Decimal] = Field(default=None, ge=0, allow_inf_nan=False)
    currency: str = "INR"
    weekly_schedule: Optional[Dict[str, DaySchedule]] = None
    closed_dates: List[date] = []
    occurrences: List[OccurrenceCreate] = []
    tiers: List[TicketTierCreate] = []  # shared pool
    status: str = "active"

    @field_validator("weekly_schedule")
    @classmethod
    def check_weekdays(cls, v):
        return _check_weekly(v)

    @model_validator(mode="after")
    def check_mode(self):
        if self.mode == CatalogMode.recurring:
            if not self.weekly_schedule:
                raise ValueError("recurring listings need a weekly_schedule")
            if self.occurrences:
                raise ValueError("recurring listings cannot define occurrences")
        else:
            if not self.occurrences:
                raise ValueError("fixed listings need at least one occurrence")
            if not self.tiers and not all(o.tiers for o in self.occurrences):
                raise ValueError("every occurrence needs at least one ticket tier")
        _unique_names(self.tiers)
        return self


# Listing - Update (admin PATCH /admin/listings/{id}); catalog fields replace wholesale
class ListingUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    price: Optional[Decimal] = Field(default=None, ge=0, allow_inf_nan=False)
    currency: Optional[str] = None
    status: Optional[str] = None
    weekly_schedule: Optional[Dict[str, DaySchedule]] = None
    closed_dates: Optional[List[date]] = None
    occurrences: Optional[List[OccurrenceCreate]] = None
    tiers: Optional[List[TicketTierCreate]] = None

    @field_validator("weekly_schedule")
    @classmethod
    def check_weekdays(cls, v):
        return _check_weekly(v)

    @model_validator(mode="after")
    def check_tiers(self):
        if self.tiers is not None:
            _unique_names(self.tiers)
        return self


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class TicketTier(BaseModel):
    id: UUID4
    name: str
    capacity: int
    price: Decimal
    occurrence_id: Optional[UUID4] = None

    class Config:
        from_attributes = True


class Occurrence(BaseModel):
    id: UUID4
    name: Optional[str] = None
    slot_date: date
    start_time: str
    end_time: str
    available: bool = True
    tiers: List[TicketTier] = []

    class Config:
        from_attributes = True


class Listing(BaseModel):
    id: UUID4
    kind: ListingKind
    mode: CatalogMode
    title: str
    price: Optional[Decimal] = None
    currency: str = "INR"
    weekly_schedule: Optional[dict] = None
    closed_dates: Optional[List[date]] = None
    ledger_version: int = 0
    status: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    occurrences: List[Occurrence] = []
    tiers: List[TicketTier] = []

    class Config:
        from_attributes = True

    @field_validator("tiers", mode="before")
    @classmethod
    def shared_pool_only(cls, v):
        # session-scoped tiers are reported under their occurrence
        return [t for t in (v or []) if getattr(t, "occurrence_id", None) is None]


# Response for GET /listings/{id}/dates
class ListingDatesResponse(BaseModel):
    listing_id: UUID4
    dates: List[date]
