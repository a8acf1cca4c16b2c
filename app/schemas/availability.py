from typing import Optional, List
from pydantic import BaseModel, UUID4
from decimal import Decimal
from datetime import date


class TierAvailability(BaseModel):
    name: str
    capacity: int
    price: Decimal
    sold: int
    available_capacity: int
    occupancy: str


class SlotAvailability(BaseModel):
    start_time: str
    end_time: str
    capacity: int
    booked: int
    available_capacity: int
    occupancy: str                          # sold_out | critical | limited | few_left | available
    occurrence_id: Optional[UUID4] = None   # fixed mode only
    name: Optional[str] = None
    tiers: List[TierAvailability] = []


# Response for GET /listings/{id}/availability?date= ; ledger_version stamps the snapshot
class AvailabilityResponse(BaseModel):
    listing_id: UUID4
    date: date
    ledger_version: int
    slots: List[SlotAvailability]
