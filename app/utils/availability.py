"""
Availability calculator.

Remaining capacity is never stored: it is derived from the catalog's nominal
capacity and the ledger on every read. All functions here are pure; the same
catalog and ledger snapshot always produce the same result.
"""

from datetime import date
from typing import Iterable, List, Optional

from app.utils.records import LedgerRecord

SOLD_OUT = "sold_out"
CRITICAL = "critical"
LIMITED = "limited"
FEW_LEFT = "few_left"
AVAILABLE = "available"


def occupancy_tier(available: int, capacity: int) -> str:
    """Badge for a slot or tier. Checks run in this order; the first match wins."""
    if available <= 0:
        return SOLD_OUT
    pct = available / capacity * 100 if capacity else 0
    if pct <= 10:
        return CRITICAL
    if pct <= 25:
        return LIMITED
    if pct > 50:
        return AVAILABLE
    return FEW_LEFT


def booked_quantity(records: Iterable[LedgerRecord], slot_date: date, start_time: str, end_time: str) -> int:
    return sum(
        r.quantity
        for r in records
        if r.holds_capacity and r.matches_slot(slot_date, start_time, end_time)
    )


def _entry(capacity: int, booked: int) -> dict:
    available = max(0, capacity - booked)
    return {
        "capacity": capacity,
        "booked": booked,
        "available_capacity": available,
        "occupancy": occupancy_tier(available, capacity),
    }


def compute_slot_availability(slots: Iterable[dict], records: Iterable[LedgerRecord], slot_date: date) -> List[dict]:
    """
    Per nominal slot of ``slot_date``: capacity minus booked quantity of the
    capacity-holding records with the same slot key, clamped at zero.
    """
    records = list(records)
    result = []
    for slot in slots:
        booked = booked_quantity(records, slot_date, slot["start_time"], slot["end_time"])
        result.append({
            "start_time": slot["start_time"],
            "end_time": slot["end_time"],
            **_entry(int(slot["capacity"]), booked),
        })
    return result


def tiers_in_scope(tiers: Iterable, occurrence=None) -> list:
    """Session-scoped tiers of the occurrence when it has any, else the shared pool."""
    tiers = list(tiers)
    if occurrence is not None:
        bound = [t for t in tiers if t.occurrence_id == occurrence.id]
        if bound:
            return bound
    return [t for t in tiers if t.occurrence_id is None]


def compute_tier_availability(tiers: Iterable, records: Iterable[LedgerRecord], occurrence=None) -> List[dict]:
    """
    Per ticket tier: capacity minus the tier quantity sold in its scope.

    A shared-pool tier (no occurrence) counts every capacity-holding record of
    the listing; an occurrence-bound tier only the records of that slot.
    """
    holding = [r for r in records if r.holds_capacity]
    result = []
    for tier in tiers:
        if tier.occurrence_id is None or occurrence is None:
            scoped = holding
        else:
            scoped = [
                r for r in holding
                if r.matches_slot(occurrence.slot_date, occurrence.start_time, occurrence.end_time)
            ]
        sold = sum(r.tier_quantity(tier.name) for r in scoped)
        entry = _entry(int(tier.capacity), sold)
        result.append({
            "name": tier.name,
            "price": tier.price,
            "sold": entry.pop("booked"),
            **entry,
        })
    return result


def compute_occurrence_availability(occurrence, tiers: Iterable, records: Iterable[LedgerRecord]) -> dict:
    """Fixed-mode slot entry: the occurrence's totals are the sums over its tiers."""
    tier_rows = compute_tier_availability(tiers_in_scope(tiers, occurrence), records, occurrence)
    capacity = sum(t["capacity"] for t in tier_rows)
    available = sum(t["available_capacity"] for t in tier_rows)
    return {
        "start_time": occurrence.start_time,
        "end_time": occurrence.end_time,
        "capacity": capacity,
        "booked": sum(t["sold"] for t in tier_rows),
        "available_capacity": available,
        "occupancy": occupancy_tier(available, capacity),
        "occurrence_id": occurrence.id,
        "name": occurrence.name,
        "tiers": tier_rows,
    }


def find_tier(rows: List[dict], name: str) -> Optional[dict]:
    return next((row for row in rows if row["name"] == name), None)
