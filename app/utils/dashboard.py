"""
Dashboard aggregation over normalized ledger records.

Read side of the ledger: attendee filtering and sorting, check-in and revenue
stats, per-tier breakdown and the attendee CSV export.
"""

import csv
import io
from datetime import date, datetime
from typing import Iterable, List, Optional

import pandas as pd

from app.core.errors import EmptyExportError
from app.utils.records import LedgerRecord

STATUS_FILTERS = ("all", "checked-in", "not-checked-in", "confirmed", "pending")
SORT_KEYS = ("name", "email", "date", "status", "amount", "check_in_time")

EXPORT_COLUMNS = [
    "Name",
    "Email",
    "Phone",
    "Ticket Type",
    "Amount Paid",
    "Status",
    "Check-in Status",
    "Check-in Time",
    "Booking Date",
]


# ---------------------------------------------------------------------------
# Scope / filter / sort
# ---------------------------------------------------------------------------


def scope_records(
    records: Iterable[LedgerRecord],
    slot_date: Optional[date] = None,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
) -> List[LedgerRecord]:
    """Restrict to one date, and optionally one slot of it."""
    scoped = list(records)
    if slot_date is not None:
        scoped = [r for r in scoped if r.slot_date == slot_date]
    if start_time is not None:
        scoped = [r for r in scoped if r.start_time == start_time]
    if end_time is not None:
        scoped = [r for r in scoped if r.end_time == end_time]
    return scoped


def _matches_status(record: LedgerRecord, status_filter: str) -> bool:
    if status_filter == "checked-in":
        return record.checked_in
    if status_filter == "not-checked-in":
        return not record.checked_in
    if status_filter in ("confirmed", "pending"):
        return record.status == status_filter
    return True


def filter_records(records: Iterable[LedgerRecord], search_term: str = "", status_filter: str = "all") -> List[LedgerRecord]:
    term = (search_term or "").strip().lower()
    result = []
    for record in records:
        if term and not any(
            term in (value or "").lower() for value in (record.name, record.email, record.phone)
        ):
            continue
        if not _matches_status(record, status_filter):
            continue
        result.append(record)
    return result


def amount_paid(record: LedgerRecord) -> Optional[float]:
    return record.individual_amount or record.amount or None


def _sort_value(record: LedgerRecord, key: str):
    if key == "name":
        value = record.name
    elif key == "email":
        value = record.email
    elif key == "date":
        value = record.created_at
    elif key == "status":
        value = record.status
    elif key == "amount":
        value = amount_paid(record)
    elif key == "check_in_time":
        value = record.check_in_time
    else:
        raise ValueError(f"unknown sort key: {key}")
    if isinstance(value, str):
        return value.lower()
    return value


def sort_records(records: Iterable[LedgerRecord], key: str = "date", direction: str = "desc") -> List[LedgerRecord]:
    """Stable sort; records without a value for ``key`` always come last."""
    defined, missing = [], []
    for record in records:
        (missing if _sort_value(record, key) is None else defined).append(record)
    defined.sort(key=lambda r: _sort_value(r, key), reverse=(direction == "desc"))
    return defined + missing


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


def record_revenue(record: LedgerRecord, tiers: Iterable = ()) -> float:
    """individual amount, then booking amount, then tier prices times quantities."""
    if record.individual_amount:
        return float(record.individual_amount)
    if record.amount:
        return float(record.amount)
    prices = {t.name: float(t.price) for t in tiers}
    return sum(prices.get(name, 0.0) * qty for name, qty in record.tickets.items())


def compute_stats(records: Iterable[LedgerRecord], tiers: Iterable = ()) -> dict:
    records = list(records)
    tiers = list(tiers)
    total = len(records)
    checked_in = sum(1 for r in records if r.checked_in)
    return {
        "total": total,
        "checked_in": checked_in,
        "pending": total - checked_in,
        "check_in_percentage": (checked_in / total * 100) if total else 0.0,
        "total_revenue": sum(record_revenue(r, tiers) for r in records),
    }


def ticket_breakdown(records: Iterable[LedgerRecord], tiers: Iterable) -> dict:
    holding = [r for r in records if r.holds_capacity]
    rows = []
    for tier in tiers:
        capacity = int(tier.capacity)
        price = float(tier.price)
        sold = sum(r.tier_quantity(tier.name) for r in holding)
        rows.append({
            "name": tier.name,
            "capacity": capacity,
            "price": price,
            "sold": sold,
            "available": max(0, capacity - sold),
            "revenue": sold * price,
            "percentage": min(100.0, sold / capacity * 100) if capacity else 0.0,
        })
    total_sold = sum(row["sold"] for row in rows)
    total_capacity = sum(row["capacity"] for row in rows)
    return {
        "tiers": rows,
        "total_sold": total_sold,
        "total_capacity": total_capacity,
        "total_revenue": sum(row["revenue"] for row in rows),
        "available_tickets": sum(row["available"] for row in rows),
    }


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def _fmt(value) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def export_rows(records: Iterable[LedgerRecord]) -> List[dict]:
    rows = []
    for r in records:
        paid = amount_paid(r)
        rows.append({
            "Name": r.name or "N/A",
            "Email": r.email or "N/A",
            "Phone": r.phone or "N/A",
            "Ticket Type": r.ticket_type or "Standard",
            "Amount Paid": f"{paid:.2f}" if paid is not None else "N/A",
            "Status": r.status or "confirmed",
            "Check-in Status": "Checked In" if r.checked_in else "Not Checked In",
            "Check-in Time": _fmt(r.check_in_time) if r.check_in_time else "N/A",
            "Booking Date": _fmt(r.created_at) if r.created_at else "N/A",
        })
    return rows


def export_csv(records: Iterable[LedgerRecord]) -> str:
    """Attendee CSV: header row, every field double-quoted. Refuses zero records."""
    rows = export_rows(records)
    if not rows:
        raise EmptyExportError()
    df = pd.DataFrame(rows, columns=EXPORT_COLUMNS)
    output = io.StringIO()
    df.to_csv(output, index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")
    return output.getvalue()


def export_filename(title: str, scope_name: Optional[str] = None) -> str:
    return f"{title}_{scope_name or 'all'}_attendees.csv"
