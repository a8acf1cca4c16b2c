from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from app.core.config import settings
from app.schemas.listing import WEEKDAY_NAMES


def weekday_name(day: date) -> str:
    return WEEKDAY_NAMES[day.weekday()]


def _closed_set(closed_dates) -> set:
    closed = set()
    for value in closed_dates or []:
        closed.add(value if isinstance(value, date) else date.fromisoformat(value))
    return closed


def _day(weekly_schedule, day: date) -> dict:
    entry = (weekly_schedule or {}).get(weekday_name(day)) or {}
    # Accept both stored JSON and DaySchedule models
    return entry.model_dump() if hasattr(entry, "model_dump") else entry


def is_bookable_date(weekly_schedule, closed_dates, day: date) -> bool:
    return bool(_day(weekly_schedule, day).get("is_open")) and day not in _closed_set(closed_dates)


def available_dates(
    weekly_schedule,
    closed_dates,
    today: date,
    horizon_days: int = settings.BOOKING_HORIZON_DAYS,
) -> List[date]:
    """
    Dates in [today, today + horizon_days) whose weekday is open and which
    are not exception dates. Ascending.
    """
    closed = _closed_set(closed_dates)
    dates = []
    for offset in range(horizon_days):
        day = today + timedelta(days=offset)
        if _day(weekly_schedule, day).get("is_open") and day not in closed:
            dates.append(day)
    return dates


def _drop_elapsed(slots: list, target_date: date, now: Optional[datetime], allow_elapsed: Optional[bool], start_of) -> list:
    """
    Past-slot rule: a slot of today is past once its start time has been reached.
    Only applied when elapsed same-day slots are not allowed.
    """
    if allow_elapsed is None:
        allow_elapsed = settings.ALLOW_ELAPSED_SAME_DAY_SLOTS
    if allow_elapsed:
        return slots
    # slot_date/start_time are timezone-naive local values
    now = now or datetime.now()
    if target_date != now.date():
        return slots
    current = now.strftime("%H:%M")
    return [s for s in slots if start_of(s) > current]


def slots_for_date(
    weekly_schedule,
    closed_dates,
    target_date: date,
    now: Optional[datetime] = None,
    allow_elapsed: Optional[bool] = None,
) -> List[dict]:
    """Nominal slots (start_time, end_time, capacity) offered on ``target_date``."""
    if not is_bookable_date(weekly_schedule, closed_dates, target_date):
        return []
    slots = [
        {"start_time": s["start_time"], "end_time": s["end_time"], "capacity": s["capacity"]}
        for s in _day(weekly_schedule, target_date).get("slots") or []
    ]
    return _drop_elapsed(slots, target_date, now, allow_elapsed, lambda s: s["start_time"])


def fixed_slots_for_date(
    occurrences: Iterable,
    target_date: date,
    now: Optional[datetime] = None,
    allow_elapsed: Optional[bool] = None,
) -> list:
    """Occurrences on ``target_date`` still marked available, ordered by start time."""
    matching = sorted(
        (o for o in occurrences if o.slot_date == target_date and o.available),
        key=lambda o: o.start_time,
    )
    return _drop_elapsed(matching, target_date, now, allow_elapsed, lambda o: o.start_time)


def find_slot(slots: Iterable, start_time: str, end_time: str):
    """Exact string match on the slot boundaries; None when not offered."""
    for slot in slots:
        start = slot["start_time"] if isinstance(slot, dict) else slot.start_time
        end = slot["end_time"] if isinstance(slot, dict) else slot.end_time
        if start == start_time and end == end_time:
            return slot
    return None
