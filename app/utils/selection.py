"""
Selection checks shared by the server orchestrator and the client booking flow.

Both run the same rules; they differ only in where the availability rows come
from (freshly derived from the ledger vs. the client's last-known snapshot).
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional
from uuid import UUID

from app.core.errors import (
    FreeBookingNotSupportedError,
    InvalidPriceError,
    InvalidQuantityError,
    InvalidSlotError,
    StaleAvailabilityError,
)
from app.utils.availability import find_tier


@dataclass
class Selection:
    """A validated request: which slot, how many of which tier, for how much."""
    slot_date: date
    start_time: str
    end_time: str
    quantity: int
    amount: Decimal
    tickets: Dict[str, int] = field(default_factory=dict)
    occurrence_id: Optional[UUID] = None


def valid_price(price) -> Optional[Decimal]:
    """The price as a Decimal, or None when it is missing, negative or not finite."""
    if price is None:
        return None
    try:
        value = Decimal(str(price))
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite() or value < 0:
        return None
    return value


def find_row(rows: List[dict], start_time: str, end_time: str) -> Optional[dict]:
    return next((r for r in rows if r["start_time"] == start_time and r["end_time"] == end_time), None)


def shortfall(rows: List[dict], start_time: str, end_time: str, quantity: int, tickets: Optional[Dict[str, int]] = None):
    """(available, requested) of the first constraint the request exceeds, else None."""
    row = find_row(rows, start_time, end_time)
    if row is None:
        return 0, quantity
    if tickets and row.get("tiers"):
        for name, qty in tickets.items():
            tier = find_tier(row["tiers"], name)
            available = tier["available_capacity"] if tier else 0
            if qty > available:
                return available, qty
        return None
    if quantity > row["available_capacity"]:
        return row["available_capacity"], quantity
    return None


def check_selection(
    rows: List[dict],
    tiered: bool,
    flat_price,
    slot_date: date,
    start_time: str,
    end_time: str,
    quantity: Optional[int] = None,
    tickets: Optional[Dict[str, int]] = None,
    paid: bool = True,
) -> Selection:
    """
    Validate a selection against availability ``rows`` of ``slot_date``.

    ``tiered`` listings price per ticket tier; the others use ``flat_price``.
    A zero total is refused only for ``paid`` selections.
    Order of checks: quantity, price, total amount, slot, remaining capacity.
    """
    tickets = dict(tickets or {})
    if any(qty is None or qty < 0 for qty in tickets.values()):
        raise InvalidQuantityError(min(q or 0 for q in tickets.values()))
    tickets = {name: qty for name, qty in tickets.items() if qty}
    if tickets:
        quantity = sum(tickets.values())
    if quantity is None or quantity <= 0:
        raise InvalidQuantityError(quantity or 0)

    if not tiered:
        price = valid_price(flat_price)
        if price is None:
            raise InvalidPriceError()
        amount = price * quantity
        if paid and amount <= 0:
            raise FreeBookingNotSupportedError()
        row = find_row(rows, start_time, end_time)
        if row is None:
            raise InvalidSlotError()
        tickets = {}
    else:
        row = find_row(rows, start_time, end_time)
        if row is None:
            raise InvalidSlotError()
        tier_rows = row.get("tiers") or []
        if not tickets:
            # A bare quantity is allowed when the occurrence sells a single tier
            if len(tier_rows) != 1:
                raise InvalidSlotError("Select a ticket type")
            tickets = {tier_rows[0]["name"]: quantity}
        amount = Decimal("0")
        for name, qty in tickets.items():
            tier = find_tier(tier_rows, name)
            if tier is None:
                raise InvalidSlotError(f"Unknown ticket type '{name}'")
            price = valid_price(tier["price"])
            if price is None:
                raise InvalidPriceError()
            amount += price * qty
        if paid and amount <= 0:
            raise FreeBookingNotSupportedError()

    short = shortfall([row], start_time, end_time, quantity, tickets)
    if short is not None:
        raise StaleAvailabilityError(*short)

    occurrence_id = row.get("occurrence_id")
    if isinstance(occurrence_id, str):
        occurrence_id = UUID(occurrence_id)
    return Selection(
        slot_date=slot_date,
        start_time=start_time,
        end_time=end_time,
        quantity=quantity,
        amount=amount,
        tickets=tickets,
        occurrence_id=occurrence_id,
    )
