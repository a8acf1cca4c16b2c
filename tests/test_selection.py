from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from app.core.errors import (
    ErrorCode,
    FreeBookingNotSupportedError,
    InvalidPriceError,
    InvalidQuantityError,
    InvalidSlotError,
    StaleAvailabilityError,
)
from app.utils.selection import check_selection, shortfall, valid_price

DAY = date(2026, 11, 7)
FLAT_ROWS = [
    {"start_time": "10:00", "end_time": "12:00", "capacity": 10, "booked": 8, "available_capacity": 2},
    {"start_time": "14:00", "end_time": "16:00", "capacity": 10, "booked": 10, "available_capacity": 0},
]
OCCURRENCE_ID = uuid4()
TIERED_ROWS = [{
    "start_time": "19:00",
    "end_time": "22:00",
    "capacity": 110,
    "available_capacity": 103,
    "occurrence_id": str(OCCURRENCE_ID),
    "tiers": [
        {"name": "VIP", "price": "1000.00", "capacity": 10, "available_capacity": 3},
        {"name": "General", "price": "200.00", "capacity": 100, "available_capacity": 100},
    ],
}]


def flat(quantity, start="10:00", end="12:00", price="500.00"):
    return check_selection(FLAT_ROWS, False, price, DAY, start, end, quantity=quantity)


def tiered(tickets=None, quantity=None, rows=TIERED_ROWS):
    return check_selection(rows, True, None, DAY, "19:00", "22:00", quantity=quantity, tickets=tickets)


class TestFlatSelection:
    def test_valid(self):
        selection = flat(2)
        assert selection.amount == Decimal("1000.00")
        assert selection.tickets == {}
        assert selection.occurrence_id is None

    @pytest.mark.parametrize("quantity", [0, -1, None])
    def test_quantity_checked_first(self, quantity):
        # Quantity wins even when the slot and price are invalid too
        with pytest.raises(InvalidQuantityError):
            flat(quantity, start="08:00", price="-1")

    @pytest.mark.parametrize("price", [None, "-5", "NaN", "Infinity", "abc"])
    def test_invalid_price(self, price):
        with pytest.raises(InvalidPriceError):
            flat(1, start="08:00", price=price)

    def test_free_booking_refused_before_slot_check(self):
        with pytest.raises(FreeBookingNotSupportedError):
            flat(1, start="08:00", price="0")

    def test_unknown_slot(self):
        with pytest.raises(InvalidSlotError):
            flat(1, start="08:00")

    def test_insufficient_capacity(self):
        with pytest.raises(StaleAvailabilityError) as exc_info:
            flat(3)
        assert exc_info.value.code is ErrorCode.INSUFFICIENT_CAPACITY
        assert (exc_info.value.available, exc_info.value.requested) == (2, 3)

    def test_sold_out(self):
        with pytest.raises(StaleAvailabilityError) as exc_info:
            flat(1, start="14:00", end="16:00")
        assert exc_info.value.code is ErrorCode.SLOT_SOLD_OUT


class TestTieredSelection:
    def test_amount_sums_tiers(self):
        selection = tiered({"VIP": 2, "General": 3, "Balcony": 0})
        assert selection.quantity == 5
        assert selection.amount == Decimal("2600.00")
        assert selection.tickets == {"VIP": 2, "General": 3}
        assert selection.occurrence_id == OCCURRENCE_ID

    def test_negative_tier_quantity(self):
        with pytest.raises(InvalidQuantityError):
            tiered({"VIP": -1})

    def test_bare_quantity_needs_single_tier(self):
        with pytest.raises(InvalidSlotError, match="Select a ticket type"):
            tiered(quantity=1)

    def test_bare_quantity_with_single_tier(self):
        rows = [{**TIERED_ROWS[0], "tiers": TIERED_ROWS[0]["tiers"][1:]}]
        selection = tiered(quantity=4, rows=rows)
        assert selection.tickets == {"General": 4}
        assert selection.amount == Decimal("800.00")

    def test_unknown_tier(self):
        with pytest.raises(InvalidSlotError, match="Balcony"):
            tiered({"Balcony": 1})

    def test_tier_over_capacity(self):
        with pytest.raises(StaleAvailabilityError) as exc_info:
            tiered({"VIP": 4, "General": 1})
        assert exc_info.value.code is ErrorCode.INSUFFICIENT_CAPACITY
        assert (exc_info.value.available, exc_info.value.requested) == (3, 4)


def test_shortfall_for_missing_slot():
    assert shortfall(FLAT_ROWS, "08:00", "09:00", 2) == (0, 2)
    assert shortfall(FLAT_ROWS, "10:00", "12:00", 2) is None


def test_valid_price():
    assert valid_price("12.50") == Decimal("12.50")
    assert valid_price(0) == Decimal("0")
    assert valid_price("-0.01") is None
