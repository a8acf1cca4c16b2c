from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from app.utils.availability import (
    compute_occurrence_availability,
    compute_slot_availability,
    compute_tier_availability,
    occupancy_tier,
    tiers_in_scope,
)
from app.utils.records import LedgerRecord

DAY = date(2026, 11, 7)
SLOTS = [
    {"start_time": "10:00", "end_time": "12:00", "capacity": 100},
    {"start_time": "14:00", "end_time": "16:00", "capacity": 5},
]


def record(qty, start="10:00", end="12:00", day=DAY, **kwargs):
    return LedgerRecord(id=str(uuid4()), slot_date=day, start_time=start, end_time=end, quantity=qty, **kwargs)


def tier(name, capacity, price="100", occurrence_id=None):
    return SimpleNamespace(id=uuid4(), name=name, capacity=capacity, price=Decimal(price), occurrence_id=occurrence_id)


class TestOccupancyTier:
    @pytest.mark.parametrize(
        "booked,expected",
        [
            (90, "critical"),
            (75, "limited"),
            (74, "few_left"),
            (50, "few_left"),
            (49, "available"),
            (0, "available"),
            (100, "sold_out"),
        ],
    )
    def test_capacity_100(self, booked, expected):
        assert occupancy_tier(100 - booked, 100) == expected

    def test_zero_capacity_is_sold_out(self):
        assert occupancy_tier(0, 0) == "sold_out"


class TestSlotAvailability:
    def test_subtracts_matching_slot_key_only(self):
        records = [record(3), record(2), record(4, start="14:00", end="16:00"), record(7, day=date(2026, 11, 8))]
        rows = compute_slot_availability(SLOTS, records, DAY)
        assert rows[0]["booked"] == 5
        assert rows[0]["available_capacity"] == 95
        assert rows[1]["available_capacity"] == 1
        assert rows[1]["occupancy"] == "critical"

    def test_time_strings_must_match_exactly(self):
        rows = compute_slot_availability(SLOTS, [record(3, start="10:00", end="12:30")], DAY)
        assert rows[0]["available_capacity"] == 100

    def test_clamped_at_zero_when_overbooked(self):
        rows = compute_slot_availability(SLOTS, [record(4, start="14:00", end="16:00"), record(4, start="14:00", end="16:00")], DAY)
        assert rows[1]["available_capacity"] == 0
        assert rows[1]["booked"] == 8
        assert rows[1]["occupancy"] == "sold_out"

    def test_released_bookings_do_not_hold_capacity(self):
        records = [
            record(10, status="cancelled"),
            record(10, payment_status="refunded"),
            record(10, payment_status="failed"),
            record(1, payment_status="confirmed"),
        ]
        rows = compute_slot_availability(SLOTS, records, DAY)
        assert rows[0]["booked"] == 1

    def test_idempotent(self):
        records = [record(3), record(1, start="14:00", end="16:00")]
        assert compute_slot_availability(SLOTS, records, DAY) == compute_slot_availability(SLOTS, records, DAY)


class TestTierAvailability:
    def test_shared_pool_counts_every_record_of_listing(self):
        vip = tier("VIP", 10)
        records = [
            record(1, tickets={"VIP": 2, "General": 1}),
            record(1, day=date(2026, 11, 8), tickets={"VIP": 3}),
        ]
        rows = compute_tier_availability([vip], records)
        assert rows[0]["sold"] == 5
        assert rows[0]["available_capacity"] == 5

    def test_occurrence_bound_tier_counts_its_slot_only(self):
        occurrence = SimpleNamespace(id=uuid4(), name="Late show", slot_date=DAY, start_time="10:00", end_time="12:00")
        bound = tier("VIP", 10, occurrence_id=occurrence.id)
        records = [
            record(2, tickets={"VIP": 2}),
            record(3, day=date(2026, 11, 8), tickets={"VIP": 3}),
        ]
        rows = compute_tier_availability([bound], records, occurrence)
        assert rows[0]["sold"] == 2

    def test_ticket_type_records_count_against_their_tier(self):
        rows = compute_tier_availability([tier("VIP", 4)], [record(1, ticket_type="VIP"), record(1, ticket_type="General")])
        assert rows[0]["sold"] == 1

    def test_occurrence_totals_sum_tiers(self):
        occurrence = SimpleNamespace(id=uuid4(), name="Opening", slot_date=DAY, start_time="10:00", end_time="12:00")
        tiers = [tier("VIP", 10, "1000"), tier("General", 90, "200")]
        row = compute_occurrence_availability(occurrence, tiers, [record(12, tickets={"VIP": 2, "General": 10})])
        assert row["capacity"] == 100
        assert row["available_capacity"] == 88
        assert [t["available_capacity"] for t in row["tiers"]] == [8, 80]

    def test_session_tiers_replace_shared_pool(self):
        occurrence = SimpleNamespace(id=uuid4())
        shared = tier("GA", 50)
        bound = tier("GA", 20, occurrence_id=occurrence.id)
        assert tiers_in_scope([shared, bound], occurrence) == [bound]
        assert tiers_in_scope([shared, bound], SimpleNamespace(id=uuid4())) == [shared]
