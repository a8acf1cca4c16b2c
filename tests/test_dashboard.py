import csv
import io
from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from app.core.errors import EmptyExportError, ErrorCode
from app.utils.dashboard import (
    EXPORT_COLUMNS,
    compute_stats,
    export_csv,
    export_filename,
    export_rows,
    filter_records,
    record_revenue,
    scope_records,
    sort_records,
    ticket_breakdown,
)
from app.utils.records import LedgerRecord

DAY = date(2026, 11, 7)


def attendee(name, email=None, phone=None, checked_in=False, status="confirmed", **kwargs):
    kwargs.setdefault("slot_date", DAY)
    kwargs.setdefault("start_time", "10:00")
    kwargs.setdefault("end_time", "12:00")
    return LedgerRecord(
        id=str(uuid4()), name=name, email=email, phone=phone,
        checked_in=checked_in, status=status, **kwargs,
    )


def tier(name, capacity, price):
    return SimpleNamespace(name=name, capacity=capacity, price=Decimal(price))


@pytest.fixture
def roster():
    return [
        attendee("Asha Rao", "asha@example.com", "98765", checked_in=True, amount=500.0,
                 created_at=datetime(2026, 10, 1, 9, 30)),
        attendee("bob", "Bob@Example.com", None, amount=1500.0, created_at=datetime(2026, 10, 2, 9, 30)),
        attendee("Chen", None, "12345", status="pending", created_at=datetime(2026, 10, 3, 9, 30)),
        attendee(None, "anon@example.com", None, start_time="14:00", end_time="16:00", amount=200.0),
    ]


class TestFilter:
    def test_search_is_trimmed_and_case_insensitive(self, roster):
        names = [r.name for r in filter_records(roster, "  EXAMPLE.com ")]
        assert names == ["Asha Rao", "bob", None]

    def test_search_matches_phone(self, roster):
        assert [r.name for r in filter_records(roster, "123")] == ["Chen"]

    @pytest.mark.parametrize("status,expected", [
        ("all", 4),
        ("checked-in", 1),
        ("not-checked-in", 3),
        ("confirmed", 3),
        ("pending", 1),
    ])
    def test_status_filter(self, roster, status, expected):
        assert len(filter_records(roster, "", status)) == expected

    def test_scope_to_slot(self, roster):
        assert len(scope_records(roster, DAY)) == 4
        assert len(scope_records(roster, DAY, "14:00", "16:00")) == 1
        assert scope_records(roster, date(2026, 11, 8)) == []


class TestSort:
    def test_name_ascending_missing_last(self, roster):
        names = [r.name for r in sort_records(roster, "name", "asc")]
        assert names == ["Asha Rao", "bob", "Chen", None]

    def test_name_descending_missing_still_last(self, roster):
        names = [r.name for r in sort_records(roster, "name", "desc")]
        assert names == ["Chen", "bob", "Asha Rao", None]

    def test_amount_descending(self, roster):
        names = [r.name for r in sort_records(roster, "amount", "desc")]
        assert names == ["bob", "Asha Rao", None, "Chen"]

    def test_date_default_newest_first(self, roster):
        names = [r.name for r in sort_records(roster)]
        assert names == ["Chen", "bob", "Asha Rao", None]

    def test_stable_for_ties(self):
        first = attendee("Same", "a@example.com")
        second = attendee("Same", "b@example.com")
        assert sort_records([first, second], "name", "asc") == [first, second]

    def test_unknown_key(self, roster):
        with pytest.raises(ValueError):
            sort_records(roster, "shoe_size")


class TestStats:
    def test_counts_and_percentage(self, roster):
        stats = compute_stats(roster)
        assert stats["total"] == 4
        assert stats["checked_in"] == 1
        assert stats["pending"] == 3
        assert stats["check_in_percentage"] == 25.0
        assert stats["total_revenue"] == 2200.0

    def test_empty(self):
        stats = compute_stats([])
        assert stats["check_in_percentage"] == 0.0
        assert stats["total_revenue"] == 0

    def test_individual_amount_wins(self):
        rec = attendee("A", amount=1000.0, individual_amount=250.0)
        assert record_revenue(rec) == 250.0

    def test_falls_back_to_tier_prices(self):
        rec = attendee("A", tickets={"VIP": 2, "General": 1})
        tiers = [tier("VIP", 10, "1000.00"), tier("General", 100, "200.00")]
        assert record_revenue(rec, tiers) == 2200.0


class TestBreakdown:
    def test_rows_and_totals(self):
        tiers = [tier("VIP", 10, "1000.00"), tier("General", 100, "200.00")]
        records = [
            attendee("A", tickets={"VIP": 2, "General": 3}),
            attendee("B", tickets={"VIP": 1}),
            attendee("C", tickets={"VIP": 5}, status="cancelled"),
        ]
        breakdown = ticket_breakdown(records, tiers)
        vip, general = breakdown["tiers"]
        assert (vip["sold"], vip["available"], vip["revenue"]) == (3, 7, 3000.0)
        assert vip["percentage"] == 30.0
        assert (general["sold"], general["available"]) == (3, 97)
        assert breakdown["total_sold"] == 6
        assert breakdown["total_capacity"] == 110
        assert breakdown["total_revenue"] == 3600.0
        assert breakdown["available_tickets"] == 104

    def test_oversold_tier_is_capped(self):
        breakdown = ticket_breakdown([attendee("A", tickets={"VIP": 12})], [tier("VIP", 10, "100")])
        row = breakdown["tiers"][0]
        assert row["percentage"] == 100.0
        assert row["available"] == 0


class TestExport:
    def test_one_row_per_filtered_record(self, roster):
        filtered = filter_records(roster, "", "not-checked-in")
        content = export_csv(filtered)
        rows = list(csv.reader(io.StringIO(content)))
        assert rows[0] == EXPORT_COLUMNS
        assert len(rows) == len(filtered) + 1

    def test_every_field_quoted(self, roster):
        content = export_csv(roster[:1])
        header, line = content.strip("\n").split("\n")
        assert header.startswith('"Name","Email"')
        assert all(cell.startswith('"') and cell.endswith('"') for cell in line.split(","))

    def test_row_values(self, roster):
        asha, chen = export_rows([roster[0], roster[2]])
        assert asha["Amount Paid"] == "500.00"
        assert asha["Check-in Status"] == "Checked In"
        assert asha["Booking Date"] == "2026-10-01 09:30"
        assert chen["Amount Paid"] == "N/A"
        assert chen["Email"] == "N/A"
        assert chen["Ticket Type"] == "Standard"

    def test_commas_survive_quoting(self):
        content = export_csv([attendee("Rao, Asha", amount=10.0)])
        rows = list(csv.reader(io.StringIO(content)))
        assert rows[1][0] == "Rao, Asha"

    def test_empty_export_refused(self):
        with pytest.raises(EmptyExportError) as exc_info:
            export_csv([])
        assert exc_info.value.code is ErrorCode.EMPTY_EXPORT

    def test_filename(self):
        assert export_filename("Jazz Night") == "Jazz Night_all_attendees.csv"
        assert export_filename("Jazz Night", "2026-11-07_19-00") == "Jazz Night_2026-11-07_19-00_attendees.csv"
