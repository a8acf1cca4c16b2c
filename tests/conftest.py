# tests/conftest.py

import os

# Settings are read at import time; keep the app off Postgres
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.api import deps
from app.db.session import get_db
from app.db.base import Base
from app.core.errors import GatewayError
from app.models.listing import Listing, ListingKind, CatalogMode
from app.models.occurrence import Occurrence, TicketTier
from app.services.payment_gateway import GatewayOrder, PaymentGateway, to_minor_units

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ORGANIZER = "organizer-1"
BUYER = "buyer-1"
SLOT_DATE = date.today() + timedelta(days=7)
EVERY_DAY = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


# --- Fake payment gateway ---
def sign(order_id: str, payment_id: str) -> str:
    return f"sig:{order_id}:{payment_id}"


class FakeGateway(PaymentGateway):
    key_id = "rzp_test_key"

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.orders = []

    def create_order(self, amount, currency, receipt, notes=None):
        if self.fail:
            raise GatewayError("Failed to create payment order")
        order = GatewayOrder(
            order_id=f"order_{len(self.orders) + 1}",
            amount_minor=to_minor_units(amount),
            currency=currency,
            receipt=receipt,
        )
        self.orders.append(order)
        return order

    def verify_signature(self, order_id, payment_id, signature):
        return signature == sign(order_id, payment_id)


# --- Database ---
@pytest.fixture(scope="function")
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def gateway():
    return FakeGateway()


# --- Catalog factories ---
def make_recurring_listing(db, capacity=10, price="500.00", owner=ORGANIZER, closed_dates=None, title="Pottery Workshop"):
    slots = [
        {"start_time": "10:00", "end_time": "12:00", "capacity": capacity},
        {"start_time": "14:00", "end_time": "16:00", "capacity": capacity},
    ]
    listing = Listing(
        kind=ListingKind.activity,
        mode=CatalogMode.recurring,
        title=title,
        price=Decimal(price) if price is not None else None,
        currency="INR",
        weekly_schedule={day: {"is_open": True, "slots": slots} for day in EVERY_DAY},
        closed_dates=closed_dates or [],
        status="active",
        created_by=owner,
        ledger_version=0,
    )
    db.add(listing)
    db.commit()
    db.refresh(listing)
    return listing


def make_fixed_listing(db, tiers=(("VIP", 10, "1000.00"), ("General", 100, "200.00")), owner=ORGANIZER, title="Jazz Night"):
    listing = Listing(
        kind=ListingKind.event,
        mode=CatalogMode.fixed,
        title=title,
        currency="INR",
        status="active",
        created_by=owner,
        ledger_version=0,
    )
    listing.occurrences.append(
        Occurrence(name="Opening Night", slot_date=SLOT_DATE, start_time="19:00", end_time="22:00", available=True)
    )
    for name, capacity, price in tiers:
        listing.tiers.append(TicketTier(name=name, capacity=capacity, price=Decimal(price)))
    db.add(listing)
    db.commit()
    db.refresh(listing)
    return listing


# --- Test Client Fixtures ---
def override_get_current_user(request: Request) -> str:
    """Tests pick the caller with an X-User header."""
    return request.headers.get("X-User", BUYER)


@pytest.fixture(scope="function")
def client(db_session, gateway):
    """
    TestClient backed by the in-memory database, a fake gateway and header-based users.
    Not entered as a context manager, so the Postgres bootstrap lifespan never runs.
    """
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[deps.get_current_user] = override_get_current_user
    app.dependency_overrides[deps.get_payment_gateway] = lambda: gateway

    yield TestClient(app)

    app.dependency_overrides.clear()


# --- Ledger factories ---
def book(db, gateway, listing, buyer=BUYER, payment_id=None, name=None, email=None, phone=None, **selection):
    """Run one booking attempt through create and confirm; returns the booking."""
    from app.services.booking_orchestrator import BookingOrchestrator

    orchestrator = BookingOrchestrator(db, gateway)
    if listing.mode == CatalogMode.fixed:
        selection.setdefault("start_time", "19:00")
        selection.setdefault("end_time", "22:00")
    else:
        selection.setdefault("start_time", "10:00")
        selection.setdefault("end_time", "12:00")
        selection.setdefault("quantity", 1)
    order = orchestrator.create_order(
        listing.id, buyer, selection.pop("slot_date", SLOT_DATE),
        name=name, email=email, phone=phone, **selection,
    )
    payment_id = payment_id or f"pay_{order.gateway_order_id}"
    return orchestrator.confirm(order.id, buyer, payment_id, sign(order.gateway_order_id, payment_id))
