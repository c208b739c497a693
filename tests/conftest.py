"""
Pytest configuration: in-memory database, fixed clock, recording notifications.

Environment variables are set BEFORE any app import so app.config picks them up.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["PAYSTACK_SECRET_KEY"] = "sk_test_webhook_secret"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

import json
import unittest.mock
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.auth import Principal, get_current_principal
from app.config import SERVICE_TIMEZONE
from app.database import Base, get_db
from app.domain.bookings.router import get_booking_service
from app.domain.bookings.schemas import CreateBookingRequest, ExtraSelection, ServiceSelection
from app.domain.bookings.service import BookingService
from app.domain.payments.reconciler import WebhookReconciler, get_reconciler
from app.main import app
from app.models import Address, Profile, ServiceExtra, ServiceItem
from app.services.notification_service import NotificationDispatcher
from app.webhook_security import create_webhook_signature

# No real emails from any test
global_resend_mock = unittest.mock.patch("resend.Emails.send")
mocked_send = global_resend_mock.start()
mocked_send.return_value = {"id": "test-email-id"}

WEBHOOK_SECRET = "sk_test_webhook_secret"

# Monday 2 June 2025, 09:00 UTC (10:00 in Lagos)
FIXED_NOW = datetime(2025, 6, 2, 9, 0, tzinfo=timezone.utc)

CUSTOMER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_CUSTOMER_ID = "22222222-2222-2222-2222-222222222222"
CLEANER_ID = "33333333-3333-3333-3333-333333333333"
ADMIN_ID = "44444444-4444-4444-4444-444444444444"


def fixed_clock() -> datetime:
    return FIXED_NOW


def slot(hours_from_now: float):
    """(service_date, service_time) that lies ``hours_from_now`` after the fixed clock"""
    local = (FIXED_NOW + timedelta(hours=hours_from_now)).astimezone(ZoneInfo(SERVICE_TIMEZONE))
    return local.date(), local.time().replace(microsecond=0)


class RecordingChannel:
    name = "recording"

    def __init__(self):
        self.events = []

    async def __call__(self, event):
        self.events.append(event)

    def kinds(self):
        return [event.kind for event in self.events]


class ExplodingChannel:
    name = "exploding"

    async def __call__(self, event):
        raise RuntimeError("SMTP relay unreachable")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def catalog(db):
    """Standard Cleaning 2000 with Inside Fridge 250 and Inside Oven 300 as extras"""
    items = {
        "standard": ServiceItem(
            name="Standard Cleaning", base_price=Decimal("2000.00"), max_quantity=5
        ),
        "deep": ServiceItem(name="Deep Cleaning", base_price=Decimal("3500.00")),
        "retired": ServiceItem(
            name="Carpet Shampoo", base_price=Decimal("1500.00"), is_active=False
        ),
        "fridge": ServiceExtra(name="Inside Fridge", price=Decimal("250.00")),
        "oven": ServiceExtra(name="Inside Oven", price=Decimal("300.00")),
        "windows_retired": ServiceExtra(
            name="Window Washing", price=Decimal("400.00"), is_active=False
        ),
    }
    db.add_all(items.values())
    db.commit()
    return {name: row.id for name, row in items.items()}


@pytest.fixture
def customer(db):
    profile = Profile(
        id=CUSTOMER_ID, email="ada@example.com", full_name="Ada Obi", role="customer"
    )
    address = Address(
        user_id=CUSTOMER_ID,
        name="Home",
        address_line_1="12 Admiralty Way",
        city="Lekki",
        state="Lagos",
        postal_code="106104",
        country="Nigeria",
    )
    db.add_all([profile, address])
    db.commit()
    return {"id": CUSTOMER_ID, "address_id": address.id}


@pytest.fixture
def other_customer_address(db):
    address = Address(
        user_id=OTHER_CUSTOMER_ID,
        name="Office",
        type="office",
        address_line_1="5 Broad Street",
        city="Lagos Island",
        state="Lagos",
        postal_code="102273",
        country="Nigeria",
    )
    db.add(address)
    db.commit()
    return address.id


@pytest.fixture
def customer_principal():
    return Principal(user_id=CUSTOMER_ID, role="customer")


@pytest.fixture
def cleaner_principal():
    return Principal(user_id=CLEANER_ID, role="cleaner")


@pytest.fixture
def admin_principal():
    return Principal(user_id=ADMIN_ID, role="admin")


@pytest.fixture
def recorder():
    return RecordingChannel()


@pytest.fixture
def dispatcher(recorder):
    return NotificationDispatcher([recorder])


@pytest.fixture
def booking_service(db, dispatcher):
    return BookingService(db, dispatcher, clock=fixed_clock)


@pytest.fixture
def reconciler(db, dispatcher):
    return WebhookReconciler(db, dispatcher, clock=fixed_clock, secret=WEBHOOK_SECRET)


@pytest.fixture
def make_booking(booking_service, catalog, customer, customer_principal):
    """Create a booking (standard ×1 + fridge ×2 = 2500.00) some hours ahead"""

    async def _make(hours_ahead: float = 72, services=None, extras=None):
        service_date, service_time = slot(hours_ahead)
        request = CreateBookingRequest(
            services=services or [ServiceSelection(service_item_id=catalog["standard"])],
            extras=(
                extras
                if extras is not None
                else [ExtraSelection(service_extra_id=catalog["fridge"], quantity=2)]
            ),
            service_date=service_date,
            service_time=service_time,
            address_id=customer["address_id"],
        )
        return await booking_service.create_booking(request, customer_principal)

    return _make


def charge_event(event: str, transaction_id, reference: str, amount: int, **data) -> bytes:
    payload = {
        "event": event,
        "data": {
            "id": transaction_id,
            "reference": reference,
            "amount": amount,
            "currency": data.pop("currency", "NGN"),
            "status": "success" if event == "charge.success" else "failed",
            **data,
        },
    }
    return json.dumps(payload).encode("utf-8")


def sign(body: bytes) -> str:
    return create_webhook_signature(WEBHOOK_SECRET, body)


def booking_payload(catalog, customer, hours_ahead=72, **overrides) -> dict:
    """JSON body for POST /bookings: standard ×1 + fridge ×2"""
    service_date, service_time = slot(hours_ahead)
    payload = {
        "services": [{"service_item_id": catalog["standard"], "quantity": 1}],
        "extras": [{"service_extra_id": catalog["fridge"], "quantity": 2}],
        "service_date": service_date.isoformat(),
        "service_time": service_time.isoformat(),
        "address_id": customer["address_id"],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def acting_as():
    """Mutable holder for the principal the test client authenticates as"""
    return {"principal": Principal(user_id=CUSTOMER_ID, role="customer")}


@pytest.fixture
def client(engine, dispatcher, acting_as):
    """TestClient on the test database, with a fixed clock and recorded notifications"""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    async def override_principal():
        return acting_as["principal"]

    def override_booking_service(db: Session = Depends(get_db)):
        return BookingService(db, dispatcher, clock=fixed_clock)

    def override_reconciler(db: Session = Depends(get_db)):
        return WebhookReconciler(db, dispatcher, clock=fixed_clock, secret=WEBHOOK_SECRET)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_principal] = override_principal
    app.dependency_overrides[get_booking_service] = override_booking_service
    app.dependency_overrides[get_reconciler] = override_reconciler

    yield TestClient(app)

    app.dependency_overrides.clear()
