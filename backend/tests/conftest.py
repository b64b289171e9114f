import os
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv
import pytest

# Load environment variables for tests before the app settings are imported
load_dotenv(Path(__file__).resolve().parents[1] / '.env.test')
os.environ.setdefault("PYTEST_RUN", "1")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import weddingbazaar.services  # noqa: E402,F401  installs the immutability guards
from weddingbazaar import models, schemas  # noqa: E402
from weddingbazaar.crud import crud_booking  # noqa: E402
from weddingbazaar.database import enable_sqlite_savepoints  # noqa: E402
from weddingbazaar.models.base import BaseModel, utcnow  # noqa: E402


def setup_db():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    BaseModel.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    return Session()


@pytest.fixture
def db():
    session = setup_db()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_vendor(db):
    counter = {"n": 0}

    def _make(legacy_code=None, profile_id=None, business_name=None):
        counter["n"] += 1
        vendor = models.Vendor(
            business_name=business_name or f"Vendor {counter['n']}",
            legacy_code=legacy_code,
            profile_id=profile_id,
        )
        db.add(vendor)
        db.commit()
        db.refresh(vendor)
        return vendor

    return _make


@pytest.fixture
def make_service(db):
    def _make(vendor, title="Wedding Photography", deleted=False):
        service = models.Service(
            vendor_id=vendor.id,
            title=title,
            base_price=5_000_000,
            currency="PHP",
            deleted_at=utcnow() if deleted else None,
        )
        db.add(service)
        db.commit()
        db.refresh(service)
        return service

    return _make


@pytest.fixture
def vendor(make_vendor):
    return make_vendor(legacy_code="2-2025-001", profile_id="prof-aurora")


@pytest.fixture
def service(make_service, vendor):
    return make_service(vendor)


@pytest.fixture
def make_booking(db, vendor, service):
    def _make(client_id="client-1", event_date=None, vendor_ref=None, service_id=None):
        booking_in = schemas.BookingCreate(
            vendor_ref=vendor_ref or vendor.id,
            service_id=service_id or service.id,
            event_date=event_date or utcnow() + timedelta(days=120),
            location="Tagaytay",
            guest_count=150,
        )
        return crud_booking.create_booking(db, booking_in, client_id=client_id)

    return _make


@pytest.fixture
def booking(make_booking):
    return make_booking()
