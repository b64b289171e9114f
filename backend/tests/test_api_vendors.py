from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from weddingbazaar.main import app
from weddingbazaar.models import Vendor
from weddingbazaar.models.base import BaseModel
from weddingbazaar.api.dependencies import get_db
from weddingbazaar.database import enable_sqlite_savepoints

API = "/api/v1"
VENDOR = {"X-Actor-Role": "vendor", "X-Actor-Id": "prof-lumen"}
STRANGER = {"X-Actor-Role": "vendor", "X-Actor-Id": "someone-else"}
ADMIN = {"X-Actor-Role": "admin"}


def setup_app():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    BaseModel.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)

    def override_db():
        db = Session()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_db
    return Session


def create_vendor(Session):
    db = Session()
    vendor = Vendor(business_name="Lumen Events", profile_id="prof-lumen")
    db.add(vendor)
    db.commit()
    vendor_id = vendor.id
    db.close()
    return vendor_id


def test_service_quota_blocks_sixth_free_listing():
    Session = setup_app()
    create_vendor(Session)
    client = TestClient(app)

    for i in range(5):
        res = client.post(f"{API}/vendors/prof-lumen/services", json={"title": f"Package {i}", "base_price": "15000"}, headers=VENDOR)
        assert res.status_code == 201, res.text
    assert res.json()["base_price"] == 1_500_000

    quota = client.get(f"{API}/vendors/prof-lumen/service-quota").json()
    assert quota == {
        "allowed": False,
        "tier": "free",
        "max_services": 5,
        "current": 5,
        "remaining": 0,
        "plan_version": "2025-10",
    }

    res = client.post(f"{API}/vendors/prof-lumen/services", json={"title": "Package 6"}, headers=VENDOR)
    assert res.status_code == 403
    body = res.json()["detail"]
    assert body["code"] == "quota_exceeded"
    assert body["field_errors"] == {"tier": "free", "max_services": 5, "current": 5}


def test_upgrade_lifts_the_limit_and_delete_frees_a_slot():
    Session = setup_app()
    create_vendor(Session)
    client = TestClient(app)
    ids = [
        client.post(f"{API}/vendors/prof-lumen/services", json={"title": f"Package {i}"}, headers=VENDOR).json()["id"]
        for i in range(5)
    ]

    res = client.delete(f"{API}/services/{ids[0]}", headers=VENDOR)
    assert res.status_code == 200
    assert res.json()["deleted_at"] is not None
    assert client.get(f"{API}/vendors/prof-lumen/service-quota").json()["remaining"] == 1

    res = client.post(f"{API}/vendors/prof-lumen/subscription", json={"tier": "pro"}, headers=VENDOR)
    assert res.status_code == 403
    res = client.post(f"{API}/vendors/prof-lumen/subscription", json={"tier": "pro"}, headers=ADMIN)
    assert res.status_code == 201
    assert res.json()["status"] == "active"

    quota = client.get(f"{API}/vendors/prof-lumen/service-quota").json()
    assert quota["allowed"] is True
    assert quota["tier"] == "pro"
    assert quota["max_services"] is None
    assert quota["remaining"] is None


def test_other_vendor_cannot_manage_listings():
    Session = setup_app()
    create_vendor(Session)
    client = TestClient(app)
    res = client.post(f"{API}/vendors/prof-lumen/services", json={"title": "Package"}, headers=STRANGER)
    assert res.status_code == 403


def test_link_and_display_reference():
    Session = setup_app()
    vendor_id = create_vendor(Session)
    client = TestClient(app)

    assert client.get(f"{API}/vendors/prof-lumen").json()["display_reference"] == "prof-lumen"
    res = client.post(f"{API}/vendors/{vendor_id}/link", json={"legacy_code": "5-2022-031"}, headers=ADMIN)
    assert res.status_code == 200
    assert res.json()["display_reference"] == "5-2022-031"
    assert client.get(f"{API}/vendors/5-2022-031").json()["id"] == vendor_id
    assert client.get(f"{API}/vendors/9-9999-999").status_code == 404


def test_wallet_is_empty_until_a_booking_completes():
    Session = setup_app()
    vendor_id = create_vendor(Session)
    client = TestClient(app)

    res = client.get(f"{API}/vendors/prof-lumen/wallet", headers=VENDOR)
    assert res.status_code == 200
    body = res.json()
    assert body["vendor_id"] == vendor_id
    assert body["currency"] == "PHP"
    assert body["available_balance"] == 0
    assert body["transactions"] == []

    assert client.get(f"{API}/vendors/prof-lumen/wallet", headers=STRANGER).status_code == 403
    assert client.get(f"{API}/vendors/{vendor_id}/wallet", headers=ADMIN).status_code == 200
