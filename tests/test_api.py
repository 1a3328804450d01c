from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from parkmitra.main import create_app
from parkmitra.utils.clock import utcnow

from helpers import seed_user

SECRET = "api-test-secret"


def token_for(user_id, role="user"):
    return jwt.encode({"sub": str(user_id), "role": role}, SECRET, algorithm="HS256")


def auth(user_id, role="user"):
    return {"Authorization": f"Bearer {token_for(user_id, role)}"}


@pytest.fixture
def client(database):
    app = create_app(db=database, auth_secret=SECRET)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin(admin_id):
    return auth(admin_id, "admin")


@pytest.fixture
def visitor(visitor_id):
    return auth(visitor_id)


@pytest.fixture
def api_lot(client, admin, org_id):
    res = client.post(
        f"/organizations/{org_id}/lots",
        json={"lot_name": "Main Gate", "total_slots": 2, "priority_order": 1},
        headers=admin,
    )
    assert res.status_code == 201
    return res.json()


def window(start_offset_minutes=-1, hours=2):
    start = utcnow() + timedelta(minutes=start_offset_minutes)
    return start, start + timedelta(hours=hours)


def create_booking(client, headers, org_id, start, end, vehicle="KA01AB1234"):
    return client.post(
        "/bookings/",
        json={
            "organization_id": org_id,
            "vehicle_number": vehicle,
            "booking_start_time": start.isoformat(),
            "booking_end_time": end.isoformat(),
        },
        headers=headers,
    )


def test_root(client):
    assert client.get("/").json() == {"message": "Backend running successfully"}


def test_token_is_required(client, org_id):
    res = client.get(f"/organizations/{org_id}/lots")
    assert res.status_code in (401, 403)

    res = client.get(f"/organizations/{org_id}/lots", headers={"Authorization": "Bearer nope"})
    assert res.status_code == 401


def test_only_admins_manage_lots(client, visitor, org_id):
    res = client.post(
        f"/organizations/{org_id}/lots",
        json={"lot_name": "Main Gate", "total_slots": 2},
        headers=visitor,
    )
    assert res.status_code == 403


def test_lot_crud(client, admin, visitor, org_id, api_lot):
    lot_id = api_lot["lot_id"]
    assert api_lot["available_slots"] == 2

    listed = client.get(f"/organizations/{org_id}/lots", headers=visitor).json()
    assert [lot["lot_id"] for lot in listed] == [lot_id]

    res = client.patch(f"/lots/{lot_id}", json={"total_slots": 4}, headers=admin)
    assert res.status_code == 200
    assert res.json()["available_slots"] == 4

    res = client.post(
        f"/organizations/{org_id}/lots",
        json={"lot_name": "Main Gate", "total_slots": 1},
        headers=admin,
    )
    assert res.status_code == 409
    assert res.json() == {
        "success": False,
        "error": "duplicate_lot",
        "detail": "Parking lot with name 'Main Gate' already exists for this organization",
    }

    assert client.delete(f"/lots/{lot_id}", headers=admin).status_code == 200
    assert client.get(f"/lots/{lot_id}/stats", headers=admin).status_code == 404


def test_booking_without_lots(client, visitor, org_id):
    start, end = window(60)
    res = create_booking(client, visitor, org_id, start, end)

    assert res.status_code == 409
    assert res.json()["error"] == "no_lots_configured"


def test_invalid_window(client, visitor, org_id, api_lot):
    start, end = window(60)
    res = create_booking(client, visitor, org_id, end, start)

    assert res.status_code == 400
    assert res.json()["error"] == "invalid_window"


def test_booking_flow(client, visitor, admin, watchman_id, org_id, api_lot):
    start, end = window()
    res = create_booking(client, visitor, org_id, start, end)
    assert res.status_code == 201
    booking = res.json()
    assert booking["booking_status"] == "active"
    assert booking["slot_number"] == "Main-Gate-1"

    booking_id = booking["id"]
    assert client.get(f"/bookings/{booking_id}", headers=visitor).status_code == 200
    assert client.get(f"/bookings/{booking_id}", headers=admin).status_code == 200

    quote = client.post(
        f"/bookings/{booking_id}/check-extension", json={"extension_hours": 1}, headers=visitor
    ).json()
    assert quote["can_extend_same_slot"] is True

    extended = client.post(
        f"/bookings/{booking_id}/extend", json={"extension_hours": 1}, headers=visitor
    ).json()
    assert extended["duration_hours"] == booking["duration_hours"] + 1

    watchman = auth(watchman_id, "watchman")
    assert client.post(f"/bookings/{booking_id}/entry", json={}, headers=visitor).status_code == 403
    entered = client.post(f"/bookings/{booking_id}/entry", json={}, headers=watchman)
    assert entered.status_code == 200
    assert entered.json()["entry_time"] is not None

    exited = client.post(f"/bookings/{booking_id}/exit", json={}, headers=watchman)
    assert exited.status_code == 200
    assert exited.json()["booking_status"] == "completed"

    stats = client.get(f"/lots/{api_lot['lot_id']}/stats", headers=admin).json()
    assert stats["available_slots"] == 2
    assert stats["total_bookings"] == 1


def test_other_users_cannot_touch_a_booking(client, database, visitor, org_id, api_lot):
    stranger = auth(seed_user(database, "stranger@mail.test"))
    start, end = window(60)
    booking_id = create_booking(client, visitor, org_id, start, end).json()["id"]

    assert client.get(f"/bookings/{booking_id}", headers=stranger).status_code == 403
    assert client.post(f"/bookings/{booking_id}/cancel", headers=stranger).status_code == 403

    cancelled = client.post(f"/bookings/{booking_id}/cancel", headers=visitor)
    assert cancelled.json()["booking_status"] == "cancelled"


def test_settle_requires_overstay(client, visitor, org_id, api_lot):
    start, end = window(60)
    booking_id = create_booking(client, visitor, org_id, start, end).json()["id"]

    res = client.post(f"/bookings/{booking_id}/settle-overstay", json={}, headers=visitor)
    assert res.status_code == 400
    assert res.json()["error"] == "not_overstay"


def test_payments_and_revenue(client, visitor, admin, org_id, api_lot):
    start, end = window(60)
    booking = create_booking(client, visitor, org_id, start, end).json()

    res = client.post(
        "/payments",
        json={"booking_id": booking["id"], "amount": booking["amount"], "payment_method": "upi"},
        headers=visitor,
    )
    assert res.status_code == 201
    payment = res.json()
    assert payment["payment_status"] == "pending"

    assert client.post(f"/payments/{payment['id']}/complete", headers=visitor).status_code == 403
    done = client.post(f"/payments/{payment['id']}/complete", headers=admin)
    assert done.json()["payment_status"] == "completed"

    revenue = client.get(f"/organizations/{org_id}/revenue", headers=admin).json()
    assert revenue["booking_revenue"] == booking["amount"]
    assert revenue["completed_payments"] == 1


def test_admin_maintenance_endpoints(client, admin, visitor, org_id, api_lot):
    start, end = window(60)
    create_booking(client, visitor, org_id, start, end)

    assert client.post("/admin/sweep", headers=visitor).status_code == 403

    sweep = client.post("/admin/sweep", headers=admin).json()
    assert sweep == {"activated": 0, "overstayed": 0, "failed": 0}

    assert client.post("/admin/penalties/recalculate", headers=admin).json() == {"updated": 0}

    reconciled = client.post("/admin/reconcile", headers=admin).json()
    assert reconciled == {"lots": {str(api_lot["lot_id"]): 2}}

    availability = client.get(f"/organizations/{org_id}/availability", headers=visitor).json()
    assert availability["available_slots"] == 2


def test_offset_aware_times_are_stored_as_utc(client, visitor, org_id, api_lot):
    start, end = window(60)
    res = client.post(
        "/bookings/",
        json={
            "organization_id": org_id,
            "vehicle_number": "KA01AB1234",
            "booking_start_time": start.isoformat() + "Z",
            "booking_end_time": end.isoformat() + "Z",
        },
        headers=visitor,
    )
    assert res.status_code == 201
    booking = res.json()
    assert booking["booking_status"] == "confirmed"
    assert booking["booking_start_time"] == start.isoformat()

    # Same instant expressed in IST
    ist_start = (start + timedelta(hours=5, minutes=30)).isoformat() + "+05:30"
    ist_end = (end + timedelta(hours=5, minutes=30)).isoformat() + "+05:30"
    res = client.post(
        "/bookings/",
        json={
            "organization_id": org_id,
            "vehicle_number": "DL1CAB5678",
            "booking_start_time": ist_start,
            "booking_end_time": ist_end,
        },
        headers=visitor,
    )
    assert res.status_code == 201
    assert res.json()["booking_start_time"] == start.isoformat()

    res = client.post(
        "/bookings/",
        json={
            "organization_id": org_id,
            "vehicle_number": "MH12CD4321",
            "booking_start_time": end.isoformat() + "Z",
            "booking_end_time": start.isoformat() + "Z",
        },
        headers=visitor,
    )
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_window"


def test_offset_aware_entry_time(client, visitor, watchman_id, org_id, api_lot):
    start, end = window()
    booking_id = create_booking(client, visitor, org_id, start, end).json()["id"]

    watchman = auth(watchman_id, "watchman")
    res = client.post(
        f"/bookings/{booking_id}/entry",
        json={"entry_time": utcnow().isoformat() + "Z"},
        headers=watchman,
    )
    assert res.status_code == 200
    assert res.json()["entry_time"] is not None


def test_blank_vehicle_number_is_rejected(client, visitor, org_id, api_lot):
    start, end = window(60)
    res = create_booking(client, visitor, org_id, start, end, vehicle="   ")

    assert res.status_code == 400
    assert res.json()["error"] == "validation_failed"
