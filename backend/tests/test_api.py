import pytest

ALL_WEEK = [0, 1, 2, 3, 4, 5, 6]

# 2030-06-02 09:00 civil time (standard offset +10:00)
SLOT_START = "2030-06-01T23:00:00.000Z"
SLOT_END = "2030-06-01T23:30:00.000Z"


def _headers(user_id, role):
    return {"X-User-Id": str(user_id), "X-User-Role": role}


@pytest.fixture
def ids(admin, make_client, make_locations):
    client = make_client(balance=0)
    other = make_client(balance=0, first_name="Other")
    courts = make_locations(2)
    return {
        "admin": admin.id,
        "client": client.id,
        "other": other.id,
        "courts": [court.id for court in courts],
    }


@pytest.fixture
def as_admin(ids):
    return _headers(ids["admin"], "admin")


@pytest.fixture
def as_client(ids):
    return _headers(ids["client"], "client")


def _publish_bulk(client, headers, court_ids, **overrides):
    body = {
        "start_date": "2030-06-02",
        "end_date": "2030-06-03",
        "weekdays": ALL_WEEK,
        "start_time": "09:00",
        "end_time": "10:00",
        "location_ids": court_ids,
        "service_name": "Stroke Clinic",
    }
    body.update(overrides)
    return client.post("/availabilities/bulk", json=body, headers=headers)


def _deposit(client, headers, user_id, amount):
    return client.post(f"/wallets/{user_id}/deposit", json={"amount": amount}, headers=headers)


def _book(client, headers, user_id, court_id, start=SLOT_START, end=SLOT_END):
    body = {
        "client_id": user_id,
        "ranges": [{"location_id": court_id, "start_time": start, "end_time": end}],
    }
    return client.post("/bookings/", json=body, headers=headers)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "redis": True}


def test_missing_identity_headers(client):
    assert client.get("/bookings/").status_code == 422


def test_unknown_role_forbidden(client, ids):
    resp = client.get("/bookings/", headers=_headers(ids["client"], "superuser"))
    assert resp.status_code == 403


def test_location_writes_require_admin(client, as_admin, as_client):
    assert client.post("/locations/", json={"name": "Centre Court"}, headers=as_client).status_code == 403

    resp = client.post("/locations/", json={"name": "Centre Court"}, headers=as_admin)
    assert resp.status_code == 201
    location_id = resp.json()["id"]

    assert client.delete(f"/locations/{location_id}", headers=as_admin).status_code == 204
    names = [loc["name"] for loc in client.get("/locations/").json()]
    assert "Centre Court" not in names


def test_bulk_create_and_day_view(client, ids, as_admin):
    resp = _publish_bulk(client, as_admin, ids["courts"])
    assert resp.status_code == 201
    assert resp.json()["created"] == 2 * 2 * 2

    resp = client.get("/availabilities/day", params={"date": "2030-06-02"})
    assert resp.status_code == 200
    slots = resp.json()["slots"]
    assert len(slots) == 4
    assert slots[0]["start_time"] == SLOT_START
    assert slots[0]["civil_time"] == "09:00"
    assert {slot["status"] for slot in slots} == {"open"}


def test_bulk_without_weekdays_produces_nothing(client, ids, as_admin):
    resp = _publish_bulk(client, as_admin, ids["courts"], weekdays=[])
    assert resp.status_code == 422
    assert resp.json()["code"] == "no_slots_produced"


def test_bulk_with_unknown_location(client, as_admin):
    resp = _publish_bulk(client, as_admin, [999])
    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_error"


def test_bulk_requires_admin(client, ids, as_client):
    assert _publish_bulk(client, as_client, ids["courts"]).status_code == 403


def test_booking_flow(client, ids, as_admin, as_client):
    court = ids["courts"][0]
    _publish_bulk(client, as_admin, [court])
    assert _deposit(client, as_admin, ids["client"], 500).status_code == 200

    resp = _book(client, as_client, ids["client"], court)
    assert resp.status_code == 201
    body = resp.json()
    assert body["created"] == 1
    assert body["total_charged"] == pytest.approx(99.99)

    wallet = client.get(f"/wallets/{ids['client']}", headers=as_client).json()
    assert wallet["balance"] == pytest.approx(400.01)
    assert wallet["version"] == 2

    history = client.get(f"/wallets/{ids['client']}/transactions", headers=as_client).json()
    assert [tx["type"] for tx in history] == ["payment", "deposit"]

    status = client.get("/availabilities/status", params={"start": SLOT_START, "location_id": court}).json()
    assert status["status"] == "partial"
    assert status["booked_count"] == 1

    mine = client.get("/bookings/", headers=as_client).json()
    assert [b["id"] for b in mine] == body["booking_ids"]


def test_booking_full_slot_returns_conflict(client, ids, as_admin):
    court = ids["courts"][0]
    _publish_bulk(client, as_admin, [court], capacity=1)
    for user in ("client", "other"):
        _deposit(client, as_admin, ids[user], 500)

    assert _book(client, _headers(ids["client"], "client"), ids["client"], court).status_code == 201

    resp = _book(client, _headers(ids["other"], "client"), ids["other"], court)
    assert resp.status_code == 409
    assert resp.json()["failures"][0]["code"] == "slot_unavailable"

    wallet = client.get(f"/wallets/{ids['other']}", headers=as_admin).json()
    assert wallet["balance"] == pytest.approx(500)


def test_booking_insufficient_balance(client, ids, as_admin, as_client):
    court = ids["courts"][0]
    _publish_bulk(client, as_admin, [court])
    _deposit(client, as_admin, ids["client"], 10)

    resp = _book(client, as_client, ids["client"], court)
    assert resp.status_code == 402
    assert resp.json()["failures"][0]["code"] == "insufficient_balance"


def test_client_cannot_book_for_others(client, ids, as_admin, as_client):
    court = ids["courts"][0]
    _publish_bulk(client, as_admin, [court])

    resp = _book(client, as_client, ids["other"], court)
    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_error"


def test_bookings_cannot_be_patched_or_deleted(client, as_client):
    assert client.patch("/bookings/1", headers=as_client).status_code == 405
    assert client.delete("/bookings/1", headers=as_client).status_code == 405


def test_wallet_privacy_and_deposit_rights(client, ids, as_client):
    assert client.get(f"/wallets/{ids['other']}", headers=as_client).status_code == 403
    assert _deposit(client, as_client, ids["client"], 100).status_code == 403
    assert client.get("/wallets/999", headers=_headers(ids["admin"], "admin")).status_code == 404


def test_delete_slot_skips_booked_location(client, ids, as_admin, as_client):
    court_a, court_b = ids["courts"]
    resp = client.post(
        "/availabilities/",
        json={"date": "2030-06-02", "start_time": "09:00", "location_ids": [court_a, court_b]},
        headers=as_admin,
    )
    assert resp.status_code == 201
    rows = resp.json()
    assert len(rows) == 2

    _deposit(client, as_admin, ids["client"], 500)
    assert _book(client, as_client, ids["client"], court_b).status_code == 201

    resp = client.delete(f"/availabilities/{rows[0]['id']}", headers=as_admin)
    assert resp.status_code == 200
    assert resp.json()["removed_ids"] == [rows[0]["id"]]
    assert resp.json()["skipped_ids"] == [rows[1]["id"]]


def test_patch_availability(client, ids, as_admin):
    resp = _publish_bulk(client, as_admin, ids["courts"], end_date="2030-06-02", end_time="09:30")
    first_id = resp.json()["availability_ids"][0]

    resp = client.patch(f"/availabilities/{first_id}", json={"service_name": "Boot Camp"}, headers=as_admin)
    assert resp.status_code == 200
    assert len(resp.json()["updated_ids"]) == 2

    resp = client.patch(f"/availabilities/{first_id}", json={"max_capacity": 3}, headers=as_admin)
    assert resp.status_code == 422


def test_delete_batch(client, ids, as_admin):
    batch_id = _publish_bulk(client, as_admin, ids["courts"]).json()["batch_id"]

    resp = client.delete(f"/availabilities/batch/{batch_id}", headers=as_admin)
    assert resp.status_code == 200
    assert resp.json()["removed"] == 8

    assert client.delete(f"/availabilities/batch/{batch_id}", headers=as_admin).status_code == 404
