import pytest

OWNER = {"email": "owner@example.com", "password": "supersecret"}
TUESDAY = "2030-01-08"


def _auth(api, creds=OWNER):
    api.post("/users", json=creds)
    res = api.post("/auth/login", data={"username": creds["email"], "password": creds["password"]})
    assert res.status_code == 200
    return {"Authorization": f"Bearer {res.json()['access_token']}"}


@pytest.fixture
def owner(api):
    return _auth(api)


@pytest.fixture
def salon(api, owner):
    shop = api.post(
        "/establishments",
        json={"name": "Barbearia Central", "open_time": "09:00", "close_time": "18:00", "closed_days": [6]},
        headers=owner,
    )
    assert shop.status_code == 201
    shop_id = shop.json()["id"]

    pro = api.post(f"/establishments/{shop_id}/professionals", json={"name": "Pedro"}, headers=owner)
    service = api.post(
        f"/establishments/{shop_id}/services",
        json={"name": "Haircut", "duration_minutes": 30, "price": 40},
        headers=owner,
    )
    lunch = api.post(
        f"/establishments/{shop_id}/breaks",
        json={"name": "Lunch", "start_time": "12:00", "end_time": "13:00", "days_of_week": [0, 1, 2, 3, 4]},
        headers=owner,
    )
    assert pro.status_code == service.status_code == lunch.status_code == 201
    return {
        "shop": shop_id,
        "pro": pro.json()["id"],
        "service": service.json()["id"],
        "lunch": lunch.json()["id"],
    }


def _book(api, salon, starts_at, phone="5511999990000"):
    return api.post(
        f"/establishments/{salon['shop']}/appointments",
        json={
            "professional_id": salon["pro"],
            "service_id": salon["service"],
            "starts_at": starts_at,
            "client": {"name": "Ana", "phone": phone},
        },
    )


def _availability(api, salon, day=TUESDAY):
    res = api.get(
        f"/establishments/{salon['shop']}/professionals/{salon['pro']}/availability",
        params={"service_id": salon["service"], "date": day},
    )
    assert res.status_code == 200
    return res.json()["available_starts"]


def test_health(api):
    assert api.get("/health").json() == {"status": "ok"}


def test_login_rejects_bad_password(api):
    api.post("/users", json=OWNER)
    res = api.post("/auth/login", data={"username": OWNER["email"], "password": "wrong-password"})
    assert res.status_code == 401


def test_me(api, owner):
    res = api.get("/me", headers=owner)
    assert res.json()["email"] == OWNER["email"]


def test_creating_establishment_requires_login(api):
    assert api.post("/establishments", json={"name": "Nope"}).status_code == 401


def test_other_owner_cannot_edit(api, salon):
    intruder = _auth(api, {"email": "other@example.com", "password": "anotherpass"})
    res = api.patch(f"/establishments/{salon['shop']}", json={"name": "Mine"}, headers=intruder)
    assert res.status_code == 403


def test_availability_skips_lunch(api, salon):
    starts = _availability(api, salon)
    assert starts[0] == "09:00"
    assert starts[-1] == "17:30"
    assert "12:00" not in starts and "12:30" not in starts
    assert len(starts) == 16


def test_closed_day_has_no_availability(api, salon):
    assert _availability(api, salon, "2030-01-13") == []


def test_booking_and_conflict_report(api, salon):
    first = _book(api, salon, "2030-01-08T10:00:00")
    assert first.status_code == 201
    assert first.json()["status"] == "confirmed"
    assert "10:00" not in _availability(api, salon)

    clash = _book(api, salon, "2030-01-08T10:00:00", phone="5511988887777")
    assert clash.status_code == 409
    assert clash.json()["detail"]["details"] == {"cause": "appointment", "source_id": first.json()["id"]}

    lunch = _book(api, salon, "2030-01-08T12:00:00")
    assert lunch.status_code == 409
    assert lunch.json()["detail"]["details"] == {"cause": "break", "source_id": salon["lunch"]}

    late = _book(api, salon, "2030-01-08T17:45:00")
    assert late.status_code == 422  # not on the 30 minute grid


def test_booking_reuses_client_by_phone(api, salon, owner):
    a = _book(api, salon, "2030-01-08T09:00:00").json()
    b = _book(api, salon, "2030-01-08T09:30:00").json()
    assert a["client_id"] == b["client_id"]

    listed = api.get(
        f"/establishments/{salon['shop']}/appointments", params={"on_date": TUESDAY}, headers=owner
    ).json()
    assert [x["id"] for x in listed] == [a["id"], b["id"]]


def test_block_shows_in_calendar_and_blocks_booking(api, salon, owner):
    block = api.post(
        f"/establishments/{salon['shop']}/blocks",
        json={"name": "Fumigation", "date": TUESDAY, "start_time": "15:00", "end_time": "16:00",
              "kind": "maintenance"},
        headers=owner,
    )
    assert block.status_code == 201
    assert block.json()["kind"] == "maintenance"

    calendar = api.get(f"/establishments/{salon['shop']}/calendar", params={"date": TUESDAY}).json()
    causes = [(i["cause"], i["source_id"]) for i in calendar["unavailable"]]
    assert causes == [
        ("outside-hours", None),
        ("break", salon["lunch"]),
        ("block", block.json()["id"]),
        ("outside-hours", None),
    ]

    res = _book(api, salon, "2030-01-08T15:30:00")
    assert res.status_code == 409
    assert res.json()["detail"]["details"]["cause"] == "block"

    api.delete(f"/blocks/{block.json()['id']}", headers=owner)
    assert _book(api, salon, "2030-01-08T15:30:00").status_code == 201


def test_reschedule_cancel_complete(api, salon, owner):
    appt = _book(api, salon, "2030-01-08T10:00:00").json()
    moved = api.patch(f"/appointments/{appt['id']}/reschedule", json={"starts_at": "2030-01-08T10:30:00"},
                     headers=owner)
    assert moved.status_code == 200
    assert moved.json()["scheduled_start"] == "2030-01-08T10:30:00"

    done = api.patch(f"/appointments/{appt['id']}/complete", headers=owner)
    assert done.json()["status"] == "completed"
    assert api.patch(f"/appointments/{appt['id']}/cancel", headers=owner).status_code == 409


def test_queue_join_leave_and_renumber(api, salon, owner):
    url = f"/establishments/{salon['shop']}/queue"
    ids = []
    for i in range(4):
        res = api.post(url, json={"service_id": salon["service"],
                                  "client": {"name": f"Walk-in {i}", "phone": f"55119700000{i}"}})
        assert res.status_code == 201
        ids.append(res.json()["id"])

    assert api.delete(f"/queue/{ids[1]}", headers=owner).json()["status"] == "cancelled"
    queue = api.get(url).json()
    assert [(e["id"], e["position"]) for e in queue] == [(ids[0], 1), (ids[2], 2), (ids[3], 3)]

    called = api.patch(f"/queue/{ids[0]}/status", json={"status": "called"}, headers=owner)
    assert called.json()["called_at"] is not None
    illegal = api.patch(f"/queue/{ids[0]}/status", json={"status": "completed"}, headers=owner)
    assert illegal.status_code == 409
    assert illegal.json()["detail"]["details"] == {"current": "called", "requested": "completed"}


def test_queue_status_change_requires_owner(api, salon):
    res = api.post(f"/establishments/{salon['shop']}/queue",
                   json={"service_id": salon["service"], "client": {"name": "Bia", "phone": "5511911112222"}})
    assert api.patch(f"/queue/{res.json()['id']}/status", json={"status": "called"}).status_code == 401


def test_appointment_changes_require_the_owner(api, salon):
    appt = _book(api, salon, "2030-01-08T10:00:00").json()
    reschedule = f"/appointments/{appt['id']}/reschedule"
    cancel = f"/appointments/{appt['id']}/cancel"

    assert api.patch(reschedule, json={"starts_at": "2030-01-08T11:00:00"}).status_code == 401
    assert api.patch(cancel).status_code == 401

    intruder = _auth(api, {"email": "other@example.com", "password": "anotherpass"})
    assert api.patch(reschedule, json={"starts_at": "2030-01-08T11:00:00"}, headers=intruder).status_code == 403
    assert api.patch(cancel, headers=intruder).status_code == 403
    assert "10:00" not in _availability(api, salon)


def test_queue_removal_requires_the_owner(api, salon):
    res = api.post(f"/establishments/{salon['shop']}/queue",
                   json={"service_id": salon["service"], "client": {"name": "Bia", "phone": "5511911112222"}})
    entry = f"/queue/{res.json()['id']}"
    assert api.delete(entry).status_code == 401

    intruder = _auth(api, {"email": "other@example.com", "password": "anotherpass"})
    assert api.delete(entry, headers=intruder).status_code == 403
    assert len(api.get(f"/establishments/{salon['shop']}/queue").json()) == 1


def test_start_with_utc_offset_is_rejected(api, salon, owner):
    assert _book(api, salon, "2030-01-08T10:00:00Z").status_code == 422

    appt = _book(api, salon, "2030-01-08T10:00:00").json()
    res = api.patch(f"/appointments/{appt['id']}/reschedule",
                    json={"starts_at": "2030-01-08T11:00:00+00:00"}, headers=owner)
    assert res.status_code == 422


@pytest.mark.parametrize("hours", [["09:00"], ["18:00", "09:00"], ["09:00", "12:00", "18:00"]])
def test_update_rejects_malformed_weekday_hours(api, salon, owner, hours):
    res = api.patch(f"/establishments/{salon['shop']}", json={"weekday_hours": {"1": hours}}, headers=owner)
    assert res.status_code == 422
    assert len(_availability(api, salon)) == 16


def test_update_applies_weekday_hours(api, salon, owner):
    res = api.patch(f"/establishments/{salon['shop']}",
                    json={"weekday_hours": {"1": ["14:00", "16:00"]}}, headers=owner)
    assert res.status_code == 200
    assert res.json()["weekday_hours"] == {"1": ["14:00", "16:00"]}
    assert _availability(api, salon) == ["14:00", "14:30", "15:00", "15:30"]
