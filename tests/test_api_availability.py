from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.middleware.rate_limit_middleware import RateLimitMiddleware

DAY_URL = "/api/v1/availability/day"
PUBLIC_DAY_URL = "/api/v1/public/availability/day"


def book(client, owner, start="09:00", end="10:00"):
    response = client.post("/api/v1/bookings", json={
        "ownerId": str(owner.id),
        "date": "2025-02-10",
        "startTime": start,
        "endTime": end,
        "clientName": "Jane Doe",
        "clientEmail": "jane@mail.com",
    })
    assert response.status_code == 200, response.text
    return response.json()["booking"]


def test_health(client):
    response = client.get("/health/")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Correlation-ID"]


def test_day_view_needs_token_or_owner(client, owner):
    response = client.get(DAY_URL, params={"date": "2025-02-10"})

    assert response.status_code == 401
    assert response.json()["error"] == "unauthorized"


def test_owner_sees_booking_details(client, owner, owner_headers):
    book(client, owner)

    response = client.get(DAY_URL, params={"date": "2025-02-10"}, headers=owner_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["isWorkingDay"] is True
    first = body["timeSlots"][0]
    assert first["id"] == "2025-02-10_09:00_10:00"
    assert first["isBooked"] is True
    assert first["bookingDetails"]["clientName"] == "Jane Doe"


def test_anonymous_and_other_owners_get_public_view(client, owner, other_headers):
    book(client, owner)

    for headers in ({}, other_headers):
        response = client.get(DAY_URL, params={"date": "2025-02-10", "ownerId": str(owner.id)}, headers=headers)
        assert response.status_code == 200
        slots = response.json()["timeSlots"]
        assert slots[0]["isBooked"] is True
        assert all("bookingDetails" not in s for s in slots)

    public = client.get(PUBLIC_DAY_URL, params={"date": "2025-02-10", "ownerId": str(owner.id)})
    assert public.status_code == 200
    assert all("bookingDetails" not in s for s in public.json()["timeSlots"])


def test_unknown_owner_is_404(client):
    response = client.get(PUBLIC_DAY_URL, params={"date": "2025-02-10", "ownerId": "9b2f5a2e-0d8e-4c55-9a43-8d1c1f0e6f00"})

    assert response.status_code == 404


def test_bad_date_is_400(client, owner):
    response = client.get(PUBLIC_DAY_URL, params={"date": "10/02/2025", "ownerId": str(owner.id)})

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


def test_invalid_token_is_401(client, owner):
    response = client.get(DAY_URL, params={"date": "2025-02-10"}, headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401


def test_working_hours_round_trip(client, owner_headers):
    response = client.put("/api/v1/availability/working-hours", headers=owner_headers, json={
        "workingHours": [
            {"dayOfWeek": 1, "startTime": "08:00", "endTime": "12:00", "isWorking": True},
            {"dayOfWeek": 2, "startTime": "13:00", "endTime": "15:00", "isWorking": True},
        ]
    })
    assert response.status_code == 200, response.text

    listed = client.get("/api/v1/availability/working-hours", headers=owner_headers).json()["workingHours"]
    assert [(r["dayOfWeek"], r["startTime"], r["endTime"]) for r in listed] == [
        (1, "08:00", "12:00"), (2, "13:00", "15:00"),
    ]

    day = client.get(DAY_URL, params={"date": "2025-02-10"}, headers=owner_headers).json()
    assert [s["startTime"] for s in day["timeSlots"]] == ["08:00", "09:00", "10:00", "11:00"]


def test_working_hours_reject_duplicate_days(client, owner_headers):
    rule = {"dayOfWeek": 1, "startTime": "08:00", "endTime": "12:00", "isWorking": True}

    response = client.put("/api/v1/availability/working-hours", headers=owner_headers,
                          json={"workingHours": [rule, rule]})

    assert response.status_code == 400


def test_working_hours_require_auth(client):
    assert client.get("/api/v1/availability/working-hours").status_code == 401


def test_settings_update(client, owner_headers):
    response = client.put("/api/v1/availability/settings", headers=owner_headers, json={
        "slotDurationMinutes": 30, "breakDurationMinutes": 15, "advanceBookingDays": 60, "timeFormat12h": True,
    })

    assert response.status_code == 200
    assert response.json() == {
        "slotDurationMinutes": 30, "breakDurationMinutes": 15, "advanceBookingDays": 60, "timeFormat12h": True,
    }
    bad = client.put("/api/v1/availability/settings", headers=owner_headers, json={"slotDurationMinutes": 0})
    assert bad.status_code == 400


def test_exception_and_reset(client, owner_headers):
    response = client.put("/api/v1/availability/exceptions/2025-02-10", headers=owner_headers,
                          json={"isAvailable": False, "reason": "Holiday"})
    assert response.status_code == 200

    day = client.get(DAY_URL, params={"date": "2025-02-10"}, headers=owner_headers).json()
    assert day == {"date": "2025-02-10", "isWorkingDay": False, "timeSlots": []}

    reset = client.delete("/api/v1/availability/exceptions/2025-02-10", headers=owner_headers)
    assert reset.json() == {"date": "2025-02-10", "exceptionRemoved": True, "timeSlotsRemoved": 0}

    day = client.get(DAY_URL, params={"date": "2025-02-10"}, headers=owner_headers).json()
    assert len(day["timeSlots"]) == 8


def test_time_slot_toggle_and_replace(client, owner, owner_headers):
    toggled = client.put("/api/v1/availability/time-slots", headers=owner_headers, json={
        "date": "2025-02-15", "startTime": "10:00", "endTime": "11:00", "isAvailable": True,
    })
    assert toggled.status_code == 200
    assert toggled.json()["isBooked"] is False

    overlap = client.post("/api/v1/availability/time-slots", headers=owner_headers, json={
        "date": "2025-02-15",
        "timeSlots": [
            {"startTime": "10:00", "endTime": "11:00"},
            {"startTime": "10:30", "endTime": "11:30"},
        ],
    })
    assert overlap.status_code == 400

    book(client, owner)
    closing = client.put("/api/v1/availability/time-slots", headers=owner_headers, json={
        "date": "2025-02-10", "startTime": "09:00", "endTime": "10:00", "isAvailable": False,
    })
    assert closing.status_code == 409

    listed = client.get("/api/v1/availability/time-slots", headers=owner_headers, params={"date": "2025-02-15"})
    assert [s["startTime"] for s in listed.json()["timeSlots"]] == ["10:00"]


def test_days_summary(client, owner, owner_headers):
    book(client, owner)

    response = client.get("/api/v1/availability/days", headers=owner_headers,
                          params={"startDate": "2025-02-10", "endDate": "2025-02-11"})

    assert response.status_code == 200
    days = response.json()["days"]
    assert [(d["date"], d["bookedSlots"], d["availableSlots"]) for d in days] == [
        ("2025-02-10", 1, 7), ("2025-02-11", 0, 8),
    ]


def test_public_routes_are_rate_limited():
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, requests_per_second=2)

    @app.get("/api/v1/public/ping")
    def ping():
        return {"ok": True}

    @app.get("/api/v1/availability/working-hours")
    def owner_route():
        return {"ok": True}

    client = TestClient(app)

    statuses = [client.get("/api/v1/public/ping").status_code for _ in range(3)]
    assert statuses == [200, 200, 429]
    limited = client.get("/api/v1/public/ping")
    assert limited.headers["Retry-After"] == "1"
    assert limited.json()["error"] == "rate_limited"

    # Owner routes are not limited
    assert all(client.get("/api/v1/availability/working-hours").status_code == 200 for _ in range(5))


def test_idle_clients_are_forgotten():
    limiter = RateLimitMiddleware(FastAPI(), requests_per_second=2)

    for n in range(50):
        assert limiter.allow(f"10.0.0.{n}", 100.0)
    assert len(limiter.request_times) == 50

    # Any request after the window closes sweeps the idle clients
    assert limiter.allow("10.0.1.1", 101.5)
    assert list(limiter.request_times) == ["10.0.1.1"]


def test_client_within_window_is_kept_and_limited():
    limiter = RateLimitMiddleware(FastAPI(), requests_per_second=2)

    assert limiter.allow("10.0.0.1", 100.0)
    assert limiter.allow("10.0.0.1", 100.4)
    assert limiter.allow("10.0.0.2", 100.9)
    assert not limiter.allow("10.0.0.1", 100.9)

    # 10.0.0.1 last hit at 100.4, still inside the window at 101.2
    assert limiter.allow("10.0.0.3", 101.2)
    assert set(limiter.request_times) == {"10.0.0.1", "10.0.0.2", "10.0.0.3"}
    assert limiter.allow("10.0.0.1", 101.2)
    assert list(limiter.request_times["10.0.0.1"]) == [100.4, 101.2]
