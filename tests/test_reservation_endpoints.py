from fastapi.testclient import TestClient

CUSTOMER = {"X-Customer-Id": "42"}


def _hold_payload(start_time: str = "10:00", day: str = "2025-03-10", **overrides):
    payload = {
        "date": day,
        "start_time": start_time,
        "duration_minutes": 60,
        "lesson_type": "driving_lesson",
        "total_price": "650.00",
    }
    payload.update(overrides)
    return payload


def _guest():
    return {"name": "Anna Svensson", "email": "anna@example.com", "phone": "+46701234567"}


def test_create_hold_for_customer(client: TestClient):
    response = client.post("/api/v1/reservations/holds", json=_hold_payload(), headers=CUSTOMER)

    assert response.status_code == 201, response.text
    data = response.json()
    assert data["status"] == "TEMPORARY"
    assert data["payment_status"] == "UNSET"
    assert data["expires_at"].startswith("2025-03-03T08:05:00")


def test_create_hold_for_guest(client: TestClient):
    response = client.post("/api/v1/reservations/holds", json=_hold_payload(guest=_guest()))

    assert response.status_code == 201, response.text


def test_hold_without_customer_or_guest_is_rejected(client: TestClient):
    response = client.post("/api/v1/reservations/holds", json=_hold_payload())

    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_HOLDER"


def test_taken_slot_returns_conflict(client: TestClient):
    first = client.post("/api/v1/reservations/holds", json=_hold_payload(), headers=CUSTOMER)
    assert first.status_code == 201

    second = client.post(
        "/api/v1/reservations/holds", json=_hold_payload(), headers={"X-Customer-Id": "7"}
    )

    assert second.status_code == 409
    data = second.json()
    assert data["code"] == "SLOT_CONFLICT"
    assert data["message"] == "This time was just taken, please choose another"
    assert data["date"] == "2025-03-10"
    assert data["start_time"] == "10:00"


def test_slot_inside_call_window_returns_phone(client: TestClient):
    response = client.post(
        "/api/v1/reservations/holds",
        json=_hold_payload(start_time="09:00", day="2025-03-03"),
        headers=CUSTOMER,
    )

    assert response.status_code == 422
    data = response.json()
    assert data["code"] == "MUST_CALL_WINDOW"
    assert data["call_phone"] == "+46 8 123 45 67"


def test_end_time_before_start_is_validation_error(client: TestClient):
    response = client.post(
        "/api/v1/reservations/holds",
        json=_hold_payload(end_time="09:00"),
        headers=CUSTOMER,
    )

    assert response.status_code == 422


def test_invalid_customer_header(client: TestClient):
    response = client.post(
        "/api/v1/reservations/holds", json=_hold_payload(), headers={"X-Customer-Id": "0"}
    )

    assert response.status_code == 400


def test_confirm_with_swish(client: TestClient):
    hold = client.post("/api/v1/reservations/holds", json=_hold_payload(), headers=CUSTOMER).json()

    response = client.post(
        f"/api/v1/reservations/{hold['reservation_id']}/confirm",
        json={
            "payment_method": "swish",
            "payer": {"name": "Erik Svensson", "email": "erik@example.com"},
        },
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["changed"] is True
    assert data["reservation"]["status"] == "CONFIRMED"
    assert data["reservation"]["payment_status"] == "PENDING"
    assert data["reservation"]["payment_method"] == "swish"


def test_confirm_with_credits(client: TestClient, bundle):
    bundle["credits_ledger"].balances[(42, "driving_lesson")] = 3
    hold = client.post("/api/v1/reservations/holds", json=_hold_payload(), headers=CUSTOMER).json()

    response = client.post(
        f"/api/v1/reservations/{hold['reservation_id']}/confirm",
        json={"payment_method": "credits"},
    )

    assert response.status_code == 200, response.text
    assert response.json()["reservation"]["payment_status"] == "PAID"
    assert bundle["credits_ledger"].balances[(42, "driving_lesson")] == 2


def test_confirm_without_credits(client: TestClient):
    hold = client.post("/api/v1/reservations/holds", json=_hold_payload(), headers=CUSTOMER).json()

    response = client.post(
        f"/api/v1/reservations/{hold['reservation_id']}/confirm",
        json={"payment_method": "credits"},
    )

    assert response.status_code == 422
    assert response.json()["code"] == "INSUFFICIENT_CREDITS"


def test_confirm_with_provider_method_is_rejected(client: TestClient):
    hold = client.post("/api/v1/reservations/holds", json=_hold_payload(), headers=CUSTOMER).json()

    response = client.post(
        f"/api/v1/reservations/{hold['reservation_id']}/confirm",
        json={"payment_method": "qliro"},
    )

    assert response.status_code == 422
    assert response.json()["code"] == "PAYMENT_METHOD_NOT_ALLOWED"


def test_confirm_unknown_reservation(client: TestClient):
    response = client.post("/api/v1/reservations/999/confirm", json={"payment_method": "swish"})

    assert response.status_code == 404
    assert response.json()["code"] == "RESERVATION_NOT_FOUND"


def test_cancel_then_confirm_is_conflict(client: TestClient):
    hold = client.post("/api/v1/reservations/holds", json=_hold_payload(), headers=CUSTOMER).json()
    reservation_id = hold["reservation_id"]

    cancelled = client.post(f"/api/v1/reservations/{reservation_id}/cancel", json={"reason": "sick"})
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "CANCELLED"
    assert cancelled.json()["cancel_reason"] == "sick"

    response = client.post(
        f"/api/v1/reservations/{reservation_id}/confirm", json={"payment_method": "swish"}
    )
    assert response.status_code == 409
    assert response.json()["current_status"] == "CANCELLED"


def test_cancel_without_body(client: TestClient):
    hold = client.post("/api/v1/reservations/holds", json=_hold_payload(), headers=CUSTOMER).json()

    response = client.post(f"/api/v1/reservations/{hold['reservation_id']}/cancel")

    assert response.status_code == 200
    assert response.json()["cancel_reason"] == "cancelled"


def test_availability_shows_held_slot(client: TestClient):
    client.post("/api/v1/reservations/holds", json=_hold_payload(), headers=CUSTOMER)

    response = client.get("/api/v1/availability", params={"dates": "2025-03-10,2025-03-11"})

    assert response.status_code == 200
    slots = response.json()["slots"]
    assert set(slots) == {"2025-03-10", "2025-03-11"}
    ten = next(s for s in slots["2025-03-10"] if s["time"] == "10:00:00")
    assert ten["status"] == "HELD"
    assert ten["clickable"] is False
    assert ten["status_text"] == "Being booked"


def test_availability_sweeps_stale_holds(client: TestClient, clock, bundle):
    hold = client.post("/api/v1/reservations/holds", json=_hold_payload(), headers=CUSTOMER).json()
    clock.advance(minutes=6)

    response = client.get("/api/v1/availability", params={"dates": "2025-03-10"})

    ten = next(s for s in response.json()["slots"]["2025-03-10"] if s["time"] == "10:00:00")
    assert ten["status"] == "AVAILABLE"
    stored = bundle["reservation_repo"].reservations[hold["reservation_id"]]
    assert stored.status.value == "CANCELLED"


def test_availability_rejects_bad_dates(client: TestClient):
    assert client.get("/api/v1/availability", params={"dates": "10/03/2025"}).status_code == 422
    assert client.get("/api/v1/availability", params={"dates": ""}).status_code == 422
    too_many = ",".join(f"2025-04-{day:02d}" for day in range(1, 31)) + ",2025-05-01,2025-05-02"
    assert client.get("/api/v1/availability", params={"dates": too_many}).status_code == 422
