"""
End-to-end API tests - signup/login/logout/profile, bookTicket, booking history,
booking lookup and health, through the full FastAPI stack.

httpx AsyncClient with ASGITransport; SQLite per test (see conftest.py).
"""
from __future__ import annotations

import pytest
from httpx import AsyncClient

from payloads import SIGNUP_PAYLOAD, booking_payload


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Test Group 1: auth
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_signup_returns_user_and_token(client: AsyncClient) -> None:
    response = await client.post("/api/auth/signup", json=SIGNUP_PAYLOAD)
    assert response.status_code == 201, response.text
    body = response.json()

    assert body["status"] == "success"
    user = body["data"]["user"]
    assert user["email"] == "asha@example.com"
    assert user["name"] == "Asha Rao"
    assert "password" not in user and "password_hash" not in user
    assert body["data"]["token"]


@pytest.mark.asyncio
async def test_signup_then_login_gives_usable_session(client: AsyncClient, signed_up) -> None:
    response = await client.post(
        "/api/auth/login",
        json={"email": SIGNUP_PAYLOAD["email"], "password": SIGNUP_PAYLOAD["password"]},
    )
    assert response.status_code == 200, response.text
    token = response.json()["data"]["token"]

    profile = await client.get("/api/auth/profile", headers=_auth(token))
    assert profile.status_code == 200
    assert profile.json()["data"]["user"]["id"] == signed_up[0]["id"]


@pytest.mark.asyncio
async def test_duplicate_email_is_conflict_case_insensitive(client: AsyncClient, signed_up) -> None:
    response = await client.post(
        "/api/auth/signup",
        json={**SIGNUP_PAYLOAD, "email": "ASHA@Example.com"},
    )
    assert response.status_code == 409
    body = response.json()
    assert body["status"] == "error"
    assert body["error"]["code"] == "CONFLICT"


@pytest.mark.asyncio
async def test_login_email_is_case_insensitive(client: AsyncClient, signed_up) -> None:
    response = await client.post(
        "/api/auth/login",
        json={"email": " Asha@Example.COM ", "password": SIGNUP_PAYLOAD["password"]},
    )
    assert response.status_code == 200


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "field, value",
    [("email", "not-an-email"), ("password", "123"), ("name", "")],
)
async def test_signup_validation_errors(client: AsyncClient, field: str, value: str) -> None:
    response = await client.post("/api/auth/signup", json={**SIGNUP_PAYLOAD, field: value})
    assert response.status_code == 400
    body = response.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert field in {d["field"] for d in body["error"]["details"]}


@pytest.mark.asyncio
async def test_login_with_wrong_password_is_401(client: AsyncClient, signed_up) -> None:
    response = await client.post(
        "/api/auth/login",
        json={"email": SIGNUP_PAYLOAD["email"], "password": "wrong-password"},
    )
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_login_unknown_email_is_401(client: AsyncClient) -> None:
    response = await client.post(
        "/api/auth/login",
        json={"email": "nobody@example.com", "password": "whatever"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_logout_revokes_token(client: AsyncClient, signed_up) -> None:
    _, token = signed_up
    response = await client.post("/api/auth/logout", headers=_auth(token))
    assert response.status_code == 200

    again = await client.get("/api/auth/profile", headers=_auth(token))
    assert again.status_code == 401
    assert again.json()["error"]["code"] == "UNAUTHORIZED"


@pytest.mark.asyncio
async def test_profile_without_token_is_401(client: AsyncClient) -> None:
    response = await client.get("/api/auth/profile")
    assert response.status_code == 401
    assert "No token provided" in response.json()["message"]


@pytest.mark.asyncio
async def test_profile_accepts_bare_token(client: AsyncClient, signed_up) -> None:
    _, token = signed_up
    response = await client.get("/api/auth/profile", headers={"Authorization": token})
    assert response.status_code == 200


# ---------------------------------------------------------------------------
# Test Group 2: bookTicket
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_book_ticket_and_fetch_by_id(client: AsyncClient, signed_up) -> None:
    user, token = signed_up
    response = await client.post("/api/bookTicket", json=booking_payload(), headers=_auth(token))
    assert response.status_code == 201, response.text
    booking_id = response.json()["bookingId"]

    fetched = await client.get(f"/api/getBooking/{booking_id}")
    assert fetched.status_code == 200
    booking = fetched.json()["data"]
    assert booking["bookingId"] == booking_id
    assert booking["userDetails"]["email"] == user["email"]
    assert booking["selectedSeats"] == ["A1", "A2"]


@pytest.mark.asyncio
async def test_book_ticket_ignores_client_supplied_email(client: AsyncClient, signed_up) -> None:
    _, token = signed_up
    payload = booking_payload(passengerDetails={"name": "Ravi", "email": "ravi@example.com"})
    response = await client.post("/api/bookTicket", json=payload, headers=_auth(token))
    booking_id = response.json()["bookingId"]

    booking = (await client.get(f"/api/getBooking/{booking_id}")).json()["data"]
    assert booking["userDetails"]["email"] == "asha@example.com"
    assert booking["userDetails"]["name"] == "Ravi"


@pytest.mark.asyncio
async def test_book_ticket_requires_token(client: AsyncClient) -> None:
    response = await client.post("/api/bookTicket", json=booking_payload())
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_book_ticket_with_unknown_token_is_401(client: AsyncClient) -> None:
    response = await client.post(
        "/api/bookTicket", json=booking_payload(), headers=_auth("never-issued")
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_book_ticket_empty_seats_is_400(client: AsyncClient, signed_up) -> None:
    _, token = signed_up
    response = await client.post(
        "/api/bookTicket", json=booking_payload(selectedSeats=[]), headers=_auth(token)
    )
    assert response.status_code == 400
    body = response.json()
    assert body["status"] == "error"
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert "Selected seats" in body["message"]


@pytest.mark.asyncio
async def test_book_ticket_rejects_non_object_body(client: AsyncClient, signed_up) -> None:
    _, token = signed_up
    response = await client.post("/api/bookTicket", json=["A1"], headers=_auth(token))
    assert response.status_code == 400


def test_create_app_uses_injected_empty_session_store(app, database, sessions) -> None:
    assert len(sessions) == 0
    assert app.state.sessions is sessions
    assert app.state.database is database


@pytest.mark.asyncio
async def test_book_ticket_for_deleted_user_is_404(client: AsyncClient, sessions) -> None:
    token = sessions.create("user-that-was-never-stored", "ghost@example.com")
    response = await client.post("/api/bookTicket", json=booking_payload(), headers=_auth(token))
    assert response.status_code == 404
    assert response.json()["message"] == "User not found"


# ---------------------------------------------------------------------------
# Test Group 3: history and lookup
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_history_for_new_user_is_empty(client: AsyncClient, signed_up) -> None:
    user, _ = signed_up
    response = await client.get(f"/api/getBookingHistory/{user['id']}")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["data"]["bookings"] == []
    assert body["data"]["user"]["id"] == user["id"]


@pytest.mark.asyncio
async def test_history_lists_bookings_newest_first(client: AsyncClient, signed_up) -> None:
    user, token = signed_up
    for stamp in ("2026-10-01T08:00:00Z", "2026-10-03T08:00:00Z", "2026-10-02T08:00:00Z"):
        response = await client.post(
            "/api/bookTicket", json=booking_payload(bookingTime=stamp), headers=_auth(token)
        )
        assert response.status_code == 201

    bookings = (await client.get(f"/api/getBookingHistory/{user['id']}")).json()["data"]["bookings"]
    assert [b["bookingTime"][:10] for b in bookings] == ["2026-10-03", "2026-10-02", "2026-10-01"]


@pytest.mark.asyncio
async def test_history_unknown_user_is_404(client: AsyncClient) -> None:
    response = await client.get("/api/getBookingHistory/no-such-user")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_history_without_id_is_400(client: AsyncClient) -> None:
    response = await client.get("/api/getBookingHistory")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_get_booking_unknown_is_404(client: AsyncClient) -> None:
    response = await client.get("/api/getBooking/does-not-exist")
    assert response.status_code == 404
    assert response.json()["message"] == "Booking not found"


@pytest.mark.asyncio
async def test_get_booking_without_id_is_400(client: AsyncClient) -> None:
    response = await client.get("/api/getBooking")
    assert response.status_code == 400


# ---------------------------------------------------------------------------
# Test Group 4: service endpoints
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_health_reports_database(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "OK"
    assert body["database"]["status"] == "connected"
    assert body["environment"] == "development"


@pytest.mark.asyncio
async def test_root_lists_endpoints(client: AsyncClient) -> None:
    response = await client.get("/")
    assert response.status_code == 200
    assert "bookTicket" in response.json()["endpoints"]["booking"]


@pytest.mark.asyncio
async def test_unknown_route_uses_error_envelope(client: AsyncClient) -> None:
    response = await client.get("/api/nope")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"
