# tests/integration/test_pass_checkin.py

import pytest
from sqlalchemy import update

from oss_booking.domain.state_machine import BookingStatus
from oss_booking.infrastructure.db.models import Booking, EventPass
from tests.helpers import ADMIN_EMAIL, DEV_SECRET, add_event, booking_payload, fetch_one


@pytest.fixture
def confirmed_pass(client, session_factory):
    event = add_event(session_factory, title="Art Exhibition: Urban Stories")
    booking_id = client.post(
        "/api/createBooking",
        json=booking_payload("EVENT", eventId=event.id),
    ).json()["data"]["bookingId"]
    client.post("/api/createRazorpayOrder", json={"bookingId": booking_id})
    confirmed = client.post(
        "/api/devConfirmPayment",
        json={"bookingId": booking_id},
        headers={"x-dev-secret": DEV_SECRET},
    )
    return event, booking_id, confirmed.json()["data"]["passId"]


# ---------------------
# CHECK-IN
# ---------------------

def test_check_in_is_idempotent(admin_client, session_factory, confirmed_pass):
    _, _, pass_id = confirmed_pass

    first = admin_client.post("/api/adminCheckinPass", json={"passId": pass_id})
    second = admin_client.post("/api/adminCheckinPass", json={"passId": pass_id})

    assert first.status_code == 200
    assert second.status_code == 200
    first_data, second_data = first.json()["data"], second.json()["data"]
    assert first_data["alreadyCheckedIn"] is False
    assert second_data["alreadyCheckedIn"] is True
    assert first_data["checkInTime"] == second_data["checkInTime"]
    assert first_data["attendeeName"] == "Asha Rao"
    assert first_data["eventTitle"] == "Art Exhibition: Urban Stories"

    event_pass = fetch_one(session_factory, EventPass, pass_id=pass_id)
    assert event_pass.check_in_status.value == "CHECKED_IN"
    assert event_pass.checked_in_by == ADMIN_EMAIL


def test_check_in_requires_confirmed_booking(admin_client, session_factory, confirmed_pass):
    _, booking_id, pass_id = confirmed_pass
    with session_factory() as session:
        session.execute(
            update(Booking).where(Booking.id == booking_id).values(status=BookingStatus.CANCELLED)
        )
        session.commit()

    response = admin_client.post("/api/adminCheckinPass", json={"passId": pass_id})

    assert response.status_code == 400
    assert response.json()["error"] == "Cannot check in - booking status is CANCELLED"
    assert fetch_one(session_factory, EventPass, pass_id=pass_id).check_in_status.value == "NOT_CHECKED_IN"


def test_unknown_pass_is_404(admin_client):
    response = admin_client.post("/api/adminCheckinPass", json={"passId": "OSS-EV-ZZZZ2222"})

    assert response.status_code == 404
    assert response.json()["error"] == "Pass not found"


def test_malformed_pass_id_is_400(admin_client):
    response = admin_client.post("/api/adminCheckinPass", json={"passId": "OSS-EV-1"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid pass ID format"


def test_check_in_requires_admin(client, confirmed_pass):
    _, _, pass_id = confirmed_pass

    response = client.post("/api/adminCheckinPass", json={"passId": pass_id})

    assert response.status_code == 401


def test_admin_pass_listing(admin_client, confirmed_pass):
    event, _, pass_id = confirmed_pass

    everything = admin_client.get("/api/adminListPasses").json()["data"]
    for_event = admin_client.get("/api/adminListPasses", params={"eventId": event.id}).json()["data"]

    assert [row["passId"] for row in everything] == [pass_id]
    assert for_event[0]["attendeeEmail"] == "asha@example.com"
    assert for_event[0]["eventTitle"] == "Art Exhibition: Urban Stories"
    assert for_event[0]["checkInStatus"] == "NOT_CHECKED_IN"


def test_admin_pass_listing_rejects_bad_event_id(admin_client):
    response = admin_client.get("/api/adminListPasses", params={"eventId": "nope"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid eventId format"


# ---------------------
# PUBLIC VERIFY
# ---------------------

def test_verify_pass(client, confirmed_pass):
    event, _, pass_id = confirmed_pass

    response = client.get("/api/verifyPass", params={"passId": pass_id})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["valid"] is True
    assert data["pass"]["passId"] == pass_id
    assert data["event"]["id"] == event.id
    assert data["attendeeName"] == "Asha Rao"
    assert data["bookingStatus"] == "CONFIRMED"


def test_verify_unknown_pass(client):
    response = client.get("/api/verifyPass", params={"passId": "OSS-EV-ZZZZ2222"})

    assert response.status_code == 404
    assert response.json() == {"success": True, "data": {"valid": False}}


def test_verify_malformed_pass(client):
    response = client.get("/api/verifyPass", params={"passId": "hello"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid pass ID format"


def test_verify_pass_with_trailing_newline_is_malformed(client, confirmed_pass):
    _, _, pass_id = confirmed_pass

    response = client.get("/api/verifyPass", params={"passId": pass_id + "\n"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid pass ID format"
