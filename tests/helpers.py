# tests/helpers.py

import hashlib
import hmac
import json
from datetime import timedelta

from sqlalchemy import select

from oss_booking.domain.clock import utc_now
from oss_booking.domain.exceptions import StorageError
from oss_booking.infrastructure.db.models import ClassSession, Event

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "correct-horse-battery-staple"
DEV_SECRET = "dev-secret-for-tests"
WEBHOOK_SECRET = "whsec_test_secret"
APP_BASE_URL = "https://oss.example.com"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 32


class FakeStorage:
    """Records uploads in memory instead of talking to S3."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.objects: dict[tuple[str, str], tuple[bytes, str]] = {}

    def upload(self, bucket: str, key: str, body: bytes, content_type: str) -> str:
        if self.fail:
            raise StorageError("upload refused")
        self.objects[(bucket, key)] = (body, content_type)
        return f"https://cdn.example.com/{bucket}/{key}"


def add_class(session_factory, **overrides) -> ClassSession:
    values = {
        "title": "Pottery Workshop",
        "starts_at": utc_now() + timedelta(days=7),
        "duration": 120,
        "capacity": 10,
        "spots_booked": 0,
        "price_paise": 150000,
        "active": True,
    }
    values.update(overrides)
    with session_factory() as session:
        class_session = ClassSession(**values)
        session.add(class_session)
        session.commit()
        return class_session


def add_event(session_factory, **overrides) -> Event:
    values = {
        "title": "OSS Open Mic Night",
        "starts_at": utc_now() + timedelta(days=3),
        "venue": "OSS Main Hall",
        "capacity": 100,
        "price_paise": 20000,
        "passes_issued": 0,
        "active": True,
    }
    values.update(overrides)
    with session_factory() as session:
        event = Event(**values)
        session.add(event)
        session.commit()
        return event


def fetch(session_factory, model, **criteria) -> list:
    with session_factory() as session:
        stmt = select(model).filter_by(**criteria)
        return list(session.execute(stmt).scalars().all())


def fetch_one(session_factory, model, **criteria):
    rows = fetch(session_factory, model, **criteria)
    assert len(rows) == 1, f"expected one {model.__name__}, found {len(rows)}"
    return rows[0]


def booking_payload(booking_type: str, **overrides) -> dict:
    payload = {
        "type": booking_type,
        "name": "Asha Rao",
        "phone": "9876543210",
        "email": "Asha@Example.com",
    }
    payload.update(overrides)
    return payload


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def webhook_body(
    event: str,
    order_id: str,
    amount: int,
    payment_id: str = "pay_test_001",
    event_id: str = "evt_test_001",
    currency: str = "INR",
) -> bytes:
    payload = {
        "event": event,
        "event_id": event_id,
        "payload": {
            "payment": {
                "entity": {
                    "id": payment_id,
                    "order_id": order_id,
                    "amount": amount,
                    "currency": currency,
                    "status": "captured" if event == "payment.captured" else "failed",
                }
            }
        },
    }
    return json.dumps(payload).encode()
