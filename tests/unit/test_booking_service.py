# tests/unit/test_booking_service.py

from datetime import datetime, timedelta, timezone

import pytest

from oss_booking.application.booking_service import BookingRequest, BookingService
from oss_booking.application.lifecycle import transition_booking
from oss_booking.application.pass_service import PassService
from oss_booking.application.payment_service import PaymentService
from oss_booking.domain.exceptions import FullError, InvalidStateTransitionError, NotFoundError
from oss_booking.domain.state_machine import BookingStatus, BookingType
from oss_booking.infrastructure.payment_gateway import MockOrderGateway
from oss_booking.infrastructure.repositories.booking_repository import (
    BookingFilter,
    BookingRepository,
)
from oss_booking.infrastructure.repositories.notification_repository import NotificationRepository
from tests.helpers import add_class, add_event


def _request(booking_type, **fields) -> BookingRequest:
    return BookingRequest(
        type=booking_type,
        name="Asha Rao",
        phone="+919876543210",
        email="asha@example.com",
        **fields,
    )


def test_creation_writes_one_history_row(db, session_factory):
    class_session = add_class(session_factory)
    service = BookingService(db)

    created = service.create_booking(_request(BookingType.CLASS, class_session_id=class_session.id))

    history = BookingRepository(db).list_history(created.booking_id)
    assert [(row.from_status, row.to_status, row.changed_by) for row in history] == [
        ("NONE", "PENDING_PAYMENT", "SYSTEM")
    ]


def test_holds_expire_with_the_clock(db, session_factory):
    class_session = add_class(session_factory, capacity=1)
    service = BookingService(db)
    service.create_booking(_request(BookingType.CLASS, class_session_id=class_session.id))
    db.commit()

    with pytest.raises(FullError):
        service.create_booking(_request(BookingType.CLASS, class_session_id=class_session.id))

    later = BookingService(
        db,
        hold_minutes=30,
        clock=lambda: datetime.now(timezone.utc) + timedelta(minutes=31),
    )
    assert later.create_booking(_request(BookingType.CLASS, class_session_id=class_session.id))


def test_unknown_event_is_not_found(db):
    with pytest.raises(NotFoundError, match="Event not found"):
        BookingService(db).create_booking(
            _request(BookingType.EVENT, event_id="0b6c2a4e-8f1d-4c3b-9a7e-5d2f1e0c9b8a")
        )


def test_listing_page_math(db):
    service = BookingService(db)
    for _ in range(5):
        service.create_booking(_request(BookingType.SPACE, preferred_slots=["Friday"]))

    page = service.list_bookings(BookingFilter(type=BookingType.SPACE), page=3, limit=2)

    assert page.total == 5
    assert page.total_pages == 3
    assert len(page.items) == 1


def test_terminal_bookings_cannot_be_confirmed(db, session_factory):
    event = add_event(session_factory)
    created = BookingService(db).create_booking(_request(BookingType.EVENT, event_id=event.id))
    repository = BookingRepository(db)
    booking = repository.get_by_id(created.booking_id)
    transition_booking(repository, booking, BookingStatus.EXPIRED, reason="Hold lapsed")

    with pytest.raises(InvalidStateTransitionError):
        transition_booking(repository, booking, BookingStatus.CONFIRMED)
    assert len(repository.list_history(booking.id)) == 2


def test_confirmation_logs_one_notification(db, session_factory):
    event = add_event(session_factory)
    created = BookingService(db).create_booking(_request(BookingType.EVENT, event_id=event.id))
    passes = PassService(db, app_base_url="https://oss.example.com")
    payments = PaymentService(db, MockOrderGateway(), passes)
    payments.create_order(created.booking_id)

    confirmed = payments.dev_confirm(created.booking_id)

    assert confirmed.status == BookingStatus.CONFIRMED
    assert confirmed.event_pass is not None
    notifications = NotificationRepository(db).list_for_booking(created.booking_id)
    assert [entry.template_name for entry in notifications] == ["booking_event_confirmed"]
    assert notifications[0].to == "+919876543210"
