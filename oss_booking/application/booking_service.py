# oss_booking/application/booking_service.py

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.orm import Session

from oss_booking.application.lifecycle import SYSTEM_ACTOR
from oss_booking.domain.clock import utc_now
from oss_booking.domain.exceptions import (
    FullError,
    InactiveError,
    NotFoundError,
    RequestValidationFailed,
)
from oss_booking.domain.state_machine import (
    INITIAL_STATUS,
    BookingType,
    initial_status_for,
)
from oss_booking.infrastructure.db.models import (
    Booking,
    ClassSession,
    Event,
    EventPass,
    Payment,
    SpaceRequest,
)
from oss_booking.infrastructure.repositories.booking_repository import (
    BookingFilter,
    BookingRepository,
)
from oss_booking.infrastructure.repositories.event_pass_repository import EventPassRepository
from oss_booking.infrastructure.repositories.inventory_repository import (
    ClassSessionRepository,
    EventRepository,
)
from oss_booking.infrastructure.repositories.payment_repository import PaymentRepository
from oss_booking.infrastructure.repositories.space_request_repository import (
    SpaceRequestRepository,
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


@dataclass
class BookingRequest:
    type: BookingType
    name: str
    phone: str
    email: str
    class_session_id: str | None = None
    event_id: str | None = None
    preferred_slots: list[str] = field(default_factory=list)
    notes: str | None = None
    purpose: str | None = None


@dataclass
class BookingCreated:
    booking_id: str
    type: BookingType
    amount: int
    requires_payment: bool


@dataclass
class BookingDetails:
    booking: Booking
    class_session: ClassSession | None
    event: Event | None
    space_request: SpaceRequest | None
    event_pass: EventPass | None
    latest_payment: Payment | None


@dataclass
class BookingListing:
    booking: Booking
    class_title: str | None
    event_title: str | None
    latest_payment: Payment | None
    event_pass: EventPass | None


@dataclass
class BookingPage:
    items: list[BookingListing]
    total: int
    page: int
    total_pages: int


class BookingService:
    """Application service coordinating booking creation and lookup."""

    def __init__(
        self,
        db: Session,
        hold_minutes: int = 30,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.hold_minutes = hold_minutes
        self.clock = clock
        self.booking_repository = BookingRepository(db)
        self.class_session_repository = ClassSessionRepository(db)
        self.event_repository = EventRepository(db)
        self.space_request_repository = SpaceRequestRepository(db)
        self.payment_repository = PaymentRepository(db)
        self.event_pass_repository = EventPassRepository(db)

    def create_booking(self, request: BookingRequest) -> BookingCreated:
        # Every precondition is checked before the first insert.
        class_session_id = None
        event_id = None
        space_request_id = None

        if request.type == BookingType.CLASS:
            class_session = self._reserve_class_spot(request.class_session_id)
            class_session_id = class_session.id
            amount = class_session.price_paise
        elif request.type == BookingType.EVENT:
            event = self._bookable_event(request.event_id)
            event_id = event.id
            amount = event.price_paise
        else:
            space_request_id = self._open_space_request(request).id
            amount = 0

        status = initial_status_for(request.type)
        booking = self.booking_repository.create_booking(
            booking_type=request.type,
            status=status,
            name=request.name,
            phone=request.phone,
            email=request.email,
            amount_paise=amount,
            class_session_id=class_session_id,
            event_id=event_id,
            space_request_id=space_request_id,
        )
        self.booking_repository.add_history(
            booking_id=booking.id,
            from_status=INITIAL_STATUS,
            to_status=status.value,
            changed_by=SYSTEM_ACTOR,
        )

        logger.info(
            "Booking created id=%s type=%s status=%s amount=%s",
            booking.id,
            request.type.value,
            status.value,
            amount,
        )
        return BookingCreated(
            booking_id=booking.id,
            type=request.type,
            amount=amount,
            requires_payment=request.type != BookingType.SPACE and amount > 0,
        )

    def get_booking(self, booking_id: str) -> BookingDetails:
        booking = self.booking_repository.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")

        class_session = None
        if booking.class_session_id:
            class_session = self.class_session_repository.get_by_id(booking.class_session_id)
        event = self.event_repository.get_by_id(booking.event_id) if booking.event_id else None
        space_request = None
        if booking.space_request_id:
            space_request = self.space_request_repository.get_by_id(booking.space_request_id)

        return BookingDetails(
            booking=booking,
            class_session=class_session,
            event=event,
            space_request=space_request,
            event_pass=self.event_pass_repository.get_by_booking_id(booking.id),
            latest_payment=self.payment_repository.latest_for_booking(booking.id),
        )

    def list_bookings(self, filters: BookingFilter, page: int = 1, limit: int = 20) -> BookingPage:
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        bookings, total = self.booking_repository.list_bookings(filters, page, limit)

        booking_ids = [booking.id for booking in bookings]
        payments = self.payment_repository.latest_for_bookings(booking_ids)
        passes = self.event_pass_repository.for_bookings(booking_ids)
        class_titles = {
            session.id: session.title
            for session in self.class_session_repository.list_sessions()
        }
        event_titles = {event.id: event.title for event in self.event_repository.list_events()}

        items = [
            BookingListing(
                booking=booking,
                class_title=class_titles.get(booking.class_session_id),
                event_title=event_titles.get(booking.event_id),
                latest_payment=payments.get(booking.id),
                event_pass=passes.get(booking.id),
            )
            for booking in bookings
        ]
        return BookingPage(
            items=items,
            total=total,
            page=page,
            total_pages=math.ceil(total / limit),
        )

    def _reserve_class_spot(self, class_session_id: str | None) -> ClassSession:
        if not class_session_id:
            raise RequestValidationFailed("classSessionId is required for CLASS booking")

        class_session = self.class_session_repository.lock(class_session_id)
        if not class_session:
            raise NotFoundError("Class session not found")
        if not class_session.active:
            raise InactiveError("This class is no longer available")

        # Unpaid bookings inside the hold window count against capacity.
        hold_started_after = self.clock() - timedelta(minutes=self.hold_minutes)
        active_holds = self.booking_repository.count_active_class_holds(
            class_session.id,
            since=hold_started_after,
        )
        if class_session.spots_booked + active_holds >= class_session.capacity:
            logger.info(
                "Class full id=%s capacity=%s booked=%s holds=%s",
                class_session.id,
                class_session.capacity,
                class_session.spots_booked,
                active_holds,
            )
            raise FullError("This class is fully booked")
        return class_session

    def _bookable_event(self, event_id: str | None) -> Event:
        if not event_id:
            raise RequestValidationFailed("eventId is required for EVENT booking")

        event = self.event_repository.get_by_id(event_id)
        if not event:
            raise NotFoundError("Event not found")
        if not event.active:
            raise InactiveError("This event is no longer available")
        return event

    def _open_space_request(self, request: BookingRequest) -> SpaceRequest:
        if not request.preferred_slots:
            raise RequestValidationFailed("preferredSlots is required for SPACE booking")

        return self.space_request_repository.create_request(
            name=request.name,
            phone=request.phone,
            email=request.email,
            preferred_slots=request.preferred_slots,
            purpose=request.purpose,
            notes=request.notes,
        )
