# oss_booking/infrastructure/repositories/booking_repository.py

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from oss_booking.domain.state_machine import BookingStatus, BookingType
from oss_booking.infrastructure.db.models import Booking, StatusHistory


@dataclass
class BookingFilter:
    type: BookingType | None = None
    status: BookingStatus | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    search: str | None = None


class BookingRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        booking_id: str,
    ) -> Booking | None:

        stmt = select(Booking).where(Booking.id == booking_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_space_request_id(self, space_request_id: str) -> Booking | None:
        stmt = select(Booking).where(Booking.space_request_id == space_request_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def create_booking(
        self,
        booking_type: BookingType,
        status: BookingStatus,
        name: str,
        phone: str,
        email: str,
        amount_paise: int,
        currency: str = "INR",
        class_session_id: str | None = None,
        event_id: str | None = None,
        space_request_id: str | None = None,
    ) -> Booking:

        booking = Booking(
            type=booking_type,
            status=status,
            name=name,
            phone=phone,
            email=email,
            amount_paise=amount_paise,
            currency=currency,
            class_session_id=class_session_id,
            event_id=event_id,
            space_request_id=space_request_id,
        )

        self.db.add(booking)
        self.db.flush()
        return booking

    def update_status(
        self,
        booking: Booking,
        new_status: BookingStatus,
    ) -> None:

        booking.status = new_status

    def add_history(
        self,
        booking_id: str,
        from_status: str,
        to_status: str,
        changed_by: str = "SYSTEM",
        reason: str | None = None,
    ) -> StatusHistory:
        entry = StatusHistory(
            booking_id=booking_id,
            from_status=from_status,
            to_status=to_status,
            changed_by=changed_by,
            reason=reason,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_history(self, booking_id: str) -> list[StatusHistory]:
        stmt = (
            select(StatusHistory)
            .where(StatusHistory.booking_id == booking_id)
            .order_by(StatusHistory.created_at)
        )
        return list(self.db.execute(stmt).scalars().all())

    def count_active_class_holds(self, class_session_id: str, since: datetime) -> int:
        """Unpaid CLASS bookings recent enough to still be holding a spot."""
        stmt = (
            select(func.count(Booking.id))
            .where(Booking.class_session_id == class_session_id)
            .where(Booking.type == BookingType.CLASS)
            .where(Booking.status == BookingStatus.PENDING_PAYMENT)
            .where(Booking.created_at >= since)
        )
        return self.db.execute(stmt).scalar_one()

    def count_by_class_session(self) -> dict[str, int]:
        stmt = (
            select(Booking.class_session_id, func.count(Booking.id))
            .where(Booking.class_session_id.is_not(None))
            .group_by(Booking.class_session_id)
        )
        return {session_id: count for session_id, count in self.db.execute(stmt).all()}

    def list_bookings(
        self,
        filters: BookingFilter,
        page: int,
        limit: int,
    ) -> tuple[list[Booking], int]:
        conditions = []
        if filters.type is not None:
            conditions.append(Booking.type == filters.type)
        if filters.status is not None:
            conditions.append(Booking.status == filters.status)
        if filters.start_date is not None:
            conditions.append(Booking.created_at >= filters.start_date)
        if filters.end_date is not None:
            conditions.append(Booking.created_at <= filters.end_date)
        if filters.search:
            pattern = f"%{filters.search.lower()}%"
            conditions.append(
                or_(
                    func.lower(Booking.name).like(pattern),
                    func.lower(Booking.email).like(pattern),
                    Booking.id.like(f"%{filters.search}%"),
                )
            )

        stmt = (
            select(Booking)
            .where(*conditions)
            .order_by(Booking.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        total_stmt = select(func.count(Booking.id)).where(*conditions)

        bookings = list(self.db.execute(stmt).scalars().all())
        total = self.db.execute(total_stmt).scalar_one()
        return bookings, total

    def count_by_event(self) -> dict[str, int]:
        stmt = (
            select(Booking.event_id, func.count(Booking.id))
            .where(Booking.event_id.is_not(None))
            .group_by(Booking.event_id)
        )
        return {event_id: count for event_id, count in self.db.execute(stmt).all()}
