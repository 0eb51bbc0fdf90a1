# oss_booking/infrastructure/repositories/event_pass_repository.py

from datetime import datetime

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from oss_booking.domain.state_machine import CheckInStatus
from oss_booking.infrastructure.db.models import Booking, Event, EventPass


class EventPassRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_pass_id(self, pass_id: str) -> EventPass | None:
        stmt = select(EventPass).where(EventPass.pass_id == pass_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_booking_id(self, booking_id: str) -> EventPass | None:
        stmt = select(EventPass).where(EventPass.booking_id == booking_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_with_context(self, pass_id: str) -> tuple[EventPass, Booking, Event] | None:
        stmt = (
            select(EventPass, Booking, Event)
            .join(Booking, Booking.id == EventPass.booking_id)
            .join(Event, Event.id == EventPass.event_id)
            .where(EventPass.pass_id == pass_id)
        )
        row = self.db.execute(stmt).first()
        return tuple(row) if row else None

    def pass_id_exists(self, pass_id: str) -> bool:
        return self.get_by_pass_id(pass_id) is not None

    def create_pass(
        self,
        booking_id: str,
        event_id: str,
        pass_id: str,
        qr_image_url: str,
    ) -> EventPass:
        event_pass = EventPass(
            booking_id=booking_id,
            event_id=event_id,
            pass_id=pass_id,
            qr_image_url=qr_image_url,
            check_in_status=CheckInStatus.NOT_CHECKED_IN,
        )
        self.db.add(event_pass)
        self.db.flush()
        return event_pass

    def mark_checked_in(
        self,
        event_pass: EventPass,
        checked_in_at: datetime,
        checked_in_by: str,
    ) -> None:
        event_pass.check_in_status = CheckInStatus.CHECKED_IN
        event_pass.check_in_time = checked_in_at
        event_pass.checked_in_by = checked_in_by
        self.db.flush()

    def list_with_context(self, event_id: str | None = None) -> list[tuple[EventPass, Booking, Event]]:
        stmt = (
            select(EventPass, Booking, Event)
            .join(Booking, Booking.id == EventPass.booking_id)
            .join(Event, Event.id == EventPass.event_id)
            .order_by(EventPass.created_at.desc())
        )
        if event_id:
            stmt = stmt.where(EventPass.event_id == event_id)
        return [tuple(row) for row in self.db.execute(stmt).all()]

    def for_bookings(self, booking_ids: list[str]) -> dict[str, EventPass]:
        if not booking_ids:
            return {}
        stmt = select(EventPass).where(EventPass.booking_id.in_(booking_ids))
        return {event_pass.booking_id: event_pass for event_pass in self.db.execute(stmt).scalars().all()}

    def check_in_counts_by_event(self) -> dict[str, tuple[int, int]]:
        """event_id -> (passes issued, passes checked in)."""
        checked_in = func.sum(
            case((EventPass.check_in_status == CheckInStatus.CHECKED_IN, 1), else_=0)
        )
        stmt = (
            select(EventPass.event_id, func.count(EventPass.id), checked_in)
            .group_by(EventPass.event_id)
        )
        return {
            event_id: (issued, int(checked or 0))
            for event_id, issued, checked in self.db.execute(stmt).all()
        }
