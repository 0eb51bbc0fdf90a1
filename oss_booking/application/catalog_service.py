# oss_booking/application/catalog_service.py

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.orm import Session

from oss_booking.domain.clock import as_utc, utc_now
from oss_booking.domain.exceptions import NotFoundError, RequestValidationFailed
from oss_booking.infrastructure.db.models import ClassSession, Event
from oss_booking.infrastructure.repositories.booking_repository import BookingRepository
from oss_booking.infrastructure.repositories.event_pass_repository import EventPassRepository
from oss_booking.infrastructure.repositories.inventory_repository import (
    ClassSessionRepository,
    EventRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class EventStats:
    event: Event
    booking_count: int
    passes_issued: int
    check_ins: int


CLASS_FIELDS = {
    "title",
    "description",
    "image_url",
    "starts_at",
    "duration",
    "capacity",
    "price_paise",
    "active",
}
EVENT_FIELDS = {
    "title",
    "description",
    "image_url",
    "starts_at",
    "venue",
    "capacity",
    "price_paise",
    "active",
}


class CatalogService:
    """Classes and events: public listings and admin maintenance."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock
        self.class_session_repository = ClassSessionRepository(db)
        self.event_repository = EventRepository(db)
        self.booking_repository = BookingRepository(db)
        self.event_pass_repository = EventPassRepository(db)

    def list_classes(self, include_inactive: bool = False) -> list[ClassSession]:
        upcoming_after = None if include_inactive else self.clock()
        return self.class_session_repository.list_sessions(upcoming_after=upcoming_after)

    def list_events(self, include_inactive: bool = False) -> list[Event]:
        upcoming_after = None if include_inactive else self.clock()
        return self.event_repository.list_events(upcoming_after=upcoming_after)

    def list_classes_with_booking_counts(self) -> list[tuple[ClassSession, int]]:
        sessions = self.class_session_repository.list_sessions(newest_first=True)
        counts = self.booking_repository.count_by_class_session()
        return [(session, counts.get(session.id, 0)) for session in sessions]

    def list_events_with_stats(self) -> list[EventStats]:
        events = self.event_repository.list_events(newest_first=True)
        booking_counts = self.booking_repository.count_by_event()
        pass_counts = self.event_pass_repository.check_in_counts_by_event()
        stats = []
        for event in events:
            issued, checked_in = pass_counts.get(event.id, (0, 0))
            stats.append(
                EventStats(
                    event=event,
                    booking_count=booking_counts.get(event.id, 0),
                    passes_issued=issued,
                    check_ins=checked_in,
                )
            )
        return stats

    def create_class(self, fields: dict[str, Any]) -> ClassSession:
        values = self._pick(fields, CLASS_FIELDS)
        class_session = self.class_session_repository.add(ClassSession(spots_booked=0, **values))
        logger.info("Class created id=%s title=%s", class_session.id, class_session.title)
        return class_session

    def update_class(self, class_session_id: str, changes: dict[str, Any]) -> ClassSession:
        class_session = self.class_session_repository.get_by_id(class_session_id)
        if not class_session:
            raise NotFoundError("Class not found")

        values = self._pick(changes, CLASS_FIELDS)
        capacity = values.get("capacity")
        if capacity is not None and capacity < class_session.spots_booked:
            raise RequestValidationFailed(
                f"Capacity cannot be lower than spots already booked ({class_session.spots_booked})"
            )

        for name, value in values.items():
            setattr(class_session, name, value)
        self.db.flush()
        logger.info("Class updated id=%s fields=%s", class_session.id, sorted(values))
        return class_session

    def create_event(self, fields: dict[str, Any]) -> Event:
        values = self._pick(fields, EVENT_FIELDS)
        event = self.event_repository.add(Event(passes_issued=0, **values))
        logger.info("Event created id=%s title=%s", event.id, event.title)
        return event

    def update_event(self, event_id: str, changes: dict[str, Any]) -> Event:
        event = self.event_repository.get_by_id(event_id)
        if not event:
            raise NotFoundError("Event not found")

        values = self._pick(changes, EVENT_FIELDS)
        for name, value in values.items():
            setattr(event, name, value)
        self.db.flush()
        logger.info("Event updated id=%s fields=%s", event.id, sorted(values))
        return event

    @staticmethod
    def _pick(fields: dict[str, Any], allowed: set[str]) -> dict[str, Any]:
        values = {name: value for name, value in fields.items() if name in allowed}
        if values.get("starts_at") is not None:
            values["starts_at"] = as_utc(values["starts_at"])
        return values
