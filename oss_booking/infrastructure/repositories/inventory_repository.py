# oss_booking/infrastructure/repositories/inventory_repository.py

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from oss_booking.infrastructure.db.models import ClassSession, Event


class ClassSessionRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, class_session_id: str) -> ClassSession | None:
        stmt = select(ClassSession).where(ClassSession.id == class_session_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def lock(self, class_session_id: str) -> ClassSession | None:
        """
        SELECT ... FOR UPDATE
        Serializes concurrent capacity checks for one session.
        """

        stmt = (
            select(ClassSession)
            .where(ClassSession.id == class_session_id)
            .with_for_update()
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_sessions(
        self,
        upcoming_after: datetime | None = None,
        newest_first: bool = False,
    ) -> list[ClassSession]:
        stmt = select(ClassSession)
        if upcoming_after is not None:
            stmt = stmt.where(ClassSession.active.is_(True)).where(
                ClassSession.starts_at >= upcoming_after
            )
        order = ClassSession.starts_at.desc() if newest_first else ClassSession.starts_at
        return list(self.db.execute(stmt.order_by(order)).scalars().all())

    def add(self, class_session: ClassSession) -> ClassSession:
        self.db.add(class_session)
        self.db.flush()
        return class_session

    def try_book_spot(self, class_session_id: str) -> bool:
        """
        Increment spots_booked in a single conditional statement.
        Returns False when the session was already at capacity.
        """

        stmt = (
            update(ClassSession)
            .where(ClassSession.id == class_session_id)
            .where(ClassSession.spots_booked < ClassSession.capacity)
            .values(spots_booked=ClassSession.spots_booked + 1)
            .execution_options(synchronize_session="fetch")
        )
        result = self.db.execute(stmt)
        return result.rowcount == 1


class EventRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, event_id: str) -> Event | None:
        stmt = select(Event).where(Event.id == event_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_events(
        self,
        upcoming_after: datetime | None = None,
        newest_first: bool = False,
    ) -> list[Event]:
        stmt = select(Event)
        if upcoming_after is not None:
            stmt = stmt.where(Event.active.is_(True)).where(Event.starts_at >= upcoming_after)
        order = Event.starts_at.desc() if newest_first else Event.starts_at
        return list(self.db.execute(stmt.order_by(order)).scalars().all())

    def add(self, event: Event) -> Event:
        self.db.add(event)
        self.db.flush()
        return event

    def record_pass_issued(self, event_id: str) -> None:
        stmt = (
            update(Event)
            .where(Event.id == event_id)
            .values(passes_issued=Event.passes_issued + 1)
            .execution_options(synchronize_session="fetch")
        )
        self.db.execute(stmt)
