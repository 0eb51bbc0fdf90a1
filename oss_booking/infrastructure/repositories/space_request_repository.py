# oss_booking/infrastructure/repositories/space_request_repository.py

from sqlalchemy import select
from sqlalchemy.orm import Session

from oss_booking.domain.state_machine import SpaceRequestStatus
from oss_booking.infrastructure.db.models import Booking, SpaceRequest


class SpaceRequestRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, request_id: str) -> SpaceRequest | None:
        stmt = select(SpaceRequest).where(SpaceRequest.id == request_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def create_request(
        self,
        name: str,
        phone: str,
        email: str,
        preferred_slots: list[str],
        purpose: str | None,
        notes: str | None,
    ) -> SpaceRequest:
        request = SpaceRequest(
            name=name,
            phone=phone,
            email=email,
            preferred_slots=list(preferred_slots),
            purpose=purpose,
            notes=notes,
            status=SpaceRequestStatus.REQUESTED,
        )
        self.db.add(request)
        self.db.flush()
        return request

    def list_with_bookings(
        self,
        status: SpaceRequestStatus | None = None,
    ) -> list[tuple[SpaceRequest, Booking | None]]:
        stmt = (
            select(SpaceRequest, Booking)
            .outerjoin(Booking, Booking.space_request_id == SpaceRequest.id)
            .order_by(SpaceRequest.created_at.desc())
        )
        if status is not None:
            stmt = stmt.where(SpaceRequest.status == status)
        return [tuple(row) for row in self.db.execute(stmt).all()]
