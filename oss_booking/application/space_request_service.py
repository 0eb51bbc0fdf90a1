# oss_booking/application/space_request_service.py

import logging

from sqlalchemy.orm import Session

from oss_booking.domain.exceptions import NotFoundError, RequestValidationFailed
from oss_booking.domain.state_machine import SPACE_REQUEST_ADMIN_LABELS, SpaceRequestStatus
from oss_booking.infrastructure.db.models import Booking, SpaceRequest
from oss_booking.infrastructure.repositories.booking_repository import BookingRepository
from oss_booking.infrastructure.repositories.notification_repository import (
    NotificationRepository,
)
from oss_booking.infrastructure.repositories.space_request_repository import (
    SpaceRequestRepository,
)

logger = logging.getLogger(__name__)

SPACE_APPROVED_TEMPLATE = "space_approved"


class SpaceRequestService:

    def __init__(self, db: Session):
        self.db = db
        self.space_request_repository = SpaceRequestRepository(db)
        self.booking_repository = BookingRepository(db)
        self.notification_repository = NotificationRepository(db)

    def list_requests(self, status: str | None = None) -> list[tuple[SpaceRequest, Booking | None]]:
        # Unknown status filters are ignored, matching the admin console's "all" tab.
        wanted = None
        if status and status in SpaceRequestStatus.__members__:
            wanted = SpaceRequestStatus(status)
        return self.space_request_repository.list_with_bookings(wanted)

    def update_request(
        self,
        request_id: str,
        label: str,
        admin_notes: str | None = None,
    ) -> SpaceRequest:
        space_request = self.space_request_repository.get_by_id(request_id)
        if not space_request:
            raise NotFoundError("Space request not found")

        new_status = SPACE_REQUEST_ADMIN_LABELS.get(label)
        if new_status is None:
            raise RequestValidationFailed("Invalid status")

        space_request.status = new_status
        if admin_notes:
            space_request.admin_notes = admin_notes
        self.db.flush()

        if label == "APPROVED":
            booking = self.booking_repository.get_by_space_request_id(space_request.id)
            self.notification_repository.log_pending(
                SPACE_APPROVED_TEMPLATE,
                to=space_request.phone,
                booking_id=booking.id if booking else None,
            )

        logger.info(
            "Space request updated id=%s status=%s",
            space_request.id,
            new_status.value,
        )
        return space_request
