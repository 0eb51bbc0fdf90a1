# oss_booking/application/pass_service.py

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from oss_booking.domain.clock import utc_now
from oss_booking.domain.exceptions import InvalidStateError, NotFoundError, StorageError
from oss_booking.domain.passes import build_verify_url, generate_pass_id
from oss_booking.domain.state_machine import BookingStatus, CheckInStatus
from oss_booking.infrastructure.db.models import Booking, Event, EventPass
from oss_booking.infrastructure.qr import png_data_url, render_qr_png
from oss_booking.infrastructure.repositories.event_pass_repository import EventPassRepository
from oss_booking.infrastructure.repositories.inventory_repository import EventRepository
from oss_booking.infrastructure.storage import ObjectStorage

logger = logging.getLogger(__name__)

MAX_PASS_ID_ATTEMPTS = 5


@dataclass
class CheckInResult:
    pass_id: str
    attendee_name: str
    event_title: str
    check_in_time: datetime | None
    already_checked_in: bool


@dataclass
class PassVerification:
    event_pass: EventPass
    booking: Booking
    event: Event

    @property
    def valid(self) -> bool:
        return self.booking.status == BookingStatus.CONFIRMED


class PassService:
    """Issues QR-backed event passes and handles door check-in."""

    def __init__(
        self,
        db: Session,
        app_base_url: str,
        storage: ObjectStorage | None = None,
        passes_bucket: str = "passes",
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.app_base_url = app_base_url
        self.storage = storage
        self.passes_bucket = passes_bucket
        self.clock = clock
        self.event_pass_repository = EventPassRepository(db)
        self.event_repository = EventRepository(db)

    def issue_pass(self, booking: Booking, upload_qr: bool = False) -> EventPass:
        pass_id = self._unused_pass_id()
        png = render_qr_png(build_verify_url(self.app_base_url, pass_id))

        qr_image_url = None
        if upload_qr and self.storage is not None:
            qr_image_url = self._upload_qr(png, booking.event_id, pass_id)
        if qr_image_url is None:
            qr_image_url = png_data_url(png)

        event_pass = self.event_pass_repository.create_pass(
            booking_id=booking.id,
            event_id=booking.event_id,
            pass_id=pass_id,
            qr_image_url=qr_image_url,
        )
        self.event_repository.record_pass_issued(booking.event_id)

        logger.info("Event pass issued pass_id=%s booking=%s", pass_id, booking.id)
        return event_pass

    def check_in(self, pass_id: str, admin_email: str) -> CheckInResult:
        found = self.event_pass_repository.get_with_context(pass_id)
        if not found:
            raise NotFoundError("Pass not found")
        event_pass, booking, event = found

        if booking.status != BookingStatus.CONFIRMED:
            raise InvalidStateError(
                f"Cannot check in - booking status is {BookingStatus(booking.status).value}"
            )

        if event_pass.check_in_status == CheckInStatus.CHECKED_IN:
            return CheckInResult(
                pass_id=event_pass.pass_id,
                attendee_name=booking.name,
                event_title=event.title,
                check_in_time=event_pass.check_in_time,
                already_checked_in=True,
            )

        checked_in_at = self.clock()
        self.event_pass_repository.mark_checked_in(event_pass, checked_in_at, admin_email)
        logger.info("Pass checked in pass_id=%s by=%s", pass_id, admin_email)

        return CheckInResult(
            pass_id=event_pass.pass_id,
            attendee_name=booking.name,
            event_title=event.title,
            check_in_time=checked_in_at,
            already_checked_in=False,
        )

    def verify_pass(self, pass_id: str) -> PassVerification | None:
        found = self.event_pass_repository.get_with_context(pass_id)
        if not found:
            return None
        event_pass, booking, event = found
        return PassVerification(event_pass=event_pass, booking=booking, event=event)

    def list_passes(self, event_id: str | None = None) -> list[PassVerification]:
        return [
            PassVerification(event_pass=event_pass, booking=booking, event=event)
            for event_pass, booking, event in self.event_pass_repository.list_with_context(event_id)
        ]

    def _unused_pass_id(self) -> str:
        for _ in range(MAX_PASS_ID_ATTEMPTS):
            candidate = generate_pass_id()
            if not self.event_pass_repository.pass_id_exists(candidate):
                return candidate
            logger.warning("Pass id collision on %s; drawing another", candidate)
        raise RuntimeError("Could not allocate a unique pass id")

    def _upload_qr(self, png: bytes, event_id: str, pass_id: str) -> str | None:
        key = f"event-passes/{event_id}/{pass_id}.png"
        try:
            return self.storage.upload(self.passes_bucket, key, png, "image/png")
        except StorageError:
            # The pass stays valid with an inline QR image.
            logger.error("QR upload failed for pass_id=%s; storing inline image", pass_id)
            return None
