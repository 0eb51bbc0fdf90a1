# oss_booking/infrastructure/repositories/notification_repository.py

from sqlalchemy import select
from sqlalchemy.orm import Session

from oss_booking.infrastructure.db.models import NotificationLog

WHATSAPP = "WHATSAPP"


class NotificationRepository:
    """
    Records outbound notification attempts. Delivery belongs to an
    external messaging service; rows start out PENDING.
    """

    def __init__(self, db: Session):
        self.db = db

    def log_pending(
        self,
        template_name: str,
        to: str,
        booking_id: str | None = None,
        channel: str = WHATSAPP,
    ) -> NotificationLog:
        entry = NotificationLog(
            booking_id=booking_id,
            channel=channel,
            template_name=template_name,
            to=to,
            status="PENDING",
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_for_booking(self, booking_id: str) -> list[NotificationLog]:
        stmt = (
            select(NotificationLog)
            .where(NotificationLog.booking_id == booking_id)
            .order_by(NotificationLog.created_at)
        )
        return list(self.db.execute(stmt).scalars().all())
