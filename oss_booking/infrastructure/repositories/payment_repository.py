# oss_booking/infrastructure/repositories/payment_repository.py

from sqlalchemy import select
from sqlalchemy.orm import Session

from oss_booking.domain.state_machine import PaymentStatus
from oss_booking.infrastructure.db.models import Payment


class PaymentRepository:

    def __init__(self, db: Session):
        self.db = db

    def latest_for_booking(self, booking_id: str) -> Payment | None:
        stmt = (
            select(Payment)
            .where(Payment.booking_id == booking_id)
            .order_by(Payment.created_at.desc())
            .limit(1)
        )
        return self.db.execute(stmt).scalars().first()

    def get_by_order_id(self, order_id: str) -> Payment | None:
        stmt = select(Payment).where(Payment.razorpay_order_id == order_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def create_payment(
        self,
        booking_id: str,
        order_id: str,
        amount_paise: int,
        currency: str,
        provider: str = "RAZORPAY",
    ) -> Payment:
        payment = Payment(
            booking_id=booking_id,
            provider=provider,
            razorpay_order_id=order_id,
            status=PaymentStatus.CREATED,
            amount_paise=amount_paise,
            currency=currency,
        )
        self.db.add(payment)
        self.db.flush()
        return payment

    def mark(
        self,
        payment: Payment,
        status: PaymentStatus,
        provider_payment_id: str,
        webhook_event_id: str,
        raw_payload: dict | None = None,
    ) -> None:
        payment.status = status
        payment.razorpay_payment_id = provider_payment_id
        payment.webhook_event_id = webhook_event_id
        if raw_payload is not None:
            payment.raw_payload = raw_payload
        self.db.flush()

    def latest_for_bookings(self, booking_ids: list[str]) -> dict[str, Payment]:
        if not booking_ids:
            return {}
        stmt = (
            select(Payment)
            .where(Payment.booking_id.in_(booking_ids))
            .order_by(Payment.created_at)
        )
        latest: dict[str, Payment] = {}
        for payment in self.db.execute(stmt).scalars().all():
            latest[payment.booking_id] = payment
        return latest
