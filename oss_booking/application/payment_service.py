# oss_booking/application/payment_service.py

import logging
import time
from dataclasses import dataclass

from sqlalchemy.orm import Session

from oss_booking.application.lifecycle import transition_booking
from oss_booking.application.pass_service import PassService
from oss_booking.domain.exceptions import (
    InvalidStateError,
    NotFoundError,
    RequestValidationFailed,
)
from oss_booking.domain.state_machine import BookingStatus, BookingType, PaymentStatus
from oss_booking.infrastructure.db.models import Booking, EventPass, Payment
from oss_booking.infrastructure.payment_gateway import OrderGateway
from oss_booking.infrastructure.repositories.booking_repository import BookingRepository
from oss_booking.infrastructure.repositories.inventory_repository import ClassSessionRepository
from oss_booking.infrastructure.repositories.notification_repository import (
    NotificationRepository,
)
from oss_booking.infrastructure.repositories.payment_repository import PaymentRepository
from oss_booking.security import SUSPICIOUS_REQUEST, log_security_event

logger = logging.getLogger(__name__)

EVENT_CONFIRMED_TEMPLATE = "booking_event_confirmed"
CLASS_CONFIRMED_TEMPLATE = "booking_class_confirmed"


@dataclass
class OrderCreated:
    order_id: str
    key_id: str
    amount: int
    currency: str
    booking_id: str
    customer_name: str
    customer_email: str
    customer_phone: str


@dataclass
class PaymentConfirmed:
    booking_id: str
    status: BookingStatus
    event_pass: EventPass | None = None


@dataclass
class WebhookOutcome:
    processed: bool = False
    skipped: bool = False


def _millis() -> int:
    return int(time.time() * 1000)


class PaymentService:
    """
    Order creation and payment confirmation.
    The dev confirm path and the provider webhook share one confirmation routine.
    """

    def __init__(self, db: Session, gateway: OrderGateway, pass_service: PassService):
        self.db = db
        self.gateway = gateway
        self.pass_service = pass_service
        self.booking_repository = BookingRepository(db)
        self.payment_repository = PaymentRepository(db)
        self.class_session_repository = ClassSessionRepository(db)
        self.notification_repository = NotificationRepository(db)

    def create_order(self, booking_id: str) -> OrderCreated:
        booking = self._get_booking(booking_id)
        if booking.status != BookingStatus.PENDING_PAYMENT:
            raise InvalidStateError(
                f"Cannot create order for booking with status: {BookingStatus(booking.status).value}"
            )

        order_id = self.gateway.create_order(
            amount_paise=booking.amount_paise,
            currency=booking.currency,
            receipt=booking.id,
            notes={"bookingId": booking.id, "type": BookingType(booking.type).value},
        )
        self.payment_repository.create_payment(
            booking_id=booking.id,
            order_id=order_id,
            amount_paise=booking.amount_paise,
            currency=booking.currency,
        )

        logger.info("Payment order created booking=%s order=%s", booking.id, order_id)
        return OrderCreated(
            order_id=order_id,
            key_id=self.gateway.key_id,
            amount=booking.amount_paise,
            currency=booking.currency,
            booking_id=booking.id,
            customer_name=booking.name,
            customer_email=booking.email,
            customer_phone=booking.phone,
        )

    def dev_confirm(self, booking_id: str) -> PaymentConfirmed:
        booking = self._get_booking(booking_id)
        if booking.status != BookingStatus.PENDING_PAYMENT:
            raise InvalidStateError(
                f"Booking status is {BookingStatus(booking.status).value}, not PENDING_PAYMENT"
            )

        payment = self.payment_repository.latest_for_booking(booking.id)
        if not payment:
            raise InvalidStateError("No payment record found. Create order first.")

        stamp = _millis()
        return self._confirm(
            booking,
            payment,
            provider_payment_id=f"pay_dev_{stamp}",
            webhook_event_id=f"evt_dev_{stamp}",
            raw_payload=None,
            reason="DEV MODE: Payment simulated",
            upload_qr=False,
        )

    def handle_webhook(self, payload: dict) -> WebhookOutcome:
        event_type = payload.get("event") or ""
        if not event_type.startswith("payment."):
            return WebhookOutcome()

        entity = (payload.get("payload") or {}).get("payment", {}).get("entity")
        if not entity:
            return WebhookOutcome()

        order_id = entity.get("order_id")
        provider_payment_id = entity.get("id")
        webhook_event_id = payload.get("event_id") or f"evt_{order_id}_{_millis()}"

        payment = self.payment_repository.get_by_order_id(order_id) if order_id else None
        if not payment:
            logger.error("Webhook for unknown order=%s", order_id)
            return WebhookOutcome()

        if payment.webhook_event_id and payment.webhook_event_id == payload.get("event_id"):
            logger.info("Webhook already processed event=%s", webhook_event_id)
            return WebhookOutcome(skipped=True)
        if provider_payment_id and payment.razorpay_payment_id == provider_payment_id:
            logger.info("Payment already processed payment=%s", provider_payment_id)
            return WebhookOutcome(skipped=True)

        self._check_amount(payment, entity)

        booking = self._get_booking(payment.booking_id)
        if booking.status != BookingStatus.PENDING_PAYMENT:
            logger.warning(
                "Booking %s is not pending payment, status: %s",
                booking.id,
                BookingStatus(booking.status).value,
            )
            return WebhookOutcome(skipped=True)
        if payment.status != PaymentStatus.CREATED:
            logger.warning(
                "Payment %s already processed, status: %s",
                payment.id,
                PaymentStatus(payment.status).value,
            )
            return WebhookOutcome(skipped=True)

        if event_type == "payment.captured" or entity.get("status") == "captured":
            self._confirm(
                booking,
                payment,
                provider_payment_id=provider_payment_id,
                webhook_event_id=webhook_event_id,
                raw_payload=payload,
                reason="Payment successful",
                upload_qr=True,
            )
            return WebhookOutcome(processed=True)

        if event_type == "payment.failed":
            self.payment_repository.mark(
                payment,
                PaymentStatus.FAILED,
                provider_payment_id=provider_payment_id,
                webhook_event_id=webhook_event_id,
                raw_payload=payload,
            )
            transition_booking(
                self.booking_repository,
                booking,
                BookingStatus.PAYMENT_FAILED,
                reason="Payment failed",
            )
            logger.info("Payment failed booking=%s order=%s", booking.id, order_id)
            return WebhookOutcome(processed=True)

        return WebhookOutcome()

    def _confirm(
        self,
        booking: Booking,
        payment: Payment,
        provider_payment_id: str,
        webhook_event_id: str,
        raw_payload: dict | None,
        reason: str,
        upload_qr: bool,
    ) -> PaymentConfirmed:
        self.payment_repository.mark(
            payment,
            PaymentStatus.PAID,
            provider_payment_id=provider_payment_id,
            webhook_event_id=webhook_event_id,
            raw_payload=raw_payload,
        )
        transition_booking(
            self.booking_repository,
            booking,
            BookingStatus.CONFIRMED,
            reason=reason,
        )

        event_pass = None
        if booking.type == BookingType.EVENT and booking.event_id:
            event_pass = self.pass_service.issue_pass(booking, upload_qr=upload_qr)
            self.notification_repository.log_pending(
                EVENT_CONFIRMED_TEMPLATE,
                to=booking.phone,
                booking_id=booking.id,
            )

        if booking.type == BookingType.CLASS and booking.class_session_id:
            if not self.class_session_repository.try_book_spot(booking.class_session_id):
                logger.error(
                    "Class %s is at capacity; booking %s confirmed without a spot increment",
                    booking.class_session_id,
                    booking.id,
                )
            self.notification_repository.log_pending(
                CLASS_CONFIRMED_TEMPLATE,
                to=booking.phone,
                booking_id=booking.id,
            )

        logger.info("Booking confirmed id=%s payment=%s", booking.id, provider_payment_id)
        return PaymentConfirmed(
            booking_id=booking.id,
            status=BookingStatus.CONFIRMED,
            event_pass=event_pass,
        )

    def _check_amount(self, payment: Payment, entity: dict) -> None:
        amount = entity.get("amount")
        if amount != payment.amount_paise:
            log_security_event(
                SUSPICIOUS_REQUEST,
                type="amount_mismatch",
                expected=payment.amount_paise,
                received=amount,
                orderId=payment.razorpay_order_id,
            )
            raise RequestValidationFailed("Amount mismatch")

        currency = entity.get("currency")
        if currency and currency.upper() != payment.currency.upper():
            log_security_event(
                SUSPICIOUS_REQUEST,
                type="currency_mismatch",
                expected=payment.currency,
                received=currency,
                orderId=payment.razorpay_order_id,
            )
            raise RequestValidationFailed("Currency mismatch")

    def _get_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return booking
