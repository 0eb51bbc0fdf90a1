# oss_booking/api/routes/public.py

import json
import logging
from typing import TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from oss_booking.api.deps import (
    client_ip,
    get_db,
    get_pass_service,
    get_payment_service,
    get_settings,
    rate_limited,
)
from oss_booking.api.schemas.schemas import (
    BookingCreatedOut,
    BookingDetailOut,
    BookingIdRequest,
    ClassSessionOut,
    CreateBookingRequest,
    Envelope,
    EventOut,
    EventPassOut,
    OrderOut,
    PassEventOut,
    PassSummaryOut,
    PassVerificationOut,
    PaymentOut,
    SpaceRequestOut,
    WebhookAckOut,
)
from oss_booking.api.schemas.validators import ensure_uuid
from oss_booking.application.booking_service import BookingDetails, BookingRequest, BookingService
from oss_booking.application.catalog_service import CatalogService
from oss_booking.application.pass_service import PassService
from oss_booking.application.payment_service import PaymentService
from oss_booking.config import Settings
from oss_booking.domain.exceptions import RequestValidationFailed, SignatureVerificationFailed
from oss_booking.domain.passes import is_valid_pass_id
from oss_booking.infrastructure.payment_gateway import verify_webhook_signature
from oss_booking.infrastructure.rate_limit import RATE_LIMITS
from oss_booking.security import INVALID_SIGNATURE, log_security_event

router = APIRouter(prefix="/api")
logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _optional(model: type[M], obj) -> M | None:
    return None if obj is None else model.model_validate(obj)


def _booking_detail(details: BookingDetails) -> BookingDetailOut:
    return BookingDetailOut.model_validate(details.booking).model_copy(
        update={
            "class_session": _optional(ClassSessionOut, details.class_session),
            "event": _optional(EventOut, details.event),
            "space_request": _optional(SpaceRequestOut, details.space_request),
            "event_pass": _optional(EventPassOut, details.event_pass),
            "payment": _optional(PaymentOut, details.latest_payment),
        }
    )


async def raw_body(request: Request) -> bytes:
    return await request.body()


@router.post(
    "/createBooking",
    response_model=Envelope[BookingCreatedOut],
    dependencies=[Depends(rate_limited("createBooking", RATE_LIMITS.BOOKING_CREATE))],
)
def create_booking(
    request: CreateBookingRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    service = BookingService(db, hold_minutes=settings.booking_hold_minutes)
    created = service.create_booking(
        BookingRequest(
            type=request.type,
            name=request.name,
            phone=request.phone,
            email=request.email,
            class_session_id=request.class_session_id,
            event_id=request.event_id,
            preferred_slots=request.preferred_slots or [],
            notes=request.notes,
            purpose=request.purpose,
        )
    )
    return Envelope(
        data=BookingCreatedOut(
            booking_id=created.booking_id,
            type=created.type,
            amount=created.amount,
            requires_payment=created.requires_payment,
        )
    )


@router.post(
    "/createRazorpayOrder",
    response_model=Envelope[OrderOut],
    dependencies=[Depends(rate_limited("order", RATE_LIMITS.ORDER_CREATE))],
)
def create_razorpay_order(
    request: BookingIdRequest,
    payment_service: PaymentService = Depends(get_payment_service),
):
    order = payment_service.create_order(request.booking_id)
    return Envelope(
        data=OrderOut(
            order_id=order.order_id,
            key_id=order.key_id,
            amount=order.amount,
            currency=order.currency,
            booking_id=order.booking_id,
            customer_name=order.customer_name,
            customer_email=order.customer_email,
            customer_phone=order.customer_phone,
        )
    )


@router.get(
    "/getBooking",
    response_model=Envelope[BookingDetailOut],
    dependencies=[Depends(rate_limited("getBooking", RATE_LIMITS.BOOKING_READ))],
)
def get_booking(
    booking_id: str | None = Query(default=None, alias="bookingId"),
    db: Session = Depends(get_db),
):
    if not booking_id:
        raise RequestValidationFailed("bookingId is required")
    try:
        booking_id = ensure_uuid(booking_id, "bookingId")
    except ValueError as exc:
        raise RequestValidationFailed(str(exc)) from exc

    details = BookingService(db).get_booking(booking_id)
    return Envelope(data=_booking_detail(details))


@router.get(
    "/getClasses",
    response_model=Envelope[list[ClassSessionOut]],
    dependencies=[Depends(rate_limited("getClasses", RATE_LIMITS.PUBLIC_READ))],
)
def get_classes(
    include_inactive: bool = Query(default=False, alias="includeInactive"),
    db: Session = Depends(get_db),
):
    classes = CatalogService(db).list_classes(include_inactive=include_inactive)
    return Envelope(data=[ClassSessionOut.model_validate(item) for item in classes])


@router.get(
    "/getEvents",
    response_model=Envelope[list[EventOut]],
    dependencies=[Depends(rate_limited("getEvents", RATE_LIMITS.PUBLIC_READ))],
)
def get_events(
    include_inactive: bool = Query(default=False, alias="includeInactive"),
    db: Session = Depends(get_db),
):
    events = CatalogService(db).list_events(include_inactive=include_inactive)
    return Envelope(data=[EventOut.model_validate(item) for item in events])


@router.get(
    "/verifyPass",
    response_model=Envelope[PassVerificationOut],
    dependencies=[Depends(rate_limited("verifyPass", RATE_LIMITS.PUBLIC_READ))],
)
def verify_pass(
    pass_id: str | None = Query(default=None, alias="passId"),
    pass_service: PassService = Depends(get_pass_service),
):
    if not is_valid_pass_id(pass_id):
        raise RequestValidationFailed("Invalid pass ID format")

    verification = pass_service.verify_pass(pass_id)
    if verification is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"success": True, "data": {"valid": False}},
        )

    return Envelope(
        data=PassVerificationOut(
            valid=verification.valid,
            event_pass=PassSummaryOut.model_validate(verification.event_pass),
            event=PassEventOut.model_validate(verification.event),
            attendee_name=verification.booking.name,
            booking_status=verification.booking.status,
        )
    )


@router.post("/razorpayWebhook", response_model=Envelope[WebhookAckOut])
def razorpay_webhook(
    request: Request,
    body: bytes = Depends(raw_body),
    settings: Settings = Depends(get_settings),
    payment_service: PaymentService = Depends(get_payment_service),
):
    secret = settings.razorpay_webhook_secret
    if not secret:
        logger.error("RAZORPAY_WEBHOOK_SECRET is not set; refusing webhook delivery")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server configuration error",
        )

    signature = request.headers.get("x-razorpay-signature", "")
    try:
        verify_webhook_signature(body.decode("utf-8", errors="replace"), signature, secret)
    except SignatureVerificationFailed:
        log_security_event(
            INVALID_SIGNATURE,
            endpoint="razorpayWebhook",
            hasSignature=bool(signature),
            ip=client_ip(request),
        )
        raise

    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise RequestValidationFailed("Invalid JSON body") from exc
    if not isinstance(payload, dict):
        raise RequestValidationFailed("Invalid JSON body")

    outcome = payment_service.handle_webhook(payload)
    return Envelope(data=WebhookAckOut(processed=outcome.processed, skipped=outcome.skipped))

