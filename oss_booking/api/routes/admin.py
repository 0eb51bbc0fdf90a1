# oss_booking/api/routes/admin.py

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from oss_booking.api.deps import (
    ADMIN_COOKIE,
    client_ip,
    get_admin_auth_service,
    get_db,
    get_pass_service,
    get_settings,
    get_storage,
    rate_limited,
    require_admin,
)
from oss_booking.api.schemas.schemas import (
    AdminBookingRow,
    AdminClassSessionOut,
    AdminEventOut,
    AdminLoginRequest,
    AdminPassRow,
    AdminSessionOut,
    AdminSpaceRequestRow,
    BookingPageOut,
    CheckInOut,
    CheckInRequest,
    ClassCreateRequest,
    ClassSessionOut,
    ClassUpdateRequest,
    Envelope,
    EventCreateRequest,
    EventOut,
    EventUpdateRequest,
    ImageUploadRequest,
    LinkedBookingOut,
    SpaceRequestOut,
    SpaceRequestUpdateRequest,
    UploadedImageOut,
)
from oss_booking.api.schemas.validators import ensure_uuid
from oss_booking.application.admin_auth_service import AdminAuthService
from oss_booking.application.booking_service import BookingService
from oss_booking.application.catalog_service import CatalogService
from oss_booking.application.image_upload_service import ImageUploadService
from oss_booking.application.pass_service import PassService
from oss_booking.application.space_request_service import SpaceRequestService
from oss_booking.config import Settings
from oss_booking.domain.clock import as_utc
from oss_booking.domain.exceptions import RequestValidationFailed
from oss_booking.domain.state_machine import BookingStatus, BookingType
from oss_booking.infrastructure.rate_limit import RATE_LIMITS
from oss_booking.infrastructure.repositories.booking_repository import BookingFilter
from oss_booking.infrastructure.storage import ObjectStorage

router = APIRouter(prefix="/api")
logger = logging.getLogger(__name__)


def _session_cookie(token: str, max_age: int, secure: bool) -> str:
    cookie = f"{ADMIN_COOKIE}={token}; Path=/; HttpOnly; SameSite=Strict; Max-Age={max_age}"
    if secure:
        cookie += "; Secure"
    return cookie


def _enum_or_none(enum_cls, value: str | None):
    # Unknown filter values fall back to "all".
    if value and value in enum_cls.__members__:
        return enum_cls(value)
    return None


# --- session ---


@router.post(
    "/adminAuth",
    response_model=Envelope[AdminSessionOut],
    dependencies=[Depends(rate_limited("login", RATE_LIMITS.LOGIN))],
)
def admin_login(
    body: AdminLoginRequest,
    request: Request,
    response: Response,
    settings: Settings = Depends(get_settings),
    auth_service: AdminAuthService = Depends(get_admin_auth_service),
):
    session = auth_service.login(body.email, body.password, client_ip=client_ip(request))
    response.headers["Set-Cookie"] = _session_cookie(
        session.token,
        max_age=settings.admin_session_hours * 3600,
        secure=settings.is_production,
    )
    return Envelope(data=AdminSessionOut(email=session.email))


@router.get("/adminAuth", response_model=Envelope[AdminSessionOut])
def admin_session(admin_email: str = Depends(require_admin)):
    return Envelope(data=AdminSessionOut(email=admin_email))


@router.delete("/adminAuth")
def admin_logout(
    request: Request,
    response: Response,
    settings: Settings = Depends(get_settings),
    auth_service: AdminAuthService = Depends(get_admin_auth_service),
):
    auth_service.logout(request.cookies.get(ADMIN_COOKIE))
    response.headers["Set-Cookie"] = _session_cookie("", max_age=0, secure=settings.is_production)
    return {"success": True, "data": {"loggedOut": True}}


# --- catalog ---


@router.post("/adminCreateClass", response_model=Envelope[ClassSessionOut])
def admin_create_class(
    body: ClassCreateRequest,
    admin_email: str = Depends(require_admin),
    db: Session = Depends(get_db),
):
    class_session = CatalogService(db).create_class(body.model_dump())
    logger.info("Class %s created by %s", class_session.id, admin_email)
    return Envelope(data=ClassSessionOut.model_validate(class_session))


@router.put("/adminUpdateClass", response_model=Envelope[ClassSessionOut])
def admin_update_class(
    body: ClassUpdateRequest,
    admin_email: str = Depends(require_admin),
    db: Session = Depends(get_db),
):
    class_session = CatalogService(db).update_class(body.id, body.changes())
    logger.info("Class %s updated by %s", class_session.id, admin_email)
    return Envelope(data=ClassSessionOut.model_validate(class_session))


@router.get("/adminListClasses", response_model=Envelope[list[AdminClassSessionOut]])
def admin_list_classes(
    _: str = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rows = CatalogService(db).list_classes_with_booking_counts()
    return Envelope(
        data=[
            AdminClassSessionOut.model_validate(class_session).model_copy(
                update={"booking_count": count}
            )
            for class_session, count in rows
        ]
    )


@router.post("/adminCreateEvent", response_model=Envelope[EventOut])
def admin_create_event(
    body: EventCreateRequest,
    admin_email: str = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = CatalogService(db).create_event(body.model_dump())
    logger.info("Event %s created by %s", event.id, admin_email)
    return Envelope(data=EventOut.model_validate(event))


@router.put("/adminUpdateEvent", response_model=Envelope[EventOut])
def admin_update_event(
    body: EventUpdateRequest,
    admin_email: str = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = CatalogService(db).update_event(body.id, body.changes())
    logger.info("Event %s updated by %s", event.id, admin_email)
    return Envelope(data=EventOut.model_validate(event))


@router.get("/adminListEvents", response_model=Envelope[list[AdminEventOut]])
def admin_list_events(
    _: str = Depends(require_admin),
    db: Session = Depends(get_db),
):
    stats = CatalogService(db).list_events_with_stats()
    return Envelope(
        data=[
            AdminEventOut.model_validate(item.event).model_copy(
                update={
                    "booking_count": item.booking_count,
                    "passes_issued": item.passes_issued,
                    "check_ins": item.check_ins,
                }
            )
            for item in stats
        ]
    )


# --- bookings ---


@router.get("/adminListBookings", response_model=Envelope[BookingPageOut])
def admin_list_bookings(
    page: int = Query(default=1),
    limit: int = Query(default=20),
    booking_type: str | None = Query(default=None, alias="type"),
    booking_status: str | None = Query(default=None, alias="status"),
    start_date: datetime | None = Query(default=None, alias="startDate"),
    end_date: datetime | None = Query(default=None, alias="endDate"),
    search: str | None = Query(default=None, max_length=100),
    _: str = Depends(require_admin),
    db: Session = Depends(get_db),
):
    filters = BookingFilter(
        type=_enum_or_none(BookingType, booking_type),
        status=_enum_or_none(BookingStatus, booking_status),
        start_date=as_utc(start_date),
        end_date=as_utc(end_date),
        search=search.strip() if search and search.strip() else None,
    )
    result = BookingService(db).list_bookings(filters, page=page, limit=limit)

    rows = []
    for item in result.items:
        payment = item.latest_payment
        event_pass = item.event_pass
        rows.append(
            AdminBookingRow.model_validate(item.booking).model_copy(
                update={
                    "class_title": item.class_title,
                    "event_title": item.event_title,
                    "payment_status": payment.status if payment else None,
                    "razorpay_payment_id": payment.razorpay_payment_id if payment else None,
                    "pass_id": event_pass.pass_id if event_pass else None,
                    "check_in_status": event_pass.check_in_status if event_pass else None,
                }
            )
        )

    return Envelope(
        data=BookingPageOut(
            bookings=rows,
            total=result.total,
            page=result.page,
            total_pages=result.total_pages,
        )
    )


# --- passes ---


@router.get("/adminListPasses", response_model=Envelope[list[AdminPassRow]])
def admin_list_passes(
    event_id: str | None = Query(default=None, alias="eventId"),
    _: str = Depends(require_admin),
    pass_service: PassService = Depends(get_pass_service),
):
    if event_id:
        try:
            event_id = ensure_uuid(event_id, "eventId")
        except ValueError as exc:
            raise RequestValidationFailed(str(exc)) from exc

    return Envelope(
        data=[
            AdminPassRow(
                id=entry.event_pass.id,
                pass_id=entry.event_pass.pass_id,
                check_in_status=entry.event_pass.check_in_status,
                check_in_time=entry.event_pass.check_in_time,
                checked_in_by=entry.event_pass.checked_in_by,
                event_title=entry.event.title,
                event_date=entry.event.starts_at,
                attendee_name=entry.booking.name,
                attendee_email=entry.booking.email,
                attendee_phone=entry.booking.phone,
                created_at=entry.event_pass.created_at,
            )
            for entry in pass_service.list_passes(event_id or None)
        ]
    )


@router.post("/adminCheckinPass", response_model=Envelope[CheckInOut])
def admin_checkin_pass(
    body: CheckInRequest,
    admin_email: str = Depends(require_admin),
    pass_service: PassService = Depends(get_pass_service),
):
    result = pass_service.check_in(body.pass_id, admin_email)
    return Envelope(
        data=CheckInOut(
            pass_id=result.pass_id,
            attendee_name=result.attendee_name,
            event_title=result.event_title,
            check_in_time=result.check_in_time,
            already_checked_in=result.already_checked_in,
        )
    )


# --- space requests ---


@router.get("/adminListSpaceRequests", response_model=Envelope[list[AdminSpaceRequestRow]])
def admin_list_space_requests(
    request_status: str | None = Query(default=None, alias="status"),
    _: str = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rows = SpaceRequestService(db).list_requests(request_status)
    return Envelope(
        data=[
            AdminSpaceRequestRow.model_validate(space_request).model_copy(
                update={
                    "booking": LinkedBookingOut.model_validate(booking) if booking else None,
                }
            )
            for space_request, booking in rows
        ]
    )


@router.post("/adminUpdateSpaceRequest", response_model=Envelope[SpaceRequestOut])
def admin_update_space_request(
    body: SpaceRequestUpdateRequest,
    admin_email: str = Depends(require_admin),
    db: Session = Depends(get_db),
):
    space_request = SpaceRequestService(db).update_request(
        body.request_id,
        body.status,
        admin_notes=body.admin_notes,
    )
    logger.info("Space request %s set to %s by %s", space_request.id, body.status, admin_email)
    return Envelope(data=SpaceRequestOut.model_validate(space_request))


# --- assets ---


@router.post("/adminUploadImage", response_model=Envelope[UploadedImageOut])
def admin_upload_image(
    body: ImageUploadRequest,
    admin_email: str = Depends(require_admin),
    settings: Settings = Depends(get_settings),
    storage: ObjectStorage | None = Depends(get_storage),
):
    uploaded = ImageUploadService(storage, bucket=settings.storage_assets_bucket).upload(
        body.image,
        body.file_name,
        folder=body.folder,
    )
    logger.info("Image uploaded path=%s by %s", uploaded.path, admin_email)
    return Envelope(data=UploadedImageOut(url=uploaded.url, path=uploaded.path))
