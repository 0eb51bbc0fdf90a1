# oss_booking/api/schemas/schemas.py

from datetime import datetime
from typing import Annotated, Any, ClassVar, Generic, Literal, TypeVar

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
    field_validator,
)
from pydantic.alias_generators import to_camel

from oss_booking.api.schemas.validators import ensure_pass_id, ensure_uuid, normalize_phone
from oss_booking.domain.clock import as_utc
from oss_booking.domain.state_machine import (
    BookingStatus,
    BookingType,
    CheckInStatus,
    PaymentStatus,
    SpaceRequestStatus,
)

T = TypeVar("T")

UtcDateTime = Annotated[datetime, AfterValidator(as_utc)]
TrimmedName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=100)]
ShortText = Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)]
SlotLabel = Annotated[str, StringConstraints(strip_whitespace=True, max_length=100)]


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Envelope(CamelModel, Generic[T]):
    success: bool = True
    data: T


def _lower_email(value: str) -> str:
    if len(value) > 254:
        raise ValueError("Email must be at most 254 characters")
    return value.lower()


# --- public requests ---


class CreateBookingRequest(CamelModel):
    type: BookingType
    name: TrimmedName
    phone: str
    email: EmailStr
    class_session_id: str | None = None
    event_id: str | None = None
    preferred_slots: Annotated[list[SlotLabel], Field(max_length=10)] | None = None
    notes: ShortText | None = None
    purpose: ShortText | None = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return normalize_phone(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _lower_email(v)

    @field_validator("class_session_id")
    @classmethod
    def validate_class_session_id(cls, v: str | None) -> str | None:
        return None if v is None else ensure_uuid(v, "classSessionId")

    @field_validator("event_id")
    @classmethod
    def validate_event_id(cls, v: str | None) -> str | None:
        return None if v is None else ensure_uuid(v, "eventId")


class BookingIdRequest(CamelModel):
    booking_id: str

    @field_validator("booking_id")
    @classmethod
    def validate_booking_id(cls, v: str) -> str:
        return ensure_uuid(v, "bookingId")


# --- public responses ---


class BookingCreatedOut(CamelModel):
    booking_id: str
    type: BookingType
    amount: int
    requires_payment: bool


class OrderOut(CamelModel):
    order_id: str
    key_id: str
    amount: int
    currency: str
    booking_id: str
    customer_name: str
    customer_email: str
    customer_phone: str


class ClassSessionOut(CamelModel):
    id: str
    title: str
    description: str | None = None
    image_url: str | None = None
    starts_at: UtcDateTime
    duration: int
    capacity: int
    spots_booked: int
    price_paise: int
    active: bool
    created_at: UtcDateTime | None = None
    updated_at: UtcDateTime | None = None


class AdminClassSessionOut(ClassSessionOut):
    booking_count: int = 0


class EventOut(CamelModel):
    id: str
    title: str
    description: str | None = None
    image_url: str | None = None
    starts_at: UtcDateTime
    venue: str
    price_paise: int
    capacity: int | None = None
    passes_issued: int
    active: bool
    created_at: UtcDateTime | None = None
    updated_at: UtcDateTime | None = None


class AdminEventOut(EventOut):
    booking_count: int = 0
    check_ins: int = 0


class SpaceRequestOut(CamelModel):
    id: str
    name: str
    phone: str
    email: str
    preferred_slots: list[str]
    purpose: str | None = None
    notes: str | None = None
    status: SpaceRequestStatus
    admin_notes: str | None = None
    created_at: UtcDateTime | None = None
    updated_at: UtcDateTime | None = None


class EventPassOut(CamelModel):
    id: str
    pass_id: str
    event_id: str
    qr_image_url: str
    check_in_status: CheckInStatus
    check_in_time: UtcDateTime | None = None
    checked_in_by: str | None = None
    created_at: UtcDateTime | None = None


class PaymentOut(CamelModel):
    id: str
    provider: str
    razorpay_order_id: str
    razorpay_payment_id: str | None = None
    status: PaymentStatus
    amount_paise: int
    currency: str
    created_at: UtcDateTime | None = None


class BookingOut(CamelModel):
    id: str
    type: BookingType
    status: BookingStatus
    name: str
    phone: str
    email: str
    amount_paise: int
    currency: str
    class_session_id: str | None = None
    event_id: str | None = None
    space_request_id: str | None = None
    created_at: UtcDateTime | None = None
    updated_at: UtcDateTime | None = None


class BookingDetailOut(BookingOut):
    class_session: ClassSessionOut | None = None
    event: EventOut | None = None
    space_request: SpaceRequestOut | None = None
    event_pass: EventPassOut | None = None
    payment: PaymentOut | None = None


class DevConfirmOut(CamelModel):
    booking_id: str
    status: BookingStatus
    pass_id: str | None = None
    qr_image_url: str | None = None
    verify_url: str | None = None
    message: str


class WebhookAckOut(CamelModel):
    received: bool = True
    processed: bool = False
    skipped: bool = False


class PassSummaryOut(CamelModel):
    id: str
    pass_id: str
    check_in_status: CheckInStatus
    check_in_time: UtcDateTime | None = None


class PassEventOut(CamelModel):
    id: str
    title: str
    starts_at: UtcDateTime
    venue: str


class PassVerificationOut(CamelModel):
    valid: bool
    event_pass: PassSummaryOut | None = Field(default=None, alias="pass")
    event: PassEventOut | None = None
    attendee_name: str | None = None
    booking_status: BookingStatus | None = None


# --- admin requests ---


class AdminLoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=200)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _lower_email(v)


class CheckInRequest(CamelModel):
    pass_id: str

    @field_validator("pass_id")
    @classmethod
    def validate_pass_id(cls, v: str) -> str:
        return ensure_pass_id(v)


class ClassCreateRequest(CamelModel):
    title: Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=100)]
    description: Annotated[str, StringConstraints(max_length=500)] | None = None
    image_url: Annotated[str, StringConstraints(max_length=2048)] | None = None
    starts_at: UtcDateTime
    duration: int = Field(default=60, ge=15, le=480)
    capacity: int = Field(ge=1, le=100)
    price_paise: int = Field(ge=0)
    active: bool = True


class _PartialUpdate(CamelModel):
    id: str

    # Explicit nulls are only meaningful for columns that may be empty.
    NULLABLE: ClassVar[frozenset[str]] = frozenset()

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        return ensure_uuid(v, "id")

    def changes(self) -> dict[str, Any]:
        provided = self.model_dump(exclude_unset=True, exclude={"id"})
        return {
            name: value
            for name, value in provided.items()
            if value is not None or name in self.NULLABLE
        }


class ClassUpdateRequest(_PartialUpdate):
    NULLABLE: ClassVar[frozenset[str]] = frozenset({"description", "image_url"})

    title: Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=100)] | None = None
    description: Annotated[str, StringConstraints(max_length=500)] | None = None
    image_url: Annotated[str, StringConstraints(max_length=2048)] | None = None
    starts_at: UtcDateTime | None = None
    duration: int | None = Field(default=None, ge=15, le=480)
    capacity: int | None = Field(default=None, ge=1, le=100)
    price_paise: int | None = Field(default=None, ge=0)
    active: bool | None = None


class EventCreateRequest(CamelModel):
    title: Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=100)]
    description: Annotated[str, StringConstraints(max_length=1000)] | None = None
    image_url: Annotated[str, StringConstraints(max_length=2048)] | None = None
    starts_at: UtcDateTime
    venue: Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=200)]
    price_paise: int = Field(ge=0)
    capacity: int | None = Field(default=None, ge=1, le=10000)
    active: bool = True


class EventUpdateRequest(_PartialUpdate):
    NULLABLE: ClassVar[frozenset[str]] = frozenset({"description", "image_url", "capacity"})

    title: Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=100)] | None = None
    description: Annotated[str, StringConstraints(max_length=1000)] | None = None
    image_url: Annotated[str, StringConstraints(max_length=2048)] | None = None
    starts_at: UtcDateTime | None = None
    venue: Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=200)] | None = None
    price_paise: int | None = Field(default=None, ge=0)
    capacity: int | None = Field(default=None, ge=1, le=10000)
    active: bool | None = None


class SpaceRequestUpdateRequest(CamelModel):
    request_id: str
    status: Literal["APPROVED", "DECLINED", "CONFIRMED", "CANCELLED", "REQUESTED"]
    admin_notes: Annotated[str, StringConstraints(max_length=500)] | None = None

    @field_validator("request_id")
    @classmethod
    def validate_request_id(cls, v: str) -> str:
        return ensure_uuid(v, "requestId")


class ImageUploadRequest(CamelModel):
    image: str = Field(min_length=1)
    file_name: str = Field(min_length=1, max_length=255)
    folder: str = "classes"


# --- admin responses ---


class AdminSessionOut(CamelModel):
    email: str
    authenticated: bool = True


class CheckInOut(CamelModel):
    pass_id: str
    attendee_name: str
    event_title: str
    check_in_time: UtcDateTime | None = None
    already_checked_in: bool


class AdminBookingRow(BookingOut):
    class_title: str | None = None
    event_title: str | None = None
    payment_status: PaymentStatus | None = None
    razorpay_payment_id: str | None = None
    pass_id: str | None = None
    check_in_status: CheckInStatus | None = None


class BookingPageOut(CamelModel):
    bookings: list[AdminBookingRow]
    total: int
    page: int
    total_pages: int


class AdminPassRow(CamelModel):
    id: str
    pass_id: str
    check_in_status: CheckInStatus
    check_in_time: UtcDateTime | None = None
    checked_in_by: str | None = None
    event_title: str
    event_date: UtcDateTime
    attendee_name: str
    attendee_email: str
    attendee_phone: str
    created_at: UtcDateTime | None = None


class LinkedBookingOut(CamelModel):
    id: str
    status: BookingStatus


class AdminSpaceRequestRow(SpaceRequestOut):
    booking: LinkedBookingOut | None = None


class UploadedImageOut(CamelModel):
    url: str
    path: str
