# oss_booking/domain/state_machine.py

from enum import Enum
from typing import Dict, Set

from oss_booking.domain.exceptions import InvalidStateTransitionError


class BookingType(str, Enum):
    CLASS = "CLASS"
    EVENT = "EVENT"
    SPACE = "SPACE"


class BookingStatus(str, Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    CONFIRMED = "CONFIRMED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    REQUESTED = "REQUESTED"
    APPROVED = "APPROVED"


class PaymentStatus(str, Enum):
    CREATED = "CREATED"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class SpaceRequestStatus(str, Enum):
    REQUESTED = "REQUESTED"
    APPROVED_CALL_SCHEDULED = "APPROVED_CALL_SCHEDULED"
    DECLINED = "DECLINED"
    CONFIRMED = "CONFIRMED"
    NOT_PROCEEDING = "NOT_PROCEEDING"


class CheckInStatus(str, Enum):
    NOT_CHECKED_IN = "NOT_CHECKED_IN"
    CHECKED_IN = "CHECKED_IN"


# Marker recorded as the "from" side of a booking's first history row.
INITIAL_STATUS = "NONE"

# Labels the admin console sends, mapped onto stored space request states.
SPACE_REQUEST_ADMIN_LABELS: Dict[str, SpaceRequestStatus] = {
    "APPROVED": SpaceRequestStatus.APPROVED_CALL_SCHEDULED,
    "DECLINED": SpaceRequestStatus.DECLINED,
    "CONFIRMED": SpaceRequestStatus.CONFIRMED,
    "CANCELLED": SpaceRequestStatus.NOT_PROCEEDING,
    "REQUESTED": SpaceRequestStatus.REQUESTED,
}


def initial_status_for(booking_type: BookingType) -> BookingStatus:
    """SPACE requests need no up-front payment; everything else waits for one."""
    if booking_type == BookingType.SPACE:
        return BookingStatus.CONFIRMED
    return BookingStatus.PENDING_PAYMENT


class BookingStateMachine:
    """
    Central lifecycle controller for booking transitions.
    Defines the legal state transitions.
    """

    _ALLOWED_TRANSITIONS: Dict[BookingStatus, Set[BookingStatus]] = {
        BookingStatus.PENDING_PAYMENT: {
            BookingStatus.CONFIRMED,
            BookingStatus.PAYMENT_FAILED,
            BookingStatus.CANCELLED,
            BookingStatus.EXPIRED,
        },
        BookingStatus.REQUESTED: {
            BookingStatus.APPROVED,
            BookingStatus.CANCELLED,
        },
        BookingStatus.APPROVED: {
            BookingStatus.CONFIRMED,
            BookingStatus.CANCELLED,
        },
        BookingStatus.CONFIRMED: {
            BookingStatus.CANCELLED,
        },
        BookingStatus.PAYMENT_FAILED: set(),
        BookingStatus.CANCELLED: set(),
        BookingStatus.EXPIRED: set(),
    }

    @classmethod
    def can_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> bool:
        """
        Returns True if transition is allowed.
        """
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)

        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> None:
        """
        Raises InvalidStateTransitionError if transition is illegal.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
            )

    @classmethod
    def is_terminal(cls, status: BookingStatus) -> bool:
        cls._ensure_valid_status(status)
        return len(cls._ALLOWED_TRANSITIONS.get(status, set())) == 0

    @classmethod
    def get_allowed_transitions(
        cls, status: BookingStatus
    ) -> Set[BookingStatus]:
        cls._ensure_valid_status(status)
        return cls._ALLOWED_TRANSITIONS.get(status, set())

    @staticmethod
    def _ensure_valid_status(status: BookingStatus) -> None:
        if not isinstance(status, BookingStatus):
            raise TypeError(
                f"Expected BookingStatus, got {type(status)}"
            )
