# oss_booking/application/lifecycle.py

from oss_booking.domain.state_machine import BookingStateMachine, BookingStatus
from oss_booking.infrastructure.db.models import Booking
from oss_booking.infrastructure.repositories.booking_repository import BookingRepository

SYSTEM_ACTOR = "SYSTEM"


def transition_booking(
    booking_repository: BookingRepository,
    booking: Booking,
    to_status: BookingStatus,
    changed_by: str = SYSTEM_ACTOR,
    reason: str | None = None,
) -> None:
    """
    Move a booking to a new status and append the matching history row.
    Raises InvalidStateTransitionError for moves the state machine rejects.
    """
    from_status = BookingStatus(booking.status)
    BookingStateMachine.validate_transition(from_status, to_status)

    booking_repository.update_status(booking, to_status)
    booking_repository.add_history(
        booking_id=booking.id,
        from_status=from_status.value,
        to_status=to_status.value,
        changed_by=changed_by,
        reason=reason,
    )
