

class BookingPlatformError(Exception):
    """
    Base exception for all domain-level errors
    inside the booking platform.
    """


class RequestValidationFailed(BookingPlatformError):
    """Raised when input passes schema checks but breaks a business rule."""


class NotFoundError(BookingPlatformError):
    """Raised when a referenced entity does not exist."""


class InvalidStateError(BookingPlatformError):
    """Raised when an operation is not valid for the entity's current status."""


class InactiveError(InvalidStateError):
    """Raised when booking an inventory item that has been deactivated."""


class FullError(InvalidStateError):
    """Raised when a class session has no spots left."""


class InvalidStateTransitionError(InvalidStateError):
    """
    Raised when an illegal booking state transition is attempted.
    """

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(message)


class AuthenticationError(BookingPlatformError):
    """Base for every 401 condition. The message is never shown to clients."""


class NotAuthenticatedError(AuthenticationError):
    """No token, or a token that does not look like one of ours."""


class InvalidSessionError(AuthenticationError):
    """Token is well formed but unknown."""


class SessionExpiredError(AuthenticationError):
    """Token matched a session whose expiry has passed."""


class InvalidCredentialsError(AuthenticationError):
    """Login rejected: email not allowed or password mismatch."""


class SignatureVerificationFailed(AuthenticationError):
    """Shared secret or webhook signature did not match."""


class RateLimitedError(BookingPlatformError):
    """Raised when a client exceeds the request limit for an operation."""


class StorageError(BookingPlatformError):
    """Raised when the object store rejects an upload."""
