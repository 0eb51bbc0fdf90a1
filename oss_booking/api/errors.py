# oss_booking/api/errors.py

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from oss_booking.domain.exceptions import (
    AuthenticationError,
    BookingPlatformError,
    InvalidCredentialsError,
    InvalidStateError,
    NotFoundError,
    RateLimitedError,
    RequestValidationFailed,
    StorageError,
)

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = "60"

_HTTP_MESSAGES = {
    status.HTTP_404_NOT_FOUND: "Not found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "Method not allowed",
}


def error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message},
        headers=headers,
    )


def first_validation_message(exc: RequestValidationError) -> str:
    """Message of the first violated rule, in the shape the booking forms display."""
    errors = exc.errors()
    if not errors:
        return "Validation error"

    error = errors[0]
    if error.get("type") == "json_invalid":
        return "Invalid JSON body"

    message = error.get("msg") or "Validation error"
    if error.get("type") == "value_error":
        return message.removeprefix("Value error, ")

    field = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query"))
    return f"{field}: {message}" if field else message


async def platform_error_handler(request: Request, exc: BookingPlatformError) -> JSONResponse:
    if isinstance(exc, AuthenticationError):
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
        message = "Invalid credentials" if isinstance(exc, InvalidCredentialsError) else "Unauthorized"
        return error_response(status.HTTP_401_UNAUTHORIZED, message)

    if isinstance(exc, RateLimitedError):
        return error_response(
            status.HTTP_429_TOO_MANY_REQUESTS,
            str(exc),
            headers={"Retry-After": RETRY_AFTER_SECONDS},
        )

    if isinstance(exc, NotFoundError):
        return error_response(status.HTTP_404_NOT_FOUND, str(exc))

    if isinstance(exc, (RequestValidationFailed, InvalidStateError)):
        return error_response(status.HTTP_400_BAD_REQUEST, str(exc))

    if isinstance(exc, StorageError):
        logger.error("Storage failure on %s: %s", request.url.path, exc)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to upload file")

    logger.error("Unhandled platform error on %s: %s", request.url.path, exc)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(status.HTTP_400_BAD_REQUEST, first_validation_message(exc))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = _HTTP_MESSAGES.get(exc.status_code)
    if message is None:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unexpected error on %s %s", request.method, request.url.path)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingPlatformError, platform_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
