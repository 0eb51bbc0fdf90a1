# oss_booking/api/deps.py

from typing import Callable

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from oss_booking.application.admin_auth_service import AdminAuthService
from oss_booking.application.pass_service import PassService
from oss_booking.application.payment_service import PaymentService
from oss_booking.config import Settings
from oss_booking.domain.exceptions import NotFoundError, RateLimitedError, SessionExpiredError
from oss_booking.infrastructure.payment_gateway import OrderGateway
from oss_booking.infrastructure.rate_limit import RateLimiter, RateLimitRule
from oss_booking.infrastructure.storage import ObjectStorage
from oss_booking.security import (
    AUTH_FAILURE,
    RATE_LIMIT,
    log_security_event,
    timing_safe_compare,
)

ADMIN_COOKIE = "admin_token"
DEV_SECRET_HEADER = "x-dev-secret"


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_order_gateway(request: Request) -> OrderGateway:
    return request.app.state.order_gateway


def get_storage(request: Request) -> ObjectStorage | None:
    return request.app.state.storage


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    for header in ("x-real-ip", "client-ip"):
        value = request.headers.get(header)
        if value:
            return value.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limited(operation: str, rule: RateLimitRule) -> Callable[..., None]:
    """Dependency enforcing a fixed-window request limit per operation and client IP."""

    def check(
        request: Request,
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> None:
        ip = client_ip(request)
        if limiter.is_rate_limited(f"{operation}:{ip}", rule.max_requests, rule.window_ms):
            log_security_event(RATE_LIMIT, operation=operation, ip=ip)
            raise RateLimitedError("Too many requests. Please try again later.")

    return check


def get_pass_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    storage: ObjectStorage | None = Depends(get_storage),
) -> PassService:
    return PassService(
        db,
        app_base_url=settings.app_base_url,
        storage=storage,
        passes_bucket=settings.storage_passes_bucket,
    )


def get_payment_service(
    db: Session = Depends(get_db),
    gateway: OrderGateway = Depends(get_order_gateway),
    pass_service: PassService = Depends(get_pass_service),
) -> PaymentService:
    return PaymentService(db, gateway, pass_service)


def get_admin_auth_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> AdminAuthService:
    return AdminAuthService(
        db,
        allowed_emails=settings.admin_allowed_emails,
        password=settings.admin_password,
        session_hours=settings.admin_session_hours,
    )


def require_admin(
    request: Request,
    db: Session = Depends(get_db),
    auth_service: AdminAuthService = Depends(get_admin_auth_service),
) -> str:
    """Email of the signed-in admin; any failure surfaces as a plain 401."""
    try:
        return auth_service.verify(request.cookies.get(ADMIN_COOKIE))
    except SessionExpiredError:
        # Keep the expired row deletion even though the request is rejected.
        db.commit()
        raise


def require_dev_secret(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> None:
    if not timing_safe_compare(request.headers.get(DEV_SECRET_HEADER), settings.dev_secret):
        log_security_event(AUTH_FAILURE, endpoint="devConfirmPayment", reason="invalid_dev_secret")
        raise NotFoundError("Not found")
