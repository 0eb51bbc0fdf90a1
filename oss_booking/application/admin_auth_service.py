# oss_booking/application/admin_auth_service.py

import logging
import re
import secrets
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.orm import Session

from oss_booking.domain.clock import as_utc, utc_now
from oss_booking.domain.exceptions import (
    InvalidCredentialsError,
    InvalidSessionError,
    NotAuthenticatedError,
    SessionExpiredError,
)
from oss_booking.infrastructure.db.models import AdminSession
from oss_booking.infrastructure.repositories.admin_session_repository import (
    AdminSessionRepository,
)
from oss_booking.security import AUTH_FAILURE, log_security_event, timing_safe_compare

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"[a-f0-9]{64}", re.IGNORECASE)


def generate_session_token() -> str:
    return secrets.token_hex(32)


class AdminAuthService:
    """
    Cookie-token sessions for the admin console.
    One live session per admin email: logging in again drops the older ones.
    """

    def __init__(
        self,
        db: Session,
        allowed_emails: list[str],
        password: str | None,
        session_hours: int = 24,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.allowed_emails = [email.lower() for email in allowed_emails]
        self.password = password
        self.session_hours = session_hours
        self.clock = clock
        self.session_repository = AdminSessionRepository(db)

    def login(self, email: str, password: str, client_ip: str = "unknown") -> AdminSession:
        email = email.strip().lower()

        if not self.allowed_emails or not self.password:
            log_security_event(AUTH_FAILURE, reason="admin_auth_not_configured", ip=client_ip)
            raise InvalidCredentialsError("Invalid credentials")

        # Evaluate both checks so the response time does not reveal which failed.
        email_allowed = email in self.allowed_emails
        password_ok = timing_safe_compare(password, self.password)
        if not (email_allowed and password_ok):
            log_security_event(
                AUTH_FAILURE,
                reason="invalid_credentials",
                ip=client_ip,
            )
            raise InvalidCredentialsError("Invalid credentials")

        removed = self.session_repository.delete_for_email(email)
        session = self.session_repository.create_session(
            email=email,
            token=generate_session_token(),
            expires_at=self.clock() + timedelta(hours=self.session_hours),
        )
        logger.info("Admin login email=%s replaced_sessions=%s", email, removed)
        return session

    def verify(self, token: str | None) -> str:
        """Return the admin email for a live session token."""
        if not token or not TOKEN_PATTERN.fullmatch(token):
            raise NotAuthenticatedError("Missing or malformed session token")

        session = self.session_repository.get_by_token(token)
        if not session:
            raise InvalidSessionError("Unknown session token")

        if as_utc(session.expires_at) < self.clock():
            self.session_repository.delete_by_token(token)
            raise SessionExpiredError("Session expired")

        return session.email

    def logout(self, token: str | None) -> None:
        if not token or not TOKEN_PATTERN.fullmatch(token):
            return
        if self.session_repository.delete_by_token(token):
            logger.info("Admin session closed")
