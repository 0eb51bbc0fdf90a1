# oss_booking/security.py

import hmac
import logging

logger = logging.getLogger(__name__)

AUTH_FAILURE = "AUTH_FAILURE"
RATE_LIMIT = "RATE_LIMIT"
INVALID_SIGNATURE = "INVALID_SIGNATURE"
SUSPICIOUS_REQUEST = "SUSPICIOUS_REQUEST"


def log_security_event(event_type: str, **details) -> None:
    """Structured WARNING line for the security log. Never pass secrets in details."""
    rendered = " ".join(f"{key}={value}" for key, value in sorted(details.items()))
    logger.warning("SECURITY %s %s", event_type, rendered)


def timing_safe_compare(provided: str | None, expected: str | None) -> bool:
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
