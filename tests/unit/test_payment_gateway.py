# tests/unit/test_payment_gateway.py

import hashlib
import hmac
import logging
import re

import pytest

from oss_booking.config import Settings
from oss_booking.domain.exceptions import SignatureVerificationFailed
from oss_booking.infrastructure.payment_gateway import (
    PLACEHOLDER_KEY_ID,
    MockOrderGateway,
    RazorpayOrderGateway,
    build_order_gateway,
    verify_webhook_signature,
)
from oss_booking.security import AUTH_FAILURE, log_security_event, timing_safe_compare

SECRET = "whsec_unit"


def _sign(body: str) -> str:
    return hmac.new(SECRET.encode(), body.encode(), hashlib.sha256).hexdigest()


def test_mock_gateway_order_ids():
    gateway = MockOrderGateway()

    order_id = gateway.create_order(50000, "INR", "receipt", {"bookingId": "b"})

    assert re.match(r"^order_mock_\d+_[0-9a-f]{10}$", order_id)
    assert gateway.key_id == PLACEHOLDER_KEY_ID


def test_gateway_selection():
    assert isinstance(build_order_gateway(Settings()), MockOrderGateway)

    configured = Settings(razorpay_key_id="rzp_test_key", razorpay_key_secret="secret")
    gateway = build_order_gateway(configured)
    assert isinstance(gateway, RazorpayOrderGateway)
    assert gateway.key_id == "rzp_test_key"


def test_valid_webhook_signature_passes():
    body = '{"event":"payment.captured"}'
    verify_webhook_signature(body, _sign(body), SECRET)


def test_tampered_body_fails():
    body = '{"event":"payment.captured"}'
    with pytest.raises(SignatureVerificationFailed):
        verify_webhook_signature(body + " ", _sign(body), SECRET)


def test_missing_signature_fails():
    with pytest.raises(SignatureVerificationFailed):
        verify_webhook_signature("{}", "", SECRET)


def test_timing_safe_compare():
    assert timing_safe_compare("abc", "abc")
    assert not timing_safe_compare("abc", "abd")
    assert not timing_safe_compare("", "")
    assert not timing_safe_compare(None, "abc")


def test_security_events_are_key_value_warnings(caplog):
    with caplog.at_level(logging.WARNING, logger="oss_booking.security"):
        log_security_event(AUTH_FAILURE, reason="invalid_credentials", ip="10.0.0.1")

    record = caplog.records[-1]
    assert record.name == "oss_booking.security"
    assert record.levelno == logging.WARNING
    assert record.getMessage() == "SECURITY AUTH_FAILURE ip=10.0.0.1 reason=invalid_credentials"
