# oss_booking/infrastructure/payment_gateway.py

import logging
import secrets
import time
from typing import Protocol

import razorpay

from oss_booking.config import Settings
from oss_booking.domain.exceptions import SignatureVerificationFailed

logger = logging.getLogger(__name__)

PLACEHOLDER_KEY_ID = "rzp_test_placeholder"


class OrderGateway(Protocol):
    key_id: str

    def create_order(
        self,
        amount_paise: int,
        currency: str,
        receipt: str,
        notes: dict[str, str],
    ) -> str:
        """Create a provider order and return its id."""
        ...


class MockOrderGateway:
    """Locally generated order ids for environments without gateway keys."""

    def __init__(self, key_id: str | None = None):
        self.key_id = key_id or PLACEHOLDER_KEY_ID

    def create_order(
        self,
        amount_paise: int,
        currency: str,
        receipt: str,
        notes: dict[str, str],
    ) -> str:
        return f"order_mock_{int(time.time() * 1000)}_{secrets.token_hex(5)}"


class RazorpayOrderGateway:

    def __init__(self, client: razorpay.Client, key_id: str):
        self._client = client
        self.key_id = key_id

    def create_order(
        self,
        amount_paise: int,
        currency: str,
        receipt: str,
        notes: dict[str, str],
    ) -> str:
        order = self._client.order.create(
            {
                "amount": amount_paise,
                "currency": currency,
                "receipt": receipt,
                "notes": notes,
            }
        )
        return order.get("id")


def build_order_gateway(settings: Settings) -> OrderGateway:
    if settings.razorpay_configured:
        client = razorpay.Client(auth=(settings.razorpay_key_id, settings.razorpay_key_secret))
        return RazorpayOrderGateway(client, settings.razorpay_key_id)
    logger.info("Razorpay keys not configured; using placeholder order ids.")
    return MockOrderGateway(settings.razorpay_key_id)


def verify_webhook_signature(body: str, signature: str, secret: str) -> None:
    """Raises SignatureVerificationFailed unless signature is the body's HMAC-SHA256."""
    if not signature:
        raise SignatureVerificationFailed("Missing webhook signature")
    try:
        razorpay.Client().utility.verify_webhook_signature(body, signature, secret)
    except razorpay.errors.SignatureVerificationError as exc:
        raise SignatureVerificationFailed("Webhook signature mismatch") from exc
