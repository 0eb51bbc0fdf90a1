# oss_booking/api/routes/dev.py
#
# Only mounted by create_app when ALLOW_DEV_ENDPOINTS is true.

import logging

from fastapi import APIRouter, Depends

from oss_booking.api.deps import get_payment_service, get_settings, require_dev_secret
from oss_booking.api.schemas.schemas import BookingIdRequest, DevConfirmOut, Envelope
from oss_booking.application.payment_service import PaymentService
from oss_booking.config import Settings
from oss_booking.domain.passes import build_verify_url

router = APIRouter(prefix="/api", dependencies=[Depends(require_dev_secret)])
logger = logging.getLogger(__name__)


@router.post("/devConfirmPayment", response_model=Envelope[DevConfirmOut])
def dev_confirm_payment(
    request: BookingIdRequest,
    settings: Settings = Depends(get_settings),
    payment_service: PaymentService = Depends(get_payment_service),
):
    logger.warning("DEV MODE: simulating payment confirmation for booking=%s", request.booking_id)
    confirmed = payment_service.dev_confirm(request.booking_id)

    event_pass = confirmed.event_pass
    return Envelope(
        data=DevConfirmOut(
            booking_id=confirmed.booking_id,
            status=confirmed.status,
            pass_id=event_pass.pass_id if event_pass else None,
            qr_image_url=event_pass.qr_image_url if event_pass else None,
            verify_url=build_verify_url(settings.app_base_url, event_pass.pass_id) if event_pass else None,
            message="DEV MODE: Payment confirmed successfully",
        )
    )
