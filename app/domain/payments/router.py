"""
Paystack Webhook Handler
Settles or fails booking payments from signed gateway events
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ...config import PAYSTACK_SIGNATURE_HEADER
from ...errors import BookingPlatformError, Unauthorized, ValidationError
from ...webhook_security import WebhookConfigurationError
from .reconciler import WebhookReconciler, get_reconciler
from .schemas import WebhookAck

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"error": code, "message": message, "field": None}
    )


@router.post("/paystack", response_model=WebhookAck)
async def handle_paystack_webhook(
    request: Request, reconciler: WebhookReconciler = Depends(get_reconciler)
):
    """
    Handle Paystack charge webhooks

    Events handled:
    - charge.success - settle the payment and confirm the booking
    - charge.failed - mark the payment failed, booking stays pending

    Anything else is acknowledged and ignored. Any failure after the
    signature check answers 500 so Paystack retries the delivery.
    """
    # Raw bytes: the signature covers the body exactly as sent
    body = await request.body()
    signature = request.headers.get(PAYSTACK_SIGNATURE_HEADER)
    logger.info(f"📥 Received Paystack webhook ({len(body)} bytes)")

    try:
        result = await reconciler.handle(body, signature)
    except Unauthorized as e:
        return JSONResponse(status_code=401, content=e.to_dict())
    except ValidationError as e:
        logger.error(f"❌ Malformed webhook payload: {e.message}")
        return JSONResponse(status_code=400, content=e.to_dict())
    except WebhookConfigurationError as e:
        return _error_response(500, "webhook_not_configured", str(e))
    except BookingPlatformError as e:
        logger.error(f"❌ Webhook processing failed ({e.code}): {e.message}")
        return _error_response(500, e.code, e.message)
    except Exception as e:
        logger.exception(f"❌ Unexpected error processing webhook: {e}")
        return _error_response(500, "internal_error", "Webhook processing failed")

    logger.info(f"✅ Webhook {result.event} → {result.status}")
    return result.to_ack()
