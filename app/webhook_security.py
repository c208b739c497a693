"""
Webhook Security Module

Signature verification for inbound payment-gateway webhooks:
- Keyed hash (HMAC-SHA512) computed over the exact raw request body
- Constant-time signature comparison
- Verification happens before the body is parsed
"""

import hashlib
import hmac
import logging
from typing import Optional

from .errors import Unauthorized

logger = logging.getLogger(__name__)


class WebhookConfigurationError(Exception):
    """Raised when the webhook signing secret is not configured"""

    pass


def constant_time_compare(a: str, b: str) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks.
    Uses hmac.compare_digest which is designed for this purpose.
    """
    if not a or not b:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def compute_hmac_sha512(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA512 signature of payload (hex, as Paystack sends it)"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha512).hexdigest()


def verify_signature(raw_body: bytes, signature: Optional[str], secret: Optional[str]) -> None:
    """
    Verify a Paystack-style webhook signature.

    Raises:
        WebhookConfigurationError: no signing secret configured
        Unauthorized: missing or mismatched signature
    """
    if not secret:
        logger.error("❌ PAYSTACK_SECRET_KEY not configured, cannot verify webhook")
        raise WebhookConfigurationError("Webhook signing secret is not configured")

    if not signature:
        logger.warning("🚫 Webhook missing signature header")
        raise Unauthorized("Missing webhook signature")

    expected_signature = compute_hmac_sha512(secret, raw_body)
    if not constant_time_compare(expected_signature, signature.strip().lower()):
        logger.warning(f"🚫 Webhook signature mismatch (body length {len(raw_body)} bytes)")
        raise Unauthorized("Invalid webhook signature")

    logger.debug("✅ Webhook signature verified")


def create_webhook_signature(secret: str, payload: bytes) -> str:
    """Create a webhook signature for testing or replaying a stored event"""
    return compute_hmac_sha512(secret, payload)
