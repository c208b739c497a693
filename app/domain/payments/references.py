"""Merchant payment reference generation"""

import secrets
import string
from datetime import datetime, timezone
from typing import Optional

from ...config import PAYMENT_REFERENCE_PREFIX

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
SUFFIX_LENGTH = 6


def generate_payment_reference(
    now: Optional[datetime] = None, prefix: str = PAYMENT_REFERENCE_PREFIX
) -> str:
    """
    Generate a unique payment reference
    Format: BOOK_YYYYMMDD_HHMMSS_XXXXXX (UTC, 6-char random suffix)

    36^6 suffixes per second keeps collisions practically impossible while the
    reference stays readable in gateway dashboards.
    """
    now = now or datetime.now(timezone.utc)
    timestamp = now.astimezone(timezone.utc).strftime("%Y%m%d_%H%M%S")
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{prefix}_{timestamp}_{suffix}"
