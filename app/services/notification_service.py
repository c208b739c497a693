"""
Booking Notification Dispatcher
Fans booking/payment events out to delivery channels (email by default)

Dispatch runs after the state change has been committed. A channel that
raises is logged and skipped; it can never undo or fail the operation that
produced the event.
"""

import logging
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import Booking, Profile

logger = logging.getLogger(__name__)

BOOKING_CREATED = "booking_created"
BOOKING_MODIFIED = "booking_modified"
BOOKING_CANCELLED = "booking_cancelled"
STATUS_UPDATE = "status_update"
PAYMENT_FAILED = "payment_failed"

SUBJECTS = {
    BOOKING_CREATED: "We've received your booking",
    BOOKING_MODIFIED: "Your booking has been updated",
    BOOKING_CANCELLED: "Your booking has been cancelled",
    STATUS_UPDATE: "Booking status update",
    PAYMENT_FAILED: "Your payment didn't go through",
}


@dataclass(frozen=True)
class NotificationEvent:
    """Something happened to a booking that the customer should hear about"""

    kind: str
    booking_id: str
    customer_id: str
    status: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_booking(
        cls, kind: str, booking: Booking, message: str, **details: Any
    ) -> "NotificationEvent":
        details.setdefault("scheduled_for", f"{booking.service_date} {booking.service_time}")
        details.setdefault("total_amount", str(booking.total_price))
        if booking.address is not None:
            details.setdefault("address", booking.address.one_line())
        return cls(
            kind=kind,
            booking_id=booking.id,
            customer_id=booking.customer_id,
            status=booking.status,
            message=message,
            details=details,
        )


Channel = Callable[[NotificationEvent], Awaitable[Any]]


class EmailChannel:
    """Delivers notifications to the customer's profile email"""

    name = "email"

    def __init__(self, db: Session):
        self.db = db

    async def __call__(self, event: NotificationEvent) -> Optional[dict]:
        from ..email_service import send_booking_update_email

        profile = self.db.query(Profile).filter(Profile.id == event.customer_id).first()
        if not profile or not profile.email:
            logger.debug(f"⚠️ No email address for {event.kind} notification to {event.customer_id}")
            return None

        return await send_booking_update_email(
            to=profile.email,
            customer_name=profile.full_name or "Customer",
            booking_id=event.booking_id,
            status=event.status,
            status_message=event.message,
            subject=SUBJECTS.get(event.kind, "Booking update"),
            scheduled_for=event.details.get("scheduled_for"),
            address=event.details.get("address"),
            total_amount=event.details.get("total_amount"),
        )


class NotificationDispatcher:
    def __init__(self, channels: Sequence[Channel] = ()):
        self.channels = list(channels)

    async def dispatch(self, event: NotificationEvent) -> dict[str, bool]:
        """
        Send the event through every channel.

        Returns:
            Dict of channel name → delivered flag
        """
        result = {}
        for channel in self.channels:
            name = getattr(channel, "name", getattr(channel, "__name__", repr(channel)))
            try:
                await channel(event)
                result[name] = True
                logger.info(f"✅ {event.kind} notification sent via {name} for booking {event.booking_id}")
            except Exception as e:
                result[name] = False
                logger.error(
                    f"❌ Failed to send {event.kind} notification via {name} "
                    f"for booking {event.booking_id}: {e}"
                )
        return result


def get_notification_dispatcher(db: Session = Depends(get_db)) -> NotificationDispatcher:
    """Dependency injection for NotificationDispatcher"""
    return NotificationDispatcher([EmailChannel(db)])
