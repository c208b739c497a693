"""
Booking lifecycle state machine

Booking statuses: pending → confirmed → in_progress → completed
                  pending/confirmed → cancelled

Terminal statuses: completed, cancelled

This is the only code that moves Booking.status. Every status write goes
through BookingRepository.transition_status, a conditional UPDATE that only
matches while the row is still in one of the expected source statuses, so the
check and the write are atomic against the single booking row even when
several workers race on it.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from ...config import BOOKING_CUTOFF_HOURS, SERVICE_TIMEZONE
from ...errors import CancellationWindowExpired, InvalidTransition
from ...models import Booking
from .repository import BookingRepository

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


# Statuses from which a customer may still change or cancel the booking
EDITABLE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)

# Cleaner/admin progress updates, strictly forward
PROGRESS_TRANSITIONS = {
    BookingStatus.CONFIRMED: BookingStatus.IN_PROGRESS,
    BookingStatus.IN_PROGRESS: BookingStatus.COMPLETED,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def scheduled_at(service_date: date, service_time: time, tz_name: str = SERVICE_TIMEZONE) -> datetime:
    """Combine the booking's local date and time into an aware datetime"""
    return datetime.combine(service_date, service_time, tzinfo=ZoneInfo(tz_name))


class BookingLifecycle:
    """Transition rules plus the time-window policy for edits and cancellation"""

    def __init__(
        self,
        cutoff: Optional[timedelta] = None,
        clock: Optional[Callable[[], datetime]] = None,
        tz_name: str = SERVICE_TIMEZONE,
    ):
        self.cutoff = cutoff if cutoff is not None else timedelta(hours=BOOKING_CUTOFF_HOURS)
        self.clock = clock or utcnow
        self.tz_name = tz_name
        self.repo = BookingRepository()

    # ------------------------------------------------------------------
    # Checks (no writes)
    # ------------------------------------------------------------------

    def time_until_service(self, booking: Booking) -> timedelta:
        return scheduled_at(booking.service_date, booking.service_time, self.tz_name) - self.clock()

    def is_outside_cutoff(self, when: datetime) -> bool:
        """True when ``when`` is strictly more than the cutoff away from now"""
        return when - self.clock() > self.cutoff

    def _ensure_editable(self, booking: Booking, action: str) -> None:
        status = BookingStatus(booking.status)
        if status not in EDITABLE_STATUSES:
            raise InvalidTransition(f"Cannot {action} a booking that is {status.value}")

        if self.time_until_service(booking) <= self.cutoff:
            hours = int(self.cutoff.total_seconds() // 3600)
            raise CancellationWindowExpired(
                f"Cannot {action} booking less than {hours} hours before service"
            )

    def ensure_modifiable(self, booking: Booking) -> None:
        self._ensure_editable(booking, "modify")

    def ensure_cancellable(self, booking: Booking) -> None:
        self._ensure_editable(booking, "cancel")

    @staticmethod
    def ensure_progress(current: str, target: str) -> None:
        """Validate a cleaner/admin progress update"""
        expected = PROGRESS_TRANSITIONS.get(BookingStatus(current))
        if expected is None or expected.value != target:
            raise InvalidTransition(f"Cannot move booking from {current} to {target}")

    # ------------------------------------------------------------------
    # Transitions (conditional writes; caller commits)
    # ------------------------------------------------------------------

    def _apply(self, db: Session, booking: Booking, sources, target: BookingStatus) -> bool:
        moved = self.repo.transition_status(
            db, booking.id, [s.value for s in sources], target.value
        )
        db.refresh(booking)
        if moved:
            logger.info(f"✅ Booking {booking.id} transitioned → {target.value}")
        return moved

    def cancel(self, db: Session, booking: Booking) -> None:
        self.ensure_cancellable(booking)
        if not self._apply(db, booking, EDITABLE_STATUSES, BookingStatus.CANCELLED):
            # Another writer moved the row between our read and our update
            raise InvalidTransition(f"Cannot cancel a booking that is {booking.status}")

    def advance(self, db: Session, booking: Booking, target: str) -> None:
        self.ensure_progress(booking.status, target)
        source = BookingStatus(booking.status)
        if not self._apply(db, booking, [source], BookingStatus(target)):
            raise InvalidTransition(f"Cannot move booking from {booking.status} to {target}")

    def confirm_after_payment(self, db: Session, booking: Booking) -> bool:
        """
        Apply the payment-settled transition.

        Returns True only when this call moved the booking pending → confirmed.
        A booking that is already confirmed (or further along) is a no-op.
        A cancelled booking cannot be confirmed and raises InvalidTransition.
        """
        if self._apply(db, booking, [BookingStatus.PENDING], BookingStatus.CONFIRMED):
            return True

        if booking.status == BookingStatus.CANCELLED.value:
            raise InvalidTransition(f"Booking {booking.id} was cancelled before payment settled")

        logger.info(f"ℹ️ Booking {booking.id} already {booking.status}, payment-settled is a no-op")
        return False

    @staticmethod
    def note_payment_failed(booking: Booking) -> None:
        """A failed charge leaves the booking where it is so the customer can retry"""
        logger.info(
            f"ℹ️ Payment failed for booking {booking.id}; booking stays {booking.status}"
        )
