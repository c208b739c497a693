"""Booking service - creates, modifies, cancels and progresses bookings"""

import logging
from collections.abc import Iterable
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ...auth import Principal
from ...config import BOOKING_CUTOFF_HOURS, DEFAULT_CURRENCY, DEFAULT_DURATION_HOURS
from ...errors import (
    BookingPlatformError,
    Conflict,
    Forbidden,
    NotFound,
    StorageError,
    ValidationError,
)
from ...models import Booking, BookingExtraLine, BookingServiceLine
from ...money import quantize, to_minor_units
from ...services.notification_service import (
    BOOKING_CANCELLED,
    BOOKING_CREATED,
    BOOKING_MODIFIED,
    STATUS_UPDATE,
    NotificationDispatcher,
    NotificationEvent,
)
from ..payments.service import SETTLED, PaymentService
from .lifecycle import BookingLifecycle, BookingStatus, PaymentStatus, utcnow
from .pricing import PricedLine, price_cart
from .repository import BookingRepository
from .schemas import (
    BookingResponse,
    BookingStatusResponse,
    CreateBookingRequest,
    CreateBookingResponse,
    ModifyBookingRequest,
    ModifyBookingResponse,
    StatusUpdateRequest,
)
from .validation import AddressChoice, ReferenceValidator

logger = logging.getLogger(__name__)

DEFAULT_STATUS_MESSAGES = {
    "in_progress": "Your cleaner has arrived and started working.",
    "completed": "Your cleaning is complete. Thank you for booking with us!",
}


class BookingService:
    """Service layer for the booking aggregate (booking + line items + payment)"""

    def __init__(
        self,
        db: Session,
        dispatcher: Optional[NotificationDispatcher] = None,
        clock: Optional[Callable[[], datetime]] = None,
        currency: str = DEFAULT_CURRENCY,
        payments: Optional[PaymentService] = None,
    ):
        self.db = db
        self.clock = clock or utcnow
        self.currency = currency
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.repo = BookingRepository()
        self.validator = ReferenceValidator(db, clock=self.clock)
        self.lifecycle = BookingLifecycle(clock=self.clock)
        self.payments = payments or PaymentService(db, clock=self.clock)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _unit_of_work(self, action: str):
        """Commit on success; roll everything back on any failure"""
        try:
            yield
            self.db.commit()
        except BookingPlatformError:
            self.db.rollback()
            raise
        except StaleDataError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Concurrent update detected during {action}: {e}")
            raise Conflict(
                f"The booking changed while trying to {action}. Please reload and retry."
            ) from e
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"❌ Integrity error during {action}: {e}")
            raise Conflict(f"Could not {action}: conflicting data") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Database error during {action}: {e}")
            raise StorageError(f"Could not {action}, please try again") from e

    def _get_booking(self, booking_id: str, principal: Principal, allow_cleaner: bool = False) -> Booking:
        booking = self.repo.get_booking(self.db, booking_id)
        if booking is None:
            raise NotFound("Booking not found", field="booking_id")

        if principal.is_admin or booking.customer_id == principal.user_id:
            return booking
        if allow_cleaner and principal.is_cleaner and booking.cleaner_id == principal.user_id:
            return booking

        # Other customers' bookings look exactly like missing ones
        raise NotFound("Booking not found", field="booking_id")

    def _resolve_address(self, customer_id: str, choice: AddressChoice) -> str:
        if choice.existing is not None:
            return choice.existing.id
        address = self.repo.add_address(self.db, customer_id, **choice.new.model_dump())
        logger.info(f"🏠 New address {address.id} created for customer {customer_id}")
        return address.id

    @staticmethod
    def _service_lines(lines: Iterable[PricedLine]) -> list[BookingServiceLine]:
        return [
            BookingServiceLine(
                service_item_id=line.catalog_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total_price=line.total_price,
            )
            for line in lines
        ]

    @staticmethod
    def _extra_lines(lines: Iterable[PricedLine]) -> list[BookingExtraLine]:
        return [
            BookingExtraLine(
                service_extra_id=line.catalog_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total_price=line.total_price,
            )
            for line in lines
        ]

    @staticmethod
    def _sum_lines(lines) -> Decimal:
        return sum((Decimal(line.total_price) for line in lines), Decimal("0"))

    def _recompute_total(self, booking: Booking) -> Decimal:
        """Total straight from the stored line sets, never patched incrementally"""
        return quantize(
            self._sum_lines(booking.services) + self._sum_lines(booking.extras), self.currency
        )

    def _now_naive(self) -> datetime:
        return self.clock().astimezone(timezone.utc).replace(tzinfo=None)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: str, principal: Principal) -> BookingResponse:
        booking = self._get_booking(booking_id, principal, allow_cleaner=True)
        return BookingResponse.model_validate(booking)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create_booking(
        self, data: CreateBookingRequest, principal: Principal
    ) -> CreateBookingResponse:
        """
        Price and persist a booking with its line items, address and a pending
        payment, all in one transaction.
        """
        customer_id = principal.user_id
        logger.info(f"📥 Creating booking for customer {customer_id}")

        # Validation and pricing happen before anything is written
        snapshot = self.validator.validate_cart(data.services, data.extras)
        address_choice = self.validator.validate_address(
            customer_id, data.address_id, data.new_address
        )
        self.validator.validate_schedule(data.service_date, data.service_time)
        priced = price_cart(
            data.services, data.extras, snapshot.services, snapshot.extras, self.currency
        )

        with self._unit_of_work("create booking"):
            address_id = self._resolve_address(customer_id, address_choice)
            booking = self.repo.add_booking(
                self.db,
                customer_id=customer_id,
                status=BookingStatus.PENDING.value,
                service_date=data.service_date,
                service_time=data.service_time,
                duration_hours=DEFAULT_DURATION_HOURS,
                address_id=address_id,
                total_price=priced.total,
                notes=data.notes,
            )
            self.repo.replace_service_lines(self.db, booking, self._service_lines(priced.services))
            self.repo.replace_extra_lines(self.db, booking, self._extra_lines(priced.extras))
            booking.total_price = self._recompute_total(booking)

            payment = self.payments.open(
                booking.id, to_minor_units(booking.total_price, self.currency), self.currency
            )

        logger.info(
            f"✅ Booking {booking.id} created: total {booking.total_price} {self.currency}, "
            f"payment {payment.reference}"
        )

        await self.dispatcher.dispatch(
            NotificationEvent.for_booking(
                BOOKING_CREATED,
                booking,
                "Thanks for your booking! Complete your payment to confirm the appointment.",
                payment_reference=payment.reference,
            )
        )

        return CreateBookingResponse(
            booking_id=booking.id,
            total_amount=booking.total_price,
            payment_reference=payment.reference,
            currency=self.currency,
            status=booking.status,
        )

    async def modify_booking(
        self, booking_id: str, data: ModifyBookingRequest, principal: Principal
    ) -> ModifyBookingResponse:
        """
        Replace whichever dimensions changed and recompute the total.

        The booking row update is guarded by its version counter, so a status
        change committed by someone else after our eligibility check makes this
        whole modification roll back with a Conflict.
        """
        booking = self._get_booking(booking_id, principal)
        self.lifecycle.ensure_modifiable(booking)

        services_changed = data.services is not None
        extras_changed = data.extras is not None

        snapshot = self.validator.validate_cart(
            data.services or [], data.extras or [], require_services=services_changed
        )

        address_choice = None
        if data.address_id or data.new_address:
            address_choice = self.validator.validate_address(
                booking.customer_id, data.address_id, data.new_address
            )

        new_date = data.service_date or booking.service_date
        new_time = data.service_time or booking.service_time
        if (new_date, new_time) != (booking.service_date, booking.service_time):
            when = self.validator.validate_schedule(new_date, new_time)
            if not self.lifecycle.is_outside_cutoff(when):
                raise ValidationError(
                    f"New service time must be more than {BOOKING_CUTOFF_HOURS} hours away",
                    field="service_date",
                )

        priced = price_cart(
            data.services or [], data.extras or [], snapshot.services, snapshot.extras, self.currency
        )

        services_total = (
            priced.services_total if services_changed else self._sum_lines(booking.services)
        )
        extras_total = priced.extras_total if extras_changed else self._sum_lines(booking.extras)
        expected_total = quantize(services_total + extras_total, self.currency)

        payment = booking.payment
        if payment is not None:
            new_amount = to_minor_units(expected_total, payment.currency)
            if new_amount != payment.amount and payment.status in SETTLED:
                raise Conflict(
                    "This booking has already been paid; changes that alter the price "
                    "are not possible",
                    field="services" if services_changed else "extras",
                )

        with self._unit_of_work("modify booking"):
            if services_changed:
                self.repo.replace_service_lines(
                    self.db, booking, self._service_lines(priced.services)
                )
            if extras_changed:
                self.repo.replace_extra_lines(self.db, booking, self._extra_lines(priced.extras))
            if address_choice is not None:
                booking.address_id = self._resolve_address(booking.customer_id, address_choice)
            if data.service_date is not None:
                booking.service_date = data.service_date
            if data.service_time is not None:
                booking.service_time = data.service_time
            if data.notes is not None:
                booking.notes = data.notes

            booking.total_price = self._recompute_total(booking)
            booking.updated_at = self._now_naive()
            self.db.flush()

            if payment is not None:
                self.payments.sync_amount(
                    payment, to_minor_units(booking.total_price, payment.currency)
                )

        logger.info(f"✅ Booking {booking.id} modified: total now {booking.total_price}")

        await self.dispatcher.dispatch(
            NotificationEvent.for_booking(
                BOOKING_MODIFIED, booking, "Your booking details have been updated."
            )
        )

        return ModifyBookingResponse(
            booking_id=booking.id,
            total_amount=booking.total_price,
            status=booking.status,
            payment_amount=payment.amount if payment is not None else None,
        )

    async def cancel_booking(self, booking_id: str, principal: Principal) -> BookingStatusResponse:
        """Cancel the booking; a completed payment is booked as refunded in the same step"""
        booking = self._get_booking(booking_id, principal)

        with self._unit_of_work("cancel booking"):
            self.lifecycle.cancel(self.db, booking)
            payment = booking.payment
            if payment is not None and payment.status == PaymentStatus.COMPLETED.value:
                self.payments.refund(payment)

        logger.info(f"✅ Booking {booking.id} cancelled by {principal.role} {principal.user_id}")

        message = "Your booking has been cancelled."
        if payment is not None and payment.status == PaymentStatus.REFUNDED.value:
            message += " Your payment will be refunded."
        await self.dispatcher.dispatch(
            NotificationEvent.for_booking(BOOKING_CANCELLED, booking, message)
        )

        return BookingStatusResponse(
            booking_id=booking.id,
            status=booking.status,
            payment_status=payment.status if payment is not None else None,
        )

    async def update_status(
        self, booking_id: str, data: StatusUpdateRequest, principal: Principal
    ) -> BookingStatusResponse:
        """Cleaner/admin progress update: confirmed → in_progress → completed"""
        if not (principal.is_admin or principal.is_cleaner):
            raise Forbidden("Only the assigned cleaner or an admin can update job status")

        booking = self._get_booking(booking_id, principal, allow_cleaner=True)

        with self._unit_of_work("update booking status"):
            self.lifecycle.advance(self.db, booking, data.status)

        await self.dispatcher.dispatch(
            NotificationEvent.for_booking(
                STATUS_UPDATE,
                booking,
                data.status_message or DEFAULT_STATUS_MESSAGES[data.status],
            )
        )

        payment = booking.payment
        return BookingStatusResponse(
            booking_id=booking.id,
            status=booking.status,
            payment_status=payment.status if payment is not None else None,
        )
