"""
Webhook reconciler

Applies authenticated Paystack charge events to the payment record and the
booking lifecycle. Settling a payment and confirming its booking commit in
one transaction; the customer notification is sent only afterwards.

Idempotency is keyed on the gateway transaction id (``data.id``):
- a replayed success finishes a confirmation that never happened, otherwise
  it is acknowledged as already processed
- a success outranks an earlier failure for the same transaction
- a failure never downgrades a settled payment
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import PAYSTACK_SECRET_KEY
from ...database import get_db
from ...errors import (
    AlreadyProcessed,
    AmountMismatch,
    BookingPlatformError,
    InvalidTransition,
    NotFound,
    StorageError,
)
from ...models import Booking, Payment
from ...services.notification_service import (
    PAYMENT_FAILED,
    STATUS_UPDATE,
    NotificationDispatcher,
    NotificationEvent,
    get_notification_dispatcher,
)
from ...webhook_security import verify_signature
from ..bookings.lifecycle import BookingLifecycle, BookingStatus, utcnow
from ..bookings.repository import BookingRepository
from .repository import PaymentRepository
from .schemas import (
    ChargeFailed,
    ChargeSucceeded,
    GatewayEvent,
    WebhookAck,
    parse_gateway_event,
)
from .service import PaymentService

logger = logging.getLogger(__name__)

PROCESSED = "processed"
ALREADY_PROCESSED = "already_processed"
IGNORED = "ignored"

CONFIRMED_MESSAGE = (
    "Your payment has been confirmed and your booking is now confirmed! "
    "We'll see you on the scheduled date."
)
FAILED_MESSAGE = (
    "We couldn't process your payment ({reason}). Your booking is still reserved; "
    "please try paying again."
)


@dataclass
class ReconcileResult:
    status: str
    event: str
    reference: Optional[str] = None
    booking_id: Optional[str] = None

    def to_ack(self) -> WebhookAck:
        return WebhookAck(
            status=self.status,
            event=self.event,
            reference=self.reference,
            booking_id=self.booking_id,
        )


class WebhookReconciler:
    def __init__(
        self,
        db: Session,
        dispatcher: Optional[NotificationDispatcher] = None,
        clock: Optional[Callable[[], datetime]] = None,
        secret: Optional[str] = PAYSTACK_SECRET_KEY,
    ):
        self.db = db
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.secret = secret
        self.payments = PaymentService(db, clock=clock or utcnow)
        self.lifecycle = BookingLifecycle(clock=clock or utcnow)
        self.bookings = BookingRepository()
        self.payment_repo = PaymentRepository()

    async def handle(self, raw_body: bytes, signature: Optional[str]) -> ReconcileResult:
        """Verify, parse and apply one webhook delivery"""
        verify_signature(raw_body, signature, self.secret)
        event = parse_gateway_event(raw_body)
        return await self.reconcile(event)

    async def reconcile(self, event: GatewayEvent) -> ReconcileResult:
        if isinstance(event, ChargeSucceeded):
            return await self._on_charge_succeeded(event)
        if isinstance(event, ChargeFailed):
            return await self._on_charge_failed(event)

        logger.info(f"ℹ️ Ignoring unhandled webhook event: {event.event}")
        return ReconcileResult(status=IGNORED, event=event.event)

    def _load_booking(self, payment: Payment) -> Booking:
        booking = self.bookings.get_booking(self.db, payment.booking_id)
        if booking is None:
            raise NotFound(f"Booking {payment.booking_id} for payment {payment.reference} not found")
        return booking

    def _confirm(self, booking: Booking, payment: Payment) -> bool:
        """Confirm the booking; a booking cancelled in the meantime gets its payment refunded"""
        try:
            return self.lifecycle.confirm_after_payment(self.db, booking)
        except InvalidTransition:
            if self.payments.refund(payment):
                logger.warning(
                    f"⚠️ Payment {payment.reference} settled after booking {booking.id} "
                    f"was cancelled; marked refunded"
                )
            return False

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to commit webhook changes: {e}")
            raise StorageError("Could not record payment event") from e

    async def _notify(self, kind: str, booking: Booking, message: str) -> None:
        await self.dispatcher.dispatch(NotificationEvent.for_booking(kind, booking, message))

    async def _on_charge_succeeded(self, event: ChargeSucceeded) -> ReconcileResult:
        data = event.data
        logger.info(f"💳 charge.success for {data.reference} (transaction {data.id})")

        try:
            try:
                payment = self.payments.settle(data.id, data.amount, data.currency, data.reference)
            except AlreadyProcessed:
                return await self._replay_success(event)
            except AmountMismatch as e:
                logger.error(f"❌ {e.message} for payment {data.reference}")
                try:
                    payment = self.payments.fail(data.id, e.message, reference=data.reference)
                except AlreadyProcessed:
                    return ReconcileResult(ALREADY_PROCESSED, event.event, data.reference)
                self._commit()
                return ReconcileResult(PROCESSED, event.event, payment.reference, payment.booking_id)

            booking = self._load_booking(payment)
            confirmed = self._confirm(booking, payment)
            self._commit()
        except BookingPlatformError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Database error reconciling {data.reference}: {e}")
            raise StorageError("Could not record payment event") from e

        if confirmed:
            await self._notify(STATUS_UPDATE, booking, CONFIRMED_MESSAGE)

        return ReconcileResult(PROCESSED, event.event, payment.reference, booking.id)

    async def _replay_success(self, event: ChargeSucceeded) -> ReconcileResult:
        """
        The transaction is already settled. Finish the booking confirmation if
        a previous delivery crashed before it; otherwise it's a pure duplicate.
        """
        data = event.data
        payment = self.payment_repo.get_by_transaction_id(self.db, data.id)
        booking = self._load_booking(payment)

        confirmed = self._confirm(booking, payment)
        self._commit()

        if not confirmed:
            logger.info(f"ℹ️ Duplicate charge.success for transaction {data.id}, nothing to do")
            return ReconcileResult(ALREADY_PROCESSED, event.event, payment.reference, booking.id)

        logger.info(f"✅ Completed pending confirmation of booking {booking.id} on replay")
        await self._notify(STATUS_UPDATE, booking, CONFIRMED_MESSAGE)
        return ReconcileResult(PROCESSED, event.event, payment.reference, booking.id)

    async def _on_charge_failed(self, event: ChargeFailed) -> ReconcileResult:
        data = event.data
        logger.info(f"💳 charge.failed for {data.reference} (transaction {data.id})")

        try:
            try:
                payment = self.payments.fail(data.id, event.reason, reference=data.reference)
            except AlreadyProcessed as e:
                logger.info(f"ℹ️ {e.message}")
                return ReconcileResult(ALREADY_PROCESSED, event.event, data.reference)

            booking = self._load_booking(payment)
            self.lifecycle.note_payment_failed(booking)
            self._commit()
        except BookingPlatformError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Database error reconciling {data.reference}: {e}")
            raise StorageError("Could not record payment event") from e

        if booking.status == BookingStatus.PENDING.value:
            await self._notify(
                PAYMENT_FAILED, booking, FAILED_MESSAGE.format(reason=event.reason)
            )

        return ReconcileResult(PROCESSED, event.event, payment.reference, booking.id)


def get_reconciler(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> WebhookReconciler:
    """Dependency injection for WebhookReconciler"""
    return WebhookReconciler(db, dispatcher)
