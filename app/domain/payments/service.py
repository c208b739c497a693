"""
Payment record manager

Owns every write to the payments table. Methods flush but never commit: the
booking writer and the webhook reconciler decide the transaction boundary so
that a payment change and its booking change land together or not at all.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...errors import (
    AlreadyProcessed,
    AmountMismatch,
    Conflict,
    DuplicateReference,
    NotFound,
    TransactionConflict,
)
from ...models import Payment
from ..bookings.lifecycle import PaymentStatus, utcnow
from .references import generate_payment_reference
from .repository import PaymentRepository

logger = logging.getLogger(__name__)

SETTLEABLE = (PaymentStatus.PENDING.value, PaymentStatus.FAILED.value)
SETTLED = (PaymentStatus.COMPLETED.value, PaymentStatus.REFUNDED.value)


def _naive_utc(value: datetime) -> datetime:
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class PaymentService:
    """Service layer for payment records"""

    def __init__(
        self,
        db: Session,
        clock: Optional[Callable[[], datetime]] = None,
        reference_factory: Callable[[], str] = generate_payment_reference,
    ):
        self.db = db
        self.clock = clock or utcnow
        self.reference_factory = reference_factory
        self.repo = PaymentRepository()

    def open(self, booking_id: str, amount: int, currency: str) -> Payment:
        """Create a pending payment for a booking. ``amount`` is in minor units."""
        reference = self.reference_factory()
        if self.repo.reference_exists(self.db, reference):
            logger.error(f"❌ Payment reference collision: {reference}")
            raise DuplicateReference(f"Payment reference {reference} is already in use")

        try:
            payment = self.repo.add_payment(
                self.db,
                booking_id=booking_id,
                reference=reference,
                amount=amount,
                currency=currency,
                status=PaymentStatus.PENDING.value,
                payment_method="card",
            )
        except IntegrityError as e:
            # A concurrent create inserted the same reference after our check
            if "reference" not in str(e.orig).lower():
                raise
            logger.error(f"❌ Payment reference collision on insert: {reference}")
            raise DuplicateReference(f"Payment reference {reference} is already in use") from e
        logger.info(f"💳 Payment {reference} opened for booking {booking_id}: {amount} {currency}")
        return payment

    def _check_transaction_owner(self, transaction_id: str, payment: Payment) -> None:
        holder = self.repo.get_by_transaction_id(self.db, transaction_id)
        if holder is not None and holder.id != payment.id:
            logger.error(
                f"❌ Transaction {transaction_id} already recorded on payment {holder.reference}, "
                f"refusing to attach it to {payment.reference}"
            )
            raise TransactionConflict(
                f"Transaction {transaction_id} belongs to a different payment"
            )

    def _find(self, transaction_id: str, reference: Optional[str]) -> Payment:
        payment = None
        if reference:
            payment = self.repo.get_by_reference(self.db, reference)
        if payment is None:
            payment = self.repo.get_by_transaction_id(self.db, transaction_id)
        if payment is None:
            raise NotFound(f"No payment found for reference {reference}", field="reference")
        return payment

    def settle(self, transaction_id: str, amount: int, currency: str, reference: str) -> Payment:
        """Mark the payment completed and record the gateway transaction id"""
        payment = self._find(transaction_id, reference)
        self._check_transaction_owner(transaction_id, payment)

        if payment.status in SETTLED:
            if payment.gateway_transaction_id == transaction_id:
                raise AlreadyProcessed(f"Transaction {transaction_id} already settled")
            raise TransactionConflict(
                f"Payment {payment.reference} was already settled by another transaction"
            )

        if amount != payment.amount or currency.upper() != payment.currency.upper():
            raise AmountMismatch(
                f"Amount mismatch: expected {payment.amount} {payment.currency}, "
                f"received {amount} {currency}",
                field="amount",
            )

        try:
            moved = self.repo.conditional_update(
                self.db,
                payment.id,
                SETTLEABLE,
                {
                    "status": PaymentStatus.COMPLETED.value,
                    "gateway_transaction_id": transaction_id,
                    "failure_reason": None,
                    "paid_at": _naive_utc(self.clock()),
                },
            )
        except IntegrityError as e:
            # A concurrent settle attached the same transaction to another payment
            self.db.rollback()
            raise TransactionConflict(
                f"Transaction {transaction_id} belongs to a different payment"
            ) from e

        self.db.refresh(payment)
        if not moved:
            if payment.gateway_transaction_id == transaction_id and payment.status in SETTLED:
                raise AlreadyProcessed(f"Transaction {transaction_id} already settled")
            raise Conflict(f"Payment {payment.reference} changed while settling, retry later")

        logger.info(f"✅ Payment {payment.reference} settled by transaction {transaction_id}")
        return payment

    def fail(self, transaction_id: str, reason: str, reference: Optional[str] = None) -> Payment:
        """Mark the payment failed. A settled payment is never downgraded."""
        payment = self._find(transaction_id, reference)
        self._check_transaction_owner(transaction_id, payment)

        if payment.status in SETTLED:
            raise AlreadyProcessed(
                f"Payment {payment.reference} already {payment.status}; ignoring failure"
            )
        if (
            payment.status == PaymentStatus.FAILED.value
            and payment.gateway_transaction_id == transaction_id
        ):
            raise AlreadyProcessed(f"Failure for transaction {transaction_id} already recorded")

        moved = self.repo.conditional_update(
            self.db,
            payment.id,
            SETTLEABLE,
            {
                "status": PaymentStatus.FAILED.value,
                "gateway_transaction_id": transaction_id,
                "failure_reason": reason,
            },
        )
        self.db.refresh(payment)
        if not moved:
            # Lost the race to a settle; success wins
            raise AlreadyProcessed(f"Payment {payment.reference} already {payment.status}")

        logger.warning(f"⚠️ Payment {payment.reference} failed: {reason}")
        return payment

    def sync_amount(self, payment: Payment, amount: int) -> Payment:
        """Keep an unsettled payment's amount equal to its booking total"""
        if payment.amount == amount:
            return payment
        if payment.status in SETTLED:
            raise Conflict(
                "This booking has already been paid; price changes require a new payment",
                field="services",
            )

        old_amount = payment.amount
        moved = self.repo.conditional_update(self.db, payment.id, SETTLEABLE, {"amount": amount})
        self.db.refresh(payment)
        if not moved:
            raise Conflict("Payment was settled while the booking was being modified, retry")

        logger.info(f"💳 Payment {payment.reference} amount {old_amount} → {amount}")
        return payment

    def refund(self, payment: Payment) -> bool:
        """
        Book a completed payment as refunded. Local bookkeeping only; moving
        the money back is the gateway's job.
        """
        moved = self.repo.conditional_update(
            self.db,
            payment.id,
            [PaymentStatus.COMPLETED.value],
            {"status": PaymentStatus.REFUNDED.value, "refunded_at": _naive_utc(self.clock())},
        )
        self.db.refresh(payment)
        if moved:
            logger.info(f"↩️ Payment {payment.reference} marked refunded")
        return moved
