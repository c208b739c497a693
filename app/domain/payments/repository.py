"""Payment repository - Database operations for payment records"""

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Payment


class PaymentRepository:
    """Repository for payment database operations"""

    @staticmethod
    def get_by_reference(db: Session, reference: str) -> Optional[Payment]:
        return db.query(Payment).filter(Payment.reference == reference).first()

    @staticmethod
    def get_by_transaction_id(db: Session, transaction_id: str) -> Optional[Payment]:
        return db.query(Payment).filter(Payment.gateway_transaction_id == transaction_id).first()

    @staticmethod
    def reference_exists(db: Session, reference: str) -> bool:
        return db.query(Payment.id).filter(Payment.reference == reference).first() is not None

    @staticmethod
    def add_payment(db: Session, **fields) -> Payment:
        payment = Payment(**fields)
        db.add(payment)
        db.flush()
        return payment

    @staticmethod
    def conditional_update(
        db: Session, payment_id: str, from_statuses: Iterable[str], values: dict
    ) -> bool:
        """
        Update the payment only while it is in one of ``from_statuses``.

        Returns False when a concurrent writer already moved it elsewhere.
        """
        values = dict(values)
        values["updated_at"] = datetime.now(timezone.utc).replace(tzinfo=None)
        updated = (
            db.query(Payment)
            .filter(Payment.id == payment_id, Payment.status.in_(list(from_statuses)))
            .update(values, synchronize_session=False)
        )
        return updated == 1
