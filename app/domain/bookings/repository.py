"""Booking repository - Database operations for the booking aggregate"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ...models import Address, Booking, BookingExtraLine, BookingServiceLine


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_booking(db: Session, booking_id: str) -> Optional[Booking]:
        """Get booking by ID with its line items and payment"""
        return (
            db.query(Booking)
            .options(
                selectinload(Booking.services),
                selectinload(Booking.extras),
                selectinload(Booking.payment),
            )
            .filter(Booking.id == booking_id)
            .first()
        )

    @staticmethod
    def get_address(db: Session, address_id: str) -> Optional[Address]:
        return db.query(Address).filter(Address.id == address_id).first()

    @staticmethod
    def add_address(db: Session, user_id: str, **fields) -> Address:
        address = Address(user_id=user_id, is_default=False, **fields)
        db.add(address)
        db.flush()
        return address

    @staticmethod
    def add_booking(db: Session, **fields) -> Booking:
        booking = Booking(**fields)
        db.add(booking)
        db.flush()
        return booking

    @staticmethod
    def replace_service_lines(
        db: Session, booking: Booking, lines: list[BookingServiceLine]
    ) -> None:
        """Replace the whole service line set; the old rows are deleted as orphans"""
        booking.services = lines
        db.flush()

    @staticmethod
    def replace_extra_lines(db: Session, booking: Booking, lines: list[BookingExtraLine]) -> None:
        booking.extras = lines
        db.flush()

    @staticmethod
    def transition_status(
        db: Session, booking_id: str, from_statuses: list[str], to_status: str
    ) -> bool:
        """
        Compare-and-swap the booking status.

        Returns True when the row was still in one of ``from_statuses`` and has
        been moved to ``to_status``; False when another writer got there first.
        """
        updated = (
            db.query(Booking)
            .filter(Booking.id == booking_id, Booking.status.in_(from_statuses))
            .update(
                {
                    Booking.status: to_status,
                    Booking.version: Booking.version + 1,
                    Booking.updated_at: datetime.now(timezone.utc).replace(tzinfo=None),
                },
                synchronize_session=False,
            )
        )
        return updated == 1
