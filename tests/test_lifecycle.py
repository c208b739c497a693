from datetime import timedelta
from types import SimpleNamespace

import pytest
from conftest import fixed_clock, slot

from app.domain.bookings.lifecycle import BookingLifecycle, BookingStatus
from app.domain.bookings.repository import BookingRepository
from app.errors import CancellationWindowExpired, InvalidTransition


@pytest.fixture
def lifecycle():
    return BookingLifecycle(clock=fixed_clock)


def booking_at(hours_ahead, status="pending"):
    service_date, service_time = slot(hours_ahead)
    return SimpleNamespace(
        id="b-1", status=status, service_date=service_date, service_time=service_time
    )


class TestEditWindow:
    def test_cutoff_defaults_to_24_hours(self, lifecycle):
        assert lifecycle.cutoff == timedelta(hours=24)

    @pytest.mark.parametrize("status", ["pending", "confirmed"])
    def test_25_hours_ahead_is_editable(self, lifecycle, status):
        lifecycle.ensure_modifiable(booking_at(25, status))
        lifecycle.ensure_cancellable(booking_at(25, status))

    def test_23_hours_ahead_is_too_late(self, lifecycle):
        with pytest.raises(CancellationWindowExpired):
            lifecycle.ensure_cancellable(booking_at(23))
        with pytest.raises(CancellationWindowExpired):
            lifecycle.ensure_modifiable(booking_at(23))

    def test_exactly_24_hours_is_too_late(self, lifecycle):
        with pytest.raises(CancellationWindowExpired):
            lifecycle.ensure_cancellable(booking_at(24))

    @pytest.mark.parametrize("status", ["in_progress", "completed", "cancelled"])
    def test_other_statuses_cannot_be_edited(self, lifecycle, status):
        with pytest.raises(InvalidTransition):
            lifecycle.ensure_cancellable(booking_at(72, status))

    def test_status_checked_before_window(self, lifecycle):
        # Completed and inside the window: the status is the reported problem
        with pytest.raises(InvalidTransition):
            lifecycle.ensure_modifiable(booking_at(2, "completed"))

    def test_custom_cutoff(self):
        lifecycle = BookingLifecycle(cutoff=timedelta(hours=2), clock=fixed_clock)
        lifecycle.ensure_cancellable(booking_at(3))


class TestProgress:
    @pytest.mark.parametrize(
        "current,target",
        [("confirmed", "in_progress"), ("in_progress", "completed")],
    )
    def test_forward_steps(self, current, target):
        BookingLifecycle.ensure_progress(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            ("pending", "in_progress"),
            ("confirmed", "completed"),
            ("in_progress", "in_progress"),
            ("completed", "in_progress"),
            ("cancelled", "completed"),
        ],
    )
    def test_everything_else_rejected(self, current, target):
        with pytest.raises(InvalidTransition):
            BookingLifecycle.ensure_progress(current, target)


class TestTransitions:
    @pytest.mark.asyncio
    async def test_confirm_after_payment_moves_pending_once(self, db, lifecycle, make_booking):
        created = await make_booking()
        booking = BookingRepository.get_booking(db, created.booking_id)

        assert lifecycle.confirm_after_payment(db, booking) is True
        assert booking.status == BookingStatus.CONFIRMED.value
        assert lifecycle.confirm_after_payment(db, booking) is False
        assert booking.status == BookingStatus.CONFIRMED.value

    @pytest.mark.asyncio
    async def test_confirm_after_payment_refuses_cancelled(self, db, lifecycle, make_booking):
        created = await make_booking()
        booking = BookingRepository.get_booking(db, created.booking_id)
        lifecycle.cancel(db, booking)

        with pytest.raises(InvalidTransition):
            lifecycle.confirm_after_payment(db, booking)
        assert booking.status == BookingStatus.CANCELLED.value

    @pytest.mark.asyncio
    async def test_every_transition_bumps_version(self, db, lifecycle, make_booking):
        created = await make_booking()
        booking = BookingRepository.get_booking(db, created.booking_id)
        version = booking.version

        lifecycle.confirm_after_payment(db, booking)
        lifecycle.advance(db, booking, "in_progress")

        assert booking.status == "in_progress"
        assert booking.version == version + 2

    @pytest.mark.asyncio
    async def test_lost_race_changes_nothing(self, db, lifecycle, make_booking):
        created = await make_booking()
        booking = BookingRepository.get_booking(db, created.booking_id)

        # Another writer cancelled the row after we read it as pending
        BookingRepository.transition_status(db, booking.id, ["pending"], "cancelled")

        assert BookingRepository.transition_status(db, booking.id, ["pending"], "confirmed") is False
        db.refresh(booking)
        assert booking.status == "cancelled"
