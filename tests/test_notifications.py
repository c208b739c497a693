from unittest.mock import AsyncMock, patch

import pytest
from conftest import CUSTOMER_ID, ExplodingChannel, RecordingChannel

from app.email_templates import booking_update_template
from app.services.notification_service import (
    BOOKING_CREATED,
    EmailChannel,
    NotificationDispatcher,
    NotificationEvent,
)


def event(**overrides):
    fields = {
        "kind": BOOKING_CREATED,
        "booking_id": "9f1c2a7e-0000-4000-8000-000000000000",
        "customer_id": CUSTOMER_ID,
        "status": "pending",
        "message": "Thanks for your booking!",
        "details": {"scheduled_for": "2025-06-05 10:00:00", "total_amount": "2500.00"},
    }
    fields.update(overrides)
    return NotificationEvent(**fields)


@pytest.mark.asyncio
async def test_failing_channel_is_swallowed_and_others_still_run():
    recorder = RecordingChannel()
    dispatcher = NotificationDispatcher([ExplodingChannel(), recorder])

    result = await dispatcher.dispatch(event())

    assert result == {"exploding": False, "recording": True}
    assert len(recorder.events) == 1


@pytest.mark.asyncio
async def test_no_channels_is_a_no_op():
    assert await NotificationDispatcher().dispatch(event()) == {}


@pytest.mark.asyncio
async def test_email_channel_sends_to_profile_address(db, customer):
    with patch(
        "app.email_service.send_booking_update_email", new=AsyncMock(return_value={"id": "e1"})
    ) as send:
        await EmailChannel(db)(event())

    send.assert_awaited_once()
    kwargs = send.await_args.kwargs
    assert kwargs["to"] == "ada@example.com"
    assert kwargs["customer_name"] == "Ada Obi"
    assert kwargs["subject"] == "We've received your booking"
    assert kwargs["total_amount"] == "2500.00"


@pytest.mark.asyncio
async def test_email_channel_skips_unknown_profile(db):
    with patch("app.email_service.send_booking_update_email", new=AsyncMock()) as send:
        assert await EmailChannel(db)(event(customer_id="nobody")) is None
    send.assert_not_awaited()


def test_booking_update_template_mentions_status_and_details():
    mjml = booking_update_template(
        customer_name="Ada",
        booking_id="9f1c2a7e-0000",
        status="confirmed",
        status_message="Your booking is confirmed!",
        scheduled_for="2025-06-05 10:00:00",
        total_amount="2500.00",
    )
    assert "<mjml>" in mjml
    assert "Status: Confirmed" in mjml
    assert "9F1C2A7E" in mjml
    assert "2500.00" in mjml
