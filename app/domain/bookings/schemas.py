"""Booking domain schemas - Pydantic models for validation"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class ServiceSelection(BaseModel):
    """A catalog service in the cart"""

    service_item_id: str
    quantity: int = 1


class ExtraSelection(BaseModel):
    """A catalog extra in the cart"""

    service_extra_id: str
    quantity: int = 1


class NewAddress(BaseModel):
    """Schema for an address created alongside the booking"""

    type: Literal["home", "office", "other"] = "home"
    name: str
    address_line_1: str
    address_line_2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str

    @field_validator("name", "address_line_1", "city", "state", "postal_code", "country")
    @classmethod
    def validate_required_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class CreateBookingRequest(BaseModel):
    """Schema for creating a booking from a cart"""

    services: list[ServiceSelection] = []
    extras: list[ExtraSelection] = []
    service_date: date
    service_time: time
    address_id: Optional[str] = None
    new_address: Optional[NewAddress] = None
    notes: Optional[str] = None


class ModifyBookingRequest(BaseModel):
    """
    Schema for modifying a booking.

    Every field is optional; a list that is present replaces the whole
    corresponding line set.
    """

    services: Optional[list[ServiceSelection]] = None
    extras: Optional[list[ExtraSelection]] = None
    service_date: Optional[date] = None
    service_time: Optional[time] = None
    address_id: Optional[str] = None
    new_address: Optional[NewAddress] = None
    notes: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    """Schema for cleaner/admin progress updates"""

    status: Literal["in_progress", "completed"]
    status_message: Optional[str] = None


class CreateBookingResponse(BaseModel):
    booking_id: str
    total_amount: Decimal
    payment_reference: str
    currency: str
    status: str


class ModifyBookingResponse(BaseModel):
    booking_id: str
    total_amount: Decimal
    status: str
    payment_amount: Optional[int] = None  # Minor units


class BookingStatusResponse(BaseModel):
    booking_id: str
    status: str
    payment_status: Optional[str] = None


class BookingLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class BookingServiceLineResponse(BookingLineResponse):
    service_item_id: str


class BookingExtraLineResponse(BookingLineResponse):
    service_extra_id: str


class PaymentSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    reference: str
    amount: int  # Minor units
    currency: str
    status: str
    gateway_transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    customer_id: str
    cleaner_id: Optional[str] = None
    status: str
    service_date: date
    service_time: time
    duration_hours: int
    address_id: str
    total_price: Decimal
    notes: Optional[str] = None
    services: list[BookingServiceLineResponse]
    extras: list[BookingExtraLineResponse]
    payment: Optional[PaymentSummary] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
