"""Bookings router - FastAPI endpoints for the booking lifecycle"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import Principal, get_current_principal
from ...database import get_db
from ...services.notification_service import NotificationDispatcher, get_notification_dispatcher
from .schemas import (
    BookingResponse,
    BookingStatusResponse,
    CreateBookingRequest,
    CreateBookingResponse,
    ModifyBookingRequest,
    ModifyBookingResponse,
    StatusUpdateRequest,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_booking_service(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, dispatcher)


@router.post("", response_model=CreateBookingResponse, status_code=201)
async def create_booking(
    body: CreateBookingRequest,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    """Create a booking from a cart; returns the payment reference to charge"""
    return await service.create_booking(body, principal)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    return service.get_booking(booking_id, principal)


@router.post("/{booking_id}/modify", response_model=ModifyBookingResponse)
async def modify_booking(
    booking_id: str,
    body: ModifyBookingRequest,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    """Change services, extras, schedule, address or notes"""
    return await service.modify_booking(booking_id, body, principal)


@router.post("/{booking_id}/cancel", response_model=BookingStatusResponse)
async def cancel_booking(
    booking_id: str,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    """Cancel a booking (more than 24 hours before service only)"""
    return await service.cancel_booking(booking_id, principal)


@router.post("/{booking_id}/status", response_model=BookingStatusResponse)
async def update_booking_status(
    booking_id: str,
    body: StatusUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    """Cleaner/admin progress update"""
    return await service.update_status(booking_id, body, principal)
