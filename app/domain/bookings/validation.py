"""
Reference validator

Confirms everything a booking write refers to exists and is usable before
any row is touched. Returns a catalog snapshot holding only active entries,
which the pricing calculator then works from.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...errors import InvalidReference, ValidationError
from ...models import Address, ServiceExtra, ServiceItem
from ..catalog.repository import CatalogRepository
from .lifecycle import scheduled_at, utcnow
from .repository import BookingRepository
from .schemas import ExtraSelection, NewAddress, ServiceSelection

logger = logging.getLogger(__name__)


@dataclass
class CatalogSnapshot:
    services: dict[str, ServiceItem] = field(default_factory=dict)
    extras: dict[str, ServiceExtra] = field(default_factory=dict)


@dataclass
class AddressChoice:
    """Either an existing address row or a payload to insert"""

    existing: Optional[Address] = None
    new: Optional[NewAddress] = None


class ReferenceValidator:
    def __init__(self, db: Session, clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.clock = clock or utcnow
        self.catalog = CatalogRepository()
        self.repo = BookingRepository()

    def validate_cart(
        self,
        services: Sequence[ServiceSelection],
        extras: Sequence[ExtraSelection],
        require_services: bool = True,
    ) -> CatalogSnapshot:
        if require_services and not services:
            raise ValidationError("No services selected", field="services")

        service_items = self.catalog.get_service_items(
            self.db, (s.service_item_id for s in services)
        )
        for index, selection in enumerate(services):
            item = service_items.get(selection.service_item_id)
            if item is None:
                raise InvalidReference(
                    "Invalid service selected", field=f"services[{index}].service_item_id"
                )
            if not item.is_active:
                raise InvalidReference(
                    f"Service '{item.name}' is no longer available",
                    field=f"services[{index}].service_item_id",
                )

        service_extras = self.catalog.get_service_extras(
            self.db, (e.service_extra_id for e in extras)
        )
        for index, selection in enumerate(extras):
            extra = service_extras.get(selection.service_extra_id)
            if extra is None:
                raise InvalidReference(
                    "Invalid extra selected", field=f"extras[{index}].service_extra_id"
                )
            if not extra.is_active:
                raise InvalidReference(
                    f"Extra '{extra.name}' is no longer available",
                    field=f"extras[{index}].service_extra_id",
                )

        return CatalogSnapshot(services=service_items, extras=service_extras)

    def validate_address(
        self,
        customer_id: str,
        address_id: Optional[str],
        new_address: Optional[NewAddress],
    ) -> AddressChoice:
        if address_id and new_address:
            raise ValidationError(
                "Provide either an existing address or a new address, not both", field="address"
            )
        if new_address is not None:
            return AddressChoice(new=new_address)
        if not address_id:
            raise ValidationError("Service address required", field="address")

        address = self.repo.get_address(self.db, address_id)
        # Someone else's address is reported exactly like a missing one
        if address is None or address.user_id != customer_id:
            raise InvalidReference("Invalid address selected", field="address_id")
        return AddressChoice(existing=address)

    def validate_schedule(self, service_date: date, service_time: time) -> datetime:
        if service_date is None:
            raise ValidationError("Service date required", field="service_date")
        if service_time is None:
            raise ValidationError("Service time required", field="service_time")

        when = scheduled_at(service_date, service_time)
        if when <= self.clock():
            raise ValidationError("Service date must be in the future", field="service_date")
        return when
