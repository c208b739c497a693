"""
Pricing calculator

Turns a cart into priced line items and a grand total. Prices come from a
catalog snapshot passed in by the caller; nothing here touches the database,
so the same cart and snapshot always price identically.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from ...errors import InvalidQuantity, InvalidReference
from ...models import ServiceExtra, ServiceItem
from ...money import quantize
from .schemas import ExtraSelection, ServiceSelection


@dataclass(frozen=True)
class PricedLine:
    catalog_id: str
    name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


@dataclass
class PricedCart:
    services: list[PricedLine] = field(default_factory=list)
    extras: list[PricedLine] = field(default_factory=list)

    @property
    def services_total(self) -> Decimal:
        return sum((line.total_price for line in self.services), Decimal("0"))

    @property
    def extras_total(self) -> Decimal:
        return sum((line.total_price for line in self.extras), Decimal("0"))

    @property
    def total(self) -> Decimal:
        return self.services_total + self.extras_total


def _check_quantity(
    quantity,
    field_name: str,
    min_quantity: Optional[int] = None,
    max_quantity: Optional[int] = None,
) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidQuantity("Quantity must be a positive whole number", field=field_name)
    if min_quantity is not None and quantity < min_quantity:
        raise InvalidQuantity(f"Quantity must be at least {min_quantity}", field=field_name)
    if max_quantity is not None and quantity > max_quantity:
        raise InvalidQuantity(f"Quantity cannot exceed {max_quantity}", field=field_name)
    return quantity


def line_total(unit_price: Decimal, quantity: int, currency: str) -> Decimal:
    return quantize(Decimal(unit_price) * quantity, currency)


def price_services(
    selections: Sequence[ServiceSelection],
    catalog: Mapping[str, ServiceItem],
    currency: str,
) -> list[PricedLine]:
    lines = []
    for index, selection in enumerate(selections):
        item = catalog.get(selection.service_item_id)
        if item is None:
            raise InvalidReference(
                "Invalid service selected", field=f"services[{index}].service_item_id"
            )
        quantity = _check_quantity(
            selection.quantity,
            f"services[{index}].quantity",
            min_quantity=item.min_quantity,
            max_quantity=item.max_quantity,
        )
        unit_price = quantize(item.base_price, currency)
        lines.append(
            PricedLine(
                catalog_id=item.id,
                name=item.name,
                quantity=quantity,
                unit_price=unit_price,
                total_price=line_total(unit_price, quantity, currency),
            )
        )
    return lines


def price_extras(
    selections: Sequence[ExtraSelection],
    catalog: Mapping[str, ServiceExtra],
    currency: str,
) -> list[PricedLine]:
    lines = []
    for index, selection in enumerate(selections):
        extra = catalog.get(selection.service_extra_id)
        if extra is None:
            raise InvalidReference(
                "Invalid extra selected", field=f"extras[{index}].service_extra_id"
            )
        quantity = _check_quantity(selection.quantity, f"extras[{index}].quantity")
        unit_price = quantize(extra.price, currency)
        lines.append(
            PricedLine(
                catalog_id=extra.id,
                name=extra.name,
                quantity=quantity,
                unit_price=unit_price,
                total_price=line_total(unit_price, quantity, currency),
            )
        )
    return lines


def price_cart(
    services: Sequence[ServiceSelection],
    extras: Sequence[ExtraSelection],
    service_catalog: Mapping[str, ServiceItem],
    extra_catalog: Mapping[str, ServiceExtra],
    currency: str,
) -> PricedCart:
    """Price a full cart: sum of unit price × quantity over every line"""
    return PricedCart(
        services=price_services(services, service_catalog, currency),
        extras=price_extras(extras, extra_catalog, currency),
    )
