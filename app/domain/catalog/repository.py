"""Catalog repository - read-only lookups of bookable services and extras"""

from collections.abc import Iterable

from sqlalchemy.orm import Session

from ...models import ServiceExtra, ServiceItem


class CatalogRepository:
    """Queried fresh for every pricing/validation pass; nothing is cached"""

    @staticmethod
    def get_service_items(db: Session, item_ids: Iterable[str]) -> dict[str, ServiceItem]:
        """Get service items keyed by id; unknown ids are simply absent"""
        ids = set(item_ids)
        if not ids:
            return {}
        items = db.query(ServiceItem).filter(ServiceItem.id.in_(ids)).all()
        return {item.id: item for item in items}

    @staticmethod
    def get_service_extras(db: Session, extra_ids: Iterable[str]) -> dict[str, ServiceExtra]:
        ids = set(extra_ids)
        if not ids:
            return {}
        extras = db.query(ServiceExtra).filter(ServiceExtra.id.in_(ids)).all()
        return {extra.id: extra for extra in extras}
