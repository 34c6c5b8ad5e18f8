# Overview: Display snapshot of the inventory for selection UI (catalog cache).

"""
The catalog is a point-in-time snapshot of active items, loaded once per
page visit. It feeds item pickers and the cart's soft stock check.

It is never authoritative: the checkout engine re-reads quantities inside
its own transaction before committing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from ..domain import ItemSnapshot
from ..repositories import InventoryRepository, SqlInventoryRepository
from ..time_utils import to_utc_z, utcnow


logger = logging.getLogger(__name__)


class CatalogUnavailableError(Exception):
    """The inventory store could not be read."""


@dataclass(frozen=True)
class CatalogSnapshot:
    items: tuple[ItemSnapshot, ...]
    loaded_at: datetime = field(default_factory=utcnow)

    def __len__(self) -> int:
        return len(self.items)

    def get(self, item_id: int) -> ItemSnapshot | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def find_by_barcode(self, barcode: str) -> ItemSnapshot | None:
        code = (barcode or "").strip()
        if not code:
            return None
        for item in self.items:
            if item.barcode == code:
                return item
        return None

    def categories(self) -> list[str]:
        return sorted({item.category for item in self.items if item.category})

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "count": len(self.items),
            "categories": self.categories(),
            "loaded_at": to_utc_z(self.loaded_at),
        }


def load(repository: InventoryRepository | None = None) -> CatalogSnapshot:
    """
    Fetch every active item.

    Raises CatalogUnavailableError on read failure; there is no automatic
    retry, the caller refreshes manually.
    """
    repository = repository or SqlInventoryRepository()
    try:
        items = repository.list_items()
    except SQLAlchemyError as exc:
        logger.exception("Catalog load failed")
        raise CatalogUnavailableError("Inventory is currently unavailable") from exc
    return CatalogSnapshot(items=tuple(items))
