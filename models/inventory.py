"""
Inventory snapshot schemas.

One InventorySnapshot per source per run, keyed by the raw SKU exactly
as the source reported it (trimmed).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Iterator

from pydantic import Field

from models.base import FrozenSchema


UNKNOWN_PRODUCT = "Unknown Product"


class InventorySource(str, Enum):
    """Systems of record being reconciled."""
    BRIGHTPEARL = "brightpearl"  # source A, ERP
    INFOPLUS = "infoplus"  # source B, WMS


class InventoryItem(FrozenSchema):
    """A single SKU's quantity as reported by one source."""

    sku: str = Field(..., min_length=1, description="Raw SKU as reported")
    product_name: str = Field(default=UNKNOWN_PRODUCT, description="Display name")
    quantity: int = Field(..., ge=0, description="Available quantity")
    brand: Optional[str] = Field(None, description="Brand label, if known")


class InventorySnapshot(FrozenSchema):
    """Complete inventory of one source at fetch time."""

    source: InventorySource
    items: dict[str, InventoryItem] = Field(default_factory=dict)
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_items(
        cls,
        source: InventorySource,
        items: list[InventoryItem]
    ) -> "InventorySnapshot":
        """
        Build a snapshot from a list of items.

        Raw SKUs are unique within one source; a repeated raw SKU keeps
        the last record seen, matching how the sources overwrite by SKU.
        """
        by_sku: dict[str, InventoryItem] = {}
        for item in items:
            by_sku[item.sku] = item
        return cls(source=source, items=by_sku)

    @property
    def item_count(self) -> int:
        return len(self.items)

    def skus(self) -> Iterator[str]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __contains__(self, sku: object) -> bool:
        return sku in self.items
