"""Registry of the item types a model manager knows how to store.

Each :class:`ItemTypeDescriptor` maps a type tag (``"Process"``) to the
item class that represents it. Stores use the registry to decide which
sub-directories of a model to scan and how to build items from descriptors.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .errors import ModelError
from .items import ActivityItem, DataTypeItem, Item, ProcessItem

logger = logging.getLogger(__name__)

MODEL_TYPE = "Model"

ALL_TYPES = 0
SKIP_MODEL = 1 << 0
SKIP_INVISIBLE = 1 << 1


@dataclass
class ItemTypeDescriptor:
    """Describes one item type."""

    item_type: str
    item_class: type[Item] = Item
    visible: bool = True
    sequence: int = 100  # ordering in listings, lower first

    @property
    def folder_name(self) -> str:
        """Store sub-directory holding items of this type."""
        return self.item_type.lower()

    def create_item(self, name: Optional[str] = None) -> Item:
        item = self.item_class()
        item.name = name
        item.item_type = self.item_type
        return item


class ItemTypeRegistry:
    """Ordered set of item type descriptors, keyed by type tag."""

    def __init__(self) -> None:
        self._by_type: dict[str, ItemTypeDescriptor] = {}

    def add(self, itd: ItemTypeDescriptor) -> None:
        """Register *itd*. A type tag that is already registered is kept as is."""
        if itd.item_type in self._by_type:
            logger.debug("Item type %s already registered", itd.item_type)
            return
        self._by_type[itd.item_type] = itd

    def get(self, item_type: Optional[str]) -> Optional[ItemTypeDescriptor]:
        if item_type is None:
            return None
        return self._by_type.get(item_type)

    def require(self, item_type: Optional[str]) -> ItemTypeDescriptor:
        itd = self.get(item_type)
        if itd is None:
            raise ModelError(f"Unknown item type '{item_type}'.", code="UnknownItemType")
        return itd

    def descriptors(self, mode: int = ALL_TYPES) -> list[ItemTypeDescriptor]:
        result = sorted(self._by_type.values(), key=lambda d: (d.sequence, d.item_type))
        if mode & SKIP_MODEL:
            result = [d for d in result if d.item_type != MODEL_TYPE]
        if mode & SKIP_INVISIBLE:
            result = [d for d in result if d.visible]
        return result

    def item_types(self, mode: int = ALL_TYPES) -> list[str]:
        return [d.item_type for d in self.descriptors(mode)]

    def __contains__(self, item_type: object) -> bool:
        return item_type in self._by_type

    @classmethod
    def standard(cls) -> "ItemTypeRegistry":
        """Registry with the built-in item types."""
        from .model import Model

        registry = cls()
        registry.add(ItemTypeDescriptor(MODEL_TYPE, Model, visible=False, sequence=0))
        registry.add(ItemTypeDescriptor(DataTypeItem.ITEM_TYPE, DataTypeItem, sequence=10))
        registry.add(ItemTypeDescriptor(ActivityItem.ITEM_TYPE, ActivityItem, sequence=20))
        registry.add(ItemTypeDescriptor(ProcessItem.ITEM_TYPE, ProcessItem, sequence=30))
        registry.add(ItemTypeDescriptor("Actor", Item, sequence=40))
        return registry
