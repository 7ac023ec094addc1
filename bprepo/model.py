"""Models (named namespaces of typed items) and cross-model resolution.

Name resolution is a fixed three-tier search::

    1. the model itself
    2. each directly imported model, in import-list order
    3. the System model

An imported model's own imports are never consulted, so import cycles need
no special handling. Absolute references (``/Other/Item``) bypass the
search and go straight to the manager's registry.
"""

from __future__ import annotations

import enum
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator, Optional, Union

from .errors import DuplicateNameError, ModelError, ObjectNotFoundError
from .items import ComplexTypeItem, DataTypeItem, Item, ModelObject, ReferenceFlags, check_name
from .qualifier import OBJECT_DELIMITER, Qualifier, is_absolute, normalize_model_name

if TYPE_CHECKING:
    from importlib.resources.abc import Traversable

    from .code_resolver import CodeResolver
    from .manager import ModelManager
    from .messages import MsgContainer

    Location = Union[Path, Traversable]

logger = logging.getLogger(__name__)

SYSTEM_MODEL_NAME = "System"
SYSTEM_MODEL_QUALIFIER = Qualifier(model=SYSTEM_MODEL_NAME)
MODEL_TYPE = "Model"


class ModelState(enum.Enum):
    """Whether the derived state (import list, code resolver) is current."""

    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"


class Model(Item):
    """Named container of typed items with an ordered import list.

    The item table is keyed by item type, then by item name: names are unique
    per type, not across types.
    """

    ITEM_TYPE = MODEL_TYPE

    def __init__(
        self,
        name: Optional[str] = None,
        imports: Optional[list[str]] = None,
        description: Optional[str] = None,
        default_package: Optional[str] = None,
        location: Optional["Location"] = None,
    ) -> None:
        super().__init__(name, item_type=MODEL_TYPE, description=description)
        self.model = self
        self.imports: list[str] = list(imports or [])
        self.default_package = default_package
        self.location = location
        self._manager: Optional["ModelManager"] = None
        self.state = ModelState.UNRESOLVED
        self._items: dict[str, dict[str, Item]] = {}
        self._imported_models: list[Model] = []
        self._code_resolver: Optional["CodeResolver"] = None

    @property
    def qualifier(self) -> Qualifier:
        return Qualifier(model=self.name)

    @property
    def owning_model(self) -> "Model":
        return self

    @property
    def manager(self) -> Optional["ModelManager"]:
        """The manager that registered this model, if any."""
        return self._manager

    @manager.setter
    def manager(self, value: Optional["ModelManager"]) -> None:
        self._manager = value

    @property
    def is_system_model(self) -> bool:
        return self.name == SYSTEM_MODEL_NAME

    # ------------------------------------------------------------------
    # Item storage
    # ------------------------------------------------------------------

    def get_item(self, name: str, item_type: Optional[str], required: bool = False) -> Optional[Item]:
        """Return the item *name* of *item_type*.

        Raises
        ------
        ObjectNotFoundError
            If *required* is set and there is no such item.
        """
        item = self._items.get(item_type or "", {}).get(name)
        if item is None and required:
            raise ObjectNotFoundError(
                f"Component '{name}' does not exist in model '{self.qualifier}'."
            )
        return item

    def find_item(self, name: str) -> Optional[Item]:
        """First item called *name*, whatever its type."""
        for items in self._items.values():
            item = items.get(name)
            if item is not None:
                return item
        return None

    def get_items(self, item_type: Optional[str] = None) -> Iterator[Item]:
        """Iterate over the items of *item_type*, or over all items if ``None``.

        Items of the same type are yielded next to each other.
        """
        if item_type is None:
            for items in list(self._items.values()):
                yield from list(items.values())
        else:
            yield from list(self._items.get(item_type, {}).values())

    def item_names(self, item_type: str) -> list[str]:
        return list(self._items.get(item_type, {}))

    def children(self) -> list[ModelObject]:
        return list(self.get_items())

    def add_item(self, item: Item) -> None:
        """Add *item* and make this model its owner.

        Raises
        ------
        DuplicateNameError
            If an item with the same type and name already exists.
        """
        items = self._items.setdefault(item.item_type or "", {})
        if item.name in items:
            raise DuplicateNameError(
                f"Component '{item.name}' already exists in model '{self.qualifier}'."
            )
        items[item.name] = item  # type: ignore[index]
        item.model = self

    def remove_item(self, item: Item) -> None:
        items = self._items.get(item.item_type or "")
        if items is not None:
            items.pop(item.name, None)  # type: ignore[arg-type]
            if not items:
                del self._items[item.item_type or ""]
        item.model = None

    def clear_items(self) -> None:
        self._items = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def imported_models(self) -> list["Model"]:
        """Resolved import list.

        A registered model that was invalidated is resolved again on access.
        """
        self._ensure_resolved()
        return list(self._imported_models)

    def resolve(self, messages: "MsgContainer") -> None:
        """Bind the import-name list to model objects and mark the model resolved."""
        resolved: list[Model] = []
        seen: set[str] = set()
        for raw in self.imports:
            name = normalize_model_name(raw)
            if not name or name in seen:
                continue
            seen.add(name)
            if name == self.name:
                messages.add(self, "Model '%s' imports itself.", name, level=logging.WARNING)
                continue
            imported = self._lookup_model(name)
            if imported is None:
                messages.add(self, "Cannot resolve imported model %s.", name, level=logging.WARNING)
                continue
            resolved.append(imported)
        self._imported_models = resolved
        self.state = ModelState.RESOLVED

    def _ensure_resolved(self) -> None:
        if self.state is ModelState.UNRESOLVED and self.manager is not None:
            logger.debug("Resolving model %s on demand", self.name)
            self.resolve(self.manager.messages)

    def invalidate(self) -> None:
        """Drop derived state; the model must be resolved again before use."""
        self._imported_models = []
        self.release_code_resolver()
        self.state = ModelState.UNRESOLVED

    def reset(self) -> None:
        """Soft reset: release the code resolver and mark the model unresolved."""
        logger.debug("Resetting model %s", self.name)
        self.invalidate()

    def shutdown(self) -> None:
        """Release the code resolver and invalidate every model importing this one."""
        self.release_code_resolver()
        if self.manager is None:
            return
        for other in self.manager.root.get_models():
            if other is not self and any(m is self for m in other._imported_models):
                logger.debug("Invalidating %s, which imports %s", other.name, self.name)
                other.invalidate()

    # ------------------------------------------------------------------
    # Code resolver
    # ------------------------------------------------------------------

    @property
    def code_resolver(self) -> "CodeResolver":
        """The model's code resolver, created on first access."""
        if self._code_resolver is None:
            if self.manager is not None:
                self._code_resolver = self.manager.create_code_resolver(self)
            else:
                from .code_resolver import shared_fallback_resolver

                self._code_resolver = shared_fallback_resolver()
        return self._code_resolver

    @property
    def has_code_resolver(self) -> bool:
        return self._code_resolver is not None

    def release_code_resolver(self) -> None:
        resolver, self._code_resolver = self._code_resolver, None
        if resolver is not None:
            resolver.close()

    # ------------------------------------------------------------------
    # Reference maintenance
    # ------------------------------------------------------------------

    def maintain_references(self, flags: ReferenceFlags, messages: "MsgContainer") -> None:
        if flags & ReferenceFlags.RESOLVE_GLOBAL_REFS:
            self.resolve(messages)
        if flags & ReferenceFlags.VALIDATE_BASIC:
            check_name(self, messages)

        if flags & ReferenceFlags.INSTANTIATE_ITEM:
            try:
                _ = self.code_resolver
            except ModelError as exc:
                messages.add(self, "Error instantiating model code resolver.", exc=exc)
                flags &= ~ReferenceFlags.INSTANTIATE_ITEM

        for item in list(self.get_items()):
            item.model = self
            item.maintain_references(flags, messages)
            if flags & ReferenceFlags.INSTANTIATE_ITEM:
                item.instantiate(messages)

    def copy_from(self, source: ModelObject) -> None:
        """Copy the model header (description, imports, packages, location).

        The item table and the manager link are kept.
        """
        if source is self:
            return
        super().copy_from(source)
        self.item_type = MODEL_TYPE
        if isinstance(source, Model):
            self.imports = list(source.imports)
            self.default_package = source.default_package
            if source.location is not None:
                self.location = source.location

    def write_xml(self, elem: ET.Element) -> None:
        super().write_xml(elem)
        if self.default_package:
            elem.set("defaultPackage", self.default_package)
        for name in self.imports:
            ET.SubElement(elem, "import").text = name

    def read_xml(self, elem: ET.Element) -> None:
        super().read_xml(elem)
        self.default_package = elem.get("defaultPackage")
        self.imports = [(e.text or "").strip() for e in elem.findall("import") if (e.text or "").strip()]

    # ------------------------------------------------------------------
    # Reference resolution
    # ------------------------------------------------------------------

    def resolve_item_ref(self, name: str, item_type: Optional[str]) -> Item:
        """Resolve an item reference as written inside this model.

        Raises
        ------
        ObjectNotFoundError
            If no candidate model holds the item.
        """
        if is_absolute(name):
            qualifier = Qualifier.parse(name)
            if item_type is not None:
                qualifier = qualifier.replace(item_type=item_type)
            item = self._check_item_ref(qualifier)
            if item is not None:
                return item
        else:
            for model_name in self._search_order():
                item = self._check_item_ref(Qualifier(model=model_name, item=name, item_type=item_type))
                if item is not None:
                    return item
        raise ObjectNotFoundError(
            f"Component '{name}' not found in model '{self.qualifier}' or imported models."
        )

    def determine_item_ref(self, item: Item) -> str:
        """Shortest reference text that :meth:`resolve_item_ref` maps back to *item*."""
        if isinstance(item, Model):
            return item.name or ""
        qualifier = item.qualifier
        if qualifier.model is None:
            return qualifier.item or ""
        if qualifier.model in self._search_order() and qualifier.item is not None:
            try:
                if self.resolve_item_ref(qualifier.item, item.item_type) is item:
                    return qualifier.item
            except ObjectNotFoundError:
                pass
        return str(qualifier)

    def resolve_object_ref(self, name: str, item_type: Optional[str]) -> ModelObject:
        """Resolve ``item[.child[.grandchild…]]``.

        The part before the first ``.`` is an item reference; each further
        segment names a child of the object before it.
        """
        item_name, _, path = name.partition(OBJECT_DELIMITER)
        obj: ModelObject = self.resolve_item_ref(item_name, item_type)
        if not path:
            return obj
        for segment in path.split(OBJECT_DELIMITER):
            child = obj.child(segment)
            if child is None:
                raise ObjectNotFoundError(
                    f"Component member '{segment}' not found in component '{obj.qualifier}'."
                )
            obj = child
        return obj

    def determine_object_ref(self, obj: ModelObject) -> str:
        if isinstance(obj, Item):
            return self.determine_item_ref(obj)
        if obj.container is None:
            return obj.name or ""
        return self.determine_object_ref(obj.container) + OBJECT_DELIMITER + (obj.name or "")

    def resolve_file_ref(self, file_name: str) -> "Location":
        """Find *file_name* below this model's location, its imports' or the System model's."""
        for model in self._search_models():
            path = _check_file_ref(model, file_name)
            if path is not None:
                return path
        raise ObjectNotFoundError(
            f"File '{file_name}' not found in model '{self.qualifier}' or imported models."
        )

    def lookup_type_by_class_name(self, class_name: str) -> Optional[ComplexTypeItem]:
        """Best-effort class-name to type mapping over this model and its direct imports."""
        for model in [self, *self.imported_models]:
            for item in model.get_items(DataTypeItem.ITEM_TYPE):
                if isinstance(item, ComplexTypeItem) and item.class_name == class_name:
                    return item
        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _search_order(self) -> list[str]:
        names: list[str] = []
        for name in [self.name, *(normalize_model_name(i) for i in self.imports), SYSTEM_MODEL_NAME]:
            if name and name not in names:
                names.append(name)
        return names

    def _search_models(self) -> list["Model"]:
        models: list[Model] = [self]
        for model in self.imported_models:
            if model not in models:
                models.append(model)
        system = self._lookup_model(SYSTEM_MODEL_NAME)
        if system is not None and system not in models:
            models.append(system)
        return models

    def _lookup_model(self, name: str) -> Optional["Model"]:
        if name == self.name:
            return self
        if self.manager is None:
            return None
        return self.manager.get_model(Qualifier.for_model(name), required=False)

    def _check_item_ref(self, qualifier: Qualifier) -> Optional[Item]:
        if qualifier.item_type == MODEL_TYPE or qualifier.item is None:
            if qualifier.item_type not in (None, MODEL_TYPE):
                return None
            return self._lookup_model(qualifier.item or qualifier.model or "")
        model = self._lookup_model(qualifier.model or "")
        if model is None:
            return None
        if qualifier.item_type is None:
            return model.find_item(qualifier.item)
        return model.get_item(qualifier.item, qualifier.item_type)


def _check_file_ref(model: Model, file_name: str) -> Optional["Location"]:
    if model.location is None:
        return None
    candidate = model.location
    for part in file_name.replace("\\", "/").split("/"):
        if part:
            candidate = candidate / part
    if candidate.is_file() or candidate.is_dir():
        return candidate
    return None


def new_model(name: str, *imports: str, **kwargs: Any) -> Model:
    """Convenience constructor used by tools and tests."""
    return Model(name=name, imports=list(imports), **kwargs)
