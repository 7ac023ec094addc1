"""Model managers.

:class:`ModelManager` is the contract every manager (single backend or
multiplexer) offers. :class:`StoreModelManager` implements it on top of a
:class:`~bprepo.stores.base.ModelStore`: it owns the in-memory registry,
rejects duplicate names and hands the six store hooks to the backend.

Usage::

    from bprepo.manager import StoreModelManager
    from bprepo.stores import FileSystemStore

    mgr = StoreModelManager(FileSystemStore("~/models"))
    mgr.read_models()
    mgr.initialize_models()
    item = mgr.get_item(Qualifier.parse("/Sales/Process:CheckOrder"))
"""

from __future__ import annotations

import abc
import enum
import fnmatch
import gc
import logging
import threading
from typing import TYPE_CHECKING, Optional, Union

from .config import RepositorySettings
from .errors import (
    DuplicateNameError,
    ModelError,
    ModelValidationError,
    ObjectNotFoundError,
    UnsupportedOperationError,
)
from .item_types import ALL_TYPES, ItemTypeDescriptor, ItemTypeRegistry
from .items import Item, ReferenceFlags
from .messages import MsgContainer
from .model import SYSTEM_MODEL_NAME, SYSTEM_MODEL_QUALIFIER, Model
from .qualifier import Qualifier, is_valid_identifier

if TYPE_CHECKING:
    from .code_resolver import CodeResolver
    from .stores.base import ModelStore

logger = logging.getLogger(__name__)

QualifierLike = Union[Qualifier, str]


class NotificationMode(enum.Enum):
    """Kind of external change reported to :meth:`ModelManager.model_updated`."""

    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"


def as_model_qualifier(ref: QualifierLike) -> Qualifier:
    """Accept a qualifier or a model name and return the model qualifier."""
    if isinstance(ref, Qualifier):
        qualifier = ref.model_qualifier
    elif ref.startswith("/"):
        qualifier = Qualifier.parse(ref).model_qualifier
    else:
        qualifier = Qualifier.for_model(ref)
    if not qualifier.model:
        raise ModelError(f"Missing model name in qualifier '{ref}'.")
    return qualifier


class ModelManager(abc.ABC):
    """Contract shared by all model managers.

    Parameters
    ----------
    settings:
        Repository settings; defaults are used when omitted.
    item_type_registry:
        Known item types. The standard registry is used when omitted.
    messages:
        Container collecting load and validation problems. A multiplexer
        hands one container to all of its children.
    """

    def __init__(
        self,
        settings: Optional[RepositorySettings] = None,
        item_type_registry: Optional[ItemTypeRegistry] = None,
        messages: Optional[MsgContainer] = None,
    ) -> None:
        self.settings = settings or RepositorySettings()
        self.item_type_registry = item_type_registry or ItemTypeRegistry.standard()
        self.messages = messages if messages is not None else MsgContainer()
        self.parent: Optional[ModelManager] = None

    @property
    def root(self) -> "ModelManager":
        """Top of the manager hierarchy; global look-ups go through it."""
        manager: ModelManager = self
        while manager.parent is not None:
            manager = manager.parent
        return manager

    def describe(self) -> str:
        return type(self).__name__

    # -- models ---------------------------------------------------------

    @abc.abstractmethod
    def find_local_model(self, name: str) -> Optional[Model]:
        """Model held by this manager (or its children), without asking the parent."""

    @abc.abstractmethod
    def get_model(self, qualifier: QualifierLike, required: bool = False) -> Optional[Model]:
        """Return the model named by *qualifier*.

        Raises
        ------
        ObjectNotFoundError
            If *required* is set and the model does not exist.
        """

    @abc.abstractmethod
    def get_models(self) -> list[Model]:
        """All models known to this manager."""

    @abc.abstractmethod
    def add_model(self, model: Model) -> bool:
        """Persist and register a new model. Returns ``False`` if this manager declines."""

    @abc.abstractmethod
    def update_model(self, model: Model) -> Model:
        """Copy *model* into the registered instance of the same name and save it."""

    @abc.abstractmethod
    def remove_model(self, model: Model) -> None:
        """Delete *model* from the store and the registry."""

    # -- items ------------------------------------------------------------

    def get_item(self, qualifier: QualifierLike, required: bool = False) -> Optional[Item]:
        """Return the item addressed by an absolute qualifier.

        Without an item type in the qualifier the first item of that name is
        returned, whatever its type.

        Raises
        ------
        ModelError
            If the qualifier lacks the model or the item name.
        ObjectNotFoundError
            If *required* is set and the model or item does not exist.
        """
        if isinstance(qualifier, str):
            qualifier = Qualifier.parse(qualifier)
        if qualifier.model is None:
            raise ModelError(f"Missing model name in qualifier '{qualifier.typed}'.")
        if qualifier.item is None:
            raise ModelError(f"Missing item name in qualifier '{qualifier.typed}'.")
        model = self.get_model(qualifier, required)
        if model is None:
            return None
        if qualifier.item_type is None:
            item = model.find_item(qualifier.item)
            if item is None and required:
                raise ObjectNotFoundError(
                    f"Component '{qualifier.item}' does not exist in model '{model.qualifier}'."
                )
            return item
        return model.get_item(qualifier.item, qualifier.item_type, required)

    @abc.abstractmethod
    def add_item(self, model: Model, item: Item, sync_global_refs: bool = False) -> None:
        """Add *item* to *model*, resolve its references and store it."""

    @abc.abstractmethod
    def update_item(self, item: Item, model: Optional[Model] = None) -> Item:
        """Copy *item* into the registered item of the same name and type and save it."""

    @abc.abstractmethod
    def remove_item(self, item: Item) -> None:
        """Delete *item* from the store and from its model."""

    @abc.abstractmethod
    def move_item(self, item: Item, destination: QualifierLike) -> Item:
        """Rename *item* and/or move it to another model."""

    # -- bulk operations --------------------------------------------------

    @abc.abstractmethod
    def read_models(self) -> None:
        """Drop all models and read them again from the store."""

    @abc.abstractmethod
    def initialize_models(self) -> None:
        """Resolve and validate every model; problems go to :attr:`messages`."""

    @abc.abstractmethod
    def reset_models(self, reload: bool) -> None:
        """Reload from the store or soft-reset every model, without initializing."""

    @abc.abstractmethod
    def model_updated(self, qualifier: QualifierLike, mode: NotificationMode) -> None:
        """Pick up an external change to the store."""

    def request_model_reset(self, reload: Optional[bool] = None) -> None:
        """Reload or soft-reset all models and validate them again.

        *reload* defaults to the ``reload_on_reset`` setting. The reset is not
        rolled back on failure: models that loaded cleanly stay available.

        Raises
        ------
        ModelValidationError
            If any problem was recorded while reloading or validating.
        """
        if reload is None:
            reload = self.settings.reload_on_reset
        self.messages.clear()
        self.reset_models(reload)
        self.initialize_models()

        gc.collect()

        lines = self.messages.lines()
        self.messages.clear()
        logger.info(
            "Model reset (%s) finished with %d model(s), %d problem(s)",
            "reload" if reload else "soft",
            len(self.get_models()),
            len(lines),
        )
        if lines:
            raise ModelValidationError(lines)

    # -- code -------------------------------------------------------------

    @abc.abstractmethod
    def create_code_resolver(self, model: Model) -> "CodeResolver":
        """Build the code resolver for *model*."""

    def system_code_resolver(self) -> Optional["CodeResolver"]:
        system = self.root.get_model(SYSTEM_MODEL_QUALIFIER, required=False)
        if system is None:
            return None
        return system.code_resolver

    # -- item types -------------------------------------------------------

    def item_types(self, mode: int = ALL_TYPES) -> list[str]:
        return self.item_type_registry.item_types(mode)

    def item_type_descriptors(self, mode: int = ALL_TYPES) -> list[ItemTypeDescriptor]:
        return self.item_type_registry.descriptors(mode)

    def item_type_descriptor(self, item_type: str) -> Optional[ItemTypeDescriptor]:
        return self.item_type_registry.get(item_type)

    def _instantiate_flag(self) -> ReferenceFlags:
        if self.settings.instantiate_items:
            return ReferenceFlags.INSTANTIATE_ITEM
        return ReferenceFlags.NONE


# ---------------------------------------------------------------------------
# Store-backed manager
# ---------------------------------------------------------------------------


class StoreModelManager(ModelManager):
    """Manager holding the models of one :class:`ModelStore`.

    Registration, the full reload and all mutations run under one
    re-entrant lock. Look-ups are not locked; callers must not mutate while
    resolving.
    """

    def __init__(
        self,
        store: "ModelStore",
        settings: Optional[RepositorySettings] = None,
        item_type_registry: Optional[ItemTypeRegistry] = None,
        messages: Optional[MsgContainer] = None,
    ) -> None:
        super().__init__(settings, item_type_registry, messages)
        self.store = store
        self.model_patterns: list[str] = list(self.settings.model_patterns)
        self._models: dict[str, Model] = {}
        self._lock = threading.RLock()

    def describe(self) -> str:
        return f"{type(self).__name__}({self.store.describe()})"

    @property
    def read_only(self) -> bool:
        return self.store.read_only

    def should_load_model(self, name: str) -> bool:
        """``System`` always loads; other models must match a pattern if any are set."""
        if name == SYSTEM_MODEL_NAME or not self.model_patterns:
            return True
        return any(fnmatch.fnmatchcase(name, pattern) for pattern in self.model_patterns)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def find_local_model(self, name: str) -> Optional[Model]:
        """Model registered with this manager, without asking the parent."""
        return self._models.get(name)

    def get_model(self, qualifier: QualifierLike, required: bool = False) -> Optional[Model]:
        qualifier = as_model_qualifier(qualifier)
        model = self._models.get(qualifier.model)  # type: ignore[arg-type]
        if model is None and self.parent is not None:
            return self.parent.get_model(qualifier, required)
        if model is None and required:
            raise ObjectNotFoundError(f"Model '{qualifier}' does not exist.")
        return model

    def get_models(self) -> list[Model]:
        return list(self._models.values())

    def register_model(self, model: Model) -> None:
        """Link *model* into the registry.

        Raises
        ------
        DuplicateNameError
            If this manager or, through the parent, a sibling already holds
            a model of that name.
        """
        with self._lock:
            self._check_unregistered(model)
            model.manager = self
            self._models[model.name] = model  # type: ignore[index]

    def unregister_model(self, model: Model) -> None:
        with self._lock:
            if self._models.get(model.name) is model:  # type: ignore[arg-type]
                del self._models[model.name]  # type: ignore[arg-type]
            model.shutdown()

    def _check_writable(self) -> None:
        if self.read_only:
            raise UnsupportedOperationError(
                f"Model manager '{self.describe()}' does not support modifying operations."
            )

    def _check_unregistered(self, model: Model) -> None:
        if not model.name:
            raise ModelError("Model has no name.")
        if model.name in self._models:
            raise DuplicateNameError(f"Model '{model.qualifier}' already exists.")
        if self.parent is not None:
            existing = self.parent.get_model(model.qualifier, required=False)
            if existing is not None and existing is not model:
                owner = existing.manager.describe() if existing.manager is not None else "?"
                raise DuplicateNameError(
                    f"Model '{model.qualifier}' already loaded by model manager '{owner}'."
                )

    # ------------------------------------------------------------------
    # Model operations
    # ------------------------------------------------------------------

    def add_model(self, model: Model) -> bool:
        if self.read_only:
            return False
        with self._lock:
            _check_name(model.name, "Model")
            self._check_unregistered(model)
            self.store.add_model_to_store(model)
            self.register_model(model)
            model.maintain_references(ReferenceFlags.RESOLVE, self.messages)
        logger.info("Added model %s to %s", model.qualifier, self.describe())
        return True

    def update_model(self, model: Model) -> Model:
        self._check_writable()
        with self._lock:
            existing = self._models.get(model.name)  # type: ignore[arg-type]
            if existing is None:
                raise ObjectNotFoundError(f"Model '{model.qualifier}' does not exist.")
            if existing is not model:
                existing.copy_from(model)
            existing.invalidate()
            existing.maintain_references(ReferenceFlags.RESOLVE, self.messages)
            self.store.save_model_to_store(existing)
        return existing

    def remove_model(self, model: Model) -> None:
        with self._lock:
            self.store.remove_model_from_store(model)
            self.unregister_model(model)
        logger.info("Removed model %s", model.qualifier)

    # ------------------------------------------------------------------
    # Item operations
    # ------------------------------------------------------------------

    def add_item(self, model: Model, item: Item, sync_global_refs: bool = False) -> None:
        self._check_writable()
        _check_name(item.name, "Component")
        with self._lock:
            if model.get_item(item.name, item.item_type) is not item:  # type: ignore[arg-type]
                model.add_item(item)
            flags = ReferenceFlags.RESOLVE
            if sync_global_refs:
                flags |= ReferenceFlags.SYNC_GLOBAL_REFNAMES
            item.maintain_references(flags, self.messages)
            self.store.add_item_to_store(item)
            if self.settings.instantiate_items:
                item.instantiate(self.messages)

    def update_item(self, item: Item, model: Optional[Model] = None) -> Item:
        model = model or item.model
        if model is None:
            raise ModelError(f"Component '{item.name}' does not belong to a model.")
        self._check_writable()
        with self._lock:
            existing = model.get_item(item.name, item.item_type, required=True)  # type: ignore[arg-type]
            if existing is not item:
                existing.copy_from(item)  # type: ignore[union-attr]
            existing.maintain_references(ReferenceFlags.RESOLVE, self.messages)  # type: ignore[union-attr]
            self.store.save_item_to_store(existing)  # type: ignore[arg-type]
            if self.settings.instantiate_items:
                existing.instantiate(self.messages)  # type: ignore[union-attr]
        return existing  # type: ignore[return-value]

    def remove_item(self, item: Item) -> None:
        model = item.model
        if model is None:
            raise ModelError(f"Component '{item.name}' does not belong to a model.")
        with self._lock:
            self.store.remove_item_from_store(item)
            model.remove_item(item)

    def move_item(self, item: Item, destination: QualifierLike) -> Item:
        """Rename and/or move *item*.

        *destination* is a qualifier (``/Other/NewName``) or a bare new name.
        The store removal and the store addition are separate steps: a
        failure in between leaves the item in memory but not on disk.
        """
        source = item.model
        if source is None:
            raise ModelError(f"Component '{item.name}' does not belong to a model.")
        if isinstance(destination, str):
            destination = Qualifier.parse(destination)
        if destination.object_path:
            raise ModelError(f"Cannot move component to '{destination}'.", code="InvalidName")
        new_name = destination.item or item.name
        _check_name(new_name, "Component")
        target = self.get_model(destination.model, required=True) if destination.model else source
        target_manager = target.manager if isinstance(target.manager, StoreModelManager) else self  # type: ignore[union-attr]
        if target is source and new_name == item.name:
            return item
        self._check_writable()
        target_manager._check_writable()
        if target.get_item(new_name, item.item_type) is not None:  # type: ignore[union-attr, arg-type]
            raise DuplicateNameError(
                f"Component '{new_name}' already exists in model '{target.qualifier}'."  # type: ignore[union-attr]
            )

        with self._lock:
            self.store.remove_item_from_store(item)
            source.remove_item(item)
            item.name = new_name
            target.add_item(item)  # type: ignore[union-attr]
            target_manager.store.add_item_to_store(item)
            item.maintain_references(ReferenceFlags.RESOLVE, self.messages)
        logger.info("Moved component to %s", item.qualifier)
        return item

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def read_models(self) -> None:
        with self._lock:
            for model in self.get_models():
                model.release_code_resolver()
            self._models.clear()
            self.store.read_models(self)

    def initialize_models(self) -> None:
        flags = ReferenceFlags.RESOLVE | ReferenceFlags.VALIDATE | self._instantiate_flag()
        for model in self.get_models():
            model.maintain_references(flags, self.messages)

    def reset_models(self, reload: bool) -> None:
        with self._lock:
            if reload:
                self.read_models()
            else:
                for model in self.get_models():
                    model.reset()

    def model_updated(self, qualifier: QualifierLike, mode: NotificationMode) -> None:
        if isinstance(qualifier, str):
            qualifier = Qualifier.parse(qualifier)
        if mode is NotificationMode.UPDATED and self.read_only:
            return
        with self._lock:
            if qualifier.item is None:
                self._model_updated(as_model_qualifier(qualifier), mode)
            else:
                self._item_updated(qualifier, mode)

    def _model_updated(self, qualifier: Qualifier, mode: NotificationMode) -> None:
        flags = ReferenceFlags.RESOLVE | self._instantiate_flag()
        model = self.find_local_model(qualifier.model)  # type: ignore[arg-type]
        if mode is NotificationMode.ADDED:
            if model is None:
                model = self.store.read_model(self, qualifier.model)  # type: ignore[arg-type]
            if model is not None:
                model.maintain_references(flags, self.messages)
        elif mode is NotificationMode.UPDATED:
            if model is None:
                return
            fresh = self.store.reread_model_header(self, model)
            if fresh is not None:
                model.copy_from(fresh)
                model.invalidate()
                model.maintain_references(flags, self.messages)
        elif model is not None:
            self.unregister_model(model)

    def _item_updated(self, qualifier: Qualifier, mode: NotificationMode) -> None:
        model = self.find_local_model(qualifier.model or "")
        if model is None:
            return
        itd = self.item_type_registry.require(qualifier.item_type)
        existing = model.get_item(qualifier.item, itd.item_type)  # type: ignore[arg-type]
        flags = ReferenceFlags.RESOLVE | self._instantiate_flag()

        if mode is NotificationMode.REMOVED:
            if existing is not None:
                model.remove_item(existing)
            return

        fresh = self.store.read_item(self, model, qualifier.item, itd)  # type: ignore[arg-type]
        if fresh is None:
            return
        if existing is None:
            model.add_item(fresh)
            existing = fresh
        else:
            existing.copy_from(fresh)
        existing.maintain_references(flags, self.messages)
        if flags & ReferenceFlags.INSTANTIATE_ITEM:
            existing.instantiate(self.messages)

    # ------------------------------------------------------------------
    # Code
    # ------------------------------------------------------------------

    def create_code_resolver(self, model: Model) -> "CodeResolver":
        return self.store.create_code_resolver(self, model)


def _check_name(name: Optional[str], what: str) -> None:
    if not name:
        raise ModelError(f"{what} has no name.", code="InvalidName")
    if not is_valid_identifier(name):
        raise ModelError(
            f"{what} name '{name}' must not contain one of the characters /:.;",
            code="InvalidName",
        )
