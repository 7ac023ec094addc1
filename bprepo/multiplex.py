"""Multiplexing model manager: several backends behind one manager.

Look-ups ask the children in order; the first hit wins. Mutations go to
the manager recorded on the target model. ``add_model`` offers the model to
each child in turn; read-only children decline.

Usage::

    from bprepo.multiplex import build_manager

    mgr = build_manager(load_settings(model_path="~/models"))
    mgr.request_model_reset(reload=True)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Optional

from .code_resolver import shared_fallback_resolver
from .config import RepositorySettings
from .errors import ModelError, NoWritableBackendError, ObjectNotFoundError
from .item_types import ItemTypeRegistry
from .manager import ModelManager, NotificationMode, QualifierLike, StoreModelManager, as_model_qualifier
from .messages import MsgContainer
from .stores.filesystem import FileSystemStore
from .stores.resources import PackageResourceStore

if TYPE_CHECKING:
    from .code_resolver import CodeResolver
    from .items import Item
    from .model import Model

logger = logging.getLogger(__name__)


class MultiplexModelManager(ModelManager):
    """Composes child managers into one logical repository.

    Children share this manager's message container and item type registry,
    and use it as their parent for global look-ups.
    """

    def __init__(
        self,
        managers: Optional[Iterable[ModelManager]] = None,
        settings: Optional[RepositorySettings] = None,
        item_type_registry: Optional[ItemTypeRegistry] = None,
        messages: Optional[MsgContainer] = None,
    ) -> None:
        super().__init__(settings, item_type_registry, messages)
        self._managers: list[ModelManager] = []
        for manager in managers or ():
            self.add_manager(manager)

    def add_manager(self, manager: ModelManager) -> None:
        manager.parent = self
        manager.messages = self.messages
        manager.item_type_registry = self.item_type_registry
        self._managers.append(manager)

    @property
    def managers(self) -> list[ModelManager]:
        return list(self._managers)

    def describe(self) -> str:
        return f"{type(self).__name__}[{', '.join(m.describe() for m in self._managers)}]"

    # ------------------------------------------------------------------
    # Look-ups
    # ------------------------------------------------------------------

    def find_local_model(self, name: str) -> Optional["Model"]:
        for manager in self._managers:
            model = manager.find_local_model(name)
            if model is not None:
                return model
        return None

    def get_model(self, qualifier: QualifierLike, required: bool = False) -> Optional["Model"]:
        qualifier = as_model_qualifier(qualifier)
        model = self.find_local_model(qualifier.model)  # type: ignore[arg-type]
        if model is None and self.parent is not None:
            return self.parent.get_model(qualifier, required)
        if model is None and required:
            raise ObjectNotFoundError(f"Model '{qualifier}' does not exist.")
        return model

    def get_models(self) -> list["Model"]:
        models: list[Model] = []
        for manager in self._managers:
            models.extend(manager.get_models())
        return models

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_model(self, model: "Model") -> bool:
        for manager in self._managers:
            if manager.add_model(model):
                return True
        raise NoWritableBackendError(
            f"None of the model managers accepted model '{model.qualifier}'."
        )

    def update_model(self, model: "Model") -> "Model":
        return self._owner_of(model).update_model(model)

    def remove_model(self, model: "Model") -> None:
        self._owner_of(model).remove_model(model)

    def add_item(self, model: "Model", item: "Item", sync_global_refs: bool = False) -> None:
        self._owner_of(model).add_item(model, item, sync_global_refs)

    def update_item(self, item: "Item", model: Optional["Model"] = None) -> "Item":
        model = model or item.model
        if model is None:
            raise ModelError(f"Component '{item.name}' does not belong to a model.")
        return self._owner_of(model).update_item(item, model)

    def remove_item(self, item: "Item") -> None:
        if item.model is None:
            raise ModelError(f"Component '{item.name}' does not belong to a model.")
        self._owner_of(item.model).remove_item(item)

    def move_item(self, item: "Item", destination: QualifierLike) -> "Item":
        if item.model is None:
            raise ModelError(f"Component '{item.name}' does not belong to a model.")
        return self._owner_of(item.model).move_item(item, destination)

    def _owner_of(self, model: "Model") -> ModelManager:
        manager = model.manager
        if manager is None or manager is self:
            registered = self.get_model(model.qualifier, required=True)
            manager = registered.manager  # type: ignore[union-attr]
        if manager is None:
            raise ModelError(f"Model '{model.qualifier}' is not managed by any model manager.")
        return manager

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def read_models(self) -> None:
        for manager in self._managers:
            manager.read_models()

    def initialize_models(self) -> None:
        for manager in self._managers:
            manager.initialize_models()

    def reset_models(self, reload: bool) -> None:
        for manager in self._managers:
            manager.reset_models(reload)

    def model_updated(self, qualifier: QualifierLike, mode: NotificationMode) -> None:
        for manager in self._managers:
            manager.model_updated(qualifier, mode)

    def create_code_resolver(self, model: "Model") -> "CodeResolver":
        if model.manager is not None and model.manager is not self:
            return model.manager.create_code_resolver(model)
        return shared_fallback_resolver()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def build_manager(
    settings: Optional[RepositorySettings] = None,
    filesystem: Optional[bool] = None,
) -> MultiplexModelManager:
    """Standard repository: the filesystem store, then the bundled resources.

    *filesystem* defaults to whether a model path is configured. Requesting
    it without a model path raises :class:`~bprepo.errors.ModelError`.
    """
    settings = settings or RepositorySettings()
    if filesystem is None:
        filesystem = bool(settings.model_path)

    mux = MultiplexModelManager(settings=settings)
    if filesystem:
        mux.add_manager(StoreModelManager(FileSystemStore.from_settings(settings), settings))
    mux.add_manager(StoreModelManager(PackageResourceStore.from_settings(settings), settings))
    logger.debug("Built %s", mux.describe())
    return mux
