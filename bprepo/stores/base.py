"""Base class for model store backends."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional, Union

from ..code_resolver import CodeResolver, ModelCodeResolver, code_search_paths
from ..descriptors import (
    MODEL_DESCRIPTOR,
    is_descriptor_name,
    item_file_name,
    item_name_from_file,
    read_item_descriptor,
    read_model_descriptor,
)
from ..errors import ModelError
from ..item_types import SKIP_INVISIBLE, SKIP_MODEL

if TYPE_CHECKING:
    from importlib.resources.abc import Traversable

    from ..item_types import ItemTypeDescriptor
    from ..items import Item
    from ..manager import StoreModelManager
    from ..model import Model

    Location = Union[Path, Traversable]

logger = logging.getLogger(__name__)


class ModelStore:
    """Persistence backend driven by a :class:`~bprepo.manager.StoreModelManager`.

    Subclasses implement ``model_roots()`` and the six store hooks
    (``add_model_to_store`` ... ``remove_item_from_store``). Reading is shared:
    every backend lays models out the same way below its roots::

        <root>/<Model>/model.xml
        <root>/<Model>/<type>/<Item>.xml
    """

    name: str = "base"
    read_only: bool = False

    def model_roots(self) -> list["Location"]:
        """Directories scanned for model directories, in priority order."""
        raise NotImplementedError

    def describe(self) -> str:
        return self.name

    # ------------------------------------------------------------------
    # Store hooks
    # ------------------------------------------------------------------

    def add_model_to_store(self, model: "Model") -> None:
        raise NotImplementedError

    def save_model_to_store(self, model: "Model") -> None:
        raise NotImplementedError

    def remove_model_from_store(self, model: "Model") -> None:
        raise NotImplementedError

    def add_item_to_store(self, item: "Item") -> None:
        raise NotImplementedError

    def save_item_to_store(self, item: "Item") -> None:
        raise NotImplementedError

    def remove_item_from_store(self, item: "Item") -> None:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def iter_model_dirs(self) -> Iterable["Location"]:
        """Yield every directory below the roots that holds a model descriptor."""
        for root in self.model_roots():
            for entry in sorted(root.iterdir(), key=lambda e: e.name):
                if entry.is_dir() and (entry / MODEL_DESCRIPTOR).is_file():
                    yield entry

    def find_model_dir(self, name: str) -> Optional["Location"]:
        for root in self.model_roots():
            candidate = root / name
            if (candidate / MODEL_DESCRIPTOR).is_file():
                return candidate
        return None

    def read_models(self, manager: "StoreModelManager") -> None:
        """Read and register every model the manager's filter accepts.

        Errors are recorded in the manager's message container.
        """
        for model_dir in self.iter_model_dirs():
            if manager.should_load_model(model_dir.name):
                self.read_model_dir(manager, model_dir)
            else:
                logger.debug("Skipping model %s (not matched by model patterns)", model_dir.name)

    def read_model(self, manager: "StoreModelManager", name: str) -> Optional["Model"]:
        model_dir = self.find_model_dir(name)
        if model_dir is None:
            return None
        return self.read_model_dir(manager, model_dir)

    def read_model_dir(self, manager: "StoreModelManager", model_dir: "Location") -> Optional["Model"]:
        """Read, register and populate the model stored in *model_dir*."""
        messages = manager.messages
        try:
            model = read_model_descriptor(model_dir / MODEL_DESCRIPTOR)
        except ModelError as exc:
            messages.add(str(model_dir), "Error reading model descriptor.", exc=exc)
            return None
        model.location = model_dir

        try:
            manager.register_model(model)
        except ModelError as exc:
            messages.add(
                None, "Error registering model %s in model manager %s.", model.name, manager.describe(), exc=exc
            )
            return None

        for itd in manager.item_type_descriptors(SKIP_MODEL | SKIP_INVISIBLE):
            self._read_items(manager, model, model_dir / itd.folder_name, itd)

        logger.info("Loaded model %s.", model.qualifier)
        return model

    def reread_model_header(self, manager: "StoreModelManager", model: "Model") -> Optional["Model"]:
        """Read the descriptor of an already registered model without registering it."""
        if model.location is None:
            return None
        try:
            return read_model_descriptor(model.location / MODEL_DESCRIPTOR)
        except ModelError as exc:
            manager.messages.add(model, "Error re-reading model descriptor.", exc=exc)
            return None

    def read_item(self, manager: "StoreModelManager", model: "Model", name: str, itd: "ItemTypeDescriptor") -> Optional["Item"]:
        """Read a single item of *model*; ``None`` if it is not stored."""
        if model.location is None:
            return None
        source = model.location / itd.folder_name / item_file_name(name)
        if not source.is_file():
            return None
        try:
            item = read_item_descriptor(source, itd)
        except ModelError as exc:
            manager.messages.add(model, "Error reading component %s.", name, exc=exc)
            return None
        if item.name != name:
            manager.messages.add(
                model,
                "Component '%s' is stored in file %s; using the file name.",
                item.name,
                source.name,
                level=logging.WARNING,
            )
            item.name = name
        return item

    def _read_items(
        self,
        manager: "StoreModelManager",
        model: "Model",
        folder: "Location",
        itd: "ItemTypeDescriptor",
    ) -> None:
        if not folder.is_dir():
            return
        for entry in sorted(folder.iterdir(), key=lambda e: e.name):
            if not entry.is_file() or not is_descriptor_name(entry.name):
                continue
            item = self.read_item(manager, model, item_name_from_file(entry.name), itd)
            if item is None:
                continue
            try:
                model.add_item(item)
            except ModelError as exc:
                manager.messages.add(
                    model, "Error adding component %s to model %s.", item.name, model.name, exc=exc
                )

    # ------------------------------------------------------------------
    # Code
    # ------------------------------------------------------------------

    def create_code_resolver(self, manager: "StoreModelManager", model: "Model") -> CodeResolver:
        """Resolver over the model's ``classes``/``lib`` directories.

        Locations that are not plain directories (e.g. package resources
        inside a zip) contribute no local code.
        """
        paths = code_search_paths(model.location) if isinstance(model.location, Path) else []
        system_resolver = None if model.is_system_model else manager.system_code_resolver
        return ModelCodeResolver(model, paths, system_resolver=system_resolver)
