"""Filesystem-tree model store."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional, Union

from ..descriptors import MODEL_DESCRIPTOR, item_file_name, write_descriptor
from ..errors import ModelError, ModelStoreError
from .base import ModelStore

if TYPE_CHECKING:
    from ..config import RepositorySettings
    from ..items import Item
    from ..model import Model

logger = logging.getLogger(__name__)


class FileSystemStore(ModelStore):
    """Models stored as directory trees below one or more root directories.

    New models are always created below the primary root. Additional roots
    are read the same way; roots that do not exist are skipped with a
    warning and duplicate roots are ignored.
    """

    name = "filesystem"

    def __init__(
        self,
        model_path: Union[str, Path],
        additional_model_paths: Optional[Iterable[Union[str, Path]]] = None,
    ) -> None:
        self.root = Path(model_path).expanduser()
        self.additional_roots: list[Path] = []
        seen = {self.root.resolve()}
        for raw in additional_model_paths or ():
            path = Path(raw).expanduser()
            if not path.is_dir():
                logger.warning("Additional model path %s does not exist, ignored.", path)
                continue
            if path.resolve() in seen:
                continue
            seen.add(path.resolve())
            self.additional_roots.append(path)

    @classmethod
    def from_settings(cls, settings: "RepositorySettings") -> "FileSystemStore":
        """Build a store from settings.

        Raises
        ------
        ModelError
            If no model root path is configured.
        """
        if not settings.model_path:
            raise ModelError(
                "Model root path not set. Use --model-path or BPREPO_MODEL_PATH.",
                code="Initialization",
            )
        return cls(settings.model_path, settings.additional_model_paths)

    def describe(self) -> str:
        return f"{self.name}:{self.root}"

    def model_roots(self) -> list[Path]:
        roots: list[Path] = []
        if self.root.is_dir():
            roots.append(self.root)
        else:
            logger.warning("Model root path %s does not exist.", self.root)
        roots.extend(p for p in self.additional_roots if p.is_dir())
        return roots

    # ------------------------------------------------------------------
    # Store hooks
    # ------------------------------------------------------------------

    def add_model_to_store(self, model: "Model") -> None:
        if model.location is None:
            model.location = self.root / (model.name or "")
        self.save_model_to_store(model)

    def save_model_to_store(self, model: "Model") -> None:
        write_descriptor(model, self._model_dir(model) / MODEL_DESCRIPTOR)

    def remove_model_from_store(self, model: "Model") -> None:
        model_dir = self._model_dir(model)
        try:
            for item in list(model.get_items()):
                self._item_path(item).unlink(missing_ok=True)
            (model_dir / MODEL_DESCRIPTOR).unlink(missing_ok=True)
            if model_dir.exists():
                shutil.rmtree(model_dir)
        except OSError as exc:
            raise ModelStoreError(f"Cannot remove model directory '{model_dir}': {exc}") from exc
        logger.info("Removed model %s from %s", model.name, model_dir)

    def add_item_to_store(self, item: "Item") -> None:
        self.save_item_to_store(item)

    def save_item_to_store(self, item: "Item") -> None:
        write_descriptor(item, self._item_path(item))

    def remove_item_from_store(self, item: "Item") -> None:
        path = self._item_path(item)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise ModelStoreError(f"Cannot remove '{path}': {exc}") from exc

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _model_dir(self, model: "Model") -> Path:
        if isinstance(model.location, Path):
            return model.location
        return self.root / (model.name or "")

    def _item_path(self, item: "Item") -> Path:
        if item.model is None:
            raise ModelError(f"Component '{item.name}' does not belong to a model.")
        return self._model_dir(item.model) / (item.item_type or "").lower() / item_file_name(item.name or "")
