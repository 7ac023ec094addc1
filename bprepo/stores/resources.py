"""Read-only model store served from package resources."""

from __future__ import annotations

import logging
from importlib import resources
from typing import TYPE_CHECKING, NoReturn

from ..errors import UnsupportedOperationError
from .base import ModelStore

if TYPE_CHECKING:
    from importlib.resources.abc import Traversable

    from ..config import RepositorySettings

logger = logging.getLogger(__name__)

DEFAULT_PACKAGE = "bprepo"
DEFAULT_PREFIX = "models"


class PackageResourceStore(ModelStore):
    """Models bundled as package data below ``<package>/<prefix>/``.

    Supports reading and resolution only; all store hooks raise
    :class:`UnsupportedOperationError` and the manager declines ``add_model``.
    """

    name = "resources"
    read_only = True

    def __init__(self, package: str = DEFAULT_PACKAGE, prefix: str = DEFAULT_PREFIX) -> None:
        self.package = package
        self.prefix = prefix.strip("/")

    @classmethod
    def from_settings(cls, settings: "RepositorySettings") -> "PackageResourceStore":
        return cls(settings.resource_package, settings.resource_prefix)

    def describe(self) -> str:
        return f"{self.name}:{self.package}/{self.prefix}"

    def model_roots(self) -> list["Traversable"]:
        try:
            root = resources.files(self.package)
        except ModuleNotFoundError:
            logger.warning("Model resource package %s is not installed.", self.package)
            return []
        for part in self.prefix.split("/"):
            if part:
                root = root / part
        if not root.is_dir():
            logger.warning("No model resources at %s", self.describe())
            return []
        return [root]

    def _reject(self) -> NoReturn:
        raise UnsupportedOperationError(
            "Resource model store does not support modifying operations."
        )

    def add_model_to_store(self, model) -> None:
        self._reject()

    def save_model_to_store(self, model) -> None:
        self._reject()

    def remove_model_from_store(self, model) -> None:
        self._reject()

    def add_item_to_store(self, item) -> None:
        self._reject()

    def save_item_to_store(self, item) -> None:
        self._reject()

    def remove_item_from_store(self, item) -> None:
        self._reject()
