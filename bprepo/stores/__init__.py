"""Persistence backends for model managers."""

from .base import ModelStore
from .filesystem import FileSystemStore
from .resources import PackageResourceStore

__all__ = ["ModelStore", "FileSystemStore", "PackageResourceStore"]
