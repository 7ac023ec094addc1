"""
bprepo: a repository of business-process models.

Models are named namespaces of typed items (processes, types, activities)
that import each other. The repository loads them from one or more stores,
resolves references across model boundaries and binds model-specific code.
"""

from __future__ import annotations

__version__ = "0.4.0"

from .config import RepositorySettings, load_settings
from .errors import (
    DuplicateNameError,
    ModelError,
    ModelStoreError,
    ModelValidationError,
    NoWritableBackendError,
    ObjectNotFoundError,
    QualifierParseError,
    UnsupportedOperationError,
)
from .items import (
    ActivityItem,
    ComplexTypeItem,
    DataMember,
    DataTypeItem,
    Item,
    ModelObject,
    NodeParam,
    ProcessItem,
    ProcessNode,
    ReferenceFlags,
)
from .manager import ModelManager, NotificationMode, StoreModelManager
from .model import SYSTEM_MODEL_NAME, Model, ModelState
from .multiplex import MultiplexModelManager, build_manager
from .qualifier import CompareFlags, Qualifier

__all__ = [
    "ActivityItem",
    "CompareFlags",
    "ComplexTypeItem",
    "DataMember",
    "DataTypeItem",
    "DuplicateNameError",
    "Item",
    "Model",
    "ModelError",
    "ModelManager",
    "ModelObject",
    "ModelState",
    "ModelStoreError",
    "ModelValidationError",
    "MultiplexModelManager",
    "NoWritableBackendError",
    "NodeParam",
    "NotificationMode",
    "ObjectNotFoundError",
    "ProcessItem",
    "ProcessNode",
    "Qualifier",
    "QualifierParseError",
    "ReferenceFlags",
    "RepositorySettings",
    "StoreModelManager",
    "SYSTEM_MODEL_NAME",
    "UnsupportedOperationError",
    "build_manager",
    "load_settings",
]
