"""Per-model code resolution.

Models may ship implementation code next to their descriptors::

    <model>/classes/          Python packages and modules
    <model>/target/classes/   build output, same layout
    <model>/lib/*.zip|whl|egg|pyz
    <model>/extlib/*.zip|whl|egg|pyz

A :class:`ModelCodeResolver` imports such code under a private package
name (``_bprepo_models.<token>``) so that two models can ship modules with
the same name. Lookups that fail locally are delegated, in order, to each
imported model's resolver, the System model's resolver and finally the
process-wide :class:`ProcessCodeResolver` (plain ``importlib``).

Delegation is one hop deep: an imported model is asked for its *local*
code only, mirroring item resolution.
"""

from __future__ import annotations

import importlib
import importlib.machinery
import importlib.util
import itertools
import logging
import re
import sys
import threading
import zipfile
from pathlib import Path
from types import ModuleType
from typing import IO, TYPE_CHECKING, Any, Callable, Iterable, Optional, Union

from .errors import ObjectNotFoundError

if TYPE_CHECKING:
    from .model import Model

logger = logging.getLogger(__name__)

CLASSES_DIRS = ("classes", "target/classes")
LIBRARY_DIRS = ("lib", "extlib")
ARCHIVE_SUFFIXES = (".zip", ".whl", ".egg", ".pyz")

PRIVATE_ROOT = "_bprepo_models"

Resource = Union[Path, zipfile.Path]

_token_counter = itertools.count(1)


def split_implementation_name(name: str) -> tuple[str, Optional[str]]:
    """Split ``module:attr`` or ``module.attr`` into (module, attr).

    With a colon the attribute part may itself be dotted
    (``pkg.mod:Class.method``). Without one, the last dotted segment is the
    attribute; a name without dots is a module name.
    """
    if ":" in name:
        module, attr = name.split(":", 1)
        return module, attr or None
    if "." in name:
        module, attr = name.rsplit(".", 1)
        return module, attr
    return name, None


def _get_attr_path(obj: Any, attr: Optional[str]) -> Any:
    if attr is None:
        return obj
    for part in attr.split("."):
        obj = getattr(obj, part)
    return obj


class CodeResolver:
    """Interface shared by model-specific and process-wide resolvers."""

    description = "code resolver"

    def find_local_module(self, module_name: str) -> Optional[ModuleType]:
        """Import *module_name* from this resolver's own locations, or return ``None``."""
        raise NotImplementedError

    def find_local_resource(self, name: str) -> Optional[Resource]:
        """Locate resource *name* in this resolver's own locations."""
        raise NotImplementedError

    def delegates(self) -> Iterable["CodeResolver"]:
        """Resolvers consulted after the local lookup, in order."""
        return ()

    def close(self) -> None:
        """Release everything this resolver imported."""

    # -- public lookups -------------------------------------------------------

    def find_module(self, module_name: str) -> Optional[ModuleType]:
        module = self.find_local_module(module_name)
        if module is not None:
            return module
        for delegate in self.delegates():
            module = delegate.find_local_module(module_name)
            if module is not None:
                logger.debug("Module %s provided by %s", module_name, delegate.description)
                return module
        return None

    def load(self, name: str) -> Any:
        """Resolve an implementation name to the object it denotes.

        Raises
        ------
        ObjectNotFoundError
            If no resolver in the chain provides *name*.
        """
        module_name, attr = split_implementation_name(name)
        for resolver in self._chain():
            module = resolver.find_local_module(module_name)
            if module is None:
                continue
            try:
                return _get_attr_path(module, attr)
            except AttributeError:
                logger.debug("%s has no attribute %s in %s", module_name, attr, resolver.description)
        raise ObjectNotFoundError(f"Implementation '{name}' not found by {self.description}.")

    def find_resource(self, name: str) -> Optional[Resource]:
        for resolver in self._chain():
            resource = resolver.find_local_resource(name)
            if resource is not None:
                return resource
        return None

    def open_resource(self, name: str) -> IO[bytes]:
        resource = self.find_resource(name)
        if resource is None:
            raise ObjectNotFoundError(f"Resource '{name}' not found by {self.description}.")
        return resource.open("rb")

    def _chain(self) -> Iterable["CodeResolver"]:
        yield self
        yield from self.delegates()


class ProcessCodeResolver(CodeResolver):
    """Fallback resolver backed by the interpreter's own import system."""

    description = "process code resolver"

    def find_local_module(self, module_name: str) -> Optional[ModuleType]:
        try:
            return importlib.import_module(module_name)
        except ModuleNotFoundError as exc:
            if exc.name is not None and _is_prefix_of(exc.name, module_name):
                return None
            raise

    def find_local_resource(self, name: str) -> Optional[Resource]:
        for entry in sys.path:
            base = Path(entry or ".")
            if base.is_dir():
                candidate = base / name
                if candidate.is_file():
                    return candidate
        return None


class ModelCodeResolver(CodeResolver):
    """Resolver for one model's ``classes``/``lib`` locations.

    Parameters
    ----------
    model:
        The owning model; its resolved import list drives delegation.
    search_paths:
        Directories and archives searched for local code, in order.
    system_resolver:
        Callable returning the System model's resolver (``None`` for the
        System model itself). Evaluated per lookup so that a reset System
        model is picked up.
    fallback:
        Resolver consulted last.
    """

    def __init__(
        self,
        model: "Model",
        search_paths: list[Path],
        system_resolver: Optional[Callable[[], Optional[CodeResolver]]] = None,
        fallback: Optional[CodeResolver] = None,
    ) -> None:
        self.model = model
        self.search_paths = list(search_paths)
        self._system_resolver = system_resolver
        self._fallback = fallback or shared_fallback_resolver()
        self._lock = threading.RLock()
        self._root_name: Optional[str] = None
        self.description = f"code resolver of model '{model.name}'"

    # -- local lookups ------------------------------------------------------

    def find_local_module(self, module_name: str) -> Optional[ModuleType]:
        if not self.search_paths:
            return None
        root = self._ensure_root()
        full_name = f"{root}.{module_name}"
        try:
            return importlib.import_module(full_name)
        except ModuleNotFoundError as exc:
            if exc.name is not None and _is_prefix_of(exc.name, full_name):
                return None
            raise

    def find_local_resource(self, name: str) -> Optional[Resource]:
        name = name.lstrip("/")
        for entry in self.search_paths:
            if entry.is_dir():
                candidate = entry / name
                if candidate.is_file():
                    return candidate
            elif zipfile.is_zipfile(entry):
                zcandidate = zipfile.Path(entry, at=name)
                if zcandidate.exists() and zcandidate.is_file():
                    return zcandidate
        return None

    def delegates(self) -> Iterable[CodeResolver]:
        for imported in self.model.imported_models:
            yield imported.code_resolver
        if self._system_resolver is not None:
            system = self._system_resolver()
            if system is not None and system is not self:
                yield system
        yield self._fallback

    # -- lifecycle ----------------------------------------------------------

    def close(self) -> None:
        with self._lock:
            root, self._root_name = self._root_name, None
        if root is None:
            return
        for key in [k for k in sys.modules if k == root or k.startswith(root + ".")]:
            del sys.modules[key]
        importlib.invalidate_caches()
        logger.debug("Released code of model %s", self.model.name)

    def _ensure_root(self) -> str:
        with self._lock:
            if self._root_name is not None:
                return self._root_name
            if PRIVATE_ROOT not in sys.modules:
                sys.modules[PRIVATE_ROOT] = _package_module(PRIVATE_ROOT, [])
            token = re.sub(r"\W", "_", self.model.name or "model")
            root = f"{PRIVATE_ROOT}.m{next(_token_counter)}_{token}"
            sys.modules[root] = _package_module(root, [str(p) for p in self.search_paths])
            self._root_name = root
            return root


def code_search_paths(base: Path) -> list[Path]:
    """Existing class directories and library archives below a model directory."""
    paths: list[Path] = []
    for rel in CLASSES_DIRS:
        directory = base / rel
        if directory.is_dir():
            paths.append(directory)
    for rel in LIBRARY_DIRS:
        directory = base / rel
        if not directory.is_dir():
            continue
        for archive in sorted(directory.iterdir()):
            if archive.suffix.lower() in ARCHIVE_SUFFIXES and archive.is_file():
                paths.append(archive)
    return paths


def _package_module(name: str, path: list[str]) -> ModuleType:
    spec = importlib.machinery.ModuleSpec(name, None, is_package=True)
    spec.submodule_search_locations = path
    return importlib.util.module_from_spec(spec)


def _is_prefix_of(missing: str, requested: str) -> bool:
    return requested == missing or requested.startswith(missing + ".")


# ---------------------------------------------------------------------------
# Shared fallback
# ---------------------------------------------------------------------------

_fallback: Optional[ProcessCodeResolver] = None


def shared_fallback_resolver() -> ProcessCodeResolver:
    """The process-wide fallback resolver."""
    global _fallback
    if _fallback is None:
        _fallback = ProcessCodeResolver()
    return _fallback
