"""XML descriptor files for models and items.

Layout below a model directory::

    model.xml                 model descriptor (<Model name=... >)
    <type>/<ItemName>.xml     one descriptor per item, <type> lower-cased

Only the persistence contract lives here; object state is read and written
by each object's own ``read_xml``/``write_xml``.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import TYPE_CHECKING, Any, Union

from .errors import ModelStoreError
from .items import Item
from .model import MODEL_TYPE, Model

if TYPE_CHECKING:
    from importlib.resources.abc import Traversable

    from .item_types import ItemTypeDescriptor

    Location = Union[Path, Traversable]

logger = logging.getLogger(__name__)

MODEL_DESCRIPTOR = "model.xml"
DESCRIPTOR_SUFFIX = ".xml"


def item_file_name(name: str) -> str:
    return f"{name}{DESCRIPTOR_SUFFIX}"


def is_descriptor_name(file_name: str) -> bool:
    return file_name.lower().endswith(DESCRIPTOR_SUFFIX) and file_name.lower() != MODEL_DESCRIPTOR


def item_name_from_file(file_name: str) -> str:
    return file_name[: -len(DESCRIPTOR_SUFFIX)]


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def _parse(source: "Location") -> ET.Element:
    try:
        with source.open("rb") as fh:
            return ET.parse(fh).getroot()
    except ET.ParseError as exc:
        raise ModelStoreError(f"Malformed descriptor '{source}': {exc}") from exc
    except OSError as exc:
        raise ModelStoreError(f"Cannot read descriptor '{source}': {exc}") from exc


def read_model_descriptor(source: "Location") -> Model:
    """Read a model descriptor file.

    The returned model has no items and is not registered anywhere.

    Raises
    ------
    ModelStoreError
        If the file cannot be read or is not a model descriptor.
    """
    root = _parse(source)
    if root.tag != MODEL_TYPE:
        raise ModelStoreError(f"'{source}' is not a model descriptor (root element <{root.tag}>).")
    model = Model()
    model.read_xml(root)
    if not model.name:
        raise ModelStoreError(f"Model descriptor '{source}' has no name.")
    return model


def read_item_descriptor(source: "Location", itd: "ItemTypeDescriptor") -> Item:
    """Read one item descriptor of type *itd*.

    An item without a name attribute takes its name from the file name.
    """
    root = _parse(source)
    if root.tag != itd.item_type:
        raise ModelStoreError(
            f"'{source}' does not describe a {itd.item_type} (root element <{root.tag}>)."
        )
    item = itd.item_class.from_element(root)
    item.item_type = itd.item_type
    file_name = getattr(source, "name", "")
    if not item.name and file_name:
        item.name = item_name_from_file(file_name)
    return item


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def to_element(obj: Any) -> ET.Element:
    elem = ET.Element(obj.xml_tag)
    obj.write_xml(elem)
    return elem


def to_string(obj: Any) -> str:
    """Render *obj* as descriptor text (used by ``bprepo show``)."""
    elem = to_element(obj)
    ET.indent(elem)
    return ET.tostring(elem, encoding="unicode")


def write_descriptor(obj: Any, path: Path) -> None:
    """Write *obj* (a model or an item) to *path*, creating parent directories.

    Raises
    ------
    ModelStoreError
        If the file cannot be written.
    """
    elem = to_element(obj)
    ET.indent(elem)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        ET.ElementTree(elem).write(path, encoding="utf-8", xml_declaration=True)
    except OSError as exc:
        raise ModelStoreError(f"Cannot write descriptor '{path}': {exc}") from exc
    logger.debug("Wrote %s", path)
