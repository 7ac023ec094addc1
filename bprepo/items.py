"""Model objects and the concrete item kinds stored in a model.

An :class:`Item` is a named, typed child of exactly one model. Items may
contain further :class:`ModelObject` children (type members, process nodes,
node parameters), which are addressed through the qualifier's object path.

Cross-item references are stored as text (``ref`` / ``type_ref``) and bound
to the target item by :meth:`ModelObject.maintain_references`; the text form
is kept as short as possible via ``Model.determine_item_ref``.
"""

from __future__ import annotations

import enum
import logging
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING, Any, Iterator, Optional

from .errors import ModelError, ObjectNotFoundError
from .qualifier import OBJECT_DELIMITER, Qualifier, is_valid_identifier

if TYPE_CHECKING:
    from .messages import MsgContainer
    from .model import Model

logger = logging.getLogger(__name__)


class ReferenceFlags(enum.IntFlag):
    """Work selectors for :meth:`ModelObject.maintain_references`."""

    NONE = 0
    RESOLVE_GLOBAL_REFS = 1 << 0
    RESOLVE_LOCAL_REFS = 1 << 1
    VALIDATE_BASIC = 1 << 2
    VALIDATE_RUNTIME = 1 << 3
    INSTANTIATE_ITEM = 1 << 4
    SYNC_GLOBAL_REFNAMES = 1 << 5
    SYNC_LOCAL_REFNAMES = 1 << 6

    RESOLVE = RESOLVE_GLOBAL_REFS | RESOLVE_LOCAL_REFS
    VALIDATE = VALIDATE_BASIC | VALIDATE_RUNTIME
    SYNC_REFNAMES = SYNC_GLOBAL_REFNAMES | SYNC_LOCAL_REFNAMES


# ---------------------------------------------------------------------------
# Base classes
# ---------------------------------------------------------------------------


class ModelObject:
    """Named element of a model; base of items and their children."""

    #: XML tag used for this object inside its container's descriptor.
    xml_tag = "object"

    def __init__(
        self,
        name: Optional[str] = None,
        description: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> None:
        self.name = name
        self.description = description
        self.display_name = display_name
        self.container: Optional[ModelObject] = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.qualifier}>"

    # -- hierarchy ----------------------------------------------------------

    def children(self) -> list["ModelObject"]:
        return []

    def child(self, name: str) -> Optional["ModelObject"]:
        for obj in self.children():
            if obj.name == name:
                return obj
        return None

    @property
    def owning_model(self) -> Optional["Model"]:
        obj: Optional[ModelObject] = self
        while obj is not None and not isinstance(obj, Item):
            obj = obj.container
        return obj.owning_model if obj is not None else None

    @property
    def owning_item(self) -> Optional["Item"]:
        obj: Optional[ModelObject] = self
        while obj is not None and not isinstance(obj, Item):
            obj = obj.container
        return obj

    @property
    def object_path(self) -> Optional[str]:
        """Dotted path of this object below its owning item."""
        parts: list[str] = []
        obj: Optional[ModelObject] = self
        while obj is not None and not isinstance(obj, Item):
            parts.append(obj.name or "")
            obj = obj.container
        if not parts:
            return None
        return OBJECT_DELIMITER.join(reversed(parts))

    @property
    def qualifier(self) -> Qualifier:
        item = self.owning_item
        if item is None:
            return Qualifier(object_path=self.name)
        return Qualifier.for_item(item, self.object_path)

    # -- copying ------------------------------------------------------------

    def copy_from(self, source: "ModelObject") -> None:
        """Overwrite this object's own fields from *source*.

        Back-links (container, model) are left untouched; children are
        cloned so the two objects do not share mutable state.
        """
        self.name = source.name
        self.description = source.description
        self.display_name = source.display_name

    def clone(self) -> "ModelObject":
        obj = type(self)()
        obj.copy_from(self)
        return obj

    # -- references ---------------------------------------------------------

    def maintain_references(self, flags: ReferenceFlags, messages: "MsgContainer") -> None:
        """Bind, re-name or validate references according to *flags*.

        Problems are recorded in *messages*; nothing here raises for an
        unresolvable reference.
        """
        if flags & ReferenceFlags.VALIDATE_BASIC:
            check_name(self, messages)
        for obj in self.children():
            obj.container = self
            obj.maintain_references(flags, messages)

    def _resolve(
        self,
        ref: Optional[str],
        item_type: str,
        messages: "MsgContainer",
        what: str,
    ) -> Optional["Item"]:
        if not ref:
            return None
        model = self.owning_model
        if model is None:
            return None
        try:
            return model.resolve_item_ref(ref, item_type)
        except ObjectNotFoundError:
            messages.add(self, "Cannot resolve %s '%s'.", what, ref)
        except ModelError as exc:
            messages.add(self, "Invalid %s reference '%s'.", what, ref, exc=exc)
        return None

    def _shorten(self, target: Optional["Item"], ref: Optional[str]) -> Optional[str]:
        model = self.owning_model
        if target is None or model is None:
            return ref
        return model.determine_item_ref(target)

    # -- XML ----------------------------------------------------------------

    def write_xml(self, elem: ET.Element) -> None:
        _set(elem, "name", self.name)
        _set(elem, "description", self.description)
        _set(elem, "displayName", self.display_name)

    def read_xml(self, elem: ET.Element) -> None:
        self.name = elem.get("name")
        self.description = elem.get("description")
        self.display_name = elem.get("displayName")


class Item(ModelObject):
    """Named, typed child of exactly one model."""

    ITEM_TYPE: Optional[str] = None

    def __init__(
        self,
        name: Optional[str] = None,
        item_type: Optional[str] = None,
        description: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> None:
        super().__init__(name, description, display_name)
        self.item_type = item_type or self.ITEM_TYPE
        self.model: Optional["Model"] = None
        self.generator_info: Optional[str] = None

    @property
    def xml_tag(self) -> str:  # type: ignore[override]
        return self.item_type or "Item"

    @property
    def owning_model(self) -> Optional["Model"]:
        return self.model

    @property
    def qualifier(self) -> Qualifier:
        return Qualifier.for_item(self)

    @property
    def manager(self) -> Any:
        return self.model.manager if self.model is not None else None

    def copy_from(self, source: "ModelObject") -> None:
        super().copy_from(source)
        if isinstance(source, Item):
            self.item_type = source.item_type
            self.generator_info = source.generator_info

    def clone(self) -> "Item":
        obj = type(self)()
        obj.copy_from(self)
        return obj

    def instantiate(self, messages: "MsgContainer") -> None:
        """Bind the item's implementation artifacts. Most kinds have none."""

    def write_xml(self, elem: ET.Element) -> None:
        super().write_xml(elem)
        if self.generator_info:
            gen = ET.SubElement(elem, "generatorInfo")
            gen.text = self.generator_info.strip()

    def read_xml(self, elem: ET.Element) -> None:
        super().read_xml(elem)
        gen = elem.find("generatorInfo")
        self.generator_info = gen.text.strip() if gen is not None and gen.text else None

    @classmethod
    def from_element(cls, elem: ET.Element) -> "Item":
        item = cls()
        item.read_xml(elem)
        return item


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


class DataMember(ModelObject):
    """Named member of a complex type, typed by a reference to a type item."""

    xml_tag = "member"

    def __init__(self, name: Optional[str] = None, type_ref: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(name, **kwargs)
        self.type_ref = type_ref
        self.data_type: Optional[DataTypeItem] = None

    def copy_from(self, source: ModelObject) -> None:
        super().copy_from(source)
        if isinstance(source, DataMember):
            self.type_ref = source.type_ref
            self.data_type = source.data_type

    def maintain_references(self, flags: ReferenceFlags, messages: "MsgContainer") -> None:
        if flags & ReferenceFlags.RESOLVE_GLOBAL_REFS:
            self.data_type = self._resolve(self.type_ref, DataTypeItem.ITEM_TYPE, messages, "data type")  # type: ignore[assignment]
        if flags & ReferenceFlags.SYNC_GLOBAL_REFNAMES:
            self.type_ref = self._shorten(self.data_type, self.type_ref)
        if flags & ReferenceFlags.VALIDATE_BASIC and not self.type_ref:
            messages.add(self, "Member '%s' has no data type.", self.name)
        super().maintain_references(flags, messages)

    def write_xml(self, elem: ET.Element) -> None:
        super().write_xml(elem)
        _set(elem, "type", self.type_ref)

    def read_xml(self, elem: ET.Element) -> None:
        super().read_xml(elem)
        self.type_ref = elem.get("type")


class DataTypeItem(Item):
    """A data type. Simple types map to a class name only."""

    ITEM_TYPE = "Type"

    def __init__(
        self,
        name: Optional[str] = None,
        class_name: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("item_type", self.ITEM_TYPE)
        super().__init__(name, **kwargs)
        self.class_name = class_name

    @property
    def is_simple_type(self) -> bool:
        return True

    def copy_from(self, source: ModelObject) -> None:
        super().copy_from(source)
        if isinstance(source, DataTypeItem):
            self.class_name = source.class_name

    def write_xml(self, elem: ET.Element) -> None:
        super().write_xml(elem)
        _set(elem, "className", self.class_name)
        if self.is_simple_type:
            elem.set("simple", "true")

    def read_xml(self, elem: ET.Element) -> None:
        super().read_xml(elem)
        self.class_name = elem.get("className")

    @classmethod
    def from_element(cls, elem: ET.Element) -> "Item":
        item_cls = DataTypeItem if _flag(elem.get("simple")) else ComplexTypeItem
        item = item_cls()
        item.read_xml(elem)
        return item


class ComplexTypeItem(DataTypeItem):
    """Structured type with ordered members and an optional base type."""

    def __init__(self, name: Optional[str] = None, class_name: Optional[str] = None, **kwargs: Any) -> None:
        self.base_type_ref: Optional[str] = kwargs.pop("base_type_ref", None)
        super().__init__(name, class_name, **kwargs)
        self.base_type: Optional[DataTypeItem] = None
        self.members: list[DataMember] = []

    @property
    def is_simple_type(self) -> bool:
        return False

    def children(self) -> list[ModelObject]:
        return list(self.members)

    def add_member(self, member: DataMember) -> DataMember:
        member.container = self
        self.members.append(member)
        return member

    def all_members(self) -> Iterator[DataMember]:
        """Members including those inherited from the base type chain."""
        seen: set[int] = set()
        base = self.base_type
        chain: list[ComplexTypeItem] = []
        while isinstance(base, ComplexTypeItem) and id(base) not in seen:
            seen.add(id(base))
            chain.append(base)
            base = base.base_type
        for t in reversed(chain):
            yield from t.members
        yield from self.members

    def copy_from(self, source: ModelObject) -> None:
        super().copy_from(source)
        if isinstance(source, ComplexTypeItem):
            self.base_type_ref = source.base_type_ref
            self.base_type = source.base_type
            self.members = []
            for member in source.members:
                self.add_member(member.clone())  # type: ignore[arg-type]

    def maintain_references(self, flags: ReferenceFlags, messages: "MsgContainer") -> None:
        if flags & ReferenceFlags.RESOLVE_GLOBAL_REFS:
            self.base_type = self._resolve(self.base_type_ref, self.ITEM_TYPE, messages, "base type")  # type: ignore[assignment]
            if self.base_type is self:
                messages.add(self, "Type '%s' cannot be its own base type.", self.name)
                self.base_type = None
        if flags & ReferenceFlags.SYNC_GLOBAL_REFNAMES:
            self.base_type_ref = self._shorten(self.base_type, self.base_type_ref)
        if flags & ReferenceFlags.VALIDATE_BASIC:
            _check_unique_names(self, self.members, messages)
        super().maintain_references(flags, messages)

    def write_xml(self, elem: ET.Element) -> None:
        super().write_xml(elem)
        _set(elem, "baseType", self.base_type_ref)
        for member in self.members:
            member.write_xml(ET.SubElement(elem, member.xml_tag))

    def read_xml(self, elem: ET.Element) -> None:
        super().read_xml(elem)
        self.base_type_ref = elem.get("baseType")
        self.members = []
        for child in elem.findall(DataMember.xml_tag):
            member = DataMember()
            member.read_xml(child)
            self.add_member(member)


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------


class ActivityItem(Item):
    """Unit of work whose behaviour is provided by a handler implementation.

    ``handler`` names the implementation as ``module:attr`` or ``module.attr``.
    A bare name is looked up in the model's default package.
    """

    ITEM_TYPE = "Activity"

    def __init__(self, name: Optional[str] = None, handler: Optional[str] = None, **kwargs: Any) -> None:
        kwargs.setdefault("item_type", self.ITEM_TYPE)
        super().__init__(name, **kwargs)
        self.handler = handler
        self.handler_impl: Any = None

    @property
    def handler_name(self) -> Optional[str]:
        if not self.handler:
            return None
        if ":" in self.handler or "." in self.handler:
            return self.handler
        package = self.model.default_package if self.model is not None else None
        if package:
            return f"{package}:{self.handler}"
        return self.handler

    def copy_from(self, source: ModelObject) -> None:
        super().copy_from(source)
        if isinstance(source, ActivityItem):
            self.handler = source.handler
            self.handler_impl = None

    def instantiate(self, messages: "MsgContainer") -> None:
        self.handler_impl = None
        name = self.handler_name
        if not name or self.model is None:
            return
        try:
            self.handler_impl = self.model.code_resolver.load(name)
        except (ObjectNotFoundError, ImportError) as exc:
            messages.add(self, "Cannot bind handler '%s'.", name, exc=exc)
            return
        logger.debug("Bound handler %s for %s", name, self.qualifier)

    def write_xml(self, elem: ET.Element) -> None:
        super().write_xml(elem)
        _set(elem, "handler", self.handler)

    def read_xml(self, elem: ET.Element) -> None:
        super().read_xml(elem)
        self.handler = elem.get("handler")


# ---------------------------------------------------------------------------
# Processes
# ---------------------------------------------------------------------------


class NodeParam(ModelObject):
    """Typed parameter of a process node."""

    xml_tag = "param"

    def __init__(self, name: Optional[str] = None, type_ref: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(name, **kwargs)
        self.type_ref = type_ref
        self.data_type: Optional[DataTypeItem] = None

    def copy_from(self, source: ModelObject) -> None:
        super().copy_from(source)
        if isinstance(source, NodeParam):
            self.type_ref = source.type_ref
            self.data_type = source.data_type

    def maintain_references(self, flags: ReferenceFlags, messages: "MsgContainer") -> None:
        if flags & ReferenceFlags.RESOLVE_GLOBAL_REFS:
            self.data_type = self._resolve(self.type_ref, DataTypeItem.ITEM_TYPE, messages, "parameter type")  # type: ignore[assignment]
        if flags & ReferenceFlags.SYNC_GLOBAL_REFNAMES:
            self.type_ref = self._shorten(self.data_type, self.type_ref)
        super().maintain_references(flags, messages)

    def write_xml(self, elem: ET.Element) -> None:
        super().write_xml(elem)
        _set(elem, "type", self.type_ref)

    def read_xml(self, elem: ET.Element) -> None:
        super().read_xml(elem)
        self.type_ref = elem.get("type")


class ProcessNode(ModelObject):
    """Node of a process graph.

    ``kind`` is one of :data:`NODE_KINDS`. Activity and sub-process nodes
    carry a ``ref`` to the item they execute.
    """

    xml_tag = "node"

    NODE_KINDS = ("initial", "final", "activity", "subprocess")
    _TARGET_TYPES = {"activity": ActivityItem.ITEM_TYPE, "subprocess": "Process"}

    def __init__(
        self,
        name: Optional[str] = None,
        kind: str = "activity",
        ref: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(name, **kwargs)
        self.kind = kind
        self.ref = ref
        self.target: Optional[Item] = None
        self.params: list[NodeParam] = []

    def children(self) -> list[ModelObject]:
        return list(self.params)

    def add_param(self, param: NodeParam) -> NodeParam:
        param.container = self
        self.params.append(param)
        return param

    def copy_from(self, source: ModelObject) -> None:
        super().copy_from(source)
        if isinstance(source, ProcessNode):
            self.kind = source.kind
            self.ref = source.ref
            self.target = source.target
            self.params = []
            for param in source.params:
                self.add_param(param.clone())  # type: ignore[arg-type]

    def maintain_references(self, flags: ReferenceFlags, messages: "MsgContainer") -> None:
        target_type = self._TARGET_TYPES.get(self.kind)
        if flags & ReferenceFlags.VALIDATE_BASIC:
            if self.kind not in self.NODE_KINDS:
                messages.add(self, "Unknown node kind '%s'.", self.kind)
            elif target_type is not None and not self.ref:
                messages.add(self, "Node '%s' does not reference an %s.", self.name, target_type)
        if target_type is not None:
            if flags & ReferenceFlags.RESOLVE_GLOBAL_REFS:
                self.target = self._resolve(self.ref, target_type, messages, target_type.lower())
            if flags & ReferenceFlags.SYNC_GLOBAL_REFNAMES:
                self.ref = self._shorten(self.target, self.ref)
        super().maintain_references(flags, messages)

    def write_xml(self, elem: ET.Element) -> None:
        super().write_xml(elem)
        _set(elem, "kind", self.kind)
        _set(elem, "ref", self.ref)
        for param in self.params:
            param.write_xml(ET.SubElement(elem, param.xml_tag))

    def read_xml(self, elem: ET.Element) -> None:
        super().read_xml(elem)
        self.kind = elem.get("kind", "activity")
        self.ref = elem.get("ref")
        self.params = []
        for child in elem.findall(NodeParam.xml_tag):
            param = NodeParam()
            param.read_xml(child)
            self.add_param(param)


class ProcessItem(Item):
    """Process definition: an ordered list of nodes."""

    ITEM_TYPE = "Process"

    def __init__(self, name: Optional[str] = None, **kwargs: Any) -> None:
        kwargs.setdefault("item_type", self.ITEM_TYPE)
        super().__init__(name, **kwargs)
        self.nodes: list[ProcessNode] = []

    def children(self) -> list[ModelObject]:
        return list(self.nodes)

    def add_node(self, node: ProcessNode) -> ProcessNode:
        node.container = self
        self.nodes.append(node)
        return node

    @property
    def initial_nodes(self) -> list[ProcessNode]:
        return [n for n in self.nodes if n.kind == "initial"]

    def copy_from(self, source: ModelObject) -> None:
        super().copy_from(source)
        if isinstance(source, ProcessItem):
            self.nodes = []
            for node in source.nodes:
                self.add_node(node.clone())  # type: ignore[arg-type]

    def maintain_references(self, flags: ReferenceFlags, messages: "MsgContainer") -> None:
        if flags & ReferenceFlags.VALIDATE_BASIC:
            _check_unique_names(self, self.nodes, messages)
        if flags & ReferenceFlags.VALIDATE_RUNTIME and self.nodes and not self.initial_nodes:
            messages.add(self, "Process '%s' has no initial node.", self.name)
        super().maintain_references(flags, messages)

    def write_xml(self, elem: ET.Element) -> None:
        super().write_xml(elem)
        for node in self.nodes:
            node.write_xml(ET.SubElement(elem, node.xml_tag))

    def read_xml(self, elem: ET.Element) -> None:
        super().read_xml(elem)
        self.nodes = []
        for child in elem.findall(ProcessNode.xml_tag):
            node = ProcessNode()
            node.read_xml(child)
            self.add_node(node)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _set(elem: ET.Element, key: str, value: Optional[str]) -> None:
    if value is not None:
        elem.set(key, value)


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def check_name(obj: ModelObject, messages: "MsgContainer") -> None:
    """Record a message for a missing name or one the qualifier syntax cannot carry."""
    if not obj.name:
        messages.add(obj.container or obj.owning_model or obj, "No object name specified.")
    elif not is_valid_identifier(obj.name):
        messages.add(obj, "Name '%s' must not contain one of the characters /:.;", obj.name)


def _check_unique_names(owner: ModelObject, objects: list[Any], messages: "MsgContainer") -> None:
    seen: set[Optional[str]] = set()
    for obj in objects:
        if obj.name in seen:
            messages.add(owner, "Duplicate name '%s'.", obj.name)
        seen.add(obj.name)
