"""Tests for item kinds, reference maintenance, the item type registry and messages."""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET

import pytest

from bprepo.errors import ModelError
from bprepo.item_types import SKIP_INVISIBLE, SKIP_MODEL, ItemTypeDescriptor, ItemTypeRegistry
from bprepo.items import (
    ActivityItem,
    ComplexTypeItem,
    DataMember,
    DataTypeItem,
    Item,
    NodeParam,
    ProcessItem,
    ProcessNode,
    ReferenceFlags,
)
from bprepo.messages import MsgContainer
from bprepo.model import Model, new_model


@pytest.fixture
def mgr(fs_manager):
    system = new_model("System")
    system.add_item(DataTypeItem("String", "str"))
    fs_manager.register_model(system)
    return fs_manager


def _sales(mgr, *items):
    sales = new_model("Sales")
    for item in items:
        sales.add_item(item)
    mgr.register_model(sales)
    return sales


# ---------------------------------------------------------------------------
# Complex types
# ---------------------------------------------------------------------------


class TestComplexType:
    def test_members_resolve_through_search_order(self, mgr):
        order = ComplexTypeItem("Order", "sales.Order")
        member = order.add_member(DataMember("id", "String"))
        _sales(mgr, order)
        messages = MsgContainer()
        order.model.maintain_references(ReferenceFlags.RESOLVE, messages)
        assert messages.is_empty()
        assert member.data_type.model.name == "System"

    def test_unresolvable_member_type_is_a_message(self, mgr):
        order = ComplexTypeItem("Order")
        order.add_member(DataMember("id", "Nope"))
        _sales(mgr, order)
        messages = MsgContainer()
        order.model.maintain_references(ReferenceFlags.RESOLVE, messages)
        assert len(messages) == 1
        assert "/Sales/Order.id" in messages.format()

    def test_base_type_and_inherited_members(self, mgr):
        base = ComplexTypeItem("Base")
        base.add_member(DataMember("id", "String"))
        derived = ComplexTypeItem("Derived", base_type_ref="Base")
        derived.add_member(DataMember("total", "String"))
        _sales(mgr, base, derived)
        derived.model.maintain_references(ReferenceFlags.RESOLVE, MsgContainer())
        assert derived.base_type is base
        assert [m.name for m in derived.all_members()] == ["id", "total"]

    def test_duplicate_member_names_fail_validation(self, mgr):
        order = ComplexTypeItem("Order")
        order.add_member(DataMember("id", "String"))
        order.add_member(DataMember("id", "String"))
        _sales(mgr, order)
        messages = MsgContainer()
        order.model.maintain_references(ReferenceFlags.VALIDATE, messages)
        assert "Duplicate name 'id'" in messages.format()

    def test_sync_shortens_reference(self, mgr):
        order = ComplexTypeItem("Order")
        member = order.add_member(DataMember("id", "/System/String"))
        _sales(mgr, order)
        order.model.maintain_references(
            ReferenceFlags.RESOLVE | ReferenceFlags.SYNC_GLOBAL_REFNAMES, MsgContainer()
        )
        assert member.type_ref == "String"

    def test_clone_copies_members(self):
        order = ComplexTypeItem("Order", "sales.Order")
        order.add_member(DataMember("id", "String"))
        copy = order.clone()
        assert copy is not order
        assert [m.name for m in copy.members] == ["id"]
        assert copy.members[0] is not order.members[0]
        assert copy.members[0].container is copy


class TestObjectNames:
    def test_delimiter_in_item_name(self, mgr):
        sales = _sales(mgr, DataTypeItem("Bad.Name"))
        messages = MsgContainer()
        sales.maintain_references(ReferenceFlags.VALIDATE, messages)
        assert "Name 'Bad.Name' must not contain one of the characters /:.;" in messages.format()

    def test_delimiter_in_member_name(self, mgr):
        order = ComplexTypeItem("Order")
        order.add_member(DataMember("a/b", "String"))
        _sales(mgr, order)
        messages = MsgContainer()
        order.model.maintain_references(ReferenceFlags.VALIDATE, messages)
        assert "Name 'a/b' must not contain" in messages.format()

    def test_missing_member_name(self, mgr):
        order = ComplexTypeItem("Order")
        order.add_member(DataMember(None, "String"))
        _sales(mgr, order)
        messages = MsgContainer()
        order.model.maintain_references(ReferenceFlags.VALIDATE, messages)
        assert "/Sales/Order: No object name specified." in messages.lines()

    def test_model_name_checked(self):
        model = new_model("Bad;Name")
        messages = MsgContainer()
        model.maintain_references(ReferenceFlags.VALIDATE_BASIC, messages)
        assert len(messages) == 1

    def test_names_not_checked_without_validation(self, mgr):
        sales = _sales(mgr, DataTypeItem("Bad.Name"))
        messages = MsgContainer()
        sales.maintain_references(ReferenceFlags.RESOLVE, messages)
        assert messages.is_empty()


# ---------------------------------------------------------------------------
# Processes
# ---------------------------------------------------------------------------


class TestProcess:
    def _process(self):
        process = ProcessItem("CheckOrder")
        entry = process.add_node(ProcessNode("Entry", kind="initial"))
        entry.add_param(NodeParam("amount", "String"))
        process.add_node(ProcessNode("Check", kind="activity", ref="Validate"))
        process.add_node(ProcessNode("Done", kind="final"))
        return process

    def test_activity_node_resolves(self, mgr):
        process = self._process()
        activity = ActivityItem("Validate")
        _sales(mgr, process, activity)
        messages = MsgContainer()
        process.model.maintain_references(ReferenceFlags.RESOLVE | ReferenceFlags.VALIDATE, messages)
        assert messages.is_empty(), messages.format()
        assert process.nodes[1].target is activity
        assert process.nodes[0].params[0].data_type is not None

    def test_missing_activity_is_reported(self, mgr):
        process = self._process()
        _sales(mgr, process)
        messages = MsgContainer()
        process.model.maintain_references(ReferenceFlags.RESOLVE, messages)
        assert "Validate" in messages.format()
        assert "/Sales/CheckOrder.Check" in messages.format()

    def test_process_without_initial_node(self, mgr):
        process = ProcessItem("P")
        process.add_node(ProcessNode("Done", kind="final"))
        _sales(mgr, process)
        messages = MsgContainer()
        process.model.maintain_references(ReferenceFlags.VALIDATE, messages)
        assert "no initial node" in messages.format()

    def test_unknown_node_kind(self, mgr):
        process = ProcessItem("P")
        process.add_node(ProcessNode("X", kind="teleport"))
        _sales(mgr, process)
        messages = MsgContainer()
        process.model.maintain_references(ReferenceFlags.VALIDATE_BASIC, messages)
        assert "teleport" in messages.format()

    def test_xml_round_trip(self):
        process = self._process()
        elem = ET.Element(process.xml_tag)
        process.write_xml(elem)
        copy = ProcessItem.from_element(elem)
        assert [n.name for n in copy.nodes] == ["Entry", "Check", "Done"]
        assert copy.nodes[1].ref == "Validate"
        assert copy.nodes[0].params[0].type_ref == "String"


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------


class TestActivity:
    def test_bare_handler_uses_default_package(self):
        model = Model("Sales", default_package="sales_handlers")
        activity = ActivityItem("Validate", handler="validate")
        model.add_item(activity)
        assert activity.handler_name == "sales_handlers:validate"

    def test_qualified_handler_is_kept(self):
        model = Model("Sales", default_package="ignored")
        activity = ActivityItem("Validate", handler="json:dumps")
        model.add_item(activity)
        assert activity.handler_name == "json:dumps"

    def test_instantiate_binds_through_fallback(self):
        model = new_model("Sales")
        activity = ActivityItem("Dump", handler="json:dumps")
        model.add_item(activity)
        messages = MsgContainer()
        activity.instantiate(messages)
        assert activity.handler_impl is json.dumps
        assert messages.is_empty()

    def test_missing_handler_is_reported(self):
        model = new_model("Sales")
        activity = ActivityItem("Nope", handler="no_such_module_xyz:run")
        model.add_item(activity)
        messages = MsgContainer()
        activity.instantiate(messages)
        assert activity.handler_impl is None
        assert "no_such_module_xyz:run" in messages.format()


# ---------------------------------------------------------------------------
# Data types from XML
# ---------------------------------------------------------------------------


class TestDataTypeXml:
    def test_simple_flag_selects_class(self):
        simple = DataTypeItem.from_element(ET.fromstring('<Type name="S" className="str" simple="true"/>'))
        complex_ = DataTypeItem.from_element(ET.fromstring('<Type name="C"><member name="a" type="S"/></Type>'))
        assert type(simple) is DataTypeItem
        assert isinstance(complex_, ComplexTypeItem)
        assert complex_.members[0].type_ref == "S"

    def test_generator_info_preserved(self):
        item = Item.from_element(ET.fromstring('<Actor name="Clerk"><generatorInfo> x </generatorInfo></Actor>'))
        assert item.generator_info == "x"


# ---------------------------------------------------------------------------
# Item type registry
# ---------------------------------------------------------------------------


class TestItemTypeRegistry:
    def test_standard_types(self):
        registry = ItemTypeRegistry.standard()
        assert registry.item_types() == ["Model", "Type", "Activity", "Process", "Actor"]

    def test_skip_model(self):
        registry = ItemTypeRegistry.standard()
        assert "Model" not in registry.item_types(SKIP_MODEL)

    def test_skip_invisible(self):
        registry = ItemTypeRegistry.standard()
        registry.add(ItemTypeDescriptor("Hidden", visible=False, sequence=5))
        assert "Hidden" in registry.item_types()
        assert "Hidden" not in registry.item_types(SKIP_INVISIBLE)

    def test_require_unknown(self):
        with pytest.raises(ModelError) as exc_info:
            ItemTypeRegistry.standard().require("Nope")
        assert exc_info.value.code == "UnknownItemType"

    def test_descriptor_creates_item(self):
        itd = ItemTypeRegistry.standard().require("Process")
        item = itd.create_item("P")
        assert isinstance(item, ProcessItem)
        assert itd.folder_name == "process"


# ---------------------------------------------------------------------------
# Message container
# ---------------------------------------------------------------------------


class TestMsgContainer:
    def test_add_formats_args_and_source(self):
        messages = MsgContainer()
        messages.add(new_model("Sales"), "Cannot resolve %s.", "X")
        assert messages.lines() == ["/Sales: Cannot resolve X."]

    def test_exception_is_appended(self):
        messages = MsgContainer()
        messages.add("src", "Failed.", exc=ValueError("boom"))
        assert messages.format() == "src: Failed. (boom)"

    def test_level_filter_and_clear(self):
        messages = MsgContainer()
        messages.add(None, "minor", level=logging.WARNING)
        messages.add(None, "major")
        assert messages.lines(logging.ERROR) == ["major"]
        messages.clear()
        assert messages.is_empty()
