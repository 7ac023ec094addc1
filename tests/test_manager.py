"""Tests for the store-backed model manager: registry, mutations, reset and notifications."""

from __future__ import annotations

import pytest

from bprepo.config import RepositorySettings
from bprepo.errors import (
    DuplicateNameError,
    ModelError,
    ModelValidationError,
    ObjectNotFoundError,
    UnsupportedOperationError,
)
from bprepo.items import ComplexTypeItem, DataMember, Item
from bprepo.manager import NotificationMode, StoreModelManager, as_model_qualifier
from bprepo.model import ModelState, new_model
from bprepo.multiplex import build_manager
from bprepo.qualifier import Qualifier
from bprepo.stores import FileSystemStore

from conftest import write_model


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_register_and_get(self, fs_manager):
        model = new_model("Sales")
        fs_manager.register_model(model)
        assert fs_manager.get_model("Sales") is model
        assert fs_manager.get_model("/Sales") is model
        assert fs_manager.get_model(Qualifier.parse("/Sales/Type:Order")) is model
        assert model.manager is fs_manager

    def test_duplicate_registration_rejected(self, fs_manager):
        fs_manager.register_model(new_model("Sales"))
        with pytest.raises(DuplicateNameError):
            fs_manager.register_model(new_model("Sales"))

    def test_unnamed_model_rejected(self, fs_manager):
        with pytest.raises(ModelError):
            fs_manager.register_model(new_model(""))

    def test_missing_model(self, fs_manager):
        assert fs_manager.get_model("Nope") is None
        with pytest.raises(ObjectNotFoundError):
            fs_manager.get_model("Nope", required=True)

    def test_system_always_passes_patterns(self, model_root):
        mgr = StoreModelManager(FileSystemStore(model_root), RepositorySettings(model_patterns=["Sales"]))
        assert mgr.should_load_model("System")
        assert mgr.should_load_model("Sales")
        assert not mgr.should_load_model("Common")

    def test_as_model_qualifier(self):
        assert as_model_qualifier("Sales") == Qualifier(model="Sales")
        assert as_model_qualifier("/Sales/Order") == Qualifier(model="Sales")
        with pytest.raises(ModelError):
            as_model_qualifier(Qualifier.parse("Order"))
        with pytest.raises(ModelError):
            as_model_qualifier("")


class TestGetItem:
    def test_typed_and_untyped(self, repo):
        order = repo.get_item("/Sales/Type:Order")
        assert order is not None
        assert repo.get_item("/Sales/Order") is order

    def test_missing_model_name(self, repo):
        with pytest.raises(ModelError, match="Missing model name"):
            repo.get_item("Order")

    def test_missing_item_name(self, repo):
        with pytest.raises(ModelError, match="Missing item name"):
            repo.get_item("/Sales")

    def test_required(self, repo):
        assert repo.get_item("/Sales/Type:Nope") is None
        with pytest.raises(ObjectNotFoundError):
            repo.get_item("/Sales/Type:Nope", required=True)
        with pytest.raises(ObjectNotFoundError):
            repo.get_item("/Nope/Order", required=True)

    def test_item_types(self, repo):
        assert repo.item_types() == ["Model", "Type", "Activity", "Process", "Actor"]
        assert repo.item_type_descriptor("Process").folder_name == "process"
        assert repo.item_type_descriptor("Nope") is None


# ---------------------------------------------------------------------------
# Model mutations
# ---------------------------------------------------------------------------


class TestModelMutations:
    def test_add_model_duplicate(self, repo):
        with pytest.raises(DuplicateNameError):
            repo.add_model(new_model("Sales"))

    def test_add_model_resolves_imports(self, repo, sales_repo):
        billing = new_model("Billing", "Sales")
        assert repo.add_model(billing) is True
        assert [m.name for m in billing.imported_models] == ["Sales"]
        assert (sales_repo / "Billing" / "model.xml").is_file()
        assert repo.get_model("Billing") is billing

    def test_update_model_copies_header_and_keeps_items(self, repo, sales_repo):
        sales = repo.get_model("Sales")
        edited = new_model("Sales", "Common", description="Order handling")
        result = repo.update_model(edited)
        assert result is sales
        assert sales.description == "Order handling"
        assert sales.get_item("Order", "Type") is not None
        assert 'description="Order handling"' in (sales_repo / "Sales" / "model.xml").read_text()

    def test_update_unknown_model(self, fs_manager):
        with pytest.raises(ObjectNotFoundError):
            fs_manager.update_model(new_model("Ghost"))

    def test_remove_model_invalidates_importers(self, repo, sales_repo):
        sales = repo.get_model("Sales")
        assert sales.state is ModelState.RESOLVED
        repo.remove_model(repo.get_model("Common"))
        assert repo.get_model("Common") is None
        assert not (sales_repo / "Common").exists()
        assert sales.state is ModelState.UNRESOLVED
        assert sales.imported_models == []


# ---------------------------------------------------------------------------
# Item mutations
# ---------------------------------------------------------------------------


class TestItemMutations:
    def test_add_item_resolves_and_writes(self, repo, sales_repo):
        sales = repo.get_model("Sales")
        invoice = ComplexTypeItem("Invoice")
        member = invoice.add_member(DataMember("order", "Order"))
        repo.add_item(sales, invoice)
        assert member.data_type is sales.get_item("Order", "Type")
        assert (sales_repo / "Sales" / "type" / "Invoice.xml").is_file()

    def test_add_item_sync_global_refs(self, repo):
        sales = repo.get_model("Sales")
        invoice = ComplexTypeItem("Invoice")
        member = invoice.add_member(DataMember("when", "/System/Date"))
        repo.add_item(sales, invoice, sync_global_refs=True)
        assert member.type_ref == "Date"

    def test_update_item(self, repo, sales_repo):
        order = repo.get_item("/Sales/Type:Order")
        edited = order.clone()
        edited.description = "Customer order"
        result = repo.update_item(edited, order.model)
        assert result is order
        assert order.description == "Customer order"
        assert 'description="Customer order"' in (sales_repo / "Sales" / "type" / "Order.xml").read_text()

    def test_update_item_without_model(self, repo):
        with pytest.raises(ModelError):
            repo.update_item(ComplexTypeItem("Loose"))

    def test_remove_item(self, repo, sales_repo):
        validate = repo.get_item("/Sales/Activity:Validate")
        repo.remove_item(validate)
        assert repo.get_item("/Sales/Activity:Validate") is None
        assert not (sales_repo / "Sales" / "activity" / "Validate.xml").exists()

    @pytest.mark.parametrize("name", ["../../escaped", "Bad.Name", "a:b", ""])
    def test_add_item_invalid_name_not_written(self, repo, sales_repo, name):
        sales = repo.get_model("Sales")
        with pytest.raises(ModelError) as exc_info:
            repo.add_item(sales, Item(name, "Actor"))
        assert exc_info.value.code == "InvalidName"
        assert sales.find_item(name) is None
        assert not (sales_repo / "escaped.xml").exists()
        assert not (sales_repo / "Sales" / "actor").exists()

    def test_add_item_to_read_only_model(self, repo):
        system = repo.get_model("System")
        with pytest.raises(UnsupportedOperationError):
            repo.add_item(system, Item("Clerk", "Actor"))
        assert system.find_item("Clerk") is None


class TestMoveItem:
    def test_rename_in_place(self, repo, sales_repo):
        address = repo.get_item("/Common/Type:Address")
        repo.move_item(address, "Location")
        assert address.name == "Location"
        assert repo.get_item("/Common/Type:Location") is address
        assert repo.get_item("/Common/Type:Address") is None
        assert (sales_repo / "Common" / "type" / "Location.xml").is_file()
        assert not (sales_repo / "Common" / "type" / "Address.xml").exists()

    def test_move_to_other_model(self, repo, sales_repo):
        address = repo.get_item("/Common/Type:Address")
        repo.move_item(address, "/Sales/Address")
        assert address.model is repo.get_model("Sales")
        assert address.qualifier.typed == "/Sales/Type:Address"
        assert (sales_repo / "Sales" / "type" / "Address.xml").is_file()
        assert not (sales_repo / "Common" / "type" / "Address.xml").exists()

    def test_destination_taken(self, repo, sales_repo):
        address = repo.get_item("/Common/Type:Address")
        with pytest.raises(DuplicateNameError):
            repo.move_item(address, Qualifier.parse("/Sales/Order"))
        assert address.model is repo.get_model("Common")
        assert (sales_repo / "Common" / "type" / "Address.xml").is_file()

    def test_same_place_is_noop(self, repo):
        address = repo.get_item("/Common/Type:Address")
        assert repo.move_item(address, "/Common/Address") is address

    def test_move_into_read_only_model_keeps_item(self, repo, sales_repo):
        validate = repo.get_item("/Sales/Activity:Validate")
        with pytest.raises(UnsupportedOperationError):
            repo.move_item(validate, "/System")
        assert validate.model is repo.get_model("Sales")
        assert repo.get_model("System").find_item("Validate") is None
        assert (sales_repo / "Sales" / "activity" / "Validate.xml").is_file()

    @pytest.mark.parametrize("destination", ["Bad.Name", "/Sales/Order.id"])
    def test_move_to_invalid_name(self, repo, sales_repo, destination):
        address = repo.get_item("/Common/Type:Address")
        with pytest.raises(ModelError) as exc_info:
            repo.move_item(address, destination)
        assert exc_info.value.code == "InvalidName"
        assert address.name == "Address"
        assert (sales_repo / "Common" / "type" / "Address.xml").is_file()


# ---------------------------------------------------------------------------
# Reset
# ---------------------------------------------------------------------------


BAD_TYPE = '<Type name="Broken"><member name="field" type="NoSuchType" /></Type>'


class TestRequestModelReset:
    def test_clean_reset(self, repo):
        repo.request_model_reset(reload=True)
        assert repo.get_item("/Sales/Process:CheckOrder") is not None
        assert repo.messages.is_empty()

    def test_invalid_model_reported_valid_models_kept(self, repo, sales_repo):
        write_model(sales_repo, "Bad", items={"type/Broken.xml": BAD_TYPE})
        with pytest.raises(ModelValidationError) as exc_info:
            repo.request_model_reset(reload=True)
        err = exc_info.value
        assert err.code == "ModelValidationFailed"
        assert str(err).startswith("Model validation failed after reload:")
        assert any("/Bad/Broken.field" in line for line in err.messages)

        assert repo.get_item("/Sales/Type:Order") is not None
        assert repo.get_model("Common") is not None
        assert repo.get_model("Bad") is not None
        assert repo.messages.is_empty()

    def test_unreadable_descriptor_fails_reset(self, repo, sales_repo):
        (sales_repo / "Junk").mkdir()
        (sales_repo / "Junk" / "model.xml").write_text("not xml")
        with pytest.raises(ModelValidationError) as exc_info:
            repo.request_model_reset(reload=True)
        assert "Junk" in str(exc_info.value)
        assert repo.get_model("Sales") is not None

    def test_reload_picks_up_new_models(self, repo, sales_repo):
        old_sales = repo.get_model("Sales")
        write_model(sales_repo, "Billing", imports=("Sales",))
        repo.request_model_reset(reload=True)
        assert repo.get_model("Billing") is not None
        assert repo.get_model("Sales") is not old_sales

    def test_soft_reset_keeps_instances(self, repo, sales_repo):
        sales = repo.get_model("Sales")
        write_model(sales_repo, "Billing")
        repo.request_model_reset(reload=False)
        assert repo.get_model("Sales") is sales
        assert sales.state is ModelState.RESOLVED
        assert repo.get_model("Billing") is None

    def test_reload_defaults_from_settings(self, sales_repo):
        mgr = build_manager(RepositorySettings(model_path=str(sales_repo), reload_on_reset=True))
        mgr.read_models()
        write_model(sales_repo, "Billing")
        mgr.request_model_reset()
        assert mgr.get_model("Billing") is not None

    def test_code_resolvers_released(self, repo):
        sales = repo.get_model("Sales")
        _ = sales.code_resolver
        repo.request_model_reset(reload=False)
        assert not sales.has_code_resolver


# ---------------------------------------------------------------------------
# External change notifications
# ---------------------------------------------------------------------------


class TestModelUpdated:
    def test_model_added(self, repo, sales_repo):
        write_model(sales_repo, "Billing", imports=("Sales",))
        repo.model_updated("/Billing", NotificationMode.ADDED)
        billing = repo.get_model("Billing")
        assert billing is not None
        assert [m.name for m in billing.imported_models] == ["Sales"]

    def test_model_header_updated(self, repo, sales_repo):
        sales = repo.get_model("Sales")
        write_model(sales_repo, "Sales", attrs=' description="Renamed"')
        repo.model_updated("/Sales", NotificationMode.UPDATED)
        assert repo.get_model("Sales") is sales
        assert sales.description == "Renamed"
        assert sales.imports == []
        assert sales.get_item("Order", "Type") is not None

    def test_model_removed(self, repo):
        repo.model_updated("/Common", NotificationMode.REMOVED)
        assert repo.get_model("Common") is None

    def test_item_added(self, repo, sales_repo):
        (sales_repo / "Sales" / "type" / "Extra.xml").write_text('<Type name="Extra" className="int" simple="true" />')
        repo.model_updated("/Sales/Type:Extra", NotificationMode.ADDED)
        assert repo.get_item("/Sales/Type:Extra").class_name == "int"

    def test_item_updated_in_place(self, repo, sales_repo):
        order = repo.get_item("/Sales/Type:Order")
        (sales_repo / "Sales" / "type" / "Order.xml").write_text(
            '<Type name="Order" className="sales.NewOrder"><member name="id" type="Integer" /></Type>'
        )
        repo.model_updated("/Sales/Type:Order", NotificationMode.UPDATED)
        assert repo.get_item("/Sales/Type:Order") is order
        assert order.class_name == "sales.NewOrder"
        assert [m.name for m in order.members] == ["id"]
        assert order.members[0].data_type is repo.get_item("/System/Type:Integer")

    def test_item_removed(self, repo):
        repo.model_updated("/Sales/Activity:Validate", NotificationMode.REMOVED)
        assert repo.get_item("/Sales/Activity:Validate") is None

    def test_unknown_model_is_ignored(self, repo):
        repo.model_updated("/Nope/Type:X", NotificationMode.ADDED)
        repo.model_updated("/Nope", NotificationMode.REMOVED)
        assert repo.get_model("Nope") is None

    def test_read_only_backend_ignores_updates(self, repo):
        system = repo.get_model("System")
        repo.model_updated("/System", NotificationMode.UPDATED)
        assert repo.get_model("System") is system
