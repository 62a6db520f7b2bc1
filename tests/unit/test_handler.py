"""
Unit tests for the recursive update handler using a mocked record store.
"""

from unittest.mock import MagicMock, patch

import pytest

from recursive_update.engine import RecursiveUpdateHandler
from recursive_update.engine.context import OperationContext
from recursive_update.engine.node import ROOT_CREATE_NOT_ALLOWED, ROOT_UPDATE_NOT_ALLOWED
from recursive_update.exceptions import InvalidConfigurationError, ValidationError
from recursive_update.settings import RecursiveUpdateSettings

pytestmark = pytest.mark.unit


class FakeModel:
    pass


@pytest.fixture
def store():
    store = MagicMock()
    store.model_for_name.return_value = FakeModel
    store.related_model.return_value = FakeModel
    store.save.return_value = None
    store.update.return_value = None
    store.exists.return_value = True
    store.fetch_many.side_effect = lambda model, ids: list(ids)
    store.record_id.side_effect = lambda record: record.pk
    return store


@pytest.fixture
def handler(store):
    return RecursiveUpdateHandler(store=store, settings=RecursiveUpdateSettings())


class TestEntryPoints:
    """Tests for bulk_recursive_update/recursive_update."""

    def test_params_must_be_a_mapping(self, handler):
        """Params must be a dict keyed by the root name."""
        with pytest.raises(InvalidConfigurationError):
            handler.bulk_recursive_update([{"name": "x"}], {"roles": {}})

    def test_transaction_is_opened_by_default(self, handler, store):
        """The outer call should open a transaction."""
        handler.bulk_recursive_update({"roles": []}, {"roles": {}})

        store.atomic.assert_called_once_with()

    def test_transaction_can_be_left_to_the_caller(self, handler, store):
        """transaction=False should not open one."""
        handler.bulk_recursive_update({"roles": []}, {"roles": {}}, transaction=False)

        store.atomic.assert_not_called()

    def test_root_creation_forbidden_by_default(self, handler, store):
        """Root items without id are rejected by default."""
        with pytest.raises(ValidationError) as exc_info:
            handler.bulk_recursive_update({"roles": [{"name": "Admin"}]}, {"roles": {}})

        assert exc_info.value.errors == {"roles": [{"id": ROOT_CREATE_NOT_ALLOWED}]}
        store.build.assert_not_called()

    def test_root_update_can_be_forbidden(self, handler, store):
        """Root items with id are rejected when updates are off."""
        with pytest.raises(ValidationError) as exc_info:
            handler.bulk_recursive_update(
                {"roles": [{"id": 1}]}, {"roles": {}}, allow_root_update=False
            )

        assert exc_info.value.errors == {"roles": [{"id": ROOT_UPDATE_NOT_ALLOWED}]}
        store.fetch.assert_not_called()

    def test_single_root_object_is_not_padded(self, handler):
        """A non array root reports its error without a list."""
        with pytest.raises(ValidationError) as exc_info:
            handler.bulk_recursive_update({"role": {"name": "Admin"}}, {"role": {}})

        assert exc_info.value.errors == {"role": {"id": ROOT_CREATE_NOT_ALLOWED}}

    def test_recursive_update_unwraps_errors(self, handler):
        """The single record form drops the positional wrapper."""
        with pytest.raises(ValidationError) as exc_info:
            handler.recursive_update({"name": "Admin"}, {"roles": {}})

        assert exc_info.value.errors == {"id": ROOT_CREATE_NOT_ALLOWED}

    def test_missing_root_key_returns_empty_list(self, handler):
        """Missing root params yield no records."""
        assert handler.bulk_recursive_update({}, {"roles": {}}) == []


class TestFailFast:
    """Tests for stopping at the first failing node."""

    def test_later_items_are_not_attempted(self, handler, store):
        """Processing stops at the first failing item."""
        store.save.side_effect = [{"name": ["Required."]}]

        with pytest.raises(ValidationError) as exc_info:
            handler.bulk_recursive_update(
                {"roles": [{"name": ""}, {"name": ""}, {"name": "C"}]},
                {"roles": {}},
                allow_root_create=True,
            )

        assert exc_info.value.errors == {"roles": [{"name": ["Required."]}]}
        assert store.build.call_count == 1

    def test_unknown_id_is_reported_at_its_position(self, handler, store):
        """Unknown ids are reported at their array position."""
        store.exists.side_effect = [True, False]

        with pytest.raises(ValidationError) as exc_info:
            handler.bulk_recursive_update({"roles": [{"id": 1}, {"id": 99}]}, {"roles": {}})

        assert exc_info.value.errors == {"roles": [None, {"id": "does not exist"}]}


class TestRootRestrictions:
    """Tests for options that are not allowed on the root element."""

    def test_delete_option(self, handler):
        """The delete option cannot be used on the root."""
        with pytest.raises(InvalidConfigurationError):
            handler.bulk_recursive_update(
                {"delete_roles": [1]}, {"delete_roles": {"options": {"delete": True}}}
            )

    def test_destructive_option(self, handler):
        """The destructive option cannot be used on the root."""
        with pytest.raises(InvalidConfigurationError):
            handler.bulk_recursive_update(
                {"roles": [{"id": 1}]}, {"roles": {"options": {"destructive": True}}}
            )

    def test_destroy_flag(self, handler):
        """Root items cannot carry the destroy flag."""
        with pytest.raises(InvalidConfigurationError):
            handler.bulk_recursive_update({"roles": [{"id": 1, "_destroy": True}]}, {"roles": {}})

    def test_model_must_be_derivable(self, handler, store):
        """An unresolvable model name should raise."""
        store.model_for_name.return_value = None

        with pytest.raises(InvalidConfigurationError):
            handler.bulk_recursive_update({"widgets": []}, {"widgets": {}})


class TestOverrides:
    """Tests for copying parent attributes onto children."""

    def test_overrides_work_on_a_copy(self, handler):
        """Overrides are applied to a copy of the item."""
        item = {"description": "a", "currency": "USD"}

        patched = handler._apply_overrides(("currency",), item, {"currency": "EUR"})

        assert patched == {"description": "a", "currency": "EUR"}
        assert item["currency"] == "USD"

    def test_missing_parent_value_keeps_item_value(self, handler):
        """Parent values that are absent do not override."""
        item = {"currency": "USD"}

        assert handler._apply_overrides(("currency",), item, {"number": "1"}) == item

    def test_falsy_parent_values_are_copied(self, handler):
        """Falsy parent values other than None still override."""
        patched = handler._apply_overrides(("active",), {"active": True}, {"active": False})

        assert patched == {"active": False}


class TestNestedWalk:
    """Tests for nested levels through the mocked store."""

    def _context(self, store, parent):
        return OperationContext(store=store, parent=parent, parent_name="role", parent_params={})

    def test_children_are_attached_in_order(self, handler, store):
        """New children are attached to the parent in input order."""
        parent = MagicMock(pk=1)
        built = [MagicMock(pk=10), MagicMock(pk=11)]
        store.build.side_effect = built
        store.has_back_reference.return_value = False
        from recursive_update.engine.mapping import normalize_entry

        result = handler.process(
            {"permissions": [{"name": "a"}, {"name": "b"}]},
            normalize_entry("permissions", {}),
            self._context(store, parent),
        )

        assert result.ok
        assert result.value == built
        assert [c.args[2] for c in store.append_to_collection.call_args_list] == built

    def test_destroy_flag_removes_member(self, handler, store):
        """Flagged items are destroyed instead of updated."""
        parent = MagicMock(pk=1)
        member = MagicMock(pk=5)
        store.find_member.return_value = member
        store.destroy.return_value = None
        from recursive_update.engine.mapping import normalize_entry

        result = handler.process(
            {"permissions": [{"id": 5, "_destroy": True}]},
            normalize_entry("permissions", {}),
            self._context(store, parent),
        )

        assert result.ok
        assert result.value == []
        store.destroy.assert_called_once_with(member)
        store.update.assert_not_called()

    def test_destructive_removes_missing_members(self, handler, store):
        """Members absent from the input are removed."""
        parent = MagicMock(pk=1)
        store.collection_ids.return_value = [1, 2, 3]
        store.destroy_members.return_value = None
        store.fetch.return_value = MagicMock(pk=2)
        from recursive_update.engine.mapping import normalize_entry

        result = handler.process(
            {"permissions": [{"id": "2"}]},
            normalize_entry("permissions", {"options": {"destructive": True}}),
            self._context(store, parent),
        )

        assert result.ok
        store.destroy_members.assert_called_once_with(parent, "permissions", [1, 3])

    def test_delete_prefix_is_required(self, handler, store):
        """Delete entries must use the delete prefix."""
        from recursive_update.engine.mapping import normalize_entry

        with pytest.raises(InvalidConfigurationError):
            handler.process(
                {"old_permissions": [1]},
                normalize_entry("old_permissions", {"options": {"delete": True}}),
                self._context(store, MagicMock(pk=1)),
            )


class TestOneRelationOrder:
    """Tests for the order of one-relations around the parent save."""

    @pytest.mark.parametrize(
        "forward, order",
        [(True, ["child", "parent"]), (False, ["parent", "child"])],
    )
    def test_save_order(self, handler, store, forward, order):
        """Forward one-relations save first, reverse ones after the parent."""
        records = {"parent": MagicMock(pk=1), "child": MagicMock(pk=2)}
        store.is_forward_reference.return_value = forward
        store.has_back_reference.return_value = False
        store.build.side_effect = [records["parent"], records["child"]]

        handler.bulk_recursive_update(
            {"individuals": [{"name": "Ada", "student": {"code": "S-1"}}]},
            {"individuals": {"ones": {"student": {}}}},
            allow_root_create=True,
        )

        saved = [c.args[0] for c in store.save.call_args_list]
        assert saved == [records[name] for name in order]
        store.is_forward_reference.assert_called_once_with(FakeModel, "student")
        store.set_single.assert_called_once_with(records["parent"], "student", records["child"])


class TestModuleShortcuts:
    """Tests for the module level entry points."""

    def test_store_is_forwarded(self, store):
        """The module shortcut should use the given store."""
        from recursive_update.engine import bulk_recursive_update

        with patch.object(
            RecursiveUpdateSettings, "from_settings", return_value=RecursiveUpdateSettings()
        ):
            result = bulk_recursive_update({"roles": []}, {"roles": {}}, store=store)

        assert result == []
        store.atomic.assert_called_once_with()
