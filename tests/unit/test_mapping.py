"""
Unit tests for mapping normalization.
"""

import pytest

from recursive_update.engine.mapping import (
    CallableSpec,
    MappingEntry,
    MappingOptions,
    normalize_entry,
    normalize_mapping,
)
from recursive_update.exceptions import InvalidConfigurationError

pytestmark = pytest.mark.unit


def _double(value, factor):
    return value * factor


class TestNormalizeMapping:
    """Tests for the top level mapping contract."""

    def test_single_group_is_normalized(self):
        """A mapping with one group should become a MappingEntry tree."""
        entry = normalize_mapping(
            {
                "roles": {
                    "ones": {"organization": {}},
                    "manies": {"permissions": {"options": {"destructive": True}}},
                }
            }
        )

        assert entry.name == "roles"
        assert list(entry.ones) == ["organization"]
        assert entry.manies["permissions"].options.destructive is True
        assert entry.options == MappingOptions()

    @pytest.mark.parametrize("mapping", [{}, {"roles": {}, "permissions": {}}, ["roles"]])
    def test_requires_exactly_one_group(self, mapping):
        """Empty, multi-group and non-dict mappings should be rejected."""
        with pytest.raises(InvalidConfigurationError) as exc_info:
            normalize_mapping(mapping)

        assert str(exc_info.value) == "One and only one object group is allowed in the mapping!"

    def test_empty_node_mapping_is_allowed(self):
        """A group declared as None should have no children."""
        entry = normalize_mapping({"roles": None})

        assert entry.ones == {}
        assert entry.manies == {}

    def test_normalized_entry_is_returned_untouched(self):
        """Already normalized entries should pass through as is."""
        entry = MappingEntry(name="roles")

        assert normalize_mapping(entry) is entry
        assert normalize_entry("roles", entry) is entry

    def test_unknown_mapping_keys_are_rejected(self):
        """Keys other than options/ones/manies should raise."""
        with pytest.raises(InvalidConfigurationError) as exc_info:
            normalize_mapping({"roles": {"many": {}}})

        assert exc_info.value.node_name == "roles"
        assert "many" in str(exc_info.value)

    def test_unknown_options_are_rejected(self):
        """Misspelled options should raise."""
        with pytest.raises(InvalidConfigurationError):
            normalize_mapping({"roles": {"options": {"destroy": True}}})

    def test_key_declared_twice_is_rejected(self):
        """A key cannot be both a one-relation and a many-relation."""
        with pytest.raises(InvalidConfigurationError):
            normalize_mapping({"roles": {"ones": {"owner": {}}, "manies": {"owner": {}}}})

    def test_children_keep_declaration_order(self):
        """Children should be visited ones first, in declared order."""
        entry = normalize_mapping(
            {"roles": {"ones": {"b": {}, "a": {}}, "manies": {"d": {}, "c": {}}}}
        )

        assert [key for key, _child in entry.children] == ["b", "a", "d", "c"]


class TestMappingOptions:
    """Tests for option normalization."""

    def test_overrides_become_tuple(self):
        """Override lists should be stored as tuples."""
        entry = normalize_entry("line_items", {"options": {"overrides": ["currency"]}})

        assert entry.options.overrides == ("currency",)

    def test_overrides_must_be_a_list(self):
        """A bare string is not a valid overrides value."""
        with pytest.raises(InvalidConfigurationError):
            normalize_entry("line_items", {"options": {"overrides": "currency"}})

    def test_callable_with_extra_arguments(self):
        """Extra list items should be appended to the call arguments."""
        entry = normalize_entry("items", {"options": {"creator": [_double, 3]}})

        assert isinstance(entry.options.creator, CallableSpec)
        assert entry.options.creator(2) == 6

    def test_callable_from_dotted_path(self):
        """Dotted paths should be imported."""
        entry = normalize_entry(
            "line_items",
            {"options": {"collection_validator": "test_app.models.unique_descriptions"}},
        )

        from test_app.models import unique_descriptions

        assert entry.options.collection_validator.func is unique_descriptions
        assert entry.options.collection_validator.args == ()

    def test_unimportable_callable_is_rejected(self):
        """Missing dotted paths should raise."""
        with pytest.raises(InvalidConfigurationError):
            normalize_entry("items", {"options": {"creator": "test_app.models.missing"}})

    def test_non_callable_is_rejected(self):
        """Non callable targets should raise."""
        with pytest.raises(InvalidConfigurationError):
            normalize_entry("items", {"options": {"creator": [42]}})

    def test_model_from_label(self):
        """The class option should accept an app_label.Model string."""
        from test_app.models import Permission

        entry = normalize_entry("rights", {"options": {"class": "test_app.Permission"}})

        assert entry.options.model is Permission

    def test_unknown_model_label_is_rejected(self):
        """Unknown model labels should raise."""
        with pytest.raises(InvalidConfigurationError):
            normalize_entry("rights", {"options": {"class": "test_app.Missing"}})

    def test_class_and_model_are_exclusive(self):
        """class and model cannot be combined."""
        with pytest.raises(InvalidConfigurationError):
            normalize_entry(
                "rights",
                {"options": {"class": "test_app.Permission", "model": "test_app.Permission"}},
            )

    def test_parent_name_must_be_a_string(self):
        """parent_name must be a string."""
        with pytest.raises(InvalidConfigurationError):
            normalize_entry("addresses", {"options": {"parent_name": 1}})


class TestChildParentName:
    """Tests for the back reference name handed to children."""

    def test_defaults_to_singular_parent_name(self):
        """Children point back through the singular parent name."""
        entry = normalize_mapping({"line_items": {"manies": {"notes": {}}}})

        assert entry.child_parent_name(entry.manies["notes"]) == "line_item"

    def test_child_option_wins(self):
        """An explicit parent_name should take precedence."""
        entry = normalize_mapping(
            {"students": {"manies": {"addresses": {"options": {"parent_name": "individual"}}}}}
        )

        assert entry.child_parent_name(entry.manies["addresses"]) == "individual"
