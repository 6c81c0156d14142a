"""Tests for instance models and control properties."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from converge.instance import (
    Comparison,
    ResourceField,
    ResourceInstance,
    RestartRequirement,
    Traits,
    traits_of,
)
from resource_mock import GroupInstance


class TestWireFormat:
    """Tests for the wire representation."""

    def test_control_properties_use_underscore_aliases(self) -> None:
        """Test that control properties parse from their underscore names."""
        instance = GroupInstance.model_validate(
            {"groupName": "X", "_exist": False, "_purge": True}
        )

        assert instance.exist is False
        assert instance.purge is True
        assert instance.purge_requested is True

    def test_domain_properties_are_camel_case(self) -> None:
        """Test camelCase wire names for domain properties."""
        instance = GroupInstance(group_name="X", members=["a"])

        assert instance.to_wire() == {"groupName": "X", "_exist": True, "members": ["a"]}

    def test_unknown_property_rejected(self) -> None:
        """Test that unknown properties fail validation."""
        with pytest.raises(ValidationError):
            GroupInstance.model_validate({"groupName": "X", "colour": "blue"})

    def test_pattern_enforced(self) -> None:
        """Test that declared patterns validate input."""
        with pytest.raises(ValidationError):
            GroupInstance.model_validate({"groupName": "bad/name"})

    def test_write_only_never_serialized(self) -> None:
        """Test that write-only values are excluded from output."""
        instance = GroupInstance(group_name="X", password="secret", purge=True)

        assert "password" not in instance.to_wire()
        assert "_purge" not in instance.to_wire()
        assert "secret" not in instance.to_json()

    def test_to_json_is_single_line(self) -> None:
        """Test compact single-line JSON output."""
        assert "\n" not in GroupInstance(group_name="X", members=["a", "b"]).to_json()


class TestSpecifiedSet:
    """Tests for tracking which properties the caller provided."""

    def test_specified_follows_input_keys(self) -> None:
        """Test that only provided domain properties are specified."""
        instance = GroupInstance.model_validate(
            {"groupName": "X", "members": [], "_purge": True}
        )

        assert instance.specified() == ["group_name", "members"]

    def test_defaults_are_not_specified(self) -> None:
        """Test that defaults never count as specified."""
        assert GroupInstance(group_name="X").specified() == ["group_name"]


class TestHelpers:
    """Tests for identity, absent and scrubbed."""

    def test_identity(self) -> None:
        """Test that identity holds only key properties."""
        instance = GroupInstance(group_name="X", members=["a"])

        assert GroupInstance.key_fields() == ["group_name"]
        assert instance.identity() == {"group_name": "X"}

    def test_absent(self) -> None:
        """Test the absent instance shape."""
        absent = GroupInstance(group_name="X", members=["a"], description="d").absent()

        assert absent.exist is False
        assert absent.members is None
        assert absent.to_wire() == {"groupName": "X", "_exist": False}

    def test_scrubbed(self) -> None:
        """Test that scrubbing clears write-only values and purge."""
        scrubbed = GroupInstance(group_name="X", password="p", purge=True).scrubbed()

        assert scrubbed.password is None
        assert scrubbed.purge is False

    def test_restart_metadata(self) -> None:
        """Test the _metadata._restartRequired wire shape."""
        instance = GroupInstance(group_name="X").with_restart(
            [RestartRequirement(system="host-a")]
        )

        assert instance.to_wire()["_metadata"] == {"_restartRequired": [{"system": "host-a"}]}


class TestResourceField:
    """Tests for ResourceField traits."""

    def test_traits_recorded(self) -> None:
        """Test that traits are available from the model field."""
        traits = traits_of(GroupInstance, "members")

        assert traits.comparison == Comparison.SET
        assert traits.case_insensitive is True
        assert traits.key is False

    def test_default_traits(self) -> None:
        """Test that properties declared without traits get the defaults."""
        assert traits_of(GroupInstance, "description") == Traits()

    def test_read_and_write_only_conflict(self) -> None:
        """Test that a property cannot be both read-only and write-only."""
        with pytest.raises(ValueError, match="both"):

            class Broken(ResourceInstance):
                value: str | None = ResourceField(None, read_only=True, write_only=True)
