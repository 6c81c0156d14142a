"""Tests for the resource registry."""

import pytest

from converge.errors import InvalidArgumentError
from converge.registry import ResourceRegistry
from resource_mock import GroupResource, LookupGroupResource, ReadOnlyGroupResource


class TestResourceRegistry:
    """Tests for ResourceRegistry."""

    def test_single_type_resolves_without_name(self) -> None:
        """Test that a single-type executable needs no --resource."""
        registry = ResourceRegistry([GroupResource])

        assert registry.multi is False
        assert registry.resolve(None) is GroupResource

    def test_lookup_is_case_insensitive(self) -> None:
        """Test resolving a type name in another case."""
        registry = ResourceRegistry([GroupResource, ReadOnlyGroupResource])

        assert registry.resolve("test/readonlygroup") is ReadOnlyGroupResource
        assert "TEST/GROUP" in registry

    def test_multi_requires_name(self) -> None:
        """Test that several types require an explicit name."""
        registry = ResourceRegistry([GroupResource, LookupGroupResource])

        assert registry.multi is True
        with pytest.raises(InvalidArgumentError) as exc_info:
            registry.resolve(None)

        assert "Test/Group" in str(exc_info.value)
        assert "Test/LookupGroup" in str(exc_info.value)

    def test_unknown_type(self) -> None:
        """Test that an unknown type lists the available ones."""
        registry = ResourceRegistry([GroupResource])

        with pytest.raises(InvalidArgumentError, match="Unknown resource type 'Test/Missing'"):
            registry.resolve("Test/Missing")

    def test_duplicate_registration(self) -> None:
        """Test that a type can only be registered once."""
        registry = ResourceRegistry([GroupResource])

        with pytest.raises(ValueError, match="already registered"):
            registry.register(GroupResource)

    def test_iteration_order(self) -> None:
        """Test that registration order is preserved."""
        registry = ResourceRegistry()
        registry.register(ReadOnlyGroupResource)
        registry.register(GroupResource)

        assert list(registry) == [ReadOnlyGroupResource, GroupResource]
        assert registry.type_names == ["Test/ReadOnlyGroup", "Test/Group"]
        assert len(registry) == 2
