"""Tests for payload loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from converge.errors import MalformedInputError
from converge.payload import load_payload, parse_filter, parse_instance, read_payload_file
from resource_mock import GroupInstance


class TestLoadPayload:
    """Tests for load_payload."""

    def test_json(self) -> None:
        """Test parsing a JSON object."""
        assert load_payload('{"groupName": "X", "members": ["a"]}') == {
            "groupName": "X",
            "members": ["a"],
        }

    def test_yaml(self) -> None:
        """Test parsing a YAML mapping."""
        assert load_payload("groupName: X\nmembers:\n  - a\n") == {
            "groupName": "X",
            "members": ["a"],
        }

    def test_invalid_json(self) -> None:
        """Test that broken JSON is malformed input."""
        with pytest.raises(MalformedInputError, match="Invalid JSON"):
            load_payload('{"groupName": ')

    def test_invalid_yaml(self) -> None:
        """Test that broken YAML is malformed input."""
        with pytest.raises(MalformedInputError, match="Invalid YAML"):
            load_payload("groupName: [X")

    @pytest.mark.parametrize("text", ["[1, 2]", "just text", "42"])
    def test_non_mapping(self, text: str) -> None:
        """Test that only mappings are accepted."""
        with pytest.raises(MalformedInputError, match="must be a JSON object"):
            load_payload(text)

    def test_empty(self) -> None:
        """Test that empty input is rejected."""
        with pytest.raises(MalformedInputError, match="empty"):
            load_payload("   \n")

    def test_size_limit(self) -> None:
        """Test that oversized payloads are rejected before parsing."""
        with pytest.raises(MalformedInputError, match="maximum size"):
            load_payload('{"groupName": "' + "x" * 100 + '"}', max_bytes=50)


class TestReadPayloadFile:
    """Tests for read_payload_file."""

    def test_reads_file(self, tmp_path: Path) -> None:
        """Test reading a payload file."""
        path = tmp_path / "desired.json"
        path.write_text('{"groupName": "X"}', encoding="utf-8")

        assert read_payload_file(path) == '{"groupName": "X"}'

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing file is malformed input."""
        with pytest.raises(MalformedInputError, match="Failed to stat"):
            read_payload_file(tmp_path / "missing.json")

    def test_oversized_file(self, tmp_path: Path) -> None:
        """Test that the size check happens before reading."""
        path = tmp_path / "big.json"
        path.write_text("x" * 200, encoding="utf-8")

        with pytest.raises(MalformedInputError, match="exceeds maximum size"):
            read_payload_file(path, max_bytes=100)


class TestParseInstance:
    """Tests for parse_instance."""

    def test_valid(self) -> None:
        """Test parsing a desired-state instance."""
        instance = parse_instance(GroupInstance, '{"groupName": "X", "_purge": true}')

        assert instance.group_name == "X"
        assert instance.purge is True

    def test_unknown_property(self) -> None:
        """Test that unknown properties are listed per field."""
        with pytest.raises(MalformedInputError) as exc_info:
            parse_instance(GroupInstance, '{"groupName": "X", "colour": "blue"}')

        assert "  - colour: Extra inputs are not permitted" in str(exc_info.value)

    def test_missing_required(self) -> None:
        """Test that missing required properties are reported."""
        with pytest.raises(MalformedInputError, match="groupName"):
            parse_instance(GroupInstance, '{"members": []}')

    def test_attribute_names_rejected(self) -> None:
        """Test that Python attribute names are not accepted as payload keys."""
        with pytest.raises(MalformedInputError) as exc_info:
            parse_instance(GroupInstance, '{"group_name": "X", "exist": false}')

        message = str(exc_info.value)
        assert "  - exist: Extra inputs are not permitted" in message
        assert "  - group_name: Extra inputs are not permitted" in message


class TestParseFilter:
    """Tests for parse_filter."""

    def test_partial_filter(self) -> None:
        """Test that required properties may be omitted from a filter."""
        assert parse_filter(GroupInstance, '{"members": ["a"]}') == {"members": ["a"]}

    def test_unknown_filter_property(self) -> None:
        """Test that unknown filter properties are rejected."""
        with pytest.raises(MalformedInputError, match="colour"):
            parse_filter(GroupInstance, '{"colour": "blue"}')
