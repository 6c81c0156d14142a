"""JSON value resource: one value inside a JSON document, addressed by a JSONPath.

Supported paths are the definite subset of JSONPath:

    $                   the document itself
    $.a.b               member access
    $['a b']            quoted member access
    $.items[0]          array index

Setting a value creates missing parent objects and arrays (arrays are padded
with nulls up to the index). The document keeps its layout style: indented
documents are rewritten indented, single-line documents stay compact.

Limitation: a desired `value` of null reads as "not managed", so null cannot
be enforced as a value.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from ..diff import DiffResult
from ..errors import FailureCategory, InvalidArgumentError, InvalidOperationError
from ..exit_codes import ExitCode, ExitCodeTable
from ..instance import ResourceField, ResourceInstance
from ..resource import Operation, Resource

logger = logging.getLogger(__name__)

JSON_PATH_PATTERN = r"^\$"

_SEGMENT = re.compile(r"\.([^.\[\]]+)|\[(\d+)\]|\[(['\"])(.*?)\3\]")

JSON_VALUE_EXIT_CODES = ExitCodeTable([
    ExitCode(0, "Success"),
    ExitCode(1, "Error", FailureCategory.GENERIC),
    ExitCode(2, "Invalid JSON", FailureCategory.MALFORMED_INPUT),
    ExitCode(3, "JSON file not found", FailureCategory.INVALID_OPERATION),
    ExitCode(4, "Invalid argument", FailureCategory.INVALID_ARGUMENT),
    ExitCode(5, "IO error", FailureCategory.IO_ERROR),
])

Segment = str | int


def parse_json_path(expression: str) -> list[Segment]:
    """Split a JSONPath into member names and array indexes.

    Raises:
        InvalidArgumentError: If the expression is not a supported JSONPath.
    """
    if not expression.startswith("$"):
        raise InvalidArgumentError(f"Invalid JSONPath (must start with '$'): {expression}")

    segments: list[Segment] = []
    pos = 1
    while pos < len(expression):
        match = _SEGMENT.match(expression, pos)
        if match is None:
            raise InvalidArgumentError(f"Invalid JSONPath syntax: {expression}")
        if match.group(1) is not None:
            segments.append(match.group(1))
        elif match.group(2) is not None:
            segments.append(int(match.group(2)))
        else:
            segments.append(match.group(4))
        pos = match.end()
    return segments


def lookup(document: Any, segments: list[Segment]) -> tuple[bool, Any]:
    """Find the value at a path.

    Returns:
        Tuple of (found, value).
    """
    current = document
    for segment in segments:
        if isinstance(segment, int):
            if not isinstance(current, list) or segment >= len(current):
                return False, None
        elif not isinstance(current, dict) or segment not in current:
            return False, None
        current = current[segment]
    return True, current


def _container_for(segment: Segment) -> Any:
    return [] if isinstance(segment, int) else {}


def assign(document: Any, segments: list[Segment], value: Any) -> Any:
    """Set the value at a path, creating missing parents.

    Returns:
        The updated document (a new root when the path is `$`).
    """
    if not segments:
        return value

    root = document if isinstance(document, dict | list) else _container_for(segments[0])
    current = root
    for segment, following in zip(segments, [*segments[1:], None], strict=True):
        if isinstance(segment, int):
            if not isinstance(current, list):
                raise InvalidArgumentError(f"Cannot index a non-array with [{segment}]")
            while len(current) <= segment:
                current.append(None)
        elif not isinstance(current, dict):
            raise InvalidArgumentError(f"Cannot access member '{segment}' of a non-object")

        if following is None:
            current[segment] = value
            break

        child = current[segment] if isinstance(segment, int) else current.get(segment)
        if not isinstance(child, dict | list):
            child = _container_for(following)
            current[segment] = child
        current = child

    return root


def remove(document: Any, segments: list[Segment]) -> bool:
    """Remove the value at a path.

    Returns:
        True if something was removed.
    """
    if not segments:
        raise InvalidOperationError("Cannot delete the document root '$'")

    found, parent = lookup(document, segments[:-1])
    if not found:
        return False

    last = segments[-1]
    if isinstance(last, int):
        if not isinstance(parent, list) or last >= len(parent):
            return False
    elif not isinstance(parent, dict) or last not in parent:
        return False

    del parent[last]
    return True


def _is_indented(text: str) -> bool:
    return "\n" in text.rstrip()


class JsonValueInstance(ResourceInstance):
    """Schema for managing JSON values at JSONPath locations."""

    model_config = {"title": "JSON Value"}

    path: str = ResourceField(key=True, description="The file path to the JSON document.")
    json_path: str = ResourceField(
        key=True,
        pattern=JSON_PATH_PATTERN,
        description=(
            "JSONPath expression locating the value (must start with '$'). "
            "Missing parents are created."
        ),
    )
    value: Any = ResourceField(
        None,
        description="The JSON value: string, number, boolean, object or array.",
    )


class JsonValueResource(Resource[JsonValueInstance]):
    type_name = "Converge.Json/Value"
    description = "Manage JSON values at JSONPath locations"
    tags = ("json", "value", "jsonpath")
    instance_model = JsonValueInstance
    capabilities = frozenset({Operation.GET, Operation.SET, Operation.TEST, Operation.DELETE})
    exit_codes = JSON_VALUE_EXIT_CODES

    def _load(self, path: Path) -> tuple[str, Any]:
        text = path.read_text(encoding="utf-8")
        return text, json.loads(text)

    def _save(self, path: Path, original: str, document: Any) -> None:
        if _is_indented(original):
            path.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")
        else:
            path.write_text(json.dumps(document, separators=(",", ":")), encoding="utf-8")

    def get(self, desired: JsonValueInstance) -> JsonValueInstance:
        segments = parse_json_path(desired.json_path)
        path = Path(desired.path)
        if not path.is_file():
            return desired.absent()

        _, document = self._load(path)
        found, value = lookup(document, segments)
        if not found:
            return desired.absent()
        return JsonValueInstance(path=desired.path, json_path=desired.json_path, value=value)

    def set(
        self, desired: JsonValueInstance, actual: JsonValueInstance, diff: DiffResult
    ) -> None:
        segments = parse_json_path(desired.json_path)
        path = Path(desired.path)
        if not path.is_file():
            raise InvalidOperationError(f"JSON file not found: {path}")

        original, document = self._load(path)
        document = assign(document, segments, desired.value)
        self._save(path, original, document)
        logger.info(
            "Set JSON value", extra={"path": str(path), "json_path": desired.json_path}
        )

    def delete(self, desired: JsonValueInstance) -> None:
        segments = parse_json_path(desired.json_path)
        path = Path(desired.path)
        if not path.is_file():
            return

        original, document = self._load(path)
        if remove(document, segments):
            self._save(path, original, document)
