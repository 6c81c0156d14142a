"""Instance payload loading with validation.

Payloads arrive on the command line, in a file or on stdin. JSON is the
native format; YAML is accepted as well since hand-written configurations
often use it.

SECURITY: Payload size is checked before parsing (and files are stat'ed
before they are read) so oversized input is rejected without being loaded.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, TypeVar

import yaml
from pydantic import ValidationError

from .config import DEFAULT_MAX_INPUT_BYTES
from .errors import MalformedInputError
from .instance import ResourceInstance
from .schema import resource_schema

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=ResourceInstance)


def format_validation_error(error: ValidationError) -> str:
    """Render a pydantic ValidationError as one `loc: msg` line per problem."""
    lines = []
    for item in error.errors():
        loc = ".".join(str(x) for x in item["loc"]) or "(root)"
        lines.append(f"  - {loc}: {item['msg']}")
    return "\n".join(lines)


def load_payload(text: str, max_bytes: int = DEFAULT_MAX_INPUT_BYTES) -> dict[str, Any]:
    """Parse a payload into a mapping.

    Args:
        text: JSON (or YAML) document.
        max_bytes: Maximum accepted size in bytes.

    Returns:
        The parsed mapping.

    Raises:
        MalformedInputError: If the payload is too large, unparseable or not a mapping.
    """
    size = len(text.encode("utf-8"))
    if size > max_bytes:
        raise MalformedInputError(f"Input exceeds maximum size of {max_bytes} bytes ({size})")

    stripped = text.strip()
    if not stripped:
        raise MalformedInputError("Input is empty")

    try:
        if stripped.startswith("{"):
            data = json.loads(stripped)
        else:
            data = yaml.safe_load(stripped)
    except json.JSONDecodeError as e:
        raise MalformedInputError(f"Invalid JSON input: {e}") from e
    except yaml.YAMLError as e:
        raise MalformedInputError(f"Invalid YAML input: {e}") from e

    if not isinstance(data, dict):
        raise MalformedInputError(f"Input must be a JSON object, got {type(data).__name__}")

    return data


def read_payload_file(path: Path, max_bytes: int = DEFAULT_MAX_INPUT_BYTES) -> str:
    """Read a payload file after checking its size.

    Raises:
        MalformedInputError: If the file is missing, unreadable or too large.
    """
    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise MalformedInputError(f"Failed to stat input file {path}: {e}") from e

    if file_size > max_bytes:
        raise MalformedInputError(
            f"Input file exceeds maximum size of {max_bytes} bytes: {path}"
        )

    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise MalformedInputError(f"Failed to read input file {path}: {e}") from e


def _reject_unknown(model: type[ResourceInstance], data: dict[str, Any], what: str) -> None:
    """Reject keys that are not wire names of the model's properties.

    Instance models also accept their Python attribute names so code can build
    them directly; payloads may only use the names the schema publishes.
    """
    schema = resource_schema(model)
    unknown = sorted(name for name in data if name not in schema)
    if unknown:
        raise MalformedInputError(
            f"Invalid {model.__name__} {what}:\n"
            + "\n".join(f"  - {name}: Extra inputs are not permitted" for name in unknown)
        )


def parse_instance(
    model: type[ModelT],
    text: str,
    max_bytes: int = DEFAULT_MAX_INPUT_BYTES,
) -> ModelT:
    """Parse and validate a desired-state instance.

    Args:
        model: The resource type's instance model.
        text: JSON (or YAML) payload.
        max_bytes: Maximum accepted size in bytes.

    Returns:
        The validated instance; its specified set is exactly the payload's keys.

    Raises:
        MalformedInputError: If parsing or validation fails.
    """
    data = load_payload(text, max_bytes)
    _reject_unknown(model, data, "input")
    try:
        instance = model.model_validate(data)
    except ValidationError as e:
        raise MalformedInputError(
            f"Invalid {model.__name__} input:\n{format_validation_error(e)}"
        ) from e

    logger.debug("Parsed input", extra={"model": model.__name__, "properties": sorted(data)})
    return instance


def parse_filter(
    model: type[ResourceInstance],
    text: str,
    max_bytes: int = DEFAULT_MAX_INPUT_BYTES,
) -> dict[str, Any]:
    """Parse an export filter.

    A filter is a partial instance: required properties may be omitted, but
    every key must be a property the schema declares.

    Returns:
        The wire-named filter criteria.

    Raises:
        MalformedInputError: If parsing fails or the filter names unknown properties.
    """
    data = load_payload(text, max_bytes)
    _reject_unknown(model, data, "filter")
    return data
