"""Schema descriptor for resource types.

Two views of the same declaration are produced, each built once per process:

- ResourceSchema: ordered property descriptors the engine consults while
  diffing and filtering.
- The schema document: a JSON Schema (draft 2020-12) published by the
  `schema` command and embedded in manifests.

Both are pure functions of the instance model.
"""

from __future__ import annotations

import copy
import functools
from dataclasses import dataclass
from typing import Any

from .config import JSON_SCHEMA_DIALECT
from .instance import CONTROL_FIELDS, Comparison, ResourceInstance, Traits, traits_of


@dataclass(frozen=True)
class PropertyDescriptor:
    """Declarative shape of one instance property.

    Attributes:
        name: Wire name (camelCase, or underscore-prefixed for control properties).
        attribute: Python attribute name on the instance model.
        semantic_type: JSON type name ("string", "array", "object", ...).
        required: Must be present in every payload.
        default: Declared default, None when there is none.
        pattern: Validation pattern for string properties.
        description: Human-readable description.
        traits: Engine traits (key, read/write-only, comparison).
        control: Engine-owned control property.
    """

    name: str
    attribute: str
    semantic_type: str
    required: bool
    default: Any
    pattern: str | None
    description: str | None
    traits: Traits
    control: bool

    @property
    def comparable(self) -> bool:
        """Whether the diff engine compares this property."""
        return not (self.control or self.traits.read_only or self.traits.write_only)

    @property
    def comparison(self) -> Comparison:
        return self.traits.comparison


class ResourceSchema:
    """Ordered, immutable property table of a resource type."""

    def __init__(self, model: type[ResourceInstance], properties: list[PropertyDescriptor]) -> None:
        self._model = model
        self._by_name = {p.name: p for p in properties}
        self._by_attribute = {p.attribute: p for p in properties}

    @property
    def model(self) -> type[ResourceInstance]:
        return self._model

    @property
    def properties(self) -> list[PropertyDescriptor]:
        """Get descriptors in declaration order."""
        return list(self._by_name.values())

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def by_name(self, name: str) -> PropertyDescriptor:
        """Look up a descriptor by wire name.

        Raises:
            KeyError: If the schema declares no such property.
        """
        return self._by_name[name]

    def by_attribute(self, attribute: str) -> PropertyDescriptor:
        """Look up a descriptor by Python attribute name."""
        return self._by_attribute[attribute]


def _strip_nullable(prop: dict[str, Any]) -> dict[str, Any]:
    """Collapse `anyOf: [X, null]` into X.

    Optional properties are omitted rather than sent as null on the wire, so
    the null branch only adds noise to the published schema.
    """
    branches = prop.get("anyOf")
    if not isinstance(branches, list) or len(branches) != 2:
        return prop

    non_null = [b for b in branches if b != {"type": "null"}]
    if len(non_null) != 1:
        return prop

    collapsed = {k: v for k, v in prop.items() if k != "anyOf"}
    for key, value in non_null[0].items():
        collapsed.setdefault(key, value)
    return collapsed


def _semantic_type(prop: dict[str, Any], definitions: dict[str, Any]) -> str:
    if "type" in prop:
        return str(prop["type"])
    if "$ref" in prop:
        target = definitions.get(prop["$ref"].rsplit("/", 1)[-1], {})
        return str(target.get("type", "object"))
    if "enum" in prop:
        return "string"
    return "any"


def _clean_property(prop: dict[str, Any]) -> dict[str, Any]:
    cleaned = _strip_nullable(prop)
    cleaned.pop("title", None)
    if "default" in cleaned and cleaned["default"] is None:
        del cleaned["default"]
    return cleaned


def _clean_definitions(definitions: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for name, definition in definitions.items():
        definition = dict(definition)
        props = definition.get("properties")
        if isinstance(props, dict):
            definition["properties"] = {k: _clean_property(v) for k, v in props.items()}
        result[name] = definition
    return result


@functools.cache
def _document(model: type[ResourceInstance]) -> dict[str, Any]:
    raw = model.model_json_schema(by_alias=True, mode="validation")

    properties = {
        name: _clean_property(prop) for name, prop in raw.get("properties", {}).items()
    }

    document: dict[str, Any] = {"$schema": JSON_SCHEMA_DIALECT}
    document["title"] = raw.get("title", model.__name__)
    if raw.get("description"):
        document["description"] = raw["description"]
    document["type"] = "object"
    document["required"] = list(raw.get("required", []))
    document["properties"] = properties
    document["additionalProperties"] = False
    if raw.get("$defs"):
        document["$defs"] = _clean_definitions(raw["$defs"])
    return document


def describe(model: type[ResourceInstance]) -> dict[str, Any]:
    """Produce the JSON schema document of a resource type's instances.

    Args:
        model: The resource type's instance model.

    Returns:
        A JSON-Schema-shaped mapping; callers receive their own copy.
    """
    return copy.deepcopy(_document(model))


@functools.cache
def resource_schema(model: type[ResourceInstance]) -> ResourceSchema:
    """Build the property table of a resource type.

    Args:
        model: The resource type's instance model.

    Returns:
        The cached ResourceSchema for the model.
    """
    document = _document(model)
    required = set(document["required"])
    descriptors: list[PropertyDescriptor] = []

    for attribute, field_info in model.model_fields.items():
        name = field_info.alias or attribute
        prop = document["properties"].get(name, {})
        descriptors.append(
            PropertyDescriptor(
                name=name,
                attribute=attribute,
                semantic_type=_semantic_type(prop, document.get("$defs", {})),
                required=name in required,
                default=prop.get("default"),
                pattern=prop.get("pattern"),
                description=field_info.description,
                traits=traits_of(model, attribute),
                control=attribute in CONTROL_FIELDS,
            )
        )

    return ResourceSchema(model, descriptors)
