"""Pydantic models for resource instances.

An instance is one value of a resource type's schema: partial when it
describes desired state, full when it describes actual state.

PROPERTY MODEL:
- Domain properties are the fields a resource's instance model declares.
  Their wire names are camelCase.
- Control properties are explicit fields owned by the engine (exist, purge,
  in_desired_state, metadata). Their wire names carry a leading underscore,
  which is the only place the prefix convention exists.
- Per-property traits (key, read-only, write-only, comparison) are declared
  with ResourceField and travel on the field's json_schema_extra, so the
  same declaration drives schema output and diffing.

Unknown properties are rejected at parse time (extra="forbid").
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Wire names of the control properties
EXIST = "_exist"
PURGE = "_purge"
IN_DESIRED_STATE = "_inDesiredState"
METADATA = "_metadata"
RESTART_REQUIRED = "_restartRequired"

# Attribute names of the control properties
CONTROL_FIELDS = frozenset({"exist", "purge", "in_desired_state", "metadata"})


class Comparison(str, Enum):
    """How a desired property value is compared with the actual one."""

    # Plain equality
    EXACT = "exact"

    # Sequences compared element by element, order significant
    ORDERED = "ordered"

    # Lists or mappings compared as unordered sets (honors _purge)
    SET = "set"


@dataclass(frozen=True)
class Traits:
    """Engine-level traits of one property.

    Instances are installed as the field's json_schema_extra; pydantic calls
    them while generating the JSON schema, which is how readOnly/writeOnly
    reach the schema document.

    Attributes:
        key: Identifies the unit; echoed back when the unit is absent.
        read_only: Reported by the backend, never compared or applied.
        write_only: Accepted on input, never reported (e.g. passwords).
        comparison: Equality semantics used by the diff engine.
        case_insensitive: Compare strings (and mapping keys) case-insensitively.
    """

    key: bool = False
    read_only: bool = False
    write_only: bool = False
    comparison: Comparison = Comparison.EXACT
    case_insensitive: bool = False

    def __call__(self, schema: dict[str, Any]) -> None:
        if self.read_only:
            schema["readOnly"] = True
        if self.write_only:
            schema["writeOnly"] = True


DEFAULT_TRAITS = Traits()


def ResourceField(  # noqa: N802 - mirrors pydantic.Field
    default: Any = ...,
    *,
    alias: str | None = None,
    description: str | None = None,
    pattern: str | None = None,
    key: bool = False,
    read_only: bool = False,
    write_only: bool = False,
    comparison: Comparison = Comparison.EXACT,
    case_insensitive: bool = False,
    **kwargs: Any,
) -> Any:
    """Declare an instance property with its engine traits.

    Example:
        class GroupInstance(PurgeableInstance):
            group_name: str = ResourceField(key=True, case_insensitive=True)
            members: list[str] | None = ResourceField(
                None, comparison=Comparison.SET, case_insensitive=True
            )
    """
    if read_only and write_only:
        raise ValueError("A property cannot be both read-only and write-only")

    traits = Traits(
        key=key,
        read_only=read_only,
        write_only=write_only,
        comparison=comparison,
        case_insensitive=case_insensitive,
    )
    return Field(
        default,
        alias=alias,
        description=description,
        pattern=pattern,
        json_schema_extra=traits,
        **kwargs,
    )


def traits_of(model: type[BaseModel], attribute: str) -> Traits:
    """Get the traits declared for a model field."""
    extra = model.model_fields[attribute].json_schema_extra
    return extra if isinstance(extra, Traits) else DEFAULT_TRAITS


class RestartRequirement(BaseModel):
    """A system that must restart before a change takes effect."""

    model_config = ConfigDict(extra="forbid")

    system: str = ResourceField(read_only=True, description="Name of the system to restart.")


class ResourceMetadata(BaseModel):
    """Read-only metadata emitted by Set."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    restart_required: list[RestartRequirement] | None = ResourceField(
        None,
        alias=RESTART_REQUIRED,
        read_only=True,
        description="Systems that must restart for the change to take effect.",
    )


class ResourceInstance(BaseModel):
    """Base model for every resource type's instances.

    Subclasses declare domain properties with ResourceField. The engine only
    relies on the control fields declared here and on the mixins below.
    """

    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    exist: bool = ResourceField(
        True,
        alias=EXIST,
        description="Indicates whether the instance should exist.",
    )
    in_desired_state: bool | None = ResourceField(
        None,
        alias=IN_DESIRED_STATE,
        read_only=True,
        description="Reported by test: whether the instance is in the desired state.",
    )

    @classmethod
    def domain_fields(cls) -> list[str]:
        """Get domain property attribute names in declaration order."""
        return [name for name in cls.model_fields if name not in CONTROL_FIELDS]

    @classmethod
    def key_fields(cls) -> list[str]:
        """Get the attribute names of identifying properties."""
        return [name for name in cls.domain_fields() if traits_of(cls, name).key]

    @classmethod
    def write_only_fields(cls) -> set[str]:
        """Get the attribute names that must never be reported."""
        return {name for name in cls.model_fields if traits_of(cls, name).write_only}

    @property
    def purge_requested(self) -> bool:
        """Whether set-valued properties must match exactly."""
        return bool(getattr(self, "purge", False))

    def specified(self) -> list[str]:
        """Get domain properties the caller explicitly provided, in declaration order."""
        return [name for name in self.domain_fields() if name in self.model_fields_set]

    def identity(self) -> dict[str, Any]:
        """Get identifying property values keyed by attribute name."""
        return {name: getattr(self, name) for name in self.key_fields()}

    def absent(self) -> Self:
        """Build the actual-state instance reported for a unit that does not exist."""
        return type(self).model_validate({**self.identity(), "exist": False})

    def scrubbed(self) -> Self:
        """Copy without write-only values or request-only control fields."""
        update: dict[str, Any] = {name: None for name in self.write_only_fields()}
        if "purge" in type(self).model_fields:
            update["purge"] = False
        if not update:
            return self.model_copy()
        return self.model_copy(update=update)

    def to_wire(self) -> dict[str, Any]:
        """Dump as the JSON-ready wire mapping (aliases, no nulls, no write-only)."""
        return self.model_dump(
            mode="json",
            by_alias=True,
            exclude_none=True,
            exclude=self.write_only_fields(),
        )

    def to_json(self) -> str:
        """Dump as a single-line JSON document."""
        return self.model_dump_json(
            by_alias=True,
            exclude_none=True,
            exclude=self.write_only_fields(),
        )


class PurgeableInstance(ResourceInstance):
    """Instance model whose set-valued properties honor _purge."""

    purge: bool = ResourceField(
        False,
        alias=PURGE,
        write_only=True,
        description=(
            "When true, set-valued properties must match exactly and extra members "
            "are removed. When false, listed members are added and others are kept."
        ),
    )


class RestartAwareInstance(ResourceInstance):
    """Instance model whose Set may report restart requirements."""

    metadata: ResourceMetadata | None = ResourceField(
        None,
        alias=METADATA,
        read_only=True,
        description="Metadata about the operation, including restart requirements.",
    )

    def with_restart(self, requirements: list[RestartRequirement]) -> Self:
        """Copy with restart requirements attached."""
        return self.model_copy(
            update={"metadata": ResourceMetadata(restart_required=list(requirements))}
        )
