"""Diff engine comparing desired and actual instances.

Both Test and Set are backed by compute_diff, which guarantees that a Set
never mutates a unit that Test reports as in the desired state.

ALGORITHM:
1. Desired _exist=false: satisfied iff the unit is absent.
2. Unit absent but desired present: not satisfied, only _exist differs.
3. Otherwise every domain property the caller specified is compared with
   the property's comparison (exact, ordered or set), skipping read-only and
   write-only properties.
4. Set comparisons are additive (actual ⊇ desired) unless _purge is true,
   in which case actual must equal desired.

A desired value of None means "not managed" and always matches.

The module also exposes the helpers resource authors use to turn a diff
into minimal backend operations (membership_delta, mapping_delta) and to
project the state a Set would produce (project_value).
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel

from .instance import EXIST, Comparison, ResourceInstance
from .schema import PropertyDescriptor, resource_schema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiffResult:
    """Outcome of comparing a desired instance with the actual one.

    Attributes:
        satisfied: The unit already satisfies the desired state.
        changed_properties: Wire names of the properties that differ.
    """

    satisfied: bool
    changed_properties: frozenset[str] = field(default_factory=frozenset)

    @property
    def existence_changed(self) -> bool:
        return EXIST in self.changed_properties


@dataclass(frozen=True)
class MembershipDelta:
    """Minimal membership changes for a set-valued property."""

    to_add: list[Any] = field(default_factory=list)
    to_remove: list[Any] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.to_add and not self.to_remove


def plain(value: Any) -> Any:
    """Convert a property value to plain JSON-compatible data for comparison."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(k): plain(v) for k, v in value.items()}
    if isinstance(value, list | tuple | set | frozenset):
        return [plain(v) for v in value]
    return value


def _fold(value: Any, case_insensitive: bool) -> Any:
    """Case-fold strings (recursively) when the property is case-insensitive."""
    if not case_insensitive:
        return value
    if isinstance(value, str):
        return value.casefold()
    if isinstance(value, list):
        return [_fold(v, True) for v in value]
    if isinstance(value, dict):
        return {k.casefold(): _fold(v, True) for k, v in value.items()}
    return value


def _canonical(value: Any) -> str:
    """Render a plain value as canonical JSON text.

    Used for every equality check and as the set-member key, so JSON types
    stay distinct: `true` never equals `1`, nor `false` `0`.
    """
    return json.dumps(value, sort_keys=True, default=str)


def _as_members(value: Any, case_insensitive: bool) -> set[Any]:
    """Interpret a plain set-valued property as a set of members.

    Lists contribute their elements; mappings contribute (key, value) pairs.
    """
    if value is None:
        return set()
    folded = _fold(value, case_insensitive)
    if isinstance(folded, dict):
        return {(k, _canonical(v)) for k, v in folded.items()}
    if isinstance(folded, list):
        return {_canonical(v) for v in folded}
    return {_canonical(folded)}


def values_match(
    descriptor: PropertyDescriptor,
    desired: Any,
    actual: Any,
    *,
    purge: bool = False,
) -> bool:
    """Compare one desired property value with the actual value.

    Args:
        descriptor: The property's schema descriptor.
        desired: Desired value (None means not managed).
        actual: Actual value reported by the backend.
        purge: Exact-replace semantics for set comparisons.

    Returns:
        True if the actual value satisfies the desired one.
    """
    if desired is None:
        return True

    case_insensitive = descriptor.traits.case_insensitive
    wanted = plain(desired)
    current = plain(actual)

    match descriptor.comparison:
        case Comparison.SET:
            wanted_members = _as_members(wanted, case_insensitive)
            current_members = _as_members(current, case_insensitive)
            if purge:
                return wanted_members == current_members
            return wanted_members <= current_members
        case Comparison.ORDERED:
            if current is None:
                current = []
            return _canonical(_fold(wanted, case_insensitive)) == _canonical(
                _fold(current, case_insensitive)
            )
        case _:
            return _canonical(_fold(wanted, case_insensitive)) == _canonical(
                _fold(current, case_insensitive)
            )


def compute_diff(desired: ResourceInstance, actual: ResourceInstance) -> DiffResult:
    """Determine whether the actual instance satisfies the desired one.

    Args:
        desired: Caller-supplied (partial) desired state.
        actual: Backend-derived actual state of the same unit.

    Returns:
        The verdict and the wire names of differing properties.
    """
    if not desired.exist:
        if actual.exist:
            return DiffResult(satisfied=False, changed_properties=frozenset({EXIST}))
        return DiffResult(satisfied=True)

    if not actual.exist:
        return DiffResult(satisfied=False, changed_properties=frozenset({EXIST}))

    schema = resource_schema(type(desired))
    purge = desired.purge_requested
    changed: set[str] = set()

    for attribute in desired.specified():
        descriptor = schema.by_attribute(attribute)
        if not descriptor.comparable:
            continue
        if not values_match(
            descriptor, getattr(desired, attribute), getattr(actual, attribute), purge=purge
        ):
            changed.add(descriptor.name)

    if changed:
        logger.debug("Properties differ", extra={"changed": sorted(changed)})

    return DiffResult(satisfied=not changed, changed_properties=frozenset(changed))


def matches_filter(
    instance: ResourceInstance,
    criteria: Mapping[str, Any],
) -> bool:
    """Check whether an exported instance matches every filter criterion.

    Args:
        instance: An actual instance.
        criteria: Wire-named property values (already validated against the schema).

    Returns:
        True if every criterion is satisfied (additively for set properties).
    """
    schema = resource_schema(type(instance))
    for name, wanted in criteria.items():
        descriptor = schema.by_name(name)
        if name == EXIST:
            if bool(wanted) != instance.exist:
                return False
            continue
        if not descriptor.comparable:
            continue
        if not values_match(descriptor, wanted, getattr(instance, descriptor.attribute)):
            return False
    return True


def membership_delta(
    desired: Iterable[Any] | None,
    actual: Iterable[Any] | None,
    *,
    purge: bool,
    case_insensitive: bool = False,
) -> MembershipDelta:
    """Compute the minimal adds/removes that converge a member list.

    Members to add keep the caller's spelling, members to remove keep the
    backend's spelling. Nothing is removed unless purge is requested.

    Args:
        desired: Desired members (None means not managed).
        actual: Current members.
        purge: Remove members that are not desired.
        case_insensitive: Compare string members case-insensitively.

    Returns:
        The members to add and remove, in input order.
    """
    if desired is None:
        return MembershipDelta()

    def key(member: Any) -> Any:
        return _canonical(_fold(plain(member), case_insensitive))

    desired_list = list(desired)
    actual_list = list(actual or [])
    desired_keys = {key(m) for m in desired_list}
    actual_keys = {key(m) for m in actual_list}

    to_add: list[Any] = []
    seen: set[Any] = set()
    for member in desired_list:
        k = key(member)
        if k not in actual_keys and k not in seen:
            to_add.append(member)
            seen.add(k)

    to_remove = [m for m in actual_list if key(m) not in desired_keys] if purge else []
    return MembershipDelta(to_add=to_add, to_remove=to_remove)


def mapping_delta(
    desired: Mapping[str, Any] | None,
    actual: Mapping[str, Any] | None,
    *,
    purge: bool,
    case_insensitive: bool = False,
) -> tuple[dict[str, Any], list[str]]:
    """Compute the entries to write and the keys to remove for a mapping property.

    Args:
        desired: Desired entries (None means not managed).
        actual: Current entries.
        purge: Remove keys that are not desired.
        case_insensitive: Compare keys case-insensitively.

    Returns:
        Tuple of (entries_to_set, keys_to_remove). Removed keys keep the
        backend's spelling.
    """
    if desired is None:
        return {}, []

    current = dict(actual or {})

    def fold(k: str) -> str:
        return k.casefold() if case_insensitive else k

    current_by_key = {fold(k): (k, v) for k, v in current.items()}
    to_set: dict[str, Any] = {}
    for k, v in desired.items():
        existing = current_by_key.get(fold(k))
        if existing is None or _canonical(plain(existing[1])) != _canonical(plain(v)):
            to_set[k] = v

    to_remove: list[str] = []
    if purge:
        wanted = {fold(k) for k in desired}
        to_remove = [k for k in current if fold(k) not in wanted]

    return to_set, to_remove


def project_value(
    descriptor: PropertyDescriptor,
    desired: Any,
    actual: Any,
    *,
    purge: bool,
) -> Any:
    """Predict a property's value after a Set, without touching the backend."""
    if desired is None:
        return actual
    if descriptor.comparison is not Comparison.SET or purge:
        return desired

    case_insensitive = descriptor.traits.case_insensitive
    if isinstance(desired, Mapping):
        to_set, _ = mapping_delta(desired, actual, purge=False, case_insensitive=case_insensitive)
        return {**dict(actual or {}), **to_set}

    delta = membership_delta(desired, actual, purge=False, case_insensitive=case_insensitive)
    return [*list(actual or []), *delta.to_add]


def project(desired: ResourceInstance, actual: ResourceInstance) -> ResourceInstance:
    """Predict the actual instance a Set of `desired` would produce."""
    if not desired.exist:
        return desired.absent()

    schema = resource_schema(type(desired))
    base = actual if actual.exist else desired.absent()
    update: dict[str, Any] = {"exist": True}
    for attribute in desired.specified():
        descriptor = schema.by_attribute(attribute)
        if not descriptor.comparable:
            continue
        update[attribute] = project_value(
            descriptor,
            getattr(desired, attribute),
            getattr(base, attribute),
            purge=desired.purge_requested,
        )
    return base.model_copy(update=update)
