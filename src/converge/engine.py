"""Convergence engine: uniform orchestration of the five operations.

The engine wraps one resource provider and owns everything that must behave
the same for every resource type:

- Get absorbs ResourceNotFoundError into an absent instance and strips
  write-only values.
- Set reads, diffs, and only calls the provider when the diff is not
  satisfied, then re-reads to report before/after.
- Test never mutates and always reports _inDesiredState.
- Delete is idempotent.
- Export is lazy and applies the optional filter.

Invoking an operation outside the provider's capabilities raises
UnsupportedOperationError before any backend call is made.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic

from .diff import DiffResult, matches_filter, project
from .errors import ResourceNotFoundError, UnsupportedOperationError
from .instance import RestartAwareInstance, RestartRequirement
from .resource import InstanceT, Operation, Resource

logger = logging.getLogger(__name__)


@dataclass
class SetResult(Generic[InstanceT]):
    """Report of a Set that changed (or, in what-if mode, would change) the unit.

    Attributes:
        before: Actual state read before the change.
        after: Actual state read after the change (projected under what-if).
        changed_properties: Wire names of the properties that differed.
        restart_required: Restart requirements returned by the provider.
        what_if: The report is a projection; nothing was mutated.
    """

    before: InstanceT
    after: InstanceT
    changed_properties: list[str] = field(default_factory=list)
    restart_required: list[RestartRequirement] = field(default_factory=list)
    what_if: bool = False


@dataclass
class TestResult(Generic[InstanceT]):
    """Actual state annotated with the test verdict."""

    __test__ = False

    actual: InstanceT
    diff: DiffResult

    @property
    def in_desired_state(self) -> bool:
        return self.diff.satisfied

    @property
    def changed_properties(self) -> list[str]:
        return sorted(self.diff.changed_properties)


class ConvergenceEngine(Generic[InstanceT]):
    """Runs the convergence operations against one resource provider."""

    def __init__(self, resource: Resource[InstanceT]) -> None:
        self._resource = resource

    @property
    def resource(self) -> Resource[InstanceT]:
        return self._resource

    @property
    def type_name(self) -> str:
        return self._resource.type_name

    def get(self, desired: InstanceT) -> InstanceT:
        """Read the actual state of the unit `desired` identifies.

        Args:
            desired: Instance carrying at least the identifying properties.

        Returns:
            The actual instance, or `desired.absent()` if the unit does not exist.
        """
        self._resource.require(Operation.GET)
        try:
            actual = self._resource.get(desired)
        except ResourceNotFoundError as e:
            logger.debug("Unit not found", extra={"type": self.type_name, "reason": str(e)})
            actual = desired.absent()
        return actual.scrubbed()

    def set(self, desired: InstanceT, *, what_if: bool = False) -> SetResult[InstanceT] | None:
        """Converge the unit to the desired state.

        Args:
            desired: Partial desired state.
            what_if: Report the projected change without mutating.

        Returns:
            The change report, or None when the unit already satisfied the
            desired state and nothing was done.
        """
        self._resource.require(Operation.SET)

        before = self.get(desired)
        diff = self._resource.test(desired, before)
        if diff.satisfied:
            logger.info("Already in desired state", extra={"type": self.type_name})
            return None

        changed = sorted(diff.changed_properties)

        if what_if:
            logger.info(
                "What-if: changes not applied",
                extra={"type": self.type_name, "changed": changed},
            )
            return SetResult(
                before=before,
                after=project(desired, before),
                changed_properties=changed,
                what_if=True,
            )

        restart: list[RestartRequirement] = []
        if not desired.exist:
            if not self._resource.supports(Operation.DELETE):
                raise UnsupportedOperationError(self.type_name, Operation.DELETE.value)
            logger.info("Removing unit", extra={"type": self.type_name})
            self._resource.delete(desired)
        else:
            logger.info("Applying changes", extra={"type": self.type_name, "changed": changed})
            restart = list(self._resource.set(desired, before, diff) or [])

        after = self.get(desired)
        if restart:
            if isinstance(after, RestartAwareInstance):
                after = after.with_restart(restart)
            else:
                logger.warning(
                    "Restart requirements not reportable by this instance model",
                    extra={"type": self.type_name, "systems": [r.system for r in restart]},
                )

        return SetResult(
            before=before,
            after=after,
            changed_properties=changed,
            restart_required=restart,
        )

    def test(self, desired: InstanceT) -> TestResult[InstanceT]:
        """Report whether the unit is in the desired state, without mutating.

        Args:
            desired: Partial desired state.

        Returns:
            The actual instance flagged with _inDesiredState, plus the diff.
        """
        self._resource.require(Operation.TEST)

        actual = self.get(desired)
        diff = self._resource.test(desired, actual)
        flagged = actual.model_copy(update={"in_desired_state": diff.satisfied})
        return TestResult(actual=flagged, diff=diff)

    def delete(self, desired: InstanceT) -> None:
        """Drive the unit's existence to false; an absent unit is success."""
        self._resource.require(Operation.DELETE)

        if self._resource.supports(Operation.GET):
            actual = self.get(desired)
            if not actual.exist:
                logger.info("Already absent", extra={"type": self.type_name})
                return

        try:
            self._resource.delete(desired)
        except ResourceNotFoundError:
            logger.info("Already absent", extra={"type": self.type_name})

    def export(self, filter: Mapping[str, Any] | None = None) -> Iterator[InstanceT]:
        """Enumerate every existing unit.

        The capability check happens immediately; enumeration itself is lazy
        and one-shot.

        Args:
            filter: Wire-named criteria every exported instance must satisfy.

        Returns:
            An iterator of full instances.
        """
        self._resource.require(Operation.EXPORT)
        return self._export(filter)

    def _export(self, filter: Mapping[str, Any] | None) -> Iterator[InstanceT]:
        match_results = bool(filter) and not self._resource.filters_export
        for instance in self._resource.export(filter):
            if match_results and not matches_filter(instance, filter):
                continue
            yield instance.scrubbed()
