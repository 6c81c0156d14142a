"""Resource contract implemented by providers.

A provider subclasses Resource, points `instance_model` at its pydantic
instance model, declares the operations it supports in `capabilities` and
overrides the matching slots. The engine (converge.engine) owns the
orchestration around those slots; providers only talk to their backend.

Example:
    class FileResource(Resource[FileInstance]):
        type_name = "Converge.FileSystem/File"
        instance_model = FileInstance
        capabilities = frozenset({Operation.GET, Operation.SET, Operation.DELETE})

        def get(self, desired: FileInstance) -> FileInstance: ...
        def set(self, desired, actual, diff) -> None: ...
        def delete(self, desired: FileInstance) -> None: ...
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any, ClassVar, Generic, TypeVar

from .config import VALID_RESOURCE_TYPE_PATTERN, VALID_VERSION_PATTERN
from .diff import DiffResult, compute_diff
from .errors import UnsupportedOperationError
from .exit_codes import DEFAULT_EXIT_CODES, ExitCodeTable
from .instance import ResourceInstance, RestartRequirement

InstanceT = TypeVar("InstanceT", bound=ResourceInstance)


class Operation(str, Enum):
    """The uniform operations of the resource contract."""

    GET = "get"
    SET = "set"
    TEST = "test"
    DELETE = "delete"
    EXPORT = "export"


class SetReturn(str, Enum):
    """What Set writes to stdout, published in the manifest."""

    # Nothing is written; the host re-reads the unit itself
    NONE = "none"
    STATE = "state"
    STATE_AND_DIFF = "stateAndDiff"


class TestReturn(str, Enum):
    """What Test writes to stdout, published in the manifest."""

    __test__ = False

    STATE = "state"
    STATE_AND_DIFF = "stateAndDiff"


class Resource(Generic[InstanceT]):
    """Base class for resource providers.

    Class Attributes:
        type_name: Stable type name, `<owner>[.<group>][.<area>]/<name>`.
        version: Semantic version of the resource type.
        description: Human-readable description for the manifest.
        tags: Free-form tags for the manifest.
        instance_model: Pydantic model of the type's instances.
        capabilities: Supported operations.
        exit_codes: Exit code table used when an operation fails.
        set_return: Output shape of Set.
        test_return: Output shape of Test.
        filters_export: The export slot interprets the filter itself; the
            engine does not match exported instances against it.
    """

    type_name: ClassVar[str]
    version: ClassVar[str] = "0.1.0"
    description: ClassVar[str | None] = None
    tags: ClassVar[tuple[str, ...]] = ()
    instance_model: ClassVar[type[ResourceInstance]]
    capabilities: ClassVar[frozenset[Operation]] = frozenset({Operation.GET})
    exit_codes: ClassVar[ExitCodeTable] = DEFAULT_EXIT_CODES
    set_return: ClassVar[SetReturn] = SetReturn.STATE_AND_DIFF
    test_return: ClassVar[TestReturn] = TestReturn.STATE
    filters_export: ClassVar[bool] = False

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        # Intermediate abstract bases do not name a type
        if "type_name" not in cls.__dict__:
            return

        errors: list[str] = []
        if not re.match(VALID_RESOURCE_TYPE_PATTERN, cls.type_name):
            errors.append(f"invalid type name: {cls.type_name!r}")
        if not re.match(VALID_VERSION_PATTERN, cls.version):
            errors.append(f"invalid version: {cls.version!r}")
        if not isinstance(getattr(cls, "instance_model", None), type) or not issubclass(
            cls.instance_model, ResourceInstance
        ):
            errors.append("instance_model must be a ResourceInstance subclass")

        needs_get = {Operation.SET, Operation.TEST} & cls.capabilities
        if needs_get and Operation.GET not in cls.capabilities:
            names = sorted(op.value for op in needs_get)
            errors.append(f"{', '.join(names)} require the get operation")

        if errors:
            raise TypeError(f"Resource {cls.__name__}: " + "; ".join(errors))

    @classmethod
    def supports(cls, operation: Operation) -> bool:
        return operation in cls.capabilities

    @classmethod
    def require(cls, operation: Operation) -> None:
        """Raise UnsupportedOperationError unless the operation is declared."""
        if operation not in cls.capabilities:
            raise UnsupportedOperationError(cls.type_name, operation.value)

    # =========================================================================
    # Provider slots
    # =========================================================================

    def get(self, desired: InstanceT) -> InstanceT:
        """Read the actual state of the unit the desired instance identifies.

        Return `desired.absent()` (or raise ResourceNotFoundError) when the
        unit does not exist. Must not mutate anything.
        """
        raise UnsupportedOperationError(self.type_name, Operation.GET.value)

    def set(
        self,
        desired: InstanceT,
        actual: InstanceT,
        diff: DiffResult,
    ) -> list[RestartRequirement] | None:
        """Apply the minimal backend operations converging actual to desired.

        Only called when the diff is not satisfied and desired existence is
        true; creating the unit is this slot's job when actual is absent.

        Returns:
            Systems that must restart for the change to take effect, if any.
        """
        raise UnsupportedOperationError(self.type_name, Operation.SET.value)

    def test(self, desired: InstanceT, actual: InstanceT) -> DiffResult:
        """Compare desired with actual state."""
        return compute_diff(desired, actual)

    def delete(self, desired: InstanceT) -> None:
        """Remove the unit the desired instance identifies."""
        raise UnsupportedOperationError(self.type_name, Operation.DELETE.value)

    def export(self, filter: Mapping[str, Any] | None = None) -> Iterable[InstanceT]:
        """Enumerate every existing unit as a full instance.

        Args:
            filter: Wire-named criteria. Providers may use them to narrow the
                enumeration; unless `filters_export` is set the engine also
                matches every result against them.
        """
        raise UnsupportedOperationError(self.type_name, Operation.EXPORT.value)
