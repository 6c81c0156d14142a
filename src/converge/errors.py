"""Failure taxonomy shared by the engine and resource providers.

Every failure the engine knows how to categorize is a ConvergeError carrying
a FailureCategory. Providers raise these (or plain Python exceptions, which
are classified by the exit code mapper) and never catch them to hide a
backend failure.
"""

from __future__ import annotations

from enum import Enum


class FailureCategory(str, Enum):
    """Kinds of failure an operation can end with."""

    GENERIC = "generic"

    # Payload failed to parse or failed schema validation
    MALFORMED_INPUT = "malformed_input"

    # Well-formed but semantically meaningless (unknown enumerator, bad path)
    INVALID_ARGUMENT = "invalid_argument"

    # Backend authorization rejection
    PERMISSION_DENIED = "permission_denied"

    # Backend precondition violated (e.g. deleting a protected built-in unit)
    INVALID_OPERATION = "invalid_operation"

    # Operation outside the resource's declared capabilities
    UNSUPPORTED_OPERATION = "unsupported_operation"

    # Backend read or write failure not covered by a more specific category
    IO_ERROR = "io_error"


class ConvergeError(Exception):
    """Base class for categorized failures."""

    category: FailureCategory = FailureCategory.GENERIC


class MalformedInputError(ConvergeError):
    """Raised when an input payload cannot be parsed or validated."""

    category = FailureCategory.MALFORMED_INPUT


class InvalidArgumentError(ConvergeError):
    """Raised when a well-formed value is semantically invalid."""

    category = FailureCategory.INVALID_ARGUMENT


class PermissionDeniedError(ConvergeError):
    """Raised when the backend rejects the caller's authorization."""

    category = FailureCategory.PERMISSION_DENIED


class InvalidOperationError(ConvergeError):
    """Raised when a backend precondition is violated."""

    category = FailureCategory.INVALID_OPERATION


class UnsupportedOperationError(ConvergeError):
    """Raised when an operation is invoked that the resource does not declare."""

    category = FailureCategory.UNSUPPORTED_OPERATION

    def __init__(self, resource_type: str, operation: str) -> None:
        self.resource_type = resource_type
        self.operation = operation
        super().__init__(f"Resource '{resource_type}' does not support the {operation} operation")


class ResourceNotFoundError(ConvergeError):
    """Raised by a provider when the addressed unit does not exist.

    Only Get converts this into an absent instance; everywhere else it is an
    invalid operation.
    """

    category = FailureCategory.INVALID_OPERATION
