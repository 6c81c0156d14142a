"""Exit code mapping for failed operations.

A resource type declares a static, ordered table of exit codes. When an
operation fails, the exception is classified into a FailureCategory and the
first table entry declaring that category supplies the process exit code.
Unmatched categories fall back to the table's generic entry.

CLASSIFICATION:
The exception's class hierarchy is walked from the most specific class to
the most general one, and the first class found in the classification map
decides. This means a pydantic ValidationError (a ValueError subclass) is
malformed input, while a bare ValueError is an invalid argument.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

import yaml
from pydantic import ValidationError

from .errors import ConvergeError, FailureCategory

logger = logging.getLogger(__name__)

SUCCESS_EXIT_CODE = 0

# Exit code used when a table cannot be consulted at all
FALLBACK_EXIT_CODE = 1

# Looked up along the exception's MRO, so declaration order is irrelevant
EXCEPTION_CATEGORIES: dict[type[BaseException], FailureCategory] = {
    ValidationError: FailureCategory.MALFORMED_INPUT,
    json.JSONDecodeError: FailureCategory.MALFORMED_INPUT,
    yaml.YAMLError: FailureCategory.MALFORMED_INPUT,
    UnicodeDecodeError: FailureCategory.MALFORMED_INPUT,
    PermissionError: FailureCategory.PERMISSION_DENIED,
    OSError: FailureCategory.IO_ERROR,
    ValueError: FailureCategory.INVALID_ARGUMENT,
    LookupError: FailureCategory.INVALID_ARGUMENT,
}


def classify(error: BaseException) -> FailureCategory:
    """Determine the failure category of an exception.

    Args:
        error: The exception raised by an operation.

    Returns:
        The category of the closest matching class in the exception's MRO.
    """
    if isinstance(error, ConvergeError):
        return error.category

    for klass in type(error).__mro__:
        category = EXCEPTION_CATEGORIES.get(klass)
        if category is not None:
            return category

    return FailureCategory.GENERIC


@dataclass(frozen=True)
class ExitCode:
    """One row of an exit code table.

    Attributes:
        code: Process exit code.
        description: Human-readable meaning, published in the manifest.
        category: Failure category mapped to this code (None for success).
    """

    code: int
    description: str
    category: FailureCategory | None = None


class ExitCodeTable:
    """Ordered exit code declarations for a resource type."""

    def __init__(self, entries: list[ExitCode]) -> None:
        """Initialize and validate a table.

        Args:
            entries: Table rows in declaration order.

        Raises:
            ValueError: If codes repeat or the success/generic rows are missing.
        """
        codes = [entry.code for entry in entries]
        if len(codes) != len(set(codes)):
            raise ValueError(f"Exit codes must be unique: {codes}")

        success = [e for e in entries if e.code == SUCCESS_EXIT_CODE]
        if not success or success[0].category is not None:
            raise ValueError("Exit code table must declare code 0 as success without a category")

        if not any(e.category == FailureCategory.GENERIC for e in entries):
            raise ValueError("Exit code table must declare a generic failure code")

        self._entries = tuple(entries)

    @property
    def entries(self) -> tuple[ExitCode, ...]:
        """Get the table rows in declaration order."""
        return self._entries

    @property
    def generic(self) -> ExitCode:
        """Get the first generic failure row."""
        return next(e for e in self._entries if e.category == FailureCategory.GENERIC)

    def for_category(self, category: FailureCategory) -> ExitCode:
        """Get the first row declaring a category, defaulting to generic."""
        for entry in self._entries:
            if entry.category == category:
                return entry
        return self.generic

    def resolve(self, error: BaseException) -> ExitCode:
        """Map an exception to its exit code row.

        Args:
            error: The exception raised by an operation.

        Returns:
            The matching table row.
        """
        category = classify(error)
        entry = self.for_category(category)
        logger.debug(
            "Resolved exit code",
            extra={
                "exception": type(error).__name__,
                "category": category.value,
                "exit_code": entry.code,
            },
        )
        return entry

    def to_manifest(self) -> dict[str, str]:
        """Render as the manifest's code -> description mapping."""
        return {str(entry.code): entry.description for entry in self._entries}


DEFAULT_EXIT_CODES = ExitCodeTable([
    ExitCode(0, "Success"),
    ExitCode(1, "Error", FailureCategory.GENERIC),
    ExitCode(2, "Invalid input", FailureCategory.MALFORMED_INPUT),
    ExitCode(3, "Access denied", FailureCategory.PERMISSION_DENIED),
    ExitCode(4, "Invalid argument", FailureCategory.INVALID_ARGUMENT),
    ExitCode(5, "Invalid operation", FailureCategory.INVALID_OPERATION),
])
