"""Runtime configuration with validation.

Configuration is read once per process from the environment. Invalid values
raise ConfigurationError at load time rather than surfacing mid-operation.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class TraceLevel(str, Enum):
    """Diagnostic verbosity, named the way the host's DSC_TRACE_LEVEL is."""

    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    DEBUG = "debug"
    TRACE = "trace"


class TraceFormat(str, Enum):
    """Diagnostic line format on stderr."""

    JSON = "json"
    TEXT = "text"


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Configuration constants with documented bounds
DEFAULT_MAX_INPUT_BYTES = 1024 * 1024  # 1MB payloads
MAX_INPUT_BYTES_LIMIT = 16 * 1024 * 1024  # Hard cap regardless of env

# Resource type names: <owner>[.<group>][.<area>]/<name>
VALID_RESOURCE_TYPE_PATTERN = r"^\w+(\.\w+){0,2}/\w+$"

# Semantic version (no build metadata ordering rules needed here)
VALID_VERSION_PATTERN = r"^\d+\.\d+\.\d+(-[0-9A-Za-z.-]+)?(\+[0-9A-Za-z.-]+)?$"

JSON_SCHEMA_DIALECT = "https://json-schema.org/draft/2020-12/schema"
MANIFEST_SCHEMA_URI = "https://aka.ms/dsc/schemas/v3/bundled/resource/manifest.json"
MANIFEST_FILE_SUFFIX = ".dsc.resource.json"


@dataclass(frozen=True)
class Config:
    """Process configuration loaded from environment variables.

    All fields are validated at construction time.
    """

    trace_level: TraceLevel = TraceLevel.WARN
    trace_format: TraceFormat = TraceFormat.JSON
    max_input_bytes: int = DEFAULT_MAX_INPUT_BYTES
    manifest_dir: Path = field(default_factory=Path.cwd)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not (1 <= self.max_input_bytes <= MAX_INPUT_BYTES_LIMIT):
            errors.append(
                f"CONVERGE_MAX_INPUT_BYTES must be between 1 and {MAX_INPUT_BYTES_LIMIT}"
            )

        if self.manifest_dir.exists() and not self.manifest_dir.is_dir():
            errors.append(f"CONVERGE_MANIFEST_DIR is not a directory: {self.manifest_dir}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            DSC_TRACE_LEVEL: error, warn, info, debug or trace (default: warn)
            CONVERGE_TRACE_FORMAT: json or text (default: json)
            CONVERGE_MAX_INPUT_BYTES: Maximum payload size (default: 1MB)
            CONVERGE_MANIFEST_DIR: Where `manifest --save` writes (default: cwd)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_trace_level(value: str | None) -> TraceLevel:
            if not value:
                return TraceLevel.WARN
            try:
                return TraceLevel(value.strip().lower())
            except ValueError as e:
                valid = [level.value for level in TraceLevel]
                raise ConfigurationError(f"DSC_TRACE_LEVEL must be one of {valid}: {value}") from e

        def get_trace_format(value: str | None) -> TraceFormat:
            if not value:
                return TraceFormat.JSON
            try:
                return TraceFormat(value.strip().lower())
            except ValueError as e:
                valid = [fmt.value for fmt in TraceFormat]
                raise ConfigurationError(
                    f"CONVERGE_TRACE_FORMAT must be one of {valid}: {value}"
                ) from e

        manifest_dir = os.environ.get("CONVERGE_MANIFEST_DIR")

        return cls(
            trace_level=get_trace_level(os.environ.get("DSC_TRACE_LEVEL")),
            trace_format=get_trace_format(os.environ.get("CONVERGE_TRACE_FORMAT")),
            max_input_bytes=get_int("CONVERGE_MAX_INPUT_BYTES", DEFAULT_MAX_INPUT_BYTES),
            manifest_dir=Path(manifest_dir) if manifest_dir else Path.cwd(),
        )
