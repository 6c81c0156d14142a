"""Resource manifest generation.

A manifest tells the external host how to invoke this executable for one
resource type: which operations exist, their command-line arguments, what
Set and Test return, the exit code table and the embedded instance schema.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .config import MANIFEST_FILE_SUFFIX, MANIFEST_SCHEMA_URI
from .resource import Operation, Resource, SetReturn
from .schema import describe

logger = logging.getLogger(__name__)

INPUT_OPTION = "--input"
RESOURCE_OPTION = "--resource"

MULTI_MANIFEST_SUFFIX = ".dsc.manifests.json"


class _ManifestModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class JsonInputArg(_ManifestModel):
    """Argument slot the host fills with the JSON instance."""

    json_input_arg: str = Field(INPUT_OPTION, alias="jsonInputArg")
    mandatory: bool = True


class ManifestMethod(_ManifestModel):
    """How to invoke one operation."""

    executable: str
    args: list[str | JsonInputArg]
    return_: str | None = Field(None, alias="return")


class EmbeddedSchema(_ManifestModel):
    embedded: dict[str, Any]


class ResourceManifest(_ManifestModel):
    """Manifest of one resource type."""

    schema_uri: str = Field(MANIFEST_SCHEMA_URI, alias="$schema")
    type: str
    version: str
    description: str | None = None
    tags: list[str] | None = None
    exit_codes: dict[str, str] | None = Field(None, alias="exitCodes")
    schema_: EmbeddedSchema = Field(alias="schema")
    get: ManifestMethod | None = None
    set: ManifestMethod | None = None
    test: ManifestMethod | None = None
    delete: ManifestMethod | None = None
    export: ManifestMethod | None = None

    def to_document(self) -> dict[str, Any]:
        """Dump by alias, omitting fields that are not set."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class MultiResourceManifest(_ManifestModel):
    """Manifest wrapper for executables serving several resource types."""

    resources: list[ResourceManifest]

    def to_document(self) -> dict[str, Any]:
        return {"resources": [manifest.to_document() for manifest in self.resources]}


def _method(
    executable: str,
    operation: Operation,
    type_name: str,
    *,
    multi: bool,
    input_mandatory: bool = True,
    returns: str | None = None,
) -> ManifestMethod:
    args: list[str | JsonInputArg] = [operation.value]
    if multi:
        args.extend([RESOURCE_OPTION, type_name])
    args.append(JsonInputArg(mandatory=input_mandatory))
    return ManifestMethod(executable=executable, args=args, return_=returns)


def build_manifest(
    resource_cls: type[Resource],
    executable: str,
    multi: bool = False,
) -> ResourceManifest:
    """Build the manifest of a resource type.

    Args:
        resource_cls: The resource class.
        executable: Executable name the host invokes.
        multi: The executable serves several types and needs `--resource`.

    Returns:
        The manifest model; call `to_document()` for JSON output.
    """
    type_name = resource_cls.type_name
    methods: dict[str, ManifestMethod] = {}

    for operation in Operation:
        if not resource_cls.supports(operation):
            continue
        match operation:
            case Operation.SET:
                returns = None
                if resource_cls.set_return is not SetReturn.NONE:
                    returns = resource_cls.set_return.value
                methods["set"] = _method(
                    executable, operation, type_name, multi=multi, returns=returns
                )
            case Operation.TEST:
                methods["test"] = _method(
                    executable,
                    operation,
                    type_name,
                    multi=multi,
                    returns=resource_cls.test_return.value,
                )
            case Operation.EXPORT:
                methods["export"] = _method(
                    executable, operation, type_name, multi=multi, input_mandatory=False
                )
            case _:
                methods[operation.value] = _method(executable, operation, type_name, multi=multi)

    return ResourceManifest(
        type=type_name,
        version=resource_cls.version,
        description=resource_cls.description,
        tags=list(resource_cls.tags) or None,
        exit_codes=resource_cls.exit_codes.to_manifest(),
        schema_=EmbeddedSchema(embedded=describe(resource_cls.instance_model)),
        **methods,
    )


def manifest_filename(type_name: str) -> str:
    """File name of a saved single-type manifest (`Owner/Name` -> `owner.name...`)."""
    return type_name.lower().replace("/", ".") + MANIFEST_FILE_SUFFIX


def multi_manifest_filename(executable: str) -> str:
    return Path(executable).stem + MULTI_MANIFEST_SUFFIX


def save_manifest(document: dict[str, Any], directory: Path, filename: str) -> Path:
    """Write a manifest document as indented JSON.

    Returns:
        The written path.
    """
    path = directory / filename
    path.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")
    logger.info("Saved manifest", extra={"path": str(path)})
    return path
