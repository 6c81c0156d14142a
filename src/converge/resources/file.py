"""File resource: a file's existence and text content."""

from __future__ import annotations

import logging
from pathlib import Path

from ..diff import DiffResult
from ..instance import ResourceField, ResourceInstance
from ..resource import Operation, Resource

logger = logging.getLogger(__name__)


class FileInstance(ResourceInstance):
    """Schema for managing files."""

    model_config = {"title": "File"}

    path: str = ResourceField(key=True, description="The path to the file.")
    content: str | None = ResourceField(None, description="The content of the file.")


class FileResource(Resource[FileInstance]):
    type_name = "Converge.FileSystem/File"
    description = "Manage files"
    tags = ("file", "filesystem")
    instance_model = FileInstance
    capabilities = frozenset({Operation.GET, Operation.SET, Operation.TEST, Operation.DELETE})

    def get(self, desired: FileInstance) -> FileInstance:
        path = Path(desired.path)
        if not path.is_file():
            return desired.absent()
        return FileInstance(path=desired.path, content=path.read_text(encoding="utf-8"))

    def set(self, desired: FileInstance, actual: FileInstance, diff: DiffResult) -> None:
        path = Path(desired.path)
        if desired.content is not None:
            path.write_text(desired.content, encoding="utf-8")
            logger.info("Wrote file", extra={"path": str(path)})
        elif not actual.exist:
            path.touch()
            logger.info("Created empty file", extra={"path": str(path)})

    def delete(self, desired: FileInstance) -> None:
        Path(desired.path).unlink(missing_ok=True)
