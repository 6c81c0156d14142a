"""Directory resource: a directory's existence, optionally seeded from a source tree.

`sourcePath` is write-only: it is never reported, so the generic diff cannot
see it. The test slot is overridden to also require that every file of the
source tree exists in the directory with identical content.

Export enumerates the immediate subdirectories of the filter's `path`.
"""

from __future__ import annotations

import hashlib
import logging
import shutil
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

from ..diff import DiffResult, compute_diff
from ..errors import InvalidArgumentError, InvalidOperationError
from ..instance import ResourceField, ResourceInstance
from ..resource import Operation, Resource

logger = logging.getLogger(__name__)

# Read size when hashing files
HASH_CHUNK_BYTES = 64 * 1024


class DirectoryInstance(ResourceInstance):
    """Schema for managing directories."""

    model_config = {"title": "Directory"}

    path: str = ResourceField(key=True, description="The path to the directory.")
    source_path: str | None = ResourceField(
        None,
        write_only=True,
        description="The path to a source directory whose contents are copied in.",
    )


def _digest(path: Path) -> str:
    sha = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_BYTES), b""):
            sha.update(chunk)
    return sha.hexdigest()


def contents_match(target: Path, source: Path) -> bool:
    """Check that every directory and file of `source` exists in `target` unchanged.

    Extra entries in `target` are allowed.
    """
    if not target.is_dir() or not source.is_dir():
        return False

    for entry in source.rglob("*"):
        counterpart = target / entry.relative_to(source)
        if entry.is_dir():
            if not counterpart.is_dir():
                return False
            continue
        if not counterpart.is_file():
            return False
        if entry.stat().st_size != counterpart.stat().st_size:
            return False
        if _digest(entry) != _digest(counterpart):
            return False

    return True


class DirectoryResource(Resource[DirectoryInstance]):
    type_name = "Converge.FileSystem/Directory"
    description = "Manage directories"
    tags = ("directory", "filesystem")
    instance_model = DirectoryInstance
    capabilities = frozenset(
        {Operation.GET, Operation.SET, Operation.TEST, Operation.DELETE, Operation.EXPORT}
    )
    filters_export = True

    def get(self, desired: DirectoryInstance) -> DirectoryInstance:
        if not Path(desired.path).is_dir():
            return desired.absent()
        return DirectoryInstance(path=desired.path)

    def test(self, desired: DirectoryInstance, actual: DirectoryInstance) -> DiffResult:
        diff = compute_diff(desired, actual)
        if not diff.satisfied or not desired.exist or desired.source_path is None:
            return diff

        if contents_match(Path(desired.path), Path(desired.source_path)):
            return diff
        return DiffResult(satisfied=False, changed_properties=frozenset({"sourcePath"}))

    def set(
        self, desired: DirectoryInstance, actual: DirectoryInstance, diff: DiffResult
    ) -> None:
        target = Path(desired.path)

        if desired.source_path is not None:
            source = Path(desired.source_path)
            if not source.is_dir():
                raise InvalidArgumentError(f"Source directory does not exist: {source}")
            shutil.copytree(source, target, dirs_exist_ok=True)
            logger.info("Copied directory", extra={"source": str(source), "path": str(target)})
            return

        target.mkdir(parents=True, exist_ok=True)
        logger.info("Created directory", extra={"path": str(target)})

    def delete(self, desired: DirectoryInstance) -> None:
        target = Path(desired.path)
        if not target.is_dir():
            return
        if any(target.iterdir()):
            raise InvalidOperationError(f"Directory is not empty: {target}")
        target.rmdir()

    def export(self, filter: Mapping[str, Any] | None = None) -> Iterator[DirectoryInstance]:
        if not filter or "path" not in filter:
            raise InvalidArgumentError("Export requires a filter with the parent 'path'")

        parent = Path(filter["path"])
        if not parent.is_dir():
            raise InvalidArgumentError(f"Not a directory: {parent}")

        for child in sorted(parent.iterdir()):
            if child.is_dir():
                yield DirectoryInstance(path=str(child))
