"""Tests for the file and directory resources."""

from __future__ import annotations

from pathlib import Path

import pytest

from converge.engine import ConvergenceEngine
from converge.errors import InvalidArgumentError, InvalidOperationError
from converge.resources.directory import DirectoryInstance, DirectoryResource, contents_match
from converge.resources.file import FileInstance, FileResource


@pytest.fixture
def files() -> ConvergenceEngine:
    return ConvergenceEngine(FileResource())


@pytest.fixture
def directories() -> ConvergenceEngine:
    return ConvergenceEngine(DirectoryResource())


@pytest.fixture
def source_tree(tmp_path: Path) -> Path:
    source = tmp_path / "source"
    (source / "conf").mkdir(parents=True)
    (source / "readme.txt").write_text("hello", encoding="utf-8")
    (source / "conf" / "app.ini").write_text("[app]\nmode=on\n", encoding="utf-8")
    return source


class TestFileResource:
    """Tests for FileResource."""

    def test_get_absent(self, files: ConvergenceEngine, tmp_path: Path) -> None:
        """Test that a missing file is reported absent."""
        target = str(tmp_path / "missing.txt")

        actual = files.get(FileInstance(path=target))

        assert actual.exist is False
        assert actual.path == target
        assert actual.content is None

    def test_set_creates_with_content(self, files: ConvergenceEngine, tmp_path: Path) -> None:
        """Test creating a file with content."""
        target = tmp_path / "motd.txt"

        result = files.set(FileInstance(path=str(target), content="welcome\n"))

        assert result is not None
        assert target.read_text(encoding="utf-8") == "welcome\n"
        assert result.after.content == "welcome\n"
        assert result.changed_properties == ["_exist"]

    def test_set_creates_empty(self, files: ConvergenceEngine, tmp_path: Path) -> None:
        """Test that a file without content is created empty."""
        target = tmp_path / "marker"

        files.set(FileInstance(path=str(target)))

        assert target.read_text(encoding="utf-8") == ""

    def test_set_rewrites_content(self, files: ConvergenceEngine, tmp_path: Path) -> None:
        """Test that drifted content is rewritten."""
        target = tmp_path / "motd.txt"
        target.write_text("old", encoding="utf-8")

        result = files.set(FileInstance(path=str(target), content="new"))

        assert result is not None
        assert result.changed_properties == ["content"]
        assert target.read_text(encoding="utf-8") == "new"

    def test_existing_file_unmanaged_content(self, files: ConvergenceEngine, tmp_path: Path) -> None:
        """Test that an existing file satisfies a desired state without content."""
        target = tmp_path / "motd.txt"
        target.write_text("anything", encoding="utf-8")

        assert files.test(FileInstance(path=str(target))).in_desired_state is True
        assert files.set(FileInstance(path=str(target))) is None

    def test_set_exist_false_removes(self, files: ConvergenceEngine, tmp_path: Path) -> None:
        """Test that _exist false removes the file."""
        target = tmp_path / "motd.txt"
        target.write_text("x", encoding="utf-8")

        result = files.set(FileInstance(path=str(target), exist=False))

        assert result is not None
        assert result.after.exist is False
        assert not target.exists()

    def test_delete_idempotent(self, files: ConvergenceEngine, tmp_path: Path) -> None:
        """Test that deleting twice succeeds."""
        target = tmp_path / "motd.txt"
        target.write_text("x", encoding="utf-8")

        files.delete(FileInstance(path=str(target)))
        files.delete(FileInstance(path=str(target)))

        assert not target.exists()


class TestContentsMatch:
    """Tests for contents_match."""

    def test_copy_matches(self, tmp_path: Path, source_tree: Path) -> None:
        """Test that an identical tree with extra entries matches."""
        target = tmp_path / "target"
        (target / "conf").mkdir(parents=True)
        (target / "readme.txt").write_text("hello", encoding="utf-8")
        (target / "conf" / "app.ini").write_text("[app]\nmode=on\n", encoding="utf-8")
        (target / "extra.log").write_text("kept", encoding="utf-8")

        assert contents_match(target, source_tree) is True

    def test_changed_file(self, tmp_path: Path, source_tree: Path) -> None:
        """Test that a same-sized file with other content does not match."""
        target = tmp_path / "target"
        (target / "conf").mkdir(parents=True)
        (target / "readme.txt").write_text("HELLO", encoding="utf-8")
        (target / "conf" / "app.ini").write_text("[app]\nmode=on\n", encoding="utf-8")

        assert contents_match(target, source_tree) is False

    def test_missing_directory(self, tmp_path: Path, source_tree: Path) -> None:
        """Test that a missing target never matches."""
        assert contents_match(tmp_path / "nothing", source_tree) is False


class TestDirectoryResource:
    """Tests for DirectoryResource."""

    def test_create_and_test(self, directories: ConvergenceEngine, tmp_path: Path) -> None:
        """Test creating a directory, then testing it."""
        target = tmp_path / "a" / "b"

        assert directories.test(DirectoryInstance(path=str(target))).in_desired_state is False
        directories.set(DirectoryInstance(path=str(target)))

        assert target.is_dir()
        assert directories.test(DirectoryInstance(path=str(target))).in_desired_state is True

    def test_seed_from_source(
        self, directories: ConvergenceEngine, tmp_path: Path, source_tree: Path
    ) -> None:
        """Test copying a source tree and the write-only sourcePath."""
        target = tmp_path / "site"
        desired = DirectoryInstance(path=str(target), source_path=str(source_tree))

        result = directories.set(desired)

        assert result is not None
        assert (target / "conf" / "app.ini").read_text(encoding="utf-8") == "[app]\nmode=on\n"
        assert "sourcePath" not in result.after.to_wire()
        assert directories.set(desired) is None

    def test_drifted_source_contents(
        self, directories: ConvergenceEngine, tmp_path: Path, source_tree: Path
    ) -> None:
        """Test that a changed copy is reported under sourcePath and repaired."""
        target = tmp_path / "site"
        desired = DirectoryInstance(path=str(target), source_path=str(source_tree))
        directories.set(desired)
        (target / "readme.txt").write_text("tampered", encoding="utf-8")

        result = directories.test(desired)

        assert result.in_desired_state is False
        assert result.changed_properties == ["sourcePath"]
        directories.set(desired)
        assert (target / "readme.txt").read_text(encoding="utf-8") == "hello"

    def test_missing_source(self, directories: ConvergenceEngine, tmp_path: Path) -> None:
        """Test that a missing source tree is an invalid argument."""
        desired = DirectoryInstance(path=str(tmp_path / "site"), source_path=str(tmp_path / "nope"))

        with pytest.raises(InvalidArgumentError, match="Source directory does not exist"):
            directories.set(desired)

    def test_delete_empty(self, directories: ConvergenceEngine, tmp_path: Path) -> None:
        """Test deleting an empty directory."""
        target = tmp_path / "empty"
        target.mkdir()

        directories.delete(DirectoryInstance(path=str(target)))

        assert not target.exists()

    def test_delete_not_empty(self, directories: ConvergenceEngine, tmp_path: Path) -> None:
        """Test that a non-empty directory is never removed recursively."""
        target = tmp_path / "full"
        target.mkdir()
        (target / "file").write_text("x", encoding="utf-8")

        with pytest.raises(InvalidOperationError, match="not empty"):
            directories.delete(DirectoryInstance(path=str(target)))

        assert target.is_dir()

    def test_export_children(self, directories: ConvergenceEngine, tmp_path: Path) -> None:
        """Test that export lists the subdirectories of the filter path."""
        (tmp_path / "b").mkdir()
        (tmp_path / "a").mkdir()
        (tmp_path / "file.txt").write_text("x", encoding="utf-8")

        exported = list(directories.export({"path": str(tmp_path)}))

        assert [i.path for i in exported] == [str(tmp_path / "a"), str(tmp_path / "b")]

    def test_export_requires_path(self, directories: ConvergenceEngine) -> None:
        """Test that export without a parent path fails."""
        with pytest.raises(InvalidArgumentError, match="requires a filter"):
            list(directories.export())
