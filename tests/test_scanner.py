"""Tests for local scanning and exclusion filters."""

from pathlib import Path
from unittest.mock import patch

import pytest

from pys3sync.exceptions import LocalFileError
from pys3sync.sync.filters import ExcludeFilter
from pys3sync.sync.scanner import DirectoryScanner, LocalFile


class TestDirectoryScanner:
    """Test DirectoryScanner."""

    def test_scan_nested(self, tmp_path):
        (tmp_path / "a" / "b").mkdir(parents=True)
        (tmp_path / "top.txt").write_text("1")
        (tmp_path / "a" / "b" / "deep.txt").write_text("22")

        files = DirectoryScanner().scan_local(tmp_path)

        by_path = {f.relative_path: f for f in files}
        assert set(by_path) == {"top.txt", "a/b/deep.txt"}
        assert by_path["a/b/deep.txt"].size == 2
        assert by_path["top.txt"].path == tmp_path / "top.txt"

    def test_missing_directory(self, tmp_path):
        assert DirectoryScanner().scan_local(tmp_path / "missing") == []

    def test_relative_paths(self, tmp_path):
        (tmp_path / "d").mkdir()
        (tmp_path / "d" / "x").write_text("")
        assert DirectoryScanner().relative_paths(tmp_path) == {"d/x"}

    def test_local_file_from_path(self, tmp_path):
        path = tmp_path / "f.bin"
        path.write_bytes(b"abc")
        local = LocalFile.from_path(path, tmp_path)
        assert local.relative_path == "f.bin"
        assert local.size == 3
        assert local.mtime == path.stat().st_mtime
        assert isinstance(local.path, Path)

    @pytest.fixture
    def unreadable_tree(self, tmp_path):
        (tmp_path / "locked").mkdir()
        (tmp_path / "locked" / "x.txt").write_text("x")
        (tmp_path / "open.txt").write_text("o")
        locked = tmp_path / "locked"
        original_iterdir = Path.iterdir

        def iterdir(path):
            if path == locked:
                raise PermissionError("denied")
            return original_iterdir(path)

        with patch.object(Path, "iterdir", iterdir):
            yield tmp_path

    def test_unreadable_directory_skipped(self, unreadable_tree):
        assert DirectoryScanner().relative_paths(unreadable_tree) == {"open.txt"}

    def test_unreadable_directory_strict(self, unreadable_tree):
        with pytest.raises(LocalFileError, match="locked"):
            DirectoryScanner().relative_paths(unreadable_tree, strict=True)


class TestExcludeFilter:
    """Test ExcludeFilter."""

    def test_inactive_filter_excludes_nothing(self):
        assert ExcludeFilter().active is False
        assert ExcludeFilter().is_excluded("anything") is False
        assert ExcludeFilter(flip=True).is_excluded("anything") is False

    @pytest.mark.parametrize(
        "key, excluded",
        [
            ("logs/a.tmp", True),
            ("a.tmp", True),
            ("logs/a.txt", False),
            ("logs/a.tmp.bak", False),
        ],
    )
    def test_pattern(self, key, excluded):
        assert ExcludeFilter("**/*.tmp").is_excluded(key) is excluded

    def test_flip_keeps_only_matches(self):
        keep_css = ExcludeFilter("css/*", flip=True)
        assert keep_css.is_excluded("css/main.css") is False
        assert keep_css.is_excluded("js/app.js") is True
