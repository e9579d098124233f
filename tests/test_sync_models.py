"""Tests for manifest and path entry types."""

import pytest

from pysitesync.sync.models import (
    EntryKind,
    Manifest,
    PathEntry,
    ancestors,
    is_beneath,
    split_path,
)


def _file(path: str, size: int = 0) -> PathEntry:
    return PathEntry(split_path(path), EntryKind.FILE, size)


def _dir(path: str) -> PathEntry:
    return PathEntry(split_path(path), EntryKind.DIRECTORY)


class TestSplitPath:
    """Tests for split_path."""

    def test_splits_segments(self):
        """Test a nested path is split on slashes."""
        assert split_path("assets/js/app.js") == ("assets", "js", "app.js")

    def test_ignores_leading_and_trailing_slashes(self):
        """Test empty segments are dropped."""
        assert split_path("/assets/") == ("assets",)

    def test_backslashes_are_separators(self):
        """Test Windows style paths compare equal to POSIX paths."""
        assert split_path("assets\\app.js") == ("assets", "app.js")

    def test_empty_path(self):
        """Test the root itself has no segments."""
        assert split_path("") == ()
        assert split_path(".") == ()


class TestPathHelpers:
    """Tests for is_beneath and ancestors."""

    def test_is_beneath_is_strict(self):
        """Test a path is not beneath itself."""
        assert is_beneath(("a", "b"), ("a",))
        assert not is_beneath(("a",), ("a",))
        assert not is_beneath(("ab",), ("a",))

    def test_ancestors_shallowest_first(self):
        """Test ancestors excludes the path itself."""
        assert list(ancestors(("a", "b", "c"))) == [("a",), ("a", "b")]
        assert list(ancestors(("a",))) == []


class TestPathEntry:
    """Tests for PathEntry properties."""

    def test_properties(self):
        """Test posix, depth, name and is_dir."""
        entry = _file("assets/app.js", 12)
        assert entry.posix == "assets/app.js"
        assert entry.depth == 2
        assert entry.name == "app.js"
        assert not entry.is_dir
        assert _dir("assets").is_dir


class TestManifest:
    """Tests for Manifest ordering and lookups."""

    def test_entries_are_pre_order(self):
        """Test a directory precedes everything nested beneath it."""
        manifest = Manifest(
            "/root",
            [
                _file("b.html"),
                _file("a/z.js"),
                _dir("a"),
                _dir("a/sub"),
                _file("a.txt"),
            ],
        )

        assert [e.posix for e in manifest] == [
            "a",
            "a/sub",
            "a/z.js",
            "a.txt",
            "b.html",
        ]

    def test_duplicate_paths_rejected(self):
        """Test two entries with the same path raise ValueError."""
        with pytest.raises(ValueError, match="Duplicate manifest entry"):
            Manifest("/root", [_file("index.html"), _dir("index.html")])

    def test_lookup(self):
        """Test get, contains and len."""
        manifest = Manifest("/root", [_dir("assets"), _file("assets/app.js", 3)])

        assert len(manifest) == 2
        assert ("assets", "app.js") in manifest
        assert ("missing",) not in manifest
        assert manifest.get(("assets", "app.js")).size == 3
        assert manifest.get(("missing",)) is None

    def test_files_and_directories(self):
        """Test filtering by kind."""
        manifest = Manifest("/root", [_dir("assets"), _file("assets/app.js")])

        assert [e.posix for e in manifest.files()] == ["assets/app.js"]
        assert [e.posix for e in manifest.directories()] == ["assets"]

    def test_equality_ignores_root(self):
        """Test manifests with the same entries are equal."""
        entries = [_dir("assets"), _file("index.html", 5)]
        assert Manifest("/a", entries) == Manifest("/b", list(reversed(entries)))

    def test_shape_ignores_size(self):
        """Test shape compares only paths and kinds."""
        local = Manifest("out", [_file("index.html", 5)])
        remote = Manifest("/public_html", [_file("index.html", 99)])

        assert local != remote
        assert local.shape() == remote.shape()

    def test_empty_manifest(self):
        """Test an empty tree."""
        manifest = Manifest("/root")
        assert len(manifest) == 0
        assert list(manifest) == []
        assert "entries=0" in repr(manifest)
