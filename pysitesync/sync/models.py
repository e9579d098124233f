"""Tree snapshot types shared by the scanner, lister and reconciler."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Optional

RelativePath = tuple[str, ...]


class EntryKind(str, Enum):
    """Kind of a tree entry."""

    FILE = "file"
    DIRECTORY = "directory"


def split_path(path: str) -> RelativePath:
    """Split a relative POSIX path into segments.

    Backslashes are treated as separators so that paths coming from
    Windows hosts compare equal to their POSIX form.

    Examples:
        >>> split_path("assets/js/app.js")
        ('assets', 'js', 'app.js')
        >>> split_path("/index.html")
        ('index.html',)
    """
    return tuple(s for s in path.replace("\\", "/").split("/") if s and s != ".")


@dataclass(frozen=True)
class PathEntry:
    """A file or directory beneath a tree root."""

    relative_path: RelativePath
    """Path segments relative to the tree root"""

    kind: EntryKind
    """File or directory"""

    size: Optional[int] = None
    """File size in bytes (None for directories)"""

    @property
    def posix(self) -> str:
        """Relative path joined with forward slashes."""
        return "/".join(self.relative_path)

    @property
    def depth(self) -> int:
        return len(self.relative_path)

    @property
    def is_dir(self) -> bool:
        return self.kind == EntryKind.DIRECTORY

    @property
    def name(self) -> str:
        return self.relative_path[-1] if self.relative_path else ""


def is_beneath(path: RelativePath, ancestor: RelativePath) -> bool:
    """Return True if ``path`` is strictly nested under ``ancestor``."""
    return len(path) > len(ancestor) and path[: len(ancestor)] == ancestor


def ancestors(path: RelativePath) -> Iterator[RelativePath]:
    """Yield every proper ancestor of ``path``, shallowest first.

    Examples:
        >>> list(ancestors(("a", "b", "c")))
        [('a',), ('a', 'b')]
    """
    for i in range(1, len(path)):
        yield path[:i]


class Manifest:
    """Ordered, duplicate-free snapshot of a tree.

    Entries are kept in pre-order: a directory always precedes everything
    nested beneath it. Siblings are ordered by name, so two scans of the
    same tree produce identical manifests.
    """

    def __init__(self, root: str, entries: Iterable[PathEntry] = ()):
        """Initialize manifest.

        Args:
            root: Tree root the relative paths refer to
            entries: Entries of the tree (any order)

        Raises:
            ValueError: If two entries share the same relative path
        """
        self.root = root
        self._by_path: dict[RelativePath, PathEntry] = {}
        for entry in entries:
            if entry.relative_path in self._by_path:
                raise ValueError(f"Duplicate manifest entry: {entry.posix}")
            self._by_path[entry.relative_path] = entry
        self._entries = tuple(
            sorted(self._by_path.values(), key=lambda e: e.relative_path)
        )

    def __iter__(self) -> Iterator[PathEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return path in self._by_path

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Manifest):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"Manifest(root={self.root!r}, entries={len(self._entries)})"

    @property
    def entries(self) -> tuple[PathEntry, ...]:
        return self._entries

    def get(self, path: RelativePath) -> Optional[PathEntry]:
        return self._by_path.get(path)

    def as_dict(self) -> dict[RelativePath, PathEntry]:
        """Return a lookup from relative path to entry."""
        return dict(self._by_path)

    def files(self) -> list[PathEntry]:
        return [e for e in self._entries if not e.is_dir]

    def directories(self) -> list[PathEntry]:
        return [e for e in self._entries if e.is_dir]

    def shape(self) -> set[tuple[RelativePath, EntryKind]]:
        """Paths and kinds only, ignoring size metadata."""
        return {(e.relative_path, e.kind) for e in self._entries}
