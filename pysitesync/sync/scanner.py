"""Local directory scanning for deployments."""

import fnmatch
import logging
import os
from pathlib import Path
from typing import Optional

from ..exceptions import ScanError
from ..utils import MAX_SCAN_DEPTH
from .models import EntryKind, Manifest, PathEntry, RelativePath

logger = logging.getLogger(__name__)


def matches_any(relative_path: str, patterns: list[str]) -> bool:
    """Check a relative POSIX path against glob patterns.

    A pattern matches either the full relative path or the base name, so
    ``*.map`` excludes source maps at any depth while ``drafts/*`` only
    excludes the top-level drafts directory contents.

    Examples:
        >>> matches_any("assets/app.js.map", ["*.map"])
        True
        >>> matches_any("assets/app.js", ["drafts/*"])
        False
    """
    name = relative_path.rsplit("/", 1)[-1]
    return any(
        fnmatch.fnmatchcase(relative_path, pattern)
        or fnmatch.fnmatchcase(name, pattern)
        for pattern in patterns
    )


class DirectoryScanner:
    """Scans a local directory tree into a Manifest.

    Symbolic links are followed, so a link pointing at one of its own
    ancestors would otherwise recurse forever. The scanner keeps the
    (device, inode) pairs of the directories on the current descent and
    raises ScanError when one repeats or when the tree is deeper than
    ``max_depth``.

    Examples:
        >>> scanner = DirectoryScanner()
        >>> manifest = scanner.scan_local(Path("out"))
        >>> [entry.posix for entry in manifest]
        ['assets', 'assets/app.js', 'index.html']
    """

    def __init__(
        self,
        ignore_patterns: Optional[list[str]] = None,
        max_depth: int = MAX_SCAN_DEPTH,
    ):
        """Initialize directory scanner.

        Args:
            ignore_patterns: Glob patterns to leave out of the manifest
            max_depth: Deepest directory nesting accepted before the scan
                is treated as a symlink loop
        """
        self.ignore_patterns = ignore_patterns or []
        self.max_depth = max_depth

    def scan_local(self, root: Path) -> Manifest:
        """Scan every file and directory strictly beneath ``root``.

        Args:
            root: Local root directory

        Returns:
            Manifest of the tree; files carry their size

        Raises:
            ScanError: If root is missing or not a directory, a directory
                cannot be read, or a symlink loop is detected
        """
        root = Path(root)
        if not root.exists():
            raise ScanError(f"Local root does not exist: {root}")
        if not root.is_dir():
            raise ScanError(f"Local root is not a directory: {root}")

        entries: list[PathEntry] = []
        self._scan_directory(root, (), entries, visited=[self._identity(root)])
        logger.debug(f"Scanned {len(entries)} local entries under {root}")
        return Manifest(str(root), entries)

    @staticmethod
    def _identity(directory: Path) -> tuple[int, int]:
        stat = directory.stat()
        return (stat.st_dev, stat.st_ino)

    def _scan_directory(
        self,
        directory: Path,
        prefix: RelativePath,
        entries: list[PathEntry],
        visited: list[tuple[int, int]],
    ) -> None:
        if len(prefix) >= self.max_depth:
            raise ScanError(
                f"Directory nesting exceeds {self.max_depth} levels at {directory}; "
                "possible symbolic link loop"
            )

        try:
            children = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise ScanError(f"Cannot read directory {directory}: {e}") from e

        for item in children:
            relative_path = prefix + (item.name,)
            if self.ignore_patterns and matches_any(
                "/".join(relative_path), self.ignore_patterns
            ):
                logger.debug(f"Ignoring (from rules): {'/'.join(relative_path)}")
                continue

            try:
                if item.is_dir():
                    identity = self._identity(item)
                    if identity in visited:
                        raise ScanError(
                            f"Symbolic link loop detected at {item} "
                            f"(points back to an ancestor directory)"
                        )
                    entries.append(PathEntry(relative_path, EntryKind.DIRECTORY))
                    self._scan_directory(
                        item, relative_path, entries, visited + [identity]
                    )
                elif item.is_file():
                    size = item.stat().st_size
                    entries.append(PathEntry(relative_path, EntryKind.FILE, size))
                elif item.is_symlink() and not os.path.exists(item):
                    logger.warning(f"Skipping broken symbolic link: {item}")
            except OSError as e:
                raise ScanError(f"Cannot stat {item}: {e}") from e
