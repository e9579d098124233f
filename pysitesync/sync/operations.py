"""Reconciliation operations and plans."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from ..utils import join_remote
from .models import RelativePath


class OperationType(str, Enum):
    """Remote mutations a plan can contain."""

    MAKE_DIR = "make_dir"
    """Create a remote directory"""

    DELETE_FILE = "delete_file"
    """Delete a remote file"""

    DELETE_DIR = "delete_dir"
    """Delete a remote directory and everything beneath it"""

    UPLOAD_FILE = "upload_file"
    """Upload a local file to the remote tree"""


@dataclass(frozen=True)
class Operation:
    """A single step of a Plan.

    ``path`` is relative to the remote root; ``local_path`` and ``size``
    are only set for uploads.
    """

    type: OperationType
    path: RelativePath
    local_path: Optional[Path] = None
    size: Optional[int] = None

    @classmethod
    def make_dir(cls, path: RelativePath) -> "Operation":
        return cls(OperationType.MAKE_DIR, path)

    @classmethod
    def delete_file(cls, path: RelativePath) -> "Operation":
        return cls(OperationType.DELETE_FILE, path)

    @classmethod
    def delete_dir(cls, path: RelativePath) -> "Operation":
        return cls(OperationType.DELETE_DIR, path)

    @classmethod
    def upload_file(
        cls, local_path: Path, path: RelativePath, size: Optional[int]
    ) -> "Operation":
        return cls(OperationType.UPLOAD_FILE, path, local_path, size)

    @property
    def posix(self) -> str:
        return "/".join(self.path)

    @property
    def is_deletion(self) -> bool:
        return self.type in (OperationType.DELETE_FILE, OperationType.DELETE_DIR)

    def remote_path(self, remote_root: str) -> str:
        """Absolute remote path of the operation's target."""
        return join_remote(remote_root, self.path)

    def describe(self) -> str:
        """Short human readable form, e.g. ``upload_file assets/app.js``."""
        return f"{self.type.value} {self.posix}"


class Plan:
    """Ordered, immutable sequence of operations.

    A plan lists all deletions first (deepest path first), then directory
    creations (shallowest first), then uploads.
    """

    def __init__(self, operations: Iterable[Operation] = ()):
        self._operations = tuple(operations)

    def __iter__(self) -> Iterator[Operation]:
        return iter(self._operations)

    def __len__(self) -> int:
        return len(self._operations)

    def __getitem__(self, index: int) -> Operation:
        return self._operations[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Plan):
            return NotImplemented
        return self._operations == other._operations

    def __repr__(self) -> str:
        return (
            f"Plan(deletions={len(self.deletions)}, "
            f"creations={len(self.creations)}, uploads={len(self.uploads)})"
        )

    @property
    def operations(self) -> tuple[Operation, ...]:
        return self._operations

    @property
    def deletions(self) -> list[Operation]:
        return [op for op in self._operations if op.is_deletion]

    @property
    def creations(self) -> list[Operation]:
        return [op for op in self._operations if op.type == OperationType.MAKE_DIR]

    @property
    def uploads(self) -> list[Operation]:
        return [
            op for op in self._operations if op.type == OperationType.UPLOAD_FILE
        ]

    @property
    def upload_bytes(self) -> int:
        return sum(op.size or 0 for op in self.uploads)

    def stats(self) -> dict:
        """Count planned operations by category."""
        return {
            "deletions": len(self.deletions),
            "creations": len(self.creations),
            "uploads": len(self.uploads),
            "upload_bytes": self.upload_bytes,
        }
