"""Transport capability interface consumed by the sync core."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..sync.models import EntryKind


@dataclass(frozen=True)
class RemoteEntry:
    """One child of a remote directory listing."""

    name: str
    """Base name of the entry"""

    kind: EntryKind
    """File or directory"""

    size: Optional[int] = None
    """File size in bytes (None for directories or when unknown)"""


class Transport(ABC):
    """An authenticated, stateful session to a remote file store.

    Paths are absolute POSIX paths on the remote side. Implementations raise
    ConnectError from ``connect`` and TransportError from every other call.

    Used as a context manager the session is connected on entry and always
    closed on exit::

        with create_transport(config) as transport:
            transport.list_dir("/public_html")
    """

    supports_concurrent_operations: bool = False
    """Whether calls may be issued from several threads at once"""

    def __enter__(self) -> "Transport":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @abstractmethod
    def connect(self) -> None:
        """Open and authenticate the session."""

    @abstractmethod
    def list_dir(self, path: str) -> list[RemoteEntry]:
        """List the direct children of ``path``.

        Returns an empty list when ``path`` does not exist.
        """

    @abstractmethod
    def make_dir(self, path: str, recursive: bool = False) -> None:
        """Create a directory.

        With ``recursive`` missing parents are created and an existing
        directory is not an error.
        """

    @abstractmethod
    def delete_file(self, path: str) -> None:
        """Delete a single file."""

    @abstractmethod
    def delete_dir_recursive(self, path: str) -> None:
        """Delete a directory and everything beneath it."""

    @abstractmethod
    def upload_file(self, local_path: Path, remote_path: str) -> None:
        """Upload a local file, replacing any existing remote file."""

    @abstractmethod
    def close(self) -> None:
        """Close the session. Safe to call more than once."""
