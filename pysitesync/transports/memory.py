"""In-memory transport.

Keeps a remote tree in dictionaries and behaves like a strict remote file
store (missing parents, kind mismatches and double deletes are errors).
It is a test double: the CLI never selects it, and dry runs go through
the real transport without mutating calls. Failures can be injected per
operation and path.
"""

import logging
import posixpath
import threading
from pathlib import Path
from typing import Callable, Optional

from ..exceptions import ConnectError, TransportError
from ..sync.models import EntryKind
from .base import RemoteEntry, Transport

logger = logging.getLogger(__name__)


def _norm(path: str) -> str:
    path = posixpath.normpath("/" + path.lstrip("/"))
    return "/" + path.lstrip("/")


class MemoryTransport(Transport):
    """Transport backed by an in-memory tree.

    Examples:
        >>> transport = MemoryTransport()
        >>> transport.add_file("/public_html/old.html", b"stale")
        >>> with transport:
        ...     [e.name for e in transport.list_dir("/public_html")]
        ['old.html']
    """

    supports_concurrent_operations = True

    def __init__(self, on_call: Optional[Callable[[str, str], None]] = None):
        """Initialize memory transport.

        Args:
            on_call: Optional hook invoked as on_call(operation, path) before
                every mutating or listing call
        """
        self.dirs: set[str] = {"/"}
        self.files: dict[str, bytes] = {}
        self.calls: list[tuple[str, str]] = []
        self.connected = False
        self.closed = False
        self.connect_error: Optional[str] = None
        self.on_call = on_call
        self._failures: dict[tuple[str, str], Exception] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def add_dir(self, path: str) -> None:
        """Create a directory and its parents."""
        path = _norm(path)
        with self._lock:
            while path not in self.dirs:
                self.dirs.add(path)
                path = posixpath.dirname(path)

    def add_file(self, path: str, content: bytes = b"") -> None:
        """Create a file (and its parent directories)."""
        path = _norm(path)
        self.add_dir(posixpath.dirname(path))
        with self._lock:
            self.files[path] = content

    def fail(
        self, operation: str, path: str, error: Optional[Exception] = None
    ) -> None:
        """Make ``operation`` on ``path`` raise.

        Args:
            operation: Method name (list_dir, make_dir, delete_file,
                delete_dir_recursive, upload_file)
            path: Absolute remote path
            error: Exception to raise (TransportError by default)
        """
        path = _norm(path)
        self._failures[(operation, path)] = error or TransportError(
            f"Injected failure: {operation} {path}", path
        )

    def exists(self, path: str) -> bool:
        path = _norm(path)
        return path in self.dirs or path in self.files

    # ------------------------------------------------------------------
    # Transport interface
    # ------------------------------------------------------------------

    def connect(self) -> None:
        if self.connect_error:
            raise ConnectError(self.connect_error)
        self.connected = True
        self.closed = False

    def close(self) -> None:
        self.connected = False
        self.closed = True

    def _enter(self, operation: str, path: str) -> str:
        path = _norm(path)
        if not self.connected:
            raise TransportError("Not connected", path)
        if self.on_call is not None:
            self.on_call(operation, path)
        with self._lock:
            self.calls.append((operation, path))
        failure = self._failures.get((operation, path))
        if failure is not None:
            raise failure
        return path

    def list_dir(self, path: str) -> list[RemoteEntry]:
        path = self._enter("list_dir", path)
        with self._lock:
            if path in self.files:
                raise TransportError(f"Not a directory: {path}", path)
            if path not in self.dirs:
                return []
            entries = [
                RemoteEntry(posixpath.basename(d), EntryKind.DIRECTORY)
                for d in self.dirs
                if d != path and posixpath.dirname(d) == path
            ]
            entries.extend(
                RemoteEntry(posixpath.basename(f), EntryKind.FILE, len(content))
                for f, content in self.files.items()
                if posixpath.dirname(f) == path
            )
        return sorted(entries, key=lambda e: e.name)

    def make_dir(self, path: str, recursive: bool = False) -> None:
        path = self._enter("make_dir", path)
        with self._lock:
            if path in self.files:
                raise TransportError(f"File exists: {path}", path)
            if path in self.dirs:
                if recursive:
                    return
                raise TransportError(f"Directory exists: {path}", path)
            parent = posixpath.dirname(path)
            if parent not in self.dirs:
                if not recursive:
                    raise TransportError(f"No such directory: {parent}", path)
                self.add_dir(path)
                return
            self.dirs.add(path)

    def delete_file(self, path: str) -> None:
        path = self._enter("delete_file", path)
        with self._lock:
            if path not in self.files:
                raise TransportError(f"No such file: {path}", path)
            del self.files[path]

    def delete_dir_recursive(self, path: str) -> None:
        path = self._enter("delete_dir_recursive", path)
        with self._lock:
            if path not in self.dirs or path == "/":
                raise TransportError(f"No such directory: {path}", path)
            prefix = path + "/"
            self.dirs = {
                d for d in self.dirs if d != path and not d.startswith(prefix)
            }
            self.files = {
                f: c for f, c in self.files.items() if not f.startswith(prefix)
            }

    def upload_file(self, local_path: Path, remote_path: str) -> None:
        remote_path = self._enter("upload_file", remote_path)
        try:
            content = Path(local_path).read_bytes()
        except OSError as e:
            raise TransportError(f"Cannot read {local_path}: {e}", remote_path) from e
        with self._lock:
            if remote_path in self.dirs:
                raise TransportError(f"Is a directory: {remote_path}", remote_path)
            if posixpath.dirname(remote_path) not in self.dirs:
                raise TransportError(
                    f"No such directory: {posixpath.dirname(remote_path)}",
                    remote_path,
                )
            self.files[remote_path] = content
        logger.debug(f"Stored {len(content)} bytes at {remote_path}")
