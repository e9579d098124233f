"""Remote tree listing for deployments."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

from ..exceptions import RemoteListError, TransportError
from ..utils import join_remote
from .models import EntryKind, Manifest, PathEntry, RelativePath

if TYPE_CHECKING:
    from ..transports.base import Transport

logger = logging.getLogger(__name__)


class RemoteLister:
    """Walks the remote root through a Transport and builds a Manifest.

    The walk is depth-first and sequential. When the transport accepts
    concurrent calls and ``max_workers`` is above one, the subdirectories
    of each tree level are listed in parallel, one level at a time, bounded
    by ``max_workers``.
    """

    def __init__(
        self,
        transport: "Transport",
        max_workers: int = 1,
    ):
        """Initialize remote lister.

        Args:
            transport: Connected transport
            max_workers: Upper bound on concurrent listing calls
        """
        self.transport = transport
        self.max_workers = max_workers

    @property
    def concurrent(self) -> bool:
        return self.max_workers > 1 and self.transport.supports_concurrent_operations

    def list_tree(self, remote_root: str) -> Manifest:
        """List every entry beneath ``remote_root``.

        A missing remote root yields an empty manifest.

        Raises:
            RemoteListError: If any listing call fails
        """
        entries: list[PathEntry] = []
        if self.concurrent:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                self._walk_concurrent(pool, remote_root, [()], entries)
        else:
            self._walk(remote_root, (), entries)

        logger.debug(f"Listed {len(entries)} remote entries under {remote_root}")
        return Manifest(remote_root, entries)

    def _list(self, remote_root: str, prefix: RelativePath) -> list[PathEntry]:
        path = join_remote(remote_root, prefix)
        try:
            children = self.transport.list_dir(path)
        except TransportError as e:
            raise RemoteListError(f"Cannot list remote directory {path}: {e}") from e
        return [
            PathEntry(
                prefix + (child.name,),
                child.kind,
                child.size if child.kind == EntryKind.FILE else None,
            )
            for child in sorted(children, key=lambda c: c.name)
        ]

    def _walk(
        self, remote_root: str, prefix: RelativePath, entries: list[PathEntry]
    ) -> None:
        for entry in self._list(remote_root, prefix):
            entries.append(entry)
            if entry.is_dir:
                self._walk(remote_root, entry.relative_path, entries)

    def _walk_concurrent(
        self,
        pool: ThreadPoolExecutor,
        remote_root: str,
        level: list[RelativePath],
        entries: list[PathEntry],
    ) -> None:
        """List one tree level at a time, all directories of a level in parallel."""
        while level:
            results = list(pool.map(lambda p: self._list(remote_root, p), level))
            level = []
            for children in results:
                entries.extend(children)
                level.extend(e.relative_path for e in children if e.is_dir)
