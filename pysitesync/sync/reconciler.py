"""Reconciliation of local and remote manifests into an ordered plan."""

import logging
from pathlib import Path
from typing import Optional

from .models import Manifest, PathEntry, RelativePath, ancestors, is_beneath
from .operations import Operation, OperationType, Plan
from .scanner import matches_any

logger = logging.getLogger(__name__)


class Reconciler:
    """Computes the operations that turn the remote tree into the local one.

    The result is a full mirror: every local file is uploaded on every run,
    whether or not the remote copy already matches. Remote entries that are
    missing locally, or that exist locally with a different kind, are
    deleted. A directory scheduled for deletion covers everything beneath
    it, so no separate operations are emitted for its contents.

    Remote entries matching an ignore pattern are never deleted. An obsolete
    directory that holds such an entry is kept, and only its unprotected
    contents are deleted.

    Plan order is fixed:

    1. deletions, deepest path first (ties in reverse lexical order)
    2. directory creations, shallowest path first
    3. uploads, shallowest path first
    """

    def __init__(self, ignore_patterns: Optional[list[str]] = None):
        """Initialize reconciler.

        Args:
            ignore_patterns: Glob patterns of remote paths that must never be
                deleted (matching applies to the entry and its ancestors)
        """
        self.ignore_patterns = ignore_patterns or []

    def reconcile(self, local: Manifest, remote: Manifest) -> Plan:
        """Diff two manifests and build the plan.

        Args:
            local: Manifest of the local root
            remote: Manifest of the remote root

        Returns:
            Plan converging the remote tree to the local tree
        """
        local_map = local.as_dict()

        deletions = self._plan_deletions(local_map, remote)
        removed = {op.path for op in deletions}
        removed_dirs = {
            op.path for op in deletions if op.type == OperationType.DELETE_DIR
        }

        creations = self._plan_creations(local, remote, removed, removed_dirs)
        uploads = self._plan_uploads(local)

        plan = Plan(deletions + creations + uploads)
        logger.debug(f"Reconciled plan: {plan!r}")
        return plan

    def _is_protected(self, entry: PathEntry) -> bool:
        if not self.ignore_patterns:
            return False
        paths = list(ancestors(entry.relative_path)) + [entry.relative_path]
        return any(matches_any("/".join(p), self.ignore_patterns) for p in paths)

    def _plan_deletions(
        self, local_map: dict[RelativePath, PathEntry], remote: Manifest
    ) -> list[Operation]:
        """Collect remote entries that are absent locally or changed kind."""
        scheduled: list[PathEntry] = []
        scheduled_dirs: set[RelativePath] = set()
        protected = [e.relative_path for e in remote if self._is_protected(e)]

        # Manifest order is pre-order, so an obsolete directory is always
        # seen before anything nested beneath it.
        for entry in remote:
            local_entry = local_map.get(entry.relative_path)
            if local_entry is not None and local_entry.kind == entry.kind:
                continue
            if self._is_protected(entry):
                logger.debug(f"Keeping protected remote entry: {entry.posix}")
                continue
            if entry.is_dir and any(
                is_beneath(p, entry.relative_path) for p in protected
            ):
                logger.debug(f"Keeping directory with protected content: {entry.posix}")
                continue
            if any(a in scheduled_dirs for a in ancestors(entry.relative_path)):
                continue
            scheduled.append(entry)
            if entry.is_dir:
                scheduled_dirs.add(entry.relative_path)

        scheduled.sort(key=lambda e: (e.depth, e.relative_path), reverse=True)
        return [
            Operation.delete_dir(e.relative_path)
            if e.is_dir
            else Operation.delete_file(e.relative_path)
            for e in scheduled
        ]

    def _plan_creations(
        self,
        local: Manifest,
        remote: Manifest,
        removed: set[RelativePath],
        removed_dirs: set[RelativePath],
    ) -> list[Operation]:
        """Collect local directories that will not exist remotely."""
        creations = []
        for entry in local.directories():
            path = entry.relative_path
            remote_entry = remote.get(path)
            will_exist = (
                remote_entry is not None
                and remote_entry.is_dir
                and path not in removed
                and not any(a in removed_dirs for a in ancestors(path))
            )
            if not will_exist:
                creations.append(entry)

        creations.sort(key=lambda e: (e.depth, e.relative_path))
        return [Operation.make_dir(e.relative_path) for e in creations]

    def _plan_uploads(self, local: Manifest) -> list[Operation]:
        """Upload every local file (full mirror)."""
        root = Path(local.root)
        files = sorted(local.files(), key=lambda e: (e.depth, e.relative_path))
        return [
            Operation.upload_file(
                root.joinpath(*e.relative_path), e.relative_path, e.size
            )
            for e in files
        ]


def reconcile(
    local: Manifest, remote: Manifest, ignore_patterns: Optional[list[str]] = None
) -> Plan:
    """Compute the plan that mirrors ``local`` onto ``remote``.

    Examples:
        >>> plan = reconcile(local_manifest, Manifest("/public_html"))
        >>> [op.describe() for op in plan]
        ['make_dir assets', 'upload_file index.html', 'upload_file assets/app.js']
    """
    return Reconciler(ignore_patterns).reconcile(local, remote)
