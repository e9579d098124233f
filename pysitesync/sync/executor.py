"""Plan execution against a transport."""

import logging
import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, NamedTuple, Optional

from ..exceptions import OperationError
from .models import RelativePath, is_beneath
from .operations import Operation, OperationType, Plan

if TYPE_CHECKING:
    from ..transports.base import Transport

logger = logging.getLogger(__name__)

CANCELLED = "cancelled"

ProgressCallback = Callable[[Operation, Optional[str]], None]


def _is_timeout(error: BaseException) -> bool:
    """Whether an error is, or was raised from, a socket timeout."""
    timeouts = (TimeoutError, socket.timeout)
    return isinstance(error, timeouts) or isinstance(error.__cause__, timeouts)


class OperationFailure(NamedTuple):
    """A failed operation and the description of its error."""

    operation: Operation
    error: str


@dataclass(frozen=True)
class RunResult:
    """Outcome of executing a plan.

    ``succeeded`` and ``failed`` keep plan order. The result is immutable
    once returned by the executor.
    """

    succeeded: tuple[Operation, ...] = ()
    """Operations applied successfully"""

    failed: tuple[OperationFailure, ...] = ()
    """Operations that failed, were short-circuited or were cancelled"""

    cancelled: bool = False
    """Whether execution stopped early because of a cancel request"""

    def _count(self, *types: OperationType) -> int:
        return sum(1 for op in self.succeeded if op.type in types)

    @property
    def created(self) -> int:
        return self._count(OperationType.MAKE_DIR)

    @property
    def deleted(self) -> int:
        return self._count(OperationType.DELETE_FILE, OperationType.DELETE_DIR)

    @property
    def uploaded(self) -> int:
        return self._count(OperationType.UPLOAD_FILE)

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary(self) -> dict:
        """Aggregate counts reported to the user."""
        return {
            "created": self.created,
            "deleted": self.deleted,
            "uploaded": self.uploaded,
            "failed": len(self.failed),
        }

    def raise_for_failures(self) -> None:
        """Raise OperationError if any operation failed.

        Raises:
            OperationError: Listing the first failures
        """
        if not self.failed:
            return
        details = "; ".join(
            f"{f.operation.describe()}: {f.error}" for f in self.failed[:5]
        )
        more = len(self.failed) - 5
        if more > 0:
            details += f" (and {more} more)"
        raise OperationError(f"{len(self.failed)} operation(s) failed: {details}")


class PlanExecutor:
    """Applies a plan's operations in order and records every outcome.

    A failing operation never aborts the run. If a directory cannot be
    created, later creations and uploads beneath it are recorded as failed
    without calling the transport.

    Runs of consecutive uploads are issued through a thread pool when
    ``max_workers`` is above one and the transport accepts concurrent
    calls. All other operations run one at a time.
    """

    def __init__(
        self,
        transport: "Transport",
        remote_root: str,
        max_workers: int = 1,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """Initialize plan executor.

        Args:
            transport: Connected transport
            remote_root: Remote directory the plan's paths are relative to
            max_workers: Upper bound on concurrent uploads
            cancel_event: When set, no further operations are issued
            progress_callback: Called as callback(operation, error) after each
                operation; error is None on success
        """
        self.transport = transport
        self.remote_root = remote_root
        self.max_workers = max_workers
        self.cancel_event = cancel_event or threading.Event()
        self.progress_callback = progress_callback

    @property
    def concurrent(self) -> bool:
        return self.max_workers > 1 and self.transport.supports_concurrent_operations

    def execute(self, plan: Plan, ensure_root: bool = False) -> RunResult:
        """Apply ``plan`` to the remote tree.

        Args:
            plan: Plan to apply
            ensure_root: Create the remote root (with parents) before the
                first operation; used when the root did not exist yet

        Returns:
            RunResult with every operation in either succeeded or failed
        """
        succeeded: list[Operation] = []
        failed: list[OperationFailure] = []
        failed_dirs: list[RelativePath] = []
        operations = list(plan)

        def record(op: Operation, error: Optional[str], notify: bool = True) -> None:
            if error is None:
                succeeded.append(op)
            else:
                failed.append(OperationFailure(op, error))
            if notify and self.progress_callback is not None:
                self.progress_callback(op, error)

        if ensure_root and any(not op.is_deletion for op in operations):
            error = self._create_root()
            if error is not None:
                for op in operations:
                    record(op, error)
                return RunResult(tuple(succeeded), tuple(failed))

        index = 0
        while index < len(operations) and not self.cancel_event.is_set():
            op = operations[index]

            if op.type == OperationType.UPLOAD_FILE and self.concurrent:
                end = index
                while (
                    end < len(operations)
                    and operations[end].type == OperationType.UPLOAD_FILE
                ):
                    end += 1
                batch = operations[index:end]
                outcomes = self._run_uploads(batch, failed_dirs)
                for batch_op, error in zip(batch, outcomes):
                    record(batch_op, error, notify=False)
                index = end
                continue

            error = self._blocked_by(op, failed_dirs)
            if error is None:
                error = self._apply(op)
            if error is not None and op.type == OperationType.MAKE_DIR:
                failed_dirs.append(op.path)
            record(op, error)
            index += 1

        cancelled = self.cancel_event.is_set() and (
            index < len(operations) or any(f.error == CANCELLED for f in failed)
        )
        if cancelled:
            logger.debug(f"Execution cancelled with {len(operations) - index} pending")
            for op in operations[index:]:
                record(op, CANCELLED)

        return RunResult(tuple(succeeded), tuple(failed), cancelled)

    def _create_root(self) -> Optional[str]:
        try:
            self.transport.make_dir(self.remote_root, recursive=True)
        except Exception as e:
            logger.debug(f"Cannot create remote root {self.remote_root}: {e}")
            return f"remote root {self.remote_root} could not be created: {e}"
        return None

    @staticmethod
    def _blocked_by(op: Operation, failed_dirs: list[RelativePath]) -> Optional[str]:
        """Return an error if ``op`` targets a directory that failed to appear."""
        if op.is_deletion:
            return None
        for directory in failed_dirs:
            if is_beneath(op.path, directory):
                return f"parent directory {'/'.join(directory)} was not created"
        return None

    def _apply(self, op: Operation) -> Optional[str]:
        """Run one operation; return None on success or the error text."""
        remote_path = op.remote_path(self.remote_root)
        start = time.time()
        try:
            if op.type == OperationType.MAKE_DIR:
                self.transport.make_dir(remote_path)
            elif op.type == OperationType.DELETE_FILE:
                self.transport.delete_file(remote_path)
            elif op.type == OperationType.DELETE_DIR:
                self.transport.delete_dir_recursive(remote_path)
            elif op.type == OperationType.UPLOAD_FILE:
                if op.local_path is None:
                    return "upload has no local source"
                self.transport.upload_file(op.local_path, remote_path)
        except Exception as e:
            elapsed = time.time() - start
            if _is_timeout(e):
                logger.debug(f"{op.describe()} timed out after {elapsed:.2f}s")
                return f"timed out: {e}" if str(e) else "timed out"
            logger.debug(f"{op.describe()} failed: {e}")
            return str(e) or type(e).__name__
        logger.debug(f"{op.describe()} took {time.time() - start:.2f}s")
        return None

    def _run_uploads(
        self, batch: list[Operation], failed_dirs: list[RelativePath]
    ) -> list[Optional[str]]:
        """Upload a batch concurrently; outcomes are returned in batch order.

        Uploads still queued when the cancel event is set are reported as
        cancelled; uploads already running are allowed to finish.
        """

        def run_one(op: Operation) -> Optional[str]:
            if self.cancel_event.is_set():
                return CANCELLED
            error = self._blocked_by(op, failed_dirs)
            if error is not None:
                return error
            return self._apply(op)

        logger.debug(f"Uploading {len(batch)} files with {self.max_workers} workers")
        results: dict[int, Optional[str]] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {pool.submit(run_one, op): i for i, op in enumerate(batch)}
            for future in as_completed(futures):
                i = futures[future]
                results[i] = future.result()
                if self.progress_callback is not None:
                    self.progress_callback(batch[i], results[i])
        return [results[i] for i in range(len(batch))]


def execute(
    plan: Plan,
    transport: "Transport",
    remote_root: str,
    max_workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
) -> RunResult:
    """Apply ``plan`` through ``transport`` and return the run result."""
    return PlanExecutor(transport, remote_root, max_workers, cancel_event).execute(plan)
