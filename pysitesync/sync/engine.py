"""Deployment driver: orchestrates scan, list, reconcile and execute."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional

from ..config import DeployConfig
from ..exceptions import DeploymentInProgressError, SiteSyncError
from .executor import (
    CANCELLED,
    OperationFailure,
    PlanExecutor,
    ProgressCallback,
    RunResult,
)
from .lister import RemoteLister
from .models import Manifest
from .operations import Plan
from .reconciler import Reconciler
from .scanner import DirectoryScanner

if TYPE_CHECKING:
    from ..transports.base import Transport

logger = logging.getLogger(__name__)

TransportFactory = Callable[[DeployConfig], "Transport"]


class DeployState(str, Enum):
    """Lifecycle of one deployment run."""

    IDLE = "idle"
    CONNECTING = "connecting"
    SCANNING = "scanning"
    RECONCILING = "reconciling"
    EXECUTING = "executing"
    REPORTING = "reporting"
    DONE = "done"
    FAILED = "failed"


_active_targets: set[tuple[str, str, int, str]] = set()
_active_lock = threading.Lock()


@dataclass
class DeployReport:
    """Everything a caller needs to report on a finished deployment."""

    plan: Plan
    """The plan computed for this run"""

    result: RunResult = field(default_factory=RunResult)
    """Execution outcome (empty for dry runs)"""

    dry_run: bool = False
    """Whether execution was skipped"""

    elapsed: float = 0.0
    """Wall clock duration in seconds"""

    @property
    def ok(self) -> bool:
        return self.result.ok

    def summary(self) -> dict:
        return self.result.summary()

    def to_dict(self) -> dict:
        """JSON friendly form of the report."""
        data = self.summary()
        data["dry_run"] = self.dry_run
        data["cancelled"] = self.result.cancelled
        data["planned"] = self.plan.stats()
        data["failures"] = [
            {
                "operation": failure.operation.type.value,
                "path": failure.operation.posix,
                "error": failure.error,
            }
            for failure in self.result.failed
        ]
        return data


class DeploymentDriver:
    """Runs one deployment end to end.

    State machine::

        Idle -> Connecting -> Scanning -> Reconciling -> Executing
             -> Reporting -> Done

    ``Failed`` is reached from Connecting (ConnectError) or Scanning
    (ScanError, RemoteListError), and from any other state on an
    unexpected error. Individual operation failures are not fatal; they
    end up in the report. The transport session is closed on every exit
    path.

    Only one run per remote target may be active in the process at a time;
    a concurrent ``deploy`` raises DeploymentInProgressError.

    Examples:
        >>> driver = DeploymentDriver(load_config())
        >>> report = driver.deploy()
        >>> report.summary()
        {'created': 1, 'deleted': 0, 'uploaded': 2, 'failed': 0}
    """

    def __init__(
        self,
        config: DeployConfig,
        transport_factory: Optional[TransportFactory] = None,
        max_workers: int = 1,
        progress_callback: Optional[ProgressCallback] = None,
        on_plan: Optional[Callable[[Plan], None]] = None,
    ):
        """Initialize deployment driver.

        Args:
            config: Validated deployment settings
            transport_factory: Builds an unconnected transport from config
                (defaults to the protocol based factory)
            max_workers: Upper bound on concurrent listing and upload calls
            progress_callback: Forwarded to the executor
            on_plan: Called with the plan once it has been computed
        """
        if transport_factory is None:
            from ..transports import create_transport

            transport_factory = create_transport

        self.config = config
        self.transport_factory = transport_factory
        self.max_workers = max_workers
        self.progress_callback = progress_callback
        self.on_plan = on_plan
        self.state = DeployState.IDLE
        self._cancel_event = threading.Event()

    @property
    def is_running(self) -> bool:
        """Whether a run is active for this driver's remote target."""
        with _active_lock:
            return self.config.target_key in _active_targets

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Stop issuing new operations; in-flight operations may finish."""
        logger.debug("Cancellation requested")
        self._cancel_event.set()

    def _transition(self, state: DeployState) -> None:
        logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state

    def deploy(self, dry_run: bool = False) -> DeployReport:
        """Mirror the local root onto the remote root.

        Args:
            dry_run: Compute the plan but do not execute it

        Returns:
            DeployReport with the plan and the run result

        Raises:
            DeploymentInProgressError: If a run is already active for the
                same remote target
            ConnectError: If the session cannot be established
            ScanError: If the local root cannot be scanned
            RemoteListError: If the remote tree cannot be listed
        """
        key = self.config.target_key
        with _active_lock:
            if key in _active_targets:
                raise DeploymentInProgressError(self.config.target)
            _active_targets.add(key)

        self._cancel_event.clear()
        self.state = DeployState.IDLE
        try:
            return self._run(dry_run)
        except BaseException:
            self._transition(DeployState.FAILED)
            raise
        finally:
            with _active_lock:
                _active_targets.discard(key)

    def _run(self, dry_run: bool) -> DeployReport:
        start = time.time()

        self._transition(DeployState.CONNECTING)
        transport = self.transport_factory(self.config)
        with transport:
            self._transition(DeployState.SCANNING)
            local, remote = self._snapshot(transport)

            self._transition(DeployState.RECONCILING)
            plan = Reconciler(self.config.ignore).reconcile(local, remote)
            logger.debug(f"Plan: {plan.stats()}")
            if self.on_plan is not None:
                self.on_plan(plan)

            if dry_run:
                result = RunResult()
            elif self.cancelled:
                result = RunResult(
                    failed=tuple(OperationFailure(op, CANCELLED) for op in plan),
                    cancelled=True,
                )
            else:
                self._transition(DeployState.EXECUTING)
                executor = PlanExecutor(
                    transport,
                    self.config.remote_root,
                    max_workers=self.max_workers,
                    cancel_event=self._cancel_event,
                    progress_callback=self.progress_callback,
                )
                result = executor.execute(plan, ensure_root=len(remote) == 0)

        self._transition(DeployState.REPORTING)
        report = DeployReport(
            plan=plan, result=result, dry_run=dry_run, elapsed=time.time() - start
        )
        logger.debug(
            f"Deployment finished in {report.elapsed:.2f}s: {report.summary()}"
        )
        self._transition(DeployState.DONE)
        return report

    def _snapshot(self, transport: "Transport") -> tuple[Manifest, Manifest]:
        """Scan the local root and list the remote root concurrently."""
        scanner = DirectoryScanner(ignore_patterns=self.config.ignore)
        lister = RemoteLister(transport, max_workers=self.max_workers)

        with ThreadPoolExecutor(max_workers=2) as pool:
            local_future = pool.submit(scanner.scan_local, Path(self.config.local_root))
            remote_future = pool.submit(lister.list_tree, self.config.remote_root)
            try:
                local = local_future.result()
            except SiteSyncError:
                remote_future.cancel()
                raise
            remote = remote_future.result()

        logger.debug(f"Local entries: {len(local)}, remote entries: {len(remote)}")
        return local, remote
