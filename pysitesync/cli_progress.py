"""CLI progress display for deployments.

This module provides a Rich-based progress display fed by the plan and
operation callbacks of the deployment driver.
"""

from typing import Optional

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from .sync.operations import Operation, OperationType, Plan
from .utils import format_size


class DeployProgressDisplay:
    """Rich-based progress display for plan execution.

    The bar counts operations; the trailing text shows how many uploads
    finished, the uploaded volume and the number of failures so far.

    Examples:
        >>> with DeployProgressDisplay() as display:
        ...     driver = DeploymentDriver(
        ...         config, progress_callback=display.on_operation
        ...     )
        ...     driver.on_plan = display.on_plan
        ...     driver.deploy()
    """

    def __init__(self) -> None:
        """Initialize the progress display."""
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None
        self._uploads_total = 0
        self._uploads_done = 0
        self._bytes_total = 0
        self._bytes_done = 0
        self._failures = 0

    def _format_status(self) -> str:
        """Format e.g. ``3/10 files, 1.5 KB/20.0 KB, 1 failed``."""
        status = (
            f"{self._uploads_done}/{self._uploads_total} files, "
            f"{format_size(self._bytes_done)}/{format_size(self._bytes_total)}"
        )
        if self._failures:
            status += f", {self._failures} failed"
        return status

    def on_plan(self, plan: Plan) -> None:
        """Size the progress bar once the plan is known."""
        uploads = plan.uploads
        self._uploads_total = len(uploads)
        self._bytes_total = plan.upload_bytes
        if self._progress is not None and self._task is not None:
            self._progress.update(
                self._task,
                description="Deploying",
                total=len(plan),
                completed=0,
                status=self._format_status(),
            )

    def on_operation(self, operation: Operation, error: Optional[str]) -> None:
        """Advance the bar for one finished operation."""
        if error is not None:
            self._failures += 1
        elif operation.type == OperationType.UPLOAD_FILE:
            self._uploads_done += 1
            self._bytes_done += operation.size or 0

        if self._progress is not None and self._task is not None:
            self._progress.update(
                self._task,
                advance=1,
                status=self._format_status(),
            )

    def __enter__(self) -> "DeployProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TaskProgressColumn(),
            TextColumn("[cyan]{task.fields[status]}"),
            TimeElapsedColumn(),
            refresh_per_second=4,
            transient=True,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task(
            "Scanning...", total=None, status="0/0 files, 0 B/0 B"
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None
