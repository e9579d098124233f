"""CLI interface for pysitesync."""

import logging
import signal
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional

import click

from .cli_progress import DeployProgressDisplay
from .config import PROTOCOLS, DeployConfig, load_config
from .exceptions import SiteSyncError
from .output import OutputFormatter
from .sync import DeploymentDriver, DeployReport, RemoteLister
from .sync.models import split_path
from .transports import create_transport
from .utils import MAX_WORKERS, format_size, join_remote

logger = logging.getLogger(__name__)


@click.group()
@click.option(
    "--config",
    "-c",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON config file (default: ./pysitesync.json if present)",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pysitesync")
@click.pass_context
def main(
    ctx: Any,
    config_file: Optional[Path],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """PySiteSync - Mirror a built static site onto remote hosting."""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pysitesync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)
        logging.getLogger("paramiko").setLevel(logging.WARNING)


def _load_config(ctx: Any, overrides: dict[str, Any]) -> DeployConfig:
    """Load configuration or exit with an error message."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        return load_config(config_file=ctx.obj["config_file"], overrides=overrides)
    except SiteSyncError as e:
        out.error(f"Configuration error: {e}")
        ctx.exit(1)
        raise  # Unreachable, ctx.exit raises


@contextmanager
def _cancel_on_signals(driver: DeploymentDriver, out: OutputFormatter):
    """Turn SIGINT/SIGTERM into a graceful cancel for the duration of a run."""

    def handler(signum, frame):
        if not driver.cancelled:
            out.warning("Interrupted - finishing in-flight operations...")
        driver.cancel()

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[sig] = signal.signal(sig, handler)
        except ValueError:
            # Not in the main thread; signals stay with their owner
            logger.debug(f"Cannot install handler for {sig}")
    try:
        yield
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)


def _display_plan(out: OutputFormatter, report: DeployReport) -> None:
    """Display the computed plan."""
    stats = report.plan.stats()
    out.info("Deployment plan:")
    out.info(f"  ✗ Delete: {stats['deletions']} path(s)")
    out.info(f"  + Create: {stats['creations']} director(y/ies)")
    out.info(
        f"  ↑ Upload: {stats['uploads']} file(s), "
        f"{format_size(stats['upload_bytes'])}"
    )
    if report.dry_run:
        out.print("")
        for op in report.plan:
            out.info(f"  {op.describe()}")
    out.print("")


def _display_report(out: OutputFormatter, report: DeployReport) -> None:
    """Display the final counts and every failed operation."""
    summary = report.summary()
    if report.dry_run:
        out.success("Dry run complete! No changes were made.")
        return

    if report.result.cancelled:
        out.warning("Deployment cancelled before all operations were issued")
    elif report.ok:
        out.success("Deployment complete!")

    out.print_summary(
        "Summary",
        [
            ("Created", str(summary["created"])),
            ("Deleted", str(summary["deleted"])),
            ("Uploaded", str(summary["uploaded"])),
            ("Failed", str(summary["failed"])),
            ("Elapsed", f"{report.elapsed:.1f}s"),
        ],
    )

    if report.result.failed:
        out.error(f"{summary['failed']} operation(s) failed:")
        for failure in report.result.failed:
            out.error(f"  {failure.operation.describe()}: {failure.error}")


@main.command()
@click.argument("local_root", required=False, type=click.Path(file_okay=False))
@click.option("--remote-root", "-r", help="Remote directory to mirror into")
@click.option("--host", help="Remote host name")
@click.option("--port", type=int, help="Remote port (default: 22 sftp, 21 ftp)")
@click.option("--user", "-u", "username", help="Login name")
@click.option(
    "--protocol",
    type=click.Choice(PROTOCOLS),
    help="Transfer protocol (default: sftp)",
)
@click.option(
    "--key",
    "private_key_path",
    type=click.Path(dir_okay=False),
    help="Private key file for sftp",
)
@click.option("--timeout", type=float, help="Network timeout per call in seconds")
@click.option(
    "--allow-unknown-hosts",
    is_flag=True,
    help="Accept SSH host keys missing from known_hosts",
)
@click.option(
    "--workers",
    "-j",
    type=int,
    default=1,
    help="Number of parallel workers (default: 1)",
)
@click.option(
    "--dry-run", is_flag=True, help="Show what would change without changing it"
)
@click.option("--no-progress", is_flag=True, help="Disable progress bars")
@click.pass_context
def deploy(
    ctx: Any,
    local_root: Optional[str],
    remote_root: Optional[str],
    host: Optional[str],
    port: Optional[int],
    username: Optional[str],
    protocol: Optional[str],
    private_key_path: Optional[str],
    timeout: Optional[float],
    allow_unknown_hosts: bool,
    workers: int,
    dry_run: bool,
    no_progress: bool,
) -> None:
    """Mirror LOCAL_ROOT onto the remote root.

    Remote files and directories that do not exist locally are deleted;
    every local file is uploaded. Credentials are read from
    PYSITESYNC_PASSWORD, a password file or a private key, never from the
    command line.

    Examples:
        pysitesync deploy out --host example.com -u deploy -r /public_html
        pysitesync deploy --dry-run              # Preview the plan
        pysitesync deploy -j 4                   # Upload with 4 workers
    """
    out: OutputFormatter = ctx.obj["out"]

    if workers < 1:
        out.error("Workers must be at least 1")
        ctx.exit(1)
    if workers > MAX_WORKERS:
        out.error(f"Workers cannot exceed {MAX_WORKERS}")
        ctx.exit(1)

    config = _load_config(
        ctx,
        {
            "local_root": local_root,
            "remote_root": remote_root,
            "host": host,
            "port": port,
            "username": username,
            "protocol": protocol,
            "private_key_path": private_key_path,
            "timeout": timeout,
            "allow_unknown_hosts": allow_unknown_hosts or None,
        },
    )

    if not out.quiet:
        out.info(f"Target: {config.target}")
        out.info(f"Local root: {config.local_root}")
        if dry_run:
            out.info("Dry run: No changes will be made")
        out.print("")

    driver = DeploymentDriver(
        config,
        transport_factory=create_transport,
        max_workers=workers,
    )

    show_progress = not (no_progress or dry_run or out.quiet or out.json_output)
    try:
        with _cancel_on_signals(driver, out):
            if show_progress:
                with DeployProgressDisplay() as display:
                    driver.progress_callback = display.on_operation
                    driver.on_plan = display.on_plan
                    report = driver.deploy(dry_run=dry_run)
            else:
                report = driver.deploy(dry_run=dry_run)
    except SiteSyncError as e:
        out.error(f"Deployment failed: {e}")
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json(report.to_dict())
    else:
        _display_plan(out, report)
        _display_report(out, report)

    if report.result.cancelled:
        ctx.exit(130)  # Standard exit code for SIGINT
    if not report.ok:
        ctx.exit(1)


@main.command()
@click.argument("remote_path", required=False)
@click.option("--host", help="Remote host name")
@click.option("--port", type=int, help="Remote port")
@click.option("--user", "-u", "username", help="Login name")
@click.option("--protocol", type=click.Choice(PROTOCOLS), help="Transfer protocol")
@click.option(
    "--key",
    "private_key_path",
    type=click.Path(dir_okay=False),
    help="Private key file for sftp",
)
@click.option(
    "--allow-unknown-hosts",
    is_flag=True,
    help="Accept SSH host keys missing from known_hosts",
)
@click.pass_context
def ls(
    ctx: Any,
    remote_path: Optional[str],
    host: Optional[str],
    port: Optional[int],
    username: Optional[str],
    protocol: Optional[str],
    private_key_path: Optional[str],
    allow_unknown_hosts: bool,
) -> None:
    """List the remote tree.

    REMOTE_PATH: Directory to list, relative to the remote root
    (default: the remote root itself).
    """
    out: OutputFormatter = ctx.obj["out"]
    config = _load_config(
        ctx,
        {
            "host": host,
            "port": port,
            "username": username,
            "protocol": protocol,
            "private_key_path": private_key_path,
            "allow_unknown_hosts": allow_unknown_hosts or None,
        },
    )

    root = config.remote_root
    if remote_path:
        root = join_remote(root, split_path(remote_path))

    try:
        with create_transport(config) as transport:
            manifest = RemoteLister(transport).list_tree(root)
    except SiteSyncError as e:
        out.error(f"Listing failed: {e}")
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json(
            [
                {"path": e.posix, "kind": e.kind.value, "size": e.size}
                for e in manifest
            ]
        )
        return

    if len(manifest) == 0:
        out.info(f"No entries under {root}")
        return

    out.print_table(
        root,
        ["Kind", "Size", "Path"],
        [
            (
                "dir" if e.is_dir else "file",
                "" if e.size is None else format_size(e.size),
                e.posix + ("/" if e.is_dir else ""),
            )
            for e in manifest
        ],
    )


if __name__ == "__main__":
    main()
