"""Tests for the deployment driver."""

import tempfile
import threading
from pathlib import Path
from unittest.mock import Mock

import pytest

from pysitesync.config import DeployConfig
from pysitesync.exceptions import (
    ConnectError,
    DeploymentInProgressError,
    RemoteListError,
    ScanError,
)
from pysitesync.sync import DeploymentDriver, DeployState
from pysitesync.sync.executor import CANCELLED
from pysitesync.transports.memory import MemoryTransport


class TestDeploymentDriver:
    """Test DeploymentDriver functionality."""

    @pytest.fixture
    def temp_dir(self):
        """Create a temporary directory for testing."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    @pytest.fixture
    def site(self, temp_dir):
        """Create a built site with one asset."""
        root = temp_dir / "out"
        root.mkdir()
        (root / "index.html").write_bytes(b"0123456789")
        (root / "assets").mkdir()
        (root / "assets" / "app.js").write_bytes(b"x" * 20)
        return root

    @pytest.fixture
    def transport(self):
        """Create a memory transport."""
        return MemoryTransport()

    @pytest.fixture
    def config(self, site):
        """Create a deployment config for the temporary site."""
        return DeployConfig(
            host="example.com",
            username="deploy",
            password="secret",
            remote_root="/public_html",
            local_root=str(site),
        ).validate()

    def _driver(self, config, transport, **kwargs) -> DeploymentDriver:
        return DeploymentDriver(config, transport_factory=lambda c: transport, **kwargs)

    def test_first_deploy(self, config, transport):
        """Test deploying into a missing remote root."""
        driver = self._driver(config, transport)

        report = driver.deploy()

        assert report.summary() == {
            "created": 1,
            "deleted": 0,
            "uploaded": 2,
            "failed": 0,
        }
        assert report.ok
        assert driver.state == DeployState.DONE
        assert transport.files["/public_html/index.html"] == b"0123456789"
        assert transport.exists("/public_html/assets")

    def test_stale_removal(self, config, transport, site):
        """Test obsolete remote files and directories are removed."""
        (site / "assets" / "app.js").unlink()
        (site / "assets").rmdir()
        transport.add_file("/public_html/index.html", b"old")
        transport.add_file("/public_html/old.html", b"old")
        transport.add_file("/public_html/stale/dir/file.txt", b"old")

        report = self._driver(config, transport).deploy()

        assert report.summary()["deleted"] == 2
        assert report.summary()["uploaded"] == 1
        assert set(transport.files) == {"/public_html/index.html"}
        assert transport.dirs == {"/", "/public_html"}
        assert ("delete_file", "/public_html/stale/dir/file.txt") not in (
            transport.calls
        )

    def test_convergence_and_idempotence(self, config, transport):
        """Test a second run only re-uploads files."""
        self._driver(config, transport).deploy()
        transport.calls.clear()

        report = self._driver(config, transport).deploy()

        assert report.summary() == {
            "created": 0,
            "deleted": 0,
            "uploaded": 2,
            "failed": 0,
        }
        mutating = [op for op, _ in transport.calls if op != "list_dir"]
        assert mutating == ["upload_file", "upload_file"]

    def test_connect_error(self, config, transport):
        """Test a failed connection ends in Failed without listing."""
        transport.connect_error = "Connection refused"
        driver = self._driver(config, transport)

        with pytest.raises(ConnectError, match="Connection refused"):
            driver.deploy()

        assert driver.state == DeployState.FAILED
        assert transport.calls == []

    def test_scan_error(self, config, transport):
        """Test a missing local root fails and closes the session."""
        config.local_root = str(Path(config.local_root) / "missing")
        driver = self._driver(config, transport)

        with pytest.raises(ScanError):
            driver.deploy()

        assert driver.state == DeployState.FAILED
        assert transport.closed
        assert not any(op != "list_dir" for op, _ in transport.calls)

    def test_remote_list_error(self, config, transport):
        """Test a failed listing is fatal and nothing is mutated."""
        transport.add_dir("/public_html")
        transport.fail("list_dir", "/public_html")

        with pytest.raises(RemoteListError):
            self._driver(config, transport).deploy()

        assert transport.closed
        assert transport.calls == [("list_dir", "/public_html")]

    def test_transport_closed_after_success(self, config, transport):
        """Test the session is closed when the run completes."""
        self._driver(config, transport).deploy()

        assert transport.closed
        assert not transport.connected

    def test_partial_failure_is_reported(self, config, transport):
        """Test operation failures end up in the report, not as exceptions."""
        transport.add_dir("/public_html")
        transport.fail("upload_file", "/public_html/index.html")

        driver = self._driver(config, transport)
        report = driver.deploy()

        assert not report.ok
        assert driver.state == DeployState.DONE
        data = report.to_dict()
        assert data["failed"] == 1
        assert data["failures"][0]["operation"] == "upload_file"
        assert data["failures"][0]["path"] == "index.html"
        assert transport.files["/public_html/assets/app.js"] == b"x" * 20

    def test_dry_run(self, config, transport):
        """Test a dry run computes the plan without mutating the remote."""
        report = self._driver(config, transport).deploy(dry_run=True)

        assert report.dry_run
        assert [op.describe() for op in report.plan] == [
            "make_dir assets",
            "upload_file index.html",
            "upload_file assets/app.js",
        ]
        assert report.summary()["uploaded"] == 0
        assert transport.files == {}
        assert all(op == "list_dir" for op, _ in transport.calls)

    def test_on_plan_and_progress_callbacks(self, config, transport):
        """Test the callbacks receive the plan and every operation."""
        on_plan = Mock()
        progress = Mock()

        self._driver(
            config, transport, on_plan=on_plan, progress_callback=progress
        ).deploy()

        on_plan.assert_called_once()
        assert len(on_plan.call_args.args[0]) == 3
        assert progress.call_count == 3

    def test_ignore_patterns(self, config, transport, site):
        """Test ignored paths are neither uploaded nor deleted."""
        (site / "app.js.map").write_text("{}")
        transport.add_file("/public_html/.htaccess", b"rules")
        config.ignore = ["*.map", ".htaccess"]

        self._driver(config, transport).deploy()

        assert "/public_html/.htaccess" in transport.files
        assert "/public_html/app.js.map" not in transport.files

    def test_protected_file_in_obsolete_directory(self, config, transport, site):
        """Test an ignored file survives when its directory is not local."""
        transport.add_file("/public_html/stats/.htaccess", b"rules")
        transport.add_file("/public_html/stats/old.txt", b"old")
        config.ignore = [".htaccess"]

        report = self._driver(config, transport).deploy()

        assert report.result.ok
        assert transport.files["/public_html/stats/.htaccess"] == b"rules"
        assert "/public_html/stats/old.txt" not in transport.files
        assert "/public_html/stats" in transport.dirs

    def test_concurrent_deploy(self, config, transport):
        """Test the parallel path converges to the same tree."""
        report = self._driver(config, transport, max_workers=4).deploy()

        assert report.ok
        assert set(transport.files) == {
            "/public_html/index.html",
            "/public_html/assets/app.js",
        }

    def test_reentrant_deploy_rejected(self, config, site):
        """Test a second run against the same target is rejected."""
        entered = threading.Event()
        release = threading.Event()

        def on_call(operation, path):
            if operation == "upload_file":
                entered.set()
                release.wait(5)

        transport = MemoryTransport(on_call=on_call)
        driver = self._driver(config, transport)
        worker = threading.Thread(target=driver.deploy)
        worker.start()
        try:
            assert entered.wait(5)
            assert driver.is_running
            other = self._driver(config, MemoryTransport())
            with pytest.raises(DeploymentInProgressError):
                other.deploy()
        finally:
            release.set()
            worker.join(5)

        assert not driver.is_running

    def test_cancel_during_execution(self, config, transport):
        """Test cancellation marks pending operations as cancelled."""
        driver = self._driver(config, transport)

        def on_call(operation, path):
            if operation == "make_dir" and path == "/public_html/assets":
                driver.cancel()

        transport.on_call = on_call

        report = driver.deploy()

        assert report.result.cancelled
        assert not report.ok
        assert [f.error for f in report.result.failed] == [CANCELLED, CANCELLED]
        assert report.summary()["created"] == 1

