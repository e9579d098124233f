"""Unit tests for the pysitesync CLI commands."""

import json
import os
import signal
import sys
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from pysitesync.cli import main
from pysitesync.transports.memory import MemoryTransport

ENV = {
    "PYSITESYNC_HOST": "example.com",
    "PYSITESYNC_USER": "deploy",
    "PYSITESYNC_PASSWORD": "hunter2",
}


@pytest.fixture
def runner():
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def site(tmp_path, monkeypatch):
    """Create a built site and run from its parent directory."""
    monkeypatch.chdir(tmp_path)
    root = tmp_path / "out"
    root.mkdir()
    (root / "index.html").write_bytes(b"0123456789")
    (root / "assets").mkdir()
    (root / "assets" / "app.js").write_bytes(b"x" * 20)
    return root


@pytest.fixture
def transport():
    """Patch the transport factory with a memory transport."""
    transport = MemoryTransport()
    with patch("pysitesync.cli.create_transport", return_value=transport):
        yield transport


class TestMainGroup:
    """Tests for the main CLI group."""

    def test_main_help(self, runner):
        """Test main help shows all commands."""
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "PySiteSync" in result.output
        assert "deploy" in result.output
        assert "ls" in result.output

    def test_deploy_help(self, runner):
        """Test deploy help documents the options."""
        result = runner.invoke(main, ["deploy", "--help"])
        assert result.exit_code == 0
        assert "--remote-root" in result.output
        assert "--dry-run" in result.output
        assert "--workers" in result.output


class TestDeployCommand:
    """Tests for the deploy command."""

    def test_first_deploy(self, runner, site, transport):
        """Test a successful deployment exits with 0 and reports counts."""
        result = runner.invoke(main, ["deploy", "--no-progress"], env=ENV)

        assert result.exit_code == 0, result.output
        assert "Deployment complete!" in result.output
        assert "Uploaded" in result.output
        assert transport.files["/public_html/index.html"] == b"0123456789"
        assert transport.closed

    def test_password_never_printed(self, runner, site, transport):
        """Test credentials do not leak into the output."""
        result = runner.invoke(main, ["-v", "deploy", "--no-progress"], env=ENV)

        assert result.exit_code == 0, result.output
        assert "hunter2" not in result.output

    def test_options_override_environment(self, runner, site, transport):
        """Test command line options take precedence."""
        result = runner.invoke(
            main,
            [
                "deploy",
                "out",
                "-r",
                "/www/site",
                "--host",
                "other.org",
                "--no-progress",
            ],
            env=ENV,
        )

        assert result.exit_code == 0, result.output
        assert "sftp://deploy@other.org:22/www/site" in result.output
        assert "/www/site/assets/app.js" in transport.files

    def test_with_progress_display(self, runner, site, transport):
        """Test the progress display does not break the run."""
        result = runner.invoke(main, ["deploy"], env=ENV)

        assert result.exit_code == 0, result.output
        assert "/public_html/assets/app.js" in transport.files

    def test_missing_configuration(self, runner, site, transport):
        """Test missing settings exit with 1 before connecting."""
        result = runner.invoke(main, ["deploy"], env={"PYSITESYNC_HOST": ""})

        assert result.exit_code == 1
        assert "Missing required settings" in result.output
        assert not transport.connected
        assert transport.calls == []

    def test_invalid_workers(self, runner, site, transport):
        """Test the worker count is bounded."""
        result = runner.invoke(main, ["deploy", "-j", "0"], env=ENV)
        assert result.exit_code == 1
        assert "Workers must be at least 1" in result.output

        result = runner.invoke(main, ["deploy", "-j", "100"], env=ENV)
        assert result.exit_code == 1
        assert "cannot exceed" in result.output

    def test_missing_local_root(self, runner, site, transport):
        """Test a scan error is fatal."""
        result = runner.invoke(main, ["deploy", "nope", "--no-progress"], env=ENV)

        assert result.exit_code == 1
        assert "Deployment failed" in result.output
        assert transport.closed

    def test_connect_error(self, runner, site, transport):
        """Test a connection failure exits with 1."""
        transport.connect_error = "Connection refused"

        result = runner.invoke(main, ["deploy", "--no-progress"], env=ENV)

        assert result.exit_code == 1
        assert "Connection refused" in result.output

    def test_partial_failure(self, runner, site, transport):
        """Test failed operations are listed and exit with 1."""
        transport.add_dir("/public_html")
        transport.fail("upload_file", "/public_html/index.html")

        result = runner.invoke(main, ["deploy", "--no-progress"], env=ENV)

        assert result.exit_code == 1
        assert "1 operation(s) failed" in result.output
        assert "upload_file index.html" in result.output
        assert "/public_html/assets/app.js" in transport.files

    def test_dry_run(self, runner, site, transport):
        """Test a dry run lists the plan and changes nothing."""
        result = runner.invoke(main, ["deploy", "--dry-run"], env=ENV)

        assert result.exit_code == 0, result.output
        assert "make_dir assets" in result.output
        assert "upload_file assets/app.js" in result.output
        assert "No changes were made" in result.output
        assert transport.files == {}

    def test_json_output(self, runner, site, transport):
        """Test the report can be emitted as JSON."""
        transport.add_file("/public_html/old.html", b"old")

        result = runner.invoke(main, ["--json", "deploy"], env=ENV)

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["created"] == 1
        assert data["deleted"] == 1
        assert data["uploaded"] == 2
        assert data["failed"] == 0
        assert data["failures"] == []
        assert data["dry_run"] is False

    def test_quiet(self, runner, site, transport):
        """Test quiet mode suppresses informational output."""
        result = runner.invoke(main, ["-q", "deploy"], env=ENV)

        assert result.exit_code == 0
        assert result.output.strip() == ""

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals only")
    def test_interrupt_cancels(self, runner, site, transport):
        """Test SIGINT stops the run and exits with 130."""

        def on_call(operation, path):
            if operation == "upload_file":
                os.kill(os.getpid(), signal.SIGINT)

        transport.on_call = on_call
        previous = signal.getsignal(signal.SIGINT)

        result = runner.invoke(main, ["deploy", "--no-progress"], env=ENV)

        assert result.exit_code == 130
        assert "cancelled" in result.output
        assert len([op for op, _ in transport.calls if op == "upload_file"]) == 1
        assert signal.getsignal(signal.SIGINT) is previous


    def test_allow_unknown_hosts_option(self, runner, site, transport):
        """Test the host key switch reaches the transport configuration."""
        with patch(
            "pysitesync.cli.create_transport", return_value=transport
        ) as factory:
            result = runner.invoke(
                main, ["deploy", "--allow-unknown-hosts", "--no-progress"], env=ENV
            )

        assert result.exit_code == 0, result.output
        assert factory.call_args.args[0].allow_unknown_hosts is True

    def test_host_keys_checked_by_default(self, runner, site, transport):
        """Test unknown host keys are refused unless explicitly allowed."""
        with patch(
            "pysitesync.cli.create_transport", return_value=transport
        ) as factory:
            result = runner.invoke(main, ["deploy", "--no-progress"], env=ENV)

        assert result.exit_code == 0, result.output
        assert factory.call_args.args[0].allow_unknown_hosts is False


class TestLsCommand:
    """Tests for the ls command."""

    def test_ls(self, runner, site, transport):
        """Test the remote tree is printed."""
        transport.add_file("/public_html/index.html", b"hello")
        transport.add_file("/public_html/assets/app.js", b"js")

        result = runner.invoke(main, ["ls"], env=ENV)

        assert result.exit_code == 0, result.output
        assert "index.html" in result.output
        assert "assets/app.js" in result.output
        assert transport.closed

    def test_ls_subdirectory_json(self, runner, site, transport):
        """Test listing a subdirectory as JSON."""
        transport.add_file("/public_html/assets/app.js", b"js")

        result = runner.invoke(main, ["--json", "ls", "assets"], env=ENV)

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == [
            {"path": "app.js", "kind": "file", "size": 2}
        ]

    def test_ls_empty(self, runner, site, transport):
        """Test an empty remote root."""
        result = runner.invoke(main, ["ls"], env=ENV)

        assert result.exit_code == 0
        assert "No entries" in result.output

    def test_ls_error(self, runner, site, transport):
        """Test a listing failure exits with 1."""
        transport.add_dir("/public_html")
        transport.fail("list_dir", "/public_html")

        result = runner.invoke(main, ["ls"], env=ENV)

        assert result.exit_code == 1
        assert "Listing failed" in result.output
