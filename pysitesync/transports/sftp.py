"""SFTP transport built on paramiko."""

import logging
import posixpath
import stat
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import paramiko

from ..config import DeployConfig
from ..exceptions import ConnectError, TransportError
from ..sync.models import EntryKind
from .base import RemoteEntry, Transport

logger = logging.getLogger(__name__)


@contextmanager
def _translate_errors(action: str, path: str):
    """Re-raise paramiko and socket errors as TransportError."""
    try:
        yield
    except (OSError, paramiko.SSHException) as e:
        raise TransportError(f"{action} failed for {path}: {e}", path) from e


class SFTPTransport(Transport):
    """Transport over an SSH file transfer session.

    A single SFTP channel is not safe to drive from several threads, so
    calls are issued sequentially.
    """

    supports_concurrent_operations = False

    def __init__(self, config: DeployConfig):
        """Initialize SFTP transport.

        Args:
            config: Validated deployment settings
        """
        self.config = config
        self._ssh: Optional[paramiko.SSHClient] = None
        self._sftp: Optional[paramiko.SFTPClient] = None

    @property
    def sftp(self) -> paramiko.SFTPClient:
        if self._sftp is None:
            raise TransportError("SFTP session is not connected")
        return self._sftp

    def connect(self) -> None:
        config = self.config
        logger.debug(
            f"Connecting to {config.username}@{config.host}:{config.effective_port}"
        )
        client = paramiko.SSHClient()
        client.load_system_host_keys()
        if config.allow_unknown_hosts:
            client.set_missing_host_key_policy(paramiko.WarningPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.RejectPolicy())

        has_credential = bool(config.password or config.private_key_path)
        kwargs: dict = dict(
            hostname=config.host,
            port=config.effective_port,
            username=config.username,
            timeout=config.timeout,
            banner_timeout=config.timeout,
            auth_timeout=config.timeout,
            look_for_keys=not has_credential,
            allow_agent=not has_credential,
        )
        if config.private_key_path:
            kwargs["key_filename"] = str(Path(config.private_key_path).expanduser())
            if config.passphrase:
                kwargs["passphrase"] = config.passphrase
        if config.password:
            kwargs["password"] = config.password

        try:
            client.connect(**kwargs)
            sftp = client.open_sftp()
        except paramiko.AuthenticationException as e:
            client.close()
            raise ConnectError(f"Authentication failed for {config.target}") from e
        except (OSError, paramiko.SSHException) as e:
            client.close()
            raise ConnectError(f"Cannot connect to {config.target}: {e}") from e

        channel = sftp.get_channel()
        if channel is not None:
            channel.settimeout(config.timeout)

        self._ssh = client
        self._sftp = sftp
        logger.debug("SFTP session established")

    def close(self) -> None:
        if self._sftp is not None:
            self._sftp.close()
            self._sftp = None
        if self._ssh is not None:
            self._ssh.close()
            self._ssh = None
            logger.debug("SFTP session closed")

    def list_dir(self, path: str) -> list[RemoteEntry]:
        try:
            attrs = self.sftp.listdir_attr(path)
        except FileNotFoundError:
            return []
        except (OSError, paramiko.SSHException) as e:
            raise TransportError(f"list failed for {path}: {e}", path) from e

        entries = []
        for attr in attrs:
            if attr.filename in (".", ".."):
                continue
            if attr.st_mode is not None and stat.S_ISDIR(attr.st_mode):
                entries.append(RemoteEntry(attr.filename, EntryKind.DIRECTORY))
            else:
                entries.append(
                    RemoteEntry(attr.filename, EntryKind.FILE, attr.st_size)
                )
        return entries

    def _is_dir(self, path: str) -> Optional[bool]:
        """Return True/False for an existing path, None if it is missing."""
        try:
            details = self.sftp.stat(path)
        except FileNotFoundError:
            return None
        return details.st_mode is not None and stat.S_ISDIR(details.st_mode)

    def make_dir(self, path: str, recursive: bool = False) -> None:
        with _translate_errors("mkdir", path):
            if not recursive:
                self.sftp.mkdir(path)
                return

            current = "/" if path.startswith("/") else ""
            for part in [p for p in path.split("/") if p]:
                current = posixpath.join(current, part) if current else part
                is_dir = self._is_dir(current)
                if is_dir is None:
                    self.sftp.mkdir(current)
                elif not is_dir:
                    raise TransportError(f"Not a directory: {current}", path)

    def delete_file(self, path: str) -> None:
        with _translate_errors("delete", path):
            self.sftp.remove(path)

    def delete_dir_recursive(self, path: str) -> None:
        with _translate_errors("rmdir", path):
            for attr in self.sftp.listdir_attr(path):
                child = posixpath.join(path, attr.filename)
                if attr.st_mode is not None and stat.S_ISDIR(attr.st_mode):
                    self.delete_dir_recursive(child)
                else:
                    self.sftp.remove(child)
            self.sftp.rmdir(path)

    def upload_file(self, local_path: Path, remote_path: str) -> None:
        with _translate_errors("upload", remote_path):
            self.sftp.put(str(local_path), remote_path)
