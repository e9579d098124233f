"""FTP and explicit FTPS transport built on ftplib."""

import ftplib
import logging
import posixpath
from pathlib import Path
from typing import Optional

from ..config import DeployConfig
from ..exceptions import ConnectError, TransportError
from ..sync.models import EntryKind
from .base import RemoteEntry, Transport

logger = logging.getLogger(__name__)


def _is_not_found(error: Exception) -> bool:
    """FTP servers report a missing path as a permanent 550 reply."""
    return isinstance(error, ftplib.error_perm) and str(error).startswith("550")


class FTPTransport(Transport):
    """Transport over a plain FTP or explicit TLS (FTPS) control connection.

    Listings use MLSD. Servers without MLSD support fall back to NLST plus
    a CWD attempt per entry to tell directories from files.
    """

    supports_concurrent_operations = False

    def __init__(self, config: DeployConfig):
        """Initialize FTP transport.

        Args:
            config: Validated deployment settings (protocol ftp or ftps)
        """
        self.config = config
        self._ftp: Optional[ftplib.FTP] = None
        self._use_mlsd = True

    @property
    def ftp(self) -> ftplib.FTP:
        if self._ftp is None:
            raise TransportError("FTP session is not connected")
        return self._ftp

    def connect(self) -> None:
        config = self.config
        logger.debug(
            f"Connecting to {config.protocol}://{config.host}:{config.effective_port}"
        )
        ftp: ftplib.FTP
        if config.protocol == "ftps":
            ftp = ftplib.FTP_TLS(timeout=config.timeout)
        else:
            ftp = ftplib.FTP(timeout=config.timeout)

        try:
            ftp.connect(config.host or "", config.effective_port)
            ftp.login(config.username or "", config.password or "")
            if isinstance(ftp, ftplib.FTP_TLS):
                ftp.prot_p()
        except ftplib.error_perm as e:
            ftp.close()
            raise ConnectError(f"Login failed for {config.target}: {e}") from e
        except ftplib.all_errors as e:
            ftp.close()
            raise ConnectError(f"Cannot connect to {config.target}: {e}") from e

        self._ftp = ftp
        logger.debug("FTP session established")

    def close(self) -> None:
        if self._ftp is None:
            return
        try:
            self._ftp.quit()
        except ftplib.all_errors as e:
            logger.debug(f"QUIT failed, closing socket: {e}")
            self._ftp.close()
        self._ftp = None
        logger.debug("FTP session closed")

    def list_dir(self, path: str) -> list[RemoteEntry]:
        try:
            if self._use_mlsd:
                try:
                    return self._list_mlsd(path)
                except ftplib.error_perm as e:
                    if _is_not_found(e):
                        raise
                    logger.debug(f"MLSD unsupported ({e}), falling back to NLST")
                    self._use_mlsd = False
            return self._list_nlst(path)
        except ftplib.all_errors as e:
            if _is_not_found(e):
                return []
            raise TransportError(f"list failed for {path}: {e}", path) from e

    def _list_mlsd(self, path: str) -> list[RemoteEntry]:
        entries = []
        for name, facts in self.ftp.mlsd(path, facts=["type", "size"]):
            kind = facts.get("type", "").lower()
            if kind in ("cdir", "pdir") or name in (".", ".."):
                continue
            if kind == "dir":
                entries.append(RemoteEntry(name, EntryKind.DIRECTORY))
                continue
            # Links and other OS specific types (OS.unix=symlink) are removed
            # with DELE, so they are listed as files.
            size = facts.get("size")
            entries.append(
                RemoteEntry(name, EntryKind.FILE, int(size) if size else None)
            )
        return entries

    def _list_nlst(self, path: str) -> list[RemoteEntry]:
        entries = []
        current = self.ftp.pwd()
        try:
            for raw in self.ftp.nlst(path):
                name = posixpath.basename(raw.rstrip("/"))
                if name in (".", "..", ""):
                    continue
                child = posixpath.join(path, name)
                try:
                    self.ftp.cwd(child)
                    entries.append(RemoteEntry(name, EntryKind.DIRECTORY))
                except ftplib.error_perm:
                    try:
                        size = self.ftp.size(child)
                    except ftplib.error_perm:
                        size = None
                    entries.append(RemoteEntry(name, EntryKind.FILE, size))
        finally:
            self.ftp.cwd(current)
        return entries

    def make_dir(self, path: str, recursive: bool = False) -> None:
        try:
            if not recursive:
                self.ftp.mkd(path)
                return
            current = "/" if path.startswith("/") else ""
            for part in [p for p in path.split("/") if p]:
                current = posixpath.join(current, part) if current else part
                try:
                    self.ftp.mkd(current)
                except ftplib.error_perm:
                    # Already there, as long as it is a directory
                    pwd = self.ftp.pwd()
                    self.ftp.cwd(current)
                    self.ftp.cwd(pwd)
        except ftplib.all_errors as e:
            raise TransportError(f"mkdir failed for {path}: {e}", path) from e

    def delete_file(self, path: str) -> None:
        try:
            self.ftp.delete(path)
        except ftplib.all_errors as e:
            raise TransportError(f"delete failed for {path}: {e}", path) from e

    def delete_dir_recursive(self, path: str) -> None:
        for entry in self.list_dir(path):
            child = posixpath.join(path, entry.name)
            if entry.kind == EntryKind.DIRECTORY:
                self.delete_dir_recursive(child)
            else:
                self.delete_file(child)
        try:
            self.ftp.rmd(path)
        except ftplib.all_errors as e:
            raise TransportError(f"rmdir failed for {path}: {e}", path) from e

    def upload_file(self, local_path: Path, remote_path: str) -> None:
        try:
            with open(local_path, "rb") as f:
                self.ftp.storbinary(f"STOR {remote_path}", f)
        except ftplib.all_errors as e:
            raise TransportError(
                f"upload failed for {remote_path}: {e}", remote_path
            ) from e
