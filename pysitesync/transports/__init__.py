"""Transport adapters for remote file stores."""

from ..config import DeployConfig
from ..exceptions import ConfigError
from .base import RemoteEntry, Transport
from .ftp import FTPTransport
from .memory import MemoryTransport
from .sftp import SFTPTransport


def create_transport(config: DeployConfig) -> Transport:
    """Create the transport matching ``config.protocol``.

    The returned transport is not yet connected.

    Raises:
        ConfigError: If the protocol is not supported
    """
    if config.protocol == "sftp":
        return SFTPTransport(config)
    if config.protocol in ("ftp", "ftps"):
        return FTPTransport(config)
    raise ConfigError(f"Unsupported protocol: {config.protocol}")


__all__ = [
    "Transport",
    "RemoteEntry",
    "SFTPTransport",
    "FTPTransport",
    "MemoryTransport",
    "create_transport",
]
