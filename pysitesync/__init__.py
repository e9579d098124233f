"""pysitesync - mirror a built static site onto remote hosting."""

from .config import DeployConfig, load_config
from .exceptions import (
    ConfigError,
    ConnectError,
    DeploymentInProgressError,
    OperationError,
    RemoteListError,
    ScanError,
    SiteSyncError,
    TransportError,
)

__version__ = "0.1.0"

__all__ = [
    "DeployConfig",
    "load_config",
    "SiteSyncError",
    "ConfigError",
    "ConnectError",
    "ScanError",
    "RemoteListError",
    "TransportError",
    "OperationError",
    "DeploymentInProgressError",
]
