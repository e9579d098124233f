"""Custom exceptions for pysitesync."""


class SiteSyncError(Exception):
    """Base exception for all pysitesync errors."""

    pass


class ConfigError(SiteSyncError):
    """Raised when required settings are missing or invalid."""

    pass


class ConnectError(SiteSyncError):
    """Raised when a transport session cannot be established."""

    pass


class ScanError(SiteSyncError):
    """Raised when the local root cannot be scanned."""

    pass


class RemoteListError(SiteSyncError):
    """Raised when the remote tree cannot be listed completely."""

    pass


class TransportError(SiteSyncError):
    """Raised by transports when a remote call fails."""

    def __init__(self, message: str, path: str = ""):
        self.path = path
        super().__init__(message)


class OperationError(SiteSyncError):
    """A single planned operation failed during execution."""

    pass


class DeploymentInProgressError(SiteSyncError):
    """Raised when a deployment is already running against the same target."""

    def __init__(self, target: str):
        self.target = target
        super().__init__(f"A deployment is already running for {target}")
