"""Configuration loading for deployments.

Settings are merged from three sources, lowest precedence first:

1. a JSON config file (``pysitesync.json`` in the working directory or the
   path given with ``--config``),
2. ``PYSITESYNC_*`` environment variables,
3. explicit command line options.

Secrets never come from the JSON file. Passwords are read from the
environment or from a separate secret file referenced by ``passwordFile``.
"""

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

from .exceptions import ConfigError
from .utils import (
    DEFAULT_FTP_PORT,
    DEFAULT_LOCAL_ROOT,
    DEFAULT_REMOTE_ROOT,
    DEFAULT_SFTP_PORT,
    DEFAULT_TIMEOUT,
    normalize_remote_root,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE_NAME = "pysitesync.json"

PROTOCOLS = ("sftp", "ftp", "ftps")

ENV_PREFIX = "PYSITESYNC_"

# JSON key -> DeployConfig attribute
_FILE_KEYS = {
    "protocol": "protocol",
    "host": "host",
    "port": "port",
    "username": "username",
    "user": "username",
    "privateKeyPath": "private_key_path",
    "passwordFile": "password_file",
    "remoteRoot": "remote_root",
    "localRoot": "local_root",
    "timeout": "timeout",
    "ignore": "ignore",
    "allowUnknownHosts": "allow_unknown_hosts",
}

# Keys that must never be committed to a config file
_SECRET_FILE_KEYS = ("password", "passphrase")

# Environment variable suffix -> DeployConfig attribute
_ENV_KEYS = {
    "PROTOCOL": "protocol",
    "HOST": "host",
    "PORT": "port",
    "USER": "username",
    "PASSWORD": "password",
    "PASSWORD_FILE": "password_file",
    "PRIVATE_KEY_PATH": "private_key_path",
    "PASSPHRASE": "passphrase",
    "REMOTE_ROOT": "remote_root",
    "LOCAL_ROOT": "local_root",
    "TIMEOUT": "timeout",
    "ALLOW_UNKNOWN_HOSTS": "allow_unknown_hosts",
}


@dataclass
class DeployConfig:
    """Validated settings for one deployment target."""

    host: Optional[str] = None
    """Remote host name"""

    username: Optional[str] = None
    """Login name on the remote host"""

    protocol: str = "sftp"
    """Transport protocol: sftp, ftp or ftps"""

    port: Optional[int] = None
    """Remote port (defaults to 22 for sftp, 21 for ftp/ftps)"""

    password: Optional[str] = field(default=None, repr=False)
    """Login password"""

    password_file: Optional[str] = None
    """Path of a secret file holding the password"""

    private_key_path: Optional[str] = None
    """Private key file for sftp authentication"""

    passphrase: Optional[str] = field(default=None, repr=False)
    """Passphrase for the private key"""

    remote_root: str = DEFAULT_REMOTE_ROOT
    """Remote directory that mirrors the local root"""

    local_root: str = DEFAULT_LOCAL_ROOT
    """Locally built site directory"""

    timeout: float = DEFAULT_TIMEOUT
    """Per-call network timeout in seconds"""

    ignore: list[str] = field(default_factory=list)
    """Glob patterns excluded from the mirror"""

    allow_unknown_hosts: bool = False
    """Accept SSH host keys missing from known_hosts (sftp only)"""

    @property
    def effective_port(self) -> int:
        """Port to connect to, falling back to the protocol default."""
        if self.port is not None:
            return self.port
        return DEFAULT_SFTP_PORT if self.protocol == "sftp" else DEFAULT_FTP_PORT

    @property
    def target(self) -> str:
        """Human readable description of the remote target (no secrets)."""
        return (
            f"{self.protocol}://{self.username or ''}@{self.host or ''}:"
            f"{self.effective_port}{self.remote_root}"
        )

    @property
    def target_key(self) -> tuple[str, str, int, str]:
        """Key identifying the remote root across runs."""
        return (self.protocol, self.host or "", self.effective_port, self.remote_root)

    def validate(self) -> "DeployConfig":
        """Check that every required setting is present and well formed.

        Returns:
            self, to allow chaining

        Raises:
            ConfigError: If any setting is missing or invalid
        """
        self.protocol = (self.protocol or "sftp").lower()
        if self.protocol not in PROTOCOLS:
            raise ConfigError(
                f"Unknown protocol '{self.protocol}'. "
                f"Expected one of: {', '.join(PROTOCOLS)}"
            )

        if self.password is None and self.password_file:
            self.password = _read_secret_file(self.password_file)

        missing = []
        if not self.host:
            missing.append("host")
        if not self.username:
            missing.append("username")
        has_key = self.protocol == "sftp" and bool(self.private_key_path)
        if not self.password and not has_key:
            missing.append(
                "password or private key"
                if self.protocol == "sftp"
                else "password"
            )
        if missing:
            raise ConfigError(f"Missing required settings: {', '.join(missing)}")

        if self.port is not None:
            self.port = _coerce_int("port", self.port)
            if not 0 < self.port < 65536:
                raise ConfigError(f"Port out of range: {self.port}")

        self.timeout = _coerce_float("timeout", self.timeout)
        if self.timeout <= 0:
            raise ConfigError("Timeout must be positive")

        self.allow_unknown_hosts = _coerce_bool(
            "allow_unknown_hosts", self.allow_unknown_hosts
        )

        if not self.remote_root:
            raise ConfigError("Remote root must not be empty")
        self.remote_root = normalize_remote_root(self.remote_root)

        if not self.local_root:
            raise ConfigError("Local root must not be empty")

        return self


def _read_secret_file(path: str) -> str:
    """Read a secret from a file, stripping surrounding whitespace."""
    try:
        return Path(path).expanduser().read_text(encoding="utf-8").strip()
    except OSError as e:
        raise ConfigError(f"Cannot read password file {path}: {e}") from e


def _coerce_int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid {name}: {value!r}") from e


def _coerce_float(name: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid {name}: {value!r}") from e


def _coerce_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off", ""):
        return False
    raise ConfigError(f"Invalid {name}: {value!r}")


def load_config_file(path: Path) -> dict[str, Any]:
    """Load deployment settings from a JSON file.

    Args:
        path: Path to the JSON config file

    Returns:
        Dictionary of DeployConfig attribute names to values

    Raises:
        ConfigError: If the file cannot be read, is not a JSON object,
            contains unknown keys or embeds secrets
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")

    secrets = [key for key in _SECRET_FILE_KEYS if key in data]
    if secrets:
        raise ConfigError(
            f"Config file {path} must not contain secrets ({', '.join(secrets)}). "
            f"Use {ENV_PREFIX}PASSWORD or passwordFile instead."
        )

    unknown = sorted(set(data) - set(_FILE_KEYS))
    if unknown:
        raise ConfigError(f"Unknown keys in config file {path}: {', '.join(unknown)}")

    values = {_FILE_KEYS[key]: value for key, value in data.items()}
    if "ignore" in values and not isinstance(values["ignore"], list):
        raise ConfigError("'ignore' must be a list of patterns")

    logger.debug(f"Loaded settings {sorted(values)} from {path}")
    return values


def load_env(environ: Optional[Mapping[str, str]] = None) -> dict[str, Any]:
    """Collect deployment settings from PYSITESYNC_* environment variables."""
    if environ is None:
        environ = os.environ
    values = {}
    for suffix, attr in _ENV_KEYS.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value:
            values[attr] = value
    return values


def load_config(
    config_file: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> DeployConfig:
    """Build and validate a DeployConfig from file, environment and overrides.

    Args:
        config_file: Explicit config file; when None, ``pysitesync.json`` in
            the current directory is used if it exists
        overrides: Values from the command line (None values are ignored)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated DeployConfig

    Raises:
        ConfigError: If required settings are missing or invalid
    """
    values: dict[str, Any] = {}

    if config_file is None:
        default_file = Path.cwd() / DEFAULT_CONFIG_FILE_NAME
        if default_file.is_file():
            config_file = default_file
    if config_file is not None:
        values.update(load_config_file(config_file))

    values.update(load_env(environ))

    if overrides:
        values.update({k: v for k, v in overrides.items() if v is not None})

    known = {f.name for f in fields(DeployConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigError(f"Unknown settings: {', '.join(unknown)}")

    return DeployConfig(**values).validate()
