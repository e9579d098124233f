"""Utility functions for pysitesync."""

import posixpath
from collections.abc import Iterable

# =============================================================================
# Constants
# =============================================================================

DEFAULT_SFTP_PORT: int = 22
DEFAULT_FTP_PORT: int = 21

DEFAULT_REMOTE_ROOT: str = "/public_html"
DEFAULT_LOCAL_ROOT: str = "out"

# Socket timeout applied to every remote call (seconds)
DEFAULT_TIMEOUT: float = 30.0

# Upper bound for parallel workers accepted by the CLI
MAX_WORKERS: int = 32

# Directory depth after which the local scan assumes a symlink loop
MAX_SCAN_DEPTH: int = 64


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


# =============================================================================
# Remote path utilities
# =============================================================================


def normalize_remote_root(remote_root: str) -> str:
    """Normalize a remote root to a POSIX path without trailing slash.

    Examples:
        >>> normalize_remote_root("/public_html/")
        '/public_html'
        >>> normalize_remote_root("/")
        '/'
        >>> normalize_remote_root("site\\\\www")
        'site/www'
    """
    path = remote_root.replace("\\", "/").strip()
    if not path:
        return "."
    path = posixpath.normpath(path)
    if path.startswith("//"):
        path = "/" + path.lstrip("/")
    return path


def join_remote(root: str, segments: Iterable[str]) -> str:
    """Join path segments beneath a remote root.

    Examples:
        >>> join_remote("/public_html", ("assets", "app.js"))
        '/public_html/assets/app.js'
        >>> join_remote("/", ("index.html",))
        '/index.html'
    """
    return posixpath.join(root, *segments)
