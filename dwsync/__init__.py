"""dwsync - mirror Demandware cartridges to a WebDAV code version."""

from .api import WebDAVClient, parse_cartridge_listing
from .config import ConnectionConfig, load_config
from .exceptions import (
    DwAPIError,
    DwAuthenticationError,
    DwConfigError,
    DwFileNotFoundError,
    DwNetworkError,
    DwNotFoundError,
    DwPermissionError,
    DwSyncError,
    DwUploadError,
    NoCartridgesError,
    WatcherError,
)

__version__ = "0.1.0"

__all__ = [
    "WebDAVClient",
    "parse_cartridge_listing",
    "ConnectionConfig",
    "load_config",
    "DwAPIError",
    "DwAuthenticationError",
    "DwConfigError",
    "DwFileNotFoundError",
    "DwNetworkError",
    "DwNotFoundError",
    "DwPermissionError",
    "DwSyncError",
    "DwUploadError",
    "NoCartridgesError",
    "WatcherError",
]
