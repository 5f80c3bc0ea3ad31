"""Custom exceptions for dwsync."""


class DwSyncError(Exception):
    """Base exception for all dwsync errors."""

    pass


class DwConfigError(DwSyncError):
    """Raised when the connection configuration is missing or invalid."""

    pass


class NoCartridgesError(DwSyncError):
    """Raised when a project root contains no cartridges."""

    pass


class WatcherError(DwSyncError):
    """Raised when the filesystem subscription cannot be started."""

    pass


class DwAPIError(DwSyncError):
    """Base exception for WebDAV transport errors."""

    pass


class DwAuthenticationError(DwAPIError):
    """Raised when the server rejects the credentials."""

    pass


class DwPermissionError(DwAPIError):
    """Raised when the user lacks permission for the operation."""

    pass


class DwNotFoundError(DwAPIError):
    """Raised when a remote resource is not found."""

    pass


class DwNetworkError(DwAPIError):
    """Raised when a network error occurs."""

    pass


class DwUploadError(DwAPIError):
    """Raised when a file upload fails."""

    pass


class DwFileNotFoundError(DwSyncError):
    """Raised when a local file is not found."""

    def __init__(self, file_path: str):
        self.file_path = file_path
        super().__init__(f"Local file not found: {file_path}")
