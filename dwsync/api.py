"""WebDAV client for the cartridge code repository."""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import Any
from urllib.parse import quote, unquote

import httpx

from .config import ConnectionConfig
from .exceptions import (
    DwAPIError,
    DwAuthenticationError,
    DwFileNotFoundError,
    DwNetworkError,
    DwNotFoundError,
    DwPermissionError,
    DwUploadError,
)

logger = logging.getLogger(__name__)

WEBDAV_CARTRIDGES_PATH = "/on/demandware.servlet/webdav/Sites/Cartridges"

# Directory listings link every entry as
# <a href="/on/demandware.servlet/webdav/Sites/Cartridges/<version>/<name>/"><tt><name></tt></a>
_LISTING_PATTERN = re.compile(
    r'<a href="' + re.escape(WEBDAV_CARTRIDGES_PATH) + r'/([^/"]*)/([^/"]*)/?">'
    r"<tt>([^<]+)</tt></a>"
)


def parse_cartridge_listing(html: str) -> list[str]:
    """Extract cartridge names from a code version directory listing.

    Args:
        html: Body of a GET on the code version directory

    Returns:
        Cartridge names in listing order
    """
    cartridges = []
    for match in _LISTING_PATTERN.finditer(html):
        # hrefs are percent-encoded
        name = unquote(match.group(2))
        if name:
            cartridges.append(name)
    return cartridges


class WebDAVClient:
    """Client for the Cartridges WebDAV endpoint of one code version."""

    def __init__(self, config: ConnectionConfig, timeout: float = 30.0):
        """Initialize the WebDAV client.

        Args:
            config: Connection settings (host, code version, credentials)
            timeout: Request timeout in seconds (default: 30.0)
        """
        self.config = config
        self.timeout = timeout
        self._client: httpx.Client | None = None
        self._client_lock = threading.Lock()

    @property
    def base_url(self) -> str:
        """URL of the code version directory, without trailing slash."""
        return (
            f"https://{self.config.hostname}{WEBDAV_CARTRIDGES_PATH}/"
            f"{quote(self.config.code_version, safe='')}"
        )

    def build_url(self, remote_path: str = "", directory: bool = False) -> str:
        """Build the remote URL for a path below the code version.

        Path segments are percent-encoded; ``/`` separators are kept.

        Args:
            remote_path: Path such as ``app_storefront/cartridge/scripts/init.js``
            directory: Append a trailing slash (collection URL)

        Returns:
            Absolute URL
        """
        segments = [s for s in remote_path.replace("\\", "/").split("/") if s]
        url = self.base_url
        if segments:
            url += "/" + "/".join(quote(s, safe="") for s in segments)
        if directory:
            url += "/"
        return url

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client (shared by all worker threads)."""
        with self._client_lock:
            if self._client is None or self._client.is_closed:
                self._client = httpx.Client(
                    auth=httpx.BasicAuth(self.config.username, self.config.password),
                    timeout=httpx.Timeout(self.timeout),
                    follow_redirects=True,
                )
            return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        with self._client_lock:
            if self._client is not None and not self._client.is_closed:
                self._client.close()
            self._client = None

    def __enter__(self) -> WebDAVClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _handle_http_error(self, e: httpx.HTTPStatusError) -> DwAPIError:
        """Map an HTTP error status to a dwsync exception.

        Args:
            e: The HTTP error exception

        Returns:
            Exception to raise
        """
        status_code = e.response.status_code
        url = str(e.request.url)

        if status_code == 401:
            return DwAuthenticationError(
                f"Invalid credentials or unauthorized access ({url})"
            )
        if status_code == 403:
            return DwPermissionError(f"Access forbidden ({url})")
        if status_code == 404:
            return DwNotFoundError(f"Resource not found ({url})")

        error_msg = f"Request failed with status {status_code} ({url})"
        reason = e.response.reason_phrase
        if reason:
            error_msg = f"{error_msg}: {reason}"
        return DwAPIError(error_msg)

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a single request.

        Transport failures are not retried.

        Raises:
            DwAPIError: On a non-2xx response or a network error
        """
        client = self._get_client()
        logger.debug("%s %s", method, url)
        try:
            response = client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._handle_http_error(e) from e
        except httpx.RequestError as e:
            raise DwNetworkError(f"Network error: {e}") from e
        return response

    def put_file(self, local_file: Path, remote_path: str) -> httpx.Response:
        """Upload a file, overwriting any existing remote resource.

        Args:
            local_file: Local file to send
            remote_path: Destination path below the code version

        Returns:
            The server response

        Raises:
            DwFileNotFoundError: If the local file does not exist
            DwUploadError: If the file cannot be read
            DwAPIError: If the request fails
        """
        local_file = Path(local_file)
        if not local_file.is_file():
            raise DwFileNotFoundError(str(local_file))

        try:
            content = local_file.read_bytes()
        except OSError as e:
            raise DwUploadError(f"Failed to read {local_file}: {e}") from e

        return self._request("PUT", self.build_url(remote_path), content=content)

    def delete(self, remote_path: str, directory: bool = False) -> httpx.Response:
        """Delete a remote file or (recursively) a remote directory.

        Args:
            remote_path: Path below the code version
            directory: Address the path as a collection

        Raises:
            DwAPIError: If the request fails
        """
        return self._request(
            "DELETE", self.build_url(remote_path, directory=directory)
        )

    def list_directory(self, remote_path: str = "") -> str:
        """Fetch the HTML listing of a remote directory.

        Args:
            remote_path: Directory below the code version ("" for the root)

        Returns:
            Response body

        Raises:
            DwAPIError: If the request fails
        """
        response = self._request("GET", self.build_url(remote_path, directory=True))
        return response.text

    def list_cartridges(self) -> list[str]:
        """Return the names of the cartridges deployed to the code version."""
        return parse_cartridge_listing(self.list_directory())
