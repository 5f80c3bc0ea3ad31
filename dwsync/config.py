"""Connection configuration loaded from ``dw.json``."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

from .exceptions import DwConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "dw.json"

# dw.json key -> ConnectionConfig field
_REQUIRED_KEYS = {
    "hostname": "hostname",
    "code-version": "code_version",
    "username": "username",
    "password": "password",
}


@dataclass(frozen=True)
class ConnectionConfig:
    """Connection settings for one sync session."""

    hostname: str
    """WebDAV host, e.g. ``dev01-eu01-acme.demandware.net``"""

    code_version: str
    """Code version directory the cartridges are deployed into"""

    username: str
    """Basic auth user name"""

    password: str
    """Basic auth password or access key"""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConnectionConfig":
        """Create a config from a ``dw.json`` style dictionary.

        Accepts both ``code-version`` (as written by the IDE tooling) and
        ``code_version``.

        Raises:
            DwConfigError: If a required key is missing or empty
        """
        values: dict[str, str] = {}
        missing = []
        for key, field_name in _REQUIRED_KEYS.items():
            value = data.get(key, data.get(field_name))
            if value is None or str(value).strip() == "":
                missing.append(key)
                continue
            values[field_name] = str(value)

        if missing:
            raise DwConfigError(
                f"Missing configuration value(s): {', '.join(missing)}"
            )

        return cls(**values)

    def __repr__(self) -> str:
        return (
            f"ConnectionConfig(hostname={self.hostname!r}, "
            f"code_version={self.code_version!r}, username={self.username!r})"
        )


def get_config_path(project_root: Union[str, Path]) -> Path:
    """Return the location of ``dw.json`` for a project root."""
    return Path(project_root) / CONFIG_FILE_NAME


def load_config(
    project_root: Union[str, Path],
    hostname: Optional[str] = None,
    code_version: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
) -> ConnectionConfig:
    """Load the connection config for a project.

    Values given as arguments override the ones in ``dw.json``. When every
    value is supplied the file is optional.

    Args:
        project_root: Directory containing ``dw.json``
        hostname: Optional hostname override
        code_version: Optional code version override
        username: Optional user name override
        password: Optional password override

    Returns:
        ConnectionConfig instance

    Raises:
        DwConfigError: If the file cannot be read or parsed, or a value
            is missing after applying overrides
    """
    overrides = {
        "hostname": hostname,
        "code-version": code_version,
        "username": username,
        "password": password,
    }
    data: dict[str, Any] = {}
    config_path = get_config_path(project_root)

    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise DwConfigError(f"Error parsing JSON in {config_path}: {e}") from e
        except OSError as e:
            raise DwConfigError(f"Cannot open file: {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise DwConfigError(f"Expected a JSON object in {config_path}")
        logger.debug("Loaded connection config from %s", config_path)
    elif not all(overrides.values()):
        raise DwConfigError(f"Cannot open file: {config_path}")

    data.update({k: v for k, v in overrides.items() if v})
    return ConnectionConfig.from_dict(data)
