"""Shared fixtures for dwsync tests."""

import pytest

from dwsync.config import ConnectionConfig


@pytest.fixture
def connection_config():
    """Connection config for a sandbox."""
    return ConnectionConfig(
        hostname="dev01.example.com",
        code_version="version1",
        username="admin",
        password="secret",
    )
