"""
Shared pytest fixtures for regwatch tests.

Fixtures provided:
- make_image: Factory for ContainerImage descriptors
- request_options: Empty RequestOptions to decorate
- mock_fetch_token: Patched token endpoint call (no network)
- clean_config: Isolated configuration (no config file, no REGWATCH_* env)
- freeze_time: freezegun entry point
"""

import pytest
from unittest.mock import AsyncMock, patch

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from config import settings
from registries.types import ContainerImage, RegistryInfo, RequestOptions


@pytest.fixture
def make_image():
    """
    Build a ContainerImage for a registry URL.

    Usage:
        image = make_image("eu.gcr.io", name="project/app")
    """
    def _make(url: str, name: str = "test/image", tag: str = "latest") -> ContainerImage:
        return ContainerImage(name=name, tag=tag, registry=RegistryInfo(name=url, url=url))
    return _make


@pytest.fixture
def request_options():
    return RequestOptions()


@pytest.fixture
def mock_fetch_token():
    """
    Patch the token endpoint call used by every token exchange.

    Returns the AsyncMock; its return_value is the raw token ("xxxxx").
    """
    with patch("registries.http.fetch_token", new_callable=AsyncMock) as mock:
        mock.return_value = "xxxxx"
        yield mock


@pytest.fixture
def clean_config(monkeypatch, tmp_path):
    """
    Start from an empty configuration.

    Removes REGWATCH_* variables, points the config file to a path that
    does not exist yet (tests may create it), and resets the cache, the
    config file watcher and its listeners.
    """
    for name in list(os.environ):
        if name.upper().startswith(settings.ENV_PREFIX):
            monkeypatch.delenv(name, raising=False)

    config_file = tmp_path / "config.json"
    monkeypatch.setenv("REGWATCH_CONFIG_FILE", str(config_file))
    settings.stop_watcher()
    settings._config_callbacks.clear()
    settings.reload_config()
    yield config_file
    settings.stop_watcher()
    settings._config_callbacks.clear()
    settings.reload_config()


@pytest.fixture
def freeze_time():
    """
    Freeze time for deterministic testing.

    Usage:
        def test_something(freeze_time):
            with freeze_time('2025-10-24 10:00:00'):
                ...
    """
    from freezegun import freeze_time as _freeze_time
    return _freeze_time
