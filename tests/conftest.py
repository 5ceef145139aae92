"""Shared test fixtures.

Settings are read from ``ASKBRIDGE_*`` environment variables through a
cached ``get_settings``; every test starts from a known environment and a
cleared cache so nothing leaks between tests or from a developer's ``.env``.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from askbridge.interaction.settings import _get_settings_cached

TEST_ACCESS_CODE = "4321"
TEST_AUTH_TOKEN = "test-token"  # noqa: S105


@pytest.fixture
def access_code() -> str:
    return TEST_ACCESS_CODE


@pytest.fixture
def auth_token() -> str:
    return TEST_AUTH_TOKEN


@pytest.fixture(autouse=True)
def _settings_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Iterator[None]:
    """Pin the settings every test sees and invalidate the settings cache."""
    monkeypatch.setenv("ASKBRIDGE_ACCESS_CODE", TEST_ACCESS_CODE)
    monkeypatch.setenv("ASKBRIDGE_AUTH_TOKEN", TEST_AUTH_TOKEN)
    monkeypatch.setenv("ASKBRIDGE_HISTORY_STORE", "memory")
    monkeypatch.setenv("ASKBRIDGE_DATA_ROOT", str(tmp_path))
    monkeypatch.setenv("ASKBRIDGE_LOG_LEVEL", "DEBUG")
    _get_settings_cached.cache_clear()
    yield
    _get_settings_cached.cache_clear()
