"""Root pytest configuration for all tests."""

from __future__ import annotations

import pytest

from herotree.config import clear_secret_cache, reset_config
from herotree.tree import ResourceTree
from tests.utils import FakeClient

# Configure pytest-asyncio to use auto mode
# This is redundant with pyproject.toml but ensures it's set
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(scope="session")
def anyio_backend():
    """Set anyio backend to asyncio."""
    return "asyncio"


@pytest.fixture(autouse=True)
def isolated_config(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch):
    """Keep user config, env overrides and cached secrets out of every test."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path_factory.mktemp("xdg")))
    monkeypatch.delenv("HEROTREE_LOG", raising=False)
    monkeypatch.delenv("HEROTREE_API_CALLS", raising=False)
    reset_config()
    clear_secret_cache()
    yield
    reset_config()
    clear_secret_cache()


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def tree(client: FakeClient) -> ResourceTree:
    return ResourceTree(client)
