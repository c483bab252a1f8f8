"""Root pytest configuration for all tests."""

from __future__ import annotations

import pytest

from pi_acp.config import reset_config
from tests.utils import FakeConnection, FakePiProcess

pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(autouse=True)
def _fresh_config():
    """Keep the global config cache from leaking between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def conn() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def proc() -> FakePiProcess:
    return FakePiProcess(state={"thinkingLevel": "medium", "model": {"provider": "test", "id": "model"}})
