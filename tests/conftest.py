from unittest.mock import MagicMock

import pytest

from autofix_bot.runtime import CommandRunner, ProcessRegistry
from autofix_bot.storage import FileSystemContentStore, InMemoryContentStore


@pytest.fixture
def memory_store():
    store = InMemoryContentStore()
    store.create_project("demo")
    return store


@pytest.fixture
def fs_store(tmp_path):
    store = FileSystemContentStore(tmp_path / "projects")
    store.create_project("demo")
    return store


@pytest.fixture
def registry():
    registry = ProcessRegistry()
    yield registry
    registry.kill_all()


@pytest.fixture
def runner(registry):
    return CommandRunner(registry, settle_seconds=5.0)


@pytest.fixture
def mock_provider():
    provider = MagicMock()
    provider.complete.return_value = "No response."
    return provider
