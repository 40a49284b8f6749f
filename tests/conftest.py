"""
Shared pytest fixtures for storage layer tests.
"""

import pytest
import pytest_asyncio

from chainstore.config import Settings
from chainstore.context import StoreContext
from chainstore.drivers.environment import EnvironmentStore


class BrokenEnvironment(EnvironmentStore):
    """Environment store whose writes always fail."""

    def set_item(self, key: str, value: str) -> None:
        raise OSError("storage quota exceeded")


class EmptyEnvironment(EnvironmentStore):
    """Environment store that accepts writes but reads nothing back."""

    def get_item(self, key: str) -> str | None:
        return None


@pytest.fixture
def temp_dir(tmp_path):
    """Provide a temporary directory that is cleaned up after test."""
    return str(tmp_path)


@pytest.fixture
def settings(temp_dir):
    """Settings pointing the filesystem driver at a temp directory."""
    return Settings(storage_dir=temp_dir)


@pytest.fixture
def environment():
    """A fresh environment store isolated from the process default."""
    return EnvironmentStore()


@pytest_asyncio.fixture
async def context(settings, environment):
    """Provide an opened context using the memory driver."""
    async with StoreContext(settings, environment) as ctx:
        yield ctx


@pytest_asyncio.fixture
async def fs_context(settings):
    """Provide an opened context that fell back to the filesystem driver."""
    async with StoreContext(settings, BrokenEnvironment()) as ctx:
        yield ctx


@pytest.fixture(params=["memory", "localfs"])
def any_context(request, context, fs_context):
    """Run a test once per driver."""
    return context if request.param == "memory" else fs_context


@pytest.fixture
def numbered_records():
    """Records keyed "1".."10" with n equal to the key."""
    return {str(n): {"n": n} for n in range(1, 11)}


@pytest.fixture
def broken_environment():
    """Environment store that fails the driver probe by raising."""
    return BrokenEnvironment()


@pytest.fixture
def empty_environment():
    """Environment store that fails the driver probe by reading nothing back."""
    return EmptyEnvironment()
