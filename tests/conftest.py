"""Pytest configuration and shared fixtures."""
import asyncio
import pytest

from filterstate import (
    FilterGroupOptions,
    MemoryLocation,
    MemoryStorage,
    UrlStateGroup,
    reset_default_options,
)


@pytest.fixture(autouse=True)
def reset_defaults():
    """Drop any default options a test set."""
    reset_default_options()
    yield
    reset_default_options()


@pytest.fixture
def fast_options():
    """Options with millisecond windows so tests settle quickly."""
    return FilterGroupOptions(
        timeout=0.2,
        initial_timeout=0.2,
        reaction_debounce=0.01,
        group_debounce=0.02,
    )


@pytest.fixture
def location():
    """Headless location at /search."""
    return MemoryLocation(pathname="/search")


@pytest.fixture
def storage():
    """Empty in-memory storage."""
    return MemoryStorage()


@pytest.fixture
def url_state(location):
    """URL collaborator over the headless location."""
    return UrlStateGroup(location)


@pytest.fixture
def wait_until():
    """Poll a predicate until it holds or the deadline passes."""
    async def _wait_until(predicate, timeout=1.0, interval=0.005):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(interval)
    return _wait_until
