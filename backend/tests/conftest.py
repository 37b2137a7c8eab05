"""Pytest configuration and fixtures."""

import pytest

from coinwatch.market.store import MemoryStore


@pytest.fixture
def event_loop_policy():
    """Use the default event loop policy for all async tests."""
    import asyncio

    return asyncio.DefaultEventLoopPolicy()


@pytest.fixture
def store():
    """Fresh in-memory key/value store."""
    return MemoryStore()
