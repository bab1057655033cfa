"""Shared pytest fixtures."""

import pytest

from recache import Client, MemoryCache


@pytest.fixture
def cache() -> MemoryCache:
    """Create a fresh MemoryCache for each test."""
    return MemoryCache()


@pytest.fixture
def client(cache: MemoryCache) -> Client:
    """Create a client over the test cache."""
    return Client(cache)
