"""
Global pytest configuration and fixtures.
"""

from collections.abc import Iterator

import pytest

from oauth_adapters.resilience import reset_all_circuits
from oauth_adapters.storage import InMemoryPKCEStorage


@pytest.fixture(autouse=True)
def _isolate_circuits() -> Iterator[None]:
    """Circuit state is process-wide; start and end every test with a clean registry."""
    reset_all_circuits()
    yield
    reset_all_circuits()


@pytest.fixture
def pkce_store() -> InMemoryPKCEStorage:
    return InMemoryPKCEStorage()
