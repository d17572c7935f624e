"""Pytest configuration and fixtures."""

import pytest

from relay.observability.trace_logging import configure_tracing


@pytest.fixture(autouse=True)
def default_tracing():
    """Each test starts with tracing enabled at default bounds."""
    configure_tracing(enabled=True, max_chars=2000)


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend."""
    return "asyncio"
