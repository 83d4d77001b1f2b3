"""
Shared test fixtures and configuration for pytest
"""
import pytest

from mailsearch.providers.static import StaticSessionProvider
from .test_helpers import FakeGraph


@pytest.fixture
def fake_graph():
    """Empty fake Graph backend"""
    return FakeGraph()


@pytest.fixture
def provider(fake_graph):
    """Pre-authenticated session provider talking to the fake backend"""
    return StaticSessionProvider(transport=fake_graph.transport)


@pytest.fixture
def session(provider):
    """Open GraphSession on the fake backend"""
    with provider.current_session() as s:
        yield s
