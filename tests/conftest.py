"""
Shared pytest fixtures and configuration for threadfeed tests.

This module provides:
- Logging configured once, quietly, for the whole session
- Identities and a small reference log of threads
- In-memory collaborators and a ParticipatingFeed wired to them

Usage:
    Fixtures are auto-discovered by pytest. Use them as function arguments.

    @pytest.mark.asyncio
    async def test_roots(feed):
        items = await feed.roots().collect()
"""

import sys
from pathlib import Path

import pytest

# Ensure threadfeed package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from threadfeed.core.settings import FeedSettings
from threadfeed.feeds.participating import ParticipatingFeed
from threadfeed.framework.logging import clear_context, configure_logging
from threadfeed.memory import (
    InMemoryBlockRegistry,
    InMemoryFeedLog,
    InMemoryThreadReader,
    LogAboutsResolver,
)
from tests._support.feeds import ME, reference_messages


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark everything under tests/feeds/test_participating.py as integration."""
    for item in items:
        if "test_participating" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


@pytest.fixture(scope="session", autouse=True)
def _quiet_logging():
    configure_logging(level="WARNING", format="console", force=True)
    yield


@pytest.fixture(autouse=True)
def _clean_log_context():
    clear_context()
    yield
    clear_context()


# =============================================================================
# Collaborators and feed
# =============================================================================


@pytest.fixture
def settings():
    return FeedSettings(root_cache_size=100, roots_recent_limit=3, latest_recent_limit=0)


@pytest.fixture
def feed_log():
    return InMemoryFeedLog(reference_messages())


@pytest.fixture
def empty_log():
    return InMemoryFeedLog()


@pytest.fixture
def registry():
    return InMemoryBlockRegistry()


@pytest.fixture
def reader(feed_log):
    return InMemoryThreadReader(feed_log)


@pytest.fixture
def abouts(feed_log):
    return LogAboutsResolver(feed_log)


@pytest.fixture
def make_feed(registry, settings):
    """Factory wiring a ParticipatingFeed over any log."""

    def _make(log, identity=ME, **kwargs):
        return ParticipatingFeed(
            identity,
            log=log,
            registry=kwargs.pop("registry", registry),
            reader=kwargs.pop("reader", InMemoryThreadReader(log)),
            abouts=kwargs.pop("abouts", LogAboutsResolver(log)),
            settings=kwargs.pop("settings", settings),
            **kwargs,
        )

    return _make


@pytest.fixture
def feed(feed_log, registry, reader, abouts, settings):
    return ParticipatingFeed(
        ME,
        log=feed_log,
        registry=registry,
        reader=reader,
        abouts=abouts,
        settings=settings,
    )


