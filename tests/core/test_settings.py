"""Tests for threadfeed.core.settings module."""

import pytest
from pydantic import ValidationError

from threadfeed.core.settings import FeedSettings, get_settings, reset_settings


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield
    reset_settings()


class TestFeedSettings:
    """Test FeedSettings defaults and environment loading."""

    def test_defaults(self):
        """Defaults match the documented values."""
        s = FeedSettings()
        assert s.root_cache_size == 100
        assert s.roots_recent_limit == 3
        assert s.latest_recent_limit == 0
        assert s.default_page_limit is None
        assert s.log_level == "INFO"
        assert s.log_format == "console"

    def test_env_prefix(self, monkeypatch):
        """THREADFEED_-prefixed variables override defaults."""
        monkeypatch.setenv("THREADFEED_ROOT_CACHE_SIZE", "7")
        monkeypatch.setenv("THREADFEED_DEFAULT_PAGE_LIMIT", "20")
        s = FeedSettings()
        assert s.root_cache_size == 7
        assert s.default_page_limit == 20

    def test_log_level_normalised(self):
        """Log levels are upper-cased."""
        assert FeedSettings(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level_rejected(self):
        """Unknown levels fail validation."""
        with pytest.raises(ValidationError):
            FeedSettings(log_level="chatty")

    @pytest.mark.parametrize(
        "field, value",
        [("root_cache_size", 0), ("roots_recent_limit", -1), ("default_page_limit", 0)],
    )
    def test_bounds(self, field, value):
        """Out-of-range tunables fail validation."""
        with pytest.raises(ValidationError):
            FeedSettings(**{field: value})


class TestGetSettings:
    """Test the cached accessor."""

    def test_cached(self):
        """The same instance is returned until reset."""
        assert get_settings() is get_settings()

    def test_reset_rereads_environment(self, monkeypatch):
        """reset_settings() picks up environment changes."""
        first = get_settings()
        monkeypatch.setenv("THREADFEED_ROOTS_RECENT_LIMIT", "9")
        reset_settings()
        second = get_settings()
        assert second is not first
        assert second.roots_recent_limit == 9
