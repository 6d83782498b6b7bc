"""
Unit Tests - Configuration
"""
from datetime import timedelta

import pytest
from pydantic import ValidationError

from statshub.config import ArchiveSettings, AuthSettings, RedisSettings, Settings


class TestSettings:
    """Tests for configuration sections"""

    def test_default_schedules(self):
        """Test per-dimension archive intervals"""
        assert ArchiveSettings().schedules == {
            "fallback": timedelta(minutes=10),
            "country": timedelta(hours=1),
            "user": timedelta(hours=24),
        }

    @pytest.mark.parametrize("intervals", [{"fallback": 0}, {"a:b": 60}, {"": 60}])
    def test_invalid_intervals(self, intervals):
        with pytest.raises(ValidationError):
            ArchiveSettings(intervals=intervals)

    def test_intervals_from_environment(self, monkeypatch):
        monkeypatch.setenv("ARCHIVE_INTERVALS", '{"fallback": 60}')

        assert ArchiveSettings().schedules == {"fallback": timedelta(minutes=1)}

    def test_redis_url(self):
        """Test URL precedence over host and port"""
        assert RedisSettings(host="cache", port=6380).get_url() == "redis://cache:6380/0"
        assert RedisSettings(REDIS_URL="redis://other:1/2").get_url() == "redis://other:1/2"

    def test_unknown_identity_provider(self):
        with pytest.raises(ValidationError):
            AuthSettings(provider="ldap")

    def test_environment_validation(self):
        assert Settings(APP_ENV="Production").is_production
        with pytest.raises(ValidationError):
            Settings(APP_ENV="qa")
