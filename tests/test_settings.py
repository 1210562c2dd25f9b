"""
Unit Tests for Application Settings Configuration

Tests for:
- Default values for every settings group
- Range validation and aliases
- Moderator list parsing
- Loading top-level and nested settings from environment variables
- Settings caching and clearing
"""

import pytest
from pydantic import ValidationError

from classroom_jukebox.config.settings import (
    AccessSettings,
    ChangeFeedSettings,
    CleanupSettings,
    DatabaseSettings,
    QueueSettings,
    ResolverSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)

# =============================================================================
# DatabaseSettings Tests
# =============================================================================


class TestDatabaseSettings:
    def test_create_with_defaults(self):
        db = DatabaseSettings()

        assert db.url == "sqlite:///data/jukebox.db"
        assert db.busy_timeout_ms == 5000
        assert db.connection_timeout_s == 10

    def test_memory_url_accepted(self):
        assert DatabaseSettings(url="sqlite:///:memory:").url == "sqlite:///:memory:"

    def test_invalid_url_scheme_raises_error(self):
        with pytest.raises(ValidationError, match="Database URL must start with"):
            DatabaseSettings(url="postgresql://localhost/db")

    @pytest.mark.parametrize("value", [999, 30001])
    def test_busy_timeout_range(self, value):
        with pytest.raises(ValidationError):
            DatabaseSettings(busy_timeout_ms=value)

    @pytest.mark.parametrize("value", [0, 61])
    def test_connection_timeout_range(self, value):
        with pytest.raises(ValidationError):
            DatabaseSettings(connection_timeout_s=value)

    def test_url_aliases(self):
        assert DatabaseSettings(database_url="sqlite:///a.db").url == "sqlite:///a.db"
        assert DatabaseSettings(db_url="sqlite:///b.db").url == "sqlite:///b.db"

    def test_immutability(self):
        db = DatabaseSettings()
        with pytest.raises(ValidationError):
            db.url = "sqlite:///other.db"


# =============================================================================
# ResolverSettings / QueueSettings / ChangeFeedSettings Tests
# =============================================================================


class TestResolverSettings:
    def test_create_with_defaults(self):
        resolver = ResolverSettings()

        assert resolver.timeout_seconds == 15.0
        assert resolver.ytdlp_format == "bestaudio/best"
        assert resolver.search_limit == 5
        assert resolver.cache_ttl_seconds == 3600

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            ResolverSettings(timeout_seconds=0)

    def test_aliases(self):
        settings = ResolverSettings(timeout=3.5, cache_ttl=0)
        assert settings.timeout_seconds == 3.5
        assert settings.cache_ttl_seconds == 0


class TestQueueSettings:
    def test_limits_are_off_by_default(self):
        queue = QueueSettings()

        assert queue.max_pending_per_user is None
        assert queue.reject_duplicates is False
        assert queue.submit_cooldown_seconds == 0
        assert queue.history_limit == 10

    def test_pending_limit_must_be_positive(self):
        with pytest.raises(ValidationError):
            QueueSettings(max_pending_per_user=0)

    def test_history_limit_range(self):
        with pytest.raises(ValidationError):
            QueueSettings(history_limit=101)

    def test_cooldown_cannot_be_negative(self):
        with pytest.raises(ValidationError):
            QueueSettings(submit_cooldown_seconds=-1)


class TestChangeFeedSettings:
    def test_create_with_defaults(self):
        feed = ChangeFeedSettings()

        assert feed.poll_interval_seconds == 0.5
        assert feed.batch_size == 500

    def test_poll_interval_must_be_positive(self):
        with pytest.raises(ValidationError):
            ChangeFeedSettings(poll_interval_seconds=0)


# =============================================================================
# AccessSettings Tests
# =============================================================================


class TestAccessSettings:
    def test_create_with_defaults(self):
        access = AccessSettings()

        assert access.moderator_ids == ()
        assert access.allow_self_removal is True
        assert access.open_room is True

    def test_comma_separated_moderators(self):
        access = AccessSettings(moderators="teacher-1, teacher-2,,")
        assert access.moderator_ids == ("teacher-1", "teacher-2")

    def test_list_of_moderators(self):
        access = AccessSettings(moderator_ids=["teacher-1", "  "])
        assert access.moderator_ids == ("teacher-1",)


class TestCleanupSettings:
    def test_create_with_defaults(self):
        cleanup = CleanupSettings()

        assert cleanup.change_retention_hours == 24
        assert cleanup.cleanup_interval_minutes == 30

    def test_retention_must_be_positive(self):
        with pytest.raises(ValidationError):
            CleanupSettings(change_retention_hours=0)


# =============================================================================
# Settings (Main Container) Tests
# =============================================================================


class TestSettings:
    def test_create_with_all_defaults(self, monkeypatch):
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        monkeypatch.delenv("DEBUG", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        settings = Settings(_env_file=None)

        assert settings.environment == "development"
        assert settings.debug is False
        assert settings.log_level == "INFO"
        assert isinstance(settings.database, DatabaseSettings)
        assert isinstance(settings.resolver, ResolverSettings)
        assert isinstance(settings.queue, QueueSettings)
        assert isinstance(settings.change_feed, ChangeFeedSettings)
        assert isinstance(settings.access, AccessSettings)
        assert isinstance(settings.cleanup, CleanupSettings)

    def test_load_from_environment_variables(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.setenv("LOG_LEVEL", "WARNING")

        settings = Settings(_env_file=None)

        assert settings.environment == "production"
        assert settings.debug is True
        assert settings.log_level == "WARNING"

    def test_load_nested_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("DATABASE__URL", "sqlite:///tmp/class.db")
        monkeypatch.setenv("QUEUE__MAX_PENDING_PER_USER", "3")
        monkeypatch.setenv("QUEUE__REJECT_DUPLICATES", "yes")
        monkeypatch.setenv("QUEUE__SUBMIT_COOLDOWN_SECONDS", "600")
        monkeypatch.setenv("RESOLVER__TIMEOUT_SECONDS", "4.5")
        monkeypatch.setenv("ACCESS__MODERATOR_IDS", '["teacher-1", "teacher-2"]')

        settings = Settings(_env_file=None)

        assert settings.database.url == "sqlite:///tmp/class.db"
        assert settings.queue.max_pending_per_user == 3
        assert settings.queue.reject_duplicates is True
        assert settings.queue.submit_cooldown_seconds == 600
        assert settings.resolver.timeout_seconds == 4.5
        assert settings.access.moderator_ids == ("teacher-1", "teacher-2")

    def test_environment_validation(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "invalid")

        with pytest.raises(ValidationError, match="Input should be"):
            Settings(_env_file=None)

    def test_log_level_validation_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")

        assert Settings(_env_file=None).log_level == "DEBUG"

    def test_log_level_validation_invalid(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "INVALID")

        with pytest.raises(ValidationError, match="Invalid log level"):
            Settings(_env_file=None)

    def test_nested_validation_propagates(self, monkeypatch):
        monkeypatch.setenv("DATABASE__URL", "invalid://url")

        with pytest.raises(ValidationError, match="Database URL must start with"):
            Settings(_env_file=None)


# =============================================================================
# Settings Caching Tests
# =============================================================================


class TestSettingsCaching:
    def test_get_settings_returns_cached_instance(self, monkeypatch):
        clear_settings_cache()
        monkeypatch.setenv("ENVIRONMENT", "test")

        assert get_settings() is get_settings()
        clear_settings_cache()

    def test_clear_settings_cache(self, monkeypatch):
        clear_settings_cache()
        monkeypatch.setenv("ENVIRONMENT", "test")

        settings1 = get_settings()
        clear_settings_cache()
        monkeypatch.setenv("ENVIRONMENT", "production")
        settings2 = get_settings()

        assert settings1 is not settings2
        assert settings1.environment == "test"
        assert settings2.environment == "production"
        clear_settings_cache()
