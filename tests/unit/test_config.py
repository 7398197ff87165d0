"""Tests for settings loading."""

import pytest
from pydantic import ValidationError

from stratforge.core.config import (
    GenerationSettings,
    ProviderSettings,
    QueueSettings,
    Settings,
    get_settings,
    reload_settings,
)


class TestQueueSettings:
    """Tests for queue settings."""

    def test_defaults(self, monkeypatch):
        for name in ("REQUESTS_PER_MINUTE", "RETRY_DELAY_SECONDS", "MAX_RETRIES"):
            monkeypatch.delenv(f"STRATFORGE_QUEUE_{name}", raising=False)

        settings = QueueSettings()

        assert settings.requests_per_minute == 100
        assert settings.retry_delay_seconds == 3.0
        assert settings.max_retries == 3

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("STRATFORGE_QUEUE_REQUESTS_PER_MINUTE", "20")
        monkeypatch.setenv("STRATFORGE_QUEUE_MAX_RETRIES", "5")

        settings = QueueSettings()

        assert settings.requests_per_minute == 20
        assert settings.max_retries == 5

    def test_rejects_zero_budget(self):
        with pytest.raises(ValidationError):
            QueueSettings(requests_per_minute=0)


class TestGenerationSettings:
    """Tests for generation settings."""

    def test_log_level_normalized(self):
        assert GenerationSettings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            GenerationSettings(log_level="LOUD")

    def test_invalid_log_format(self):
        with pytest.raises(ValidationError):
            GenerationSettings(log_format="xml")


class TestProviderSettings:
    """Tests for provider settings."""

    def test_api_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-env")

        settings = ProviderSettings()

        assert settings.has_openrouter
        assert settings.openrouter_api_key.get_secret_value() == "sk-or-env"
        assert "sk-or-env" not in repr(settings)


class TestSettings:
    """Tests for the combined settings."""

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "stratforge.yaml"
        path.write_text("queue:\n  requests_per_minute: 5\nenvironment: test\n")

        settings = Settings.from_yaml(path)

        assert settings.queue.requests_per_minute == 5
        assert settings.environment == "test"

    def test_from_yaml_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Settings.from_yaml(tmp_path / "absent.yaml")

    def test_reload_clears_cache(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("STRATFORGE_QUEUE_MAX_RETRIES", "7")

        try:
            assert get_settings() is first
            assert reload_settings().queue.max_retries == 7
        finally:
            get_settings.cache_clear()
