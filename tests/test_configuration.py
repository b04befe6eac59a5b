"""Tests for configuration loading."""

import pytest

from examextract.config import configuration
from examextract.config.configuration import ConfigurationError, get_config, load_config


class TestLoadConfig:
    """Test YAML + environment configuration loading."""

    def test_loads_all_sections(self, config_file):
        """Test that every section is read from the YAML file."""
        config = load_config()

        assert config.openai.api_key == "test-key"
        assert config.openai.model == "gpt-4o-mini"
        assert config.openai.temperature == 0.1
        assert config.extraction.pages_per_group == 2
        assert config.extraction.concurrent_requests == 2
        assert config.extraction.max_attempts == 4
        assert config.extraction.backoff_base_seconds == 0.5
        assert config.rendering.scale == 2.0
        assert config.rendering.jpeg_quality == 80
        assert config.rendering.page_batch_size == 3
        assert config.word.max_chunk_chars == 1000
        assert config.export.sheet_name == "Questions"
        assert config.export.filename == "out.xlsx"
        assert config.logging.level == "DEBUG"

    def test_defaults_for_missing_sections(self, config_file):
        """Test that omitted sections fall back to defaults."""
        config_file.write_text("openai: {}\n", encoding="utf-8")

        config = load_config()

        assert config.openai.model == "gpt-4o"
        assert config.extraction.pages_per_group == 4
        assert config.extraction.concurrent_requests == 3
        assert config.extraction.max_attempts == 3
        assert config.rendering.scale == 3.0
        assert config.rendering.jpeg_quality == 95
        assert config.word.max_chunk_chars == 30000
        assert config.export.filename == "extracted_mcqs.xlsx"

    def test_missing_api_key_raises(self, config_file, monkeypatch):
        """Test that a missing credential fails fast."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            load_config()

    def test_missing_config_file_raises(self, config_file, tmp_path, monkeypatch):
        """Test that a missing YAML file is reported."""
        monkeypatch.setenv("CONFIG_PATH", str(tmp_path / "nope.yaml"))

        with pytest.raises(ConfigurationError, match="not found"):
            load_config()

    def test_invalid_batch_size_raises(self, config_file):
        """Test that non-positive batch sizes are rejected."""
        config_file.write_text("extraction:\n  pages_per_group: 0\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="pages_per_group"):
            load_config()

    def test_get_config_is_singleton(self, config_file):
        """Test that get_config caches until reset."""
        first = get_config()
        second = get_config()

        assert first is second

        configuration.reset_config()
        assert get_config() is not first

    def test_config_is_frozen(self, config_file):
        """Test that configuration objects are immutable."""
        config = load_config()

        with pytest.raises(AttributeError):
            config.extraction.pages_per_group = 10


class TestConfigFilename:
    """Test APP_ENV based file selection."""

    @pytest.mark.parametrize(
        "app_env, expected",
        [("dev", "config_dev.yaml"), ("TEST", "config_test.yaml"), ("", "config.yaml")],
    )
    def test_filename_follows_app_env(self, monkeypatch, app_env, expected):
        monkeypatch.setenv("APP_ENV", app_env)

        assert configuration._get_config_filename() == expected

    def test_environment_name(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "prod")

        assert configuration.get_environment() == "default"
