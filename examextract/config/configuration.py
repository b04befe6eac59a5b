"""Configuration module for ExamExtract.

Loads settings from environment-specific config files:
- CONFIG_PATH  → explicit path to a YAML file
- APP_ENV=dev  → config_dev.yaml
- APP_ENV=test → config_test.yaml
- Default      → config.yaml

The OpenAI API key is loaded from the environment or a .env file.
Fails fast with clear error messages if required configuration is missing.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_project_root() -> Path:
    """Get the project root directory (where config.yaml lives)."""
    # Navigate from examextract/config/ up to project root
    return Path(__file__).parent.parent.parent


def _get_config_filename() -> str:
    """Get config filename based on APP_ENV environment variable.

    Returns:
        Config filename:
        - APP_ENV=dev  → config_dev.yaml
        - APP_ENV=test → config_test.yaml
        - Default      → config.yaml
    """
    app_env = os.environ.get("APP_ENV", "").lower()

    if app_env == "dev":
        return "config_dev.yaml"
    elif app_env == "test":
        return "config_test.yaml"
    else:
        return "config.yaml"


def _get_config_path() -> Path:
    """Resolve the YAML config path, honouring an explicit CONFIG_PATH."""
    explicit_path = os.environ.get("CONFIG_PATH")
    if explicit_path:
        return Path(explicit_path)
    return _get_project_root() / _get_config_filename()


def _load_yaml_config() -> dict:
    """Load configuration from environment-specific config file."""
    config_path = _get_config_path()

    if not config_path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {config_path}. "
            f"Set APP_ENV to 'dev' or 'test', set CONFIG_PATH, "
            f"or create {_get_config_filename()}."
        )

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _get_required_env(key: str) -> str:
    """Get required environment variable or raise ConfigurationError."""
    value = os.environ.get(key)
    if not value:
        raise ConfigurationError(
            f"Required environment variable '{key}' is not set. "
            f"Please add it to your .env file."
        )
    return value


@dataclass(frozen=True)
class OpenAIConfig:
    """OpenAI API configuration."""
    api_key: str
    model: str = "gpt-4o"
    temperature: float = 0.1


@dataclass(frozen=True)
class ExtractionConfig:
    """Batching and retry settings for model calls."""
    pages_per_group: int = 4
    concurrent_requests: int = 3
    max_attempts: int = 3
    backoff_base_seconds: float = 1.0


@dataclass(frozen=True)
class RenderingConfig:
    """PDF page rendering settings."""
    scale: float = 3.0
    jpeg_quality: int = 95
    page_batch_size: int = 4


@dataclass(frozen=True)
class WordConfig:
    """Word document conversion settings."""
    max_chunk_chars: int = 30000


@dataclass(frozen=True)
class ExportConfig:
    """Spreadsheet export settings."""
    sheet_name: str = "MCQs"
    filename: str = "extracted_mcqs.xlsx"


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration container."""
    openai: OpenAIConfig
    extraction: ExtractionConfig
    rendering: RenderingConfig
    word: WordConfig
    export: ExportConfig
    logging: LoggingConfig


def _positive_int(section: dict, key: str, default: int) -> int:
    """Read a positive integer setting or raise ConfigurationError."""
    value = section.get(key, default)
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise ConfigurationError(
            f"Configuration value '{key}' must be a positive integer, got {value!r}."
        )
    return value


def load_config() -> AppConfig:
    """
    Load and validate all application configuration.

    Loads from config.yaml for non-sensitive settings and .env for the API key.
    Fails fast if required configuration is missing.

    Returns:
        AppConfig: Validated application configuration.

    Raises:
        ConfigurationError: If required configuration is missing.
    """
    # Load environment variables from .env file
    load_dotenv()

    # Load YAML configuration
    yaml_config = _load_yaml_config()

    # Build OpenAI config
    openai_section = yaml_config.get("openai", {})

    openai_config = OpenAIConfig(
        api_key=_get_required_env("OPENAI_API_KEY"),
        model=openai_section.get("model", "gpt-4o"),
        temperature=float(openai_section.get("temperature", 0.1)),
    )

    # Build Extraction config
    extraction_section = yaml_config.get("extraction", {})

    extraction_config = ExtractionConfig(
        pages_per_group=_positive_int(extraction_section, "pages_per_group", 4),
        concurrent_requests=_positive_int(extraction_section, "concurrent_requests", 3),
        max_attempts=_positive_int(extraction_section, "max_attempts", 3),
        backoff_base_seconds=float(extraction_section.get("backoff_base_seconds", 1.0)),
    )

    # Build Rendering config
    rendering_section = yaml_config.get("rendering", {})

    rendering_config = RenderingConfig(
        scale=float(rendering_section.get("scale", 3.0)),
        jpeg_quality=_positive_int(rendering_section, "jpeg_quality", 95),
        page_batch_size=_positive_int(rendering_section, "page_batch_size", 4),
    )

    # Build Word config
    word_section = yaml_config.get("word", {})

    word_config = WordConfig(
        max_chunk_chars=_positive_int(word_section, "max_chunk_chars", 30000),
    )

    # Build Export config
    export_section = yaml_config.get("export", {})

    export_config = ExportConfig(
        sheet_name=export_section.get("sheet_name", "MCQs"),
        filename=export_section.get("filename", "extracted_mcqs.xlsx"),
    )

    # Build Logging config
    logging_section = yaml_config.get("logging", {})

    logging_config = LoggingConfig(
        level=logging_section.get("level", "INFO"),
    )

    return AppConfig(
        openai=openai_config,
        extraction=extraction_config,
        rendering=rendering_config,
        word=word_config,
        export=export_config,
        logging=logging_config,
    )


# Module-level singleton for convenience
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get the application configuration singleton.

    Lazy-loads configuration on first access.
    Config file is selected based on CONFIG_PATH or APP_ENV.

    Returns:
        AppConfig: Application configuration.

    Raises:
        ConfigurationError: If required configuration is missing.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def get_environment() -> str:
    """Get current environment name.

    Returns:
        'dev', 'test', or 'default' based on APP_ENV.
    """
    app_env = os.environ.get("APP_ENV", "").lower()
    return app_env if app_env in ("dev", "test") else "default"


def reset_config() -> None:
    """Reset the config singleton. Useful for testing."""
    global _config
    _config = None


def configure_logging(config: AppConfig) -> None:
    """Apply the configured log level to the root logger."""
    logging.basicConfig(
        level=config.logging.level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
