"""Configuration module."""

from examextract.config.configuration import (
    AppConfig,
    ConfigurationError,
    ExportConfig,
    ExtractionConfig,
    LoggingConfig,
    OpenAIConfig,
    RenderingConfig,
    WordConfig,
    configure_logging,
    get_config,
    get_environment,
    load_config,
    reset_config,
)

__all__ = [
    "AppConfig",
    "ConfigurationError",
    "ExportConfig",
    "ExtractionConfig",
    "LoggingConfig",
    "OpenAIConfig",
    "RenderingConfig",
    "WordConfig",
    "configure_logging",
    "get_config",
    "get_environment",
    "load_config",
    "reset_config",
]
