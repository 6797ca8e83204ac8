"""Configuration management module."""

from histvault.core.config.settings import (
    ConfigManager,
    DownloadConfig,
    HistVaultConfig,
    LoggingConfig,
    ProviderConfig,
    StorageConfig,
    get_default_config,
    load_config_from_env,
)

__all__ = [
    "ConfigManager",
    "HistVaultConfig",
    "load_config_from_env",
    "get_default_config",
    "DownloadConfig",
    "ProviderConfig",
    "StorageConfig",
    "LoggingConfig",
]
