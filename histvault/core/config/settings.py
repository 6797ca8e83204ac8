"""配置管理模块 - 处理histvault下载器的配置"""

import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

DEFAULT_HOME = Path.home() / ".histvault"


@dataclass
class ProviderConfig:
    """提供商配置"""

    name: str = "polygon"
    api_key: str | None = None
    base_url: str = "https://api.polygon.io"
    timeout: float = 30.0
    max_retries: int = 3
    backoff_factor: float = 1.0
    max_backoff: float = 60.0
    page_limit: int = 50000


@dataclass
class StorageConfig:
    """存储配置"""

    backend: str = "duckdb"
    data_folder: str = str(DEFAULT_HOME / "data")
    database: str | None = None

    @property
    def database_path(self) -> str:
        """DuckDB file used by the duckdb backend."""
        return self.database or str(Path(self.data_folder) / "histvault.duckdb")


@dataclass
class DownloadConfig:
    """下载批处理配置"""

    concurrency: int = 1
    security_type: str = "equity"
    resolution: str = "minute"
    market: str | None = None


@dataclass
class LoggingConfig:
    """日志配置"""

    level: str = "INFO"
    file: str | None = None


@dataclass
class HistVaultConfig:
    """histvault主配置"""

    provider: ProviderConfig = field(default_factory=ProviderConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    download: DownloadConfig = field(default_factory=DownloadConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "HistVaultConfig":
        """从字典创建配置"""
        return cls(
            provider=ProviderConfig(**config_dict.get("provider", {})),
            storage=StorageConfig(**config_dict.get("storage", {})),
            download=DownloadConfig(**config_dict.get("download", {})),
            logging=LoggingConfig(**config_dict.get("logging", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        """转换为字典"""
        return {
            "provider": asdict(self.provider),
            "storage": asdict(self.storage),
            "download": asdict(self.download),
            "logging": asdict(self.logging),
        }


def _deep_update(d: dict[str, Any], u: dict[str, Any]) -> dict[str, Any]:
    """深度更新字典"""
    for k, v in u.items():
        if isinstance(v, dict):
            d[k] = _deep_update(d.get(k, {}), v)
        else:
            d[k] = v
    return d


class ConfigManager:
    """配置管理器"""

    def __init__(self, config_path: Path | None = None, *, use_env: bool = True):
        """初始化配置管理器

        Args:
            config_path: 配置文件路径，如果为None则使用默认路径
            use_env: 是否叠加 HISTVAULT_* 环境变量
        """
        self.config_path = config_path or DEFAULT_HOME / "config.toml"
        self.use_env = use_env
        self.config = self._load_config()

    def _load_config(self) -> HistVaultConfig:
        """加载配置"""
        config_dict: dict[str, Any] = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, "rb") as f:
                    config_dict = tomllib.load(f)
                HistVaultConfig.from_dict(config_dict)
            except (OSError, tomllib.TOMLDecodeError, TypeError) as e:
                # 如果配置文件有问题，使用默认配置
                logger.warning("Failed to load config from {}: {}", self.config_path, e)
                config_dict = {}

        if self.use_env:
            _deep_update(config_dict, load_config_from_env())
        return HistVaultConfig.from_dict(config_dict)

    def get_config(self) -> HistVaultConfig:
        """获取当前配置"""
        return self.config

    def update_config(self, **updates: Any) -> None:
        """更新配置, 忽略值为 None 的项"""
        config_dict = self.config.to_dict()
        cleaned = {
            section: {k: v for k, v in values.items() if v is not None}
            for section, values in updates.items()
        }
        _deep_update(config_dict, cleaned)
        self.config = HistVaultConfig.from_dict(config_dict)


def get_default_config() -> HistVaultConfig:
    """获取默认配置"""
    return HistVaultConfig()


_ENV_FIELDS: dict[str, tuple[str, str, type]] = {
    "HISTVAULT_API_KEY": ("provider", "api_key", str),
    "HISTVAULT_PROVIDER_BASE_URL": ("provider", "base_url", str),
    "HISTVAULT_PROVIDER_TIMEOUT": ("provider", "timeout", float),
    "HISTVAULT_PROVIDER_MAX_RETRIES": ("provider", "max_retries", int),
    "HISTVAULT_STORAGE_BACKEND": ("storage", "backend", str),
    "HISTVAULT_DATA_FOLDER": ("storage", "data_folder", str),
    "HISTVAULT_DATABASE": ("storage", "database", str),
    "HISTVAULT_CONCURRENCY": ("download", "concurrency", int),
    "HISTVAULT_LOGGING_LEVEL": ("logging", "level", str),
    "HISTVAULT_LOGGING_FILE": ("logging", "file", str),
}


def load_config_from_env() -> dict[str, Any]:
    """从环境变量加载配置"""
    config: dict[str, dict[str, Any]] = {}
    for variable, (section, key, caster) in _ENV_FIELDS.items():
        raw = os.getenv(variable)
        if raw is None or raw == "":
            continue
        config.setdefault(section, {})[key] = caster(raw)
    return config
