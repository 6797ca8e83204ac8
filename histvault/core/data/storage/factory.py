"""Store writer selection from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from histvault.core.data.storage.duckdb_writer import DuckDBStoreWriter
from histvault.core.data.storage.lean_writer import LeanStoreWriter
from histvault.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from histvault.core.config import StorageConfig
    from histvault.core.data.storage.base import StoreWriter

STORE_BACKENDS = ("duckdb", "lean")


def create_store_writer(config: StorageConfig) -> StoreWriter:
    """根据存储配置创建写入器."""

    backend = config.backend.strip().lower()
    if backend == "duckdb":
        return DuckDBStoreWriter(database=config.database_path)
    if backend == "lean":
        return LeanStoreWriter(config.data_folder)
    raise ConfigurationError(
        f"Unknown store backend '{config.backend}', expected one of {', '.join(STORE_BACKENDS)}",
        parameter="storage.backend",
    )


__all__ = ["STORE_BACKENDS", "create_store_writer"]
