"""存储层: 分区写入器与DuckDB工具."""

from histvault.core.data.storage.base import StoreWriter, WriteReceipt
from histvault.core.data.storage.duckdb_writer import DuckDBStoreWriter, connect_store
from histvault.core.data.storage.factory import STORE_BACKENDS, create_store_writer
from histvault.core.data.storage.lean_writer import LeanCsvEncoder, LeanStoreWriter
from histvault.core.data.storage.schema import (
    QUOTE_BARS_TABLE,
    TICKS_TABLE,
    TRADE_BARS_TABLE,
    ensure_store_tables,
    table_for,
)

__all__ = [
    "DuckDBStoreWriter",
    "LeanCsvEncoder",
    "LeanStoreWriter",
    "QUOTE_BARS_TABLE",
    "STORE_BACKENDS",
    "StoreWriter",
    "TICKS_TABLE",
    "TRADE_BARS_TABLE",
    "WriteReceipt",
    "connect_store",
    "create_store_writer",
    "ensure_store_tables",
    "table_for",
]
