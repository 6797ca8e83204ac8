"""DuckDB schema definitions for the partitioned market data store."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from histvault.core.models import TickType

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection


@dataclass(frozen=True)
class ColumnDef:
    """Represents a DuckDB table column definition."""

    name: str
    data_type: str
    constraints: Sequence[str] = ()

    def render(self) -> str:
        parts = [self.name, self.data_type, *self.constraints]
        return " ".join(parts)


@dataclass(frozen=True)
class TableSchema:
    """Utility wrapper describing a DuckDB table schema."""

    name: str
    columns: Sequence[ColumnDef]
    primary_key: Sequence[str] = ()

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    def create_ddl(self) -> str:
        column_defs: list[str] = [column.render() for column in self.columns]
        if self.primary_key:
            pk_cols = ", ".join(self.primary_key)
            column_defs.append(f"PRIMARY KEY ({pk_cols})")
        columns_sql = ",\n                ".join(column_defs)
        return f"""
            CREATE TABLE IF NOT EXISTS {self.name} (
                {columns_sql}
            )
            """.strip()

    def insert_sql(self) -> str:
        placeholders = ", ".join(["?"] * len(self.columns))
        return f"INSERT INTO {self.name} ({', '.join(self.column_names)}) VALUES ({placeholders})"

    def ensure(self, conn: DuckDBPyConnection) -> None:
        """Create the table on the provided connection if it does not exist."""

        conn.execute(self.create_ddl())


_PARTITION_COLUMNS = (
    ColumnDef("security_type", "VARCHAR", ("NOT NULL",)),
    ColumnDef("market", "VARCHAR", ("NOT NULL",)),
    ColumnDef("symbol", "VARCHAR", ("NOT NULL",)),
    ColumnDef("resolution", "VARCHAR", ("NOT NULL",)),
)

_TIME_COLUMNS = (
    ColumnDef("seq", "BIGINT", ("NOT NULL",)),
    ColumnDef("time", "TIMESTAMP", ("NOT NULL",)),
    ColumnDef("end_time", "TIMESTAMP", ("NOT NULL",)),
)

_AUDIT_COLUMNS = (
    ColumnDef("batch_id", "VARCHAR", ("NOT NULL",)),
    ColumnDef("ingest_time", "TIMESTAMP", ("NOT NULL",)),
)

PARTITION_KEY = tuple(column.name for column in _PARTITION_COLUMNS)

TRADE_BARS_TABLE = TableSchema(
    name="trade_bars",
    columns=(
        *_PARTITION_COLUMNS,
        *_TIME_COLUMNS,
        ColumnDef("open", "DOUBLE", ("NOT NULL",)),
        ColumnDef("high", "DOUBLE", ("NOT NULL",)),
        ColumnDef("low", "DOUBLE", ("NOT NULL",)),
        ColumnDef("close", "DOUBLE", ("NOT NULL",)),
        ColumnDef("volume", "DOUBLE", ("NOT NULL",)),
        *_AUDIT_COLUMNS,
    ),
)

QUOTE_BARS_TABLE = TableSchema(
    name="quote_bars",
    columns=(
        *_PARTITION_COLUMNS,
        *_TIME_COLUMNS,
        ColumnDef("bid_open", "DOUBLE"),
        ColumnDef("bid_high", "DOUBLE"),
        ColumnDef("bid_low", "DOUBLE"),
        ColumnDef("bid_close", "DOUBLE"),
        ColumnDef("last_bid_size", "DOUBLE"),
        ColumnDef("ask_open", "DOUBLE"),
        ColumnDef("ask_high", "DOUBLE"),
        ColumnDef("ask_low", "DOUBLE"),
        ColumnDef("ask_close", "DOUBLE"),
        ColumnDef("last_ask_size", "DOUBLE"),
        *_AUDIT_COLUMNS,
    ),
)

TICKS_TABLE = TableSchema(
    name="ticks",
    columns=(
        *_PARTITION_COLUMNS,
        ColumnDef("tick_type", "VARCHAR", ("NOT NULL",)),
        *_TIME_COLUMNS,
        ColumnDef("price", "DOUBLE"),
        ColumnDef("quantity", "DOUBLE"),
        ColumnDef("exchange", "VARCHAR"),
        ColumnDef("conditions", "VARCHAR"),
        ColumnDef("bid_price", "DOUBLE"),
        ColumnDef("bid_size", "DOUBLE"),
        ColumnDef("ask_price", "DOUBLE"),
        ColumnDef("ask_size", "DOUBLE"),
        *_AUDIT_COLUMNS,
    ),
)


def store_tables() -> Sequence[TableSchema]:
    """Return every table making up the market data store."""

    return (TRADE_BARS_TABLE, QUOTE_BARS_TABLE, TICKS_TABLE)


def table_for(tick_type: TickType, *, is_tick: bool) -> TableSchema:
    """Pick the table holding data of ``tick_type`` at bar or tick resolution."""

    if is_tick:
        return TICKS_TABLE
    return QUOTE_BARS_TABLE if tick_type is TickType.QUOTE else TRADE_BARS_TABLE


def ensure_store_tables(conn: DuckDBPyConnection) -> None:
    """Create all store tables on the provided DuckDB connection."""

    for table in store_tables():
        table.ensure(conn)


def create_store_ddl() -> Iterable[str]:
    """Yield CREATE TABLE statements for the store schemas."""

    for table in store_tables():
        yield table.create_ddl()


__all__ = [
    "ColumnDef",
    "PARTITION_KEY",
    "QUOTE_BARS_TABLE",
    "TICKS_TABLE",
    "TRADE_BARS_TABLE",
    "TableSchema",
    "create_store_ddl",
    "ensure_store_tables",
    "store_tables",
    "table_for",
]
