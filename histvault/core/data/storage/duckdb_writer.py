"""Store writer persisting ordered batches into DuckDB tables."""

from __future__ import annotations

import threading
from contextlib import suppress
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import TYPE_CHECKING, Callable
from uuid import uuid4

import duckdb

from histvault.core.data.storage.base import StoreWriter, WriteReceipt
from histvault.core.data.storage.schema import (
    PARTITION_KEY,
    TICKS_TABLE,
    TableSchema,
    ensure_store_tables,
    table_for,
)
from histvault.core.exceptions import WriteFailure
from histvault.core.models import Instrument, QuoteBar, Resolution, Tick, TickType, TradeBar

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

    from histvault.core.models import Observation, OrderedBatch


def connect_store(database: str | Path = ":memory:", *, threads: int = 1) -> DuckDBPyConnection:
    """Open the store database, creating its directory when it is a file."""

    if str(database) != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(database=str(database), config={"threads": threads})


def _naive_utc(value: datetime) -> datetime:
    return value.astimezone(UTC).replace(tzinfo=None)


def _float(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


_TABLE_TYPES: dict[str, type] = {
    "trade_bars": TradeBar,
    "quote_bars": QuoteBar,
    "ticks": Tick,
}


def _payload(table: TableSchema, observation: Observation) -> tuple[object, ...]:
    expected = _TABLE_TYPES[table.name]
    if not isinstance(observation, expected):
        raise WriteFailure(
            f"{type(observation).__name__} cannot be stored in {table.name}",
            location=table.name,
        )
    if isinstance(observation, TradeBar):
        return (
            float(observation.open),
            float(observation.high),
            float(observation.low),
            float(observation.close),
            float(observation.volume),
        )
    if isinstance(observation, QuoteBar):
        return (
            _float(observation.bid_open),
            _float(observation.bid_high),
            _float(observation.bid_low),
            _float(observation.bid_close),
            float(observation.last_bid_size),
            _float(observation.ask_open),
            _float(observation.ask_high),
            _float(observation.ask_low),
            _float(observation.ask_close),
            float(observation.last_ask_size),
        )
    if isinstance(observation, Tick):
        return (
            _float(observation.price),
            float(observation.quantity),
            observation.exchange,
            observation.conditions,
            _float(observation.bid_price),
            float(observation.bid_size),
            _float(observation.ask_price),
            float(observation.ask_size),
        )
    raise WriteFailure(f"unsupported observation type {type(observation).__name__}", location=table.name)


class DuckDBStoreWriter(StoreWriter):
    """Write batches into ``trade_bars``/``quote_bars``/``ticks``.

    A partition is (security type, market, symbol, resolution), plus tick type
    for raw ticks. Writing replaces the partition rows inside the batch's time
    span in a single transaction.
    """

    name = "duckdb"

    def __init__(
        self,
        conn: DuckDBPyConnection | None = None,
        *,
        database: str | Path = ":memory:",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._owns_connection = conn is None
        self._conn = conn if conn is not None else connect_store(database)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._lock = threading.Lock()
        ensure_store_tables(self._conn)

    @property
    def connection(self) -> DuckDBPyConnection:
        return self._conn

    def _partition_filter(self, table: TableSchema, batch: OrderedBatch) -> tuple[str, list[object]]:
        instrument = batch.instrument
        clauses = [f"{column} = ?" for column in PARTITION_KEY]
        params: list[object] = [
            instrument.security_type.value,
            instrument.market,
            instrument.ticker,
            batch.resolution.value,
        ]
        if table is TICKS_TABLE:
            clauses.append("tick_type = ?")
            params.append(batch.tick_type.value)
        return " AND ".join(clauses), params

    def _rows(self, table: TableSchema, batch: OrderedBatch) -> list[tuple[object, ...]]:
        instrument = batch.instrument
        batch_id = uuid4().hex
        ingest_time = _naive_utc(self._clock())
        partition: tuple[object, ...] = (
            instrument.security_type.value,
            instrument.market,
            instrument.ticker,
            batch.resolution.value,
        )
        if table is TICKS_TABLE:
            partition = (*partition, batch.tick_type.value)

        rows: list[tuple[object, ...]] = []
        for seq, observation in enumerate(batch.observations):
            rows.append(
                (
                    *partition,
                    seq,
                    _naive_utc(observation.time),
                    _naive_utc(observation.end_time),
                    *_payload(table, observation),
                    batch_id,
                    ingest_time,
                )
            )
        return rows

    def write(self, batch: OrderedBatch) -> WriteReceipt:
        table = table_for(batch.tick_type, is_tick=batch.resolution.is_tick)
        rows = self._rows(table, batch)
        where, params = self._partition_filter(table, batch)
        location = f"{table.name}/{'/'.join(str(value) for value in params)}"

        with self._lock:
            cursor = self._conn.cursor()
            try:
                cursor.execute("BEGIN TRANSACTION")
                cursor.execute(
                    f"DELETE FROM {table.name} WHERE {where} AND end_time BETWEEN ? AND ?",
                    [*params, _naive_utc(batch.first_time), _naive_utc(batch.last_time)],
                )
                cursor.executemany(table.insert_sql(), rows)
                cursor.execute("COMMIT")
            except duckdb.Error as exc:
                with suppress(duckdb.Error):
                    cursor.execute("ROLLBACK")
                raise WriteFailure(f"DuckDB write failed: {exc}", location=location) from exc
            finally:
                cursor.close()

        return WriteReceipt(rows=len(rows), location=location)

    def read_partition(
        self,
        instrument: Instrument,
        resolution: Resolution,
        tick_type: TickType = TickType.TRADE,
    ) -> list[dict[str, object]]:
        """Return the stored rows of one partition ordered by time."""

        table = table_for(tick_type, is_tick=resolution.is_tick)
        clauses = [f"{column} = ?" for column in PARTITION_KEY]
        params: list[object] = [
            instrument.security_type.value,
            instrument.market,
            instrument.ticker,
            resolution.value,
        ]
        if table is TICKS_TABLE:
            clauses.append("tick_type = ?")
            params.append(tick_type.value)
        with self._lock:
            cursor = self._conn.cursor()
            try:
                result = cursor.execute(
                    f"SELECT * FROM {table.name} WHERE {' AND '.join(clauses)} ORDER BY end_time, seq",
                    params,
                )
                columns = [description[0] for description in result.description]
                return [dict(zip(columns, row)) for row in result.fetchall()]
            finally:
                cursor.close()

    def close(self) -> None:
        if self._owns_connection:
            self._conn.close()


__all__ = ["DuckDBStoreWriter", "connect_store"]
