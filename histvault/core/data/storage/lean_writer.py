"""Store writer producing zip-compressed CSV files in the Lean layout.

High resolution data (tick, second, minute) is partitioned per UTC day::

    {root}/{security_type}/{market}/{resolution}/{symbol}/{yyyymmdd}_{tick_type}.zip

Hour and daily data live in a single archive per symbol::

    {root}/{security_type}/{market}/{resolution}/{symbol}.zip
    {root}/{security_type}/{market}/{resolution}/{symbol}_quote.zip
"""

from __future__ import annotations

import io
import os
import tempfile
import zipfile
from collections import defaultdict
from collections.abc import Callable, Iterable
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path
from typing import TYPE_CHECKING

from histvault.core.data.storage.base import StoreWriter, WriteReceipt
from histvault.core.exceptions import WriteFailure
from histvault.core.logging import get_logger
from histvault.core.models import QuoteBar, Resolution, SecurityType, Tick, TickType, TradeBar

if TYPE_CHECKING:
    from histvault.core.models import Observation, OrderedBatch

logger = get_logger(__name__)

PRICE_SCALE = Decimal(10000)

_SCALED_TYPES = frozenset({SecurityType.EQUITY, SecurityType.INDEX})
_SIZELESS_QUOTE_TYPES = frozenset({SecurityType.FOREX, SecurityType.CFD})
_SUPPORTED_TYPES = _SCALED_TYPES | _SIZELESS_QUOTE_TYPES | {SecurityType.CRYPTO}

# (sort key, csv line)
_Row = tuple[object, str]


def _format_number(value: Decimal | None, *, scaled: bool = False) -> str:
    if value is None:
        return ""
    if scaled:
        return str(int((value * PRICE_SCALE).to_integral_value()))
    return format(value.normalize(), "f")


def _millis_since_midnight(moment: datetime) -> int:
    moment = moment.astimezone(UTC)
    midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return int((moment - midnight).total_seconds() * 1000)


def _series_stamp(moment: datetime, resolution: Resolution) -> str:
    moment = moment.astimezone(UTC)
    if resolution is Resolution.DAILY:
        return moment.strftime("%Y%m%d 00:00")
    return moment.strftime("%Y%m%d %H:00")


class LeanCsvEncoder:
    """Turns observations into Lean CSV lines for one security type."""

    def __init__(self, security_type: SecurityType) -> None:
        if security_type not in _SUPPORTED_TYPES:
            raise WriteFailure(f"Lean layout for {security_type.value} data is not supported")
        self.security_type = security_type
        self.scaled = security_type in _SCALED_TYPES
        self.quote_sizes = security_type not in _SIZELESS_QUOTE_TYPES

    def _price(self, value: Decimal | None) -> str:
        return _format_number(value, scaled=self.scaled)

    def fields(self, observation: Observation) -> list[str]:
        if isinstance(observation, TradeBar):
            return [
                self._price(observation.open),
                self._price(observation.high),
                self._price(observation.low),
                self._price(observation.close),
                _format_number(observation.volume),
            ]
        if isinstance(observation, QuoteBar):
            bid = [
                self._price(observation.bid_open),
                self._price(observation.bid_high),
                self._price(observation.bid_low),
                self._price(observation.bid_close),
            ]
            ask = [
                self._price(observation.ask_open),
                self._price(observation.ask_high),
                self._price(observation.ask_low),
                self._price(observation.ask_close),
            ]
            if not self.quote_sizes:
                return [*bid, *ask]
            return [
                *bid,
                _format_number(observation.last_bid_size),
                *ask,
                _format_number(observation.last_ask_size),
            ]
        if isinstance(observation, Tick):
            return self._tick_fields(observation)
        raise WriteFailure(f"unsupported observation type {type(observation).__name__}")

    def _tick_fields(self, tick: Tick) -> list[str]:
        if tick.tick_type is TickType.QUOTE:
            if not self.quote_sizes:
                return [self._price(tick.bid_price), self._price(tick.ask_price)]
            quote = [
                self._price(tick.bid_price),
                _format_number(tick.bid_size),
                self._price(tick.ask_price),
                _format_number(tick.ask_size),
            ]
            if self.security_type is SecurityType.CRYPTO:
                return quote
            return [*quote, tick.exchange or "", tick.conditions or "", "0"]

        trade = [self._price(tick.price), _format_number(tick.quantity)]
        if self.security_type is SecurityType.CRYPTO:
            return trade
        return [*trade, tick.exchange or "", tick.conditions or "", "0"]


class LeanStoreWriter(StoreWriter):
    """Write batches as Lean formatted zip archives under ``data_folder``.

    Rows already on disk whose timestamps fall inside the span of the new
    batch are replaced; the rest of the archive is kept.
    """

    name = "lean"

    def __init__(self, data_folder: str | Path) -> None:
        self.data_folder = Path(data_folder).expanduser()

    def write(self, batch: OrderedBatch) -> WriteReceipt:
        encoder = LeanCsvEncoder(batch.instrument.security_type)
        if batch.resolution.is_high_resolution:
            by_day: dict[date, list[Observation]] = defaultdict(list)
            for observation in batch.observations:
                by_day[observation.time.astimezone(UTC).date()].append(observation)
            paths = [
                self._write_day(batch, encoder, day, observations)
                for day, observations in sorted(by_day.items())
            ]
        else:
            paths = [self._write_series(batch, encoder)]

        location = str(paths[0]) if len(paths) == 1 else str(paths[0].parent)
        logger.bind(
            ticker=batch.instrument.ticker,
            files=len(paths),
            rows=len(batch),
        ).debug("Lean archives written")
        return WriteReceipt(rows=len(batch), location=location)

    def _base_dir(self, batch: OrderedBatch) -> Path:
        instrument = batch.instrument
        return (
            self.data_folder
            / instrument.security_type.value
            / instrument.market.lower()
            / batch.resolution.value
        )

    def zip_path(self, batch: OrderedBatch, day: date | None = None) -> Path:
        """Return the archive path a batch (or one day of it) is written to."""

        symbol = batch.instrument.ticker.lower()
        base = self._base_dir(batch)
        if batch.resolution.is_high_resolution:
            if day is None:
                raise ValueError("high resolution archives are partitioned per day")
            return base / symbol / f"{day:%Y%m%d}_{batch.tick_type.value}.zip"
        if batch.tick_type is TickType.QUOTE:
            return base / f"{symbol}_{batch.tick_type.value}.zip"
        return base / f"{symbol}.zip"

    def _write_day(
        self,
        batch: OrderedBatch,
        encoder: LeanCsvEncoder,
        day: date,
        observations: Iterable[Observation],
    ) -> Path:
        symbol = batch.instrument.ticker.lower()
        entry = f"{day:%Y%m%d}_{symbol}_{batch.resolution.value}_{batch.tick_type.value}.csv"
        rows = [
            (ms, ",".join([str(ms), *encoder.fields(observation)]))
            for observation in observations
            for ms in (_millis_since_midnight(observation.time),)
        ]
        path = self.zip_path(batch, day)
        self._merge_and_replace(path, entry, rows, key=lambda line: int(line.split(",", 1)[0]))
        return path

    def _write_series(self, batch: OrderedBatch, encoder: LeanCsvEncoder) -> Path:
        entry = f"{batch.instrument.ticker.lower()}.csv"
        rows = []
        for observation in batch.observations:
            stamp = _series_stamp(observation.time, batch.resolution)
            rows.append((stamp, ",".join([stamp, *encoder.fields(observation)])))
        path = self.zip_path(batch)
        self._merge_and_replace(path, entry, rows, key=lambda line: line.split(",", 1)[0])
        return path

    def _merge_and_replace(
        self,
        path: Path,
        entry: str,
        rows: list[_Row],
        *,
        key: Callable[[str], object],
    ) -> None:
        low = min(row[0] for row in rows)
        high = max(row[0] for row in rows)
        kept = [
            (existing_key, line)
            for line in self._read_existing(path, entry)
            for existing_key in (key(line),)
            if not low <= existing_key <= high
        ]
        merged = sorted([*kept, *rows], key=lambda row: row[0])
        payload = "".join(f"{line}\n" for _, line in merged)
        self._atomic_write(path, entry, payload)

    def _read_existing(self, path: Path, entry: str) -> list[str]:
        if not path.exists():
            return []
        try:
            with zipfile.ZipFile(path) as archive:
                if entry not in archive.namelist():
                    return []
                text = archive.read(entry).decode("utf-8")
        except (OSError, zipfile.BadZipFile) as exc:
            raise WriteFailure(f"cannot read existing archive: {exc}", location=str(path)) from exc
        return [line for line in text.splitlines() if line.strip()]

    def _atomic_write(self, path: Path, entry: str, payload: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            buffer = io.BytesIO()
            with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                archive.writestr(entry, payload)
            fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(buffer.getvalue())
                os.replace(temp_name, path)
            except BaseException:
                Path(temp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise WriteFailure(f"cannot write archive: {exc}", location=str(path)) from exc


__all__ = ["LeanCsvEncoder", "LeanStoreWriter", "PRICE_SCALE"]
