from __future__ import annotations

import zipfile
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path

import pytest

from histvault.core.data.providers import make_trade_bars
from histvault.core.data.storage import LeanCsvEncoder, LeanStoreWriter
from histvault.core.exceptions import WriteFailure
from histvault.core.models import (
    Instrument,
    Observation,
    OrderedBatch,
    QuoteBar,
    Resolution,
    SecurityType,
    Tick,
    TickType,
    TradeBar,
)

START = datetime(2024, 1, 2, 14, 30, tzinfo=UTC)
SPY = Instrument(ticker="SPY", security_type=SecurityType.EQUITY)


def _batch(
    observations: list[Observation],
    *,
    instrument: Instrument = SPY,
    resolution: Resolution = Resolution.MINUTE,
    tick_type: TickType = TickType.TRADE,
) -> OrderedBatch:
    return OrderedBatch(
        instrument=instrument,
        resolution=resolution,
        tick_type=tick_type,
        observations=tuple(observations),
    )


def _read(path: Path) -> tuple[str, list[str]]:
    with zipfile.ZipFile(path) as archive:
        (entry,) = archive.namelist()
        return entry, archive.read(entry).decode("utf-8").splitlines()


class TestMinuteLayout:
    def test_equity_minute_trade_bars(self, tmp_path: Path) -> None:
        writer = LeanStoreWriter(tmp_path)

        receipt = writer.write(_batch(make_trade_bars("SPY", START, 2)))

        path = tmp_path / "equity" / "usa" / "minute" / "spy" / "20240102_trade.zip"
        assert receipt.location == str(path)
        assert receipt.rows == 2
        entry, lines = _read(path)
        assert entry == "20240102_spy_minute_trade.csv"
        assert lines == [
            "52200000,1000000,1000000,1000000,1000000,100",
            "52260000,1000100,1000100,1000100,1000100,100",
        ]

    def test_batches_spanning_days_are_split(self, tmp_path: Path) -> None:
        late = datetime(2024, 1, 2, 23, 59, tzinfo=UTC)
        writer = LeanStoreWriter(tmp_path)

        receipt = writer.write(_batch(make_trade_bars("SPY", late, 2)))

        folder = tmp_path / "equity" / "usa" / "minute" / "spy"
        assert sorted(path.name for path in folder.iterdir()) == ["20240102_trade.zip", "20240103_trade.zip"]
        assert receipt.location == str(folder)
        assert _read(folder / "20240103_trade.zip")[1][0].startswith("0,")

    def test_rewrite_merges_outside_span(self, tmp_path: Path) -> None:
        writer = LeanStoreWriter(tmp_path)
        writer.write(_batch(make_trade_bars("SPY", START, 4)))
        writer.write(_batch(make_trade_bars("SPY", START + timedelta(minutes=1), 2, price=Decimal("200"))))

        _, lines = _read(tmp_path / "equity" / "usa" / "minute" / "spy" / "20240102_trade.zip")

        assert [line.split(",")[1] for line in lines] == ["1000000", "2000000", "2000100", "1000300"]
        assert not list((tmp_path / "equity" / "usa" / "minute" / "spy").glob("*.tmp"))

    def test_forex_quote_bars_have_no_sizes(self, tmp_path: Path) -> None:
        eurusd = Instrument(ticker="EURUSD", security_type=SecurityType.FOREX, market="oanda")
        bar = QuoteBar(
            symbol="EURUSD",
            time=START,
            end_time=START + timedelta(minutes=1),
            bid_open=Decimal("1.1"),
            bid_high=Decimal("1.2"),
            bid_low=Decimal("1.0"),
            bid_close=Decimal("1.15"),
            last_bid_size=Decimal(5),
            ask_open=Decimal("1.11"),
            ask_high=Decimal("1.21"),
            ask_low=Decimal("1.01"),
            ask_close=Decimal("1.16"),
        )

        LeanStoreWriter(tmp_path).write(_batch([bar], instrument=eurusd, tick_type=TickType.QUOTE))

        entry, lines = _read(tmp_path / "forex" / "oanda" / "minute" / "eurusd" / "20240102_quote.zip")
        assert entry == "20240102_eurusd_minute_quote.csv"
        assert lines == ["52200000,1.1,1.2,1,1.15,1.11,1.21,1.01,1.16"]


class TestDailyLayout:
    def test_equity_daily_single_archive(self, tmp_path: Path) -> None:
        day = datetime(2024, 1, 2, tzinfo=UTC)
        bars = make_trade_bars("SPY", day, 2, period=timedelta(days=1))

        LeanStoreWriter(tmp_path).write(_batch(bars, resolution=Resolution.DAILY))

        entry, lines = _read(tmp_path / "equity" / "usa" / "daily" / "spy.zip")
        assert entry == "spy.csv"
        assert lines[0] == "20240102 00:00,1000000,1000000,1000000,1000000,100"
        assert lines[1].startswith("20240103 00:00,")

    def test_quote_daily_archive_name(self, tmp_path: Path) -> None:
        btc = Instrument(ticker="BTCUSD", security_type=SecurityType.CRYPTO, market="coinbase")
        bar = QuoteBar(
            symbol="BTCUSD",
            time=datetime(2024, 1, 2, tzinfo=UTC),
            end_time=datetime(2024, 1, 3, tzinfo=UTC),
            bid_close=Decimal("42000.5"),
            last_bid_size=Decimal("0.25"),
        )

        LeanStoreWriter(tmp_path).write(
            _batch([bar], instrument=btc, resolution=Resolution.DAILY, tick_type=TickType.QUOTE)
        )

        _, lines = _read(tmp_path / "crypto" / "coinbase" / "daily" / "btcusd_quote.zip")
        assert lines == ["20240102 00:00,,,,42000.5,0.25,,,,,0"]

    def test_existing_history_is_kept(self, tmp_path: Path) -> None:
        writer = LeanStoreWriter(tmp_path)
        first = make_trade_bars("SPY", datetime(2024, 1, 2, tzinfo=UTC), 2, period=timedelta(days=1))
        second = make_trade_bars("SPY", datetime(2024, 1, 4, tzinfo=UTC), 1, period=timedelta(days=1))

        writer.write(_batch(first, resolution=Resolution.DAILY))
        writer.write(_batch(second, resolution=Resolution.DAILY))

        _, lines = _read(tmp_path / "equity" / "usa" / "daily" / "spy.zip")
        assert [line[:8] for line in lines] == ["20240102", "20240103", "20240104"]

    def test_daily_and_hour_stamps_are_floored(self, tmp_path: Path) -> None:
        exchange_midnight = datetime(2024, 1, 2, 5, tzinfo=UTC)
        daily = make_trade_bars("SPY", exchange_midnight, 1, period=timedelta(days=1))
        hourly = make_trade_bars("SPY", datetime(2024, 1, 2, 14, 30, tzinfo=UTC), 1, period=timedelta(hours=1))
        writer = LeanStoreWriter(tmp_path)

        writer.write(_batch(daily, resolution=Resolution.DAILY))
        writer.write(_batch(hourly, resolution=Resolution.HOUR))

        _, daily_lines = _read(tmp_path / "equity" / "usa" / "daily" / "spy.zip")
        _, hour_lines = _read(tmp_path / "equity" / "usa" / "hour" / "spy.zip")
        assert daily_lines[0].startswith("20240102 00:00,")
        assert hour_lines[0].startswith("20240102 14:00,")


class TestEncoder:
    def test_equity_trade_tick(self) -> None:
        tick = Tick(
            symbol="SPY",
            time=START,
            end_time=START,
            price=Decimal("470.25"),
            quantity=Decimal(100),
            exchange="4",
            conditions="12",
        )

        assert LeanCsvEncoder(SecurityType.EQUITY).fields(tick) == ["4702500", "100", "4", "12", "0"]

    def test_crypto_trade_tick_is_unscaled(self) -> None:
        tick = Tick(symbol="BTCUSD", time=START, end_time=START, price=Decimal("42000.5"), quantity=Decimal("0.1"))

        assert LeanCsvEncoder(SecurityType.CRYPTO).fields(tick) == ["42000.5", "0.1"]

    def test_forex_quote_tick(self) -> None:
        tick = Tick(
            symbol="EURUSD",
            time=START,
            end_time=START,
            tick_type=TickType.QUOTE,
            bid_price=Decimal("1.1"),
            ask_price=Decimal("1.2"),
        )

        assert LeanCsvEncoder(SecurityType.FOREX).fields(tick) == ["1.1", "1.2"]

    def test_crypto_trade_bar_keeps_volume(self) -> None:
        bar = TradeBar(
            symbol="BTCUSD",
            time=START,
            end_time=START,
            open=Decimal("1.5"),
            high=Decimal("2"),
            low=Decimal("1"),
            close=Decimal("1.75"),
            volume=Decimal("3.25"),
        )

        assert LeanCsvEncoder(SecurityType.CRYPTO).fields(bar) == ["1.5", "2", "1", "1.75", "3.25"]


@pytest.mark.parametrize("security_type", [SecurityType.OPTION, SecurityType.FUTURE, SecurityType.FUTURE_OPTION])
def test_unsupported_layouts_raise_write_failure(tmp_path: Path, security_type: SecurityType) -> None:
    instrument = Instrument(ticker="ES", security_type=security_type)

    with pytest.raises(WriteFailure):
        LeanStoreWriter(tmp_path).write(_batch(make_trade_bars("ES", START, 1), instrument=instrument))

    assert list(tmp_path.iterdir()) == []
