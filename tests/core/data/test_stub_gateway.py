from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from histvault.core.data.providers import StubGateway, make_trade_bars
from histvault.core.exceptions import NetworkError
from histvault.core.models import FetchRequest, Instrument, Resolution, SecurityType, TickType

START = datetime(2024, 1, 2, 14, 30, tzinfo=UTC)


def _request(ticker: str) -> FetchRequest:
    return FetchRequest(
        instrument=Instrument(ticker=ticker, security_type=SecurityType.EQUITY),
        resolution=Resolution.MINUTE,
        tick_type=TickType.TRADE,
        range_start=START,
        range_end=START + timedelta(hours=1),
    )


def test_make_trade_bars_are_consecutive() -> None:
    bars = make_trade_bars("SPY", START, 3, price=Decimal("10"))

    assert [bar.time for bar in bars] == [START + timedelta(minutes=i) for i in range(3)]
    assert all(bar.end_time - bar.time == timedelta(minutes=1) for bar in bars)
    assert [bar.close for bar in bars] == [Decimal("10"), Decimal("10.01"), Decimal("10.02")]


@pytest.mark.asyncio
async def test_serves_canned_responses_and_records_requests() -> None:
    bars = make_trade_bars("SPY", START, 2)
    gateway = StubGateway({"SPY": bars})

    assert await gateway.fetch(_request("SPY")) == bars
    assert await gateway.fetch(_request("QQQ")) is None
    assert gateway.fetched_tickers == ["SPY", "QQQ"]


@pytest.mark.asyncio
async def test_raises_configured_exceptions() -> None:
    gateway = StubGateway()
    gateway.set_response("SPY", NetworkError("down", provider_name="stub"))

    with pytest.raises(NetworkError):
        await gateway.fetch(_request("SPY"))


@pytest.mark.asyncio
async def test_context_manager_closes() -> None:
    async with StubGateway(provider_name="fixture") as gateway:
        assert gateway.name == "fixture"

    assert gateway.closed
