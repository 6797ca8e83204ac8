from __future__ import annotations

import random
from collections import Counter
from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from histvault.core.data.providers import make_trade_bars
from histvault.core.exceptions import EmptyResult, ObservationRejected
from histvault.core.models import FetchRequest, Instrument, QuoteBar, Resolution, SecurityType, Tick, TickType
from histvault.core.services import sequence

START = datetime(2024, 1, 2, 14, 30, tzinfo=UTC)


def _request(tick_type: TickType = TickType.TRADE, resolution: Resolution = Resolution.MINUTE) -> FetchRequest:
    return FetchRequest(
        instrument=Instrument(ticker="SPY", security_type=SecurityType.EQUITY),
        resolution=resolution,
        tick_type=tick_type,
        range_start=START,
        range_end=START + timedelta(days=1),
    )


def _tick(seconds: int, price: str) -> Tick:
    moment = START + timedelta(seconds=seconds)
    return Tick(symbol="SPY", time=moment, end_time=moment, price=Decimal(price), quantity=Decimal(1))


def test_sorts_by_end_time() -> None:
    bars = make_trade_bars("SPY", START, 50)
    shuffled = list(bars)
    random.Random(7).shuffle(shuffled)

    batch = sequence(_request(), shuffled)

    assert list(batch.observations) == bars
    assert batch.instrument.ticker == "SPY"
    assert batch.tick_type is TickType.TRADE


def test_output_is_permutation_of_input() -> None:
    bars = make_trade_bars("SPY", START, 20)
    shuffled = list(bars)
    random.Random(11).shuffle(shuffled)

    batch = sequence(_request(), shuffled)

    assert len(batch) == len(shuffled)
    assert Counter(batch.observations) == Counter(shuffled)


def test_sort_is_stable_for_equal_end_times() -> None:
    ticks = [_tick(5, "3"), _tick(1, "1"), _tick(5, "1"), _tick(5, "2")]

    batch = sequence(_request(resolution=Resolution.TICK), ticks)

    assert [(tick.end_time, tick.price) for tick in batch.observations] == [
        (START + timedelta(seconds=1), Decimal("1")),
        (START + timedelta(seconds=5), Decimal("3")),
        (START + timedelta(seconds=5), Decimal("1")),
        (START + timedelta(seconds=5), Decimal("2")),
    ]


def test_already_ordered_input_is_unchanged() -> None:
    bars = make_trade_bars("SPY", START, 5)

    assert list(sequence(_request(), bars).observations) == bars


@pytest.mark.parametrize("observations", [None, [], iter(())])
def test_empty_input_raises_empty_result(observations: object) -> None:
    with pytest.raises(EmptyResult):
        sequence(_request(), observations)  # type: ignore[arg-type]


def test_naive_timestamp_rejected() -> None:
    naive = datetime(2024, 1, 2, 14, 30)
    bars = [*make_trade_bars("SPY", START, 2), *make_trade_bars("SPY", naive, 1)]

    with pytest.raises(ObservationRejected) as excinfo:
        sequence(_request(), bars)

    assert excinfo.value.index == 2


def test_non_utc_timestamp_rejected() -> None:
    eastern = timezone(timedelta(hours=-5))
    bars = make_trade_bars("SPY", START.astimezone(eastern), 3)

    with pytest.raises(ObservationRejected) as excinfo:
        sequence(_request(), bars)

    assert excinfo.value.index == 0
    assert excinfo.value.details["utc_offset"] == "-1 day, 19:00:00"


def test_tick_type_mismatch_rejected() -> None:
    quote = QuoteBar(symbol="SPY", time=START, end_time=START + timedelta(minutes=1), bid_close=Decimal("1"))

    with pytest.raises(ObservationRejected) as excinfo:
        sequence(_request(TickType.TRADE), [quote])

    assert excinfo.value.details["expected"] == "trade"
    assert excinfo.value.details["received"] == "quote"
