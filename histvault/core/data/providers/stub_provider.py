"""Deterministic in-memory gateway for tests and dry runs."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta
from decimal import Decimal

from histvault.core.data.providers.base import ProviderGateway
from histvault.core.models import FetchRequest, Observation, TradeBar

StubResponse = Sequence[Observation] | BaseException | None


class StubGateway(ProviderGateway):
    """Serve canned responses keyed by ticker.

    A response may be a sequence of observations, ``None`` (absent) or an
    exception instance which is raised on fetch. Tickers without a response
    are absent.
    """

    def __init__(
        self,
        responses: Mapping[str, StubResponse] | None = None,
        provider_name: str = "stub",
    ) -> None:
        self._responses: dict[str, StubResponse] = dict(responses or {})
        self._provider_name = provider_name
        self.requests: list[FetchRequest] = []
        self.closed = False

    @property
    def name(self) -> str:
        return self._provider_name

    def set_response(self, ticker: str, response: StubResponse) -> None:
        self._responses[ticker] = response

    async def fetch(self, request: FetchRequest) -> Sequence[Observation] | None:
        self.requests.append(request)
        response = self._responses.get(request.instrument.ticker)
        if isinstance(response, BaseException):
            raise response
        if response is None:
            return None
        return list(response)

    async def aclose(self) -> None:
        self.closed = True

    @property
    def fetched_tickers(self) -> list[str]:
        return [request.instrument.ticker for request in self.requests]


def make_trade_bars(
    symbol: str,
    start: datetime,
    count: int,
    period: timedelta = timedelta(minutes=1),
    *,
    price: Decimal = Decimal("100"),
) -> list[TradeBar]:
    """Build ``count`` consecutive flat trade bars starting at ``start``."""

    bars: list[TradeBar] = []
    for index in range(count):
        opened = start + period * index
        close = price + Decimal(index) / Decimal(100)
        bars.append(
            TradeBar(
                symbol=symbol,
                time=opened,
                end_time=opened + period,
                open=close,
                high=close,
                low=close,
                close=close,
                volume=Decimal(100),
            )
        )
    return bars


__all__ = ["StubGateway", "StubResponse", "make_trade_bars"]
