"""
Polygon.io REST gateway.

Bars (second/minute/hour/daily) come from the aggregates endpoint and raw
ticks from the v3 trades/quotes endpoints. Every page request runs through the
exponential backoff retry so transient network errors and rate limiting do not
fail an instrument straight away.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

import httpx
from loguru import logger

from histvault.core.data.providers.base import ProviderGateway
from histvault.core.exceptions import (
    AuthenticationError,
    NetworkError,
    ProviderUnavailable,
    RateLimitError,
)
from histvault.core.models import (
    FetchRequest,
    Instrument,
    Observation,
    QuoteBar,
    Resolution,
    SecurityType,
    Tick,
    TickType,
    TradeBar,
)
from histvault.core.patterns.retry import ExponentialBackoffRetry, RetryConfig

DEFAULT_BASE_URL = "https://api.polygon.io"

_TIMESPANS: dict[Resolution, tuple[str, timedelta]] = {
    Resolution.SECOND: ("second", timedelta(seconds=1)),
    Resolution.MINUTE: ("minute", timedelta(minutes=1)),
    Resolution.HOUR: ("hour", timedelta(hours=1)),
    Resolution.DAILY: ("day", timedelta(days=1)),
}

_TICKER_PREFIXES: dict[SecurityType, str] = {
    SecurityType.FOREX: "C:",
    SecurityType.CFD: "C:",
    SecurityType.CRYPTO: "X:",
    SecurityType.OPTION: "O:",
    SecurityType.INDEX_OPTION: "O:",
    SecurityType.INDEX: "I:",
}


def polygon_ticker(instrument: Instrument, *, for_ticks: bool = False) -> str:
    """Map an instrument to the ticker format Polygon expects."""

    ticker = instrument.ticker.upper()
    prefix = _TICKER_PREFIXES.get(instrument.security_type, "")
    if prefix and ticker.startswith(prefix):
        ticker = ticker[len(prefix) :]
    if for_ticks and instrument.security_type in (SecurityType.FOREX, SecurityType.CFD) and len(ticker) == 6:
        ticker = f"{ticker[:3]}-{ticker[3:]}"
    return f"{prefix}{ticker}"


def _from_millis(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, UTC)


def _bar_open(resolution: Resolution, opened: datetime) -> datetime:
    """Floor hour and daily aggregates to their UTC boundary.

    Polygon stamps daily bars at exchange midnight (05:00 or 04:00 UTC for US
    listings); the store keys them by calendar day.
    """

    if resolution is Resolution.DAILY:
        return opened.replace(hour=0, minute=0, second=0, microsecond=0)
    if resolution is Resolution.HOUR:
        return opened.replace(minute=0, second=0, microsecond=0)
    return opened


def _in_range(request: FetchRequest, opened: datetime, closed: datetime) -> bool:
    if request.resolution is Resolution.DAILY:
        first_day = _bar_open(Resolution.DAILY, request.range_start)
        return first_day <= opened and (opened < request.range_end or opened == first_day)
    return request.range_start <= opened and closed <= request.range_end


def _from_nanos(value: int) -> datetime:
    seconds, remainder = divmod(int(value), 1_000_000_000)
    return datetime.fromtimestamp(seconds, UTC) + timedelta(microseconds=remainder // 1000)


def _to_nanos(value: datetime) -> int:
    delta = value - datetime(1970, 1, 1, tzinfo=UTC)
    return (delta.days * 86_400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1000


def _decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value))


class PolygonGateway(ProviderGateway):
    """Historical data gateway backed by the Polygon REST API."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        page_limit: int = 50000,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        provider_name: str = "polygon",
    ) -> None:
        if not api_key:
            raise AuthenticationError(
                "Polygon API key is required",
                provider_name=provider_name,
                auth_method="api_key",
            )
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._page_limit = page_limit
        self._retry_config = retry_config or RetryConfig()
        self._transport = transport
        self._provider_name = provider_name
        self._client: httpx.AsyncClient | None = None

    @property
    def name(self) -> str:
        return self._provider_name

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout),
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "User-Agent": "histvault/0.1.0",
                },
                transport=self._transport,
                follow_redirects=True,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch(self, request: FetchRequest) -> Sequence[Observation] | None:
        if request.resolution.is_tick:
            observations = await self._fetch_ticks(request)
        else:
            observations = await self._fetch_aggregates(request)
        if not observations:
            logger.debug("Polygon returned no data for {}", request.instrument.ticker)
            return None
        return observations

    async def _fetch_aggregates(self, request: FetchRequest) -> list[Observation]:
        timespan, period = _TIMESPANS[request.resolution]
        ticker = polygon_ticker(request.instrument)
        start_ms = int(request.range_start.timestamp() * 1000)
        end_ms = int(request.range_end.timestamp() * 1000)
        url = f"/v2/aggs/ticker/{ticker}/range/1/{timespan}/{start_ms}/{end_ms}"
        params: dict[str, Any] | None = {
            "adjusted": "true",
            "sort": "asc",
            "limit": self._page_limit,
        }

        observations: list[Observation] = []
        async for result in self._paginate(url, params):
            opened = _bar_open(request.resolution, _from_millis(result["t"]))
            closed = opened + period
            if not _in_range(request, opened, closed):
                continue
            observations.append(self._bar_from_aggregate(request, result, opened, closed))
        return observations

    def _bar_from_aggregate(
        self, request: FetchRequest, result: dict[str, Any], opened: datetime, closed: datetime
    ) -> Observation:
        symbol = request.instrument.ticker
        if request.tick_type is TickType.QUOTE:
            # Aggregates carry no bid/ask split; both sides get the same prices.
            o, h, l, c = (_decimal(result.get(key)) for key in ("o", "h", "l", "c"))
            return QuoteBar(
                symbol=symbol,
                time=opened,
                end_time=closed,
                bid_open=o,
                bid_high=h,
                bid_low=l,
                bid_close=c,
                ask_open=o,
                ask_high=h,
                ask_low=l,
                ask_close=c,
            )
        return TradeBar(
            symbol=symbol,
            time=opened,
            end_time=closed,
            open=_decimal(result["o"]),
            high=_decimal(result["h"]),
            low=_decimal(result["l"]),
            close=_decimal(result["c"]),
            volume=_decimal(result.get("v")) or Decimal(0),
        )

    async def _fetch_ticks(self, request: FetchRequest) -> list[Observation]:
        ticker = polygon_ticker(request.instrument, for_ticks=True)
        kind = "quotes" if request.tick_type is TickType.QUOTE else "trades"
        params: dict[str, Any] | None = {
            "timestamp.gte": _to_nanos(request.range_start),
            "timestamp.lte": _to_nanos(request.range_end),
            "order": "asc",
            "sort": "timestamp",
            "limit": min(self._page_limit, 50000),
        }

        observations: list[Observation] = []
        async for result in self._paginate(f"/v3/{kind}/{ticker}", params):
            stamp = result.get("sip_timestamp") or result.get("participant_timestamp")
            if stamp is None:
                continue
            when = _from_nanos(stamp)
            if request.tick_type is TickType.QUOTE:
                observations.append(
                    Tick(
                        symbol=request.instrument.ticker,
                        time=when,
                        end_time=when,
                        tick_type=TickType.QUOTE,
                        bid_price=_decimal(result.get("bid_price")),
                        bid_size=_decimal(result.get("bid_size")) or Decimal(0),
                        ask_price=_decimal(result.get("ask_price")),
                        ask_size=_decimal(result.get("ask_size")) or Decimal(0),
                    )
                )
            else:
                conditions = result.get("conditions") or []
                exchange = result.get("exchange")
                observations.append(
                    Tick(
                        symbol=request.instrument.ticker,
                        time=when,
                        end_time=when,
                        tick_type=TickType.TRADE,
                        price=_decimal(result.get("price")),
                        quantity=_decimal(result.get("size")) or Decimal(0),
                        exchange=str(exchange) if exchange is not None else None,
                        conditions=",".join(str(item) for item in conditions) or None,
                    )
                )
        return observations

    async def _paginate(self, url: str, params: dict[str, Any] | None) -> AsyncIterator[dict[str, Any]]:
        next_url: str | None = url
        while next_url:
            payload = await self._get_json(next_url, params)
            if payload is None:
                return
            for result in payload.get("results") or []:
                yield result
            next_url = payload.get("next_url")
            # next_url already embeds the cursor and query string
            params = None

    async def _get_json(self, url: str, params: dict[str, Any] | None) -> dict[str, Any] | None:
        retry = ExponentialBackoffRetry(self._retry_config)
        return await retry.execute(self._request_once, url, params)

    async def _request_once(self, url: str, params: dict[str, Any] | None) -> dict[str, Any] | None:
        client = self._ensure_client()
        try:
            response = await client.get(url, params=params)
        except httpx.TransportError as exc:
            raise NetworkError(f"Polygon request failed: {exc}", provider_name=self.name) from exc

        status = response.status_code
        if status == 404:
            return None
        if status in (401, 403):
            raise AuthenticationError(
                f"Polygon rejected the credentials (HTTP {status})",
                provider_name=self.name,
                auth_method="api_key",
            )
        if status == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                "Polygon rate limit exceeded",
                provider_name=self.name,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if status >= 500:
            raise NetworkError(f"Polygon server error (HTTP {status})", provider_name=self.name, status_code=status)
        if status >= 400:
            raise ProviderUnavailable(
                f"Polygon refused the request (HTTP {status}): {response.text[:200]}",
                provider_name=self.name,
                details={"status_code": status},
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderUnavailable(
                "Polygon returned a malformed JSON payload",
                provider_name=self.name,
            ) from exc


__all__ = ["DEFAULT_BASE_URL", "PolygonGateway", "polygon_ticker"]
