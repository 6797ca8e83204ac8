"""Base data models."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_serializer

from .market import DEFAULT_MARKET, SecurityType, TickType


class Instrument(BaseModel):
    """Canonical instrument identity."""

    model_config = ConfigDict(frozen=True)

    ticker: str
    security_type: SecurityType
    market: str = DEFAULT_MARKET

    def __str__(self) -> str:
        return f"{self.ticker} {self.security_type.value}/{self.market}"


class Observation(BaseModel):
    """单个行情观测点基类."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    time: datetime
    end_time: datetime
    tick_type: TickType

    @field_serializer("time", "end_time", when_used="json")
    def serialize_datetime(self, value: datetime) -> str:
        """Serialize datetime to isoformat string."""
        return value.isoformat()


class TradeBar(Observation):
    """OHLCV bar built from trades."""

    tick_type: TickType = TickType.TRADE
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal = Decimal(0)

    @field_serializer("open", "high", "low", "close", "volume", when_used="json")
    def serialize_decimal(self, value: Decimal) -> str:
        """Serialize Decimal to string."""
        return str(value)


class QuoteBar(Observation):
    """Bid/ask bar built from quotes. Either side may be missing."""

    tick_type: TickType = TickType.QUOTE
    bid_open: Decimal | None = None
    bid_high: Decimal | None = None
    bid_low: Decimal | None = None
    bid_close: Decimal | None = None
    last_bid_size: Decimal = Decimal(0)
    ask_open: Decimal | None = None
    ask_high: Decimal | None = None
    ask_low: Decimal | None = None
    ask_close: Decimal | None = None
    last_ask_size: Decimal = Decimal(0)

    @property
    def has_bid(self) -> bool:
        return self.bid_close is not None

    @property
    def has_ask(self) -> bool:
        return self.ask_close is not None


class Tick(Observation):
    """Raw trade or quote tick; ``time`` and ``end_time`` coincide."""

    tick_type: TickType = TickType.TRADE
    price: Decimal | None = None
    quantity: Decimal = Decimal(0)
    exchange: str | None = None
    conditions: str | None = None
    bid_price: Decimal | None = None
    bid_size: Decimal = Decimal(0)
    ask_price: Decimal | None = None
    ask_size: Decimal = Decimal(0)
