"""Turn raw ticker strings into canonical instruments."""

from __future__ import annotations

from histvault.core.exceptions import ConfigurationError
from histvault.core.models import DEFAULT_MARKET, Instrument, SecurityType
from histvault.core.models.market import match_enum_token


def parse_security_type(value: SecurityType | str | None) -> SecurityType:
    """Parse a security type token; blank means equity."""

    if isinstance(value, SecurityType):
        return value
    if value is None or not value.strip():
        return SecurityType.EQUITY
    matched = match_enum_token(SecurityType, value)
    if matched is None:
        allowed = ", ".join(member.value for member in SecurityType)
        raise ConfigurationError(
            f"Unsupported security-type '{value}'. Allowed values: {allowed}",
            parameter="security_type",
        )
    return SecurityType(matched.value)


def normalize_market(market: str | None) -> str:
    if market is None or not market.strip():
        return DEFAULT_MARKET
    return market.strip().lower()


def resolve(ticker: str, security_type: SecurityType | str | None, market: str | None) -> Instrument:
    """Build the canonical :class:`Instrument` for ``ticker``."""

    symbol = ticker.strip()
    if not symbol:
        raise ConfigurationError("ticker must not be blank", parameter="tickers")
    return Instrument(
        ticker=symbol,
        security_type=parse_security_type(security_type),
        market=normalize_market(market),
    )


__all__ = ["normalize_market", "parse_security_type", "resolve"]
