"""Derive concrete fetch requests from run parameters.

Tick-type inference is table driven: the provider decides trade vs. quote data
from the security type and whether raw ticks or bars are requested. Security
types missing from the table fall back to trades.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from enum import Enum

from histvault.core.exceptions import ConfigurationError, UnsupportedCombination
from histvault.core.models import FetchRequest, Instrument, Resolution, SecurityType, TickType
from histvault.core.models.market import match_enum_token


class ResolutionClass(str, Enum):
    """Coarse resolution bucket used as the tick-type table key."""

    TICK = "tick"
    BAR = "bar"

    @classmethod
    def of(cls, resolution: Resolution) -> ResolutionClass:
        return cls.TICK if resolution.is_tick else cls.BAR


DEFAULT_TICK_TYPE = TickType.TRADE

_QUOTE_ONLY: Mapping[ResolutionClass, TickType] = {
    ResolutionClass.TICK: TickType.QUOTE,
    ResolutionClass.BAR: TickType.QUOTE,
}

TICK_TYPE_TABLE: Mapping[SecurityType, Mapping[ResolutionClass, TickType]] = {
    SecurityType.FOREX: _QUOTE_ONLY,
    SecurityType.CFD: _QUOTE_ONLY,
    SecurityType.CRYPTO: _QUOTE_ONLY,
    SecurityType.OPTION: {
        ResolutionClass.TICK: TickType.TRADE,
        ResolutionClass.BAR: TickType.TRADE,
    },
}


def infer_tick_type(security_type: SecurityType, resolution: Resolution) -> TickType:
    rules = TICK_TYPE_TABLE.get(security_type)
    if rules is None:
        return DEFAULT_TICK_TYPE
    return rules.get(ResolutionClass.of(resolution), DEFAULT_TICK_TYPE)


def parse_resolution(value: Resolution | str | None) -> Resolution:
    """Parse a resolution token; blank means minute."""

    if isinstance(value, Resolution):
        return value
    if value is None or not value.strip():
        return Resolution.MINUTE
    matched = match_enum_token(Resolution, value)
    if matched is None:
        allowed = ", ".join(member.value for member in Resolution)
        raise UnsupportedCombination(
            f"Unsupported resolution '{value}'. Allowed values: {allowed}",
            resolution=value,
        )
    return Resolution(matched.value)


def as_utc(value: datetime) -> datetime:
    """Attach the UTC designation to ``value`` without shifting the wall clock."""

    return value.replace(tzinfo=UTC)


def plan(
    instrument: Instrument,
    resolution: Resolution | str | None,
    range_start: datetime,
    range_end: datetime | None = None,
    *,
    now: datetime | None = None,
) -> FetchRequest:
    """Build the :class:`FetchRequest` for one instrument."""

    parsed = parse_resolution(resolution)
    start = as_utc(range_start)
    if range_end is None:
        end = as_utc(now) if now is not None else datetime.now(UTC)
    else:
        end = as_utc(range_end)
    if start > end:
        raise ConfigurationError(
            f"range start {start.isoformat()} is later than range end {end.isoformat()}",
            parameter="range_start",
        )

    return FetchRequest(
        instrument=instrument,
        resolution=parsed,
        tick_type=infer_tick_type(instrument.security_type, parsed),
        range_start=start,
        range_end=end,
    )


__all__ = [
    "DEFAULT_TICK_TYPE",
    "ResolutionClass",
    "TICK_TYPE_TABLE",
    "as_utc",
    "infer_tick_type",
    "parse_resolution",
    "plan",
]
