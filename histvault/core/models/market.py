"""Market-related enums and types."""

from enum import Enum

DEFAULT_MARKET = "usa"


class SecurityType(str, Enum):
    """Security type of an instrument."""

    BASE = "base"
    EQUITY = "equity"
    OPTION = "option"
    FUTURE = "future"
    FOREX = "forex"
    CFD = "cfd"
    CRYPTO = "crypto"
    INDEX = "index"
    INDEX_OPTION = "index_option"
    FUTURE_OPTION = "future_option"
    CRYPTO_FUTURE = "crypto_future"
    COMMODITY = "commodity"


class Resolution(str, Enum):
    """Bar period (or raw ticks) requested from a provider."""

    TICK = "tick"
    SECOND = "second"
    MINUTE = "minute"
    HOUR = "hour"
    DAILY = "daily"

    @property
    def is_tick(self) -> bool:
        return self is Resolution.TICK

    @property
    def is_high_resolution(self) -> bool:
        """Tick, second and minute data are partitioned per day."""
        return self in (Resolution.TICK, Resolution.SECOND, Resolution.MINUTE)


class TickType(str, Enum):
    """Kind of market data carried by an observation."""

    TRADE = "trade"
    QUOTE = "quote"


def _squash(value: str) -> str:
    return value.strip().lower().replace("_", "").replace("-", "")


def match_enum_token(enum_cls: type[Enum], token: str) -> Enum | None:
    """Match ``token`` against ``enum_cls`` ignoring case, ``_`` and ``-``."""

    wanted = _squash(token)
    for member in enum_cls:
        if _squash(str(member.value)) == wanted or _squash(member.name) == wanted:
            return member
    return None
