"""Data models module."""

from histvault.core.models.base import Instrument, Observation, QuoteBar, Tick, TradeBar
from histvault.core.models.market import DEFAULT_MARKET, Resolution, SecurityType, TickType
from histvault.core.models.outcome import BatchReport, Outcome, OutcomeStatus, StatusCount
from histvault.core.models.request import FetchRequest, OrderedBatch

__all__ = [
    "DEFAULT_MARKET",
    "BatchReport",
    "FetchRequest",
    "Instrument",
    "Observation",
    "OrderedBatch",
    "Outcome",
    "OutcomeStatus",
    "QuoteBar",
    "Resolution",
    "SecurityType",
    "StatusCount",
    "Tick",
    "TickType",
    "TradeBar",
]
