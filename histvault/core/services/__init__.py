"""Download pipeline services."""

from histvault.core.services.orchestrator import DownloadOrchestrator, DownloadParameters
from histvault.core.services.planner import (
    DEFAULT_TICK_TYPE,
    TICK_TYPE_TABLE,
    ResolutionClass,
    as_utc,
    infer_tick_type,
    parse_resolution,
    plan,
)
from histvault.core.services.resolver import normalize_market, parse_security_type, resolve
from histvault.core.services.sequencer import sequence

__all__ = [
    "DEFAULT_TICK_TYPE",
    "DownloadOrchestrator",
    "DownloadParameters",
    "ResolutionClass",
    "TICK_TYPE_TABLE",
    "as_utc",
    "infer_tick_type",
    "normalize_market",
    "parse_resolution",
    "parse_security_type",
    "plan",
    "resolve",
    "sequence",
]
