"""Per-instrument outcome records and the batch report."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict

from .base import Instrument


class OutcomeStatus(str, Enum):
    """Terminal state of one instrument in a download run."""

    WRITTEN = "written"
    NO_DATA = "no_data"
    REJECTED = "rejected"
    FAILED = "failed"


class Outcome(BaseModel):
    """Result of processing a single instrument."""

    model_config = ConfigDict(frozen=True)

    instrument: Instrument
    status: OutcomeStatus
    detail: str = ""
    observation_count: int = 0

    @property
    def ticker(self) -> str:
        return self.instrument.ticker

    def as_row(self) -> dict[str, object]:
        return {"ticker": self.ticker, "status": self.status.value, "detail": self.detail}


@dataclass(slots=True, frozen=True)
class StatusCount:
    """Number of outcomes sharing a status."""

    status: OutcomeStatus
    count: int


@dataclass(slots=True, frozen=True)
class BatchReport:
    """Outcome log returned after a download run, in completion order."""

    run_id: str
    started_at: datetime
    outcomes: tuple[Outcome, ...]
    duration_ms: float = 0.0
    cancelled: bool = False
    skipped: tuple[str, ...] = field(default_factory=tuple)

    def count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is status)

    def summary(self) -> tuple[StatusCount, ...]:
        counter = Counter(outcome.status for outcome in self.outcomes)
        summaries = [StatusCount(status=status, count=count) for status, count in counter.items()]
        summaries.sort(key=lambda item: (-item.count, item.status.value))
        return tuple(summaries)

    @property
    def has_failures(self) -> bool:
        return any(
            outcome.status in (OutcomeStatus.FAILED, OutcomeStatus.REJECTED) for outcome in self.outcomes
        )

    def rows(self) -> list[dict[str, object]]:
        return [outcome.as_row() for outcome in self.outcomes]
