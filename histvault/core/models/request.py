"""Fetch request and ordered batch models."""

from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from .base import Instrument, Observation
from .market import Resolution, TickType


def _require_utc(value: datetime) -> datetime:
    if value.tzinfo is None or value.utcoffset() != timedelta(0):
        raise ValueError("timestamp must carry an explicit UTC designation")
    return value


class FetchRequest(BaseModel):
    """Concrete fetch parameters for a single instrument."""

    model_config = ConfigDict(frozen=True)

    instrument: Instrument
    resolution: Resolution
    tick_type: TickType
    range_start: datetime
    range_end: datetime

    @field_validator("range_start", "range_end")
    @classmethod
    def _check_utc(cls, value: datetime) -> datetime:
        return _require_utc(value)

    @model_validator(mode="after")
    def _check_range(self) -> FetchRequest:
        if self.range_start > self.range_end:
            raise ValueError("range_start must not be later than range_end")
        return self


class OrderedBatch(BaseModel):
    """Non-empty observations for one instrument, sorted by ``end_time``."""

    model_config = ConfigDict(frozen=True)

    instrument: Instrument
    resolution: Resolution
    tick_type: TickType
    observations: tuple[Observation, ...]

    @model_validator(mode="after")
    def _check_order(self) -> OrderedBatch:
        if not self.observations:
            raise ValueError("an ordered batch cannot be empty")
        for observation in self.observations:
            _require_utc(observation.time)
            _require_utc(observation.end_time)
        previous = self.observations[0].end_time
        for observation in self.observations[1:]:
            if observation.end_time < previous:
                raise ValueError("observations must be non-decreasing by end_time")
            previous = observation.end_time
        return self

    def __len__(self) -> int:
        return len(self.observations)

    @property
    def first_time(self) -> datetime:
        return self.observations[0].end_time

    @property
    def last_time(self) -> datetime:
        return self.observations[-1].end_time
