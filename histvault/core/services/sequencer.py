"""Order raw provider observations into a writable batch."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta
from operator import attrgetter

from histvault.core.exceptions import EmptyResult, ObservationRejected
from histvault.core.models import FetchRequest, Observation, OrderedBatch


def _is_utc(value: datetime) -> bool:
    return value.tzinfo is not None and value.utcoffset() == timedelta(0)


def _validate(request: FetchRequest, observations: list[Observation]) -> None:
    for index, observation in enumerate(observations):
        if observation.end_time.tzinfo is None or observation.time.tzinfo is None:
            raise ObservationRejected(
                f"observation {index} for {request.instrument.ticker} has a naive timestamp",
                index=index,
            )
        if not (_is_utc(observation.time) and _is_utc(observation.end_time)):
            raise ObservationRejected(
                f"observation {index} for {request.instrument.ticker} is not in UTC",
                index=index,
                details={"utc_offset": str(observation.end_time.utcoffset())},
            )
        if observation.tick_type is not request.tick_type:
            raise ObservationRejected(
                f"observation {index} is {observation.tick_type.value} data, "
                f"expected {request.tick_type.value}",
                index=index,
                details={"expected": request.tick_type.value, "received": observation.tick_type.value},
            )


def sequence(request: FetchRequest, observations: Iterable[Observation] | None) -> OrderedBatch:
    """Return the observations stably sorted by ``end_time``.

    Raises:
        EmptyResult: nothing was returned for the instrument.
        ObservationRejected: an observation breaks a write-time invariant.
    """

    collected = list(observations) if observations is not None else []
    if not collected:
        raise EmptyResult(
            f"empty data set for {request.instrument.ticker}",
            details={"ticker": request.instrument.ticker},
        )

    _validate(request, collected)
    ordered = sorted(collected, key=attrgetter("end_time"))
    return OrderedBatch(
        instrument=request.instrument,
        resolution=request.resolution,
        tick_type=request.tick_type,
        observations=tuple(ordered),
    )


__all__ = ["sequence"]
