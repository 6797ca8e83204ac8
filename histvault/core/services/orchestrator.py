"""Batch download orchestration.

Each instrument runs through resolve -> plan -> fetch -> sequence -> write
and ends in exactly one terminal :class:`OutcomeStatus`. Instruments are
isolated from each other: a per-instrument error becomes an outcome, only
run-level configuration errors escape :meth:`DownloadOrchestrator.run`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from time import perf_counter
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from histvault.core.exceptions import (
    ConfigurationError,
    EmptyResult,
    ObservationRejected,
    ProviderUnavailable,
    WriteFailure,
)
from histvault.core.logging import get_logger, log_context
from histvault.core.models import (
    BatchReport,
    Instrument,
    Outcome,
    OutcomeStatus,
    Resolution,
    SecurityType,
)
from histvault.core.services.planner import as_utc, parse_resolution, plan
from histvault.core.services.resolver import normalize_market, parse_security_type, resolve
from histvault.core.services.sequencer import sequence

if TYPE_CHECKING:
    from loguru import Logger

    from histvault.core.data.providers.base import ProviderGateway
    from histvault.core.data.storage.base import StoreWriter


@dataclass(frozen=True)
class DownloadParameters:
    """Run-level parameters shared by every instrument of a batch."""

    tickers: Sequence[str]
    range_start: datetime
    range_end: datetime | None = None
    security_type: SecurityType | str | None = SecurityType.EQUITY
    resolution: Resolution | str | None = Resolution.MINUTE
    market: str | None = None


@dataclass(frozen=True)
class _RunPlan:
    security_type: SecurityType
    resolution: Resolution
    market: str
    range_start: datetime
    range_end: datetime


class DownloadOrchestrator:
    """批量下载协调器: 逐个品种执行下载流程并记录结果."""

    def __init__(
        self,
        gateway: ProviderGateway,
        writer: StoreWriter,
        *,
        concurrency: int = 1,
        clock: Callable[[], datetime] | None = None,
        logger: Logger | None = None,
    ) -> None:
        if concurrency < 1:
            raise ConfigurationError("concurrency must be at least 1", parameter="concurrency")
        self.gateway = gateway
        self.writer = writer
        self.concurrency = concurrency
        self._clock = clock or (lambda: datetime.now(UTC))
        self._logger = logger or get_logger("histvault.orchestrator")

    def _prepare(self, params: DownloadParameters, started_at: datetime) -> _RunPlan:
        if not params.tickers:
            raise ConfigurationError("at least one ticker is required", parameter="tickers")

        security_type = parse_security_type(params.security_type)
        resolution = parse_resolution(params.resolution)
        market = normalize_market(params.market)

        range_start = as_utc(params.range_start)
        range_end = as_utc(params.range_end) if params.range_end is not None else started_at
        if range_start > range_end:
            raise ConfigurationError(
                f"from date {range_start.isoformat()} is later than to date {range_end.isoformat()}",
                parameter="range_start",
            )
        return _RunPlan(security_type, resolution, market, range_start, range_end)

    def _instruments(self, tickers: Sequence[str], run_plan: _RunPlan) -> list[tuple[Instrument, bool]]:
        """Resolve non-blank tickers, flagging repeats of an earlier entry."""

        entries: list[tuple[Instrument, bool]] = []
        seen: set[Instrument] = set()
        for raw in tickers:
            ticker = raw.strip()
            if not ticker:
                continue
            instrument = resolve(ticker, run_plan.security_type, run_plan.market)
            entries.append((instrument, instrument in seen))
            seen.add(instrument)
        return entries

    def _stop_requested(self, cancel_event: asyncio.Event | None, deadline: datetime | None) -> bool:
        if cancel_event is not None and cancel_event.is_set():
            return True
        return deadline is not None and self._clock() >= deadline

    async def run(
        self,
        params: DownloadParameters,
        *,
        cancel_event: asyncio.Event | None = None,
        deadline: datetime | None = None,
    ) -> BatchReport:
        """Download every ticker in ``params`` and return the outcome log.

        Args:
            params: 批量下载参数
            cancel_event: 设置后不再启动新的品种
            deadline: 到期后不再启动新的品种

        Raises:
            ConfigurationError: 参数无效, 整个批次不执行
            UnsupportedCombination: 分辨率无法解析
        """

        started_at = self._clock()
        start = perf_counter()
        run_id = uuid4().hex

        run_plan = self._prepare(params, started_at)
        entries = self._instruments(params.tickers, run_plan)
        if deadline is not None:
            deadline = as_utc(deadline)

        outcomes: list[Outcome] = []
        skipped: list[str] = []
        semaphore = asyncio.Semaphore(self.concurrency)
        stopped = False

        async def worker(instrument: Instrument, duplicate: bool) -> None:
            nonlocal stopped
            async with semaphore:
                if stopped or self._stop_requested(cancel_event, deadline):
                    stopped = True
                    skipped.append(instrument.ticker)
                    return
                with log_context(
                    trace_id=run_id,
                    ticker=instrument.ticker,
                    provider=self.gateway.name,
                ):
                    if duplicate:
                        self._logger.bind(ticker=instrument.ticker).warning("Duplicate ticker not processed again")
                        outcome = _outcome(instrument, OutcomeStatus.REJECTED, "duplicate ticker")
                    else:
                        outcome = await self._process(instrument, run_plan)
                outcomes.append(outcome)

        self._logger.bind(run_id=run_id, instruments=len(entries)).info("Download run started")
        await asyncio.gather(*(worker(instrument, duplicate) for instrument, duplicate in entries))

        report = BatchReport(
            run_id=run_id,
            started_at=started_at,
            outcomes=tuple(outcomes),
            duration_ms=(perf_counter() - start) * 1000,
            cancelled=stopped,
            skipped=tuple(skipped),
        )
        self._logger.bind(
            run_id=run_id,
            duration_ms=round(report.duration_ms, 3),
            cancelled=report.cancelled,
            summary={item.status.value: item.count for item in report.summary()},
        ).info("Download run finished")
        return report

    async def _process(self, instrument: Instrument, run_plan: _RunPlan) -> Outcome:
        log = self._logger.bind(ticker=instrument.ticker)
        request = plan(instrument, run_plan.resolution, run_plan.range_start, run_plan.range_end)

        try:
            observations = await self.gateway.fetch(request)
        except ProviderUnavailable as exc:
            log.bind(error_code=exc.error_code).warning("Provider unavailable: {}", exc.message)
            return _outcome(instrument, OutcomeStatus.FAILED, exc.message)
        except Exception as exc:
            log.opt(exception=exc).error("Unexpected gateway error")
            return _outcome(instrument, OutcomeStatus.FAILED, f"{type(exc).__name__}: {exc}")

        try:
            batch = sequence(request, observations)
        except EmptyResult as exc:
            log.info("No data returned")
            return _outcome(instrument, OutcomeStatus.NO_DATA, exc.message)
        except ObservationRejected as exc:
            log.bind(error_code=exc.error_code).warning("Observations rejected: {}", exc.message)
            return _outcome(instrument, OutcomeStatus.REJECTED, exc.message)

        try:
            receipt = await asyncio.to_thread(self.writer.write, batch)
        except WriteFailure as exc:
            log.bind(error_code=exc.error_code).error("Write failed: {}", exc.message)
            return _outcome(instrument, OutcomeStatus.FAILED, exc.message, len(batch))
        except Exception as exc:
            log.opt(exception=exc).error("Unexpected writer error")
            return _outcome(instrument, OutcomeStatus.FAILED, f"{type(exc).__name__}: {exc}", len(batch))

        log.bind(rows=receipt.rows, location=receipt.location).info("Batch written")
        return _outcome(instrument, OutcomeStatus.WRITTEN, receipt.location, receipt.rows)

    def run_sync(self, params: DownloadParameters, **kwargs: Any) -> BatchReport:
        """Blocking wrapper around :meth:`run` for synchronous callers."""

        return asyncio.run(self.run(params, **kwargs))


def _outcome(
    instrument: Instrument,
    status: OutcomeStatus,
    detail: str = "",
    observation_count: int = 0,
) -> Outcome:
    return Outcome(
        instrument=instrument,
        status=status,
        detail=detail,
        observation_count=observation_count,
    )


__all__ = ["DownloadOrchestrator", "DownloadParameters"]
