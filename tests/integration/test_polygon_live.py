from __future__ import annotations

import os
from datetime import UTC, datetime

import pytest

from histvault.core.data.providers import PolygonGateway
from histvault.core.data.storage import DuckDBStoreWriter
from histvault.core.models import OutcomeStatus
from histvault.core.services import DownloadOrchestrator, DownloadParameters

pytestmark = pytest.mark.integration


@pytest.mark.asyncio
async def test_download_daily_bars_from_polygon() -> None:
    api_key = os.getenv("HISTVAULT_API_KEY")
    if not api_key:
        pytest.skip("HISTVAULT_API_KEY is not set")

    params = DownloadParameters(
        tickers=["AAPL"],
        range_start=datetime(2024, 1, 2, tzinfo=UTC),
        range_end=datetime(2024, 1, 10, tzinfo=UTC),
        resolution="daily",
    )
    with DuckDBStoreWriter() as writer:
        async with PolygonGateway(api_key) as gateway:
            report = await DownloadOrchestrator(gateway, writer).run(params)

    (outcome,) = report.outcomes
    assert outcome.status is OutcomeStatus.WRITTEN
    assert outcome.observation_count > 0
