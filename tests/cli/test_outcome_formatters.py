from __future__ import annotations

import io
import json

import pytest

from histvault.cli.formatters import JSONLFormatter, TableFormatter, create_formatter

ROWS = [
    {"ticker": "SPY", "status": "written", "detail": "trade_bars/equity/usa/SPY/minute"},
    {"ticker": "QQQ", "status": "no_data", "detail": ""},
]


def test_create_formatter() -> None:
    assert isinstance(create_formatter(" TABLE "), TableFormatter)
    assert isinstance(create_formatter("jsonl"), JSONLFormatter)

    with pytest.raises(ValueError):
        create_formatter("xml")


def test_table_formatter_renders_rows() -> None:
    stream = io.StringIO()

    TableFormatter(no_color=True).render(ROWS, stream=stream, columns=["ticker", "status", "detail"])

    output = stream.getvalue()
    assert "SPY" in output
    assert "written" in output
    assert "-" in output


def test_table_formatter_handles_empty_rows() -> None:
    stream = io.StringIO()

    TableFormatter(no_color=True).render([], stream=stream, columns=["ticker"])

    assert "No instruments processed." in stream.getvalue()


def test_jsonl_formatter_filters_columns() -> None:
    stream = io.StringIO()

    JSONLFormatter().render(ROWS, stream=stream, columns=["ticker", "status"])

    lines = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert lines == [{"ticker": "SPY", "status": "written"}, {"ticker": "QQQ", "status": "no_data"}]
