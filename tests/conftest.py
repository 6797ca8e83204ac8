"""Pytest configuration for histvault test suite."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from loguru import logger


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register command-line options for controlling integration tests."""

    parser.addoption(
        "--histvault-run-integration",
        action="store_true",
        default=False,
        help="Run histvault integration tests that require external services.",
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register the integration marker for histvault tests."""

    config.addinivalue_line(
        "markers",
        "integration: marks histvault tests requiring network or external services",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless explicitly requested."""

    if config.getoption("--histvault-run-integration"):
        return

    skip_integration = pytest.mark.skip(
        reason="integration tests require --histvault-run-integration",
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture(autouse=True)
def _reset_log_handlers() -> Iterator[None]:
    """Remove log sinks configured during the test."""

    yield
    logger.remove()
