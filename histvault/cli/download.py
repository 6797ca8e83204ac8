"""Download command implementation for the histvault CLI."""

from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path

import typer

from histvault.core.config import ConfigManager, HistVaultConfig, ProviderConfig, StorageConfig
from histvault.core.data.providers import ProviderGateway, create_gateway
from histvault.core.data.storage import StoreWriter, create_store_writer
from histvault.core.exceptions import (
    ConfigurationError,
    HistVaultError,
    ProviderUnavailable,
    UnsupportedCombination,
)
from histvault.core.logging import configure_logging, get_logger
from histvault.core.models import BatchReport
from histvault.core.services import DownloadOrchestrator, DownloadParameters

from .constants import PROVIDER_EXIT_CODE, SYSTEM_EXIT_CODE, VALIDATION_EXIT_CODE
from .utils import CLIOptions, emit_error, emit_exception, report_output

TIMESTAMP_FORMAT = "%Y%m%d-%H:%M:%S"

OUTCOME_COLUMNS = ["ticker", "status", "detail"]

logger = get_logger("histvault.cli")


def register(app: typer.Typer) -> None:
    """Register the download command on the provided application."""

    app.command("download")(download_command)


def get_gateway(config: ProviderConfig) -> ProviderGateway:
    """Factory hook for obtaining the provider gateway."""

    return create_gateway(config)


def get_writer(config: StorageConfig) -> StoreWriter:
    """Factory hook for obtaining the store writer."""

    return create_store_writer(config)


def parse_timestamp(text: str) -> datetime:
    """Parse ``YYYYMMDD-HH:MM:SS``; the result is naive and read as UTC."""

    return datetime.strptime(text.strip(), TIMESTAMP_FORMAT)


def download_command(
    ctx: typer.Context,
    tickers: str | None = typer.Option(
        None,
        "--tickers",
        help="Comma separated list of tickers to download.",
    ),
    tickers_from: Path | None = typer.Option(
        None,
        "--tickers-from",
        help="Read newline-delimited tickers from a file.",
    ),
    security_type: str | None = typer.Option(None, "--security-type", help="Security type (default equity)."),
    resolution: str | None = typer.Option(None, "--resolution", help="tick, second, minute, hour or daily."),
    market: str | None = typer.Option(None, "--market", help="Market of the tickers (default usa)."),
    from_date: str = typer.Option(..., "--from-date", help="Range start, YYYYMMDD-HH:MM:SS (UTC)."),
    to_date: str | None = typer.Option(None, "--to-date", help="Range end, YYYYMMDD-HH:MM:SS (UTC)."),
    provider: str | None = typer.Option(None, "--provider", help="Data provider (polygon or stub)."),
    store: str | None = typer.Option(None, "--store", help="Store backend (duckdb or lean)."),
    data_folder: Path | None = typer.Option(None, "--data-folder", help="Root folder of the store."),
    concurrency: int | None = typer.Option(None, "--concurrency", min=1, help="Instruments fetched in parallel."),
    config_path: Path | None = typer.Option(None, "--config", help="Path to a TOML configuration file."),
    strict: bool = typer.Option(False, "--strict", help="Exit non-zero when any instrument failed or was rejected."),
) -> None:
    """Download historical data for a batch of tickers into the store."""

    try:
        collected = _collect_tickers(tickers, tickers_from)
    except OSError as exc:
        emit_error("TICKER_FILE_ERROR", str(exc))
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc

    if not collected:
        emit_error("TICKERS_MISSING", "No tickers supplied for download command.")
        raise typer.Exit(code=VALIDATION_EXIT_CODE)

    range_start = _parse_option_timestamp(from_date, "--from-date")
    range_end = _parse_option_timestamp(to_date, "--to-date") if to_date else None

    try:
        config = _load_config(
            config_path,
            provider=provider,
            store=store,
            data_folder=data_folder,
            security_type=security_type,
            resolution=resolution,
            market=market,
            concurrency=concurrency,
        )
    except ValueError as exc:
        emit_error("CONFIGURATION_ERROR", str(exc))
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc

    options = CLIOptions.from_context(ctx)
    if config.logging.file:
        configure_logging(options.log_level, file_output=True, file_path=config.logging.file)

    params = DownloadParameters(
        tickers=collected,
        range_start=range_start,
        range_end=range_end,
        security_type=config.download.security_type,
        resolution=config.download.resolution,
        market=config.download.market,
    )

    with report_output(options) as (formatter, stream):
        try:
            report = _run(config, params)
        except (ConfigurationError, UnsupportedCombination) as error:
            emit_exception(error)
            raise typer.Exit(code=VALIDATION_EXIT_CODE) from error
        except ProviderUnavailable as error:
            emit_exception(error)
            raise typer.Exit(code=PROVIDER_EXIT_CODE) from error
        except HistVaultError as error:
            emit_exception(error)
            raise typer.Exit(code=SYSTEM_EXIT_CODE) from error
        except Exception as error:  # pragma: no cover - safety net
            logger.opt(exception=error).error("Download command failed")
            emit_error("UNEXPECTED_ERROR", str(error))
            raise typer.Exit(code=SYSTEM_EXIT_CODE) from error

        formatter.render(report.rows(), stream=stream, columns=OUTCOME_COLUMNS)

    if strict and report.has_failures:
        raise typer.Exit(code=PROVIDER_EXIT_CODE)


def _run(config: HistVaultConfig, params: DownloadParameters) -> BatchReport:
    gateway = get_gateway(config.provider)
    with get_writer(config.storage) as writer:
        return asyncio.run(_download(gateway, writer, params, config.download.concurrency))


async def _download(
    gateway: ProviderGateway,
    writer: StoreWriter,
    params: DownloadParameters,
    concurrency: int,
) -> BatchReport:
    async with gateway:
        orchestrator = DownloadOrchestrator(gateway, writer, concurrency=concurrency)
        return await orchestrator.run(params)


def _load_config(
    config_path: Path | None,
    *,
    provider: str | None,
    store: str | None,
    data_folder: Path | None,
    security_type: str | None,
    resolution: str | None,
    market: str | None,
    concurrency: int | None,
) -> HistVaultConfig:
    manager = ConfigManager(config_path)
    manager.update_config(
        provider={"name": provider},
        storage={
            "backend": store,
            "data_folder": str(data_folder) if data_folder is not None else None,
        },
        download={
            "security_type": security_type,
            "resolution": resolution,
            "market": market,
            "concurrency": concurrency,
        },
    )
    return manager.get_config()


def _parse_option_timestamp(value: str, option: str) -> datetime:
    try:
        return parse_timestamp(value)
    except ValueError as exc:
        raise typer.BadParameter(
            f"Invalid timestamp '{value}', expected YYYYMMDD-HH:MM:SS",
            param_hint=option,
        ) from exc


def _collect_tickers(tickers: str | None, tickers_from: Path | None) -> list[str]:
    collected: list[str] = []
    if tickers:
        collected.extend(candidate.strip() for candidate in tickers.split(","))

    if tickers_from is not None:
        if not tickers_from.exists() or not tickers_from.is_file():
            msg = f"Tickers file '{tickers_from}' does not exist or is not a file."
            raise OSError(msg)
        try:
            contents = tickers_from.read_text(encoding="utf-8")
        except OSError as exc:
            raise OSError(f"Unable to read tickers file '{tickers_from}': {exc}") from exc
        collected.extend(line.strip() for line in contents.splitlines())

    return [ticker for ticker in collected if ticker]


__all__ = ["download_command", "get_gateway", "get_writer", "parse_timestamp", "register"]
