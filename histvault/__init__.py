"""histvault - historical market data downloader.

Resolves tickers, fetches bars or ticks from a provider gateway and writes
them into a partitioned store, reporting one outcome per instrument.
"""

from histvault.core.models import BatchReport, Outcome, OutcomeStatus
from histvault.core.services import DownloadOrchestrator, DownloadParameters

__version__ = "0.1.0"

__all__ = [
    "BatchReport",
    "DownloadOrchestrator",
    "DownloadParameters",
    "Outcome",
    "OutcomeStatus",
    "__version__",
]
