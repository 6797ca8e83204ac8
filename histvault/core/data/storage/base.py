"""Store writer capability."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from histvault.core.models import OrderedBatch


@dataclass(slots=True, frozen=True)
class WriteReceipt:
    """What a writer persisted for one batch."""

    rows: int
    location: str


class StoreWriter(ABC):
    """Persists ordered batches into a partitioned store.

    Writers own the partition layout and encoding. ``write`` creates or
    overwrites the partitions touched by the batch and raises
    :class:`~histvault.core.exceptions.WriteFailure` when it cannot.
    """

    name: str = "store"

    @abstractmethod
    def write(self, batch: OrderedBatch) -> WriteReceipt:
        """Persist ``batch``."""

    def close(self) -> None:
        """Release resources held by the writer."""

    def __enter__(self) -> StoreWriter:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = ["StoreWriter", "WriteReceipt"]
